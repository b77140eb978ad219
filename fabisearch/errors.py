class FaBiSearchError(Exception):
    """Base class for all errors raised by fabisearch."""


class InvalidInputError(FaBiSearchError, ValueError):
    """The series or a parameter cannot be used for change point detection."""


class ConvergenceError(FaBiSearchError, RuntimeError):
    """Rank selection did not settle within its iteration cap."""


class ComputationError(FaBiSearchError, RuntimeError):
    """A factorization fit failed numerically or ran past its deadline."""
