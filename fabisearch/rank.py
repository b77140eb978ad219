import logging
from abc import ABC, abstractmethod

import torch

from .errors import ConvergenceError, InvalidInputError
from .permute import shuffle_entries

logger = logging.getLogger(__name__)


def optimal_rank(data: torch.Tensor, oracle, nruns: int = 50, generator: torch.Generator = None,
                 max_rank: int = None):
    """
    Choose a factorization rank by comparing loss decreases against a noise baseline.

    The baseline is the data with all entries shuffled. Starting from ranks 1 and 2, the rank
    is increased while adding a component lowers the loss of the real data by more than it
    lowers the loss of the baseline. The first rank at which this stops holding is returned.

    Args:
        data (torch.Tensor): Tensor of shape [T, p], non-negative.
        oracle: Factorization oracle exposing fit(block, rank, nruns, generator).
        nruns (int): Number of restarts per fit.
        generator (torch.Generator, optional): Random stream for the baseline and the fits.
        max_rank (int, optional): Iteration cap, applied once ranks 1 and 2 are compared;
                                  defaults to min(T, p).

    Returns:
        int: The selected rank (at least 2).
    """
    logger.info("Finding optimal rank")
    T, p = data.shape
    if max_rank is None:
        max_rank = min(T, p)

    baseline = shuffle_entries(data, generator)

    orig_loss = {}
    base_loss = {}

    def fit_both(k):
        orig_loss[k] = oracle.fit(data, k, nruns, generator).loss
        base_loss[k] = oracle.fit(baseline, k, nruns, generator).loss

    fit_both(1)
    fit_both(2)
    k = 2
    while True:
        orig_change = orig_loss[k] - orig_loss[k - 1]
        base_change = base_loss[k] - base_loss[k - 1]
        logger.debug("rank=%d orig_loss=%.6g base_loss=%.6g orig_change=%.6g base_change=%.6g",
                     k, orig_loss[k], base_loss[k], orig_change, base_change)
        if orig_change >= base_change:
            break
        if k >= max_rank:
            raise ConvergenceError(
                f"Loss of the data kept falling faster than the shuffled baseline up to rank {k}"
            )
        k += 1
        fit_both(k)

    logger.info("Optimal rank: %d", k)
    return k


class RankSelection(ABC):
    """Strategy deciding the factorization rank for a series."""

    @abstractmethod
    def resolve(self, data: torch.Tensor, oracle, nruns: int, generator: torch.Generator = None):
        """Return the rank to use for data."""

    @property
    @abstractmethod
    def label(self):
        """Short description of how the rank was chosen."""


class OptimalRank(RankSelection):
    def __init__(self, max_rank: int = None):
        self.max_rank = max_rank

    def resolve(self, data, oracle, nruns, generator=None):
        return optimal_rank(data, oracle, nruns, generator, max_rank=self.max_rank)

    @property
    def label(self):
        return "optimal"

    def __repr__(self):
        return "OptimalRank()"


class FixedRank(RankSelection):
    def __init__(self, rank: int):
        if isinstance(rank, bool) or int(rank) != rank or rank < 1:
            raise InvalidInputError(f"A fixed rank must be a positive integer, got {rank!r}")
        self.rank = int(rank)

    def resolve(self, data, oracle, nruns, generator=None):
        logger.info("User defined rank: %d", self.rank)
        return self.rank

    @property
    def label(self):
        return "user input"

    def __repr__(self):
        return f"FixedRank({self.rank})"


def parse_rank(value):
    """
    Build a RankSelection from "optimal", a positive integer, or an existing RankSelection.
    """
    if isinstance(value, RankSelection):
        return value
    if isinstance(value, str):
        if value.lower() == "optimal":
            return OptimalRank()
        try:
            return FixedRank(int(value))
        except ValueError:
            raise InvalidInputError(f"rank must be 'optimal' or a positive integer, got {value!r}") from None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return FixedRank(value)
    raise InvalidInputError(f"rank must be 'optimal' or a positive integer, got {value!r}")
