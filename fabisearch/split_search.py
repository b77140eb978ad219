import logging
from dataclasses import dataclass

import torch

from .errors import InvalidInputError
from .parallel import run_tasks
from .permute import select_times
from .rng import resolve_generator, spawn

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SplitCandidate:
    """
    Best split found for one interval (lower, upper] of the series.

    Attributes:
        time: Last time point of the left segment.
        loss_delta: Loss of the best split minus the loss of the whole interval.
        lower: Exclusive lower bound of the interval that produced the candidate.
        upper: Inclusive upper bound of that interval.
    """

    time: int
    loss_delta: float
    lower: int
    upper: int

    @property
    def retained(self):
        return self.loss_delta < 0


class SplitTable:
    """Every candidate explored by split_all, in the order the search visited them."""

    def __init__(self, candidates=None):
        self._candidates = list(candidates or [])

    def append(self, candidate: SplitCandidate):
        self._candidates.append(candidate)

    def __iter__(self):
        return iter(self._candidates)

    def __len__(self):
        return len(self._candidates)

    def __getitem__(self, i):
        return self._candidates[i]

    def __repr__(self):
        return f"SplitTable({self._candidates!r})"

    def retained_times(self):
        """Sorted times of the candidates whose split lowered the loss."""
        return sorted(c.time for c in self._candidates if c.retained)

    def segment_bounds(self, T: int):
        """
        Consecutive (left, split, right) triples over the retained times bracketed by 0 and T.

        Args:
            T (int): Number of time points in the series.

        Returns:
            List[Tuple[int, int, int]]: One triple per retained split, in time order.
        """
        bounds = [0] + self.retained_times() + [T]
        return [(bounds[i - 1], bounds[i], bounds[i + 1]) for i in range(1, len(bounds) - 1)]


def _fit_loss(oracle, block, rank, nruns, generator):
    return oracle.fit(block, rank, nruns, generator).loss


def _split_loss(oracle, data, times, lower, t, upper, rank, nruns, gen_left, gen_right):
    left = select_times(data, times, lower, t)
    right = select_times(data, times, t, upper)
    return _fit_loss(oracle, left, rank, nruns, gen_left) + _fit_loss(oracle, right, rank, nruns, gen_right)


def best_split(data: torch.Tensor, times: torch.Tensor, lower: int, upper: int, mindist: int, rank: int,
               nruns: int, oracle, generator: torch.Generator, n_jobs: int = 1):
    """
    Find the split of (lower, upper] whose two sides have the smallest summed loss.

    Candidates are lower + mindist <= t <= upper - mindist; on ties the earliest time wins.

    Returns:
        t_best (int): Best split time.
        loss_delta (float): Summed loss of the two sides minus the loss of the whole interval.
    """
    candidates = list(range(lower + mindist, upper - mindist + 1))
    gens = spawn(generator, 1 + 2 * len(candidates))
    whole_loss = _fit_loss(oracle, select_times(data, times, lower, upper), rank, nruns, gens[0])

    tasks = [(oracle, data, times, lower, t, upper, rank, nruns, gens[1 + 2 * i], gens[2 + 2 * i])
             for i, t in enumerate(candidates)]
    split_losses = run_tasks(_split_loss, tasks, n_jobs)

    t_best, best_loss = candidates[0], split_losses[0]
    for t, loss in zip(candidates[1:], split_losses[1:]):
        if loss < best_loss:
            t_best, best_loss = t, loss
    return t_best, best_loss - whole_loss


def split_all(data: torch.Tensor, mindist: int, rank: int, nruns: int, oracle, generator: torch.Generator = None,
              lower: int = 0, upper: int = None, table: SplitTable = None, n_jobs: int = 1):
    """
    Binary segmentation of a multivariate series by factorization loss.

    The interval (lower, upper] is split at the time that minimizes the summed loss of both
    sides. The candidate is always recorded; when it lowers the loss of the whole interval, both
    halves are searched in turn. Intervals shorter than 2 * mindist are not split.

    Intervals are processed from an explicit stack, left half before right half, so the table
    lists candidates in depth-first order.

    Args:
        data (torch.Tensor): Tensor of shape [T, p], rows ordered by time 1..T.
        mindist (int): Minimum distance of a split from the ends of its interval.
        rank (int): Factorization rank.
        nruns (int): Number of restarts per fit.
        oracle: Factorization oracle exposing fit(block, rank, nruns, generator).
        generator (torch.Generator, optional): Random stream for the whole search.
        lower (int): Exclusive lower bound of the starting interval.
        upper (int, optional): Inclusive upper bound of the starting interval; defaults to T.
        table (SplitTable, optional): Table to append to; a new one is created if omitted.
        n_jobs (int): Number of worker threads for the candidate fits.

    Returns:
        SplitTable: The table with every explored candidate.
    """
    if int(mindist) < 1:
        raise InvalidInputError(f"mindist must be a positive integer, got {mindist}")
    T = data.shape[0]
    upper = T if upper is None else upper
    if not 0 <= lower < upper <= T:
        raise InvalidInputError(f"Interval ({lower}, {upper}] does not lie inside (0, {T}]")
    table = SplitTable() if table is None else table
    times = torch.arange(1, T + 1)

    stack = [(lower, upper, resolve_generator(generator))]
    while stack:
        lo, hi, gen = stack.pop()
        if hi - lo < 2 * mindist:
            continue
        search_gen, left_gen, right_gen = spawn(gen, 3)
        t_best, loss_delta = best_split(data, times, lo, hi, mindist, rank, nruns, oracle, search_gen, n_jobs)
        table.append(SplitCandidate(time=t_best, loss_delta=loss_delta, lower=lo, upper=hi))
        logger.debug("Interval (%d, %d]: best split at %d, change in loss %.6g", lo, hi, t_best, loss_delta)
        if loss_delta < 0:
            stack.append((t_best, hi, right_gen))
            stack.append((lo, t_best, left_gen))
    return table
