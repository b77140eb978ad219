import logging

import torch

from .parallel import run_tasks
from .permute import select_times
from .rng import resolve_generator, spawn

logger = logging.getLogger(__name__)


def _refit_once(oracle, data, times, left, split, right, rank, nruns, gen_left, gen_right):
    l_loss = oracle.fit(select_times(data, times, left, split), rank, nruns, gen_left).loss
    r_loss = oracle.fit(select_times(data, times, split, right), rank, nruns, gen_right).loss
    return l_loss + r_loss


def refit_splits(table, data: torch.Tensor, nreps: int, rank: int, oracle, generator: torch.Generator = None,
                 nruns: int = 1, n_jobs: int = 1, verbose: bool = False):
    """
    Re-estimate the loss at every retained split using the final set of segment boundaries.

    During the search each split was judged inside the interval that was current at the time.
    Once all splits are known, the segments around a split are bounded by its neighbouring
    splits instead, so the two sides are refitted nreps times on those final segments.

    Args:
        table (SplitTable): Output of split_all.
        data (torch.Tensor): Tensor of shape [T, p].
        nreps (int): Number of refits per split.
        rank (int): Factorization rank.
        oracle: Factorization oracle exposing fit(block, rank, nruns, generator).
        generator (torch.Generator, optional): Random stream for the refits.
        nruns (int): Number of restarts per fit.
        n_jobs (int): Number of worker threads.
        verbose (bool): If True, shows a progress bar per split.

    Returns:
        Dict[int, List[float]]: For each retained split time, nreps summed losses.
    """
    T = data.shape[0]
    times = torch.arange(1, T + 1)
    generator = resolve_generator(generator)

    results = {}
    for left, split, right in table.segment_bounds(T):
        logger.info("Refitting split at %d", split)
        gens = spawn(generator, 2 * nreps)
        tasks = [(oracle, data, times, left, split, right, rank, nruns, gens[2 * i], gens[2 * i + 1])
                 for i in range(nreps)]
        desc = f"Refitting split at {split}" if verbose else None
        results[split] = run_tasks(_refit_once, tasks, n_jobs, desc)
    return results
