import logging

import torch

from .parallel import run_tasks
from .permute import permute_rows, select_times
from .rng import resolve_generator, spawn

logger = logging.getLogger(__name__)


def _permuted_once(oracle, block, block_times, left, split, right, rank, nruns, gen_perm, gen_left, gen_right):
    perm_block, perm_times = permute_rows(block, block_times, gen_perm)
    l_loss = oracle.fit(select_times(perm_block, perm_times, left, split), rank, nruns, gen_left).loss
    r_loss = oracle.fit(select_times(perm_block, perm_times, split, right), rank, nruns, gen_right).loss
    return l_loss + r_loss


def perm_distr(table, data: torch.Tensor, nreps: int, rank: int, oracle, generator: torch.Generator = None,
               nruns: int = 1, n_jobs: int = 1, verbose: bool = False):
    """
    Build a null loss distribution for every retained split by permuting time within its segment.

    For a split with neighbouring boundaries left and right, the rows of (left, right] are
    shuffled, the shuffled block is cut at the split's time label and both sides are fitted.
    Repeating this nreps times gives the loss one should expect when the block holds no change.

    Args:
        table (SplitTable): Output of split_all.
        data (torch.Tensor): Tensor of shape [T, p].
        nreps (int): Number of permutations per split.
        rank (int): Factorization rank.
        oracle: Factorization oracle exposing fit(block, rank, nruns, generator).
        generator (torch.Generator, optional): Random stream for permutations and fits.
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
        logger.info("Permuting split at %d", split)
        mask = (times > left) & (times <= right)
        block, block_times = data[mask.to(data.device)], times[mask]
        gens = spawn(generator, 3 * nreps)
        tasks = [(oracle, block, block_times, left, split, right, rank, nruns,
                  gens[3 * i], gens[3 * i + 1], gens[3 * i + 2])
                 for i in range(nreps)]
        desc = f"Permuting split at {split}" if verbose else None
        results[split] = run_tasks(_permuted_once, tasks, n_jobs, desc)
    return results
