import logging
import time
from dataclasses import dataclass, field
from typing import List

import numpy as np
import torch

from .config import DetectionConfig
from .errors import InvalidInputError
from .nmf import BatchNMF
from .permutation import perm_distr
from .refit import refit_splits
from .rng import make_generator, spawn
from .significance import SignificanceRecord, sign_splits
from .split_search import SplitTable, split_all

logger = logging.getLogger(__name__)


@dataclass
class DetectionResult:
    """
    Attributes:
        rank: Rank used for every factorization.
        change_points: One record per candidate change point that lowered the loss, in time order.
        split_table: Every candidate the search explored.
        compute_time: Wall-clock time of the run in seconds.
        rank_selection: "optimal" or "user input".
    """

    rank: int
    change_points: List[SignificanceRecord] = field(default_factory=list)
    split_table: SplitTable = field(default_factory=SplitTable)
    compute_time: float = 0.0
    rank_selection: str = "optimal"

    @property
    def accepted(self):
        """Times of significant change points; every tested time when only p-values were computed."""
        return [r.time for r in self.change_points if r.significant is None or r.significant]


def validate_series(Y, mindist: int):
    """
    Convert Y to a float64 tensor of shape [T, p] and check it can be segmented.

    Raises:
        InvalidInputError: If Y is not a numeric non-negative finite matrix with at least
                           2 * mindist rows.
    """
    if torch.is_tensor(Y):
        if Y.is_complex() or Y.dtype == torch.bool:
            raise InvalidInputError("Series entries must be real numbers")
        data = Y.detach().to(torch.float64)
    else:
        try:
            data = torch.from_numpy(np.asarray(Y, dtype=np.float64).copy())
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"Series is not a numeric matrix: {exc}") from exc
    if data.dim() != 2 or data.shape[0] == 0 or data.shape[1] == 0:
        raise InvalidInputError(f"Series must be a non-empty 2-D matrix, got shape {tuple(data.shape)}")
    if not torch.isfinite(data).all():
        raise InvalidInputError("Series contains missing or non-finite entries")
    if (data < 0).any():
        raise InvalidInputError("Series contains negative entries; NMF requires non-negative data")
    if data.shape[0] < 2 * mindist:
        raise InvalidInputError(
            f"Series has {data.shape[0]} time points, fewer than 2 * mindist = {2 * mindist}"
        )
    return data


def detect_cps(Y, mindist=35, nruns=50, nreps=100, alpha=0.05, rank="optimal", algtype="brunet",
               test_type="t-test", fdr=False, seed=123, n_jobs=1, verbose=False, oracle=None):
    """
    Detect change points in the clustering structure of a multivariate time series.

    The pipeline selects a rank (unless one is given), runs the factorized binary search,
    refits the loss at the final segment boundaries, builds a permutation null for every
    candidate and tests whether the refitted losses are significantly lower than the null.

    Args:
        Y (array-like): Matrix of shape [T, p] with time points in rows and variables in columns.
        mindist (int): Minimum distance between change points.
        nruns (int): Number of NMF restarts during rank selection and the search.
        nreps (int): Number of refits and permutations per candidate change point.
        alpha (float or str or None): Significance level, or "p-value"/None to return p-values.
        rank (int or str): "optimal" to select the rank from the data, or a fixed positive integer.
        algtype (str): NMF algorithm: "brunet", "lee" or "nsNMF". Ignored when oracle is given.
        test_type (str): "t-test", "wilcoxon" or "ks".
        fdr (bool): If True, adjust p-values for multiple comparisons (Benjamini-Hochberg).
        seed (int): Seed of the run's random stream.
        n_jobs (int): Worker threads for the factorization fits; -1 for one per task.
        verbose (bool): If True, shows progress bars for the refit and permutation steps.
        oracle (optional): Factorization oracle exposing fit(block, rank, nruns, generator).
                           Defaults to BatchNMF(algtype).

    Returns:
        DetectionResult: Rank, tested change points, search table and compute time.
    """
    config = DetectionConfig.build(mindist=mindist, nruns=nruns, nreps=nreps, alpha=alpha, rank=rank,
                                   algtype=algtype, test_type=test_type, fdr=fdr, seed=seed,
                                   n_jobs=n_jobs, verbose=verbose)
    data = validate_series(Y, config.mindist)
    if oracle is None:
        oracle = BatchNMF(algorithm=config.algtype)

    started = time.monotonic()
    rank_gen, search_gen, refit_gen, perm_gen = spawn(make_generator(config.seed), 4)

    selection = config.rank_selection
    n_rank = selection.resolve(data, oracle, config.nruns, rank_gen)

    table = split_all(data, config.mindist, n_rank, config.nruns, oracle, generator=search_gen,
                      n_jobs=config.n_jobs)
    logger.info("Search explored %d intervals, %d candidate change points lowered the loss",
                len(table), len(table.retained_times()))

    refit = refit_splits(table, data, config.nreps, n_rank, oracle, generator=refit_gen,
                         n_jobs=config.n_jobs, verbose=config.verbose)
    null = perm_distr(table, data, config.nreps, n_rank, oracle, generator=perm_gen,
                      n_jobs=config.n_jobs, verbose=config.verbose)
    records = sign_splits(refit, null, config.alpha, config.test_type, config.fdr)

    elapsed = time.monotonic() - started
    logger.info("Change point detection finished in %.2f min", elapsed / 60.0)
    return DetectionResult(rank=n_rank, change_points=records, split_table=table,
                           compute_time=elapsed, rank_selection=selection.label)


# Run with: python -m fabisearch.detect
if __name__ == '__main__':
    from .datasets import make_sim2

    logging.basicConfig(level=logging.INFO)

    # A single change in clustering structure after t = 100.
    Y = make_sim2(make_generator(1))
    result = detect_cps(Y, mindist=35, nruns=5, nreps=10, rank=2, verbose=True)
    print("Rank:", result.rank)
    for record in result.change_points:
        print(f"T = {record.time}: p-value = {record.p_value:.4f}, significant = {record.significant}")
    print(f"Compute time: {result.compute_time / 60.0:.2f} min")
