from .errors import FaBiSearchError, InvalidInputError, ConvergenceError, ComputationError
from .nmf import Algorithm, BatchNMF, NMFResult
from .rng import make_generator, spawn
from .permute import permute_rows, shuffle_entries
from .rank import optimal_rank, parse_rank, OptimalRank, FixedRank, RankSelection
from .split_search import split_all, SplitCandidate, SplitTable
from .refit import refit_splits
from .permutation import perm_distr
from .significance import sign_splits, SignificanceRecord, StatTest
from .config import DetectionConfig
from .detect import detect_cps, DetectionResult
from .datasets import make_sim2

__all__ = [
    'Algorithm',
    'BatchNMF',
    'NMFResult',
    'make_generator',
    'spawn',
    'permute_rows',
    'shuffle_entries',
    'optimal_rank',
    'parse_rank',
    'OptimalRank',
    'FixedRank',
    'RankSelection',
    'split_all',
    'SplitCandidate',
    'SplitTable',
    'refit_splits',
    'perm_distr',
    'sign_splits',
    'SignificanceRecord',
    'StatTest',
    'DetectionConfig',
    'detect_cps',
    'DetectionResult',
    'make_sim2',
    'FaBiSearchError',
    'InvalidInputError',
    'ConvergenceError',
    'ComputationError',
]
