import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np
from scipy import stats
from statsmodels.stats.multitest import multipletests

from .errors import InvalidInputError

logger = logging.getLogger(__name__)

P_VALUE_SYMBOLS = ("p-value", "pvalue", "pval")


class StatTest(str, Enum):
    """One-sided two-sample tests of refitted losses against the permutation null."""

    T_TEST = "t-test"
    WILCOXON = "wilcoxon"
    KS = "ks"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        aliases = {
            "t-test": cls.T_TEST, "t": cls.T_TEST, "welch": cls.T_TEST, "pval.t-test": cls.T_TEST,
            "wilcoxon": cls.WILCOXON, "wilcox": cls.WILCOXON, "rank-sum": cls.WILCOXON,
            "mann-whitney": cls.WILCOXON,
            "ks": cls.KS, "kolmogorov-smirnov": cls.KS,
        }
        try:
            return aliases[str(value).lower()]
        except KeyError:
            raise InvalidInputError(
                f"Unsupported test type {value!r}; expected one of {[m.value for m in cls]}"
            ) from None


# Each test's alternative: refitted losses are stochastically smaller than the null losses.
def _welch_t(refit, null):
    return stats.ttest_ind(refit, null, equal_var=False, alternative="less").pvalue


def _rank_sum(refit, null):
    return stats.mannwhitneyu(refit, null, alternative="less").pvalue


def _kolmogorov_smirnov(refit, null):
    # "greater": the empirical CDF of the refitted losses lies above that of the null.
    return stats.ks_2samp(refit, null, alternative="greater").pvalue


_TESTS = {
    StatTest.T_TEST: _welch_t,
    StatTest.WILCOXON: _rank_sum,
    StatTest.KS: _kolmogorov_smirnov,
}


def parse_alpha(alpha):
    """
    Validate a significance level.

    Returns:
        Optional[float]: alpha as a float in (0, 1), or None when p-values are requested.
    """
    if alpha is None:
        return None
    if isinstance(alpha, str):
        if alpha.lower() in P_VALUE_SYMBOLS:
            return None
        try:
            alpha = float(alpha)
        except ValueError:
            raise InvalidInputError(f"alpha must be a number in (0, 1) or 'p-value', got {alpha!r}") from None
    if isinstance(alpha, bool) or not isinstance(alpha, (int, float)) or not 0.0 < alpha < 1.0:
        raise InvalidInputError(f"alpha must be a number in (0, 1) or 'p-value', got {alpha!r}")
    return float(alpha)


@dataclass(frozen=True)
class SignificanceRecord:
    """
    Test outcome for one candidate change point.

    Attributes:
        time: Time of the split.
        p_value: One-sided p-value, FDR-adjusted when correction was requested.
        significant: p_value < alpha, or None when no alpha was given.
    """

    time: int
    p_value: float
    significant: Optional[bool] = None

    @property
    def stat_test(self):
        """The decision when a level was given, otherwise the p-value."""
        return self.p_value if self.significant is None else self.significant


def sign_splits(refit: dict, null: dict, alpha=0.05, test_type="t-test", fdr: bool = False):
    """
    Decide which splits have refitted losses significantly below their permutation null.

    Args:
        refit (Dict[int, List[float]]): Refitted losses per split time (see refit_splits).
        null (Dict[int, List[float]]): Permutation losses per split time (see perm_distr).
        alpha (float or str or None): Significance level, or "p-value"/None to report p-values only.
        test_type (str or StatTest): "t-test" (Welch), "wilcoxon" (rank-sum) or "ks".
        fdr (bool): If True, adjust the p-values with the Benjamini-Hochberg procedure.

    Returns:
        List[SignificanceRecord]: One record per split, ordered by time.
    """
    alpha = parse_alpha(alpha)
    test = _TESTS[StatTest.parse(test_type)]
    if set(refit) != set(null):
        raise InvalidInputError("Refitted and permutation distributions cover different split times")

    split_times = sorted(refit)
    p_values = np.array([test(np.asarray(refit[t], dtype=float), np.asarray(null[t], dtype=float))
                         for t in split_times], dtype=float)

    if fdr and len(p_values):
        finite = np.isfinite(p_values)
        if finite.any():
            p_values[finite] = multipletests(p_values[finite], method="fdr_bh")[1]

    records = []
    for t, p in zip(split_times, p_values):
        p = float(p)
        significant = None if alpha is None else bool(not math.isnan(p) and p < alpha)
        logger.debug("Split at %d: p-value %.6g", t, p)
        records.append(SignificanceRecord(time=t, p_value=p, significant=significant))
    return records
