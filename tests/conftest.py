"""
Shared fixtures for the fabisearch tests.

The fake oracles here replace NMF with closed-form losses so that the search and
inference control flow can be checked exactly.
"""

from __future__ import annotations

import threading

import pytest
import torch

from fabisearch.nmf import NMFResult


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: runs real NMF fits on the reference-size series")


class PiecewiseMeanOracle:
    """
    Squared error of a block around its column means, plus a fixed cost per fit.

    Splitting a block never increases the squared error, so the per-fit penalty decides
    whether a split pays off: a genuine mean shift clears it, noise does not.
    """

    def __init__(self, penalty: float = 0.0):
        self.penalty = penalty
        self.calls = 0
        self._lock = threading.Lock()

    def fit(self, block, rank, nruns=1, generator=None):
        with self._lock:
            self.calls += 1
        loss = float(((block - block.mean(dim=0)) ** 2).sum()) + self.penalty
        return NMFResult(loss=loss, consensus=torch.eye(block.shape[1], dtype=block.dtype), n_iter=0)


class ScriptedRankOracle:
    """Returns scripted losses by rank: one script for the real data, one for anything else."""

    def __init__(self, data, data_losses, baseline_losses):
        self.data = data
        self.data_losses = data_losses
        self.baseline_losses = baseline_losses
        self.ranks_seen = []

    def fit(self, block, rank, nruns=1, generator=None):
        self.ranks_seen.append(rank)
        script = self.data_losses if torch.equal(block, self.data) else self.baseline_losses
        return NMFResult(loss=float(script[rank - 1]), consensus=torch.eye(block.shape[1]), n_iter=0)


def mean_shift_series(means, segment_lengths, p=3, noise=0.05, seed=0):
    """Non-negative series whose column means jump between consecutive segments."""
    generator = torch.Generator().manual_seed(seed)
    blocks = []
    for mean, length in zip(means, segment_lengths):
        blocks.append(mean + noise * torch.randn(length, p, generator=generator, dtype=torch.float64))
    Y = torch.cat(blocks)
    return Y - Y.min() + 0.1


@pytest.fixture
def single_shift():
    """120 time points, one change after t = 60."""
    return mean_shift_series([1.0, 5.0], [60, 60])


@pytest.fixture
def double_shift():
    """120 time points, changes after t = 40 and t = 80."""
    return mean_shift_series([1.0, 5.0, 2.0], [40, 40, 40])


@pytest.fixture
def penalized_oracle():
    return PiecewiseMeanOracle(penalty=1.0)
