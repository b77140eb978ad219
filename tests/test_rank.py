"""
Tests for rank selection.
"""

from __future__ import annotations

import pytest
import torch

from fabisearch.errors import ConvergenceError, InvalidInputError
from fabisearch.rank import FixedRank, OptimalRank, optimal_rank, parse_rank

from tests.conftest import ScriptedRankOracle


@pytest.fixture
def data():
    return torch.arange(1, 41, dtype=torch.float64).reshape(10, 4)


class TestOptimalRank:
    def test_stops_at_first_rank_not_beating_baseline(self, data):
        oracle = ScriptedRankOracle(data, [100, 60, 50, 48], [100, 90, 80, 70])

        # 2: -40 < -10 keeps going, 3: -10 < -10 fails.
        assert optimal_rank(data, oracle, nruns=1, generator=torch.Generator().manual_seed(0)) == 3
        assert max(oracle.ranks_seen) == 3

    def test_returns_two_when_rank_two_does_not_help(self, data):
        oracle = ScriptedRankOracle(data, [100, 95], [100, 80])

        assert optimal_rank(data, oracle, nruns=1) == 2
        assert sorted(set(oracle.ranks_seen)) == [1, 2]

    def test_fits_data_and_baseline_at_each_rank(self, data):
        oracle = ScriptedRankOracle(data, [100, 60, 50, 48], [100, 90, 80, 70])

        optimal_rank(data, oracle, nruns=1)

        assert oracle.ranks_seen == [1, 1, 2, 2, 3, 3]

    def test_raises_when_cap_is_reached(self, data):
        oracle = ScriptedRankOracle(data, [100, 90, 80, 70], [100, 99, 98, 97])

        with pytest.raises(ConvergenceError):
            optimal_rank(data, oracle, nruns=1)

    def test_explicit_cap(self, data):
        oracle = ScriptedRankOracle(data, [100, 60, 50, 48], [100, 90, 80, 70])

        with pytest.raises(ConvergenceError):
            optimal_rank(data, oracle, nruns=1, max_rank=2)

    def test_single_column_still_compares_ranks_one_and_two(self):
        data = torch.arange(1, 21, dtype=torch.float64).reshape(20, 1)
        oracle = ScriptedRankOracle(data, [10, 10], [10, 5])

        assert optimal_rank(data, oracle, nruns=1, generator=torch.Generator().manual_seed(0)) == 2
        assert oracle.ranks_seen == [1, 1, 2, 2]

    def test_single_column_still_improving_hits_cap(self):
        data = torch.arange(1, 21, dtype=torch.float64).reshape(20, 1)
        oracle = ScriptedRankOracle(data, [10, 2], [10, 9])

        with pytest.raises(ConvergenceError):
            optimal_rank(data, oracle, nruns=1, generator=torch.Generator().manual_seed(0))


class TestRankSelection:
    def test_parse_optimal(self):
        assert isinstance(parse_rank("optimal"), OptimalRank)
        assert isinstance(parse_rank("OPTIMAL"), OptimalRank)

    def test_parse_integer(self):
        selection = parse_rank(4)

        assert isinstance(selection, FixedRank)
        assert selection.rank == 4
        assert parse_rank("6").rank == 6

    def test_parse_passes_selection_through(self):
        selection = FixedRank(3)

        assert parse_rank(selection) is selection

    @pytest.mark.parametrize("value", [0, -2, 2.5, "best", None, True])
    def test_parse_rejects_invalid(self, value):
        with pytest.raises(InvalidInputError):
            parse_rank(value)

    def test_fixed_rank_skips_the_oracle(self, data):
        oracle = ScriptedRankOracle(data, [], [])

        assert FixedRank(5).resolve(data, oracle, nruns=10) == 5
        assert oracle.ranks_seen == []
        assert FixedRank(5).label == "user input"

    def test_optimal_rank_strategy(self, data):
        oracle = ScriptedRankOracle(data, [100, 95], [100, 80])

        assert OptimalRank().resolve(data, oracle, nruns=1) == 2
        assert OptimalRank().label == "optimal"
