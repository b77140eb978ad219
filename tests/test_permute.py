"""
Tests for row permutation, entry shuffling and random streams.
"""

from __future__ import annotations

import pytest
import torch

from fabisearch.permute import permute_rows, select_times, shuffle_entries
from fabisearch.rng import make_generator, resolve_generator, spawn


def _sorted_rows(block):
    return sorted(map(tuple, block.tolist()))


class TestPermuteRows:
    def test_rows_move_together_and_labels_stay(self):
        block = torch.arange(30, dtype=torch.float64).reshape(10, 3)
        times = torch.arange(11, 21)

        permuted, perm_times = permute_rows(block, times, make_generator(0))

        assert _sorted_rows(permuted) == _sorted_rows(block)
        assert torch.equal(perm_times, times)
        assert not torch.equal(permuted, block)

    def test_label_selection_picks_scrambled_rows(self):
        block = torch.arange(40, dtype=torch.float64).reshape(20, 2)
        times = torch.arange(1, 21)

        permuted, perm_times = permute_rows(block, times, make_generator(3))
        left = select_times(permuted, perm_times, 0, 10)

        assert left.shape == (10, 2)
        assert torch.equal(left, permuted[:10])

    def test_same_seed_same_permutation(self):
        block = torch.rand(15, 4)
        times = torch.arange(1, 16)

        a, _ = permute_rows(block, times, make_generator(9))
        b, _ = permute_rows(block, times, make_generator(9))

        assert torch.equal(a, b)

    def test_misaligned_labels_rejected(self):
        with pytest.raises(ValueError):
            permute_rows(torch.ones(4, 2), torch.arange(3))


class TestShuffleEntries:
    def test_keeps_shape_and_values(self):
        data = torch.arange(24, dtype=torch.float64).reshape(6, 4)

        shuffled = shuffle_entries(data, make_generator(1))

        assert shuffled.shape == data.shape
        assert torch.equal(shuffled.reshape(-1).sort().values, data.reshape(-1))

    def test_breaks_row_structure(self):
        data = torch.arange(24, dtype=torch.float64).reshape(6, 4)

        shuffled = shuffle_entries(data, make_generator(1))

        assert _sorted_rows(shuffled) != _sorted_rows(data)


class TestSelectTimes:
    def test_half_open_interval(self):
        block = torch.arange(10, dtype=torch.float64).reshape(10, 1)
        times = torch.arange(1, 11)

        selected = select_times(block, times, 3, 6)

        assert selected.reshape(-1).tolist() == [3.0, 4.0, 5.0]


class TestRandomStreams:
    def test_spawn_is_reproducible(self):
        a = [torch.rand(3, generator=g) for g in spawn(make_generator(4), 3)]
        b = [torch.rand(3, generator=g) for g in spawn(make_generator(4), 3)]

        for x, y in zip(a, b):
            assert torch.equal(x, y)

    def test_children_differ(self):
        first, second = spawn(make_generator(4), 2)

        assert not torch.equal(torch.rand(5, generator=first), torch.rand(5, generator=second))

    def test_spawn_nothing(self):
        assert spawn(make_generator(0), 0) == []

    def test_resolve_generator_follows_global_seed(self):
        torch.manual_seed(123)
        a = torch.rand(3, generator=resolve_generator())
        torch.manual_seed(123)
        b = torch.rand(3, generator=resolve_generator())

        assert torch.equal(a, b)

    def test_resolve_generator_keeps_given(self):
        generator = make_generator(1)

        assert resolve_generator(generator) is generator
