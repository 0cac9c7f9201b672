"""Unit tests for dataset samplers."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR / "src") not in sys.path:
    sys.path.insert(0, str(ROOT_DIR / "src"))

from modelkit.training.dataset import BatchSampler, RandomSampler, SequenceSampler, UNBOUNDED


class TestSequenceSampler:
    """Tests covering ``SequenceSampler``."""

    @pytest.mark.parametrize("size", [0, 1, 5, 17])
    def test_yields_each_index_in_order(self, size: int) -> None:
        """A bounded sampler yields 0..size-1 and then reports exhaustion."""

        sampler = SequenceSampler(size)

        seen = []
        while sampler.has_next():
            seen.append(next(sampler))

        assert seen == list(range(size))
        assert not sampler.has_next()
        with pytest.raises(StopIteration):
            next(sampler)
        assert sampler.size() == size

    def test_iteration_protocol(self) -> None:
        """The sampler is consumed by a for loop and not restartable."""

        sampler = SequenceSampler(4)

        assert list(sampler) == [0, 1, 2, 3]
        assert list(sampler) == []

    def test_default_size_is_unbounded(self) -> None:
        """Without a size the sampler keeps producing indices."""

        sampler = SequenceSampler()

        for expected in range(10_000):
            assert sampler.has_next()
            assert next(sampler) == expected
        assert sampler.size() == UNBOUNDED

    def test_negative_size_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="size must be non-negative"):
            SequenceSampler(-1)


class TestRandomSampler:
    """Tests covering ``RandomSampler``."""

    def test_visits_every_index_once(self) -> None:
        sampler = RandomSampler(50, seed=3)

        indices = list(sampler)

        assert sorted(indices) == list(range(50))
        with pytest.raises(StopIteration):
            next(sampler)

    def test_seed_makes_order_reproducible(self) -> None:
        assert list(RandomSampler(20, seed=7)) == list(RandomSampler(20, seed=7))

    def test_unbounded_size_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="bounded size"):
            RandomSampler(UNBOUNDED)


class TestBatchSampler:
    """Tests covering ``BatchSampler``."""

    def test_groups_indices(self) -> None:
        batches = list(BatchSampler(SequenceSampler(7), batch_size=3))

        assert batches == [[0, 1, 2], [3, 4, 5], [6]]

    def test_drop_last(self) -> None:
        batch_sampler = BatchSampler(SequenceSampler(7), batch_size=3, drop_last=True)

        assert batch_sampler.num_batches() == 2
        assert list(batch_sampler) == [[0, 1, 2], [3, 4, 5]]

    def test_batch_size_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="batch_size must be positive"):
            BatchSampler(SequenceSampler(3), batch_size=0)
