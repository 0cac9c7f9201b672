"""
Samplers enumerate dataset indices.

A sampler is a one-shot cursor over ``[0, size)``: it is consumed by
iteration and a new instance is needed for another pass. Samplers are not
safe to advance from several threads.
"""

from abc import ABC, abstractmethod
from typing import Iterator, List, Optional

import torch

# Size of a sampler over a source with unknown length
UNBOUNDED = 2 ** 63 - 1


class Sampler(ABC):
    """Iterator over dataset indices."""

    def __iter__(self) -> Iterator[int]:
        return self

    @abstractmethod
    def has_next(self) -> bool:
        pass

    @abstractmethod
    def __next__(self) -> int:
        """Next index; raises ``StopIteration`` once exhausted."""

    @abstractmethod
    def size(self) -> int:
        """Upper bound of the index domain."""


class SequenceSampler(Sampler):
    """Samples the indices in [0, size) sequentially."""

    def __init__(self, size: int = UNBOUNDED):
        if size < 0:
            raise ValueError("size must be non-negative")
        self._size = size
        self._current = 0

    def has_next(self) -> bool:
        return self._current < self._size

    def __next__(self) -> int:
        if not self.has_next():
            raise StopIteration
        index = self._current
        self._current += 1
        return index

    def size(self) -> int:
        return self._size

    @property
    def current(self) -> int:
        return self._current

    def __repr__(self) -> str:
        return f"SequenceSampler(size={self._size}, current={self._current})"


class RandomSampler(Sampler):
    """Samples every index in [0, size) once, in random order."""

    def __init__(self, size: int, seed: Optional[int] = None):
        if size < 0:
            raise ValueError("size must be non-negative")
        if size >= UNBOUNDED:
            raise ValueError("RandomSampler requires a bounded size")

        generator = torch.Generator()
        if seed is not None:
            generator.manual_seed(seed)
        else:
            generator.seed()

        self._size = size
        self._order = torch.randperm(size, generator=generator).tolist()
        self._current = 0

    def has_next(self) -> bool:
        return self._current < self._size

    def __next__(self) -> int:
        if not self.has_next():
            raise StopIteration
        index = self._order[self._current]
        self._current += 1
        return index

    def size(self) -> int:
        return self._size


class BatchSampler:
    """Groups the indices of another sampler into lists of ``batch_size``."""

    def __init__(self, sampler: Sampler, batch_size: int, drop_last: bool = False):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.sampler = sampler
        self.batch_size = batch_size
        self.drop_last = drop_last

    def __iter__(self) -> Iterator[List[int]]:
        return self

    def __next__(self) -> List[int]:
        batch = []
        while len(batch) < self.batch_size and self.sampler.has_next():
            batch.append(next(self.sampler))

        if not batch or (self.drop_last and len(batch) < self.batch_size):
            raise StopIteration
        return batch

    def num_batches(self) -> int:
        """Number of batches a fresh pass yields."""
        size = self.sampler.size()
        if self.drop_last:
            return size // self.batch_size
        return (size + self.batch_size - 1) // self.batch_size
