"""
Datasets and batching.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Union

import numpy as np
import torch

from ...ndarray.manager import NDManager
from .sampler import BatchSampler, Sampler, SequenceSampler

logger = logging.getLogger(__name__)

ArrayLike = Union[torch.Tensor, np.ndarray, Sequence]


@dataclass
class Record:
    """A single example."""

    data: List[torch.Tensor]
    labels: List[torch.Tensor] = field(default_factory=list)


@dataclass
class Batch:
    """Stacked examples; ``indices`` are the dataset positions they came from."""

    data: List[torch.Tensor]
    labels: List[torch.Tensor]
    indices: List[int]

    @property
    def size(self) -> int:
        return len(self.indices)


class Dataset(ABC):
    """Random-access collection of records."""

    @abstractmethod
    def __len__(self) -> int:
        pass

    @abstractmethod
    def get(self, manager: NDManager, index: int) -> Record:
        """Record at ``index`` with tensors owned by ``manager``."""

    def get_data(self, manager: NDManager, sampler: Optional[Sampler] = None,
                 batch_size: int = 1, drop_last: bool = False) -> Iterator[Batch]:
        """
        Iterate over batches.

        Args:
            manager: Manager that owns the batch tensors
            sampler: Index order (defaults to a sequential pass)
            batch_size: Records per batch
            drop_last: Skip a trailing partial batch

        Yields:
            Batches with data and labels stacked along a new first axis; only the
            stacked tensors are owned by `manager`
        """
        if sampler is None:
            sampler = SequenceSampler(len(self))
        for indices in BatchSampler(sampler, batch_size, drop_last):
            with manager.new_sub_manager() as record_manager:
                records = [self.get(record_manager, i) for i in indices]
                batch = Batch(
                    data=_stack([r.data for r in records], manager),
                    labels=_stack([r.labels for r in records], manager),
                    indices=indices
                )
            yield batch


class ArrayDataset(Dataset):
    """Dataset over in-memory arrays, indexed along the first axis."""

    def __init__(self, data: Union[ArrayLike, List[ArrayLike]],
                 labels: Optional[Union[ArrayLike, List[ArrayLike]]] = None):
        """
        Initialize array dataset.

        Args:
            data: One array or a list of arrays with the same first dimension
            labels: Optional label array(s) with the same first dimension
        """
        self.data = _as_tensors(data)
        self.labels = _as_tensors(labels) if labels is not None else []

        lengths = {t.shape[0] for t in self.data + self.labels}
        if len(lengths) != 1:
            raise ValueError(f"All arrays must have the same first dimension, got {sorted(lengths)}")
        self._length = lengths.pop()

        logger.debug(f"Created ArrayDataset with {self._length} records")

    def __len__(self) -> int:
        return self._length

    def get(self, manager: NDManager, index: int) -> Record:
        if not 0 <= index < self._length:
            raise IndexError(f"Index {index} out of range for dataset of size {self._length}")
        return Record(
            data=[manager.create(t[index]) for t in self.data],
            labels=[manager.create(t[index]) for t in self.labels]
        )


def _as_tensors(arrays) -> List[torch.Tensor]:
    if isinstance(arrays, (torch.Tensor, np.ndarray)):
        arrays = [arrays]
    tensors = []
    for array in arrays:
        if isinstance(array, np.ndarray):
            tensors.append(torch.from_numpy(array))
        else:
            tensors.append(torch.as_tensor(array))
    return tensors


def _stack(columns: List[List[torch.Tensor]], manager: NDManager) -> List[torch.Tensor]:
    if not columns or not columns[0]:
        return []
    stacked = [torch.stack(parts) for parts in zip(*columns)]
    manager.attach(*stacked)
    return stacked
