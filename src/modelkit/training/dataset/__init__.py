"""
Datasets, samplers and batching.
"""

from .sampler import Sampler, SequenceSampler, RandomSampler, BatchSampler, UNBOUNDED
from .dataset import Dataset, ArrayDataset, Record, Batch

__all__ = [
    "Sampler",
    "SequenceSampler",
    "RandomSampler",
    "BatchSampler",
    "UNBOUNDED",
    "Dataset",
    "ArrayDataset",
    "Record",
    "Batch",
]
