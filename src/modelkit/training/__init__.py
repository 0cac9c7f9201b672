"""
Training: trainer, losses, metrics and datasets.
"""

from .trainer import Trainer
from .loss import get_loss, initialize_parameters, LOSSES
from .metrics import TrainingMetrics
from .dataset import (
    Sampler, SequenceSampler, RandomSampler, BatchSampler, UNBOUNDED,
    Dataset, ArrayDataset, Record, Batch
)

__all__ = [
    "Trainer",
    "get_loss",
    "initialize_parameters",
    "LOSSES",
    "TrainingMetrics",
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
