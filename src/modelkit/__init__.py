"""
modelkit: a model lifecycle layer over PyTorch.

Provides the ``Model`` abstraction (graph, parameters, properties and
artifacts), ``Predictor`` and ``Trainer`` creation, engine selection and
dataset samplers.
"""

from .exceptions import (
    ModelKitError, EngineError, MalformedModelError,
    UnsupportedConversionError, UseAfterCloseError
)
from .device import Device
from .config import LoadConfig, EngineConfig, TrainingConfig, OptimizerConfig, ModelKitConfig
from .ndarray import DataType, Shape, NDManager
from .util import PairList
from .model import Model, ModelState
from .engine import Engine

__all__ = [
    "ModelKitError",
    "EngineError",
    "MalformedModelError",
    "UnsupportedConversionError",
    "UseAfterCloseError",
    "Device",
    "LoadConfig",
    "EngineConfig",
    "TrainingConfig",
    "OptimizerConfig",
    "ModelKitConfig",
    "DataType",
    "Shape",
    "NDManager",
    "PairList",
    "Model",
    "ModelState",
    "Engine",
]

__version__ = "0.1.0"
