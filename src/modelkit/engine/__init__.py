"""
Engines: backends that create models and tensor managers.
"""

from .engine import Engine, DEFAULT_ENGINE_ENV, DEFAULT_ENGINE_NAME
from .torch_model import TorchModel
from .torch_engine import TorchEngine

__all__ = [
    "Engine",
    "TorchEngine",
    "TorchModel",
    "DEFAULT_ENGINE_ENV",
    "DEFAULT_ENGINE_NAME",
]
