"""
Configuration module for modelkit.
Provides hierarchical configuration with validation and defaults.
"""

from .base import (
    BaseConfig,
    LoadConfig,
    EngineConfig,
    OptimizerConfig,
    TrainingConfig,
    LoggingConfig,
    ModelKitConfig,
    create_optimizer,
    LossType,
    InitializerType,
    LogLevel
)

__all__ = [
    "BaseConfig",
    "LoadConfig",
    "EngineConfig",
    "OptimizerConfig",
    "TrainingConfig",
    "LoggingConfig",
    "ModelKitConfig",
    "create_optimizer",
    "LossType",
    "InitializerType",
    "LogLevel"
]
