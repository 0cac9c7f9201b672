"""
Base configuration classes for modelkit.
Provides hierarchical configuration with validation and defaults.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from typing import Literal, Optional, List, Union, Any, Dict
import yaml
from pathlib import Path


# Type definitions for better type checking
LossType = Literal["l2", "l1", "softmax_cross_entropy", "sigmoid_bce"]
InitializerType = Literal["xavier", "normal", "uniform", "zeros", "none"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@dataclass
class BaseConfig:
    """Base configuration class with common functionality."""

    def validate(self) -> None:
        """Validate configuration parameters."""
        pass

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        result = {}
        for k, v in self.__dict__.items():
            if k.startswith('_'):
                continue
            if isinstance(v, BaseConfig):
                v = v.to_dict()
            result[k] = v
        return result

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'BaseConfig':
        """Create configuration from dictionary, building nested configs from sub-dicts."""
        cfg = dict(config_dict or {})
        for f in fields(cls):
            value = cfg.get(f.name)
            if isinstance(value, dict) and _is_config_type(f.type):
                cfg[f.name] = _resolve_config_type(f.type).from_dict(value)
        return cls(**cfg)

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> 'BaseConfig':
        """Load configuration from YAML file."""
        with open(yaml_path, 'r') as f:
            config_dict = yaml.safe_load(f)
        return cls.from_dict(config_dict)

    def to_yaml(self, yaml_path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        with open(yaml_path, 'w') as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, indent=2)


def _resolve_config_type(annotation: Any):
    if isinstance(annotation, str):
        return _CONFIG_TYPES.get(annotation)
    return annotation


def _is_config_type(annotation: Any) -> bool:
    resolved = _resolve_config_type(annotation)
    return isinstance(resolved, type) and is_dataclass(resolved) and issubclass(resolved, BaseConfig)


@dataclass
class LoadConfig(BaseConfig):
    """
    Options for ``Model.load``.

    ``name`` defaults to the name derived from the model path; ``options``
    holds engine specific string settings (see the engine documentation).
    """

    name: Optional[str] = None
    options: Dict[str, str] = field(default_factory=dict)

    def get_option(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.options.get(key)
        return default if value is None else str(value)


@dataclass
class EngineConfig(BaseConfig):
    """Engine selection and placement."""

    # Registered engine name; None defers to MODELKIT_DEFAULT_ENGINE
    default_engine: Optional[str] = None
    # "cpu", "gpu", "gpu:N"; None defers to MODELKIT_DEFAULT_DEVICE
    default_device: Optional[str] = None
    num_threads: Optional[int] = None

    def validate(self) -> None:
        """Validate engine configuration."""
        super().validate()

        if self.num_threads is not None and self.num_threads <= 0:
            raise ValueError("num_threads must be positive")
        if self.default_device is not None:
            from ..device import Device
            Device.from_string(self.default_device)


@dataclass
class OptimizerConfig(BaseConfig):
    """Optimizer configuration with support for custom torch optimizers."""

    # Optimizer type - any torch.optim class name
    optimizer_type: str = "AdamW"

    lr: float = 1e-3
    weight_decay: float = 0.0
    betas: List[float] = field(default_factory=lambda: [0.9, 0.999])
    eps: float = 1e-8
    momentum: float = 0.0
    dampening: float = 0.0
    nesterov: bool = False

    # Extra keyword arguments forwarded to the optimizer
    custom_params: Dict = field(default_factory=dict)

    def validate(self) -> None:
        """Validate optimizer configuration."""
        super().validate()

        if self.lr <= 0:
            raise ValueError("lr must be positive")
        if self.weight_decay < 0:
            raise ValueError("weight_decay must be non-negative")
        if len(self.betas) != 2:
            raise ValueError("betas must have exactly 2 elements")
        if not all(0 <= b <= 1 for b in self.betas):
            raise ValueError("betas must be between 0 and 1")
        if self.eps <= 0:
            raise ValueError("eps must be positive")
        if not 0 <= self.momentum <= 1:
            raise ValueError("momentum must be between 0 and 1")
        if not 0 <= self.dampening <= 1:
            raise ValueError("dampening must be between 0 and 1")

    def get_optimizer_kwargs(self) -> Dict:
        """Get optimizer-specific keyword arguments."""
        if self.optimizer_type.lower() in ["adam", "adamw"]:
            return {
                "lr": self.lr,
                "weight_decay": self.weight_decay,
                "betas": tuple(self.betas),
                "eps": self.eps,
                **self.custom_params
            }
        elif self.optimizer_type.lower() == "sgd":
            return {
                "lr": self.lr,
                "weight_decay": self.weight_decay,
                "momentum": self.momentum,
                "dampening": self.dampening,
                "nesterov": self.nesterov,
                **self.custom_params
            }
        else:
            return {
                "lr": self.lr,
                "weight_decay": self.weight_decay,
                **self.custom_params
            }


def create_optimizer(model_parameters, optimizer_config: OptimizerConfig):
    """
    Create an optimizer from configuration.

    Args:
        model_parameters: Model parameters to optimize
        optimizer_config: Optimizer configuration

    Returns:
        Configured optimizer
    """
    import torch

    optimizer_kwargs = optimizer_config.get_optimizer_kwargs()

    if optimizer_config.optimizer_type.lower() == "adamw":
        return torch.optim.AdamW(model_parameters, **optimizer_kwargs)
    elif optimizer_config.optimizer_type.lower() == "adam":
        return torch.optim.Adam(model_parameters, **optimizer_kwargs)
    elif optimizer_config.optimizer_type.lower() == "sgd":
        return torch.optim.SGD(model_parameters, **optimizer_kwargs)

    optimizer_class = getattr(torch.optim, optimizer_config.optimizer_type, None)
    if optimizer_class is None:
        raise ValueError(f"Unknown optimizer type: {optimizer_config.optimizer_type}")
    return optimizer_class(model_parameters, **optimizer_kwargs)


@dataclass
class TrainingConfig(BaseConfig):
    """Training configuration consumed by ``Model.new_trainer``."""

    optimizer: OptimizerConfig = field(default_factory=OptimizerConfig)
    loss: LossType = "l2"
    initializer: InitializerType = "xavier"

    # Device strings; the first entry is used for training
    devices: List[str] = field(default_factory=lambda: ["cpu"])

    epochs: int = 1
    batch_size: int = 32
    drop_last: bool = False
    shuffle: bool = False
    log_every_n_steps: int = 50
    seed: Optional[int] = None

    def validate(self) -> None:
        """Validate training configuration."""
        super().validate()

        self.optimizer.validate()

        if self.loss not in ["l2", "l1", "softmax_cross_entropy", "sigmoid_bce"]:
            raise ValueError(f"Unknown loss: {self.loss}")
        if self.initializer not in ["xavier", "normal", "uniform", "zeros", "none"]:
            raise ValueError(f"Unknown initializer: {self.initializer}")
        if not self.devices:
            raise ValueError("devices must not be empty")
        if self.epochs <= 0:
            raise ValueError("epochs must be positive")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.log_every_n_steps <= 0:
            raise ValueError("log_every_n_steps must be positive")

    @property
    def device(self):
        """Primary training device."""
        from ..device import Device
        return Device.from_string(self.devices[0])


@dataclass
class LoggingConfig(BaseConfig):
    """Logging configuration."""

    level: LogLevel = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: Optional[str] = None

    def validate(self) -> None:
        """Validate logging configuration."""
        super().validate()

        if self.level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError(f"Unknown log level: {self.level}")


@dataclass
class ModelKitConfig(BaseConfig):
    """Main configuration class combining all sub-configurations."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    training: TrainingConfig = field(default_factory=TrainingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        """Validate entire configuration."""
        super().validate()
        self.engine.validate()
        self.training.validate()
        self.logging.validate()


_CONFIG_TYPES = {
    'LoadConfig': LoadConfig,
    'EngineConfig': EngineConfig,
    'OptimizerConfig': OptimizerConfig,
    'TrainingConfig': TrainingConfig,
    'LoggingConfig': LoggingConfig,
    'ModelKitConfig': ModelKitConfig,
}
