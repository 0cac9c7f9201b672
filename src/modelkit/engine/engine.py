"""
Engine registry.

An engine wraps a tensor backend: it resolves devices and creates concrete
``Model`` and ``NDManager`` instances. Engines register themselves by name;
``Engine.get_instance()`` returns the process-wide default engine.
"""

import importlib
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type

from ..config.base import EngineConfig
from ..device import Device
from ..exceptions import EngineError

logger = logging.getLogger(__name__)

DEFAULT_ENGINE_ENV = "MODELKIT_DEFAULT_ENGINE"
DEFAULT_ENGINE_NAME = "PyTorch"

# Modules that register an engine on import
_BUILTIN_ENGINES = ["modelkit.engine.torch_engine"]


class Engine(ABC):
    """Backend that creates models and managers."""

    _registry: Dict[str, Type['Engine']] = {}
    _instances: Dict[str, 'Engine'] = {}
    _config: EngineConfig = EngineConfig()
    _lock = threading.RLock()

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    # Registry

    @classmethod
    def register(cls, engine_cls: Type['Engine']) -> Type['Engine']:
        """Register an engine class under its ``ENGINE_NAME``. Usable as a decorator."""
        name = getattr(engine_cls, 'ENGINE_NAME', None)
        if not name:
            raise EngineError(f"{engine_cls.__name__} does not define ENGINE_NAME")
        with cls._lock:
            cls._registry[name] = engine_cls
        logger.debug(f"Registered engine {name}")
        return engine_cls

    @classmethod
    def configure(cls, config: EngineConfig) -> None:
        """
        Set the configuration used for engines created from now on.

        Engines that already exist keep their configuration.
        """
        config.validate()
        with cls._lock:
            cls._config = config

    @classmethod
    def get_default_engine_name(cls) -> str:
        return (cls._config.default_engine
                or os.environ.get(DEFAULT_ENGINE_ENV)
                or DEFAULT_ENGINE_NAME)

    @classmethod
    def get_all_engines(cls) -> List[str]:
        cls._load_builtin_engines()
        return sorted(cls._registry)

    @classmethod
    def has_engine(cls, name: str) -> bool:
        cls._load_builtin_engines()
        return name in cls._registry

    @classmethod
    def get_instance(cls) -> 'Engine':
        """The default engine."""
        return cls.get_engine(cls.get_default_engine_name())

    @classmethod
    def get_engine(cls, name: str) -> 'Engine':
        """
        Engine registered under ``name``, created on first use.

        Raises:
            EngineError: When no engine with this name is registered
        """
        cls._load_builtin_engines()
        with cls._lock:
            engine = cls._instances.get(name)
            if engine is not None:
                return engine

            engine_cls = cls._registry.get(name)
            if engine_cls is None:
                raise EngineError(
                    f"No engine named {name}, available engines: {sorted(cls._registry)}"
                )
            engine = engine_cls(cls._config)
            cls._instances[name] = engine

        logger.info(f"Initialized engine {name} {engine.get_version()}")
        return engine

    @classmethod
    def _load_builtin_engines(cls):
        for module in _BUILTIN_ENGINES:
            importlib.import_module(module)

    # Engine API

    @abstractmethod
    def get_engine_name(self) -> str:
        pass

    @abstractmethod
    def get_version(self) -> str:
        pass

    @abstractmethod
    def get_gpu_count(self) -> int:
        pass

    def has_gpu(self) -> bool:
        return self.get_gpu_count() > 0

    def default_device(self) -> Device:
        if self.config.default_device:
            return Device.from_string(self.config.default_device)
        return Device.default_device()

    @abstractmethod
    def new_model(self, device: Optional[Device] = None, name: Optional[str] = None):
        """Create an empty model on ``device`` (defaults to ``default_device()``)."""

    @abstractmethod
    def new_base_manager(self, device: Optional[Device] = None):
        """Create a root ``NDManager``."""

    def __repr__(self) -> str:
        return f"{self.get_engine_name()}:{self.get_version()}"
