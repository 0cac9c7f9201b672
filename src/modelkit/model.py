"""
Model abstraction.

A model is the collection of artifacts produced by training:

- Graph: the ``Block`` (a ``torch.nn.Module``)
- Parameters: the block's weights
- Input/Output information: names and shapes of graph inputs and outputs
- Other artifacts: e.g. a label file for classification

In the common inference case the model is loaded from disk, a ``Predictor``
is created from it and ``Predictor.predict`` returns results::

    with Model.new_instance() as model:
        model.load(model_dir, LoadConfig(name="resnet"))
        with model.new_predictor(MyTranslator()) as predictor:
            result = predictor.predict(image)

Engines provide the concrete class (see ``modelkit.engine``); this module
holds the lifecycle, property and artifact logic they share.
"""

import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Type, Union

import torch.nn as nn

from .config.base import LoadConfig
from .device import Device
from .exceptions import UseAfterCloseError
from .ndarray.manager import NDManager
from .ndarray.types import DataType
from .nn.block import Block
from .util.pair_list import PairList

logger = logging.getLogger(__name__)

_MISSING = object()


class ModelState(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    CLOSED = "closed"


class Model(ABC):
    """Trained or untrained network with its metadata and side artifacts."""

    def __init__(self, device: Optional[Device] = None, name: Optional[str] = None):
        """
        Initialize model.

        Args:
            device: Device the model lives on
            name: Model name; set again by ``load`` and ``save``
        """
        self._device = device or Device.default_device()
        self._name = name
        self._block = None
        self._data_type = DataType.FLOAT32
        self._properties = {}
        self._nd_manager = NDManager(self._device, name=f"model-{name or 'unnamed'}")
        self._model_dir = None
        self._state = ModelState.UNINITIALIZED
        self._loaded = False

        # Descriptors recorded with the persisted model, used when the block cannot describe itself
        self._input_descriptor = None
        self._output_descriptor = None

        self._artifacts = {}
        self._artifact_locks = {}
        self._artifact_locks_guard = threading.Lock()

    @staticmethod
    def new_instance(device: Optional[Device] = None, name: Optional[str] = None) -> 'Model':
        """
        Create an empty model with the default engine.

        Args:
            device: Device to place the model on (defaults to the engine's default device)
            name: Optional model name

        Returns:
            A new model instance
        """
        from .engine.engine import Engine
        return Engine.get_instance().new_model(device, name)

    # Persistence

    @abstractmethod
    def load(self, model_path: Union[str, Path], config: Optional[LoadConfig] = None) -> None:
        """
        Load the model from ``model_path``.

        Args:
            model_path: Directory or file path of the model location
            config: Model name and engine specific options; the name defaults
                to one derived from ``model_path``

        Raises:
            OSError: When the model files cannot be read
            MalformedModelError: When the model files are corrupted
        """

    @abstractmethod
    def save(self, model_path: Union[str, Path], name: str) -> None:
        """
        Save the model to ``model_path`` using ``name`` as the base file name.

        Raises:
            OSError: When the model files cannot be written
        """

    @abstractmethod
    def cast(self, data_type: DataType) -> None:
        """
        Convert all parameters in place to ``data_type``.

        Raises:
            UnsupportedConversionError: When no conversion to ``data_type`` exists
        """

    @abstractmethod
    def is_model_file(self, relative_path: str) -> bool:
        """True for graph, parameter or metadata files, which are not artifacts."""

    # Lifecycle

    @property
    def state(self) -> ModelState:
        return self._state

    def is_closed(self) -> bool:
        return self._state is ModelState.CLOSED

    def _check_open(self):
        if self._state is ModelState.CLOSED:
            raise UseAfterCloseError(f"Model {self._name} has been closed")

    def close(self) -> None:
        """Release the model's manager and parameters. Safe to call more than once."""
        if self._state is ModelState.CLOSED:
            return
        self._state = ModelState.CLOSED

        self._nd_manager.close()
        self._block = None
        self._artifacts.clear()

        logger.info(f"Closed model {self._name}")

    def __enter__(self) -> 'Model':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # Accessors

    @property
    def device(self) -> Device:
        self._check_open()
        return self._device

    @property
    def name(self) -> Optional[str]:
        self._check_open()
        return self._name

    def get_name(self) -> Optional[str]:
        return self.name

    @property
    def block(self) -> Optional[nn.Module]:
        self._check_open()
        return self._block

    @block.setter
    def block(self, block: nn.Module) -> None:
        self.set_block(block)

    def get_block(self) -> Optional[nn.Module]:
        return self.block

    def set_block(self, block: nn.Module) -> None:
        """Set the block used for training and inference. The model is READY afterwards."""
        self._check_open()
        if block is None:
            raise ValueError("block must not be None")
        if not isinstance(block, nn.Module):
            raise TypeError(f"block must be a torch.nn.Module, got {type(block).__name__}")
        self._block = block.to(self._device.to_torch())
        self._state = ModelState.READY

    def get_property(self, key: str) -> Optional[str]:
        """Property value, or None if unset."""
        self._check_open()
        return self._properties.get(key)

    def set_property(self, key: str, value: Any) -> None:
        """
        Set a property.

        Properties are saved and loaded with the model; values are stored as strings.
        """
        self._check_open()
        self._properties[key] = str(value)

    def get_properties(self) -> Dict[str, str]:
        self._check_open()
        return dict(self._properties)

    @property
    def nd_manager(self) -> NDManager:
        self._check_open()
        return self._nd_manager

    def get_nd_manager(self) -> NDManager:
        return self.nd_manager

    @property
    def data_type(self) -> DataType:
        self._check_open()
        return self._data_type

    def get_data_type(self) -> DataType:
        return self.data_type

    def set_data_type(self, data_type: DataType) -> None:
        """Set the precision tag without converting parameters."""
        self._check_open()
        self._data_type = data_type

    @property
    def model_dir(self) -> Optional[Path]:
        self._check_open()
        return self._model_dir

    # Trainer / Predictor

    def new_trainer(self, training_config):
        """
        Create a ``Trainer`` bound to this model.

        Args:
            training_config: ``TrainingConfig`` with optimizer, loss, initializer and devices
        """
        self._check_open()
        from .training.trainer import Trainer
        return Trainer(self, training_config)

    def new_predictor(self, translator):
        """
        Create a ``Predictor`` that uses ``translator`` for pre- and post-processing.
        """
        self._check_open()
        from .inference.predictor import Predictor
        return Predictor(self, translator)

    # Descriptors

    def describe_input(self) -> PairList:
        """Ordered ``(name, Shape)`` pairs of the graph inputs."""
        self._check_open()
        if isinstance(self._block, Block) and not self._block.describe_input().is_empty():
            return self._block.describe_input()
        if self._input_descriptor is not None:
            return PairList(self._input_descriptor.to_list())
        return PairList()

    def describe_output(self) -> PairList:
        """Ordered ``(name, Shape)`` pairs of the graph outputs."""
        self._check_open()
        if isinstance(self._block, Block) and not self._block.describe_input().is_empty():
            return self._block.describe_output()
        if self._output_descriptor is not None:
            return PairList(self._output_descriptor.to_list())
        return PairList()

    # Artifacts

    def get_artifact_names(self) -> List[str]:
        """Relative paths of all non-graph, non-parameter files bundled with the model."""
        self._check_open()
        if self._model_dir is None or not self._model_dir.is_dir():
            return []

        names = []
        for path in self._model_dir.rglob('*'):
            if not path.is_file():
                continue
            relative = path.relative_to(self._model_dir).as_posix()
            if not self.is_model_file(relative):
                names.append(relative)
        return sorted(names)

    def get_artifact(self, name: str, load_fn: Callable[[BinaryIO], Any],
                     artifact_type: Optional[Type] = None) -> Any:
        """
        Load an artifact with ``load_fn`` unless it is already cached.

        ``load_fn`` runs at most once per name, also under concurrent callers;
        a None result is cached as well::

            synset = model.get_artifact("synset.txt", lambda f: f.read().decode().splitlines())

        Args:
            name: Artifact name
            load_fn: Called with a binary stream of the artifact
            artifact_type: Expected type of the cached value

        Returns:
            The cached or computed artifact, or None if ``load_fn`` returned None

        Raises:
            FileNotFoundError: When no artifact with this name exists
            TypeError: When the cached value is not an ``artifact_type``
        """
        self._check_open()
        value = self._artifacts.get(name, _MISSING)
        if value is _MISSING:
            with self._artifact_lock(name):
                value = self._artifacts.get(name, _MISSING)
                if value is _MISSING:
                    stream = self.get_artifact_as_stream(name)
                    if stream is None:
                        raise FileNotFoundError(f"Artifact not found: {name}")
                    with stream:
                        value = load_fn(stream)
                    self._artifacts[name] = value
                    logger.debug(f"Loaded artifact {name} for model {self._name}")
        else:
            logger.debug(f"Artifact cache hit: {name}")

        if artifact_type is not None and value is not None and not isinstance(value, artifact_type):
            raise TypeError(
                f"Artifact {name} is {type(value).__name__}, expected {artifact_type.__name__}"
            )
        return value

    def _artifact_lock(self, name: str) -> threading.Lock:
        with self._artifact_locks_guard:
            lock = self._artifact_locks.get(name)
            if lock is None:
                lock = self._artifact_locks[name] = threading.Lock()
            return lock

    def get_artifact_url(self, name: str) -> Optional[Path]:
        """Location of an artifact, or None if the model has no artifact with this name."""
        self._check_open()
        if self._model_dir is None:
            return None

        root = self._model_dir.resolve()
        path = (root / name).resolve()
        if root not in path.parents:
            return None
        if not path.is_file() or self.is_model_file(path.relative_to(root).as_posix()):
            return None
        return path

    def get_artifact_as_stream(self, name: str) -> Optional[BinaryIO]:
        """Open an artifact for binary reading, or None if not found."""
        path = self.get_artifact_url(name)
        if path is None:
            return None
        return open(path, 'rb')

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name}, device={self._device}, state={self._state.value})"
