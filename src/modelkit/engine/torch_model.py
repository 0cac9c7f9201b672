"""
Model implementation for the PyTorch engine.

Persisted layout under the model directory, for a model named ``<name>``:

- ``<name>-symbol.pt``: the pickled ``nn.Module`` graph
- ``<name>-NNNN.params``: the ``state_dict`` for epoch ``NNNN``
- ``<name>-model.json``: properties, data type and input/output descriptors

Every other file in the directory is an artifact.
"""

import copy
import json
import logging
import pickle
import re
import shutil
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import torch
import torch.nn as nn

from ..config.base import LoadConfig
from ..device import Device
from ..exceptions import MalformedModelError, ModelKitError, UnsupportedConversionError
from ..model import Model, ModelState
from ..ndarray.types import DataType, Shape
from ..util.pair_list import PairList

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
SYMBOL_SUFFIX = "-symbol.pt"
METADATA_SUFFIX = "-model.json"
PARAMS_SUFFIX = ".params"
EPOCH_PROPERTY = "Epoch"

_PARAMS_PATTERN = re.compile(r"^(?P<name>.+)-(?P<epoch>\d{4})\.params$")

# Exceptions torch.load raises for content that is not a valid checkpoint
_LOAD_ERRORS = (pickle.UnpicklingError, EOFError, RuntimeError, AttributeError,
                ImportError, ValueError, KeyError)


def params_file_name(name: str, epoch: int) -> str:
    return f"{name}-{epoch:04d}{PARAMS_SUFFIX}"


def derive_model_name(file_name: str) -> str:
    """Model name from one of its files, e.g. ``resnet-0003.params`` -> ``resnet``."""
    match = _PARAMS_PATTERN.match(file_name)
    if match:
        return match.group('name')
    for suffix in (SYMBOL_SUFFIX, METADATA_SUFFIX):
        if file_name.endswith(suffix) and len(file_name) > len(suffix):
            return file_name[:-len(suffix)]
    return Path(file_name).stem


class TorchModel(Model):
    """``Model`` that stores its graph and parameters with ``torch.save``."""

    def __init__(self, device: Optional[Device] = None, name: Optional[str] = None,
                 engine_name: str = "PyTorch"):
        super().__init__(device, name)
        self.engine_name = engine_name

    def is_model_file(self, relative_path: str) -> bool:
        """Graph, parameter and metadata files of any model stored in the directory."""
        if '/' in relative_path:
            return False
        return (relative_path.endswith(SYMBOL_SUFFIX)
                or relative_path.endswith(METADATA_SUFFIX)
                or _PARAMS_PATTERN.match(relative_path) is not None)

    # Loading

    def load(self, model_path: Union[str, Path], config: Optional[LoadConfig] = None) -> None:
        """
        Load graph, parameters and metadata.

        Recognized options: ``epoch`` (parameter file to load, default the
        latest), ``strict`` (``"true"``/``"false"``, default true),
        ``map_location`` (device string) and ``data_type`` (cast after loading).

        If a block was set before loading, only the parameters are loaded into it.
        Nothing on the model changes unless every file is read and validated.
        """
        self._check_open()
        if self._loaded:
            raise ModelKitError(f"Model {self._name} is already loaded")

        config = config or LoadConfig()
        model_path = Path(model_path)
        if not model_path.exists():
            raise FileNotFoundError(f"Model path not found: {model_path}")

        if model_path.is_file():
            model_dir = model_path.parent
            default_name = derive_model_name(model_path.name)
        else:
            model_dir = model_path
            default_name = model_path.resolve().name
        name = config.name or default_name

        map_location = config.get_option('map_location')
        map_location = Device.from_string(map_location) if map_location else self._device
        strict = config.get_option('strict', 'true').lower() != 'false'
        epoch = _parse_epoch_option(config.get_option('epoch'))
        data_type = config.get_option('data_type')
        data_type = DataType.from_string(data_type) if data_type is not None else None

        logger.info(f"Loading model {name} from {model_dir}")

        metadata = _parse_metadata(self._read_metadata(model_dir / f"{name}{METADATA_SUFFIX}"))

        if self._block is None:
            block = self._read_graph(model_dir / f"{name}{SYMBOL_SUFFIX}", map_location)
        else:
            block = copy.deepcopy(self._block)

        params_file = self._find_params_file(model_dir, name, epoch)
        state_dict = self._read_params(params_file, map_location)
        try:
            block.load_state_dict(state_dict, strict=strict)
        except RuntimeError as e:
            raise MalformedModelError(f"Parameters in {params_file} do not match the graph: {e}") from e

        if self._block is not None:
            # Keep the caller's block object; the copy above already accepted these parameters
            self._block.load_state_dict(state_dict, strict=strict)
            block = self._block

        self._block = block.to(self._device.to_torch())
        self._name = name
        self._model_dir = model_dir
        if metadata is not None:
            self._properties.update(metadata['properties'])
            if metadata['data_type'] is not None:
                self._data_type = metadata['data_type']
            self._input_descriptor = metadata['inputs']
            self._output_descriptor = metadata['outputs']
        self._properties[EPOCH_PROPERTY] = str(int(_PARAMS_PATTERN.match(params_file.name).group('epoch')))
        self._loaded = True
        self._state = ModelState.READY

        if data_type is not None:
            self.cast(data_type)

        logger.info(f"Loaded model {name} ({params_file.name}, {self._data_type})")

    def _read_metadata(self, path: Path) -> Optional[Dict[str, Any]]:
        if not path.exists():
            logger.debug(f"No metadata file at {path}")
            return None

        with open(path, 'r', encoding='utf-8') as f:
            try:
                metadata = json.load(f)
            except json.JSONDecodeError as e:
                raise MalformedModelError(f"Invalid model metadata {path}: {e}") from e

        if not isinstance(metadata, dict):
            raise MalformedModelError(f"Invalid model metadata {path}: expected an object")
        version = metadata.get('format_version', FORMAT_VERSION)
        if version != FORMAT_VERSION:
            raise MalformedModelError(f"Unsupported model format version {version} in {path}")
        return metadata

    def _read_graph(self, path: Path, map_location: Device) -> nn.Module:
        if not path.exists():
            raise FileNotFoundError(f"Model graph not found: {path}")

        try:
            block = torch.load(path, map_location=map_location.to_torch(), weights_only=False)
        except _LOAD_ERRORS as e:
            raise MalformedModelError(f"Failed to read model graph {path}: {e}") from e

        if not isinstance(block, nn.Module):
            raise MalformedModelError(
                f"Model graph {path} holds {type(block).__name__}, not a torch.nn.Module"
            )
        return block

    def _find_params_file(self, model_dir: Path, name: str, epoch: Optional[int]) -> Path:
        if epoch is not None:
            path = model_dir / params_file_name(name, epoch)
            if not path.exists():
                raise FileNotFoundError(f"Parameter file not found: {path}")
            return path

        candidates = []
        for path in model_dir.iterdir():
            match = _PARAMS_PATTERN.match(path.name)
            if match and match.group('name') == name and path.is_file():
                candidates.append((int(match.group('epoch')), path))
        if not candidates:
            raise FileNotFoundError(f"No parameter file for model {name} in {model_dir}")
        return max(candidates)[1]

    def _read_params(self, path: Path, map_location: Device) -> Mapping[str, torch.Tensor]:
        try:
            state_dict = torch.load(path, map_location=map_location.to_torch(), weights_only=True)
        except _LOAD_ERRORS as e:
            raise MalformedModelError(f"Failed to read parameters {path}: {e}") from e

        if not isinstance(state_dict, Mapping):
            raise MalformedModelError(f"Parameter file {path} does not hold a state dict")
        return state_dict


    # Saving

    def save(self, model_path: Union[str, Path], name: str) -> None:
        """Write graph, parameters, metadata and artifacts to ``model_path``."""
        self._check_open()
        if self._block is None:
            raise ModelKitError("Model has no block to save")

        source_dir = self._model_dir
        artifacts = self.get_artifact_names()

        model_dir = Path(model_path)
        model_dir.mkdir(parents=True, exist_ok=True)
        epoch = int(self._properties.get(EPOCH_PROPERTY, 0))

        symbol_path = model_dir / f"{name}{SYMBOL_SUFFIX}"
        params_path = model_dir / params_file_name(name, epoch)
        torch.save(self._block, symbol_path)
        torch.save(self._block.state_dict(), params_path)

        metadata = {
            'format_version': FORMAT_VERSION,
            'name': name,
            'engine': self.engine_name,
            'data_type': self._data_type.value,
            'properties': dict(self._properties),
            'inputs': _descriptor_to_json(self.describe_input()),
            'outputs': _descriptor_to_json(self.describe_output()),
        }
        with open(model_dir / f"{name}{METADATA_SUFFIX}", 'w', encoding='utf-8') as f:
            json.dump(metadata, f, indent=2)

        if source_dir is not None and source_dir.resolve() != model_dir.resolve():
            for artifact in artifacts:
                target = model_dir / artifact
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source_dir / artifact, target)

        self._name = name
        self._model_dir = model_dir

        logger.info(f"Saved model {name} to {model_dir} ({len(artifacts)} artifacts)")

    # Precision

    def cast(self, data_type: DataType) -> None:
        """Convert floating-point parameters and buffers to another floating-point type."""
        self._check_open()
        if not data_type.is_floating():
            raise UnsupportedConversionError(
                f"Cannot cast model parameters from {self._data_type} to {data_type}"
            )

        if self._block is not None:
            self._block.to(dtype=data_type.to_torch())

        logger.info(f"Cast model {self._name} from {self._data_type} to {data_type}")
        self._data_type = data_type


def _descriptor_to_json(descriptor: PairList):
    return [[name, shape.to_list()] for name, shape in descriptor]


def _descriptor_from_json(data) -> Optional[PairList]:
    if data is None:
        return None
    return PairList((str(name), Shape.from_list(dims)) for name, dims in data)


def _parse_epoch_option(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        epoch = int(value)
    except ValueError:
        raise ValueError(f"Load option 'epoch' must be a non-negative integer, got {value!r}") from None
    if epoch < 0:
        raise ValueError(f"Load option 'epoch' must be a non-negative integer, got {value!r}")
    return epoch


def _parse_metadata(metadata: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Validate metadata fields without touching the model."""
    if metadata is None:
        return None
    try:
        properties = metadata.get('properties') or {}
        data_type = metadata.get('data_type')
        return {
            'properties': {str(k): str(v) for k, v in properties.items()},
            'data_type': DataType.from_string(data_type) if data_type else None,
            'inputs': _descriptor_from_json(metadata.get('inputs')),
            'outputs': _descriptor_from_json(metadata.get('outputs')),
        }
    except (AttributeError, TypeError, ValueError) as e:
        raise MalformedModelError(f"Invalid model metadata: {e}") from e
