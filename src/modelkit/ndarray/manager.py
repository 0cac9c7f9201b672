"""
Scoped ownership of tensors.

An ``NDManager`` owns every tensor allocated or attached through it.
Managers form a tree: closing a manager closes its children first and then
drops the tensors it owns, so a model's manager bounds the lifetime of
everything predictors and trainers allocate from it.
"""

import logging
import threading
import uuid
from typing import Any, Iterable, List, Optional

import numpy as np
import torch

from ..device import Device
from ..exceptions import UseAfterCloseError
from .types import DataType, Shape

logger = logging.getLogger(__name__)


class NDManager:
    """Resource-owning allocator for tensors on a single device."""

    def __init__(self, device: Optional[Device] = None,
                 parent: Optional['NDManager'] = None,
                 name: Optional[str] = None):
        """
        Initialize manager.

        Args:
            device: Device new tensors are allocated on (defaults to the parent's, else CPU)
            parent: Owning manager, or None for a base manager
            name: Optional identifier used in log messages
        """
        if device is None:
            device = parent.device if parent is not None else Device.cpu()
        self.device = device
        self.parent = parent
        self.name = name or uuid.uuid4().hex[:8]

        self._resources = {}
        self._children = {}
        self._closed = False
        self._lock = threading.Lock()

        logger.debug(f"Created NDManager {self.name} on {self.device}")

    @classmethod
    def new_base_manager(cls, device: Optional[Device] = None) -> 'NDManager':
        return cls(device=device)

    def new_sub_manager(self, device: Optional[Device] = None) -> 'NDManager':
        """Create a child manager that is closed together with this one."""
        self._check_open()
        child = NDManager(device=device or self.device, parent=self)
        with self._lock:
            self._children[child.name] = child
        return child

    def is_open(self) -> bool:
        return not self._closed

    def _check_open(self):
        if self._closed:
            raise UseAfterCloseError(f"NDManager {self.name} has been closed")

    def create(self, data: Any, dtype: Optional[DataType] = None) -> torch.Tensor:
        """
        Create a tensor from python data, a numpy array or another tensor.

        Args:
            data: Source data
            dtype: Optional target data type

        Returns:
            Tensor on this manager's device, owned by this manager
        """
        self._check_open()
        torch_dtype = dtype.to_torch() if dtype is not None else None
        if isinstance(data, np.ndarray):
            tensor = torch.from_numpy(data)
        else:
            tensor = torch.as_tensor(data)
        tensor = tensor.to(device=self.device.to_torch(), dtype=torch_dtype)
        return self._track(tensor)

    def zeros(self, shape: Iterable[int], dtype: DataType = DataType.FLOAT32) -> torch.Tensor:
        self._check_open()
        tensor = torch.zeros(tuple(Shape(shape)), dtype=dtype.to_torch(), device=self.device.to_torch())
        return self._track(tensor)

    def ones(self, shape: Iterable[int], dtype: DataType = DataType.FLOAT32) -> torch.Tensor:
        self._check_open()
        tensor = torch.ones(tuple(Shape(shape)), dtype=dtype.to_torch(), device=self.device.to_torch())
        return self._track(tensor)

    def attach(self, *tensors: torch.Tensor) -> None:
        """Take ownership of existing tensors."""
        self._check_open()
        for tensor in tensors:
            self._track(tensor)

    def detach(self, tensor: torch.Tensor) -> None:
        """Release ownership of a tensor without closing the manager."""
        with self._lock:
            self._resources.pop(id(tensor), None)

    def num_resources(self) -> int:
        return len(self._resources)

    def get_resources(self) -> List[torch.Tensor]:
        return list(self._resources.values())

    def _track(self, tensor: torch.Tensor) -> torch.Tensor:
        with self._lock:
            self._resources[id(tensor)] = tensor
        return tensor

    def _remove_child(self, child: 'NDManager'):
        with self._lock:
            self._children.pop(child.name, None)

    def close(self) -> None:
        """Close child managers and drop every owned tensor. Safe to call twice."""
        if self._closed:
            return
        self._closed = True

        for child in list(self._children.values()):
            child.close()

        with self._lock:
            released = len(self._resources)
            self._resources.clear()
            self._children.clear()

        if self.parent is not None:
            self.parent._remove_child(self)

        if self.device.is_gpu() and torch.cuda.is_available():
            torch.cuda.empty_cache()

        logger.debug(f"Closed NDManager {self.name}, released {released} tensors")

    def __enter__(self) -> 'NDManager':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __repr__(self) -> str:
        state = "open" if self.is_open() else "closed"
        return f"NDManager(name={self.name}, device={self.device}, {state})"
