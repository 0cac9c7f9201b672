"""
Compute device abstraction.

A ``Device`` names a compute target (CPU or a specific GPU) independently of
the backend; engines translate it into their own device handle.
"""

import os
from dataclasses import dataclass

import torch

DEFAULT_DEVICE_ENV = "MODELKIT_DEFAULT_DEVICE"


@dataclass(frozen=True)
class Device:
    """A compute target such as ``cpu`` or ``gpu:1``."""

    device_type: str = "cpu"
    device_id: int = -1

    CPU = "cpu"
    GPU = "gpu"

    def __post_init__(self):
        """Validate device."""
        if self.device_type not in (self.CPU, self.GPU):
            raise ValueError(f"Unsupported device type: {self.device_type}")
        if self.device_type == self.GPU and self.device_id < 0:
            raise ValueError("GPU device_id must be non-negative")

    @classmethod
    def cpu(cls) -> 'Device':
        return cls(cls.CPU, -1)

    @classmethod
    def gpu(cls, device_id: int = 0) -> 'Device':
        return cls(cls.GPU, device_id)

    @classmethod
    def from_string(cls, value: str) -> 'Device':
        """
        Parse a device string.

        Accepts ``cpu``, ``gpu``, ``gpu:N`` and the torch spelling ``cuda:N``.
        """
        text = value.strip().lower()
        if text == cls.CPU:
            return cls.cpu()

        device_type, _, index = text.partition(':')
        if device_type not in (cls.GPU, 'cuda'):
            raise ValueError(f"Unsupported device string: {value}")
        return cls.gpu(int(index) if index else 0)

    @classmethod
    def default_device(cls) -> 'Device':
        """Device from ``MODELKIT_DEFAULT_DEVICE``, else the first GPU, else CPU."""
        configured = os.environ.get(DEFAULT_DEVICE_ENV)
        if configured:
            return cls.from_string(configured)
        if torch.cuda.is_available():
            return cls.gpu(0)
        return cls.cpu()

    def is_gpu(self) -> bool:
        return self.device_type == self.GPU

    def to_torch(self) -> torch.device:
        """Convert to a ``torch.device``."""
        if self.is_gpu():
            return torch.device('cuda', self.device_id)
        return torch.device('cpu')

    def __str__(self) -> str:
        if self.is_gpu():
            return f"{self.device_type}:{self.device_id}"
        return self.device_type
