"""
Data types and shapes for tensors and parameters.
"""

from enum import Enum
from typing import Iterable, List, Optional

import torch


class DataType(Enum):
    """Numeric precision tag for tensor and parameter storage."""

    FLOAT16 = "float16"
    BFLOAT16 = "bfloat16"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    UINT8 = "uint8"
    INT8 = "int8"
    INT32 = "int32"
    INT64 = "int64"
    BOOLEAN = "bool"
    UNKNOWN = "unknown"

    def to_torch(self) -> torch.dtype:
        """Convert to the matching ``torch.dtype``."""
        if self is DataType.UNKNOWN:
            raise ValueError("DataType.UNKNOWN has no torch equivalent")
        return _TO_TORCH[self]

    @classmethod
    def from_torch(cls, dtype: torch.dtype) -> 'DataType':
        for data_type, torch_dtype in _TO_TORCH.items():
            if torch_dtype == dtype:
                return data_type
        return cls.UNKNOWN

    @classmethod
    def from_string(cls, value: str) -> 'DataType':
        """
        Parse a data type name.

        Accepts enum names (``FLOAT32``), values (``float32``) and torch
        spellings (``torch.float32``).
        """
        text = value.strip()
        if text.startswith('torch.'):
            text = text.split('.')[-1]
        for data_type in cls:
            if text.lower() in (data_type.value, data_type.name.lower()):
                return data_type
        raise ValueError(f"Unknown data type: {value}")

    def is_floating(self) -> bool:
        return self in (DataType.FLOAT16, DataType.BFLOAT16, DataType.FLOAT32, DataType.FLOAT64)

    def num_bytes(self) -> int:
        if self is DataType.UNKNOWN:
            return 0
        return torch.empty((), dtype=self.to_torch()).element_size()

    def __str__(self) -> str:
        return self.value


_TO_TORCH = {
    DataType.FLOAT16: torch.float16,
    DataType.BFLOAT16: torch.bfloat16,
    DataType.FLOAT32: torch.float32,
    DataType.FLOAT64: torch.float64,
    DataType.UINT8: torch.uint8,
    DataType.INT8: torch.int8,
    DataType.INT32: torch.int32,
    DataType.INT64: torch.int64,
    DataType.BOOLEAN: torch.bool,
}


class Shape(tuple):
    """
    Immutable tensor shape.

    ``-1`` marks an unknown (dynamic) dimension, e.g. a batch axis that is
    only fixed at inference time.
    """

    UNKNOWN_DIM = -1

    def __new__(cls, *dims):
        if len(dims) == 1 and isinstance(dims[0], Iterable):
            dims = tuple(dims[0])
        normalized = []
        for dim in dims:
            dim = cls.UNKNOWN_DIM if dim is None else int(dim)
            if dim < cls.UNKNOWN_DIM:
                raise ValueError(f"Invalid dimension: {dim}")
            normalized.append(dim)
        return super().__new__(cls, normalized)

    def dimension(self) -> int:
        return len(self)

    def is_unknown(self) -> bool:
        """True if any dimension is unknown."""
        return self.UNKNOWN_DIM in self

    def size(self) -> int:
        """Total number of elements; -1 if any dimension is unknown."""
        if self.is_unknown():
            return self.UNKNOWN_DIM
        total = 1
        for dim in self:
            total *= dim
        return total

    def head(self) -> int:
        if not self:
            raise IndexError("Shape is empty")
        return self[0]

    def filled(self, value: int) -> 'Shape':
        """Copy with every unknown dimension replaced by ``value``."""
        return Shape(value if dim == self.UNKNOWN_DIM else dim for dim in self)

    def to_list(self) -> List[int]:
        return list(self)

    @classmethod
    def from_list(cls, dims: Optional[List[int]]) -> 'Shape':
        return cls(dims or ())

    def __repr__(self) -> str:
        return f"Shape{tuple(self)}"
