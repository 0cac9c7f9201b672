"""
Tensor-side types: data types, shapes and scoped tensor ownership.
"""

from .types import DataType, Shape
from .manager import NDManager

__all__ = [
    "DataType",
    "Shape",
    "NDManager",
]
