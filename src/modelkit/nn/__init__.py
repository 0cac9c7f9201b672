"""
Blocks: computation graphs owned by a model.
"""

from .block import Block, SequentialBlock, LambdaBlock, as_tensor_list

__all__ = [
    "Block",
    "SequentialBlock",
    "LambdaBlock",
    "as_tensor_list",
]
