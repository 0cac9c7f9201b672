"""
Computation graph blocks.

A ``Block`` is a ``torch.nn.Module`` that also knows the names and shapes of
its inputs, so a model can describe its inputs and outputs without running
user code. Any plain ``nn.Module`` can still be used as a model's block; it
simply has no descriptors of its own.
"""

import logging
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

import torch
import torch.nn as nn

from ..ndarray.types import DataType, Shape
from ..util.pair_list import PairList

logger = logging.getLogger(__name__)

Descriptor = Union[PairList, Sequence[Tuple[str, Iterable[int]]]]


class Block(nn.Module):
    """Base block with named, shaped inputs."""

    def __init__(self):
        super().__init__()
        self._input_descriptor = PairList()
        self._input_dtype = DataType.FLOAT32

    def set_input_descriptor(self, descriptor: Descriptor,
                             data_type: DataType = DataType.FLOAT32) -> 'Block':
        """
        Declare the block inputs.

        Args:
            descriptor: Ordered ``(name, shape)`` pairs; -1 marks an unknown dimension
            data_type: Data type of the inputs

        Returns:
            self
        """
        self._input_descriptor = PairList((name, Shape(shape)) for name, shape in descriptor)
        self._input_dtype = data_type
        return self

    def describe_input(self) -> PairList:
        return PairList(self._input_descriptor.to_list())

    def describe_output(self) -> PairList:
        """
        Output names and shapes.

        Shapes are found by running the block on zero inputs twice, with unknown
        input dimensions set to 1 and then 2. Output dimensions that differ
        between the two runs are reported as unknown.
        """
        if self._input_descriptor.is_empty():
            return PairList()

        first = self._probe_output_shapes(1)
        if any(shape.is_unknown() for shape in self._input_descriptor.values()):
            second = self._probe_output_shapes(2)
        else:
            second = first

        descriptor = PairList()
        for i, (a, b) in enumerate(zip(first, second)):
            dims = [x if x == y else Shape.UNKNOWN_DIM for x, y in zip(a, b)]
            descriptor.add(f"output{i}", Shape(dims))
        return descriptor

    def _probe_output_shapes(self, fill: int) -> List[Shape]:
        device = _module_device(self)
        dtype = self._input_dtype.to_torch()
        if self._input_dtype.is_floating():
            # follow the parameters after a cast
            dtype = _module_float_dtype(self, dtype)
        inputs = [
            torch.zeros(tuple(shape.filled(fill)), dtype=dtype, device=device)
            for shape in self._input_descriptor.values()
        ]
        was_training = self.training
        self.eval()
        try:
            with torch.no_grad():
                outputs = self(*inputs)
        finally:
            self.train(was_training)
        return [Shape(t.shape) for t in as_tensor_list(outputs)]


class SequentialBlock(Block):
    """Applies child modules in order."""

    def __init__(self, *modules: nn.Module):
        super().__init__()
        self.layers = nn.ModuleList(modules)

    def add(self, module: nn.Module) -> 'SequentialBlock':
        self.layers.append(module)
        return self

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        for layer in self.layers:
            x = layer(x)
        return x

    def __len__(self) -> int:
        return len(self.layers)


class LambdaBlock(Block):
    """Block around a parameter-free callable. The callable must be picklable to save the block."""

    def __init__(self, fn: Callable[..., torch.Tensor], name: Optional[str] = None):
        super().__init__()
        self.fn = fn
        self.name = name or getattr(fn, '__name__', 'lambda')

    def forward(self, *inputs: torch.Tensor):
        return self.fn(*inputs)

    def extra_repr(self) -> str:
        return self.name


def as_tensor_list(outputs) -> List[torch.Tensor]:
    """Normalize a forward result to a flat list of tensors."""
    if isinstance(outputs, torch.Tensor):
        return [outputs]
    if isinstance(outputs, dict):
        return list(outputs.values())
    return list(outputs)


def _module_device(module: nn.Module) -> torch.device:
    for tensor in module.parameters():
        return tensor.device
    for tensor in module.buffers():
        return tensor.device
    return torch.device('cpu')


def _module_float_dtype(module: nn.Module, default: torch.dtype) -> torch.dtype:
    for tensor in module.parameters():
        if tensor.is_floating_point():
            return tensor.dtype
    return default
