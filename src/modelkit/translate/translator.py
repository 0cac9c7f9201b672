"""
Translators convert domain objects to and from the tensors a block consumes.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

import torch

from ..ndarray.manager import NDManager


class TranslatorContext:
    """
    Per-call context handed to a translator.

    ``nd_manager`` is a sub-manager of the predictor's manager; tensors
    created from it are released when the call finishes.
    """

    def __init__(self, model, nd_manager: NDManager):
        self.model = model
        self.nd_manager = nd_manager
        self.attachments: Dict[str, Any] = {}

    def set_attachment(self, key: str, value: Any) -> None:
        self.attachments[key] = value

    def get_attachment(self, key: str, default: Any = None) -> Any:
        return self.attachments.get(key, default)

    def close(self) -> None:
        self.nd_manager.close()

    def __enter__(self) -> 'TranslatorContext':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class Translator(ABC):
    """Pre-processing and post-processing around a block's forward pass."""

    def prepare(self, ctx: TranslatorContext) -> None:
        """Called once when a predictor is created, e.g. to load artifacts."""
        pass

    @abstractmethod
    def process_input(self, ctx: TranslatorContext, input: Any) -> List[torch.Tensor]:
        """Convert an input object to the positional tensors of the block."""

    @abstractmethod
    def process_output(self, ctx: TranslatorContext, outputs: List[torch.Tensor]) -> Any:
        """Convert block outputs to the output object."""


class NoopTranslator(Translator):
    """Passes tensors through unchanged."""

    def __init__(self, unwrap_single: bool = True):
        self.unwrap_single = unwrap_single

    def process_input(self, ctx: TranslatorContext, input: Any) -> List[torch.Tensor]:
        if isinstance(input, torch.Tensor):
            return [input.to(ctx.nd_manager.device.to_torch())]
        return [t.to(ctx.nd_manager.device.to_torch()) for t in input]

    def process_output(self, ctx: TranslatorContext, outputs: List[torch.Tensor]) -> Any:
        if self.unwrap_single and len(outputs) == 1:
            return outputs[0]
        return outputs
