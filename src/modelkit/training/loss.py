"""
Losses and parameter initializers selected by name in ``TrainingConfig``.
"""

import logging
from typing import Callable, Dict

import torch
import torch.nn as nn
import torch.nn.functional as F

logger = logging.getLogger(__name__)

LossFn = Callable[[torch.Tensor, torch.Tensor], torch.Tensor]


def _softmax_cross_entropy(prediction: torch.Tensor, label: torch.Tensor) -> torch.Tensor:
    # Integer class labels or one-hot / probability targets
    if label.is_floating_point():
        return F.cross_entropy(prediction, label)
    return F.cross_entropy(prediction, label.long())


def _sigmoid_bce(prediction: torch.Tensor, label: torch.Tensor) -> torch.Tensor:
    return F.binary_cross_entropy_with_logits(prediction, label.to(prediction.dtype))


def _l2(prediction: torch.Tensor, label: torch.Tensor) -> torch.Tensor:
    return F.mse_loss(prediction, label.to(prediction.dtype))


def _l1(prediction: torch.Tensor, label: torch.Tensor) -> torch.Tensor:
    return F.l1_loss(prediction, label.to(prediction.dtype))


LOSSES: Dict[str, LossFn] = {
    "l2": _l2,
    "l1": _l1,
    "softmax_cross_entropy": _softmax_cross_entropy,
    "sigmoid_bce": _sigmoid_bce,
}


def get_loss(name: str) -> LossFn:
    if name not in LOSSES:
        raise ValueError(f"Unknown loss: {name}")
    return LOSSES[name]


def initialize_parameters(module: nn.Module, initializer: str) -> int:
    """
    Initialize weights of ``module`` in place.

    Matrices (dimension >= 2) get the named initializer; biases and other
    vectors are zeroed. ``"none"`` keeps the current values.

    Returns:
        Number of parameter tensors initialized
    """
    if initializer == "none":
        return 0

    count = 0
    with torch.no_grad():
        for name, param in module.named_parameters():
            if not param.requires_grad:
                continue
            if param.dim() < 2 or initializer == "zeros":
                nn.init.zeros_(param)
            elif initializer == "xavier":
                nn.init.xavier_uniform_(param)
            elif initializer == "normal":
                nn.init.normal_(param, mean=0.0, std=0.01)
            elif initializer == "uniform":
                nn.init.uniform_(param, -0.07, 0.07)
            else:
                raise ValueError(f"Unknown initializer: {initializer}")
            count += 1

    logger.debug(f"Initialized {count} parameter tensors with {initializer}")
    return count
