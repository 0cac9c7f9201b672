"""
PyTorch engine.
"""

import logging
from typing import Optional

import torch

from ..config.base import EngineConfig
from ..device import Device
from ..ndarray.manager import NDManager
from .engine import Engine
from .torch_model import TorchModel

logger = logging.getLogger(__name__)


@Engine.register
class TorchEngine(Engine):
    """Engine backed by ``torch``."""

    ENGINE_NAME = "PyTorch"

    def __init__(self, config: Optional[EngineConfig] = None):
        super().__init__(config)
        if self.config.num_threads is not None:
            torch.set_num_threads(self.config.num_threads)
            logger.info(f"Set torch intra-op threads to {self.config.num_threads}")

    def get_engine_name(self) -> str:
        return self.ENGINE_NAME

    def get_version(self) -> str:
        return torch.__version__

    def get_gpu_count(self) -> int:
        return torch.cuda.device_count() if torch.cuda.is_available() else 0

    def new_model(self, device: Optional[Device] = None, name: Optional[str] = None) -> TorchModel:
        return TorchModel(device or self.default_device(), name=name, engine_name=self.ENGINE_NAME)

    def new_base_manager(self, device: Optional[Device] = None) -> NDManager:
        return NDManager.new_base_manager(device or self.default_device())
