"""
Trainer for a model's block.

The trainer borrows the model's manager through a sub-manager: batches it
allocates are released when the trainer is closed, and a closed model
makes the trainer unusable.
"""

import logging
import time
from typing import Any, Callable, Dict, Iterable, Optional, Union

import torch

from ..config.base import TrainingConfig, create_optimizer
from ..exceptions import UseAfterCloseError
from ..ndarray.types import Shape
from ..nn.block import Block, as_tensor_list
from .dataset.dataset import Batch, Dataset
from .dataset.sampler import RandomSampler, Sampler, SequenceSampler
from .loss import get_loss, initialize_parameters
from .metrics import TrainingMetrics

logger = logging.getLogger(__name__)


class Trainer:
    """
    Trains a model's block with the optimizer, loss and initializer named in a ``TrainingConfig``.
    """

    def __init__(self, model, config: TrainingConfig):
        """
        Initialize trainer.

        Args:
            model: Model whose block is trained
            config: Training configuration
        """
        config.validate()
        if model.block is None:
            raise ValueError("Model has no block; set a block before creating a trainer")

        self.model = model
        self.config = config
        self.block = model.block
        self.device = model.device
        if config.device != self.device:
            logger.warning(
                f"Training device {config.device} differs from model device {self.device}; "
                f"using {self.device}"
            )

        if config.seed is not None:
            torch.manual_seed(config.seed)

        self.loss_fn = get_loss(config.loss)
        self.optimizer = create_optimizer(
            [p for p in self.block.parameters() if p.requires_grad],
            config.optimizer
        )
        self.nd_manager = model.nd_manager.new_sub_manager()
        self.metrics = TrainingMetrics()

        self.global_step = 0
        self.current_epoch = 0
        self._closed = False

        logger.info(
            f"Initialized Trainer for model {model.name}: optimizer={config.optimizer.optimizer_type}, "
            f"loss={config.loss}, device={self.device}"
        )

    def _check_open(self):
        if self._closed or self.model.is_closed() or not self.nd_manager.is_open():
            raise UseAfterCloseError("Trainer or its model has been closed")

    def initialize(self, *input_shapes: Iterable[int]) -> None:
        """
        Initialize parameters with the configured initializer.

        Args:
            input_shapes: Optional input shapes; recorded as the block's input
                descriptor (``data0``, ``data1``, ...) when the block is a ``Block``
        """
        self._check_open()
        initialize_parameters(self.block, self.config.initializer)

        if input_shapes and isinstance(self.block, Block):
            self.block.set_input_descriptor(
                [(f"data{i}", Shape(shape)) for i, shape in enumerate(input_shapes)],
                self.model.data_type
            )

    def _forward_loss(self, batch: Batch) -> torch.Tensor:
        if not batch.labels:
            raise ValueError("Batch has no labels")
        device = self.device.to_torch()
        inputs = [t.to(device) for t in batch.data]
        outputs = as_tensor_list(self.block(*inputs))
        return self.loss_fn(outputs[0], batch.labels[0].to(device))

    def train_batch(self, batch: Batch) -> float:
        """
        Forward and backward pass on one batch. Call ``step`` to update parameters.

        Returns:
            Batch loss
        """
        self._check_open()
        self.block.train()
        loss = self._forward_loss(batch)
        loss.backward()

        value = loss.item()
        self.metrics.record_loss(value, self.current_epoch, self.global_step)
        return value

    def step(self) -> None:
        """Apply accumulated gradients and reset them."""
        self._check_open()
        self.optimizer.step()
        self.optimizer.zero_grad()
        self.global_step += 1

        if self.global_step % self.config.log_every_n_steps == 0:
            logger.info(
                f"Epoch {self.current_epoch}, step {self.global_step}, "
                f"loss {self.metrics.get_average_loss(self.current_epoch):.4f}"
            )

    def evaluate_batch(self, batch: Batch) -> float:
        """Loss on one batch without updating parameters."""
        self._check_open()
        was_training = self.block.training
        self.block.eval()
        try:
            with torch.no_grad():
                value = self._forward_loss(batch).item()
        finally:
            self.block.train(was_training)

        self.metrics.record_loss(value, self.current_epoch, self.global_step, phase="validate")
        return value

    def _sampler(self, size: int, epoch: int) -> Sampler:
        if self.config.shuffle:
            seed = None if self.config.seed is None else self.config.seed + epoch
            return RandomSampler(size, seed=seed)
        return SequenceSampler(size)

    def fit(self, dataset: Dataset, epochs: Optional[int] = None,
            sampler: Optional[Union[Sampler, Callable[[int], Sampler]]] = None,
            validation_dataset: Optional[Dataset] = None) -> Dict[str, Any]:
        """
        Train for a number of epochs.

        Args:
            dataset: Training data
            epochs: Number of epochs (defaults to ``config.epochs``)
            sampler: Index order. A ``Sampler`` is single-pass and only valid
                for one epoch; a callable ``size -> Sampler`` is called once per
                epoch. Defaults to the order set by ``config.shuffle``.
            validation_dataset: Optional data evaluated after each epoch

        Returns:
            Metrics summary
        """
        self._check_open()
        if epochs is None:
            epochs = self.config.epochs
        if epochs < 0:
            raise ValueError(f"epochs must be non-negative, got {epochs}")
        if isinstance(sampler, Sampler) and epochs > 1:
            raise ValueError(
                "A Sampler instance is exhausted after one epoch; pass a callable returning a new sampler"
            )
        self.metrics.start_training()

        for _ in range(epochs):
            epoch_start = time.time()
            if sampler is None:
                epoch_sampler = self._sampler(len(dataset), self.current_epoch)
            elif isinstance(sampler, Sampler):
                epoch_sampler = sampler
            else:
                epoch_sampler = sampler(len(dataset))

            with self.nd_manager.new_sub_manager() as manager:
                for batch in dataset.get_data(manager, epoch_sampler,
                                              self.config.batch_size, self.config.drop_last):
                    self.train_batch(batch)
                    self.step()

                if validation_dataset is not None:
                    for batch in validation_dataset.get_data(manager, batch_size=self.config.batch_size):
                        self.evaluate_batch(batch)

            epoch_time = time.time() - epoch_start
            self.metrics.record_epoch_time(self.current_epoch, epoch_time)
            logger.info(
                f"Epoch {self.current_epoch} finished in {epoch_time:.2f}s, "
                f"train loss {self.metrics.get_average_loss(self.current_epoch):.4f}"
            )
            self.current_epoch += 1

        self.metrics.end_training()
        self.model.set_property("Epoch", self.current_epoch)
        return self.get_metrics()

    def get_metrics(self) -> Dict[str, Any]:
        return self.metrics.get_summary()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.optimizer.zero_grad()
        if self.nd_manager.is_open():
            self.nd_manager.close()
        logger.debug("Closed trainer")

    def __enter__(self) -> 'Trainer':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
