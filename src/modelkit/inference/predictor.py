"""
Inference on a model through a translator.
"""

import logging
import time
from typing import Any, List

import torch

from ..exceptions import UseAfterCloseError
from ..nn.block import as_tensor_list
from ..translate.translator import Translator, TranslatorContext

logger = logging.getLogger(__name__)


class Predictor:
    """
    Runs ``translator.process_input -> block -> translator.process_output``.

    The predictor borrows the model's manager through a sub-manager and
    must not be used after the model is closed.
    """

    def __init__(self, model, translator: Translator):
        """
        Initialize predictor.

        Args:
            model: Model whose block runs the forward pass
            translator: Pre- and post-processing
        """
        if model.block is None:
            raise ValueError("Model has no block; load the model or set a block first")

        self.model = model
        self.translator = translator
        self.nd_manager = model.nd_manager.new_sub_manager()
        self._closed = False
        self._num_predictions = 0
        self._total_time = 0.0

        with TranslatorContext(model, self.nd_manager.new_sub_manager()) as ctx:
            translator.prepare(ctx)

        logger.debug(f"Created predictor for model {model.name} with {type(translator).__name__}")

    def _check_open(self):
        if self._closed or self.model.is_closed() or not self.nd_manager.is_open():
            raise UseAfterCloseError("Predictor or its model has been closed")

    def predict(self, input: Any) -> Any:
        """
        Run inference on a single input.

        Args:
            input: Input object understood by the translator

        Returns:
            Output object produced by the translator
        """
        self._check_open()
        start = time.perf_counter()

        block = self.model.block
        was_training = block.training
        block.eval()
        try:
            with TranslatorContext(self.model, self.nd_manager.new_sub_manager()) as ctx:
                inputs = self.translator.process_input(ctx, input)
                with torch.no_grad():
                    outputs = block(*inputs)
                result = self.translator.process_output(ctx, as_tensor_list(outputs))
        finally:
            block.train(was_training)

        elapsed = time.perf_counter() - start
        self._num_predictions += 1
        self._total_time += elapsed
        logger.debug(f"Prediction took {elapsed * 1000:.2f} ms")
        return result

    def batch_predict(self, inputs: List[Any]) -> List[Any]:
        """Run inference on each input in order."""
        return [self.predict(x) for x in inputs]

    def get_stats(self) -> dict:
        avg = self._total_time / self._num_predictions if self._num_predictions else 0.0
        return {
            'num_predictions': self._num_predictions,
            'total_time': self._total_time,
            'avg_time': avg
        }

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.nd_manager.close()

    def __enter__(self) -> 'Predictor':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
