"""
Training metrics for the trainer.
"""

import logging
from typing import Dict, List, Any, Optional
import time
from collections import defaultdict

logger = logging.getLogger(__name__)


class TrainingMetrics:
    """
    Training metrics collection.

    Tracks:
    - Training and validation losses per step
    - Epoch times
    - Total training time
    """

    def __init__(self):
        """Initialize training metrics."""
        self.metrics = defaultdict(list)
        self.start_time = None
        self.current_epoch = 0

        logger.debug("Initialized TrainingMetrics")

    def start_training(self):
        """Start training timer."""
        self.start_time = time.time()

    def end_training(self):
        """End training timer."""
        if self.start_time is not None:
            total_time = time.time() - self.start_time
            self.metrics['total_training_time'].append(total_time)
            logger.info(f"Total training time: {total_time:.2f} seconds")

    def record_loss(self, loss: float, epoch: int, step: int, phase: str = "train"):
        """
        Record a loss value.

        Args:
            loss: Loss value
            epoch: Epoch number
            step: Global step
            phase: "train" or "validate"
        """
        self.metrics[f'{phase}_losses'].append({
            'loss': loss,
            'epoch': epoch,
            'step': step,
            'timestamp': time.time()
        })

    def record_epoch_time(self, epoch: int, epoch_time: float):
        self.metrics['epoch_times'].append({
            'epoch': epoch,
            'time': epoch_time
        })
        logger.debug(f"Recorded epoch {epoch} time: {epoch_time:.2f} seconds")

    def get_losses(self, phase: str = "train") -> List[float]:
        return [entry['loss'] for entry in self.metrics[f'{phase}_losses']]

    def get_average_loss(self, epoch: Optional[int] = None, phase: str = "train") -> float:
        """
        Get average loss for an epoch or overall.

        Args:
            epoch: Epoch number (optional)
            phase: "train" or "validate"

        Returns:
            Average loss
        """
        losses = self.metrics[f'{phase}_losses']

        if epoch is not None:
            losses = [entry for entry in losses if entry['epoch'] == epoch]

        if not losses:
            return 0.0

        return sum(entry['loss'] for entry in losses) / len(losses)

    def get_summary(self) -> Dict[str, Any]:
        """Get all metrics."""
        total = self.metrics['total_training_time']
        return {
            'total_training_time': total[-1] if total else 0.0,
            'average_loss': self.get_average_loss(),
            'num_steps': len(self.metrics['train_losses']),
            'num_epochs': len(self.metrics['epoch_times']),
            'epoch_times': {e['epoch']: e['time'] for e in self.metrics['epoch_times']}
        }

    def clear_metrics(self):
        """Clear all metrics."""
        self.metrics.clear()
        self.start_time = None
        self.current_epoch = 0
