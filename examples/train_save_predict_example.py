#!/usr/bin/env python3
"""
Train, save, reload and predict with modelkit.

Usage:
    python examples/train_save_predict_example.py --output ./models/regression
"""

import argparse
import logging
import sys
from pathlib import Path

import torch
import torch.nn as nn

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from modelkit import Device, LoadConfig, Model
from modelkit.config import LoggingConfig, OptimizerConfig, TrainingConfig
from modelkit.nn import SequentialBlock
from modelkit.training import ArrayDataset
from modelkit.translate import NoopTranslator
from modelkit.util import setup_logging

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Train, save and reload a small regression model")
    parser.add_argument("--output", default="./models/regression", help="Model directory")
    parser.add_argument("--epochs", type=int, default=10)
    args = parser.parse_args()

    setup_logging(LoggingConfig(level="INFO"))

    x = torch.randn(256, 4)
    y = x @ torch.tensor([[2.0], [-1.0], [0.5], [0.0]])
    dataset = ArrayDataset(x, y)

    config = TrainingConfig(
        optimizer=OptimizerConfig(optimizer_type="SGD", lr=0.05),
        loss="l2",
        epochs=args.epochs,
        batch_size=32,
        shuffle=True,
        seed=0
    )

    with Model.new_instance(Device.cpu(), name="regression") as model:
        model.set_block(SequentialBlock(nn.Linear(4, 1)))
        with model.new_trainer(config) as trainer:
            trainer.initialize((-1, 4))
            summary = trainer.fit(dataset)
        logger.info(f"Average training loss: {summary['average_loss']:.4f}")

        model.set_property("task", "regression")
        model.save(args.output, "regression")

    with Model.new_instance(Device.cpu()) as model:
        model.load(args.output, LoadConfig(name="regression"))
        logger.info(f"Inputs: {model.describe_input()}, outputs: {model.describe_output()}")

        with model.new_predictor(NoopTranslator()) as predictor:
            prediction = predictor.predict(torch.tensor([[1.0, 1.0, 1.0, 1.0]]))
        print(f"✅ Prediction for [1, 1, 1, 1]: {prediction.item():.3f} (expected 1.5)")


if __name__ == "__main__":
    main()
