"""
Unit tests for engines, devices and tensor managers.
"""

import unittest
import unittest.mock

import numpy as np
import pytest
import torch

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from modelkit import DataType, Device, Engine, EngineError, NDManager, Shape, UseAfterCloseError
from modelkit.engine import TorchEngine, TorchModel


class TestEngine(unittest.TestCase):
    """Test the engine registry."""

    def test_default_engine_is_pytorch(self):
        engine = Engine.get_instance()
        self.assertIsInstance(engine, TorchEngine)
        self.assertEqual(engine.get_engine_name(), "PyTorch")
        self.assertEqual(engine.get_version(), torch.__version__)

    def test_instance_is_shared(self):
        self.assertIs(Engine.get_instance(), Engine.get_engine("PyTorch"))

    def test_registered_engines(self):
        self.assertIn("PyTorch", Engine.get_all_engines())
        self.assertTrue(Engine.has_engine("PyTorch"))

    def test_unknown_engine(self):
        with self.assertRaises(EngineError):
            Engine.get_engine("NoSuchEngine")

    def test_new_model(self):
        model = Engine.get_instance().new_model(Device.cpu(), name="m")
        try:
            self.assertIsInstance(model, TorchModel)
            self.assertEqual(model.device, Device.cpu())
            self.assertEqual(model.get_name(), "m")
        finally:
            model.close()


def test_engine_name_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("MODELKIT_DEFAULT_ENGINE", "NoSuchEngine")
    with pytest.raises(EngineError):
        Engine.get_instance()


class TestDevice(unittest.TestCase):
    """Test device parsing."""

    def test_from_string(self):
        self.assertEqual(Device.from_string("cpu"), Device.cpu())
        self.assertEqual(Device.from_string("gpu"), Device.gpu(0))
        self.assertEqual(Device.from_string("cuda:1"), Device.gpu(1))
        self.assertEqual(str(Device.gpu(2)), "gpu:2")

    def test_invalid_device(self):
        with self.assertRaises(ValueError):
            Device.from_string("tpu")

    def test_to_torch(self):
        self.assertEqual(Device.cpu().to_torch(), torch.device("cpu"))

    def test_default_device_from_environment(self):
        with unittest.mock.patch.dict("os.environ", {"MODELKIT_DEFAULT_DEVICE": "cpu"}):
            self.assertEqual(Device.default_device(), Device.cpu())


class TestDataTypeAndShape(unittest.TestCase):
    """Test data type tags and shapes."""

    def test_torch_round_trip(self):
        for data_type in DataType:
            if data_type is DataType.UNKNOWN:
                continue
            self.assertIs(DataType.from_torch(data_type.to_torch()), data_type)

    def test_from_string(self):
        self.assertIs(DataType.from_string("float16"), DataType.FLOAT16)
        self.assertIs(DataType.from_string("FLOAT64"), DataType.FLOAT64)
        self.assertIs(DataType.from_string("torch.int8"), DataType.INT8)
        with self.assertRaises(ValueError):
            DataType.from_string("float128")

    def test_num_bytes(self):
        self.assertEqual(DataType.FLOAT32.num_bytes(), 4)
        self.assertEqual(DataType.FLOAT16.num_bytes(), 2)

    def test_shape(self):
        shape = Shape(-1, 3, 4)
        self.assertTrue(shape.is_unknown())
        self.assertEqual(shape.size(), -1)
        self.assertEqual(shape.filled(2), Shape(2, 3, 4))
        self.assertEqual(Shape([2, 3]).size(), 6)
        self.assertEqual(Shape(None, 5), Shape(-1, 5))
        self.assertEqual(Shape.from_list([1, 2]).to_list(), [1, 2])

    def test_invalid_dimension(self):
        with self.assertRaises(ValueError):
            Shape(-2)


class TestNDManager(unittest.TestCase):
    """Test scoped tensor ownership."""

    def test_allocation(self):
        with NDManager(Device.cpu()) as manager:
            zeros = manager.zeros((2, 3))
            created = manager.create(np.arange(4), DataType.FLOAT32)
            self.assertEqual(tuple(zeros.shape), (2, 3))
            self.assertEqual(created.dtype, torch.float32)
            self.assertEqual(manager.num_resources(), 2)

    def test_close_releases_children(self):
        manager = NDManager(Device.cpu())
        child = manager.new_sub_manager()
        child.ones((2,))

        manager.close()

        self.assertFalse(child.is_open())
        self.assertEqual(child.num_resources(), 0)
        manager.close()

    def test_closing_child_keeps_parent(self):
        manager = NDManager(Device.cpu())
        child = manager.new_sub_manager()
        child.close()

        self.assertTrue(manager.is_open())
        manager.zeros((1,))
        manager.close()

    def test_use_after_close(self):
        manager = NDManager(Device.cpu())
        manager.close()
        with self.assertRaises(UseAfterCloseError):
            manager.zeros((1,))
        with self.assertRaises(UseAfterCloseError):
            manager.new_sub_manager()


if __name__ == '__main__':
    unittest.main()
