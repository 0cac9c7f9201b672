"""
Unit tests for the model lifecycle.

Tests the core components:
- Properties
- Artifact cache
- Close and use-after-close
- Data type casting
"""

import tempfile
import threading
import time
import unittest

import torch
import torch.nn as nn

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from modelkit import (
    DataType, Device, Model, ModelState, UnsupportedConversionError, UseAfterCloseError
)
from modelkit.nn import SequentialBlock


def _make_block():
    return SequentialBlock(nn.Linear(4, 3), nn.ReLU(), nn.Linear(3, 2)).set_input_descriptor(
        [("data", (-1, 4))]
    )


class TestModelProperties(unittest.TestCase):
    """Test property storage and accessors."""

    def setUp(self):
        self.model = Model.new_instance(Device.cpu(), name="props")

    def tearDown(self):
        self.model.close()

    def test_set_and_get_property(self):
        self.model.set_property("k", "v")
        self.assertEqual(self.model.get_property("k"), "v")

    def test_unset_property_is_none(self):
        self.assertIsNone(self.model.get_property("missing"))

    def test_property_values_are_strings(self):
        self.model.set_property("Epoch", 3)
        self.assertEqual(self.model.get_property("Epoch"), "3")

    def test_block_accessors(self):
        block = _make_block()
        self.model.set_block(block)
        self.assertIs(self.model.get_block(), block)
        self.assertEqual(self.model.get_name(), "props")

    def test_set_block_makes_model_ready(self):
        self.assertEqual(self.model.state, ModelState.UNINITIALIZED)
        self.model.set_block(_make_block())
        self.assertEqual(self.model.state, ModelState.READY)

    def test_set_block_rejects_none(self):
        with self.assertRaises(ValueError):
            self.model.set_block(None)

    def test_describe_without_block(self):
        self.assertTrue(self.model.describe_input().is_empty())
        self.assertTrue(self.model.describe_output().is_empty())

    def test_describe_from_block(self):
        self.model.set_block(_make_block())

        inputs = self.model.describe_input()
        outputs = self.model.describe_output()

        self.assertEqual(inputs.keys(), ["data"])
        self.assertEqual(tuple(inputs.value_at(0)), (-1, 4))
        self.assertEqual(outputs.keys(), ["output0"])
        self.assertEqual(tuple(outputs.value_at(0)), (-1, 2))


class TestArtifactCache(unittest.TestCase):
    """Test compute-if-absent artifact loading."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.model_dir = Path(self.tmp.name)

        self.model = Model.new_instance(Device.cpu())
        self.model.set_block(_make_block())
        self.model.save(self.model_dir, "cached")
        (self.model_dir / "synset.txt").write_text("cat\ndog\n")

    def tearDown(self):
        self.model.close()
        self.tmp.cleanup()

    def test_loader_runs_once(self):
        calls = []

        def load(stream):
            calls.append(1)
            return stream.read().decode().splitlines()

        first = self.model.get_artifact("synset.txt", load)
        second = self.model.get_artifact("synset.txt", load)

        self.assertEqual(first, ["cat", "dog"])
        self.assertIs(first, second)
        self.assertEqual(len(calls), 1)

    def test_none_result_is_cached(self):
        calls = []

        def load(stream):
            calls.append(1)
            return None

        self.assertIsNone(self.model.get_artifact("synset.txt", load))
        self.assertIsNone(self.model.get_artifact("synset.txt", load))
        self.assertEqual(len(calls), 1)

    def test_type_mismatch_raises(self):
        self.model.get_artifact("synset.txt", lambda f: f.read())

        with self.assertRaises(TypeError):
            self.model.get_artifact("synset.txt", lambda f: f.read(), artifact_type=list)

    def test_missing_artifact_raises(self):
        with self.assertRaises(FileNotFoundError):
            self.model.get_artifact("absent.txt", lambda f: f.read())

    def test_concurrent_callers_load_once(self):
        calls = []
        results = []
        barrier = threading.Barrier(8)

        def load(stream):
            calls.append(1)
            time.sleep(0.05)
            return stream.read()

        def worker():
            barrier.wait()
            results.append(self.model.get_artifact("synset.txt", load))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(calls), 1)
        self.assertEqual(len(results), 8)
        self.assertTrue(all(r is results[0] for r in results))

    def test_artifact_resolution(self):
        self.assertEqual(self.model.get_artifact_names(), ["synset.txt"])
        self.assertEqual(self.model.get_artifact_url("synset.txt").name, "synset.txt")
        self.assertIsNone(self.model.get_artifact_url("absent.txt"))
        self.assertIsNone(self.model.get_artifact_url("cached-symbol.pt"))
        self.assertIsNone(self.model.get_artifact_url("../outside.txt"))

        with self.model.get_artifact_as_stream("synset.txt") as stream:
            self.assertEqual(stream.read(), b"cat\ndog\n")
        self.assertIsNone(self.model.get_artifact_as_stream("absent.txt"))


class TestModelClose(unittest.TestCase):
    """Test close semantics."""

    def test_close_is_idempotent(self):
        model = Model.new_instance(Device.cpu())
        model.close()
        model.close()
        self.assertTrue(model.is_closed())

    def test_use_after_close_raises(self):
        model = Model.new_instance(Device.cpu())
        model.set_block(_make_block())
        manager = model.get_nd_manager()
        model.close()

        with self.assertRaises(UseAfterCloseError):
            model.get_property("k")
        with self.assertRaises(UseAfterCloseError):
            model.set_block(_make_block())
        with self.assertRaises(UseAfterCloseError):
            model.describe_input()
        with self.assertRaises(UseAfterCloseError):
            model.get_artifact("x", lambda f: f.read())
        self.assertFalse(manager.is_open())

    def test_context_manager_closes(self):
        with Model.new_instance(Device.cpu()) as model:
            model.set_property("k", "v")
        self.assertTrue(model.is_closed())


class TestCast(unittest.TestCase):
    """Test data type conversion."""

    def setUp(self):
        self.model = Model.new_instance(Device.cpu())
        self.model.set_block(_make_block())

    def tearDown(self):
        self.model.close()

    def test_default_data_type(self):
        self.assertEqual(self.model.get_data_type(), DataType.FLOAT32)

    def test_cast_to_float64(self):
        self.model.cast(DataType.FLOAT64)

        self.assertEqual(self.model.get_data_type(), DataType.FLOAT64)
        for param in self.model.get_block().parameters():
            self.assertEqual(param.dtype, torch.float64)

    def test_describe_output_after_cast(self):
        self.model.cast(DataType.FLOAT64)
        self.assertEqual(tuple(self.model.describe_output().value_at(0)), (-1, 2))

    def test_unsupported_cast_raises(self):
        with self.assertRaises(UnsupportedConversionError):
            self.model.cast(DataType.INT8)
        self.assertEqual(self.model.get_data_type(), DataType.FLOAT32)

    def test_set_data_type_only_tags(self):
        self.model.set_data_type(DataType.FLOAT16)

        self.assertEqual(self.model.get_data_type(), DataType.FLOAT16)
        for param in self.model.get_block().parameters():
            self.assertEqual(param.dtype, torch.float32)


if __name__ == '__main__':
    unittest.main()
