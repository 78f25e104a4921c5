import json
import math
import tempfile
import unittest
from pathlib import Path

import numpy as np

from galaxy_sim2d.errors import ConfigError
from galaxy_sim2d.params import QT_SIZE, SimParams


class TestParams(unittest.TestCase):
    def test_defaults_are_valid(self) -> None:
        params = SimParams().clamp().check()
        self.assertEqual(params.theta, 0.5)
        self.assertEqual(params.bounds, (-QT_SIZE, -QT_SIZE, 2 * QT_SIZE, 2 * QT_SIZE))
        self.assertEqual(params.validate(), [])

    def test_check_rejects_bad_constants(self) -> None:
        bad = [
            {"timestep": 0.0},
            {"timestep": -1.0},
            {"softening": 0.0},
            {"theta": -0.1},
            {"gravity_constant": -1.0},
            {"theta": math.nan},
            {"timestep": math.inf},
            {"bounds": (0.0, 0.0, 0.0, 10.0)},
            {"bounds": (0.0, 0.0, 10.0)},
        ]
        for kwargs in bad:
            with self.subTest(**{k: repr(v) for k, v in kwargs.items()}):
                with self.assertRaises(ConfigError):
                    SimParams(**kwargs).check()

    def test_numpy_scalars_accepted_and_bools_rejected(self) -> None:
        params = SimParams(theta=np.float32(0.5), timestep=np.float64(0.25), softening=np.int64(2)).check()
        self.assertIs(type(params.theta), float)
        self.assertEqual(params.theta, 0.5)
        self.assertEqual(params.softening, 2.0)
        with self.assertRaises(ConfigError):
            SimParams(timestep=True).check()

    def test_theta_zero_and_zero_gravity_allowed(self) -> None:
        params = SimParams(theta=0.0, gravity_constant=0.0).check()
        warnings = params.validate()
        self.assertTrue(any("theta=0" in w for w in warnings))
        self.assertTrue(any("gravity_constant=0" in w for w in warnings))

    def test_config_error_is_value_error(self) -> None:
        with self.assertRaises(ValueError):
            SimParams(softening=-2.0).check()

    def test_clamp_tuning_knobs(self) -> None:
        params = SimParams(max_depth=500, workers=-3, chunk_size=-1, log_every=0, min_cell_size=-1.0).clamp()
        self.assertEqual(params.max_depth, 64)
        self.assertEqual(params.workers, 0)
        self.assertEqual(params.chunk_size, 0)
        self.assertEqual(params.log_every, 1)
        self.assertEqual(params.min_cell_size, 0.0)
        self.assertGreaterEqual(params.worker_count(), 1)

    def test_validate_warnings(self) -> None:
        params = SimParams(bounds=(0.0, 0.0, 100.0, 50.0), theta=2.0, workers=1, chunk_size=8).check()
        warnings = params.validate()
        self.assertTrue(any("not square" in w for w in warnings))
        self.assertTrue(any("coarse" in w for w in warnings))
        self.assertTrue(any("single worker" in w for w in warnings))

    def test_save_and_load(self) -> None:
        params = SimParams(theta=0.8, softening=2.0, bounds=(-50.0, -50.0, 100.0, 100.0), workers=2)
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "params.json"
            params.save(path)
            loaded = SimParams.load(path)
        self.assertEqual(loaded, params)

    def test_load_ignores_unknown_keys_and_reads_qt_size(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "params.json"
            path.write_text(json.dumps({"qt_size": 10.0, "theta": 0.3, "colour": "blue"}), encoding="utf-8")
            loaded = SimParams.load(path)
        self.assertEqual(loaded.bounds, (-10.0, -10.0, 20.0, 20.0))
        self.assertEqual(loaded.theta, 0.3)

    def test_load_rejects_non_object(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "params.json"
            path.write_text("[1, 2, 3]", encoding="utf-8")
            with self.assertRaises(ConfigError):
                SimParams.load(path)
