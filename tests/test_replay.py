import os
import tempfile
import unittest

import numpy as np

from parmi.config import CalibrationPolicy, EngineConfig
from parmi.events import CalibrationFinished, RepCompleted
from parmi.replay import load_trace, main, run_trace, synthetic_trace


def write_csv(text: str) -> str:
    fh = tempfile.NamedTemporaryFile("w", suffix=".csv", delete=False)
    with fh:
        fh.write(text)
    return fh.name


class ReplayTests(unittest.TestCase):
    def tearDown(self) -> None:
        for path in getattr(self, "_paths", []):
            os.unlink(path)

    def csv(self, text: str) -> str:
        path = write_csv(text)
        self._paths = getattr(self, "_paths", []) + [path]
        return path

    def test_synthetic_trace_shape(self) -> None:
        trace = synthetic_trace(3, noise_deg=0.0)
        self.assertEqual(trace.dtype.names, ("t_ms", "beta"))
        self.assertAlmostEqual(float(trace["beta"].max()), 45.0, places=1)
        self.assertAlmostEqual(float(trace["beta"][0]), 0.0)
        self.assertTrue(np.all(np.diff(trace["t_ms"]) > 0))

    def test_synthetic_reps_are_counted(self) -> None:
        engine, events = run_trace(synthetic_trace(5, noise_deg=0.5, seed=1))
        self.assertEqual(engine.reps, 5)
        self.assertEqual([e.rep_index for e in events if isinstance(e, RepCompleted)], [1, 2, 3, 4, 5])

    def test_goal_caps_synthetic_reps(self) -> None:
        engine, _ = run_trace(synthetic_trace(6, noise_deg=0.5), EngineConfig(goal=4))
        self.assertEqual(engine.reps, 4)

    def test_orientation_csv(self) -> None:
        path = self.csv("t_ms,beta\n0,0\n500,35\n900,4\n1000,32\n1150,3\n1400,3\n")
        engine, _ = run_trace(load_trace(path), EngineConfig(alpha=1.0))
        self.assertEqual(engine.reps, 2)

    def test_acceleration_csv(self) -> None:
        path = self.csv("t_ms,x,y,z\n0,0,0,9.81\n500,0,9.81,9.81\n900,0,0,9.81\n")
        engine, _ = run_trace(load_trace(path), EngineConfig(alpha=1.0))
        self.assertEqual(engine.reps, 1)

    def test_windowed_calibration_during_replay(self) -> None:
        path = self.csv("t_ms,beta\n" + "".join(f"{t},10\n" for t in range(0, 1000, 16)))
        config = EngineConfig(alpha=1.0, calibration_policy=CalibrationPolicy.WINDOWED)
        engine, events = run_trace(load_trace(path), config, calibrate_at_ms=0)

        finished = [e for e in events if isinstance(e, CalibrationFinished)]
        self.assertEqual(len(finished), 1)
        self.assertTrue(finished[0].ok)
        self.assertAlmostEqual(engine.ctx.baseline.neutral_angle_deg, 10.0)

    def test_missing_columns(self) -> None:
        with self.assertRaises(ValueError):
            load_trace(self.csv("t_ms,gamma\n0,1\n16,2\n"))
        with self.assertRaises(ValueError):
            load_trace(self.csv("time,beta\n0,1\n16,2\n"))

    def test_main_with_synthetic_trace(self) -> None:
        self.assertEqual(main(["--synthetic", "2", "--noise", "0.5"]), 0)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
