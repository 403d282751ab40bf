"""
Replay a recorded or synthetic tilt trace through the rep engine.

A trace is a CSV file with a header row and a t_ms column, plus either a
beta column (orientation) or x, y, z columns (acceleration including
gravity). Every row is pushed into the engine and followed by one tick.

Usage:
    parmi-replay trace.csv --goal 15
    parmi-replay --synthetic 12 --noise 2.0
"""

import argparse
import logging
from typing import List, Optional, Tuple

import numpy as np

from .config import LOG_FORMAT, LOG_LEVEL, CalibrationPolicy, EngineConfig
from .engine import RepEngine
from .events import CalibrationFinished, EngineEvent, RepCompleted, SignalActiveChanged, TempoUpdated

logger = logging.getLogger(__name__)

FRAME_MS = 16  # ~60 Hz host frame cadence


def load_trace(path: str) -> np.ndarray:
    """Load a CSV trace into a structured array with named columns."""
    trace = np.genfromtxt(path, delimiter=",", names=True, dtype=np.float64)
    trace = np.atleast_1d(trace)
    names = set(trace.dtype.names or ())
    if "t_ms" not in names:
        raise ValueError(f"{path}: trace needs a t_ms column")
    if "beta" not in names and not {"y", "z"} <= names:
        raise ValueError(f"{path}: trace needs a beta column or y and z columns")
    return trace


def synthetic_trace(
    reps: int,
    amplitude_deg: float = 45.0,
    period_ms: float = 2000.0,
    noise_deg: float = 2.0,
    rest_ms: float = 1000.0,
    seed: Optional[int] = 0,
) -> np.ndarray:
    """
    Generate an orientation trace of `reps` smooth bend-and-return cycles.

    Each cycle rises from 0 to amplitude_deg and back following a raised
    cosine, with Gaussian noise on top and a rest period at each end.
    """
    rng = np.random.default_rng(seed)
    total_ms = 2 * rest_ms + reps * period_ms
    t = np.arange(0.0, total_ms, FRAME_MS)

    phase_t = np.clip(t - rest_ms, 0.0, reps * period_ms)
    beta = amplitude_deg * 0.5 * (1.0 - np.cos(2.0 * np.pi * phase_t / period_ms))
    beta = beta + rng.normal(0.0, noise_deg, size=t.shape)

    trace = np.zeros(t.shape, dtype=[("t_ms", np.float64), ("beta", np.float64)])
    trace["t_ms"] = t
    trace["beta"] = beta
    return trace


def run_trace(
    trace: np.ndarray,
    config: Optional[EngineConfig] = None,
    calibrate_at_ms: Optional[float] = None,
) -> Tuple[RepEngine, List[EngineEvent]]:
    """
    Feed a trace through a fresh engine.

    Args:
        trace: Structured array from load_trace() or synthetic_trace()
        config: Engine configuration
        calibrate_at_ms: If set, calibrate on the first row at or after this time

    Returns:
        (engine, events) with every event the engine produced
    """
    engine = RepEngine(config)
    engine.start()
    names = trace.dtype.names
    use_beta = "beta" in names
    events: List[EngineEvent] = []
    calibrated = calibrate_at_ms is None

    for row in trace:
        now_ms = int(row["t_ms"])
        if use_beta:
            engine.push_orientation(float(row["beta"]), now_ms)
        else:
            x = float(row["x"]) if "x" in names else 0.0
            engine.push_acceleration(x, float(row["y"]), float(row["z"]), now_ms)

        events.extend(engine.update(now_ms))

        if not calibrated and now_ms >= calibrate_at_ms:
            events.extend(engine.calibrate(now_ms))
            calibrated = True

    return engine, events


def main(argv=None):
    parser = argparse.ArgumentParser(description="Replay a tilt trace through the Parmi rep engine")
    parser.add_argument("trace", nargs="?", help="CSV trace with t_ms and beta or x,y,z columns")
    parser.add_argument("--synthetic", type=int, metavar="REPS", help="generate a synthetic trace instead")
    parser.add_argument("--noise", type=float, default=2.0, help="synthetic noise std in degrees")
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--goal", type=int, default=EngineConfig.goal)
    parser.add_argument("--threshold", type=float, default=EngineConfig.threshold_deg)
    parser.add_argument("--calibrate-at", type=float, default=None, metavar="MS")
    parser.add_argument(
        "--calibration",
        choices=[p.value for p in CalibrationPolicy],
        default=CalibrationPolicy.INSTANTANEOUS.value,
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)

    if args.synthetic is not None:
        trace = synthetic_trace(args.synthetic, noise_deg=args.noise, seed=args.seed)
    elif args.trace:
        trace = load_trace(args.trace)
    else:
        parser.error("give a trace file or --synthetic REPS")

    config = EngineConfig(
        goal=args.goal,
        threshold_deg=args.threshold,
        calibration_policy=CalibrationPolicy(args.calibration),
    )
    engine, events = run_trace(trace, config, calibrate_at_ms=args.calibrate_at)

    print("\n--- REPLAY ---")
    for event in events:
        if isinstance(event, RepCompleted):
            print(f"rep={event.rep_index:3d}  t={event.timestamp_ms / 1000.0:7.3f}s")
        elif isinstance(event, TempoUpdated):
            print(f"bpm={event.bpm}  (batch of {event.batch_size})")
        elif isinstance(event, CalibrationFinished):
            print(f"calibration ok={event.ok}  neutral={event.neutral_angle_deg:.2f}")
        elif isinstance(event, SignalActiveChanged) and not event.active:
            print("signal lost")

    print(f"Total reps: {engine.reps}/{engine.goal}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
