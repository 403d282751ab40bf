"""
Calibration store for Parmi.

Holds the neutral baseline angle that bend magnitude is measured against.
Two policies are available:

- Instantaneous: take the current filtered angle. No added latency, and the
  filter already damps noise. This is the default.
- Windowed: average N raw samples taken at a fixed short interval. More robust
  to one badly timed sample, but only one window may be in flight at a time.

A calibration that sees no valid sample fails and leaves the baseline as it
was, never 0 or NaN.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

import numpy as np

from .config import CALIBRATION_INTERVAL_MS, CALIBRATION_SAMPLES
from .errors import CalibrationFailed
from .smoothing import FilterState
from .sources import SensorSample

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationBaseline:
    neutral_angle_deg: float = 0.0
    calibrated: bool = False

    def relative(self, angle_deg: float) -> float:
        return angle_deg - self.neutral_angle_deg


@dataclass(frozen=True)
class CalibrationOutcome:
    ok: bool
    neutral_angle_deg: float
    samples: int
    reason: Optional[str] = None


def calibrate_instantaneous(filter_state: FilterState) -> CalibrationBaseline:
    """
    Use the current filtered angle as the new baseline.

    Raises:
        CalibrationFailed: if the filter has never seen a valid sample
    """
    if not filter_state.primed:
        raise CalibrationFailed("no valid samples received yet")
    return CalibrationBaseline(neutral_angle_deg=filter_state.filtered_angle_deg, calibrated=True)


@dataclass(frozen=True)
class CalibrationWindow:
    """
    Windowed-average calibration in progress.

    The window is driven by the engine tick: each offer() takes at most one
    sample per interval_ms. Every attempt counts toward target_samples, valid
    or not, so a window always completes even without signal.

    Usage:
        window = CalibrationWindow.start(now_ms)
        window = window.offer(sample)          # once per tick
        if window.done:
            baseline, outcome = window.finish(baseline)
    """

    started_at_ms: int
    target_samples: int = CALIBRATION_SAMPLES
    interval_ms: int = CALIBRATION_INTERVAL_MS
    attempts: int = 0
    values: Tuple[float, ...] = ()
    last_attempt_ms: Optional[int] = None

    @classmethod
    def start(
        cls,
        now_ms: int,
        target_samples: int = CALIBRATION_SAMPLES,
        interval_ms: int = CALIBRATION_INTERVAL_MS,
    ) -> "CalibrationWindow":
        logger.info("Calibration window started (%d samples every %d ms)", target_samples, interval_ms)
        return cls(started_at_ms=now_ms, target_samples=target_samples, interval_ms=interval_ms)

    @property
    def done(self) -> bool:
        return self.attempts >= self.target_samples

    def offer(self, sample: SensorSample) -> "CalibrationWindow":
        if self.done:
            return self
        if self.last_attempt_ms is not None and sample.timestamp_ms - self.last_attempt_ms < self.interval_ms:
            return self

        values = self.values
        if sample.available and np.isfinite(sample.angle_deg):
            values = values + (float(sample.angle_deg),)
        return replace(
            self,
            attempts=self.attempts + 1,
            values=values,
            last_attempt_ms=sample.timestamp_ms,
        )

    def finish(self, baseline: CalibrationBaseline) -> Tuple[CalibrationBaseline, CalibrationOutcome]:
        """Average the collected samples into a new baseline."""
        if not self.values:
            logger.warning("Calibration failed: no valid samples in %d attempts", self.attempts)
            return baseline, CalibrationOutcome(
                ok=False,
                neutral_angle_deg=baseline.neutral_angle_deg,
                samples=0,
                reason="no_valid_samples",
            )

        neutral = float(np.mean(np.asarray(self.values, dtype=np.float64)))
        logger.info("Calibrated neutral angle %.2f deg from %d samples", neutral, len(self.values))
        return (
            CalibrationBaseline(neutral_angle_deg=neutral, calibrated=True),
            CalibrationOutcome(ok=True, neutral_angle_deg=neutral, samples=len(self.values)),
        )
