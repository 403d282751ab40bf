"""
Configuration for the Parmi rep engine and host bridge.

Tuning constants live here as module-level values. Deployment settings can be
overridden through PARMI_* environment variables. EngineConfig is the
validated bundle handed to the engine; out-of-range values are clamped and
values that break an invariant are rejected.
"""

import math
import os
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict

from .errors import InvalidConfiguration

# =============================================================================
# Engine constants
# =============================================================================

GOAL_MIN = 1
GOAL_MAX = 200
DEFAULT_GOAL = 30

THRESHOLD_MIN_DEG = 10.0
THRESHOLD_MAX_DEG = 60.0
DEFAULT_THRESHOLD_DEG = 30.0
DEFAULT_HYSTERESIS_DEG = 6.0

DEFAULT_MIN_REP_INTERVAL_MS = 400
DEFAULT_ALPHA = 0.12

# A source with no update for this long no longer counts as active
STALE_AFTER_MS = 2000

CALIBRATION_SAMPLES = 24
CALIBRATION_INTERVAL_MS = 12

TEMPO_BATCH_SIZE = 30

# =============================================================================
# Host bridge settings
# =============================================================================

HOST = os.getenv("PARMI_HOST", "0.0.0.0")
PORT = int(os.getenv("PARMI_PORT", "8765"))
TICK_RATE_HZ = max(1.0, float(os.getenv("PARMI_TICK_HZ", "60")))
STATUS_INTERVAL_SEC = 0.1  # 10 Hz
LOG_LEVEL = os.getenv("PARMI_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class CalibrationPolicy(str, Enum):
    INSTANTANEOUS = "instantaneous"
    WINDOWED = "windowed"


def _policy_from_env() -> CalibrationPolicy:
    raw = os.getenv("PARMI_CALIBRATION", CalibrationPolicy.INSTANTANEOUS.value).lower()
    try:
        return CalibrationPolicy(raw)
    except ValueError:
        return CalibrationPolicy.INSTANTANEOUS


CALIBRATION_POLICY = _policy_from_env()


def clamp(v, lo, hi):
    return lo if v < lo else hi if v > hi else v


def clamp_goal(goal) -> int:
    """Clamp a requested goal into [GOAL_MIN, GOAL_MAX]."""
    # int() raises OverflowError for +/-inf, which JSON "Infinity" decodes to
    try:
        value = int(goal)
    except (TypeError, ValueError, OverflowError) as exc:
        raise InvalidConfiguration(f"goal must be an integer, got {goal!r}") from exc
    return clamp(value, GOAL_MIN, GOAL_MAX)


def clamp_threshold(threshold_deg) -> float:
    """Clamp a bend threshold into [THRESHOLD_MIN_DEG, THRESHOLD_MAX_DEG]."""
    try:
        value = float(threshold_deg)
    except (TypeError, ValueError) as exc:
        raise InvalidConfiguration(f"threshold_deg must be a number, got {threshold_deg!r}") from exc
    if not math.isfinite(value):
        raise InvalidConfiguration(f"threshold_deg must be finite, got {value}")
    return clamp(value, THRESHOLD_MIN_DEG, THRESHOLD_MAX_DEG)


@dataclass(frozen=True)
class EngineConfig:
    """Validated engine parameters.

    Attributes:
        goal: Rep goal, clamped to [1, 200].
        threshold_deg: Bend magnitude that enters BENT, clamped to [10, 60].
        hysteresis_deg: Band around the baseline that re-enters NEUTRAL.
            Must stay strictly below threshold_deg.
        min_rep_interval_ms: Minimum time between two counted reps.
        alpha: Low-pass filter gain in (0, 1].
        stale_after_ms: Timeout after which a sensor source is inactive.
        calibration_policy: Instantaneous or windowed calibration.
        calibration_samples: Number of samples in a calibration window.
        calibration_interval_ms: Spacing between windowed samples.
        debounce_first_rep: When true the first rep is debounced against
            time 0 instead of being exempt.
    """

    goal: int = DEFAULT_GOAL
    threshold_deg: float = DEFAULT_THRESHOLD_DEG
    hysteresis_deg: float = DEFAULT_HYSTERESIS_DEG
    min_rep_interval_ms: int = DEFAULT_MIN_REP_INTERVAL_MS
    alpha: float = DEFAULT_ALPHA
    stale_after_ms: int = STALE_AFTER_MS
    calibration_policy: CalibrationPolicy = CalibrationPolicy.INSTANTANEOUS
    calibration_samples: int = CALIBRATION_SAMPLES
    calibration_interval_ms: int = CALIBRATION_INTERVAL_MS
    debounce_first_rep: bool = False

    def __post_init__(self):
        object.__setattr__(self, "goal", clamp_goal(self.goal))
        object.__setattr__(self, "threshold_deg", clamp_threshold(self.threshold_deg))
        object.__setattr__(self, "calibration_policy", CalibrationPolicy(self.calibration_policy))

        if not math.isfinite(self.hysteresis_deg) or self.hysteresis_deg < 0:
            raise InvalidConfiguration(f"hysteresis_deg must be finite and >= 0, got {self.hysteresis_deg}")
        if self.hysteresis_deg >= self.threshold_deg:
            raise InvalidConfiguration(
                f"hysteresis_deg ({self.hysteresis_deg}) must be below threshold_deg ({self.threshold_deg})"
            )
        if self.min_rep_interval_ms < 0:
            raise InvalidConfiguration(f"min_rep_interval_ms must be >= 0, got {self.min_rep_interval_ms}")
        if not (0.0 < self.alpha <= 1.0):
            raise InvalidConfiguration(f"alpha must be in (0, 1], got {self.alpha}")
        if self.stale_after_ms <= 0:
            raise InvalidConfiguration(f"stale_after_ms must be > 0, got {self.stale_after_ms}")
        if self.calibration_samples < 1 or self.calibration_interval_ms < 0:
            raise InvalidConfiguration("calibration window needs >= 1 sample and a non-negative interval")

    def as_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["calibration_policy"] = self.calibration_policy.value
        return out
