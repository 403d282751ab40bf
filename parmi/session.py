"""
Rep session state and the session counter operations.

RepSession is created when an exercise starts and replaced tick by tick by
the detector. Only reset() lowers reps; set_goal() clamps them down when the
ceiling drops below the current count.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from .config import (
    DEFAULT_GOAL,
    DEFAULT_HYSTERESIS_DEG,
    DEFAULT_MIN_REP_INTERVAL_MS,
    DEFAULT_THRESHOLD_DEG,
    EngineConfig,
    clamp_goal,
)
from .errors import InvalidConfiguration


class MotionPhase(str, Enum):
    NEUTRAL = "neutral"
    BENT = "bent"


@dataclass(frozen=True)
class RepSession:
    """
    Attributes:
        reps: Counted reps, always within [0, goal]
        goal: Rep ceiling
        phase: Current motion phase
        last_peak_timestamp_ms: Time of the last counted rep, or None if no
            rep has been counted yet
        threshold_deg: Bend magnitude that enters BENT
        hysteresis_deg: Band that re-enters NEUTRAL
        min_rep_interval_ms: Debounce between counted reps
    """

    reps: int = 0
    goal: int = DEFAULT_GOAL
    phase: MotionPhase = MotionPhase.NEUTRAL
    last_peak_timestamp_ms: Optional[int] = None
    threshold_deg: float = DEFAULT_THRESHOLD_DEG
    hysteresis_deg: float = DEFAULT_HYSTERESIS_DEG
    min_rep_interval_ms: int = DEFAULT_MIN_REP_INTERVAL_MS

    def __post_init__(self):
        if self.hysteresis_deg >= self.threshold_deg:
            raise InvalidConfiguration(
                f"hysteresis_deg ({self.hysteresis_deg}) must be below threshold_deg ({self.threshold_deg})"
            )
        if not (0 <= self.reps <= self.goal):
            raise InvalidConfiguration(f"reps {self.reps} outside [0, {self.goal}]")

    @classmethod
    def from_config(cls, config: EngineConfig) -> "RepSession":
        return cls(
            goal=config.goal,
            # Seeding at 0 puts the first rep under the debounce too
            last_peak_timestamp_ms=0 if config.debounce_first_rep else None,
            threshold_deg=config.threshold_deg,
            hysteresis_deg=config.hysteresis_deg,
            min_rep_interval_ms=config.min_rep_interval_ms,
        )

    @property
    def goal_reached(self) -> bool:
        return self.reps >= self.goal

    def debounce_elapsed(self, now_ms: int) -> bool:
        if self.last_peak_timestamp_ms is None:
            return True
        return now_ms - self.last_peak_timestamp_ms >= self.min_rep_interval_ms


def reset(session: RepSession, debounce_first_rep: bool = False, now_ms: int = 0) -> RepSession:
    """Zero the count and return to NEUTRAL. Goal and thresholds are kept.

    With debounce_first_rep the next rep is debounced against now_ms, the
    time of the reset.
    """
    return replace(
        session,
        reps=0,
        phase=MotionPhase.NEUTRAL,
        last_peak_timestamp_ms=now_ms if debounce_first_rep else None,
    )


def set_goal(session: RepSession, goal) -> RepSession:
    """Clamp the goal to its bounds and pull reps down to it if needed."""
    new_goal = clamp_goal(goal)
    return replace(session, goal=new_goal, reps=min(session.reps, new_goal))
