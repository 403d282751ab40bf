"""
Events produced by the engine.

Every event serializes to a flat JSON-ready dict with a snake_case "type"
field, the same message shape the host bridge sends to its clients.
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Dict, Optional

from .session import MotionPhase


@dataclass(frozen=True)
class EngineEvent:
    type: ClassVar[str] = "event"

    def to_message(self) -> Dict[str, Any]:
        msg = {"type": self.type}
        for f in fields(self):
            value = getattr(self, f.name)
            msg[f.name] = value.value if isinstance(value, Enum) else value
        return msg


@dataclass(frozen=True)
class FilteredAngleUpdated(EngineEvent):
    type: ClassVar[str] = "filtered_angle"
    angle_degrees: float


@dataclass(frozen=True)
class PhaseChanged(EngineEvent):
    type: ClassVar[str] = "phase_changed"
    phase: MotionPhase


@dataclass(frozen=True)
class RepCompleted(EngineEvent):
    type: ClassVar[str] = "rep_completed"
    rep_index: int
    timestamp_ms: int
    beat: int = 0


@dataclass(frozen=True)
class SignalActiveChanged(EngineEvent):
    type: ClassVar[str] = "signal_active"
    active: bool


@dataclass(frozen=True)
class GoalReached(EngineEvent):
    type: ClassVar[str] = "goal_reached"
    reps: int
    goal: int


@dataclass(frozen=True)
class CalibrationFinished(EngineEvent):
    type: ClassVar[str] = "calibration"
    ok: bool
    neutral_angle_deg: float
    samples: int
    reason: Optional[str] = None


@dataclass(frozen=True)
class TempoUpdated(EngineEvent):
    type: ClassVar[str] = "tempo"
    bpm: int
    batch_size: int
