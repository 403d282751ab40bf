"""
Parmi Rep Engine

Counts exercise repetitions from a noisy device tilt stream:
- resolve_angle: picks orientation or gravity-derived tilt per tick
- FilterState: exponential low-pass filter
- CalibrationWindow / calibrate_instantaneous: neutral baseline
- detector.step: hysteresis + debounce state machine
- RepEngine: owns the sample cache and runs the whole pipeline per tick

Usage:
    from parmi import RepEngine, EngineConfig

    engine = RepEngine(EngineConfig(goal=15))
    engine.start()

    # Sensor callbacks:
    engine.push_orientation(beta, now_ms)
    # Frame loop:
    for event in engine.update(now_ms):
        ...
"""

__version__ = '1.0.0'

from .config import EngineConfig, CalibrationPolicy
from .errors import (
    ParmiError,
    InvalidSample,
    InvalidConfiguration,
    CalibrationFailed,
    CalibrationBusy,
)
from .sources import (
    SignalSource,
    OrientationSample,
    AccelerationSample,
    SensorSample,
    LatestSampleCache,
    resolve_angle,
    wrap_angle,
)
from .smoothing import FilterState, low_pass
from .calibration import CalibrationBaseline, CalibrationWindow, calibrate_instantaneous
from .session import MotionPhase, RepSession
from .detector import RepDetector
from .engine import EngineContext, RepEngine, tick
from .events import (
    EngineEvent,
    FilteredAngleUpdated,
    PhaseChanged,
    RepCompleted,
    SignalActiveChanged,
    GoalReached,
    CalibrationFinished,
    TempoUpdated,
)

__all__ = [
    # Config / errors
    'EngineConfig',
    'CalibrationPolicy',
    'ParmiError',
    'InvalidSample',
    'InvalidConfiguration',
    'CalibrationFailed',
    'CalibrationBusy',

    # Signal
    'SignalSource',
    'OrientationSample',
    'AccelerationSample',
    'SensorSample',
    'LatestSampleCache',
    'resolve_angle',
    'wrap_angle',

    # Filter / calibration
    'FilterState',
    'low_pass',
    'CalibrationBaseline',
    'CalibrationWindow',
    'calibrate_instantaneous',

    # Detection
    'MotionPhase',
    'RepSession',
    'RepDetector',
    'EngineContext',
    'RepEngine',
    'tick',

    # Events
    'EngineEvent',
    'FilteredAngleUpdated',
    'PhaseChanged',
    'RepCompleted',
    'SignalActiveChanged',
    'GoalReached',
    'CalibrationFinished',
    'TempoUpdated',
]
