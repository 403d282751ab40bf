"""
Parmi repetition engine.

One tick runs the whole pipeline synchronously:

    latest samples -> resolve_angle -> low-pass filter -> minus baseline
        -> detector -> session counter (+ tempo)

All engine state lives in an immutable EngineContext. tick() and the command
functions take a context and return a new one together with the events they
produced, so the pipeline can be driven and tested without any host sensor.

RepEngine wraps a context and the latest-sample cache for hosts that push
sensor readings as they arrive and call update() once per frame.

Usage:
    engine = RepEngine(EngineConfig(goal=15))
    engine.start()
    engine.push_orientation(beta, now_ms)      # from the sensor callback
    events = engine.update(now_ms)             # once per frame
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from . import detector
from . import session as counter
from .calibration import CalibrationBaseline, CalibrationWindow, calibrate_instantaneous
from .catalog import describe, get_exercise, get_intensity
from .config import CalibrationPolicy, EngineConfig
from .errors import CalibrationBusy
from .events import (
    CalibrationFinished,
    EngineEvent,
    FilteredAngleUpdated,
    RepCompleted,
    SignalActiveChanged,
)
from .session import MotionPhase, RepSession
from .smoothing import FilterState
from .sources import AccelerationSample, LatestSampleCache, OrientationSample, SensorSample, SignalSource
from .tempo import TempoState

logger = logging.getLogger(__name__)

TickResult = Tuple["EngineContext", List[EngineEvent]]


@dataclass(frozen=True)
class EngineContext:
    config: EngineConfig = field(default_factory=EngineConfig)
    filter: FilterState = field(default_factory=FilterState)
    baseline: CalibrationBaseline = field(default_factory=CalibrationBaseline)
    session: RepSession = field(default_factory=RepSession)
    tempo: TempoState = field(default_factory=TempoState)
    running: bool = False
    signal_active: bool = False
    source: SignalSource = SignalSource.UNAVAILABLE
    calibration: Optional[CalibrationWindow] = None
    last_tick_ms: Optional[int] = None

    @classmethod
    def create(cls, config: Optional[EngineConfig] = None, running: bool = False) -> "EngineContext":
        config = config or EngineConfig()
        return cls(
            config=config,
            filter=FilterState(alpha=config.alpha),
            session=RepSession.from_config(config),
            running=running,
        )

    @property
    def calibrating(self) -> bool:
        return self.calibration is not None


# =============================================================================
# Tick
# =============================================================================

def tick(ctx: EngineContext, now_ms: int, sample: SensorSample, signal_active: bool) -> TickResult:
    """
    Run the pipeline once.

    Args:
        ctx: Current context
        now_ms: Tick time in milliseconds
        sample: Resolved tilt sample for this tick
        signal_active: Whether any sensor source is fresh

    Returns:
        (new_context, events)
    """
    events: List[EngineEvent] = []

    if ctx.last_tick_ms is not None and now_ms < ctx.last_tick_ms:
        logger.warning("Tick time went backwards (%d < %d), holding previous time", now_ms, ctx.last_tick_ms)
        now_ms = ctx.last_tick_ms
    ctx = replace(ctx, last_tick_ms=now_ms, source=sample.source)

    if signal_active != ctx.signal_active:
        ctx = replace(ctx, signal_active=signal_active)
        events.append(SignalActiveChanged(signal_active))
        logger.info("Signal %s", "active" if signal_active else "lost")

    # The filter runs while paused so resuming starts from a fresh state
    if sample.available:
        ctx = replace(ctx, filter=ctx.filter.update(sample.angle_deg))
        events.append(FilteredAngleUpdated(ctx.filter.filtered_angle_deg))

    if ctx.calibration is not None:
        window = ctx.calibration.offer(replace(sample, timestamp_ms=now_ms))
        if window.done:
            baseline, outcome = window.finish(ctx.baseline)
            ctx = replace(ctx, baseline=baseline, calibration=None)
            events.append(CalibrationFinished(outcome.ok, outcome.neutral_angle_deg, outcome.samples, outcome.reason))
        else:
            ctx = replace(ctx, calibration=window)

    if ctx.running and sample.available:
        relative = ctx.baseline.relative(ctx.filter.filtered_angle_deg)
        new_session, detected = detector.step(ctx.session, relative, now_ms)
        tempo = ctx.tempo
        for event in detected:
            events.append(event)
            if isinstance(event, RepCompleted):
                logger.debug("Rep %d at %d ms", event.rep_index, event.timestamp_ms)
                tempo, tempo_event = tempo.record(event.rep_index, event.timestamp_ms)
                if tempo_event is not None:
                    events.append(tempo_event)
        ctx = replace(ctx, session=new_session, tempo=tempo)

    return ctx, events


# =============================================================================
# Commands
# =============================================================================

def start(ctx: EngineContext) -> EngineContext:
    return replace(ctx, running=True)


def stop(ctx: EngineContext) -> EngineContext:
    return replace(ctx, running=False)


def reset(ctx: EngineContext) -> EngineContext:
    """Zero reps and phase; baseline, goal and thresholds survive."""
    return replace(
        ctx,
        session=counter.reset(ctx.session, ctx.config.debounce_first_rep, ctx.last_tick_ms or 0),
        tempo=ctx.tempo.cleared(),
    )


def set_goal(ctx: EngineContext, goal) -> EngineContext:
    return replace(ctx, session=counter.set_goal(ctx.session, goal))


def calibrate(ctx: EngineContext, now_ms: int) -> TickResult:
    """
    Establish the neutral baseline using the configured policy.

    Instantaneous calibration completes immediately. Windowed calibration
    starts a window that later ticks fill; its result arrives as a
    CalibrationFinished event.

    Raises:
        CalibrationBusy: if a window is already in flight
        CalibrationFailed: instantaneous policy with no valid sample yet
    """
    if ctx.calibration is not None:
        raise CalibrationBusy("calibration window already in progress")

    if ctx.config.calibration_policy is CalibrationPolicy.WINDOWED:
        window = CalibrationWindow.start(
            now_ms,
            target_samples=ctx.config.calibration_samples,
            interval_ms=ctx.config.calibration_interval_ms,
        )
        return replace(ctx, calibration=window), []

    baseline = calibrate_instantaneous(ctx.filter)
    logger.info("Calibrated neutral angle %.2f deg", baseline.neutral_angle_deg)
    return replace(ctx, baseline=baseline), [CalibrationFinished(True, baseline.neutral_angle_deg, 1)]


def cancel_calibration(ctx: EngineContext) -> TickResult:
    """
    Drop an in-flight window; the baseline stays as it was.

    A cancelled window still ends in a failed CalibrationFinished with
    reason "cancelled". Without a window this is a no-op.
    """
    window = ctx.calibration
    if window is None:
        return ctx, []
    logger.info("Calibration cancelled after %d samples", window.attempts)
    event = CalibrationFinished(False, ctx.baseline.neutral_angle_deg, len(window.values), "cancelled")
    return replace(ctx, calibration=None), [event]


# =============================================================================
# Stateful facade
# =============================================================================

class RepEngine:
    """
    Owns the latest-sample cache and the engine context.

    Sensor callbacks call push_orientation() / push_acceleration() whenever a
    reading arrives; the frame loop calls update() once per tick. update() is
    the only place the session changes.

    Events raised by commands outside a tick (a cancelled calibration window)
    are queued and returned ahead of the next update()'s own events.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.cache = LatestSampleCache(stale_after_ms=self.config.stale_after_ms)
        self.ctx = EngineContext.create(self.config)
        self.exercise: Optional[str] = None
        self.intensity: Optional[str] = None
        self._pending: List[EngineEvent] = []

    # Sensor input -----------------------------------------------------------

    def push_orientation(self, beta_degrees, now_ms: int) -> bool:
        return self.cache.push_orientation(OrientationSample(beta_degrees, now_ms), now_ms)

    def push_acceleration(self, x, y, z, now_ms: int) -> bool:
        return self.cache.push_acceleration(AccelerationSample(x, y, z, now_ms), now_ms)

    def update(self, now_ms: int) -> List[EngineEvent]:
        sample = self.cache.resolve(now_ms)
        self.ctx, events = tick(self.ctx, now_ms, sample, self.cache.signal_active(now_ms))
        pending, self._pending = self._pending, []
        return pending + events

    # Commands ---------------------------------------------------------------

    def start(self):
        self.ctx = start(self.ctx)

    def stop(self):
        self.ctx = stop(self.ctx)

    def reset(self):
        self.ctx = reset(self.ctx)
        logger.info("Session reset")

    def set_goal(self, goal) -> int:
        self.ctx = set_goal(self.ctx, goal)
        logger.info("Goal set to %d", self.ctx.session.goal)
        return self.ctx.session.goal

    def calibrate(self, now_ms: int) -> List[EngineEvent]:
        self.ctx, events = calibrate(self.ctx, now_ms)
        return events

    def cancel_calibration(self) -> bool:
        """Cancel a running window. Returns whether one was running."""
        self.ctx, events = cancel_calibration(self.ctx)
        self._pending.extend(events)
        return bool(events)

    def select_exercise(self, exercise: str, intensity: str) -> str:
        """Start a fresh exercise whose goal comes from the intensity preset."""
        get_exercise(exercise)
        preset = get_intensity(intensity)
        self.exercise = exercise
        self.intensity = intensity
        self.ctx = set_goal(self._fresh_context(), preset.reps)
        subtitle = describe(exercise, intensity)
        logger.info("Exercise selected: %s", subtitle)
        return subtitle

    def leave_exercise(self):
        """Back to selection: the session and the baseline are discarded."""
        self.exercise = None
        self.intensity = None
        self.ctx = self._fresh_context()

    def _fresh_context(self) -> EngineContext:
        self.cancel_calibration()
        fresh = EngineContext.create(self.config)
        # Sensor-side state carries over so the filter does not restart from 0
        return replace(
            fresh,
            filter=self.ctx.filter,
            signal_active=self.ctx.signal_active,
            source=self.ctx.source,
            last_tick_ms=self.ctx.last_tick_ms,
            session=counter.reset(fresh.session, self.config.debounce_first_rep, self.ctx.last_tick_ms or 0),
        )

    # Read-only views -------------------------------------------------------

    @property
    def reps(self) -> int:
        return self.ctx.session.reps

    @property
    def goal(self) -> int:
        return self.ctx.session.goal

    @property
    def phase(self) -> MotionPhase:
        return self.ctx.session.phase

    def status(self) -> Dict[str, Any]:
        ctx = self.ctx
        return {
            "type": "status",
            "running": ctx.running,
            "reps": ctx.session.reps,
            "goal": ctx.session.goal,
            "phase": ctx.session.phase.value,
            "angle_deg": round(ctx.filter.filtered_angle_deg, 1),
            "neutral_angle_deg": round(ctx.baseline.neutral_angle_deg, 2),
            "calibrated": ctx.baseline.calibrated,
            "calibrating": ctx.calibrating,
            "signal_active": ctx.signal_active,
            "source": ctx.source.value,
            "bpm": ctx.tempo.latest_bpm or None,
            "exercise": self.exercise,
            "intensity": self.intensity,
        }
