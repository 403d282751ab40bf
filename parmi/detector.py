"""
Hysteresis rep detector.

Two phases, NEUTRAL and BENT, with no terminal state:

    NEUTRAL -> BENT     when |relative| >= threshold_deg (nothing counted)
    BENT    -> NEUTRAL  when |relative| <= hysteresis_deg and the debounce
                        interval since the last counted rep has elapsed;
                        this transition counts the rep

Between the two bounds is a dead zone where neither transition fires, so a
trace jittering near the threshold cannot chatter. If the angle is back in
the band before the debounce has elapsed the machine stays BENT and checks
again on later ticks. A suppressed excursion is never counted retroactively.
"""

from dataclasses import replace
from typing import List, Tuple

from .events import EngineEvent, GoalReached, PhaseChanged, RepCompleted
from .session import MotionPhase, RepSession
from .tempo import beat_for


def step(session: RepSession, relative_angle_deg: float, now_ms: int) -> Tuple[RepSession, List[EngineEvent]]:
    """
    Advance the detector by one tick.

    Args:
        session: Current session state
        relative_angle_deg: Filtered angle minus the calibrated baseline
        now_ms: Tick time, non-decreasing within a session

    Returns:
        (new_session, events) where events holds at most one PhaseChanged,
        one RepCompleted and one GoalReached
    """
    abs_rel = abs(relative_angle_deg)
    events: List[EngineEvent] = []

    if session.phase is MotionPhase.NEUTRAL:
        if abs_rel >= session.threshold_deg:
            session = replace(session, phase=MotionPhase.BENT)
            events.append(PhaseChanged(MotionPhase.BENT))

    elif session.phase is MotionPhase.BENT:
        if abs_rel <= session.hysteresis_deg and session.debounce_elapsed(now_ms):
            was_at_goal = session.goal_reached
            reps = min(session.goal, session.reps + 1)
            session = replace(
                session,
                reps=reps,
                phase=MotionPhase.NEUTRAL,
                last_peak_timestamp_ms=now_ms,
            )
            events.append(PhaseChanged(MotionPhase.NEUTRAL))
            if not was_at_goal:
                events.append(RepCompleted(rep_index=reps, timestamp_ms=now_ms, beat=beat_for(reps)))
                if session.goal_reached:
                    events.append(GoalReached(reps=reps, goal=session.goal))

    else:
        raise AssertionError(f"unhandled phase {session.phase!r}")

    return session, events


class RepDetector:
    """
    Stateful wrapper around step() for callers that feed one angle at a time.

    Usage:
        detector = RepDetector(RepSession(goal=10))
        events = detector.update(relative_angle_deg, now_ms)
        print(detector.session.reps)
    """

    def __init__(self, session: RepSession):
        self.session = session

    def update(self, relative_angle_deg: float, now_ms: int) -> List[EngineEvent]:
        self.session, events = step(self.session, relative_angle_deg, now_ms)
        return events

    @property
    def reps(self) -> int:
        return self.session.reps

    @property
    def phase(self) -> MotionPhase:
        return self.session.phase
