import unittest

import numpy as np

from parmi.config import EngineConfig
from parmi.detector import RepDetector, step
from parmi.events import GoalReached, PhaseChanged, RepCompleted
from parmi.session import MotionPhase, RepSession


def rep_events(events):
    return [e for e in events if isinstance(e, RepCompleted)]


class RepDetectorTests(unittest.TestCase):
    def feed(self, detector, trace):
        events = []
        for t, angle in trace:
            events.extend(detector.update(angle, t))
        return events

    def test_reference_scenario_counts_two_reps(self) -> None:
        detector = RepDetector(RepSession(goal=30, threshold_deg=30.0, hysteresis_deg=6.0, min_rep_interval_ms=400))

        self.assertEqual(detector.update(0.0, 0), [])
        self.assertEqual(detector.update(35.0, 500), [PhaseChanged(MotionPhase.BENT)])

        events = detector.update(4.0, 900)
        self.assertEqual(rep_events(events), [RepCompleted(rep_index=1, timestamp_ms=900, beat=0)])
        self.assertIs(detector.phase, MotionPhase.NEUTRAL)
        self.assertEqual(detector.session.last_peak_timestamp_ms, 900)

        detector.update(32.0, 1000)
        self.assertIs(detector.phase, MotionPhase.BENT)

        # Back in the band but only 250 ms after the last rep
        self.assertEqual(detector.update(3.0, 1150), [])
        self.assertIs(detector.phase, MotionPhase.BENT)

        events = detector.update(3.0, 1400)
        self.assertEqual(rep_events(events), [RepCompleted(rep_index=2, timestamp_ms=1400, beat=1)])
        self.assertEqual(detector.reps, 2)

    def test_single_cycle_counts_once(self) -> None:
        detector = RepDetector(RepSession())
        trace = [(0, 0.0), (100, 10.0), (200, 31.0), (300, 45.0), (400, 20.0), (500, 5.0), (600, 0.0), (700, 2.0)]
        events = self.feed(detector, trace)
        self.assertEqual(len(rep_events(events)), 1)
        self.assertEqual(detector.reps, 1)

    def test_negative_bends_count_too(self) -> None:
        detector = RepDetector(RepSession())
        self.feed(detector, [(0, 0.0), (100, -40.0), (600, -1.0)])
        self.assertEqual(detector.reps, 1)

    def test_dead_zone_oscillation_does_not_chatter(self) -> None:
        detector = RepDetector(RepSession())
        detector.update(35.0, 0)
        events = self.feed(detector, [(1000 + 500 * i, 10.0 if i % 2 else 25.0) for i in range(40)])
        self.assertEqual(events, [])
        self.assertIs(detector.phase, MotionPhase.BENT)
        self.assertEqual(detector.reps, 0)

    def test_neutral_dead_zone_does_not_enter_bent(self) -> None:
        detector = RepDetector(RepSession())
        events = self.feed(detector, [(i * 100, 29.9 if i % 2 else 6.1) for i in range(20)])
        self.assertEqual(events, [])
        self.assertIs(detector.phase, MotionPhase.NEUTRAL)

    def test_fast_cycles_after_a_rep_are_suppressed(self) -> None:
        detector = RepDetector(RepSession())
        self.feed(detector, [(0, 0.0), (500, 35.0), (900, 2.0)])
        self.assertEqual(detector.reps, 1)

        # Two more bend-and-return cycles within 400 ms of the counted rep
        events = self.feed(detector, [(950, 35.0), (1000, 3.0), (1050, 35.0), (1100, 3.0), (1250, 3.0)])
        self.assertEqual(rep_events(events), [])
        self.assertEqual(detector.reps, 1)
        self.assertIs(detector.phase, MotionPhase.BENT)

    def test_first_rep_is_exempt_from_debounce_by_default(self) -> None:
        detector = RepDetector(RepSession.from_config(EngineConfig()))
        self.feed(detector, [(50, 35.0), (120, 0.0)])
        self.assertEqual(detector.reps, 1)

    def test_first_rep_can_be_debounced_from_time_zero(self) -> None:
        detector = RepDetector(RepSession.from_config(EngineConfig(debounce_first_rep=True)))
        self.feed(detector, [(50, 35.0), (120, 0.0)])
        self.assertEqual(detector.reps, 0)
        self.assertIs(detector.phase, MotionPhase.BENT)

        self.feed(detector, [(400, 0.0)])
        self.assertEqual(detector.reps, 1)

    def test_count_stops_at_goal(self) -> None:
        detector = RepDetector(RepSession(goal=2))
        events = []
        for i in range(5):
            t0 = i * 1000
            events.extend(self.feed(detector, [(t0, 40.0), (t0 + 500, 0.0)]))

        self.assertEqual(detector.reps, 2)
        self.assertEqual([e.rep_index for e in rep_events(events)], [1, 2])
        self.assertEqual([e for e in events if isinstance(e, GoalReached)], [GoalReached(reps=2, goal=2)])
        # The phase keeps cycling after the goal
        self.assertIs(detector.phase, MotionPhase.NEUTRAL)

    def test_reps_stay_within_bounds_for_random_traces(self) -> None:
        rng = np.random.default_rng(7)
        for goal in (1, 3, 10):
            session = RepSession(goal=goal)
            t = 0
            for angle in rng.uniform(-60.0, 60.0, size=2000):
                t += int(rng.integers(0, 200))
                session, _ = step(session, float(angle), t)
                self.assertGreaterEqual(session.reps, 0)
                self.assertLessEqual(session.reps, goal)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
