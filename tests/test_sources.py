import math
import unittest

from parmi.sources import (
    AccelerationSample,
    LatestSampleCache,
    OrientationSample,
    SignalSource,
    resolve_angle,
    wrap_angle,
)


class WrapAngleTests(unittest.TestCase):
    def test_wraps_into_half_open_range(self) -> None:
        self.assertAlmostEqual(wrap_angle(190.0), -170.0)
        self.assertAlmostEqual(wrap_angle(-190.0), 170.0)
        self.assertAlmostEqual(wrap_angle(180.0), 180.0)
        self.assertAlmostEqual(wrap_angle(-180.0), 180.0)
        self.assertAlmostEqual(wrap_angle(540.0), 180.0)
        self.assertAlmostEqual(wrap_angle(12.5), 12.5)


class ResolveAngleTests(unittest.TestCase):
    def test_orientation_is_preferred(self) -> None:
        sample = resolve_angle(OrientationSample(20.0), AccelerationSample(0.0, 1.0, 1.0), 42)
        self.assertIs(sample.source, SignalSource.ORIENTATION)
        self.assertAlmostEqual(sample.angle_deg, 20.0)
        self.assertEqual(sample.timestamp_ms, 42)

    def test_orientation_is_wrapped(self) -> None:
        sample = resolve_angle(OrientationSample(270.0), None)
        self.assertAlmostEqual(sample.angle_deg, -90.0)

    def test_falls_back_to_gravity_tilt(self) -> None:
        sample = resolve_angle(None, AccelerationSample(0.0, 1.0, 1.0))
        self.assertIs(sample.source, SignalSource.ACCELERATION)
        self.assertAlmostEqual(sample.angle_deg, 45.0)

    def test_non_finite_orientation_falls_back(self) -> None:
        sample = resolve_angle(OrientationSample(math.nan), AccelerationSample(math.nan, 0.0, 9.81))
        self.assertIs(sample.source, SignalSource.ACCELERATION)
        self.assertAlmostEqual(sample.angle_deg, 0.0)

    def test_unavailable_without_any_valid_reading(self) -> None:
        sample = resolve_angle(OrientationSample(math.nan), AccelerationSample(0.0, math.inf, 1.0))
        self.assertIs(sample.source, SignalSource.UNAVAILABLE)
        self.assertEqual(sample.angle_deg, 0.0)
        self.assertFalse(sample.available)

        self.assertIs(resolve_angle(None, None).source, SignalSource.UNAVAILABLE)


class LatestSampleCacheTests(unittest.TestCase):
    def test_invalid_sample_is_dropped_and_last_good_kept(self) -> None:
        cache = LatestSampleCache()
        self.assertTrue(cache.push_orientation(OrientationSample(15.0), 0))
        self.assertFalse(cache.push_orientation(OrientationSample(math.nan), 10))
        self.assertEqual(cache.dropped, 1)

        sample = cache.resolve(20)
        self.assertIs(sample.source, SignalSource.ORIENTATION)
        self.assertAlmostEqual(sample.angle_deg, 15.0)

    def test_last_value_wins(self) -> None:
        cache = LatestSampleCache()
        cache.push_acceleration(AccelerationSample(0.0, 0.0, 1.0), 0)
        cache.push_acceleration(AccelerationSample(0.0, 1.0, 1.0), 5)
        self.assertAlmostEqual(cache.resolve(10).angle_deg, 45.0)

    def test_signal_active_follows_staleness_window(self) -> None:
        cache = LatestSampleCache(stale_after_ms=2000)
        self.assertFalse(cache.signal_active(0))

        cache.push_orientation(OrientationSample(1.0), 100)
        self.assertTrue(cache.signal_active(2100))
        self.assertFalse(cache.signal_active(2101))

        # A stale source still resolves to its last angle
        self.assertIs(cache.resolve(5000).source, SignalSource.ORIENTATION)

    def test_clear_forgets_everything(self) -> None:
        cache = LatestSampleCache()
        cache.push_orientation(OrientationSample(1.0), 0)
        cache.clear()
        self.assertIs(cache.resolve(0).source, SignalSource.UNAVAILABLE)
        self.assertFalse(cache.signal_active(0))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
