"""
Signal source adapter for Parmi.

Turns whichever sensor feed is currently valid into a single tilt-angle
estimate per tick:

- Orientation (beta, front/back tilt) is preferred when present.
- Acceleration including gravity is the fallback: tilt is approximated from
  the gravity vector as atan2(y, z). This degrades under fast motion but is
  the only signal on hosts without orientation events.
- With neither, the sample is tagged UNAVAILABLE with angle 0. No signal is
  synthesized.

Sensor events arrive at their own rate and are written into a single-slot
cache per source (last value wins). The tick is the only reader.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import STALE_AFTER_MS
from .errors import InvalidSample

logger = logging.getLogger(__name__)


class SignalSource(str, Enum):
    ORIENTATION = "orientation"
    ACCELERATION = "acceleration"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class OrientationSample:
    """Device orientation reading. beta_degrees may be NaN on some hosts."""

    beta_degrees: float
    timestamp_ms: int = 0

    def is_valid(self) -> bool:
        return _finite(self.beta_degrees)


@dataclass(frozen=True)
class AccelerationSample:
    """Gravity-inclusive acceleration reading (any consistent unit)."""

    x: float
    y: float
    z: float
    timestamp_ms: int = 0

    def is_valid(self) -> bool:
        # x does not enter the tilt estimate
        return _finite(self.y) and _finite(self.z)


@dataclass(frozen=True)
class SensorSample:
    source: SignalSource
    angle_deg: float
    timestamp_ms: int

    @property
    def available(self) -> bool:
        return self.source is not SignalSource.UNAVAILABLE


def _finite(value) -> bool:
    try:
        return value is not None and math.isfinite(value)
    except TypeError:
        return False


def wrap_angle(angle_deg: float) -> float:
    """Wrap an angle in degrees into (-180, 180]."""
    while angle_deg > 180.0:
        angle_deg -= 360.0
    while angle_deg <= -180.0:
        angle_deg += 360.0
    return angle_deg


def tilt_from_gravity(y: float, z: float) -> float:
    """Approximate tilt in degrees from the gravity vector."""
    return math.atan2(y, z) * 180.0 / math.pi


def resolve_angle(
    latest_orientation: Optional[OrientationSample],
    latest_acceleration: Optional[AccelerationSample],
    timestamp_ms: int = 0,
) -> SensorSample:
    """
    Pick one tilt estimate from the latest readings.

    Args:
        latest_orientation: Most recent orientation reading, or None
        latest_acceleration: Most recent acceleration reading, or None
        timestamp_ms: Tick time stamped onto the result

    Returns:
        SensorSample tagged with the source that produced it
    """
    if latest_orientation is not None and latest_orientation.is_valid():
        return SensorSample(
            SignalSource.ORIENTATION,
            wrap_angle(float(latest_orientation.beta_degrees)),
            timestamp_ms,
        )

    if latest_acceleration is not None and latest_acceleration.is_valid():
        return SensorSample(
            SignalSource.ACCELERATION,
            tilt_from_gravity(float(latest_acceleration.y), float(latest_acceleration.z)),
            timestamp_ms,
        )

    return SensorSample(SignalSource.UNAVAILABLE, 0.0, timestamp_ms)


class LatestSampleCache:
    """
    Single-slot "latest sample" cache, one slot per source.

    Host event handlers push into it; the tick reads from it. Non-finite
    samples are dropped and the last good value is kept.

    Usage:
        cache = LatestSampleCache()
        cache.push_orientation(OrientationSample(12.5), now_ms)
        sample = cache.resolve(now_ms)
        active = cache.signal_active(now_ms)
    """

    def __init__(self, stale_after_ms: int = STALE_AFTER_MS):
        self.stale_after_ms = stale_after_ms
        self.orientation: Optional[OrientationSample] = None
        self.acceleration: Optional[AccelerationSample] = None
        self._orientation_at_ms: Optional[int] = None
        self._acceleration_at_ms: Optional[int] = None
        self.dropped = 0

    def push_orientation(self, sample: OrientationSample, now_ms: int) -> bool:
        """Store an orientation reading. Returns False if it was dropped."""
        try:
            _require_valid(sample)
        except InvalidSample as e:
            self.dropped += 1
            logger.debug("Dropped orientation sample: %s", e)
            return False
        self.orientation = sample
        self._orientation_at_ms = now_ms
        return True

    def push_acceleration(self, sample: AccelerationSample, now_ms: int) -> bool:
        """Store an acceleration reading. Returns False if it was dropped."""
        try:
            _require_valid(sample)
        except InvalidSample as e:
            self.dropped += 1
            logger.debug("Dropped acceleration sample: %s", e)
            return False
        self.acceleration = sample
        self._acceleration_at_ms = now_ms
        return True

    def resolve(self, now_ms: int) -> SensorSample:
        return resolve_angle(self.orientation, self.acceleration, now_ms)

    def signal_active(self, now_ms: int) -> bool:
        """True if any source was updated within the staleness window."""
        for at_ms in (self._orientation_at_ms, self._acceleration_at_ms):
            if at_ms is not None and now_ms - at_ms <= self.stale_after_ms:
                return True
        return False

    def clear(self):
        self.orientation = None
        self.acceleration = None
        self._orientation_at_ms = None
        self._acceleration_at_ms = None


def _require_valid(sample) -> None:
    if not sample.is_valid():
        raise InvalidSample(f"non-finite component in {sample!r}")
