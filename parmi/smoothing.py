"""
Exponential low-pass filter for the tilt angle.

A small alpha (0.1 to 0.15) favours noise rejection over latency:
- Too large lets jitter cross the bend threshold
- Too small delays real phase changes and eats into the debounce margin
"""

from dataclasses import dataclass, replace

from .config import DEFAULT_ALPHA
from .errors import InvalidConfiguration


def low_pass(prev: float, raw: float, alpha: float) -> float:
    """One step of prev + alpha * (raw - prev)."""
    return prev + alpha * (raw - prev)


@dataclass(frozen=True)
class FilterState:
    """
    Filter state owned by the engine context.

    Attributes:
        filtered_angle_deg: Current smoothed angle
        alpha: Fixed filter gain in (0, 1]
        samples: Number of samples filtered so far (0 means never fed)
    """

    filtered_angle_deg: float = 0.0
    alpha: float = DEFAULT_ALPHA
    samples: int = 0

    def __post_init__(self):
        if not (0.0 < self.alpha <= 1.0):
            raise InvalidConfiguration(f"alpha must be in (0, 1], got {self.alpha}")

    @property
    def primed(self) -> bool:
        return self.samples > 0

    def update(self, raw_angle_deg: float) -> "FilterState":
        return replace(
            self,
            filtered_angle_deg=low_pass(self.filtered_angle_deg, raw_angle_deg, self.alpha),
            samples=self.samples + 1,
        )
