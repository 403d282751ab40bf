"""
Error types for the Parmi rep engine.

All of these are local, recoverable conditions. A missing signal is not an
error: it is reported as an UNAVAILABLE sample and an inactive signal flag.
"""


class ParmiError(Exception):
    """Base class for engine errors."""


class InvalidSample(ParmiError, ValueError):
    """Raised when a sensor sample has a non-finite component."""


class InvalidConfiguration(ParmiError, ValueError):
    """Raised when engine parameters violate their bounds or invariants."""


class CalibrationFailed(ParmiError):
    """Raised when calibration collected no valid samples."""


class CalibrationBusy(ParmiError):
    """Raised when a calibration is requested while a window is in flight."""
