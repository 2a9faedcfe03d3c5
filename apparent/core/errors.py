# apparent/core/errors.py
# -----------------------------------------------------------------------------
# Error taxonomy for the apparent-position pipeline
#
# Error classes:
#   • configuration  - observer position not set, invalid configuration values
#   • range          - epoch outside a model's valid domain
#   • misuse         - invalid body / model / flag combination / malformed table
#   • upstream       - ephemeris-data provider failure, propagated unchanged
#
# Every stage raises from the point of detection; nothing downstream recovers.
# -----------------------------------------------------------------------------

from __future__ import annotations

from enum import Enum

__all__ = [
    "ErrorClass",
    "EphemerisError",
    "ConfigurationError",
    "ObserverNotSetError",
    "CoverageError",
    "MisuseError",
    "UpstreamDataError",
]


class ErrorClass(Enum):
    """Status code carried by every pipeline exception."""
    CONFIGURATION = "configuration"
    RANGE = "range"
    MISUSE = "misuse"
    UPSTREAM = "upstream"


class EphemerisError(Exception):
    """Base exception for apparent-position computations."""
    def __init__(self, message: str, error_class: ErrorClass, **context):
        super().__init__(message)
        self.error_class = error_class
        self.context = context

    @property
    def status(self) -> str:
        return self.error_class.value


class ConfigurationError(EphemerisError):
    """Required configuration is missing or invalid."""
    def __init__(self, message: str, **context):
        super().__init__(message, ErrorClass.CONFIGURATION, **context)


class ObserverNotSetError(ConfigurationError):
    """Topocentric request without geographic coordinates."""
    def __init__(self, message: str = "geographic position has not been set", **context):
        super().__init__(message, **context)


class CoverageError(EphemerisError):
    """Epoch outside the valid domain of a series."""
    def __init__(self, message: str, **context):
        super().__init__(message, ErrorClass.RANGE, **context)


class MisuseError(EphemerisError):
    """Invalid body, model or flag combination requested."""
    def __init__(self, message: str, **context):
        super().__init__(message, ErrorClass.MISUSE, **context)


class UpstreamDataError(EphemerisError):
    """Ephemeris-data provider could not supply a table."""
    def __init__(self, message: str, **context):
        super().__init__(message, ErrorClass.UPSTREAM, **context)
