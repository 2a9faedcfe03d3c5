"""
Apparent-Position Pipeline

Apparent places of the Sun, Moon and planets from semi-analytic harmonic
series, with light-time, relativistic deflection, annual aberration, frame
bias, IAU 2006 precession and IAU 1980 / 2000A / 2000B nutation.
"""

__version__ = "1.0.0"
__author__ = "Apparent-Position Pipeline Team"

# Version information
VERSION_INFO = {
    "major": 1,
    "minor": 0,
    "patch": 0,
    "status": "stable"
}

from .core import (
    Body,
    CalculationContext,
    CelestialBodyState,
    EphemerisError,
    PipelineConfig,
    TransformFlags,
    evaluate_body,
    set_observer,
)

__all__ = [
    "Body",
    "CalculationContext",
    "CelestialBodyState",
    "EphemerisError",
    "PipelineConfig",
    "TransformFlags",
    "evaluate_body",
    "set_observer",
]
