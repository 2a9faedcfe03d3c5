"""
Core apparent-position computation modules.

This package contains the harmonic series engine, the nutation, precession,
light-time and observer collaborators, and the position pipeline that chains
them together.
"""

from .config import BiasModel, NutationModel, PipelineConfig
from .errors import (
    ConfigurationError,
    CoverageError,
    EphemerisError,
    ErrorClass,
    MisuseError,
    ObserverNotSetError,
    UpstreamDataError,
)
from .flags import Body, TransformFlags
from .pipeline import (
    ApparentPosition,
    CalculationContext,
    CelestialBodyState,
    PipelineStage,
    PositionPipeline,
    default_context,
    evaluate_body,
    set_observer,
)

__all__ = [
    "BiasModel",
    "NutationModel",
    "PipelineConfig",
    "ConfigurationError",
    "CoverageError",
    "EphemerisError",
    "ErrorClass",
    "MisuseError",
    "ObserverNotSetError",
    "UpstreamDataError",
    "Body",
    "TransformFlags",
    "ApparentPosition",
    "CalculationContext",
    "CelestialBodyState",
    "PipelineStage",
    "PositionPipeline",
    "default_context",
    "evaluate_body",
    "set_observer",
]
