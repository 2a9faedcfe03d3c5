"""Shared fixtures for the apparent-position test suite."""

import math

import pytest

from apparent.core.config import PipelineConfig
from apparent.core.pipeline import CalculationContext

J2000 = 2451545.0
EPOCHS = (2415020.5, 2444239.5, J2000, 2460000.5, 2488070.0)


def arcsec(radians: float) -> float:
    return math.degrees(radians) * 3600.0


def angle_diff_deg(a: float, b: float) -> float:
    """Signed difference a - b folded into (-180, 180]."""
    d = (a - b) % 360.0
    return d - 360.0 if d > 180.0 else d


@pytest.fixture
def context():
    return CalculationContext(PipelineConfig())


@pytest.fixture
def uncached_context():
    return CalculationContext(PipelineConfig(enable_caching=False))
