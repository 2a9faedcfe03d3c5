# apparent/core/fundamental_arguments.py
# -----------------------------------------------------------------------------
# Fundamental arguments of the luni-solar and planetary nutation theories
#
# Standards Compliance:
#   • Simon et al. (1994) polynomials for the IAU 2000 luni-solar series
#   • MHB2000 linear Delaunay arguments for the IAU 2000 planetary series
#   • Souchay et al. (1999) planetary mean longitudes
#   • Seidelmann (1982) arguments of the IAU 1980 theory
#
# The two IAU 2000 parameterizations are numerically distinct and each nutation
# series consumes only its own variant.
# -----------------------------------------------------------------------------

from __future__ import annotations

import math
from typing import NamedTuple, Sequence

from .flags import Constants
from .frames import FrameTransformer

__all__ = [
    "FundamentalArgumentSet",
    "PlanetaryLongitudes",
    "julian_centuries",
    "simon_1994",
    "delaunay_mhb2000",
    "planetary_longitudes",
    "general_precession",
    "iau_1980",
]

ARCSEC_PER_TURN = 1296000.0


class FundamentalArgumentSet(NamedTuple):
    """Delaunay arguments in radians, each in [0, 2π)."""
    l: float      # mean anomaly of the Moon
    lp: float     # mean anomaly of the Sun
    F: float      # mean argument of latitude of the Moon
    D: float      # mean elongation of the Moon from the Sun
    om: float     # mean longitude of the ascending node of the Moon


class PlanetaryLongitudes(NamedTuple):
    """Mean heliocentric longitudes of the planets in radians, each in [0, 2π)."""
    mercury: float
    venus: float
    earth: float
    mars: float
    jupiter: float
    saturn: float
    uranus: float
    neptune: float


def julian_centuries(jd_tt: float) -> float:
    return (jd_tt - Constants.J2000) / Constants.DAYS_PER_CENTURY


def _arcsec_poly(t: float, coefficients: Sequence[float]) -> float:
    """Horner evaluation of an arcsecond polynomial, reduced to radians in [0, 2π)."""
    value = 0.0
    for c in reversed(coefficients):
        value = value * t + c
    return FrameTransformer.normalize_radians(
        math.fmod(value, ARCSEC_PER_TURN) * Constants.ARCSEC_TO_RAD
    )


# ───────────────────────────── IAU 2000 luni-solar ─────────────────────────────

_SIMON_1994 = (
    (485868.249036, 1717915923.2178, 31.8792, 0.051635, -0.00024470),
    (1287104.79305, 129596581.0481, -0.5532, 0.000136, -0.00001149),
    (335779.526232, 1739527262.8478, -12.7512, -0.001037, 0.00000417),
    (1072260.70369, 1602961601.2090, -6.3706, 0.006593, -0.00003169),
    (450160.398036, -6962890.5431, 7.4722, 0.007702, -0.00005939),
)


def simon_1994(jd_tt: float) -> FundamentalArgumentSet:
    t = julian_centuries(jd_tt)
    return FundamentalArgumentSet(*(_arcsec_poly(t, c) for c in _SIMON_1994))


# ───────────────────────────── IAU 2000 planetary ─────────────────────────────

_MHB2000_DELAUNAY = (
    (2.35555598, 8328.6914269554),
    (6.24006013, 628.301955),
    (1.627905234, 8433.466158131),
    (5.198466741, 7771.3771468121),
    (2.18243920, -33.757045),
)

_SOUCHAY_1999 = (
    (4.402608842, 2608.7903141574),
    (3.176146697, 1021.3285546211),
    (1.753470314, 628.3075849991),
    (6.203480913, 334.0612426700),
    (0.599546497, 52.9690962641),
    (0.874016757, 21.3299104960),
    (5.481293871, 7.4781598567),
    (5.321159000, 3.8127774000),
)


def _linear(t: float, a0: float, a1: float) -> float:
    return FrameTransformer.normalize_radians(a0 + a1 * t)


def delaunay_mhb2000(jd_tt: float) -> FundamentalArgumentSet:
    """Linear Delaunay arguments used only by the planetary nutation terms."""
    t = julian_centuries(jd_tt)
    return FundamentalArgumentSet(*(_linear(t, a0, a1) for a0, a1 in _MHB2000_DELAUNAY))


def planetary_longitudes(jd_tt: float) -> PlanetaryLongitudes:
    t = julian_centuries(jd_tt)
    return PlanetaryLongitudes(*(_linear(t, a0, a1) for a0, a1 in _SOUCHAY_1999))


def general_precession(jd_tt: float) -> float:
    """General accumulated precession in longitude, radians (not reduced)."""
    t = julian_centuries(jd_tt)
    return (0.02438175 + 0.00000538691 * t) * t


# ───────────────────────────── IAU 1980 ─────────────────────────────

_IAU_1980 = (
    (485866.733, 1717915922.633, 31.310, 0.064),
    (1287099.804, 129596581.224, -0.577, -0.012),
    (335778.877, 1739527263.137, -13.257, 0.011),
    (1072261.307, 1602961601.328, -6.891, 0.019),
    (450160.280, -6962890.539, 7.455, 0.008),
)


def iau_1980(jd_tt: float) -> FundamentalArgumentSet:
    """Arguments of the 1980 theory; returned in the same l, l′, F, D, Ω order."""
    t = julian_centuries(jd_tt)
    return FundamentalArgumentSet(*(_arcsec_poly(t, c) for c in _IAU_1980))

