# apparent/core/timescales.py
# -----------------------------------------------------------------------------
# Time scales for the apparent-position pipeline
#
# Standards Compliance:
#   • IAU SOFA/ERFA algorithms for calendar and UTC→TAI→TT conversion
#   • Espenak & Meeus (2006) ΔT polynomials, -500 … +2150
#   • Morrison & Stephenson (2004) long-term parabola outside that span
#
# Precision Guarantees:
#   • Two-part Julian Date handed to ERFA wherever it accepts one
#   • ΔT model error: ~1 s (modern era) growing to hours in antiquity
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
from typing import NamedTuple, Optional

import erfa  # pyERFA - SOFA/ERFA gold standard

from .errors import ConfigurationError
from .flags import Constants

log = logging.getLogger(__name__)

__all__ = [
    "TwoPartJD",
    "DeltaTModel",
    "decimal_year",
    "julian_day",
    "julian_day_tt_from_utc",
]


class TwoPartJD(NamedTuple):
    """Two-part Julian Date for maximum precision arithmetic."""
    jd1: float  # Integer part + 0.5
    jd2: float  # Fractional part

    @property
    def jd(self) -> float:
        """Collapsed single Julian Date."""
        return math.fsum((self.jd1, self.jd2))

    @classmethod
    def split(cls, jd: float) -> "TwoPartJD":
        """Split at the 0.5 day boundary."""
        jd1 = math.floor(jd + 0.5) - 0.5
        return cls(jd1, jd - jd1)

    def __add__(self, days: float) -> "TwoPartJD":
        return TwoPartJD(self.jd1, self.jd2 + days)


def decimal_year(jd_tt: float) -> float:
    """Julian epoch of a TT Julian Day."""
    jd = TwoPartJD.split(jd_tt)
    return float(erfa.epj(jd.jd1, jd.jd2))


def julian_day(year: int, month: int, day: int, hour: float = 0.0) -> float:
    """Julian Day of a proleptic Gregorian calendar date."""
    try:
        djm0, djm = erfa.cal2jd(year, month, day)
    except erfa.ErfaError as e:
        raise ConfigurationError(f"Invalid calendar date {year}-{month}-{day}: {e}")
    return float(djm0) + float(djm) + hour / 24.0


def julian_day_tt_from_utc(
    year: int, month: int, day: int,
    hour: int = 0, minute: int = 0, second: float = 0.0,
) -> TwoPartJD:
    """UTC calendar date to TT through the ERFA leap-second chain."""
    try:
        utc1, utc2 = erfa.dtf2d("UTC", year, month, day, hour, minute, second)
        tai1, tai2 = erfa.utctai(utc1, utc2)
        tt1, tt2 = erfa.taitt(tai1, tai2)
    except erfa.ErfaError as e:
        raise ConfigurationError(f"Invalid UTC date {year}-{month}-{day} {hour}:{minute}:{second}: {e}")
    return TwoPartJD(float(tt1), float(tt2))


# ───────────────────────────── ΔT model ─────────────────────────────

def _poly(t: float, coefficients) -> float:
    result = 0.0
    for c in reversed(coefficients):
        result = result * t + c
    return result


def _long_term(year: float) -> float:
    u = (year - 1820.0) / 100.0
    return -20.0 + 32.0 * u * u


class DeltaTModel:
    """TT − UT1 in seconds as a function of epoch.

    Piecewise polynomials of Espenak & Meeus; outside -500 … +2150 the
    Morrison & Stephenson parabola is used and a warning is logged once.
    """

    # (start year, end year, reference year, scale, coefficients low→high)
    SEGMENTS = (
        (-500.0, 500.0, 0.0, 100.0,
         (10583.6, -1014.41, 33.78311, -5.952053, -0.1798452, 0.022174192, 0.0090316521)),
        (500.0, 1600.0, 1000.0, 100.0,
         (1574.2, -556.01, 71.23472, 0.319781, -0.8503463, -0.005050998, 0.0083572073)),
        (1600.0, 1700.0, 1600.0, 1.0,
         (120.0, -0.9808, -0.01532, 1.0 / 7129.0)),
        (1700.0, 1800.0, 1700.0, 1.0,
         (8.83, 0.1603, -0.0059285, 0.00013336, -1.0 / 1174000.0)),
        (1800.0, 1860.0, 1800.0, 1.0,
         (13.72, -0.332447, 0.0068612, 0.0041116, -0.00037436, 0.0000121272,
          -0.0000001699, 0.000000000875)),
        (1860.0, 1900.0, 1860.0, 1.0,
         (7.62, 0.5737, -0.251754, 0.01680668, -0.0004473624, 1.0 / 233174.0)),
        (1900.0, 1920.0, 1900.0, 1.0,
         (-2.79, 1.494119, -0.0598939, 0.0061966, -0.000197)),
        (1920.0, 1941.0, 1920.0, 1.0,
         (21.20, 0.84493, -0.076100, 0.0020936)),
        (1941.0, 1961.0, 1950.0, 1.0,
         (29.07, 0.407, -1.0 / 233.0, 1.0 / 2547.0)),
        (1961.0, 1986.0, 1975.0, 1.0,
         (45.45, 1.067, -1.0 / 260.0, -1.0 / 718.0)),
        (1986.0, 2005.0, 2000.0, 1.0,
         (63.86, 0.3345, -0.060374, 0.0017275, 0.000651814, 0.00002373599)),
        (2005.0, 2050.0, 2000.0, 1.0,
         (62.92, 0.32217, 0.005589)),
    )

    def __init__(self, override_seconds: Optional[float] = None):
        self.override_seconds = override_seconds
        self._warned_extrapolation = False

    def seconds_for_year(self, year: float) -> float:
        if self.override_seconds is not None:
            return self.override_seconds
        for start, end, ref, scale, coefficients in self.SEGMENTS:
            if start <= year < end:
                return _poly((year - ref) / scale, coefficients)
        if 2050.0 <= year <= 2150.0:
            return _long_term(year) - 0.5628 * (2150.0 - year)
        if not self._warned_extrapolation:
            log.warning("ΔT for year %.1f extrapolated with the long-term parabola", year)
            self._warned_extrapolation = True
        return _long_term(year)

    def seconds(self, jd_tt: float) -> float:
        return self.seconds_for_year(decimal_year(jd_tt))

    def ut_from_tt(self, jd_tt: float) -> float:
        """Universal Time Julian Day for a TT Julian Day."""
        return jd_tt - self.seconds(jd_tt) / Constants.SECONDS_PER_DAY

    def tt_from_ut(self, jd_ut: float) -> float:
        """TT for a UT Julian Day (ΔT evaluated at the UT epoch, one refinement)."""
        jd_tt = jd_ut + self.seconds(jd_ut) / Constants.SECONDS_PER_DAY
        return jd_ut + self.seconds(jd_tt) / Constants.SECONDS_PER_DAY
