# apparent/core/lunar_points.py
# -----------------------------------------------------------------------------
# Mean lunar node and mean lunar apogee
#
# Standards Compliance:
#   • Mean lunar elements of the Moshier lunar theory (ELP-2000/85 refitted
#     to DE404), referred to the mean ecliptic and equinox of date
#   • Mean apogee taken in the mean orbital plane (inclination 5.1453964°,
#     eccentricity 0.0549006) and rotated onto the ecliptic about the mean node
#
# Precision Guarantees:
#   • Closed-form polynomials only; the DE431-fitted long-term corrections are
#     not applied, so the points drift from them away from the present era
#   • Rates from a ±0.001 day central difference
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
from typing import NamedTuple, Tuple

from .errors import CoverageError, MisuseError
from .flags import Body, Constants
from .frames import FrameTransformer, Vector
from .fundamental_arguments import ARCSEC_PER_TURN, julian_centuries
from .harmonic_series import MOSHIER_END_JD, MOSHIER_START_JD

log = logging.getLogger(__name__)

__all__ = ["LUNAR_MEAN_POINTS", "MeanLunarElements", "LunarMeanPoints", "mean_lunar_elements"]

LUNAR_MEAN_POINTS = (Body.MEAN_NODE, Body.MEAN_APOGEE)

MOON_MEAN_DISTANCE_KM = 384400.0
MOON_MEAN_ECCENTRICITY = 0.0549006
MOON_MEAN_INCLINATION_DEG = 5.1453964


class MeanLunarElements(NamedTuple):
    """Mean lunar elements in arcseconds, each in [0, 1296000)."""
    longitude: float   # mean longitude of the Moon
    F: float           # mean argument of latitude
    l: float           # mean anomaly of the Moon


def _mod_turn(x: float) -> float:
    return x - ARCSEC_PER_TURN * math.floor(x / ARCSEC_PER_TURN)


def mean_lunar_elements(jd_tt: float) -> MeanLunarElements:
    t = julian_centuries(jd_tt)
    # integral revolutions per century multiply only the fractional century
    frac = math.fmod(t, 1.0)
    t2 = t * t
    F = _mod_turn(1739232000.0 * frac + 295263.0983 * t - 2.079419901760e-01 * t + 335779.55755)
    l = _mod_turn(1717200000.0 * frac + 715923.4728 * t - 2.035946368532e-01 * t + 485868.28096)
    longitude = _mod_turn(1731456000.0 * frac + 1108372.83264 * t - 6.784914260953e-01 * t + 785939.95571)
    F += ((-9.646018347184e-06 * t - 1.138215912580e-03) * t - 1.312045233711e+01) * t2
    l += ((-3.421689790404e-04 * t + 4.768357585780e-02) * t + 3.146734198839e+01) * t2
    longitude += ((-8.466472828815e-05 * t + 5.722859298199e-03) * t - 5.663161722088e+00) * t2
    return MeanLunarElements(_mod_turn(longitude), _mod_turn(F), _mod_turn(l))


class LunarMeanPoints:
    """Geocentric mean node and mean apogee in the mean ecliptic of date."""

    def __init__(self, start_jd: float = MOSHIER_START_JD, end_jd: float = MOSHIER_END_JD,
                 range_margin_days: float = 0.3, speed_interval_days: float = 0.001):
        self.start_jd = start_jd
        self.end_jd = end_jd
        self.range_margin_days = range_margin_days
        self.speed_interval_days = speed_interval_days

    @staticmethod
    def supports(body: Body) -> bool:
        return body in LUNAR_MEAN_POINTS

    @staticmethod
    def source_tag(body: Body) -> str:
        return "moshier-mean-elements"

    def check_range(self, body: Body, jd_tt: float) -> None:
        if not self.supports(body):
            raise MisuseError(f"{body.value} is not a mean lunar point", body=body.value)
        margin = self.range_margin_days
        if not self.start_jd - margin <= jd_tt <= self.end_jd + margin:
            raise CoverageError(
                f"JD {jd_tt:.5f} outside mean lunar element range "
                f"{self.start_jd:.1f} .. {self.end_jd:.1f}",
                body=body.value, jd=jd_tt,
            )

    @staticmethod
    def mean_node(jd_tt: float) -> Tuple[float, float, float]:
        """Ascending node as (lon, lat, r): radians and AU."""
        el = mean_lunar_elements(jd_tt)
        lon = FrameTransformer.normalize_radians((el.longitude - el.F) * Constants.ARCSEC_TO_RAD)
        return lon, 0.0, MOON_MEAN_DISTANCE_KM * 1000.0 / Constants.AUNIT

    @staticmethod
    def mean_apogee(jd_tt: float) -> Tuple[float, float, float]:
        """Apogee of the mean orbit as (lon, lat, r): radians and AU.

        The apogee lies in the inclined orbital plane, so it carries a
        latitude of up to the mean inclination.
        """
        el = mean_lunar_elements(jd_tt)
        node = (el.longitude - el.F) * Constants.ARCSEC_TO_RAD
        apogee = (el.longitude - el.l) * Constants.ARCSEC_TO_RAD + math.pi
        r = MOON_MEAN_DISTANCE_KM * (1.0 + MOON_MEAN_ECCENTRICITY) * 1000.0 / Constants.AUNIT

        incl = math.radians(MOON_MEAN_INCLINATION_DEG)
        x = FrameTransformer.polar_to_cartesian([apogee - node, 0.0, r])
        x = FrameTransformer.rotate_x(x, -math.sin(incl), math.cos(incl))
        lon, lat, r = FrameTransformer.cartesian_to_polar(x)
        return FrameTransformer.normalize_radians(lon + node), lat, r

    def ecliptic_state(self, body: Body, jd_tt: float) -> Vector:
        """Polar state [lon, lat, r, dlon, dlat, dr] in the mean ecliptic of date."""
        self.check_range(body, jd_tt)
        point = self.mean_node if body is Body.MEAN_NODE else self.mean_apogee
        now = point(jd_tt)
        h = self.speed_interval_days
        after = point(jd_tt + h)
        before = point(jd_tt - h)
        dlon = FrameTransformer.normalize_radians(after[0] - before[0] + math.pi) - math.pi
        return [now[0], now[1], now[2],
                dlon / (2.0 * h), (after[1] - before[1]) / (2.0 * h), (after[2] - before[2]) / (2.0 * h)]
