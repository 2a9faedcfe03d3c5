# apparent/core/barycenter.py
# -----------------------------------------------------------------------------
# Earth / Earth-Moon barycenter / solar-system barycenter offsets
#
# Standards Compliance:
#   • Short lunar series of Brown's theory as abridged for the Moshier
#     ephemeris (≈ arcminute accuracy, used for the EMB offset only)
#   • Lieske (1977) mean obliquity for the ecliptic → equator rotation
#   • DE431 Earth/Moon mass ratio and Sun/planet mass ratios
#
# Velocities come from a backward difference at epoch − 1e-4 day.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
from typing import Mapping, Optional, Sequence

from .flags import Constants
from .frames import FrameTransformer, Vector
from .precession import DATE_TO_J2000, PrecessionTransform

log = logging.getLogger(__name__)

__all__ = ["BarycenterCorrector"]

J1900 = 2415020.0
DEG = math.pi / 180.0


def _degnorm(x: float) -> float:
    y = math.fmod(x, 360.0)
    if y < 0.0:
        y += 360.0
    return y


def _lieske_obliquity(jd_tt: float) -> float:
    t = (jd_tt - Constants.J2000) / Constants.DAYS_PER_CENTURY
    eps = 84381.448 - 46.8150 * t - 0.00059 * t * t + 0.001813 * t * t * t
    return eps * Constants.ARCSEC_TO_RAD


class BarycenterCorrector:
    """EMB ↔ Earth offsets and the Sun's offset from the barycenter."""

    def __init__(self, precession: Optional[PrecessionTransform] = None,
                 speed_interval_days: float = Constants.SPEED_INTERVAL_DAYS):
        self.precession = precession or PrecessionTransform()
        self.speed_interval_days = speed_interval_days

    def moon_position(self, jd_tt: float) -> Vector:
        """Geocentric Moon, J2000 equatorial Cartesian, AU (short series)."""
        t = (jd_tt - J1900) / Constants.DAYS_PER_CENTURY

        a = _degnorm(((1.44e-5 * t + 0.009192) * t + 477198.8491) * t + 296.104608) * DEG
        smp, cmp = math.sin(a), math.cos(a)
        s2mp = 2.0 * smp * cmp
        c2mp = cmp * cmp - smp * smp

        a = 2.0 * DEG * _degnorm(((1.9e-6 * t - 0.001436) * t + 445267.1142) * t + 350.737486)
        s2d, c2d = math.sin(a), math.cos(a)

        a = _degnorm(((-3.0e-7 * t - 0.003211) * t + 483202.0251) * t + 11.250889) * DEG
        sf, cf = math.sin(a), math.cos(a)
        s2f = 2.0 * sf * cf

        sx = s2d * cmp - c2d * smp    # sin(2D - M')
        cx = c2d * cmp + s2d * smp    # cos(2D - M')

        mean_lon = ((1.9e-6 * t - 0.001133) * t + 481267.8831) * t + 270.434164
        sun_anomaly = _degnorm(((-3.3e-6 * t - 1.50e-4) * t + 35999.0498) * t + 358.475833)

        lon = (mean_lon + 6.288750 * smp + 1.274018 * sx + 0.658309 * s2d
               + 0.213616 * s2mp - 0.185596 * math.sin(DEG * sun_anomaly) - 0.114336 * s2f)

        af = smp * cf
        bx = cmp * sf
        lat = (5.128189 * sf + 0.280606 * (af + bx) + 0.277693 * (af - bx)
               + 0.173238 * (s2d * cf - c2d * sf)) * DEG

        parallax = (0.950724 + 0.051818 * cmp + 0.009531 * cx
                    + 0.007843 * c2d + 0.002824 * c2mp) * DEG
        dist = 4.263523e-5 / math.sin(parallax)

        x = FrameTransformer.polar_to_cartesian([_degnorm(lon) * DEG, lat, dist])
        eps = _lieske_obliquity(jd_tt)
        x = FrameTransformer.rotate_x(x, -math.sin(eps), math.cos(eps))
        return self.precession.precess(x, jd_tt, DATE_TO_J2000)

    def moon_offset(self, jd_tt: float, speed: bool = True) -> Vector:
        """Moon offset 6-vector; velocity by backward difference."""
        x = self.moon_position(jd_tt)
        if not speed:
            return x + [0.0, 0.0, 0.0]
        dt = self.speed_interval_days
        x0 = self.moon_position(jd_tt - dt)
        return x + [(x[i] - x0[i]) / dt for i in range(3)]

    def earth_from_emb(self, emb: Sequence[float], jd_tt: float, speed: bool = True) -> Vector:
        offset = self.moon_offset(jd_tt, speed)
        factor = Constants.EARTH_MOON_MRAT + 1.0
        return [emb[i] - offset[i] / factor for i in range(6)]

    def emb_from_earth(self, earth: Sequence[float], jd_tt: float, speed: bool = True) -> Vector:
        offset = self.moon_offset(jd_tt, speed)
        factor = Constants.EARTH_MOON_MRAT + 1.0
        return [earth[i] + offset[i] / factor for i in range(6)]

    @staticmethod
    def solar_barycenter_offset(helio_states: Mapping[str, Sequence[float]]) -> Vector:
        """Barycentric 6-vector of the Sun from heliocentric planetary states.

        Keys are planet names from Constants.SUN_PLANET_MASS_RATIOS ("EMB" for
        the Earth-Moon pair); missing planets are simply left out.
        """
        weighted = [0.0] * 6
        total = 1.0
        for name, state in helio_states.items():
            ratio = Constants.SUN_PLANET_MASS_RATIOS.get(name)
            if ratio is None:
                continue
            total += 1.0 / ratio
            for i in range(6):
                weighted[i] += state[i] / ratio
        return [-w / total for w in weighted]
