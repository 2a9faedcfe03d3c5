# apparent/core/observer.py
# -----------------------------------------------------------------------------
# Topocentric observer geometry
#
# Standards Compliance:
#   • IERS 2010 / IAU 2009 reference ellipsoid (a = 6378136.6 m, f = 1/298.25642)
#   • Greenwich mean sidereal time, IAU 2006 (ERFA gmst06)
#   • Equation of the equinoxes Δψ·cos ε from the selected nutation model
#   • Earth rotation rate 7.2921151467e-5 rad/s
#
# The observer offset is produced in the true equator of date, de-nutated and
# precessed to the mean J2000 equator so it can be added to geocentric states.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import erfa

from .errors import ConfigurationError, ObserverNotSetError
from .flags import Constants
from .frames import FrameTransformer, Vector
from .nutation import NutationEngine
from .precession import DATE_TO_J2000, PrecessionTransform, mean_obliquity
from .timescales import DeltaTModel, TwoPartJD

log = logging.getLogger(__name__)

__all__ = ["ObserverFrame", "ObserverGeometry"]


@dataclass(frozen=True)
class ObserverFrame:
    """Geographic position: degrees east / north, meters above the ellipsoid."""
    longitude_deg: float
    latitude_deg: float
    altitude_m: float = 0.0

    def __post_init__(self):
        if not -90.0 <= self.latitude_deg <= 90.0:
            raise ConfigurationError(f"Latitude {self.latitude_deg} outside [-90, 90]",
                                     latitude=self.latitude_deg)
        if not -360.0 <= self.longitude_deg <= 360.0:
            raise ConfigurationError(f"Longitude {self.longitude_deg} outside [-360, 360]",
                                     longitude=self.longitude_deg)
        if not math.isfinite(self.altitude_m):
            raise ConfigurationError("Altitude must be finite", altitude=self.altitude_m)


class ObserverGeometry:
    """Observer offset from the geocenter as a J2000 equatorial 6-vector."""

    def __init__(self, nutation: NutationEngine,
                 precession: Optional[PrecessionTransform] = None,
                 delta_t: Optional[DeltaTModel] = None):
        self.nutation = nutation
        self.precession = precession or PrecessionTransform(nutation.model)
        self.delta_t = delta_t or DeltaTModel()
        self._frame: Optional[ObserverFrame] = None
        self._cache: Dict[Tuple[float, ObserverFrame, bool], Vector] = {}

    @property
    def frame(self) -> Optional[ObserverFrame]:
        return self._frame

    @property
    def is_set(self) -> bool:
        return self._frame is not None

    def set_position(self, longitude_deg: float, latitude_deg: float, altitude_m: float = 0.0) -> None:
        frame = ObserverFrame(float(longitude_deg), float(latitude_deg), float(altitude_m))
        if frame != self._frame:
            self._frame = frame
            self._cache.clear()
            log.debug("Observer set to lon=%.6f lat=%.6f alt=%.1f m",
                      frame.longitude_deg, frame.latitude_deg, frame.altitude_m)

    def _mean_obliquity(self, jd_tt: float) -> float:
        return mean_obliquity(jd_tt, self.nutation.model)

    def sidereal_time(self, jd_ut: float, jd_tt: float, apparent: bool = True) -> float:
        """Greenwich sidereal time in radians, [0, 2π)."""
        ut = TwoPartJD.split(jd_ut)
        tt = TwoPartJD.split(jd_tt)
        gmst = float(erfa.gmst06(ut.jd1, ut.jd2, tt.jd1, tt.jd2))
        if apparent:
            eps = self._mean_obliquity(jd_tt) + self.nutation.nutation(jd_tt).deps
            gmst += self.nutation.nutation(jd_tt).dpsi * math.cos(eps)
        return FrameTransformer.normalize_radians(gmst)

    def observer_state(self, jd_tt: float, with_nutation: bool = True) -> Vector:
        """Geocentric observer position and velocity, J2000 equator, AU and AU/day."""
        if self._frame is None:
            raise ObserverNotSetError()
        key = (jd_tt, self._frame, with_nutation)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        frame = self._frame
        jd_ut = self.delta_t.ut_from_tt(jd_tt)
        sidt = self.sidereal_time(jd_ut, jd_tt, apparent=with_nutation)

        f = Constants.EARTH_OBLATENESS
        re = Constants.EARTH_RADIUS
        lat = math.radians(frame.latitude_deg)
        cosfi, sinfi = math.cos(lat), math.sin(lat)
        cc = 1.0 / math.sqrt(cosfi * cosfi + (1.0 - f) * (1.0 - f) * sinfi * sinfi)
        ss = (1.0 - f) * (1.0 - f) * cc
        lon = math.radians(frame.longitude_deg) + sidt
        h = frame.altitude_m
        x = [
            (re * cc + h) * cosfi * math.cos(lon),
            (re * cc + h) * cosfi * math.sin(lon),
            (re * ss + h) * sinfi,
        ]

        polar = FrameTransformer.cartesian_to_polar(x) + [Constants.EARTH_ROT_SPEED, 0.0, 0.0]
        xobs = [c / Constants.AUNIT for c in FrameTransformer.polar_to_cartesian_state(polar)]

        if with_nutation:
            nut_matrix = self.nutation.matrix(jd_tt, self._mean_obliquity(jd_tt))
            xobs = FrameTransformer.apply_matrix_state(nut_matrix, xobs, backward=True)
        xobs = self.precession.precess_state(xobs, jd_tt, DATE_TO_J2000, with_speed=True)

        if len(self._cache) > 64:
            self._cache.clear()
        self._cache[key] = xobs
        return list(xobs)
