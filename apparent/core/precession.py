# apparent/core/precession.py
# -----------------------------------------------------------------------------
# Precession and mean obliquity collaborators
#
# Standards Compliance:
#   • IAU 2006 precession (Capitaine et al. 2003) via ERFA bp06
#   • IAU 2006 / IAU 1980 mean obliquity via ERFA obl06 / obl80
#
# The precession matrix rotates mean J2000 equatorial vectors into the mean
# equator and equinox of date; the inverse is its transpose. Velocities are
# rotated with the same matrix and receive the precessional drift of the
# equinox in ecliptic longitude.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import List, Sequence, Tuple

import erfa

from .config import NutationModel
from .flags import Constants
from .frames import FrameTransformer, Matrix, Vector
from .timescales import TwoPartJD

log = logging.getLogger(__name__)

__all__ = ["PrecessionTransform", "mean_obliquity", "J2000_TO_DATE", "DATE_TO_J2000"]

J2000_TO_DATE = -1
DATE_TO_J2000 = 1


def mean_obliquity(jd_tt: float, model: NutationModel = NutationModel.IAU_2000A) -> float:
    """Mean obliquity of the ecliptic in radians, consistent with the nutation model."""
    jd = TwoPartJD.split(jd_tt)
    if model is NutationModel.IAU_1980:
        return float(erfa.obl80(jd.jd1, jd.jd2))
    return float(erfa.obl06(jd.jd1, jd.jd2))


@lru_cache(maxsize=256)
def _precession_matrix(jd_tt: float) -> Tuple[Tuple[float, ...], ...]:
    jd = TwoPartJD.split(jd_tt)
    _, rp, _ = erfa.bp06(jd.jd1, jd.jd2)
    return tuple(tuple(float(v) for v in row) for row in rp)


class PrecessionTransform:
    """Rotates 6-vectors between the J2000 equator and the mean equator of date."""

    def __init__(self, obliquity_model: NutationModel = NutationModel.IAU_2000A):
        self.obliquity_model = obliquity_model

    def matrix(self, jd_tt: float) -> Matrix:
        """Precession matrix J2000 → date."""
        return _precession_matrix(jd_tt)

    def precess(self, x: Sequence[float], jd_tt: float, direction: int) -> Vector:
        """Precess a 3-vector; direction is J2000_TO_DATE or DATE_TO_J2000."""
        if jd_tt == Constants.J2000:
            return list(x[0:3])
        return FrameTransformer.apply_matrix(self.matrix(jd_tt), x, backward=direction == DATE_TO_J2000)

    def precess_state(self, xx: Sequence[float], jd_tt: float, direction: int,
                      with_speed: bool = True) -> Vector:
        """Precess position and, when requested, velocity including equinox drift."""
        position = self.precess(xx[0:3], jd_tt, direction)
        if not with_speed:
            return position + [0.0, 0.0, 0.0]
        velocity = self.precess(xx[3:6], jd_tt, direction)
        return self._add_precession_drift(position + velocity, jd_tt, direction)

    def _add_precession_drift(self, xx: List[float], jd_tt: float, direction: int) -> Vector:
        if direction == J2000_TO_DATE:
            fac = 1.0
            eps = mean_obliquity(jd_tt, self.obliquity_model)
        else:
            fac = -1.0
            eps = mean_obliquity(Constants.J2000, self.obliquity_model)
        seps, ceps = math.sin(eps), math.cos(eps)
        tprec = (jd_tt - Constants.J2000) / Constants.DAYS_PER_CENTURY

        polar = FrameTransformer.cartesian_to_polar_state(FrameTransformer.rotate_state_x(xx, seps, ceps))
        # general precession in longitude, arcsec/year
        polar[3] += (50.290966 + 0.0222226 * tprec) / 3600.0 / 365.25 * (math.pi / 180.0) * fac
        cartesian = FrameTransformer.polar_to_cartesian_state(polar)
        return FrameTransformer.rotate_state_x(cartesian, -seps, ceps)
