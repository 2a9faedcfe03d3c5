# apparent/core/light_time.py
# -----------------------------------------------------------------------------
# Light-time, gravitational light deflection, annual aberration, frame bias
#
# Standards Compliance:
#   • Relativistic deflection by the Sun (Explanatory Supplement 1992, 3.26)
#     with effective-mass attenuation inside the solar disk
#   • Relativistic annual aberration (Explanatory Supplement 1992, 3.252)
#   • IAU 2000 / IAU 2006 frame bias matrices (ICRS ↔ mean J2000)
#
# Precision Guarantees:
#   • Single-pass light-time (no fixed-point iteration), velocity corrected
#     for the change of light-time over the speed interval
#   • Deflection speed by recomputation at t − 5e-7 day
#   • Aberration speed by recomputation at t − 1e-4 day
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
from typing import Sequence, Tuple

from .config import BiasModel
from .flags import Constants
from .frames import FrameTransformer, Vector

log = logging.getLogger(__name__)

__all__ = ["LightTimeCorrector", "effective_mass", "BIAS_MATRICES", "SUN_RADIUS"]

SUN_RADIUS = (959.63 / 3600.0) * (math.pi / 180.0)

BIAS_MATRICES = {
    BiasModel.IAU_2006: (
        (+0.99999999999999412, +0.00000007078368695, -0.00000008056214212),
        (-0.00000007078368961, +0.99999999999999700, -0.00000003306427981),
        (+0.00000008056213978, +0.00000003306428553, +0.99999999999999634),
    ),
    BiasModel.IAU_2000: (
        (+0.9999999999999942, +0.0000000707827948, -0.0000000805621738),
        (-0.0000000707827974, +0.9999999999999969, -0.0000000330604088),
        (+0.0000000805621715, +0.0000000330604145, +0.9999999999999962),
    ),
}

# (r / solar radius, effective mass fraction) for a photon grazing the Sun at r
_EFFECTIVE_MASS = (
    (1.000, 1.000000), (0.990, 0.999979), (0.980, 0.999940), (0.970, 0.999881),
    (0.960, 0.999811), (0.950, 0.999724), (0.940, 0.999622), (0.930, 0.999497),
    (0.920, 0.999354), (0.910, 0.999192), (0.900, 0.999000), (0.890, 0.998786),
    (0.880, 0.998535), (0.870, 0.998242), (0.860, 0.997919), (0.850, 0.997571),
    (0.840, 0.997198), (0.830, 0.996792), (0.820, 0.996316), (0.810, 0.995791),
    (0.800, 0.995226), (0.790, 0.994625), (0.780, 0.993991), (0.770, 0.993326),
    (0.760, 0.992598), (0.750, 0.991770), (0.740, 0.990873), (0.730, 0.989919),
    (0.720, 0.988912), (0.710, 0.987856), (0.700, 0.986755), (0.690, 0.985610),
    (0.680, 0.984398), (0.670, 0.982986), (0.660, 0.981437), (0.650, 0.979779),
    (0.640, 0.978024), (0.630, 0.976182), (0.620, 0.974256), (0.610, 0.972253),
    (0.600, 0.970174), (0.590, 0.968024), (0.580, 0.965594), (0.570, 0.962797),
    (0.560, 0.959758), (0.550, 0.956515), (0.540, 0.953088), (0.530, 0.949495),
    (0.520, 0.945741), (0.510, 0.941838), (0.500, 0.937790), (0.490, 0.933563),
    (0.480, 0.928668), (0.470, 0.923288), (0.460, 0.917527), (0.450, 0.911432),
    (0.440, 0.905035), (0.430, 0.898353), (0.420, 0.891022), (0.410, 0.882940),
    (0.400, 0.874312), (0.390, 0.865206), (0.380, 0.855423), (0.370, 0.844619),
    (0.360, 0.833074), (0.350, 0.820876), (0.340, 0.808031), (0.330, 0.793962),
    (0.320, 0.778931), (0.310, 0.763021), (0.300, 0.745815), (0.290, 0.727557),
    (0.280, 0.708234), (0.270, 0.687583), (0.260, 0.665741), (0.250, 0.642597),
    (0.240, 0.618252), (0.230, 0.592586), (0.220, 0.565747), (0.210, 0.537697),
    (0.200, 0.508554), (0.190, 0.478420), (0.180, 0.447322), (0.170, 0.415454),
    (0.160, 0.382892), (0.150, 0.349955), (0.140, 0.316691), (0.130, 0.283565),
    (0.120, 0.250431), (0.110, 0.218327), (0.100, 0.186794), (0.090, 0.156287),
    (0.080, 0.128421), (0.070, 0.102237), (0.060, 0.077393), (0.050, 0.054833),
    (0.040, 0.036361), (0.030, 0.020953), (0.020, 0.009645), (0.010, 0.002767),
    (0.000, 0.000000),
)


def effective_mass(r: float) -> float:
    """Fraction of the solar mass inside radius r (in solar radii)."""
    if r <= 0.0:
        return 0.0
    if r >= 1.0:
        return 1.0
    i = 0
    while _EFFECTIVE_MASS[i][0] > r:
        i += 1
    r0, m0 = _EFFECTIVE_MASS[i - 1]
    r1, m1 = _EFFECTIVE_MASS[i]
    return m0 + (r - r0) / (r1 - r0) * (m1 - m0)


def _unit(x: Sequence[float]) -> Tuple[Vector, float]:
    r = FrameTransformer.norm(x)
    return [x[0] / r, x[1] / r, x[2] / r], r


class LightTimeCorrector:
    """Light-time, deflection, aberration and bias on 6-vectors in AU, AU/day."""

    def __init__(self, deflection_speed_interval_days: float = Constants.DEFLECTION_SPEED_INTERVAL_DAYS,
                 aberration_speed_interval_days: float = Constants.SPEED_INTERVAL_DAYS):
        self.deflection_speed_interval_days = deflection_speed_interval_days
        self.aberration_speed_interval_days = aberration_speed_interval_days

    @staticmethod
    def light_time_days(x: Sequence[float]) -> float:
        return FrameTransformer.norm(x) * Constants.AUNIT / Constants.CLIGHT / Constants.SECONDS_PER_DAY

    @staticmethod
    def light_time_speed_change(xx: Sequence[float], xobs: Sequence[float], dt: float) -> Vector:
        """Part of the daily motion caused by the change of light-time.

        xx is the unretarded body and xobs the observer at t (zeros for a
        heliocentric or barycentric center); the light-time one day earlier is
        estimated from positions extrapolated back along their velocities.
        The result is subtracted from the apparent velocity.
        """
        previous = [(xx[i] - xx[i + 3]) - (xobs[i] - xobs[i + 3]) for i in range(3)]
        dt_prev = LightTimeCorrector.light_time_days(previous)
        return [(dt - dt_prev) * xx[i + 3] for i in range(3)]

    # ───────────────────────────── Deflection ─────────────────────────────

    @staticmethod
    def _deflected(u: Sequence[float], e: Sequence[float], q: Sequence[float]) -> Tuple[Vector, float]:
        u, ru = _unit(u)
        q, _ = _unit(q)
        e, re = _unit(e)
        uq = FrameTransformer.dot(u, q)
        ue = FrameTransformer.dot(u, e)
        qe = FrameTransformer.dot(q, e)
        sina = math.sqrt(max(0.0, 1.0 - ue * ue))
        sin_sunr = SUN_RADIUS / re
        meff_fact = effective_mass(sina / sin_sunr) if sina < sin_sunr else 1.0
        g1 = 2.0 * Constants.HELGRAVCONST * meff_fact / Constants.CLIGHT / Constants.CLIGHT / Constants.AUNIT / re
        g2 = 1.0 + qe
        # body straight behind the solar center: no deflection survives
        if meff_fact == 0.0 or g2 <= 0.0:
            return [ru * c for c in u], ru
        return [ru * (u[i] + g1 / g2 * (uq * e[i] - ue * q[i])) for i in range(3)], ru

    def deflect(self, xx: Sequence[float], xearth: Sequence[float], xsun: Sequence[float],
                dt: float, speed: bool = True) -> Vector:
        """Solar light deflection of a geocentric state.

        xearth is the observer (Earth plus any topocentric offset) at t and
        xsun the Sun at t, both in the same frame as the body; dt is the
        light-time already applied to xx.
        """
        sun_retarded = [xsun[i] - dt * xsun[i + 3] for i in range(3)]
        e = [xearth[i] - xsun[i] for i in range(3)]
        q = [xx[i] + xearth[i] - sun_retarded[i] for i in range(3)]
        if min(FrameTransformer.norm(xx), FrameTransformer.norm(e), FrameTransformer.norm(q)) < 1e-15:
            return list(xx)
        xx2, _ = self._deflected(xx[0:3], e, q)
        out = xx2 + list(xx[3:6])
        if not speed:
            return out

        dtsp = -self.deflection_speed_interval_days
        u2 = [xx[i] - dtsp * xx[i + 3] for i in range(3)]
        e2 = [xearth[i] - xsun[i] - dtsp * (xearth[i + 3] - xsun[i + 3]) for i in range(3)]
        q2 = [u2[i] + xearth[i] - sun_retarded[i] - dtsp * (xearth[i + 3] - xsun[i + 3]) for i in range(3)]
        xx3, _ = self._deflected(u2, e2, q2)
        for i in range(3):
            dx1 = (xx2[i] - xx[i]) - (xx3[i] - u2[i])
            out[i + 3] += dx1 / dtsp
        return out

    # ───────────────────────────── Aberration ─────────────────────────────

    @staticmethod
    def _aberrated(x: Sequence[float], v: Sequence[float]) -> Vector:
        ru = FrameTransformer.norm(x)
        b_1 = math.sqrt(1.0 - FrameTransformer.dot(v, v))
        f1 = FrameTransformer.dot(x, v) / ru
        f2 = 1.0 + f1 / (1.0 + b_1)
        return [(b_1 * x[i] + f2 * ru * v[i]) / (1.0 + f1) for i in range(3)]

    def aberrate(self, xx: Sequence[float], xobs: Sequence[float], speed: bool = True) -> Vector:
        """Annual aberration for an observer moving with xobs[3:6] (AU/day)."""
        if FrameTransformer.norm(xx) < 1e-15:
            return list(xx)
        v = [xobs[i] / Constants.SECONDS_PER_DAY / Constants.CLIGHT * Constants.AUNIT for i in range(3, 6)]
        x = self._aberrated(xx[0:3], v)
        out = x + list(xx[3:6])
        if not speed:
            return out
        intv = self.aberration_speed_interval_days
        u = [xx[i] - intv * xx[i + 3] for i in range(3)]
        x2 = self._aberrated(u, v)
        for i in range(3):
            out[i + 3] += ((x[i] - xx[i]) - (x2[i] - u[i])) / intv
        return out

    # ───────────────────────────── Frame bias ─────────────────────────────

    @staticmethod
    def apply_bias(xx: Sequence[float], model: BiasModel = BiasModel.IAU_2000,
                   backward: bool = False, speed: bool = True) -> Vector:
        """ICRS → mean J2000 (backward: J2000 → ICRS)."""
        rb = BIAS_MATRICES.get(model)
        if rb is None:
            return list(xx)
        # rb is stored transposed relative to the ERFA convention
        position = FrameTransformer.apply_matrix(rb, xx[0:3], backward=not backward)
        if not speed:
            return position + list(xx[3:6])
        return position + FrameTransformer.apply_matrix(rb, xx[3:6], backward=not backward)
