# apparent/core/frames.py
# -----------------------------------------------------------------------------
# Coordinate frame transformations on 6-component state vectors
#
# Conventions:
#   • State vectors are plain lists [x, y, z, dx, dy, dz] (AU, AU/day)
#   • Polar states are [lon, lat, r, dlon, dlat, dr] in radians, AU, per day
#   • Matrices are 3x3 nested lists; "forward" applies M·x, "backward" Mᵀ·x
#   • Rotation about the x axis by obliquity: sin(-eps) ecliptic -> equator
# -----------------------------------------------------------------------------

from __future__ import annotations

import math
from typing import List, Sequence

Vector = List[float]
Matrix = Sequence[Sequence[float]]

__all__ = ["FrameTransformer", "Vector", "Matrix", "TWO_PI"]

TWO_PI = 2.0 * math.pi


class FrameTransformer:
    """Rotations and polar/Cartesian conversions with velocity."""

    @staticmethod
    def normalize_radians(angle: float) -> float:
        angle = math.fmod(angle, TWO_PI)
        if angle < 0.0:
            angle += TWO_PI
        return angle

    @staticmethod
    def normalize_degrees(angle: float) -> float:
        angle = math.fmod(angle, 360.0)
        if angle < 0.0:
            angle += 360.0
        return angle

    @staticmethod
    def rotate_x(x: Sequence[float], sineps: float, coseps: float) -> Vector:
        """Rotate a 3-vector about the x axis.

        With (sin eps, cos eps) this takes equatorial to ecliptic coordinates;
        with (-sin eps, cos eps) it takes ecliptic to equatorial.
        """
        return [
            x[0],
            x[1] * coseps + x[2] * sineps,
            -x[1] * sineps + x[2] * coseps,
        ]

    @staticmethod
    def rotate_state_x(xx: Sequence[float], sineps: float, coseps: float) -> Vector:
        """rotate_x applied to position and velocity halves."""
        return (FrameTransformer.rotate_x(xx[0:3], sineps, coseps)
                + FrameTransformer.rotate_x(xx[3:6], sineps, coseps))

    @staticmethod
    def apply_matrix(m: Matrix, x: Sequence[float], backward: bool = False) -> Vector:
        if backward:
            return [
                m[0][i] * x[0] + m[1][i] * x[1] + m[2][i] * x[2]
                for i in range(3)
            ]
        return [
            m[i][0] * x[0] + m[i][1] * x[1] + m[i][2] * x[2]
            for i in range(3)
        ]

    @staticmethod
    def apply_matrix_state(m: Matrix, xx: Sequence[float], backward: bool = False) -> Vector:
        return (FrameTransformer.apply_matrix(m, xx[0:3], backward)
                + FrameTransformer.apply_matrix(m, xx[3:6], backward))

    @staticmethod
    def transpose(m: Matrix) -> List[List[float]]:
        return [[m[j][i] for j in range(3)] for i in range(3)]

    # ───────────────────────────── Polar / Cartesian ─────────────────────────────

    @staticmethod
    def cartesian_to_polar(x: Sequence[float]) -> Vector:
        if x[0] == 0.0 and x[1] == 0.0 and x[2] == 0.0:
            return [0.0, 0.0, 0.0]
        rxy = x[0] * x[0] + x[1] * x[1]
        rad = math.sqrt(rxy + x[2] * x[2])
        rxy = math.sqrt(rxy)
        lon = math.atan2(x[1], x[0])
        if lon < 0.0:
            lon += TWO_PI
        if rxy == 0.0:
            lat = math.pi / 2 if x[2] >= 0.0 else -math.pi / 2
        else:
            lat = math.atan(x[2] / rxy)
        return [lon, lat, rad]

    @staticmethod
    def polar_to_cartesian(l: Sequence[float]) -> Vector:
        cosl1 = math.cos(l[1])
        return [
            l[2] * cosl1 * math.cos(l[0]),
            l[2] * cosl1 * math.sin(l[0]),
            l[2] * math.sin(l[1]),
        ]

    @staticmethod
    def cartesian_to_polar_state(x: Sequence[float]) -> Vector:
        """Cartesian state to [lon, lat, r, dlon, dlat, dr]."""
        if x[0] == 0.0 and x[1] == 0.0 and x[2] == 0.0:
            speed = FrameTransformer.cartesian_to_polar(x[3:6])
            return [speed[0], speed[1], 0.0, 0.0, 0.0, speed[2]]
        if x[3] == 0.0 and x[4] == 0.0 and x[5] == 0.0:
            return FrameTransformer.cartesian_to_polar(x[0:3]) + [0.0, 0.0, 0.0]

        rxy = x[0] * x[0] + x[1] * x[1]
        r = math.sqrt(rxy + x[2] * x[2])
        rxy = math.sqrt(rxy)
        if rxy == 0.0:
            # on the pole: longitude undefined, report the velocity direction
            lon = 0.0
            lat = math.pi / 2 if x[2] >= 0.0 else -math.pi / 2
            return [lon, lat, r, 0.0, 0.0, x[5] if x[2] >= 0.0 else -x[5]]
        lon = math.atan2(x[1], x[0])
        if lon < 0.0:
            lon += TWO_PI
        lat = math.atan(x[2] / rxy)

        coslon = x[0] / rxy
        sinlon = x[1] / rxy
        coslat = rxy / r
        sinlat = x[2] / r
        xx3 = x[3] * coslon + x[4] * sinlon
        xx4 = -x[3] * sinlon + x[4] * coslon
        dlon = xx4 / rxy
        xx4 = -sinlat * xx3 + coslat * x[5]
        xx5 = coslat * xx3 + sinlat * x[5]
        dlat = xx4 / r
        return [lon, lat, r, dlon, dlat, xx5]

    @staticmethod
    def polar_to_cartesian_state(l: Sequence[float]) -> Vector:
        """[lon, lat, r, dlon, dlat, dr] to a Cartesian state."""
        lon, lat, r, dlon, dlat, dr = l
        cl, sl = math.cos(lon), math.sin(lon)
        cb, sb = math.cos(lat), math.sin(lat)
        return [
            r * cb * cl,
            r * cb * sl,
            r * sb,
            dr * cb * cl - r * sb * dlat * cl - r * cb * sl * dlon,
            dr * cb * sl - r * sb * dlat * sl + r * cb * cl * dlon,
            dr * sb + r * cb * dlat,
        ]

    # ───────────────────────────── Vector helpers ─────────────────────────────

    @staticmethod
    def norm(x: Sequence[float]) -> float:
        return math.sqrt(x[0] * x[0] + x[1] * x[1] + x[2] * x[2])

    @staticmethod
    def dot(a: Sequence[float], b: Sequence[float]) -> float:
        return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]

    @staticmethod
    def angular_separation(a: Sequence[float], b: Sequence[float]) -> float:
        """Angle between two 3-vectors in radians."""
        ra = FrameTransformer.norm(a)
        rb = FrameTransformer.norm(b)
        if ra == 0.0 or rb == 0.0:
            return 0.0
        c = FrameTransformer.dot(a, b) / (ra * rb)
        return math.acos(max(-1.0, min(1.0, c)))

