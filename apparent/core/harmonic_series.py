# apparent/core/harmonic_series.py
# -----------------------------------------------------------------------------
# Harmonic series evaluator (Moshier planetary theory engine)
#
# Standards Compliance:
#   • Moshier (1992) semi-analytic table layout: argument table with a
#     negative-count end sentinel and interleaved coefficient streams
#   • Arcsecond internal units, J2000 origin for the time argument
#
# Precision Guarantees:
#   • Multiples of each argument from one sin/cos pair plus the double-angle
#     identity and a two-term recurrence
#   • Summation strictly in table order (bitwise reproducible)
#   • Epochs outside the validity window are rejected, never clamped
#
# Table layout (arg_tbl, a flat integer sequence):
#   np < 0                       end of table
#   np == 0, nt, ...             polynomial of degree nt in each stream
#   np > 0, (j, m) * np, nt      periodic term: angle Σ j·arg[m], amplitude
#                                pair (cos, sin) polynomials of degree nt
# Coefficients are stored highest power first.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .errors import CoverageError, MisuseError
from .flags import Constants
from .frames import FrameTransformer, Vector
from .precession import DATE_TO_J2000, PrecessionTransform, mean_obliquity

log = logging.getLogger(__name__)

__all__ = [
    "SeriesFrame",
    "SeriesCenter",
    "MeanMotionArgument",
    "HarmonicSeriesTable",
    "HarmonicSeriesEvaluator",
    "mods3600",
    "MOSHIER_TIME_UNIT",
    "MOSHIER_START_JD",
    "MOSHIER_END_JD",
]

STR = Constants.ARCSEC_TO_RAD
MOSHIER_TIME_UNIT = 3652500.0
MOSHIER_START_JD = 625673.5
MOSHIER_END_JD = 2818930.5


def mods3600(x: float) -> float:
    """Reduce arcseconds to [0, 1296000)."""
    return x - 1.296e6 * math.floor(x / 1.296e6)


class SeriesFrame(Enum):
    ECLIPTIC_J2000 = "ecliptic_j2000"
    ECLIPTIC_OF_DATE = "ecliptic_of_date"


class SeriesCenter(Enum):
    HELIOCENTRIC = "heliocentric"
    GEOCENTRIC = "geocentric"


@dataclass(frozen=True)
class MeanMotionArgument:
    """Mean-motion polynomial in arcseconds, constant term first."""
    name: str
    coefficients: Tuple[float, ...]
    max_harmonic: int = 1

    def angle(self, t: float) -> float:
        """Angle in radians: secular part reduced before the phase is added."""
        secular = 0.0
        for c in reversed(self.coefficients[1:]):
            secular = (secular + c) * t
        return (mods3600(secular) + self.coefficients[0]) * STR


@dataclass(frozen=True)
class HarmonicSeriesTable:
    """Immutable series table for one body.

    Construction walks the argument table once and rejects references to
    undefined arguments, harmonics beyond the declared maximum, a missing
    end sentinel, and coefficient streams whose length does not match.
    """
    name: str
    arguments: Tuple[MeanMotionArgument, ...]
    arg_tbl: Tuple[int, ...]
    lon_tbl: Tuple[float, ...]
    lat_tbl: Tuple[float, ...]
    rad_tbl: Tuple[float, ...]
    distance: float
    time_unit_days: float = MOSHIER_TIME_UNIT
    frame: SeriesFrame = SeriesFrame.ECLIPTIC_J2000
    center: SeriesCenter = SeriesCenter.HELIOCENTRIC
    is_emb: bool = False
    start_jd: float = MOSHIER_START_JD
    end_jd: float = MOSHIER_END_JD
    source: str = "moshier"
    term_count: int = field(default=0, compare=False)

    def __post_init__(self):
        if self.distance <= 0.0:
            raise MisuseError(f"{self.name}: mean distance must be positive", table=self.name)
        if self.time_unit_days <= 0.0:
            raise MisuseError(f"{self.name}: time unit must be positive", table=self.name)
        if self.start_jd >= self.end_jd:
            raise MisuseError(f"{self.name}: empty validity window", table=self.name)
        object.__setattr__(self, "term_count", self._validate())

    def _validate(self) -> int:
        n_args = len(self.arguments)
        p = 0
        n_lon = n_lat = n_rad = 0
        terms = 0
        arg_tbl = self.arg_tbl
        while True:
            if p >= len(arg_tbl):
                raise MisuseError(f"{self.name}: argument table has no end sentinel", table=self.name)
            np_ = arg_tbl[p]
            p += 1
            if np_ < 0:
                break
            if p + 2 * np_ >= len(arg_tbl):
                raise MisuseError(f"{self.name}: truncated argument table at {p}", table=self.name)
            for _ in range(np_):
                j, m = arg_tbl[p], arg_tbl[p + 1]
                p += 2
                if not 0 <= m < n_args:
                    raise MisuseError(
                        f"{self.name}: term {terms} references undefined argument {m}",
                        table=self.name, argument=m,
                    )
                if abs(j) > self.arguments[m].max_harmonic:
                    raise MisuseError(
                        f"{self.name}: harmonic {j} of {self.arguments[m].name} exceeds "
                        f"maximum {self.arguments[m].max_harmonic}",
                        table=self.name, argument=m,
                    )
            nt = arg_tbl[p]
            p += 1
            if nt < 0:
                raise MisuseError(f"{self.name}: negative polynomial degree", table=self.name)
            width = nt + 1 if np_ == 0 else 2 * (nt + 1)
            n_lon += width
            n_lat += width
            n_rad += width
            terms += 1
        for label, stream, used in (("longitude", self.lon_tbl, n_lon),
                                    ("latitude", self.lat_tbl, n_lat),
                                    ("radius", self.rad_tbl, n_rad)):
            if len(stream) != used:
                raise MisuseError(
                    f"{self.name}: {label} stream has {len(stream)} coefficients, table needs {used}",
                    table=self.name,
                )
        return terms

    def covers(self, jd_tt: float, margin: float = 0.0) -> bool:
        return self.start_jd - margin <= jd_tt <= self.end_jd + margin


class HarmonicSeriesEvaluator:
    """Evaluates HarmonicSeriesTables to ecliptic polar or J2000 equatorial states."""

    def __init__(self, precession: Optional[PrecessionTransform] = None,
                 range_margin_days: float = 0.3,
                 speed_interval_days: float = Constants.SPEED_INTERVAL_DAYS):
        self.precession = precession or PrecessionTransform()
        self.range_margin_days = range_margin_days
        self.speed_interval_days = speed_interval_days

    def check_range(self, table: HarmonicSeriesTable, jd_tt: float) -> None:
        if not table.covers(jd_tt, self.range_margin_days):
            raise CoverageError(
                f"JD {jd_tt:.5f} outside {table.name} series range "
                f"{table.start_jd:.1f} .. {table.end_jd:.1f}",
                body=table.name, jd=jd_tt,
            )

    @staticmethod
    def _harmonics(arg: float, n: int) -> Tuple[List[float], List[float]]:
        su = math.sin(arg)
        cu = math.cos(arg)
        ss = [su]
        cc = [cu]
        if n > 1:
            sv = 2.0 * su * cu
            cv = cu * cu - su * su
            ss.append(sv)
            cc.append(cv)
            for _ in range(2, n):
                s = su * cv + cu * sv
                cv = cu * cv - su * sv
                sv = s
                ss.append(sv)
                cc.append(cv)
        return ss, cc

    def evaluate(self, table: HarmonicSeriesTable, jd_tt: float) -> Tuple[float, float, float]:
        """Longitude (rad), latitude (rad) and radius (AU) in the table's frame."""
        self.check_range(table, jd_tt)
        t = (jd_tt - Constants.J2000) / table.time_unit_days

        ss: Dict[int, List[float]] = {}
        cc: Dict[int, List[float]] = {}
        for i, argument in enumerate(table.arguments):
            if argument.max_harmonic > 0:
                ss[i], cc[i] = self._harmonics(argument.angle(t), argument.max_harmonic)

        arg_tbl = table.arg_tbl
        pl = table.lon_tbl
        pb = table.lat_tbl
        pr = table.rad_tbl
        p = ipl = ipb = ipr = 0
        sl = sb = sr = 0.0

        while True:
            np_ = arg_tbl[p]
            p += 1
            if np_ < 0:
                break
            if np_ == 0:
                nt = arg_tbl[p]
                p += 1
                cu = pl[ipl]
                ipl += 1
                for _ in range(nt):
                    cu = cu * t + pl[ipl]
                    ipl += 1
                sl += mods3600(cu)
                cu = pb[ipb]
                ipb += 1
                for _ in range(nt):
                    cu = cu * t + pb[ipb]
                    ipb += 1
                sb += cu
                cu = pr[ipr]
                ipr += 1
                for _ in range(nt):
                    cu = cu * t + pr[ipr]
                    ipr += 1
                sr += cu
                continue

            first = True
            sv = cv = 0.0
            for _ in range(np_):
                j = arg_tbl[p]
                m = arg_tbl[p + 1]
                p += 2
                if j:
                    k = abs(j) - 1
                    su = ss[m][k]
                    if j < 0:
                        su = -su
                    cu = cc[m][k]
                    if first:
                        sv, cv = su, cu
                        first = False
                    else:
                        s = su * cv + cu * sv
                        cv = cu * cv - su * sv
                        sv = s

            nt = arg_tbl[p]
            p += 1
            cu, su = pl[ipl], pl[ipl + 1]
            ipl += 2
            for _ in range(nt):
                cu = cu * t + pl[ipl]
                su = su * t + pl[ipl + 1]
                ipl += 2
            sl += cu * cv + su * sv
            cu, su = pb[ipb], pb[ipb + 1]
            ipb += 2
            for _ in range(nt):
                cu = cu * t + pb[ipb]
                su = su * t + pb[ipb + 1]
                ipb += 2
            sb += cu * cv + su * sv
            cu, su = pr[ipr], pr[ipr + 1]
            ipr += 2
            for _ in range(nt):
                cu = cu * t + pr[ipr]
                su = su * t + pr[ipr + 1]
                ipr += 2
            sr += cu * cv + su * sv

        return (STR * sl, STR * sb, STR * table.distance * sr + table.distance)

    def equatorial_j2000(self, table: HarmonicSeriesTable, jd_tt: float) -> Vector:
        """Cartesian position, J2000 equator, of the table's center frame."""
        lon, lat, r = self.evaluate(table, jd_tt)
        x = FrameTransformer.polar_to_cartesian([lon, lat, r])
        if table.frame is SeriesFrame.ECLIPTIC_J2000:
            eps = mean_obliquity(Constants.J2000)
            return FrameTransformer.rotate_x(x, -math.sin(eps), math.cos(eps))
        eps = mean_obliquity(jd_tt)
        x = FrameTransformer.rotate_x(x, -math.sin(eps), math.cos(eps))
        return self.precession.precess(x, jd_tt, DATE_TO_J2000)

    def state(self, table: HarmonicSeriesTable, jd_tt: float, speed: bool = True) -> Vector:
        """J2000 equatorial 6-vector; velocity by backward difference."""
        x = self.equatorial_j2000(table, jd_tt)
        if not speed:
            return x + [0.0, 0.0, 0.0]
        dt = self.speed_interval_days
        x0 = self.equatorial_j2000(table, jd_tt - dt)
        return x + [(x[i] - x0[i]) / dt for i in range(3)]

