# apparent/core/series_provider.py
# -----------------------------------------------------------------------------
# Ephemeris data providers: supply one HarmonicSeriesTable per body
#
# Built-in source:
#   • Moon: ELP-2000/82 truncation of Meeus, Astronomical Algorithms ch. 47,
#     re-expressed as a harmonic series table over D, M, M′, F and the
#     A1..A3 perturbation arguments
#
# Bodies a provider does not support are served by the ERFA analytic
# theories (see analytic_theories.py). Providers for external Moshier-format
# data subclass EphemerisDataProvider and implement _build_table.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ..data import lunar_terms
from .errors import EphemerisError, UpstreamDataError
from .flags import Body, Constants
from .harmonic_series import (
    HarmonicSeriesTable,
    MeanMotionArgument,
    SeriesCenter,
    SeriesFrame,
)

log = logging.getLogger(__name__)

__all__ = ["EphemerisDataProvider", "BuiltinSeriesProvider", "SeriesTableBuilder", "default_provider"]

STR = Constants.ARCSEC_TO_RAD
AU_KM = Constants.AUNIT / 1000.0


class EphemerisDataProvider:
    """Supplies harmonic series tables; subclasses implement _build_table."""

    source = "external"

    def __init__(self):
        self._tables: Dict[Body, HarmonicSeriesTable] = {}

    def table_for(self, body: Body) -> HarmonicSeriesTable:
        table = self._tables.get(body)
        if table is None:
            try:
                table = self._build_table(body)
            except EphemerisError:
                raise
            except Exception as e:
                raise UpstreamDataError(f"{self.source} provider failed for {body.value}: {e}",
                                        body=body.value) from e
            self._tables[body] = table
            log.debug("Built %s series table for %s: %d terms, %d arguments",
                      self.source, body.value, table.term_count, len(table.arguments))
        return table

    def supports(self, body: Body) -> bool:
        return False

    def _build_table(self, body: Body) -> HarmonicSeriesTable:
        raise NotImplementedError


# ───────────────────────────── Table builder ─────────────────────────────

class SeriesTableBuilder:
    """Accumulates polynomial and periodic entries into flat table streams."""

    def __init__(self):
        self.arguments: List[MeanMotionArgument] = []
        self.arg_tbl: List[int] = []
        self.lon: List[float] = []
        self.lat: List[float] = []
        self.rad: List[float] = []

    def add_argument(self, name: str, coefficients: Sequence[float], max_harmonic: int = 1) -> int:
        self.arguments.append(MeanMotionArgument(name, tuple(coefficients), max_harmonic))
        return len(self.arguments) - 1

    def polynomial(self, lon: Sequence[float], lat: Sequence[float], rad: Sequence[float]) -> None:
        """Coefficients by ascending power; stored highest power first."""
        nt = max(len(lon), len(lat), len(rad)) - 1
        self.arg_tbl.extend((0, nt))
        for stream, values in ((self.lon, lon), (self.lat, lat), (self.rad, rad)):
            padded = list(values) + [0.0] * (nt + 1 - len(values))
            stream.extend(reversed(padded))

    def periodic(self, pairs: Sequence[Tuple[int, int]],
                 lon: Sequence[Tuple[float, float]],
                 lat: Sequence[Tuple[float, float]],
                 rad: Sequence[Tuple[float, float]]) -> None:
        """(cos, sin) amplitude pairs by ascending power; stored highest first."""
        nt = max(len(lon), len(lat), len(rad)) - 1
        self.arg_tbl.append(len(pairs))
        for j, m in pairs:
            self.arg_tbl.extend((j, m))
        self.arg_tbl.append(nt)
        for stream, values in ((self.lon, lon), (self.lat, lat), (self.rad, rad)):
            padded = list(values) + [(0.0, 0.0)] * (nt + 1 - len(values))
            for cu, su in reversed(padded):
                stream.extend((cu, su))

    def build(self, **kwargs) -> HarmonicSeriesTable:
        return HarmonicSeriesTable(
            arguments=tuple(self.arguments),
            arg_tbl=tuple(self.arg_tbl + [-1]),
            lon_tbl=tuple(self.lon),
            lat_tbl=tuple(self.lat),
            rad_tbl=tuple(self.rad),
            **kwargs,
        )


def _poly_mul(a: Sequence[float], b: Sequence[float]) -> List[float]:
    out = [0.0] * (len(a) + len(b) - 1)
    for i, x in enumerate(a):
        for j, y in enumerate(b):
            out[i + j] += x * y
    return out


# ───────────────────────────── Built-in provider ─────────────────────────────

class BuiltinSeriesProvider(EphemerisDataProvider):
    """Analytic lunar table shipped with the package."""

    source = "builtin"

    def supports(self, body: Body) -> bool:
        return body is Body.MOON

    def _build_table(self, body: Body) -> HarmonicSeriesTable:
        if body is Body.MOON:
            return self._moon_table()
        raise UpstreamDataError(f"No built-in series for {body.value}", body=body.value)

    @staticmethod
    def _moon_table() -> HarmonicSeriesTable:
        builder = SeriesTableBuilder()
        index = {
            "D": builder.add_argument("D", [3600.0 * c for c in lunar_terms.MEAN_ELONGATION], 4),
            "M": builder.add_argument("M", [3600.0 * c for c in lunar_terms.SUN_MEAN_ANOMALY], 2),
            "Mp": builder.add_argument("Mp", [3600.0 * c for c in lunar_terms.MOON_MEAN_ANOMALY], 4),
            "F": builder.add_argument("F", [3600.0 * c for c in lunar_terms.ARGUMENT_OF_LATITUDE], 3),
            "L": builder.add_argument("L", [3600.0 * c for c in lunar_terms.MEAN_LONGITUDE]),
            "A1": builder.add_argument("A1", [3600.0 * c for c in lunar_terms.A1]),
            "A2": builder.add_argument("A2", [3600.0 * c for c in lunar_terms.A2]),
            "A3": builder.add_argument("A3", [3600.0 * c for c in lunar_terms.A3]),
        }
        distance = lunar_terms.MEAN_DISTANCE_KM / AU_KM
        angle_scale = 1e-6 * 3600.0
        rad_scale = 1e-3 / AU_KM / (STR * distance)
        e1 = list(lunar_terms.ECCENTRICITY_FACTOR)
        e2 = _poly_mul(e1, e1)

        builder.polynomial([3600.0 * c for c in lunar_terms.MEAN_LONGITUDE], [0.0], [0.0])

        def pairs_for(multipliers):
            return [(j, index[name]) for j, name in zip(multipliers, ("D", "M", "Mp", "F")) if j]

        def amplitude(multiplier_m: int) -> List[float]:
            return {0: [1.0], 1: e1, 2: e2}[abs(multiplier_m)]

        for d, m, mp, f, sigma_l, sigma_r in lunar_terms.LONGITUDE_DISTANCE_TERMS:
            factor = amplitude(m)
            builder.periodic(
                pairs_for((d, m, mp, f)),
                [(0.0, sigma_l * angle_scale * e) for e in factor],
                [(0.0, 0.0)],
                [(sigma_r * rad_scale * e, 0.0) for e in factor],
            )
        for d, m, mp, f, sigma_b in lunar_terms.LATITUDE_TERMS:
            factor = amplitude(m)
            builder.periodic(
                pairs_for((d, m, mp, f)),
                [(0.0, 0.0)],
                [(0.0, sigma_b * angle_scale * e) for e in factor],
                [(0.0, 0.0)],
            )
        for sigma, combination in lunar_terms.ADDITIVE_LONGITUDE_TERMS:
            builder.periodic([(j, index[name]) for j, name in combination],
                             [(0.0, sigma * angle_scale)], [(0.0, 0.0)], [(0.0, 0.0)])
        for sigma, combination in lunar_terms.ADDITIVE_LATITUDE_TERMS:
            builder.periodic([(j, index[name]) for j, name in combination],
                             [(0.0, 0.0)], [(0.0, sigma * angle_scale)], [(0.0, 0.0)])

        return builder.build(
            name=Body.MOON.value,
            distance=distance,
            time_unit_days=Constants.DAYS_PER_CENTURY,
            frame=SeriesFrame.ECLIPTIC_OF_DATE,
            center=SeriesCenter.GEOCENTRIC,
            source="elp2000-meeus",
        )


_default_provider: Optional[BuiltinSeriesProvider] = None


def default_provider() -> BuiltinSeriesProvider:
    global _default_provider
    if _default_provider is None:
        _default_provider = BuiltinSeriesProvider()
    return _default_provider
