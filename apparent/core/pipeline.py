# apparent/core/pipeline.py
# -----------------------------------------------------------------------------
# Apparent-position pipeline
#
# Stage order (per body, per epoch, per correction-flag class):
#   raw series → barycenter adjustment → light-time → light deflection →
#   annual aberration → frame bias → precession → nutation → frame conversion
#
# Standards Compliance:
#   • Explanatory Supplement (1992) reduction chain for apparent places
#   • IAU 2006 precession, IAU 1980 / 2000A / 2000B nutation (configurable)
#   • IAU 2000 / 2006 frame bias
#
# Precision Guarantees:
#   • At most one full evaluation per (body, epoch, flag class); the
#     coordinate-form bits (equatorial, Cartesian, radians) select among
#     cached representations and never trigger recomputation
#   • Single-pass light-time; the body is re-evaluated at the retarded epoch
#   • Velocities carried through every stage and zeroed only on output
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence, Tuple, Union

from .analytic_theories import AnalyticTheorySource
from .barycenter import BarycenterCorrector
from .config import PipelineConfig
from .errors import MisuseError, ObserverNotSetError
from .flags import Body, Constants, TransformFlags, flag_class, resolve_body, validate_flags
from .frames import FrameTransformer, Vector
from .harmonic_series import HarmonicSeriesEvaluator
from .instrumentation import PerformanceProfiler, PipelineInstrumentation
from .light_time import LightTimeCorrector
from .lunar_points import LUNAR_MEAN_POINTS, LunarMeanPoints
from .nutation import NutationEngine
from .observer import ObserverGeometry
from .precession import DATE_TO_J2000, J2000_TO_DATE, PrecessionTransform, mean_obliquity
from .series_provider import EphemerisDataProvider, default_provider
from .timescales import DeltaTModel, TwoPartJD

log = logging.getLogger(__name__)

__all__ = [
    "PipelineStage",
    "CelestialBodyState",
    "ApparentPosition",
    "CalculationContext",
    "PositionPipeline",
    "default_context",
    "evaluate_body",
    "set_observer",
]

F = TransformFlags
_ZERO = (0.0, 0.0, 0.0, 0.0, 0.0, 0.0)
_RAW_CACHE_LIMIT = 256
_BARYCENTER_PLANETS = (
    Body.MERCURY, Body.VENUS, Body.MARS, Body.JUPITER,
    Body.SATURN, Body.URANUS, Body.NEPTUNE,
)


class PipelineStage(Enum):
    RAW_COMPUTED = "raw_computed"
    BARYCENTER_ADJUSTED = "barycenter_adjusted"
    LIGHT_TIME_APPLIED = "light_time_applied"
    FRAME_CONVERTED = "frame_converted"


# ───────────────────────────── Result structures ─────────────────────────────

@dataclass(frozen=True)
class CelestialBodyState:
    """Position and velocity of one body in the requested frame and form.

    Polar vectors are (lon, lat, r, dlon, dlat, dr) in degrees (or radians
    with RADIANS), AU and per-day rates; Cartesian vectors are AU and AU/day.
    Velocity components are exactly zero unless SPEED was requested.
    """
    body: Body
    vector: Tuple[float, float, float, float, float, float]
    epoch_tt: float
    flags: TransformFlags
    source: str

    @property
    def is_cartesian(self) -> bool:
        return bool(self.flags & F.CARTESIAN)

    @property
    def is_equatorial(self) -> bool:
        return bool(self.flags & F.EQUATORIAL)

    def _polar(self, index: int) -> float:
        if self.is_cartesian:
            raise MisuseError("Polar accessor used on a Cartesian state", body=self.body.value)
        return self.vector[index]

    def _cartesian(self, index: int) -> float:
        if not self.is_cartesian:
            raise MisuseError("Cartesian accessor used on a polar state", body=self.body.value)
        return self.vector[index]

    @property
    def longitude(self) -> float:
        """Ecliptic longitude, or right ascension with EQUATORIAL."""
        return self._polar(0)

    @property
    def latitude(self) -> float:
        """Ecliptic latitude, or declination with EQUATORIAL."""
        return self._polar(1)

    @property
    def distance(self) -> float:
        if self.is_cartesian:
            return FrameTransformer.norm(self.vector)
        return self.vector[2]

    @property
    def longitude_speed(self) -> float:
        return self._polar(3)

    @property
    def latitude_speed(self) -> float:
        return self._polar(4)

    @property
    def distance_speed(self) -> float:
        return self._polar(5)

    @property
    def x(self) -> float:
        return self._cartesian(0)

    @property
    def y(self) -> float:
        return self._cartesian(1)

    @property
    def z(self) -> float:
        return self._cartesian(2)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "body": self.body.value,
            "epoch_tt": self.epoch_tt,
            "flags": int(self.flags),
            "source": self.source,
            "frame": "equatorial" if self.is_equatorial else "ecliptic",
            "equinox": "j2000" if self.flags & F.J2000 else "date",
            "vector": list(self.vector),
        }
        if self.is_cartesian:
            result.update({"x": self.vector[0], "y": self.vector[1], "z": self.vector[2]})
        else:
            result.update({
                "longitude": self.vector[0],
                "latitude": self.vector[1],
                "distance_au": self.vector[2],
                "longitude_speed": self.vector[3],
            })
        return result


@dataclass(frozen=True)
class ApparentPosition:
    """The four final representations of one evaluation (polar in radians)."""
    ecliptic_polar: Tuple[float, ...]
    ecliptic_cartesian: Tuple[float, ...]
    equatorial_polar: Tuple[float, ...]
    equatorial_cartesian: Tuple[float, ...]
    source: str

    def select(self, flags: TransformFlags) -> Tuple[float, ...]:
        equatorial = bool(flags & F.EQUATORIAL)
        if flags & F.CARTESIAN:
            return self.equatorial_cartesian if equatorial else self.ecliptic_cartesian
        polar = list(self.equatorial_polar if equatorial else self.ecliptic_polar)
        if not flags & F.RADIANS:
            for i in (0, 1, 3, 4):
                polar[i] = math.degrees(polar[i])
            polar[0] = FrameTransformer.normalize_degrees(polar[0])
        return tuple(polar)


@dataclass
class _CacheEntry:
    epoch_tt: float
    flag_class: int
    position: ApparentPosition


# ───────────────────────────── Calculation context ─────────────────────────────

class CalculationContext:
    """Owns the collaborators and every cache of one calculation context.

    Not safe for concurrent mutation; use one context per thread.
    """

    def __init__(self, config: Optional[PipelineConfig] = None,
                 provider: Optional[EphemerisDataProvider] = None,
                 precession: Optional[PrecessionTransform] = None,
                 delta_t: Optional[DeltaTModel] = None,
                 analytic: Optional[AnalyticTheorySource] = None):
        self.config = config or PipelineConfig()
        self.provider = provider or default_provider()
        self.analytic = analytic or AnalyticTheorySource(range_margin_days=self.config.range_margin_days)
        self.precession = precession or PrecessionTransform(self.config.nutation_model)
        self.delta_t = delta_t or DeltaTModel(self.config.delta_t_override_seconds)
        self.nutation = NutationEngine.from_config(self.config)
        self.evaluator = HarmonicSeriesEvaluator(
            self.precession,
            range_margin_days=self.config.range_margin_days,
            speed_interval_days=self.config.speed_interval_days,
        )
        self.barycenter = BarycenterCorrector(self.precession, self.config.speed_interval_days)
        self.light_time = LightTimeCorrector(
            deflection_speed_interval_days=self.config.deflection_speed_interval_days,
            aberration_speed_interval_days=self.config.speed_interval_days,
        )
        self.lunar_points = LunarMeanPoints(range_margin_days=self.config.range_margin_days)
        self.observer = ObserverGeometry(self.nutation, self.precession, self.delta_t)
        self.instrumentation = PipelineInstrumentation()
        self.profiler = PerformanceProfiler() if self.config.enable_profiling else None

        self.positions: Dict[Body, _CacheEntry] = {}
        self.raw_states: Dict[Tuple[Body, float], Vector] = {}
        self.solar_offsets: Dict[float, Vector] = {}
        self.pipeline = PositionPipeline(self)

    def set_observer(self, longitude_deg: float, latitude_deg: float, altitude_m: float = 0.0) -> None:
        previous = self.observer.frame
        self.observer.set_position(longitude_deg, latitude_deg, altitude_m)
        if self.observer.frame != previous:
            self.positions.clear()

    def evaluate_body(self, jd_tt: Union[float, TwoPartJD], body: Union[Body, str],
                      flags: Union[int, TransformFlags] = F.SPEED) -> CelestialBodyState:
        return self.pipeline.evaluate_body(jd_tt, body, flags)

    def clear_caches(self) -> None:
        self.positions.clear()
        self.raw_states.clear()
        self.solar_offsets.clear()


# ───────────────────────────── Pipeline ─────────────────────────────

def _add(a: Sequence[float], b: Sequence[float]) -> Vector:
    return [a[i] + b[i] for i in range(6)]


def _sub(a: Sequence[float], b: Sequence[float]) -> Vector:
    return [a[i] - b[i] for i in range(6)]


def _retarded(x: Sequence[float], dt: float) -> Vector:
    """Position moved back by dt along its velocity; velocity unchanged."""
    return [x[i] - dt * x[i + 3] for i in range(3)] + list(x[3:6])


class PositionPipeline:
    """Runs the stage sequence for one body and caches the final result."""

    def __init__(self, context: CalculationContext):
        self.context = context

    # ───────────── entry point ─────────────

    def evaluate_body(self, jd_tt: Union[float, TwoPartJD], body: Union[Body, str],
                      flags: Union[int, TransformFlags] = F.SPEED) -> CelestialBodyState:
        """Apparent state of body at jd_tt (TT) for the given flag word."""
        ctx = self.context
        body = resolve_body(body)
        flags = validate_flags(flags)
        jd = jd_tt.jd if isinstance(jd_tt, TwoPartJD) else float(jd_tt)
        if not math.isfinite(jd):
            raise MisuseError(f"Epoch must be finite, got {jd_tt!r}", body=body.value)

        work = self._effective_flags(body, flags)
        if work & F.TOPOCENTRIC and not ctx.observer.is_set:
            raise ObserverNotSetError(body=body.value)
        self._check_range(body, jd)

        key = flag_class(work)
        entry = ctx.positions.get(body)
        hit = (ctx.config.enable_caching and entry is not None
               and entry.epoch_tt == jd and entry.flag_class == key)
        ctx.instrumentation.record_cache(body.value, hit)
        if hit:
            log.debug("Cache hit for %s at JD %.6f (flag class %#x)", body.value, jd, key)
            position = entry.position
        else:
            if ctx.profiler is not None:
                position = ctx.profiler.profile_function(
                    f"{body.value}@{jd:.6f}", self._compute, body, jd, work)
            else:
                position = self._compute(body, jd, work)
            ctx.positions[body] = _CacheEntry(jd, key, position)

        return CelestialBodyState(
            body=body,
            vector=position.select(flags),
            epoch_tt=jd,
            flags=flags,
            source=position.source,
        )

    @staticmethod
    def _effective_flags(body: Body, flags: TransformFlags) -> TransformFlags:
        if flags & (F.HELIOCENTRIC | F.BARYCENTRIC):
            flags |= F.NO_ABERRATION | F.NO_DEFLECTION
        if flags & F.J2000:
            flags |= F.NO_NUTATION
        if body is Body.EARTH and not flags & (F.HELIOCENTRIC | F.BARYCENTRIC):
            raise MisuseError("Earth has no geocentric or topocentric position", body=body.value)
        if body is Body.SUN and flags & F.HELIOCENTRIC:
            raise MisuseError("The Sun is the heliocentric origin", body=body.value)
        if body in LUNAR_MEAN_POINTS:
            if flags & (F.HELIOCENTRIC | F.BARYCENTRIC):
                raise MisuseError(f"{body.value} is defined only geocentrically", body=body.value)
            # geometric points of the mean orbit, seen from the geocenter
            flags = (flags & ~F.TOPOCENTRIC) | F.TRUE_POSITION
        return flags

    def _check_range(self, body: Body, jd: float) -> None:
        ctx = self.context
        if body in LUNAR_MEAN_POINTS:
            ctx.lunar_points.check_range(body, jd)
            return
        inputs = [Body.EARTH]
        if body not in (Body.SUN, Body.EARTH, Body.EARTH_MOON_BARYCENTER):
            inputs.append(body)
        for b in inputs:
            if ctx.provider.supports(b):
                ctx.evaluator.check_range(ctx.provider.table_for(b), jd)
            else:
                ctx.analytic.check_range(b, jd)

    def _compute(self, body: Body, jd: float, flags: TransformFlags) -> ApparentPosition:
        stages = self.context.instrumentation

        def record(stage: PipelineStage) -> None:
            stages.record_stage(stage.value, body.value)
            log.debug("%s JD %.6f: %s", body.value, jd, stage.value)

        if body is Body.SUN:
            xx, source = self._sun(jd, flags, record)
        elif body is Body.MOON:
            xx, source = self._moon(jd, flags, record)
        elif body in LUNAR_MEAN_POINTS:
            xx, source = self._mean_point(body, jd, flags, record)
        else:
            xx, source = self._planet(body, jd, flags, record)
        position = self._frame_conversion(xx, jd, flags, source)
        record(PipelineStage.FRAME_CONVERTED)
        return position

    # ───────────── raw states ─────────────

    def _raw(self, body: Body, jd: float) -> Vector:
        """Heliocentric (Moon: geocentric) J2000 equatorial state with velocity."""
        ctx = self.context
        key = (body, jd)
        state = ctx.raw_states.get(key)
        if state is not None:
            return list(state)

        if body is Body.EARTH_MOON_BARYCENTER:
            if ctx.provider.supports(Body.EARTH) and ctx.provider.table_for(Body.EARTH).is_emb:
                state = ctx.evaluator.state(ctx.provider.table_for(Body.EARTH), jd)
            else:
                state = ctx.barycenter.emb_from_earth(self._raw(Body.EARTH, jd), jd)
        elif ctx.provider.supports(body):
            table = ctx.provider.table_for(body)
            state = ctx.evaluator.state(table, jd)
            if body is Body.EARTH and table.is_emb:
                state = ctx.barycenter.earth_from_emb(state, jd)
        else:
            state = ctx.analytic.state(body, jd)

        if len(ctx.raw_states) >= _RAW_CACHE_LIMIT:
            ctx.raw_states.clear()
        ctx.raw_states[key] = state
        return list(state)

    def _solar_offset(self, jd: float) -> Vector:
        """Barycentric state of the Sun."""
        ctx = self.context
        offset = ctx.solar_offsets.get(jd)
        if offset is None:
            states = {b.value: self._raw(b, jd) for b in _BARYCENTER_PLANETS}
            states["EMB"] = self._raw(Body.EARTH_MOON_BARYCENTER, jd)
            offset = ctx.barycenter.solar_barycenter_offset(states)
            if len(ctx.solar_offsets) >= _RAW_CACHE_LIMIT:
                ctx.solar_offsets.clear()
            ctx.solar_offsets[jd] = offset
        return list(offset)

    def _observer_offset(self, jd: float, flags: TransformFlags) -> Vector:
        return self.context.observer.observer_state(jd, with_nutation=not flags & F.NO_NUTATION)

    def _source(self, body: Body) -> str:
        ctx = self.context
        if ctx.provider.supports(body):
            return ctx.provider.table_for(body).source
        return ctx.analytic.source_tag(body)

    # ───────────── body branches ─────────────

    def _planet(self, body: Body, jd: float, flags: TransformFlags,
                record: Callable[[PipelineStage], None]) -> Tuple[Vector, str]:
        ctx = self.context
        geocentric = not flags & (F.HELIOCENTRIC | F.BARYCENTRIC)

        x0 = self._raw(body, jd)
        earth = self._raw(Body.EARTH, jd)
        record(PipelineStage.RAW_COMPUTED)

        xsun = list(_ZERO)
        if flags & F.BARYCENTRIC:
            xsun = self._solar_offset(jd)
            x0 = _add(x0, xsun)
            earth = _add(earth, xsun)
        record(PipelineStage.BARYCENTER_ADJUSTED)

        # observer in the working frame; the center itself for helio / bary
        xobs = list(_ZERO)
        if geocentric:
            xobs = earth
            if flags & F.TOPOCENTRIC:
                xobs = _add(earth, self._observer_offset(jd, flags))

        xx = list(x0)
        xobs2 = xobs
        dt = 0.0
        if not flags & F.TRUE_POSITION:
            dt = ctx.light_time.light_time_days(_sub(x0, xobs))
            t_ret = jd - dt
            xx = self._raw(body, t_ret)
            if flags & F.BARYCENTRIC:
                xx = _add(xx, _retarded(xsun, dt))
            if geocentric:
                xx = xx[0:3] + [
                    v - c for v, c in zip(xx[3:6], ctx.light_time.light_time_speed_change(x0, xobs, dt))
                ]
                xobs2 = self._raw(Body.EARTH, t_ret)
                if flags & F.TOPOCENTRIC:
                    xobs2 = _add(xobs2, self._observer_offset(t_ret, flags))
            record(PipelineStage.LIGHT_TIME_APPLIED)

        if geocentric:
            xx = _sub(xx, xobs)
        if not flags & (F.TRUE_POSITION | F.NO_DEFLECTION):
            xx = ctx.light_time.deflect(xx, xobs, xsun, dt)
        if not flags & (F.TRUE_POSITION | F.NO_ABERRATION):
            xx = ctx.light_time.aberrate(xx, xobs)
            for i in range(3, 6):
                xx[i] += xobs[i] - xobs2[i]
        return xx, self._source(body if body is not Body.EARTH_MOON_BARYCENTER else Body.EARTH)

    def _sun(self, jd: float, flags: TransformFlags,
             record: Callable[[PipelineStage], None]) -> Tuple[Vector, str]:
        ctx = self.context
        earth = self._raw(Body.EARTH, jd)
        record(PipelineStage.RAW_COMPUTED)

        if flags & F.BARYCENTRIC:
            xx = self._solar_offset(jd)
            record(PipelineStage.BARYCENTER_ADJUSTED)
            return xx, self._source(Body.EARTH)
        record(PipelineStage.BARYCENTER_ADJUSTED)

        xobs = earth
        if flags & F.TOPOCENTRIC:
            xobs = _add(earth, self._observer_offset(jd, flags))
        # geometric Sun; aberration accounts for the light-time
        xx = [-c for c in xobs]
        if not flags & (F.TRUE_POSITION | F.NO_ABERRATION):
            xx = ctx.light_time.aberrate(xx, xobs)
        return xx, self._source(Body.EARTH)

    def _moon(self, jd: float, flags: TransformFlags,
              record: Callable[[PipelineStage], None]) -> Tuple[Vector, str]:
        ctx = self.context
        moon = self._raw(Body.MOON, jd)
        earth = self._raw(Body.EARTH, jd)
        record(PipelineStage.RAW_COMPUTED)

        xsun = list(_ZERO)
        if flags & F.BARYCENTRIC:
            xsun = self._solar_offset(jd)
            earth = _add(earth, xsun)
        record(PipelineStage.BARYCENTER_ADJUSTED)

        xx = _add(moon, earth)
        if flags & F.TOPOCENTRIC:
            offset = self._observer_offset(jd, flags)
            xxm = _sub(moon, offset)
            xobs = _add(earth, offset)
        elif flags & F.BARYCENTRIC:
            xxm = list(xx)
            xobs = list(_ZERO)
        elif flags & F.HELIOCENTRIC:
            xxm = _sub(xx, xsun)
            xobs = xsun
        else:
            xxm = moon
            xobs = earth

        xobs2 = xobs
        if not flags & F.TRUE_POSITION:
            # linear extrapolation is adequate over the ~1.3 s lunar light-time
            dt = ctx.light_time.light_time_days(xxm)
            xx = _retarded(xx, dt)
            if flags & F.TOPOCENTRIC:
                xobs2 = _add(self._observer_offset(jd - dt, flags), _retarded(earth, dt))
            elif not flags & (F.HELIOCENTRIC | F.BARYCENTRIC):
                xobs2 = _retarded(earth, dt)
            record(PipelineStage.LIGHT_TIME_APPLIED)

        xx = _sub(xx, xobs)
        if not flags & (F.TRUE_POSITION | F.NO_ABERRATION):
            xx = ctx.light_time.aberrate(xx, xobs)
            for i in range(3, 6):
                xx[i] += xobs[i] - xobs2[i]
        return xx, self._source(Body.MOON)

    def _mean_point(self, body: Body, jd: float, flags: TransformFlags,
                    record: Callable[[PipelineStage], None]) -> Tuple[Vector, str]:
        """Mean node or apogee, carried from the mean ecliptic of date to J2000."""
        ctx = self.context
        polar = ctx.lunar_points.ecliptic_state(body, jd)
        record(PipelineStage.RAW_COMPUTED)
        eps = mean_obliquity(jd, ctx.config.nutation_model)
        xx = FrameTransformer.rotate_state_x(
            FrameTransformer.polar_to_cartesian_state(polar), -math.sin(eps), math.cos(eps))
        xx = ctx.precession.precess_state(xx, jd, DATE_TO_J2000, with_speed=True)
        if not flags & F.ICRS:
            xx = ctx.light_time.apply_bias(xx, ctx.config.bias_model, backward=True)
        return xx, ctx.lunar_points.source_tag(body)

    # ───────────── frame conversion ─────────────

    def _frame_conversion(self, xx: Vector, jd: float, flags: TransformFlags,
                          source: str) -> ApparentPosition:
        ctx = self.context
        model = ctx.config.nutation_model

        if not flags & F.ICRS:
            xx = ctx.light_time.apply_bias(xx, ctx.config.bias_model)

        if flags & F.J2000:
            eps = mean_obliquity(Constants.J2000, model)
        else:
            xx = ctx.precession.precess_state(xx, jd, J2000_TO_DATE, with_speed=True)
            eps = mean_obliquity(jd, model)

        if not flags & F.NO_NUTATION:
            xx = self._nutate(xx, jd, eps)

        if not flags & F.SPEED:
            xx = xx[0:3] + [0.0, 0.0, 0.0]

        equatorial = list(xx)
        ecliptic = FrameTransformer.rotate_state_x(equatorial, math.sin(eps), math.cos(eps))
        if not flags & F.NO_NUTATION:
            deps = ctx.nutation.nutation(jd).deps
            ecliptic = FrameTransformer.rotate_state_x(ecliptic, math.sin(deps), math.cos(deps))

        return ApparentPosition(
            ecliptic_polar=tuple(FrameTransformer.cartesian_to_polar_state(ecliptic)),
            ecliptic_cartesian=tuple(ecliptic),
            equatorial_polar=tuple(FrameTransformer.cartesian_to_polar_state(equatorial)),
            equatorial_cartesian=tuple(equatorial),
            source=source,
        )

    def _nutate(self, xx: Vector, jd: float, eps: float) -> Vector:
        """Mean → true equator of date; velocity includes the matrix rate."""
        ctx = self.context
        interval = ctx.config.speed_interval_days
        matrix = ctx.nutation.matrix(jd, eps)
        previous = ctx.nutation.matrix(jd - interval, mean_obliquity(jd - interval, ctx.config.nutation_model))
        out = FrameTransformer.apply_matrix_state(matrix, xx)
        now = out[0:3]
        before = FrameTransformer.apply_matrix(previous, xx[0:3])
        for i in range(3):
            out[i + 3] += (now[i] - before[i]) / interval
        return out


# ───────────────────────────── Module-level API ─────────────────────────────

_default_context: Optional[CalculationContext] = None


def default_context() -> CalculationContext:
    global _default_context
    if _default_context is None:
        _default_context = CalculationContext(PipelineConfig.from_env())
    return _default_context


def evaluate_body(jd_tt: Union[float, TwoPartJD], body: Union[Body, str],
                  flags: Union[int, TransformFlags] = F.SPEED) -> CelestialBodyState:
    """Apparent state of a body using the process-wide default context."""
    return default_context().evaluate_body(jd_tt, body, flags)


def set_observer(longitude_deg: float, latitude_deg: float, altitude_m: float = 0.0) -> None:
    """Geographic position used by TOPOCENTRIC requests on the default context."""
    default_context().set_observer(longitude_deg, latitude_deg, altitude_m)
