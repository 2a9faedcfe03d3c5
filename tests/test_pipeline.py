import math

import erfa
import numpy as np
import pytest

from apparent.core import pipeline as pipeline_module
from apparent.core.config import NutationModel, PipelineConfig
from apparent.core.errors import (
    CoverageError,
    MisuseError,
    ObserverNotSetError,
    UpstreamDataError,
)
from apparent.core.flags import Body, Constants, TransformFlags as F
from apparent.core.frames import FrameTransformer
from apparent.core.harmonic_series import SeriesFrame
from apparent.core.pipeline import CalculationContext, CelestialBodyState, PipelineStage
from apparent.core.precession import mean_obliquity
from apparent.core.series_provider import EphemerisDataProvider, SeriesTableBuilder
from apparent.core.timescales import TwoPartJD

from conftest import EPOCHS, J2000, angle_diff_deg

AU_KM = Constants.AUNIT / 1000.0
GEOCENTRIC_BODIES = ("Sun", "Moon", "Mercury", "Venus", "Mars", "Jupiter",
                     "Saturn", "Uranus", "Neptune")


def _erfa_apparent_sun(jd):
    """Apparent geocentric Sun from ERFA: epv00, ab, pnm06a, nut06a."""
    pvh, _ = erfa.epv00(jd, 0.0)
    p = -np.asarray(pvh["p"])
    distance = float(np.linalg.norm(p))
    v = np.asarray(pvh["v"]) * Constants.AUNIT / Constants.SECONDS_PER_DAY / Constants.CLIGHT
    bm1 = math.sqrt(1.0 - float(v @ v))
    ppr = erfa.ab(p / distance, v, distance, bm1)
    true_equator = erfa.pnm06a(jd, 0.0) @ ppr
    _, deps = erfa.nut06a(jd, 0.0)
    eps = float(erfa.obl06(jd, 0.0)) + float(deps)
    ecliptic = FrameTransformer.rotate_x(true_equator.tolist(), math.sin(eps), math.cos(eps))
    lon = math.degrees(math.atan2(ecliptic[1], ecliptic[0])) % 360.0
    ra = math.degrees(math.atan2(true_equator[1], true_equator[0])) % 360.0
    return lon, ra, distance


# ───────────────────────────── Sun ─────────────────────────────

def test_sun_at_j2000(context):
    sun = context.evaluate_body(J2000, "Sun", F.SPEED)
    # apparent λ 280°22′05″ and R 0.98333 AU at 2000 January 1.5 TT
    assert sun.longitude == pytest.approx(280.36816, abs=0.001)
    assert abs(sun.latitude) < 1e-3
    assert sun.distance == pytest.approx(0.98333, abs=1e-4)
    assert sun.longitude_speed == pytest.approx(1.019, abs=0.005)
    assert sun.source == "erfa-epv00"


@pytest.mark.parametrize("jd", [J2000, 2455197.5, 2460000.5])
def test_sun_matches_erfa_reduction(context, jd):
    lon, ra, distance = _erfa_apparent_sun(jd)
    ecliptic = context.evaluate_body(jd, Body.SUN, F.SPEED)
    equatorial = context.evaluate_body(jd, Body.SUN, F.SPEED | F.EQUATORIAL)
    assert angle_diff_deg(ecliptic.longitude, lon) == pytest.approx(0.0, abs=1e-4)
    assert angle_diff_deg(equatorial.longitude, ra) == pytest.approx(0.0, abs=1e-4)
    assert ecliptic.distance == pytest.approx(distance, abs=1e-6)


def test_sun_aberration_is_about_twenty_arcseconds(context):
    apparent = context.evaluate_body(J2000, "Sun", F.NONE)
    true = context.evaluate_body(J2000, "Sun", F.TRUE_POSITION)
    shift = angle_diff_deg(true.longitude, apparent.longitude) * 3600.0
    assert 20.3 < shift < 21.3


def test_barycentric_sun_is_near_the_origin(context):
    sun = context.evaluate_body(J2000, "Sun", F.BARYCENTRIC | F.CARTESIAN)
    assert 0.0 < sun.distance < 0.011


# ───────────────────────────── Moon ─────────────────────────────

def test_moon_apparent_position_matches_published_example(context):
    # Meeus example 47.a, apparent λ and β, 1992 April 12 0h TD
    moon = context.evaluate_body(2448724.5, "Moon", F.SPEED)
    assert moon.longitude == pytest.approx(133.167265, abs=5e-4)
    assert moon.latitude == pytest.approx(-3.229126, abs=5e-4)
    assert 11.0 < moon.longitude_speed < 16.0
    assert moon.source == "elp2000-meeus"
    # retardation along the barycentric velocity shifts the apparent distance
    assert moon.distance * AU_KM == pytest.approx(368409.7, abs=60.0)

    geometric = context.evaluate_body(2448724.5, "Moon", F.TRUE_POSITION)
    assert geometric.longitude == pytest.approx(133.167265, abs=5e-4)
    assert geometric.distance * AU_KM == pytest.approx(368409.7, abs=1.0)


def test_topocentric_moon_parallax(context):
    jd = 2455000.5
    context.set_observer(0.0, 51.5, 0.0)
    raw_flags = F.TRUE_POSITION | F.J2000 | F.ICRS | F.CARTESIAN | F.EQUATORIAL
    geo = context.evaluate_body(jd, "Moon", raw_flags)
    topo = context.evaluate_body(jd, "Moon", raw_flags | F.TOPOCENTRIC)
    offset_km = FrameTransformer.norm([geo.vector[i] - topo.vector[i] for i in range(3)]) * AU_KM
    assert 6356.0 < offset_km < 6379.0

    geo = context.evaluate_body(jd, "Moon", F.SPEED)
    topo = context.evaluate_body(jd, "Moon", F.SPEED | F.TOPOCENTRIC)
    a = FrameTransformer.polar_to_cartesian([math.radians(geo.longitude), math.radians(geo.latitude), 1.0])
    b = FrameTransformer.polar_to_cartesian([math.radians(topo.longitude), math.radians(topo.latitude), 1.0])
    separation = math.degrees(FrameTransformer.angular_separation(a, b))
    assert 0.0 < separation < 1.05
    assert abs(topo.distance - geo.distance) * AU_KM < 6400.0


def test_topocentric_moon_at_j2000(context):
    context.set_observer(0.0, 51.5, 0.0)
    geo = context.evaluate_body(J2000, "Moon")
    topo = context.evaluate_body(J2000, "Moon", F.TOPOCENTRIC)
    d_lon = angle_diff_deg(topo.longitude, geo.longitude) * 60.0
    d_lat = (topo.latitude - geo.latitude) * 60.0
    # Moon west of the meridian seen from Greenwich: parallax lowers it by
    # about 14′ in longitude and 52′ in latitude
    assert -25.0 < d_lon < -5.0
    assert -60.0 < d_lat < -40.0
    assert topo.distance < geo.distance


def test_topocentric_without_observer(context):
    with pytest.raises(ObserverNotSetError):
        context.evaluate_body(J2000, "Moon", F.TOPOCENTRIC)


# ───────────────────────────── Planets ─────────────────────────────

@pytest.mark.parametrize("jd", EPOCHS)
def test_jupiter_heliocentric_distance(context, jd):
    jupiter = context.evaluate_body(jd, "Jupiter", F.HELIOCENTRIC)
    assert 4.0 < jupiter.distance < 6.5


@pytest.mark.parametrize("jd", EPOCHS)
@pytest.mark.parametrize("body", GEOCENTRIC_BODIES)
def test_coordinate_ranges(context, jd, body):
    state = context.evaluate_body(jd, body, F.SPEED)
    assert 0.0 <= state.longitude < 360.0
    assert -90.0 <= state.latitude <= 90.0
    assert state.distance > 0.0
    equatorial = context.evaluate_body(jd, body, F.SPEED | F.EQUATORIAL)
    assert 0.0 <= equatorial.longitude < 360.0
    assert -90.0 <= equatorial.latitude <= 90.0


def test_heliocentric_j2000_true_position_is_the_raw_theory(context):
    jd = 2460000.5
    flags = F.HELIOCENTRIC | F.TRUE_POSITION | F.J2000 | F.ICRS
    mars = context.evaluate_body(jd, "Mars", flags)
    raw = context.analytic.state(Body.MARS, jd)
    eps = mean_obliquity(J2000)
    ecliptic = FrameTransformer.cartesian_to_polar(
        FrameTransformer.rotate_x(raw[0:3], math.sin(eps), math.cos(eps)))
    assert mars.longitude == pytest.approx(math.degrees(ecliptic[0]), abs=1e-9)
    assert mars.latitude == pytest.approx(math.degrees(ecliptic[1]), abs=1e-9)
    assert mars.distance == pytest.approx(ecliptic[2], abs=1e-12)


def test_light_time_moves_jupiter_slightly(context):
    jd = 2460000.5
    astrometric = context.evaluate_body(jd, "Jupiter", F.ASTROMETRIC | F.J2000)
    geometric = context.evaluate_body(jd, "Jupiter", F.TRUE_POSITION | F.J2000)
    shift = abs(angle_diff_deg(astrometric.longitude, geometric.longitude))
    assert 0.0 < shift < 0.01


def test_barycentric_and_heliocentric_differ_by_the_solar_offset(context):
    jd = 2460000.5
    flags = F.CARTESIAN | F.EQUATORIAL | F.J2000 | F.ICRS | F.TRUE_POSITION
    helio = context.evaluate_body(jd, "Saturn", flags | F.HELIOCENTRIC)
    bary = context.evaluate_body(jd, "Saturn", flags | F.BARYCENTRIC)
    sun = context.evaluate_body(jd, "Sun", flags | F.BARYCENTRIC)
    for i in range(3):
        assert bary.vector[i] - helio.vector[i] == pytest.approx(sun.vector[i], abs=1e-12)


def test_earth_heliocentric(context):
    earth = context.evaluate_body(J2000, "Earth", F.HELIOCENTRIC)
    assert earth.distance == pytest.approx(0.98333, abs=1e-4)
    emb = context.evaluate_body(J2000, "EMB", F.HELIOCENTRIC)
    assert abs(emb.distance - earth.distance) < 4e-5


def test_nutation_model_changes_result_slightly():
    a = CalculationContext(PipelineConfig()).evaluate_body(J2000, "Sun")
    b = CalculationContext(PipelineConfig(nutation_model=NutationModel.IAU_1980)).evaluate_body(J2000, "Sun")
    assert abs(angle_diff_deg(a.longitude, b.longitude)) < 1.5e-4


# ───────────────────────────── Caching ─────────────────────────────

def test_repeated_request_is_served_from_cache(context):
    first = context.evaluate_body(J2000, "Sun", F.SPEED)
    second = context.evaluate_body(J2000, "Sun", F.SPEED)
    assert second.vector == first.vector
    assert context.instrumentation.count(PipelineStage.RAW_COMPUTED.value, "Sun") == 1

    context.evaluate_body(J2000, "Sun", F.SPEED | F.EQUATORIAL | F.RADIANS)
    context.evaluate_body(J2000, "Sun", F.SPEED | F.CARTESIAN)
    assert context.instrumentation.count("raw_computed", "Sun") == 1
    assert context.instrumentation.cache_hits["Sun"] == 3

    context.evaluate_body(J2000, "Sun", F.SPEED | F.TRUE_POSITION)
    assert context.instrumentation.count("raw_computed", "Sun") == 2
    context.evaluate_body(J2000 + 1.0, "Sun", F.SPEED | F.TRUE_POSITION)
    assert context.instrumentation.count("raw_computed", "Sun") == 3


def test_caching_can_be_disabled(uncached_context):
    uncached_context.evaluate_body(J2000, "Mars")
    uncached_context.evaluate_body(J2000, "Mars")
    assert uncached_context.instrumentation.count("raw_computed", "Mars") == 2


def test_changing_observer_invalidates_positions(context):
    context.set_observer(10.0, 45.0)
    context.evaluate_body(J2000, "Moon", F.TOPOCENTRIC)
    context.set_observer(10.0, 45.0)
    context.evaluate_body(J2000, "Moon", F.TOPOCENTRIC)
    assert context.instrumentation.count("raw_computed", "Moon") == 1
    context.set_observer(11.0, 45.0)
    context.evaluate_body(J2000, "Moon", F.TOPOCENTRIC)
    assert context.instrumentation.count("raw_computed", "Moon") == 2


def test_clear_caches(context):
    context.evaluate_body(J2000, "Venus")
    context.clear_caches()
    assert not context.positions and not context.raw_states
    context.evaluate_body(J2000, "Venus")
    assert context.instrumentation.count("raw_computed", "Venus") == 2


def test_stage_sequence_is_recorded(context):
    context.evaluate_body(J2000, "Mars", F.SPEED)
    for stage in ("raw_computed", "barycenter_adjusted", "light_time_applied", "frame_converted"):
        assert context.instrumentation.count(stage, "Mars") == 1
    context.evaluate_body(J2000, "Mars", F.SPEED | F.TRUE_POSITION)
    assert context.instrumentation.count("light_time_applied", "Mars") == 1
    assert context.instrumentation.snapshot()["stages"]["frame_converted"] == 2


# ───────────────────────────── Output forms ─────────────────────────────

def test_speed_is_zero_unless_requested(context):
    state = context.evaluate_body(J2000, "Venus", F.NONE)
    assert state.vector[3:6] == (0.0, 0.0, 0.0)
    cartesian = context.evaluate_body(J2000, "Venus", F.CARTESIAN)
    assert cartesian.vector[3:6] == (0.0, 0.0, 0.0)


def test_coordinate_forms_are_consistent(context):
    polar = context.evaluate_body(J2000, "Mars", F.SPEED)
    radians = context.evaluate_body(J2000, "Mars", F.SPEED | F.RADIANS)
    cartesian = context.evaluate_body(J2000, "Mars", F.SPEED | F.CARTESIAN)
    assert radians.longitude == pytest.approx(math.radians(polar.longitude))
    assert radians.longitude_speed == pytest.approx(math.radians(polar.longitude_speed))
    assert cartesian.distance == pytest.approx(polar.distance)
    assert math.degrees(math.atan2(cartesian.y, cartesian.x)) % 360.0 == pytest.approx(polar.longitude)


def test_accessors_match_the_form(context):
    cartesian = context.evaluate_body(J2000, "Mars", F.CARTESIAN)
    with pytest.raises(MisuseError):
        cartesian.longitude
    polar = context.evaluate_body(J2000, "Mars")
    with pytest.raises(MisuseError):
        polar.x
    data = polar.to_dict()
    assert data["body"] == "Mars" and data["frame"] == "ecliptic" and data["equinox"] == "date"
    assert isinstance(polar, CelestialBodyState)


def test_two_part_epoch_is_accepted(context):
    a = context.evaluate_body(TwoPartJD(2451544.5, 0.5), "Sun")
    b = context.evaluate_body(J2000, "Sun")
    assert a.vector == b.vector


# ───────────────────────────── Errors ─────────────────────────────

def test_out_of_range_epochs(context):
    with pytest.raises(CoverageError):
        context.evaluate_body(500000.0, "Mars")
    with pytest.raises(CoverageError):
        context.evaluate_body(3000000.0, "Moon")


def test_misuse(context):
    with pytest.raises(MisuseError):
        context.evaluate_body(J2000, "Earth")
    with pytest.raises(MisuseError):
        context.evaluate_body(J2000, "Earth", F.TOPOCENTRIC)
    with pytest.raises(MisuseError):
        context.evaluate_body(J2000, "Sun", F.HELIOCENTRIC)
    with pytest.raises(MisuseError):
        context.evaluate_body(J2000, "Mars", F.HELIOCENTRIC | F.BARYCENTRIC)
    with pytest.raises(MisuseError):
        context.evaluate_body(float("nan"), "Mars")
    with pytest.raises(MisuseError):
        context.evaluate_body(J2000, "Vulcan")


def test_pluto_needs_an_external_provider(context):
    with pytest.raises(UpstreamDataError):
        context.evaluate_body(J2000, "Pluto")


# ───────────────────────────── Providers ─────────────────────────────

class CircularMarsProvider(EphemerisDataProvider):
    source = "circular"

    def supports(self, body):
        return body is Body.MARS

    def _build_table(self, body):
        builder = SeriesTableBuilder()
        builder.polynomial([360000.0, 1296000.0 / 1.88], [0.0], [0.0])
        return builder.build(name="Mars", distance=1.52, time_unit_days=365.25,
                             frame=SeriesFrame.ECLIPTIC_J2000, source="circular-test")


def test_injected_provider_tables_drive_the_pipeline():
    context = CalculationContext(PipelineConfig(), provider=CircularMarsProvider())
    flags = F.HELIOCENTRIC | F.TRUE_POSITION | F.J2000 | F.ICRS | F.SPEED
    mars = context.evaluate_body(J2000, "Mars", flags)
    assert mars.longitude == pytest.approx(100.0, abs=1e-9)
    assert mars.latitude == pytest.approx(0.0, abs=1e-9)
    assert mars.distance == pytest.approx(1.52)
    assert mars.longitude_speed == pytest.approx(360.0 / 1.88 / 365.25, rel=1e-4)
    assert mars.source == "circular-test"
    # bodies the provider does not cover fall back to the analytic theories
    assert context.evaluate_body(J2000, "Moon").source == "erfa-moon98"


# ───────────────────────────── Module API and profiling ─────────────────────────────

def test_module_level_api(monkeypatch):
    monkeypatch.setattr(pipeline_module, "_default_context", None)
    sun = pipeline_module.evaluate_body(J2000, "Sun")
    assert sun.longitude == pytest.approx(280.37, abs=0.01)
    assert pipeline_module.default_context() is pipeline_module.default_context()
    pipeline_module.set_observer(2.35, 48.85, 35.0)
    assert pipeline_module.default_context().observer.is_set
    monkeypatch.setattr(pipeline_module, "_default_context", None)


def test_profiling_records_evaluations():
    context = CalculationContext(PipelineConfig(enable_profiling=True))
    context.evaluate_body(J2000, "Mars")
    context.evaluate_body(J2000, "Mars")
    summary = context.profiler.summary()
    assert summary["count"] == 1
    assert summary["mean_ms"] >= 0.0
