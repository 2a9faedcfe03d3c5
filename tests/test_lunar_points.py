import math

import pytest

from apparent.core.errors import CoverageError, MisuseError
from apparent.core.flags import Body, Constants, TransformFlags as F
from apparent.core.lunar_points import (
    MOON_MEAN_DISTANCE_KM,
    MOON_MEAN_ECCENTRICITY,
    MOON_MEAN_INCLINATION_DEG,
    LunarMeanPoints,
    mean_lunar_elements,
)

from conftest import J2000, angle_diff_deg, arcsec

AU_KM = Constants.AUNIT / 1000.0
MEAN = F.SPEED | F.NO_NUTATION


@pytest.fixture
def points():
    return LunarMeanPoints()


def test_mean_elements_at_j2000():
    el = mean_lunar_elements(J2000)
    assert el.longitude / 3600.0 == pytest.approx(218.31665, abs=1e-5)
    assert el.F / 3600.0 == pytest.approx(93.27210, abs=1e-5)
    assert el.l / 3600.0 == pytest.approx(134.96341, abs=1e-5)


def test_mean_node_regresses(points):
    state = points.ecliptic_state(Body.MEAN_NODE, J2000)
    assert math.degrees(state[0]) == pytest.approx(125.04455, abs=1e-5)
    assert state[1] == 0.0
    assert state[2] * AU_KM == pytest.approx(MOON_MEAN_DISTANCE_KM)
    # one retrograde revolution in 18.6 years
    assert math.degrees(state[3]) == pytest.approx(-0.052954, abs=1e-5)


def test_mean_apogee_lies_in_the_mean_orbit(points):
    state = points.ecliptic_state(Body.MEAN_APOGEE, J2000)
    lon, lat = math.degrees(state[0]), math.degrees(state[1])
    assert lon == pytest.approx(263.47, abs=0.03)
    assert lat == pytest.approx(3.42, abs=0.01)
    assert abs(lat) <= MOON_MEAN_INCLINATION_DEG
    assert state[2] * AU_KM == pytest.approx(MOON_MEAN_DISTANCE_KM * (1.0 + MOON_MEAN_ECCENTRICITY))
    # the apsidal line advances once in 8.85 years
    assert 0.09 < math.degrees(state[3]) < 0.13


def test_node_longitude_wraps_continuously(points):
    # the speed estimate must not jump where the node crosses 0°
    for day in range(0, 6800, 97):
        state = points.ecliptic_state(Body.MEAN_NODE, J2000 + day)
        assert -0.06 < math.degrees(state[3]) < -0.045


def test_range_and_misuse(points):
    with pytest.raises(CoverageError):
        points.ecliptic_state(Body.MEAN_NODE, 500000.0)
    with pytest.raises(MisuseError):
        points.check_range(Body.MARS, J2000)


# ───────────────────────────── Through the pipeline ─────────────────────────────

def test_pipeline_mean_node_matches_the_elements(context):
    node = context.evaluate_body(J2000, "MeanNode", MEAN)
    assert node.longitude == pytest.approx(125.04455, abs=1e-5)
    assert abs(node.latitude) < 1e-9
    assert node.longitude_speed == pytest.approx(-0.052954, abs=1e-4)
    assert node.source == "moshier-mean-elements"


def test_pipeline_mean_node_off_j2000_round_trips_precession(context, points):
    jd = 2460000.5
    node = context.evaluate_body(jd, Body.MEAN_NODE, MEAN)
    expected = math.degrees(points.ecliptic_state(Body.MEAN_NODE, jd)[0])
    assert angle_diff_deg(node.longitude, expected) == pytest.approx(0.0, abs=1e-8)
    assert abs(node.latitude) < 1e-8


def test_nutation_shifts_the_node_by_dpsi(context):
    mean = context.evaluate_body(J2000, Body.MEAN_NODE, MEAN)
    true = context.evaluate_body(J2000, Body.MEAN_NODE, F.SPEED)
    dpsi = arcsec(context.nutation.nutation(J2000).dpsi)
    shift = angle_diff_deg(true.longitude, mean.longitude) * 3600.0
    assert shift == pytest.approx(dpsi, abs=0.01)


def test_j2000_ecliptic_removes_precession(context):
    jd = J2000 + 36525.0
    of_date = context.evaluate_body(jd, Body.MEAN_NODE, MEAN)
    j2000 = context.evaluate_body(jd, Body.MEAN_NODE, MEAN | F.J2000)
    # a century of general precession, about 1.397°
    assert angle_diff_deg(of_date.longitude, j2000.longitude) == pytest.approx(1.397, abs=0.01)


def test_pipeline_mean_apogee(context):
    apogee = context.evaluate_body(J2000, "MeanApogee", MEAN)
    assert apogee.longitude == pytest.approx(263.47, abs=0.03)
    assert apogee.latitude == pytest.approx(3.42, abs=0.01)
    assert apogee.distance * AU_KM == pytest.approx(384400.0 * 1.0549006, rel=1e-9)


def test_mean_points_skip_apparent_corrections(context):
    apparent = context.evaluate_body(J2000, Body.MEAN_APOGEE, F.SPEED)
    geometric = context.evaluate_body(J2000, Body.MEAN_APOGEE, F.SPEED | F.TRUE_POSITION)
    assert apparent.vector == geometric.vector
    assert context.instrumentation.count("light_time_applied", "MeanApogee") == 0
    # served from the same cache entry
    assert context.instrumentation.count("raw_computed", "MeanApogee") == 1


def test_topocentric_request_is_geocentric(context):
    geo = context.evaluate_body(J2000, Body.MEAN_NODE)
    topo = context.evaluate_body(J2000, Body.MEAN_NODE, F.SPEED | F.TOPOCENTRIC)
    assert topo.vector == geo.vector


def test_mean_points_have_no_heliocentric_position(context):
    with pytest.raises(MisuseError):
        context.evaluate_body(J2000, Body.MEAN_NODE, F.HELIOCENTRIC)
    with pytest.raises(MisuseError):
        context.evaluate_body(J2000, Body.MEAN_APOGEE, F.BARYCENTRIC)
    with pytest.raises(CoverageError):
        context.evaluate_body(500000.0, Body.MEAN_NODE)
