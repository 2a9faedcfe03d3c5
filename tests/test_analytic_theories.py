import logging
import math

import pytest

from apparent.core.analytic_theories import PLAN94_INDEX, AnalyticTheorySource
from apparent.core.errors import CoverageError, MisuseError, UpstreamDataError
from apparent.core.flags import Body
from apparent.core.frames import FrameTransformer

from conftest import EPOCHS


@pytest.fixture
def source():
    return AnalyticTheorySource()


def test_earth_at_j2000(source):
    earth = source.state(Body.EARTH, 2451545.0)
    assert FrameTransformer.norm(earth[0:3]) == pytest.approx(0.98333, abs=1e-4)
    assert FrameTransformer.norm(earth[3:6]) == pytest.approx(0.0175, abs=3e-4)


@pytest.mark.parametrize("jd", EPOCHS)
def test_jupiter_heliocentric_distance(source, jd):
    distance = FrameTransformer.norm(source.state(Body.JUPITER, jd)[0:3])
    assert 4.0 < distance < 6.5


@pytest.mark.parametrize("body, low, high", [
    (Body.MERCURY, 0.30, 0.47),
    (Body.VENUS, 0.71, 0.73),
    (Body.MARS, 1.38, 1.67),
    (Body.SATURN, 9.0, 10.1),
    (Body.URANUS, 18.2, 20.1),
    (Body.NEPTUNE, 29.7, 30.4),
])
def test_planet_distances(source, body, low, high):
    assert low < FrameTransformer.norm(source.state(body, 2460000.5)[0:3]) < high


def test_emb_is_close_to_earth(source):
    jd = 2455000.5
    emb = source.state(Body.EARTH_MOON_BARYCENTER, jd)
    earth = source.state(Body.EARTH, jd)
    assert FrameTransformer.norm([emb[i] - earth[i] for i in range(3)]) < 6e-5


def test_moon_is_geocentric(source):
    moon = source.state(Body.MOON, 2451545.0)
    assert 0.0023 < FrameTransformer.norm(moon[0:3]) < 0.0028


def test_source_tags(source):
    assert source.source_tag(Body.EARTH) == "erfa-epv00"
    assert source.source_tag(Body.MOON) == "erfa-moon98"
    assert source.source_tag(Body.MARS) == "erfa-plan94"
    assert set(PLAN94_INDEX.values()) == set(range(1, 9))


def test_unsupported_bodies(source):
    assert not source.supports(Body.PLUTO)
    with pytest.raises(UpstreamDataError):
        source.state(Body.PLUTO, 2451545.0)
    with pytest.raises(MisuseError):
        source.check_range(Body.SUN, 2451545.0)


def test_window_is_enforced(source):
    with pytest.raises(CoverageError):
        source.state(Body.MARS, 500000.0)
    with pytest.raises(CoverageError):
        source.check_range(Body.EARTH, 2900000.0)
    source.check_range(Body.EARTH, source.end_jd + 0.2)


def test_extrapolation_warning_is_logged_once(source, caplog):
    with caplog.at_level(logging.WARNING, logger="apparent.core.analytic_theories"):
        source.state(Body.MARS, 2000000.5)
        source.state(Body.MARS, 2000001.5)
    messages = [r.getMessage() for r in caplog.records if "plan94" in r.getMessage()]
    assert len(messages) == 1


@pytest.mark.parametrize("body, low, high", [
    (Body.JUPITER, 4.0, 6.5),
    (Body.SATURN, 8.5, 10.5),
])
def test_far_outside_the_native_span_stays_coarse(source, body, low, high):
    # about 2000 BC, well before plan94's 1000-3000 span
    state = source.state(body, 990000.5)
    assert all(math.isfinite(c) for c in state)
    assert low < FrameTransformer.norm(state[0:3]) < high
