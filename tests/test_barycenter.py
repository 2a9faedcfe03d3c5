import math

import erfa
import pytest

from apparent.core.analytic_theories import AnalyticTheorySource
from apparent.core.barycenter import BarycenterCorrector
from apparent.core.flags import Body, Constants
from apparent.core.frames import FrameTransformer
from apparent.core.harmonic_series import HarmonicSeriesEvaluator
from apparent.core.series_provider import BuiltinSeriesProvider

PLANETS = (Body.MERCURY, Body.VENUS, Body.MARS, Body.JUPITER,
           Body.SATURN, Body.URANUS, Body.NEPTUNE)


def test_single_planet_offset_is_mass_weighted():
    state = [5.2, 0.0, 0.0, 0.0, 0.0075, 0.0]
    offset = BarycenterCorrector.solar_barycenter_offset({"Jupiter": state})
    ratio = Constants.SUN_PLANET_MASS_RATIOS["Jupiter"]
    assert offset[0] == pytest.approx(-5.2 / (ratio + 1.0))
    assert offset[4] == pytest.approx(-0.0075 / (ratio + 1.0))
    assert offset[1] == 0.0


def test_unknown_bodies_are_ignored():
    assert BarycenterCorrector.solar_barycenter_offset({"Vulcan": [1.0] * 6}) == [0.0] * 6


@pytest.mark.parametrize("jd", [2444239.5, 2451545.0, 2460000.5])
def test_solar_offset_agrees_with_erfa_epv00(jd):
    source = AnalyticTheorySource()
    states = {b.value: source.state(b, jd) for b in PLANETS}
    states["EMB"] = source.state(Body.EARTH_MOON_BARYCENTER, jd)
    offset = BarycenterCorrector.solar_barycenter_offset(states)

    pvh, pvb = erfa.epv00(jd, 0.0)
    sun = [float(pvb["p"][i] - pvh["p"][i]) for i in range(3)]
    assert FrameTransformer.norm(offset[0:3]) < 0.011
    assert offset[0:3] == pytest.approx(sun, abs=1e-5)


def test_moon_offset_follows_the_lunar_series():
    jd = 2455000.5
    corrector = BarycenterCorrector()
    short = corrector.moon_offset(jd)
    table = BuiltinSeriesProvider().table_for(Body.MOON)
    full = HarmonicSeriesEvaluator().state(table, jd)
    separation = math.degrees(FrameTransformer.angular_separation(short[0:3], full[0:3]))
    assert separation < 0.5
    assert FrameTransformer.norm(short[0:3]) == pytest.approx(FrameTransformer.norm(full[0:3]), rel=0.01)
    assert FrameTransformer.norm(short[3:6]) == pytest.approx(FrameTransformer.norm(full[3:6]), rel=0.05)


def test_emb_and_earth_conversions_invert():
    corrector = BarycenterCorrector()
    earth = [0.98, 0.18, 0.08, -0.003, 0.0155, 0.0067]
    jd = 2451545.0
    emb = corrector.emb_from_earth(earth, jd)
    shift = FrameTransformer.norm([emb[i] - earth[i] for i in range(3)])
    assert 2.8e-5 < shift < 3.5e-5
    assert corrector.earth_from_emb(emb, jd) == pytest.approx(earth, abs=1e-15)
