import math

import erfa
import pytest

from apparent.core.errors import UpstreamDataError
from apparent.core.flags import Body, Constants
from apparent.core.frames import FrameTransformer
from apparent.core.harmonic_series import HarmonicSeriesEvaluator, SeriesCenter, SeriesFrame
from apparent.core.series_provider import (
    BuiltinSeriesProvider,
    EphemerisDataProvider,
    default_provider,
)

AU_KM = Constants.AUNIT / 1000.0


@pytest.fixture(scope="module")
def moon_table():
    return BuiltinSeriesProvider().table_for(Body.MOON)


def test_moon_table_shape(moon_table):
    assert moon_table.center is SeriesCenter.GEOCENTRIC
    assert moon_table.frame is SeriesFrame.ECLIPTIC_OF_DATE
    assert moon_table.time_unit_days == Constants.DAYS_PER_CENTURY
    # mean longitude + 60 longitude/distance + 60 latitude + 9 additive terms
    assert moon_table.term_count == 130


def test_moon_matches_published_example(moon_table):
    # Meeus, Astronomical Algorithms, example 47.a: 1992 April 12, 0h TD
    lon, lat, r = HarmonicSeriesEvaluator().evaluate(moon_table, 2448724.5)
    assert math.degrees(lon) == pytest.approx(133.162655, abs=1e-4)
    assert math.degrees(lat) == pytest.approx(-3.229126, abs=1e-4)
    assert r * AU_KM == pytest.approx(368409.7, abs=0.5)


@pytest.mark.parametrize("jd", [2415020.5, 2451545.0, 2460000.5])
def test_moon_agrees_with_erfa_moon98(moon_table, jd):
    state = HarmonicSeriesEvaluator().state(moon_table, jd)
    jd1, jd2 = math.floor(jd + 0.5) - 0.5, jd - (math.floor(jd + 0.5) - 0.5)
    pv = erfa.moon98(jd1, jd2)
    reference = [float(c) for c in pv["p"]]
    separation = FrameTransformer.angular_separation(state[0:3], reference)
    # moon98 omits the 0.7" light-time term of the mean longitude
    assert math.degrees(separation) * 3600.0 < 2.0
    assert FrameTransformer.norm(state[0:3]) == pytest.approx(FrameTransformer.norm(reference), abs=2e-8)
    velocity = [float(c) for c in pv["v"]]
    assert FrameTransformer.norm(state[3:6]) == pytest.approx(FrameTransformer.norm(velocity), rel=1e-3)


def test_builtin_supports_only_the_moon():
    provider = BuiltinSeriesProvider()
    assert provider.supports(Body.MOON)
    assert not provider.supports(Body.MARS)
    with pytest.raises(UpstreamDataError):
        provider.table_for(Body.PLUTO)


def test_tables_are_built_once():
    provider = BuiltinSeriesProvider()
    assert provider.table_for(Body.MOON) is provider.table_for(Body.MOON)
    assert default_provider() is default_provider()


def test_provider_failures_surface_as_upstream_errors():
    class BrokenProvider(EphemerisDataProvider):
        source = "broken"

        def supports(self, body):
            return True

        def _build_table(self, body):
            raise IOError("truncated data file")

    with pytest.raises(UpstreamDataError, match="truncated data file"):
        BrokenProvider().table_for(Body.MARS)
