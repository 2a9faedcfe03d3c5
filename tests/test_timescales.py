import pytest

from apparent.core.timescales import (
    DeltaTModel,
    TwoPartJD,
    decimal_year,
    julian_day,
    julian_day_tt_from_utc,
)

BOUNDARIES = (-500.0, 500.0, 1600.0, 1700.0, 1800.0, 1860.0, 1900.0, 1920.0,
              1941.0, 1961.0, 1986.0, 2005.0, 2050.0, 2150.0)


@pytest.mark.parametrize("year", BOUNDARIES)
def test_delta_t_is_continuous_at_segment_boundaries(year):
    model = DeltaTModel()
    before = model.seconds_for_year(year - 1e-6)
    after = model.seconds_for_year(year + 1e-6)
    assert abs(after - before) < 1.0


def test_delta_t_reference_values():
    model = DeltaTModel()
    assert model.seconds_for_year(2000.0) == pytest.approx(63.86, abs=0.01)
    assert model.seconds_for_year(1900.0) == pytest.approx(-2.79, abs=0.01)
    assert 17000.0 < model.seconds_for_year(-500.0) < 17400.0


def test_delta_t_override():
    model = DeltaTModel(override_seconds=69.0)
    assert model.seconds(2451545.0) == 69.0
    assert model.ut_from_tt(2451545.0) == pytest.approx(2451545.0 - 69.0 / 86400.0)


def test_ut_tt_round_trip():
    model = DeltaTModel()
    jd_ut = 2460000.5
    assert model.ut_from_tt(model.tt_from_ut(jd_ut)) == pytest.approx(jd_ut, abs=1e-9)


def test_long_term_extrapolation_warns_once(caplog):
    model = DeltaTModel()
    model.seconds_for_year(-1000.0)
    model.seconds_for_year(-1200.0)
    assert sum("extrapolated" in r.getMessage() for r in caplog.records) == 1


def test_calendar_conversions():
    assert julian_day(2000, 1, 1, 12.0) == 2451545.0
    assert decimal_year(2451545.0) == pytest.approx(2000.0)
    tt = julian_day_tt_from_utc(2000, 1, 1, 11, 58, 55.816)
    assert tt.jd == pytest.approx(2451545.0, abs=1e-9)


def test_two_part_jd():
    parts = TwoPartJD.split(2451545.25)
    assert parts.jd1 == 2451544.5
    assert parts.jd2 == pytest.approx(0.75)
    assert (parts + 1.0).jd == pytest.approx(2451546.25)
