import math

import pytest

from apparent.core.errors import CoverageError, MisuseError
from apparent.core.flags import Constants
from apparent.core.harmonic_series import (
    MOSHIER_END_JD,
    MOSHIER_START_JD,
    HarmonicSeriesEvaluator,
    HarmonicSeriesTable,
    MeanMotionArgument,
    SeriesFrame,
    mods3600,
)
from apparent.core.series_provider import SeriesTableBuilder

STR = Constants.ARCSEC_TO_RAD
CENTURY = Constants.DAYS_PER_CENTURY


def _synthetic_table(**kwargs):
    builder = SeriesTableBuilder()
    a = builder.add_argument("a", (0.0, 1296000.0 * 10), max_harmonic=2)
    b = builder.add_argument("b", (648000.0, 1296000.0 * 3))
    builder.polynomial([100.0, 3600.0], [0.0], [0.0])
    builder.periodic([(1, a)], [(0.0, 36.0)], [(18.0, 0.0)], [(1000.0, 0.0)])
    builder.periodic([(2, a), (-1, b)], [(0.0, 7.2), (0.0, 1.0)], [(0.0, 0.0)], [(0.0, 0.0)])
    options = dict(name="synthetic", distance=1.0, time_unit_days=CENTURY,
                   frame=SeriesFrame.ECLIPTIC_J2000)
    options.update(kwargs)
    return builder.build(**options)


def test_mods3600_reduces_to_one_turn():
    assert mods3600(1296000.0 + 10.0) == pytest.approx(10.0)
    assert mods3600(-10.0) == pytest.approx(1295990.0)


def test_mean_motion_argument_adds_phase_after_reduction():
    argument = MeanMotionArgument("x", (648000.0, 1296000.0))
    assert argument.angle(0.25) == pytest.approx((324000.0 + 648000.0) * STR)


def test_evaluate_matches_closed_form():
    table = _synthetic_table()
    evaluator = HarmonicSeriesEvaluator()
    t = 0.01
    lon, lat, r = evaluator.evaluate(table, Constants.J2000 + t * CENTURY)

    a = math.radians(36.0)
    b = math.pi + 3.0 * 2.0 * math.pi * t
    combined = 2.0 * a - b
    expected_lon = 136.0 + 36.0 * math.sin(a) + (7.2 + 1.0 * t) * math.sin(combined)
    assert lon == pytest.approx(expected_lon * STR, abs=1e-12)
    assert lat == pytest.approx(18.0 * math.cos(a) * STR, abs=1e-12)
    assert r == pytest.approx(1.0 + 1000.0 * math.cos(a) * STR, abs=1e-12)


def test_polynomial_term_is_reduced_modulo_one_turn():
    builder = SeriesTableBuilder()
    builder.polynomial([1296000.0 * 5 + 3600.0], [0.0], [0.0])
    table = builder.build(name="poly", distance=2.0)
    lon, lat, r = HarmonicSeriesEvaluator().evaluate(table, Constants.J2000)
    assert lon == pytest.approx(3600.0 * STR)
    assert lat == 0.0
    assert r == pytest.approx(2.0)


def test_evaluation_is_reproducible():
    table = _synthetic_table()
    evaluator = HarmonicSeriesEvaluator()
    first = evaluator.evaluate(table, 2460000.25)
    assert evaluator.evaluate(table, 2460000.25) == first


def test_term_count_is_recorded():
    assert _synthetic_table().term_count == 3


def test_state_velocity_follows_longitude_rate():
    builder = SeriesTableBuilder()
    builder.polynomial([0.0, 1296000.0], [0.0], [0.0])
    table = builder.build(name="circle", distance=1.0, time_unit_days=CENTURY,
                          frame=SeriesFrame.ECLIPTIC_J2000)
    state = HarmonicSeriesEvaluator().state(table, Constants.J2000 + 100.0)
    speed = math.sqrt(sum(v * v for v in state[3:6]))
    # central difference over a float JD near 2.45e6; rounding of the
    # epoch limits the rate to a few parts in 1e6
    assert speed == pytest.approx(2.0 * math.pi / CENTURY, rel=1e-5)
    assert math.sqrt(sum(v * v for v in state[0:3])) == pytest.approx(1.0)


def test_out_of_range_epoch_is_rejected():
    table = _synthetic_table()
    evaluator = HarmonicSeriesEvaluator()
    with pytest.raises(CoverageError):
        evaluator.evaluate(table, MOSHIER_END_JD + 1.0)
    with pytest.raises(CoverageError):
        evaluator.evaluate(table, MOSHIER_START_JD - 1.0)
    evaluator.evaluate(table, MOSHIER_END_JD + 0.2)


@pytest.mark.parametrize("arg_tbl, streams, message", [
    ((1, 1, 5, 0, -1), (2, 2, 2), "undefined argument"),
    ((1, 3, 0, 0, -1), (2, 2, 2), "exceeds"),
    ((0, 0), (1, 1, 1), "sentinel"),
    ((0, 0, -1), (1, 1, 2), "radius stream"),
])
def test_malformed_tables_are_rejected(arg_tbl, streams, message):
    with pytest.raises(MisuseError, match=message):
        HarmonicSeriesTable(
            name="bad",
            arguments=(MeanMotionArgument("a", (0.0, 1.0), 2),),
            arg_tbl=arg_tbl,
            lon_tbl=(0.0,) * streams[0],
            lat_tbl=(0.0,) * streams[1],
            rad_tbl=(0.0,) * streams[2],
            distance=1.0,
        )


def test_non_positive_distance_is_rejected():
    with pytest.raises(MisuseError):
        _synthetic_table(distance=0.0)
