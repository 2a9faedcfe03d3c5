import math

import erfa
import pytest

from apparent.core.config import NutationModel
from apparent.core.flags import Constants
from apparent.core.frames import FrameTransformer
from apparent.core.precession import (
    DATE_TO_J2000,
    J2000_TO_DATE,
    PrecessionTransform,
    mean_obliquity,
)

from conftest import arcsec


def test_normalization():
    assert FrameTransformer.normalize_degrees(-30.0) == pytest.approx(330.0)
    assert FrameTransformer.normalize_degrees(720.5) == pytest.approx(0.5)
    assert FrameTransformer.normalize_radians(-math.pi / 2) == pytest.approx(1.5 * math.pi)


def test_polar_state_round_trip():
    state = [0.3, -0.8, 0.2, 0.01, 0.004, -0.002]
    polar = FrameTransformer.cartesian_to_polar_state(state)
    assert 0.0 <= polar[0] < 2.0 * math.pi
    back = FrameTransformer.polar_to_cartesian_state(polar)
    assert back == pytest.approx(state, abs=1e-14)


def test_polar_of_origin_and_pole():
    assert FrameTransformer.cartesian_to_polar([0.0, 0.0, 0.0]) == [0.0, 0.0, 0.0]
    assert FrameTransformer.cartesian_to_polar([0.0, 0.0, -2.0])[1] == pytest.approx(-math.pi / 2)


def test_rotation_about_x_is_inverted_by_negative_sine():
    eps = 0.409
    x = [0.1, 0.7, -0.3]
    ecliptic = FrameTransformer.rotate_x(x, math.sin(eps), math.cos(eps))
    assert FrameTransformer.rotate_x(ecliptic, -math.sin(eps), math.cos(eps)) == pytest.approx(x)


def test_angular_separation():
    assert FrameTransformer.angular_separation([1, 0, 0], [0, 2, 0]) == pytest.approx(math.pi / 2)


@pytest.mark.parametrize("jd", [2415020.5, 2451545.0, 2488070.0])
def test_mean_obliquity_matches_erfa(jd):
    jd1 = math.floor(jd + 0.5) - 0.5
    assert mean_obliquity(jd) == pytest.approx(float(erfa.obl06(jd1, jd - jd1)), abs=1e-15)
    assert mean_obliquity(jd, NutationModel.IAU_1980) == pytest.approx(
        float(erfa.obl80(jd1, jd - jd1)), abs=1e-15)


def test_obliquity_at_j2000():
    assert arcsec(mean_obliquity(Constants.J2000)) == pytest.approx(84381.406, abs=1e-3)


def test_precession_round_trip_and_identity_at_j2000():
    precession = PrecessionTransform()
    x = [0.2, -0.9, 0.4]
    jd = 2469807.5
    there = precession.precess(x, jd, J2000_TO_DATE)
    assert precession.precess(there, jd, DATE_TO_J2000) == pytest.approx(x, abs=1e-14)
    assert precession.precess(x, Constants.J2000, J2000_TO_DATE) == x


def test_precession_matches_erfa_bp06():
    jd = 2460000.5
    _, rp, _ = erfa.bp06(2460000.5, 0.0)
    x = [0.5, 0.5, math.sqrt(0.5)]
    expected = [sum(float(rp[i][j]) * x[j] for j in range(3)) for i in range(3)]
    assert PrecessionTransform().precess(x, jd, J2000_TO_DATE) == pytest.approx(expected, abs=1e-14)


def test_fixed_direction_acquires_precession_rate():
    # a direction fixed in J2000 drifts in longitude of date by ~50.29"/yr
    precession = PrecessionTransform()
    jd = 2460000.5
    eps = mean_obliquity(jd)
    state = [1.0, 0.0, 0.0, 0.0, 0.0, 0.0]
    dated = precession.precess_state(state, jd, J2000_TO_DATE, with_speed=True)
    polar = FrameTransformer.cartesian_to_polar_state(
        FrameTransformer.rotate_state_x(dated, math.sin(eps), math.cos(eps)))
    rate = arcsec(polar[3]) * 365.25
    assert rate == pytest.approx(50.29, abs=0.05)
    without = precession.precess_state(state, jd, J2000_TO_DATE, with_speed=False)
    assert without[3:6] == [0.0, 0.0, 0.0]
