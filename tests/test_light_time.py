import math

import erfa
import pytest

from apparent.core.config import BiasModel
from apparent.core.flags import Constants
from apparent.core.frames import FrameTransformer
from apparent.core.light_time import LightTimeCorrector, effective_mass

from conftest import arcsec


def _angle(a, b):
    cross = [a[1] * b[2] - a[2] * b[1], a[2] * b[0] - a[0] * b[2], a[0] * b[1] - a[1] * b[0]]
    return math.atan2(FrameTransformer.norm(cross), FrameTransformer.dot(a, b))


@pytest.fixture
def corrector():
    return LightTimeCorrector()


def test_effective_mass_bounds_and_interpolation():
    assert effective_mass(0.0) == 0.0
    assert effective_mass(1.0) == 1.0
    assert effective_mass(3.0) == 1.0
    assert effective_mass(0.5) == pytest.approx(0.937790)
    assert effective_mass(0.505) == pytest.approx((0.937790 + 0.941838) / 2)


def test_effective_mass_is_monotonic():
    values = [effective_mass(i / 200.0) for i in range(201)]
    assert all(b >= a for a, b in zip(values, values[1:]))


def test_light_time_of_one_au(corrector):
    assert corrector.light_time_days([1.0, 0.0, 0.0]) * 86400.0 == pytest.approx(499.004784, abs=1e-5)


def test_light_time_speed_change_vanishes_without_motion(corrector):
    xx = [3.0, 1.0, 0.0, 0.0, 0.0, 0.0]
    assert corrector.light_time_speed_change(xx, [0.0] * 6, 0.01) == [0.0, 0.0, 0.0]


@pytest.mark.parametrize("model, erfa_function, tolerance", [
    (BiasModel.IAU_2000, erfa.bp00, 1e-15),
    # the 2006 bias is stored as a fixed matrix rounded to 1e-11, while
    # bp06 rebuilds it from the Fukushima-Williams angles
    (BiasModel.IAU_2006, erfa.bp06, 1e-11),
])
def test_bias_matches_erfa(model, erfa_function, tolerance):
    rb, _, _ = erfa_function(Constants.J2000, 0.0)
    x = [0.3, -0.4, math.sqrt(0.75)]
    expected = [sum(float(rb[i][j]) * x[j] for j in range(3)) for i in range(3)]
    biased = LightTimeCorrector.apply_bias(x + [0.0, 0.0, 0.0], model)
    assert biased[0:3] == pytest.approx(expected, abs=tolerance)


def test_bias_round_trip_and_none():
    xx = [0.3, -0.4, 0.2, 0.01, 0.02, -0.01]
    forward = LightTimeCorrector.apply_bias(xx)
    assert forward != pytest.approx(xx, abs=1e-12)
    back = LightTimeCorrector.apply_bias(forward, backward=True)
    assert back == pytest.approx(xx, abs=1e-15)
    assert LightTimeCorrector.apply_bias(xx, BiasModel.NONE) == xx


def test_aberration_matches_erfa_ab(corrector):
    pvh, _ = erfa.epv00(2451545.0, 0.0)
    earth = [float(c) for c in pvh["p"]] + [float(c) for c in pvh["v"]]
    sun = [-c for c in earth]
    aberrated = corrector.aberrate(sun, earth)

    distance = FrameTransformer.norm(sun)
    pnat = [c / distance for c in sun[0:3]]
    v = [c * Constants.AUNIT / Constants.SECONDS_PER_DAY / Constants.CLIGHT for c in earth[3:6]]
    bm1 = math.sqrt(1.0 - sum(c * c for c in v))
    expected = erfa.ab(pnat, v, distance, bm1)

    assert _angle(aberrated[0:3], [float(c) for c in expected]) < 1e-10
    shift = arcsec(_angle(aberrated[0:3], sun[0:3]))
    assert 19.5 < shift < 21.0


def test_aberration_of_zero_vector_is_identity(corrector):
    assert corrector.aberrate([0.0] * 6, [0.0, 0.0, 0.0, 0.01, 0.0, 0.0]) == [0.0] * 6


def test_deflection_at_ninety_degrees_elongation(corrector):
    earth = [1.0, 0.0, 0.0, 0.0, 0.0172, 0.0]
    sun = [0.0] * 6
    body = [0.0, 30.0, 0.0, 0.0, 0.0, 0.0]
    deflected = corrector.deflect(body, earth, sun, dt=0.17, speed=False)
    angle = arcsec(_angle(deflected[0:3], body[0:3]))
    assert 0.0035 < angle < 0.0045
    # pushed away from the Sun, which lies in -x as seen from the Earth
    assert deflected[0] > 0.0
    assert FrameTransformer.norm(deflected[0:3]) == pytest.approx(30.0)


def test_deflection_speed_is_finite(corrector):
    earth = [1.0, 0.0, 0.0, 0.0, 0.0172, 0.0]
    body = [-4.0, 0.5, 0.1, 0.001, -0.01, 0.0]
    deflected = corrector.deflect(body, earth, [0.0] * 6, dt=0.03)
    assert all(math.isfinite(c) for c in deflected)
    assert deflected[3:6] == pytest.approx(body[3:6], abs=1e-6)


def _behind_the_sun(offset):
    # Earth at 1 AU, body 6 AU beyond the Sun, offset radians off the line
    earth = [1.0, 0.0, 0.0, 0.0, 0.0172, 0.0]
    body = [-7.0, 6.0 * math.tan(offset), 0.0, 0.0, 0.0, 0.0]
    return body, earth


def test_deflection_of_body_straight_behind_the_sun(corrector):
    body, earth = _behind_the_sun(0.0)
    deflected = corrector.deflect(body, earth, [0.0] * 6, dt=0.04)
    assert all(math.isfinite(c) for c in deflected)
    assert deflected[0:3] == pytest.approx(body[0:3], abs=1e-15)


def test_deflection_inside_the_solar_disk_is_attenuated(corrector):
    shifts = {}
    for offset in (1e-5, 1e-3, 4.7e-3):
        body, earth = _behind_the_sun(offset)
        deflected = corrector.deflect(body, earth, [0.0] * 6, dt=0.04)
        assert all(math.isfinite(c) for c in deflected)
        shifts[offset] = arcsec(_angle(deflected[0:3], body[0:3]))
    # near the center the effective solar mass goes to zero
    assert 0.0 < shifts[1e-5] < shifts[1e-3]
    # a point-mass Sun would deflect by ~10" at 0.18 solar radii
    assert shifts[1e-3] < 5.0
    assert 1.0 < shifts[4.7e-3] < 2.0
