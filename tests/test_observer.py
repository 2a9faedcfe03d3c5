import math

import erfa
import pytest

from apparent.core.errors import ConfigurationError, ObserverNotSetError
from apparent.core.flags import Constants
from apparent.core.frames import FrameTransformer
from apparent.core.nutation import NutationEngine
from apparent.core.observer import ObserverFrame, ObserverGeometry

from conftest import arcsec

AU_KM = Constants.AUNIT / 1000.0


@pytest.fixture
def geometry():
    return ObserverGeometry(NutationEngine())


def test_frame_validation():
    with pytest.raises(ConfigurationError):
        ObserverFrame(0.0, 91.0)
    with pytest.raises(ConfigurationError):
        ObserverFrame(400.0, 0.0)
    with pytest.raises(ConfigurationError):
        ObserverFrame(0.0, 0.0, float("nan"))


def test_state_requires_a_position(geometry):
    assert not geometry.is_set
    with pytest.raises(ObserverNotSetError):
        geometry.observer_state(2451545.0)


def test_mean_sidereal_time_matches_erfa(geometry):
    jd_ut, jd_tt = 2460000.5, 2460000.5 + 69.0 / 86400.0
    expected = float(erfa.gmst06(jd_ut, 0.0, jd_tt, 0.0))
    assert geometry.sidereal_time(jd_ut, jd_tt, apparent=False) == pytest.approx(expected, abs=1e-12)


def test_apparent_sidereal_time_matches_erfa(geometry):
    jd_ut, jd_tt = 2460000.5, 2460000.5 + 69.0 / 86400.0
    expected = float(erfa.gst06a(jd_ut, 0.0, jd_tt, 0.0))
    # gst06a includes the complementary terms of the equation of the equinoxes
    assert arcsec(geometry.sidereal_time(jd_ut, jd_tt) - expected) == pytest.approx(0.0, abs=0.005)


def test_equatorial_observer_radius_and_speed(geometry):
    geometry.set_position(0.0, 0.0, 0.0)
    state = geometry.observer_state(2451545.0)
    assert FrameTransformer.norm(state[0:3]) * AU_KM == pytest.approx(6378.1366, abs=1e-3)
    speed_m_s = FrameTransformer.norm(state[3:6]) * Constants.AUNIT / Constants.SECONDS_PER_DAY
    assert speed_m_s == pytest.approx(465.1, abs=0.5)


def test_polar_observer_is_on_the_minor_axis(geometry):
    geometry.set_position(10.0, 90.0, 1000.0)
    state = geometry.observer_state(2451545.0, with_nutation=False)
    polar_radius_km = 6378.1366 * (1.0 - Constants.EARTH_OBLATENESS)
    assert FrameTransformer.norm(state[0:3]) * AU_KM == pytest.approx(polar_radius_km + 1.0, abs=1e-3)
    # the pole points close to the J2000 celestial pole
    assert state[2] / FrameTransformer.norm(state[0:3]) > 0.9999


def test_observer_rotates_with_the_earth(geometry):
    geometry.set_position(0.0, 0.0)
    jd = 2451545.0
    first = geometry.observer_state(jd)
    later = geometry.observer_state(jd + 0.25 * 0.99726957)
    angle = math.degrees(FrameTransformer.angular_separation(first[0:3], later[0:3]))
    assert angle == pytest.approx(90.0, abs=0.01)


def test_changing_position_clears_the_cache(geometry):
    geometry.set_position(5.0, 45.0)
    first = geometry.observer_state(2451545.0)
    geometry.set_position(5.0, 45.0)
    assert geometry.observer_state(2451545.0) == first
    geometry.set_position(6.0, 45.0)
    assert geometry.observer_state(2451545.0) != first
