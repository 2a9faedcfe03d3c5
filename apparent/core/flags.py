# apparent/core/flags.py
# -----------------------------------------------------------------------------
# Bodies, transform flags and physical constants
#
# Standards Compliance:
#   • IAU 2012 astronomical unit, IERS 2010 speed of light
#   • IERS 2010 / AA 2006 K6 Earth ellipsoid and rotation rate
#   • DE431 Earth/Moon mass ratio and solar gravitational parameter
#
# Flag bit values follow the classic ephemeris-library layout so that a flag
# word can be passed straight through from callers used to it.
# -----------------------------------------------------------------------------

from __future__ import annotations

from enum import Enum, IntFlag
from typing import Union

from .errors import MisuseError

__all__ = [
    "Body",
    "TransformFlags",
    "Constants",
    "COORDINATE_FORM_MASK",
    "flag_class",
    "validate_flags",
    "resolve_body",
]


class Body(Enum):
    """Bodies the pipeline can evaluate."""
    SUN = "Sun"
    MOON = "Moon"
    MERCURY = "Mercury"
    VENUS = "Venus"
    EARTH = "Earth"
    MARS = "Mars"
    JUPITER = "Jupiter"
    SATURN = "Saturn"
    URANUS = "Uranus"
    NEPTUNE = "Neptune"
    PLUTO = "Pluto"
    EARTH_MOON_BARYCENTER = "EMB"
    MEAN_NODE = "MeanNode"
    MEAN_APOGEE = "MeanApogee"


class TransformFlags(IntFlag):
    """Center, equinox, coordinate form and correction toggles."""
    NONE = 0
    HELIOCENTRIC = 8
    TRUE_POSITION = 16
    J2000 = 32
    NO_NUTATION = 64
    SPEED = 256
    NO_DEFLECTION = 512
    NO_ABERRATION = 1024
    ASTROMETRIC = 512 | 1024
    EQUATORIAL = 2 * 1024
    CARTESIAN = 4 * 1024
    RADIANS = 8 * 1024
    BARYCENTRIC = 16 * 1024
    TOPOCENTRIC = 32 * 1024
    ICRS = 128 * 1024


COORDINATE_FORM_MASK = TransformFlags.EQUATORIAL | TransformFlags.CARTESIAN | TransformFlags.RADIANS
_KNOWN_BITS = 0
for _member in TransformFlags:
    _KNOWN_BITS |= int(_member)


class Constants:
    J2000 = 2451545.0
    DAYS_PER_CENTURY = 36525.0
    SECONDS_PER_DAY = 86400.0

    AUNIT = 1.49597870700e+11          # meters
    CLIGHT = 2.99792458e+8             # m/s
    HELGRAVCONST = 1.32712440017987e+20  # m^3/s^2
    EARTH_MOON_MRAT = 81.30056907419062
    EARTH_RADIUS = 6378136.6           # meters
    EARTH_OBLATENESS = 1.0 / 298.25642
    EARTH_ROT_SPEED = 7.2921151467e-5 * 86400.0  # rad/day

    # Sun mass over planet mass (DE431)
    SUN_PLANET_MASS_RATIOS = {
        "Mercury": 6023600.0,
        "Venus": 408523.71,
        "EMB": 328900.5614,
        "Mars": 3098703.59,
        "Jupiter": 1047.348644,
        "Saturn": 3497.9018,
        "Uranus": 22902.98,
        "Neptune": 19412.26,
    }

    ARCSEC_TO_RAD = 4.8481368110953599359e-6
    SPEED_INTERVAL_DAYS = 0.0001
    DEFLECTION_SPEED_INTERVAL_DAYS = 0.0000005


def flag_class(flags: int) -> int:
    """Cache-equivalence class of a flag word (coordinate-form bits masked out)."""
    return int(flags) & ~int(COORDINATE_FORM_MASK)


def validate_flags(flags: Union[int, TransformFlags]) -> TransformFlags:
    """Reject unknown bits and conflicting reference centers."""
    value = int(flags)
    if value & ~_KNOWN_BITS:
        raise MisuseError(f"Unknown transform flag bits: {value & ~_KNOWN_BITS:#x}", flags=value)
    centers = [c for c in (TransformFlags.HELIOCENTRIC, TransformFlags.BARYCENTRIC,
                           TransformFlags.TOPOCENTRIC) if value & c]
    if len(centers) > 1:
        raise MisuseError(
            "Reference centers are mutually exclusive: " + ", ".join(c.name for c in centers),
            flags=value,
        )
    return TransformFlags(value)


def resolve_body(body: Union[Body, str]) -> Body:
    """Map a Body or body name onto the Body enum."""
    if isinstance(body, Body):
        return body
    if isinstance(body, str):
        for candidate in Body:
            if body.lower() in (candidate.value.lower(), candidate.name.lower()):
                return candidate
    raise MisuseError(f"Unknown body: {body!r}", body=body)
