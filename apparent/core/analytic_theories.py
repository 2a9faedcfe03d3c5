# apparent/core/analytic_theories.py
# -----------------------------------------------------------------------------
# Analytic solar-system theories from ERFA
#
# Standards Compliance:
#   • Earth: ERFA epv00 (Bretagnon VSOP2000 fit), heliocentric, ICRS-aligned
#   • Mercury … Neptune, Earth-Moon barycenter: ERFA plan94 (Simon et al. 1994)
#   • Moon: ERFA moon98 (Meeus 1998 truncation of ELP-2000/82), geocentric GCRS
#
# Precision Guarantees:
#   • Earth: ~5 km within 1900–2100
#   • Planets: sub-arcsecond (inner) to a few arcseconds (outer), 1000–3000
#   • Outside a theory's native span (plan94: 1000–3000) results are
#     extrapolated and a warning is logged once per theory; accuracy then
#     degrades with distance from the span and carries no stated bound
#
# All states are J2000 equatorial, AU and AU/day.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import warnings as py_warnings
from typing import Callable, Set

import erfa

from .errors import CoverageError, MisuseError, UpstreamDataError
from .flags import Body
from .frames import Vector
from .harmonic_series import MOSHIER_END_JD, MOSHIER_START_JD
from .timescales import TwoPartJD

log = logging.getLogger(__name__)

__all__ = ["AnalyticTheorySource", "PLAN94_INDEX"]

PLAN94_INDEX = {
    Body.MERCURY: 1,
    Body.VENUS: 2,
    Body.EARTH_MOON_BARYCENTER: 3,
    Body.MARS: 4,
    Body.JUPITER: 5,
    Body.SATURN: 6,
    Body.URANUS: 7,
    Body.NEPTUNE: 8,
}


def _pv_to_vector(pv) -> Vector:
    return [float(c) for c in pv["p"]] + [float(c) for c in pv["v"]]


class AnalyticTheorySource:
    """Raw heliocentric (Moon: geocentric) states from ERFA's analytic theories."""

    def __init__(self, start_jd: float = MOSHIER_START_JD, end_jd: float = MOSHIER_END_JD,
                 range_margin_days: float = 0.3):
        self.start_jd = start_jd
        self.end_jd = end_jd
        self.range_margin_days = range_margin_days
        self._warned: Set[str] = set()

    def supports(self, body: Body) -> bool:
        return body in PLAN94_INDEX or body in (Body.EARTH, Body.MOON)

    def source_tag(self, body: Body) -> str:
        if body is Body.EARTH:
            return "erfa-epv00"
        if body is Body.MOON:
            return "erfa-moon98"
        return "erfa-plan94"

    def check_range(self, body: Body, jd_tt: float) -> None:
        if not self.supports(body):
            if body is Body.PLUTO:
                raise UpstreamDataError("No analytic theory for Pluto; supply a series provider",
                                        body=body.value)
            raise MisuseError(f"{body.value} has no raw state of its own", body=body.value)
        # the accepted window is wider than plan94's native 1000–3000 span;
        # epochs outside that span get the degraded extrapolation
        margin = self.range_margin_days
        if not self.start_jd - margin <= jd_tt <= self.end_jd + margin:
            raise CoverageError(
                f"JD {jd_tt:.5f} outside {body.value} theory range "
                f"{self.start_jd:.1f} .. {self.end_jd:.1f}",
                body=body.value, jd=jd_tt,
            )

    def _call(self, theory: str, func: Callable, *args):
        with py_warnings.catch_warnings(record=True) as caught:
            py_warnings.simplefilter("always", erfa.ErfaWarning)
            result = func(*args)
        if caught and theory not in self._warned:
            self._warned.add(theory)
            log.warning("%s: %s (accuracy degraded outside the native span)",
                        theory, caught[0].message)
        return result

    def state(self, body: Body, jd_tt: float) -> Vector:
        """J2000 equatorial 6-vector of body at jd_tt."""
        self.check_range(body, jd_tt)
        jd = TwoPartJD.split(jd_tt)
        try:
            if body is Body.EARTH:
                pvh, _ = self._call("epv00", erfa.epv00, jd.jd1, jd.jd2)
                return _pv_to_vector(pvh)
            if body is Body.MOON:
                return _pv_to_vector(self._call("moon98", erfa.moon98, jd.jd1, jd.jd2))
            pv = self._call("plan94", erfa.plan94, jd.jd1, jd.jd2, PLAN94_INDEX[body])
            return _pv_to_vector(pv)
        except erfa.ErfaError as e:
            raise UpstreamDataError(f"ERFA theory failed for {body.value}: {e}",
                                    body=body.value, jd=jd_tt) from e
