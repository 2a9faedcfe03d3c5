# apparent/core/nutation.py
# -----------------------------------------------------------------------------
# Nutation in longitude and obliquity
#
# Standards Compliance:
#   • IAU 1980 theory (Wahr 1981) with optional Herring (1987) corrections
#   • IAU 2000A (MHB2000): 678 luni-solar + 687 planetary terms
#   • IAU 2000B (McCarthy & Luzum 2003): 77 luni-solar terms + fixed offsets
#   • IAU 2006 adjustments for the P03 precession (optional, 2000A only)
#
# Precision Guarantees:
#   • 2000A series summed smallest term first
#   • 2000A agrees with ERFA nut00a to well below 1 µas when P03 is off
#   • 1980 series complete (106 terms); agrees with ERFA nut80 at the µas level
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

import erfa

from ..data import nutation_1980, nutation_2000
from .config import NutationModel, PipelineConfig
from .errors import MisuseError
from .flags import Constants
from .frames import Matrix
from .fundamental_arguments import (
    delaunay_mhb2000,
    general_precession,
    iau_1980,
    julian_centuries,
    planetary_longitudes,
    simon_1994,
)

log = logging.getLogger(__name__)

__all__ = ["NutationResult", "NutationEngine"]

# 0.0001" / 0.00001" / 0.1 µas / 1 µas / 1 mas to radians
_U4_TO_RAD = Constants.ARCSEC_TO_RAD * 1e-4
_U5_TO_RAD = Constants.ARCSEC_TO_RAD * 1e-5
_U7_TO_RAD = Constants.ARCSEC_TO_RAD * 1e-7
_UAS_TO_RAD = Constants.ARCSEC_TO_RAD * 1e-6
_MAS_TO_RAD = Constants.ARCSEC_TO_RAD * 1e-3

# Fixed planetary offsets of the 2000B model, mas
IAU2000B_DPSI_OFFSET = -0.135
IAU2000B_DEPS_OFFSET = 0.388

_CACHE_LIMIT = 512


@dataclass(frozen=True)
class NutationResult:
    """Nutation angles in radians for one epoch."""
    dpsi: float
    deps: float
    model: NutationModel

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dpsi_arcsec": self.dpsi / Constants.ARCSEC_TO_RAD,
            "deps_arcsec": self.deps / Constants.ARCSEC_TO_RAD,
            "model": self.model.value,
        }


def _multiples(angle: float, n: int) -> Tuple[List[float], List[float]]:
    su, cu = math.sin(angle), math.cos(angle)
    ss, cc = [su], [cu]
    sv = 2.0 * su * cu
    cv = cu * cu - su * su
    ss.append(sv)
    cc.append(cv)
    for _ in range(2, n):
        s = su * cv + cu * sv
        cv = cu * cv - su * sv
        sv = s
        ss.append(sv)
        cc.append(cv)
    return ss, cc


class NutationEngine:
    """Evaluates one nutation model; results are cached per epoch."""

    MAX_MULTIPLES_1980 = (3, 2, 4, 4, 2)

    def __init__(self, model: NutationModel = NutationModel.IAU_2000A,
                 include_planetary: bool = True,
                 apply_p03: bool = True,
                 herring_1987: bool = False):
        if not isinstance(model, NutationModel):
            raise MisuseError(f"Unknown nutation model: {model!r}", model=model)
        self.model = model
        self.include_planetary = include_planetary
        self.apply_p03 = apply_p03
        self.herring_1987 = herring_1987
        self._cache: Dict[float, NutationResult] = {}

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "NutationEngine":
        return cls(
            config.nutation_model,
            include_planetary=config.include_planetary_nutation,
            apply_p03=config.apply_p03_corrections,
            herring_1987=config.herring_1987_corrections,
        )

    def nutation(self, jd_tt: float) -> NutationResult:
        cached = self._cache.get(jd_tt)
        if cached is not None:
            return cached
        if self.model is NutationModel.IAU_1980:
            dpsi, deps = self._iau_1980(jd_tt)
        elif self.model is NutationModel.IAU_2000B:
            dpsi, deps = self._iau_2000_lunisolar(jd_tt, nutation_2000.IAU2000B_TERM_COUNT)
            dpsi += IAU2000B_DPSI_OFFSET * _MAS_TO_RAD
            deps += IAU2000B_DEPS_OFFSET * _MAS_TO_RAD
        else:
            dpsi, deps = self._iau_2000_lunisolar(jd_tt, len(nutation_2000.LUNISOLAR_TERMS))
            if self.include_planetary:
                pp, pe = self._iau_2000_planetary(jd_tt)
                dpsi += pp
                deps += pe
            if self.apply_p03:
                pp, pe = self._p03_corrections(jd_tt)
                dpsi += pp
                deps += pe

        result = NutationResult(dpsi, deps, self.model)
        if len(self._cache) >= _CACHE_LIMIT:
            self._cache.clear()
        self._cache[jd_tt] = result
        return result

    def matrix(self, jd_tt: float, mean_obliquity: float) -> Matrix:
        """Rotation from mean equator and equinox of date to true of date."""
        nut = self.nutation(jd_tt)
        return erfa.numat(mean_obliquity, nut.dpsi, nut.deps).tolist()

    def equation_of_equinoxes(self, jd_tt: float, mean_obliquity: float) -> float:
        return self.nutation(jd_tt).dpsi * math.cos(mean_obliquity)

    def true_obliquity(self, jd_tt: float, mean_obliquity: float) -> float:
        return mean_obliquity + self.nutation(jd_tt).deps

    # ───────────────────────────── IAU 1980 ─────────────────────────────

    def _iau_1980(self, jd_tt: float) -> Tuple[float, float]:
        t = julian_centuries(jd_tt)
        args = iau_1980(jd_tt)
        tables = [_multiples(a, n) for a, n in zip(args, self.MAX_MULTIPLES_1980)]

        def combine(multipliers) -> Tuple[float, float]:
            first = True
            sv = cv = 0.0
            for m, j in enumerate(multipliers):
                if j:
                    k = abs(j) - 1
                    su = tables[m][0][k]
                    if j < 0:
                        su = -su
                    cu = tables[m][1][k]
                    if first:
                        sv, cv = su, cu
                        first = False
                    else:
                        s = su * cv + cu * sv
                        cv = cu * cv - su * sv
                        sv = s
            return sv, cv

        sp, spt, ce, cet = nutation_1980.LEADING_TERM
        c = (sp + spt * t) * tables[4][0][0]
        d = (ce + cet * t) * tables[4][1][0]
        for row in nutation_1980.TERMS:
            sv, cv = combine(row[0:5])
            c += (row[5] + row[6] * t) * sv
            d += (row[7] + row[8] * t) * cv
        dpsi = c * _U4_TO_RAD
        deps = d * _U4_TO_RAD

        if self.herring_1987:
            hc = hd = 0.0
            for row in nutation_1980.HERRING_SINE_ROWS:
                sv, cv = combine(row[0:5])
                hc += row[5] * sv
                hd += row[6] * cv
            for row in nutation_1980.HERRING_COSINE_ROWS:
                sv, cv = combine(row[0:5])
                hc += row[5] * cv
                hd += row[6] * sv
            dpsi += hc * _U5_TO_RAD
            deps += hd * _U5_TO_RAD
        return dpsi, deps

    # ───────────────────────────── IAU 2000 ─────────────────────────────

    @staticmethod
    def _iau_2000_lunisolar(jd_tt: float, count: int) -> Tuple[float, float]:
        t = julian_centuries(jd_tt)
        el, elp, f, d, om = simon_1994(jd_tt)
        dp = de = 0.0
        for i in range(count - 1, -1, -1):
            nl, nlp, nf, nd, nom, sp, spt, cp, ce, cet, se = nutation_2000.LUNISOLAR_TERMS[i]
            arg = math.fmod(nl * el + nlp * elp + nf * f + nd * d + nom * om, 2.0 * math.pi)
            sarg, carg = math.sin(arg), math.cos(arg)
            dp += (sp + spt * t) * sarg + cp * carg
            de += (ce + cet * t) * carg + se * sarg
        return dp * _U7_TO_RAD, de * _U7_TO_RAD

    @staticmethod
    def _iau_2000_planetary(jd_tt: float) -> Tuple[float, float]:
        args = tuple(delaunay_mhb2000(jd_tt)) + tuple(planetary_longitudes(jd_tt)) + (general_precession(jd_tt),)
        dp = de = 0.0
        terms = nutation_2000.PLANETARY_TERMS
        for i in range(len(terms) - 1, -1, -1):
            row = terms[i]
            arg = 0.0
            for n, a in zip(row[0:14], args):
                if n:
                    arg += n * a
            arg = math.fmod(arg, 2.0 * math.pi)
            sarg, carg = math.sin(arg), math.cos(arg)
            sp, cp, se, ce = row[14:18]
            dp += sp * sarg + cp * carg
            de += se * sarg + ce * carg
        return dp * _U7_TO_RAD, de * _U7_TO_RAD

    @staticmethod
    def _p03_corrections(jd_tt: float) -> Tuple[float, float]:
        t = julian_centuries(jd_tt)
        _, _, f, d, om = simon_1994(jd_tt)
        a = 2.0 * f - 2.0 * d + 2.0 * om
        dpsi = -8.1 * math.sin(om) - 0.6 * math.sin(a)
        dpsi += t * (47.8 * math.sin(om) + 3.7 * math.sin(a)
                     + 0.6 * math.sin(2.0 * f + 2.0 * om) - 0.6 * math.sin(2.0 * om))
        deps = t * (-25.6 * math.cos(om) - 1.6 * math.cos(a))
        return dpsi * _UAS_TO_RAD, deps * _UAS_TO_RAD
