import math

import erfa
import pytest

from apparent.data import nutation_1980
from apparent.core.config import NutationModel, PipelineConfig
from apparent.core.errors import MisuseError
from apparent.core.nutation import NutationEngine
from apparent.core.precession import mean_obliquity
from apparent.core.timescales import TwoPartJD

from conftest import EPOCHS, arcsec


def _split(jd):
    parts = TwoPartJD.split(jd)
    return parts.jd1, parts.jd2


@pytest.mark.parametrize("jd", EPOCHS)
def test_iau2000a_matches_erfa(jd):
    engine = NutationEngine(NutationModel.IAU_2000A, apply_p03=False)
    result = engine.nutation(jd)
    dpsi, deps = erfa.nut00a(*_split(jd))
    assert arcsec(result.dpsi - dpsi) == pytest.approx(0.0, abs=1e-5)
    assert arcsec(result.deps - deps) == pytest.approx(0.0, abs=1e-5)


@pytest.mark.parametrize("jd", (2444239.5, 2451545.0, 2460000.5))
def test_iau2000a_with_p03_tracks_erfa_nut06a(jd):
    engine = NutationEngine(NutationModel.IAU_2000A, apply_p03=True)
    result = engine.nutation(jd)
    dpsi, deps = erfa.nut06a(*_split(jd))
    assert arcsec(result.dpsi - dpsi) == pytest.approx(0.0, abs=5e-5)
    assert arcsec(result.deps - deps) == pytest.approx(0.0, abs=5e-5)


@pytest.mark.parametrize("jd", EPOCHS)
def test_iau2000b_matches_erfa(jd):
    result = NutationEngine(NutationModel.IAU_2000B).nutation(jd)
    dpsi, deps = erfa.nut00b(*_split(jd))
    # nut00b evaluates linear Delaunay arguments, the engine the full
    # polynomials; the two drift apart by ~0.6 mas a century from J2000
    assert arcsec(result.dpsi - dpsi) == pytest.approx(0.0, abs=1e-3)
    assert arcsec(result.deps - deps) == pytest.approx(0.0, abs=1e-3)


@pytest.mark.parametrize("jd", EPOCHS)
def test_iau1980_matches_erfa(jd):
    result = NutationEngine(NutationModel.IAU_1980).nutation(jd)
    dpsi, deps = erfa.nut80(*_split(jd))
    assert arcsec(result.dpsi - dpsi) == pytest.approx(0.0, abs=1e-5)
    assert arcsec(result.deps - deps) == pytest.approx(0.0, abs=1e-5)


def test_iau1980_table_is_complete():
    assert len(nutation_1980.TERMS) + 1 == 106
    assert max(abs(row[0]) for row in nutation_1980.TERMS) == 3
    assert max(abs(row[2]) for row in nutation_1980.TERMS) == 4
    assert max(abs(row[3]) for row in nutation_1980.TERMS) == 4


def test_models_agree_to_a_fraction_of_an_arcsecond():
    jd = 2451545.0
    a = NutationEngine(NutationModel.IAU_2000A).nutation(jd)
    b = NutationEngine(NutationModel.IAU_2000B).nutation(jd)
    old = NutationEngine(NutationModel.IAU_1980).nutation(jd)
    assert abs(arcsec(a.dpsi - b.dpsi)) < 0.002
    assert abs(arcsec(a.dpsi - old.dpsi)) < 0.1
    assert abs(arcsec(a.deps - old.deps)) < 0.1
    # Δψ at J2000 is about -13.9"
    assert arcsec(a.dpsi) == pytest.approx(-13.93, abs=0.1)


def test_planetary_terms_are_small_and_optional():
    jd = 2460000.5
    full = NutationEngine(NutationModel.IAU_2000A, apply_p03=False).nutation(jd)
    lunisolar = NutationEngine(NutationModel.IAU_2000A, include_planetary=False,
                               apply_p03=False).nutation(jd)
    difference = abs(arcsec(full.dpsi - lunisolar.dpsi))
    assert 0.0 < difference < 0.005


def test_herring_corrections_change_1980_by_milliarcseconds():
    jd = 2451545.0
    plain = NutationEngine(NutationModel.IAU_1980).nutation(jd)
    corrected = NutationEngine(NutationModel.IAU_1980, herring_1987=True).nutation(jd)
    assert 0.0 < abs(arcsec(corrected.dpsi - plain.dpsi)) < 0.05


def test_matrix_matches_erfa_numat():
    jd = 2455000.5
    engine = NutationEngine(NutationModel.IAU_2000A)
    eps = mean_obliquity(jd)
    nut = engine.nutation(jd)
    expected = erfa.numat(eps, nut.dpsi, nut.deps)
    matrix = engine.matrix(jd, eps)
    for i in range(3):
        for j in range(3):
            assert matrix[i][j] == pytest.approx(float(expected[i][j]), abs=1e-15)


def test_equation_of_equinoxes_against_erfa():
    jd = 2455000.5
    engine = NutationEngine(NutationModel.IAU_2000A)
    ee = engine.equation_of_equinoxes(jd, mean_obliquity(jd))
    # ee06a adds the complementary terms (a few mas)
    assert arcsec(ee - erfa.ee06a(*_split(jd))) == pytest.approx(0.0, abs=0.005)
    assert engine.true_obliquity(jd, 0.4) == pytest.approx(0.4 + engine.nutation(jd).deps)


def test_results_are_cached_per_epoch():
    engine = NutationEngine()
    assert engine.nutation(2451545.0) is engine.nutation(2451545.0)


def test_engine_from_config():
    config = PipelineConfig(nutation_model=NutationModel.IAU_2000B, apply_p03_corrections=False)
    engine = NutationEngine.from_config(config)
    assert engine.model is NutationModel.IAU_2000B
    assert engine.apply_p03 is False


def test_unknown_model_is_misuse():
    with pytest.raises(MisuseError):
        NutationEngine("iau1980")


def test_result_to_dict_reports_arcseconds():
    result = NutationEngine().nutation(2451545.0)
    data = result.to_dict()
    assert data["model"] == "iau2000a"
    assert data["dpsi_arcsec"] == pytest.approx(arcsec(result.dpsi))
    assert math.isfinite(data["deps_arcsec"])
