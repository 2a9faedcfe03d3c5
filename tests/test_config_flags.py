import pytest

from apparent.core.config import BiasModel, NutationModel, PipelineConfig
from apparent.core.errors import ConfigurationError, ErrorClass, MisuseError, ObserverNotSetError
from apparent.core.flags import (
    COORDINATE_FORM_MASK,
    Body,
    TransformFlags as F,
    flag_class,
    resolve_body,
    validate_flags,
)

ENV_VARS = (
    "APPARENT_NUTATION_MODEL", "APPARENT_BIAS_MODEL", "APPARENT_P03",
    "APPARENT_PLANETARY_NUTATION", "APPARENT_HERRING_1987", "APPARENT_CACHING",
    "APPARENT_PROFILING", "APPARENT_DELTA_T",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults():
    config = PipelineConfig()
    assert config.nutation_model is NutationModel.IAU_2000A
    assert config.bias_model is BiasModel.IAU_2000
    assert config.enable_caching and not config.enable_profiling
    assert config.include_planetary_nutation and config.apply_p03_corrections


def test_from_env_reads_overrides(clean_env):
    clean_env.setenv("APPARENT_NUTATION_MODEL", "IAU1980")
    clean_env.setenv("APPARENT_BIAS_MODEL", "iau2006")
    clean_env.setenv("APPARENT_CACHING", "off")
    clean_env.setenv("APPARENT_HERRING_1987", "yes")
    clean_env.setenv("APPARENT_DELTA_T", "69.2")
    config = PipelineConfig.from_env()
    assert config.nutation_model is NutationModel.IAU_1980
    assert config.bias_model is BiasModel.IAU_2006
    assert config.enable_caching is False
    assert config.herring_1987_corrections is True
    assert config.delta_t_override_seconds == 69.2


def test_from_env_keyword_overrides_win(clean_env):
    clean_env.setenv("APPARENT_P03", "true")
    config = PipelineConfig.from_env(apply_p03_corrections=False)
    assert config.apply_p03_corrections is False


@pytest.mark.parametrize("name, value", [
    ("APPARENT_NUTATION_MODEL", "iau1976"),
    ("APPARENT_CACHING", "maybe"),
    ("APPARENT_DELTA_T", "sixty"),
])
def test_from_env_rejects_bad_values(clean_env, name, value):
    clean_env.setenv(name, value)
    with pytest.raises(ConfigurationError):
        PipelineConfig.from_env()


def test_invalid_numeric_parameters():
    with pytest.raises(ConfigurationError):
        PipelineConfig(speed_interval_days=0.0)
    with pytest.raises(ConfigurationError):
        PipelineConfig(range_margin_days=-1.0)
    with pytest.raises(ConfigurationError):
        PipelineConfig(nutation_model="iau2000a")


def test_error_status_codes():
    assert ObserverNotSetError().status == "configuration"
    assert MisuseError("x").error_class is ErrorClass.MISUSE
    assert isinstance(ObserverNotSetError(), ConfigurationError)


def test_validate_flags():
    assert validate_flags(F.SPEED | F.HELIOCENTRIC) == F.SPEED | F.HELIOCENTRIC
    with pytest.raises(MisuseError):
        validate_flags(F.HELIOCENTRIC | F.BARYCENTRIC)
    with pytest.raises(MisuseError):
        validate_flags(F.TOPOCENTRIC | F.HELIOCENTRIC)
    with pytest.raises(MisuseError):
        validate_flags(1 << 30)


def test_flag_class_ignores_coordinate_form():
    base = F.SPEED | F.J2000
    assert flag_class(base | F.EQUATORIAL | F.RADIANS) == flag_class(base)
    assert flag_class(base | F.CARTESIAN) == flag_class(base)
    assert flag_class(base) != flag_class(base | F.NO_ABERRATION)
    assert not flag_class(COORDINATE_FORM_MASK)


def test_resolve_body():
    assert resolve_body("mars") is Body.MARS
    assert resolve_body("EMB") is Body.EARTH_MOON_BARYCENTER
    assert resolve_body("earth_moon_barycenter") is Body.EARTH_MOON_BARYCENTER
    assert resolve_body(Body.SUN) is Body.SUN
    assert resolve_body("MeanNode") is Body.MEAN_NODE
    assert resolve_body("mean_apogee") is Body.MEAN_APOGEE
    with pytest.raises(MisuseError):
        resolve_body("Vulcan")
    with pytest.raises(MisuseError):
        resolve_body(4)
