# apparent/core/config.py
# -----------------------------------------------------------------------------
# Pipeline configuration
#
# Model selection:
#   • Nutation: IAU 1980 (Wahr), IAU 2000A (MHB2000), IAU 2000B (truncated)
#   • Frame bias: IAU 2000 (default), IAU 2006, or disabled
#   • Planetary nutation and IAU 2006 P03 corrections toggled independently
#
# Environment overrides (read only by PipelineConfig.from_env):
#   APPARENT_NUTATION_MODEL, APPARENT_BIAS_MODEL, APPARENT_P03,
#   APPARENT_PLANETARY_NUTATION, APPARENT_HERRING_1987, APPARENT_CACHING,
#   APPARENT_PROFILING, APPARENT_DELTA_T
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from .errors import ConfigurationError
from .flags import Constants

log = logging.getLogger(__name__)

__all__ = ["NutationModel", "BiasModel", "PipelineConfig"]


class NutationModel(Enum):
    """Nutation theory used for the whole calculation context."""
    IAU_1980 = "iau1980"
    IAU_2000A = "iau2000a"
    IAU_2000B = "iau2000b"


class BiasModel(Enum):
    """ICRS to J2000 frame bias matrix variant."""
    NONE = "none"
    IAU_2000 = "iau2000"
    IAU_2006 = "iau2006"


_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_WORDS:
        return True
    if value in _FALSE_WORDS:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}", variable=name)


def _env_enum(name: str, enum_type, default):
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return enum_type(raw.strip().lower())
    except ValueError:
        choices = ", ".join(m.value for m in enum_type)
        raise ConfigurationError(f"{name}={raw!r} is not one of: {choices}", variable=name)


@dataclass(frozen=True)
class PipelineConfig:
    """Configuration of one calculation context."""

    # Models
    nutation_model: NutationModel = NutationModel.IAU_2000A
    include_planetary_nutation: bool = True   # 2000A only
    apply_p03_corrections: bool = True        # 2000A only
    herring_1987_corrections: bool = False    # 1980 only
    bias_model: BiasModel = BiasModel.IAU_2000

    # Numerical parameters
    speed_interval_days: float = Constants.SPEED_INTERVAL_DAYS
    deflection_speed_interval_days: float = Constants.DEFLECTION_SPEED_INTERVAL_DAYS
    range_margin_days: float = 0.3

    # Time scales
    delta_t_override_seconds: Optional[float] = None

    # Performance
    enable_caching: bool = True
    enable_profiling: bool = False

    def __post_init__(self):
        if not isinstance(self.nutation_model, NutationModel):
            raise ConfigurationError(f"Invalid nutation model: {self.nutation_model!r}")
        if not isinstance(self.bias_model, BiasModel):
            raise ConfigurationError(f"Invalid bias model: {self.bias_model!r}")
        if self.speed_interval_days <= 0.0 or self.deflection_speed_interval_days <= 0.0:
            raise ConfigurationError("Finite-difference intervals must be positive")
        if self.range_margin_days < 0.0:
            raise ConfigurationError("Range margin must not be negative")

    @classmethod
    def from_env(cls, **overrides) -> "PipelineConfig":
        """Build a configuration from APPARENT_* environment variables."""
        delta_t = None
        if raw := os.getenv("APPARENT_DELTA_T"):
            try:
                delta_t = float(raw)
            except ValueError:
                raise ConfigurationError(f"APPARENT_DELTA_T must be seconds, got {raw!r}")

        config = cls(
            nutation_model=_env_enum("APPARENT_NUTATION_MODEL", NutationModel, NutationModel.IAU_2000A),
            include_planetary_nutation=_env_bool("APPARENT_PLANETARY_NUTATION", True),
            apply_p03_corrections=_env_bool("APPARENT_P03", True),
            herring_1987_corrections=_env_bool("APPARENT_HERRING_1987", False),
            bias_model=_env_enum("APPARENT_BIAS_MODEL", BiasModel, BiasModel.IAU_2000),
            delta_t_override_seconds=delta_t,
            enable_caching=_env_bool("APPARENT_CACHING", True),
            enable_profiling=_env_bool("APPARENT_PROFILING", False),
        )
        if overrides:
            config = replace(config, **overrides)
        log.debug("Pipeline configuration from environment: %s", config)
        return config
