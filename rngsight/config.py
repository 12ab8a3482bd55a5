"""
rngsight.config
===============

Configuration models (pydantic) and a YAML loader.

- `EngineConfiguration`: everything a `TrialEngine` needs to run.
- `LogConfig`: sinks installed by `rngsight.core.log.configure_logging`.
- `RngSightConfig`: both of the above, as read from a YAML file.

Invalid values raise `ConfigurationError` (a `ValueError`).

Examples
--------
>>> from rngsight.config import EngineConfiguration
>>> cfg = EngineConfiguration(target_rate=4)
>>> cfg.interval_ms
250.0
>>> cfg.merged(bits_per_trial=100).expected_mean
50.0
"""

from __future__ import annotations
import os
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from rngsight.core.errors import ConfigurationError
from rngsight.core.names import ChiSquareReference


class EngineConfiguration(BaseModel):
    """Engine settings.

    Attributes:
        target_rate: Trials per second; the scheduler interval is 1000/target_rate ms.
        bits_per_trial: Number of random bits counted per trial.
        timing_tolerance: Acceptable absolute timing error per tick, in ms.
        drift_compensation: Shorten or lengthen the next delay to cancel drift.
        buffer_size: Capacity of the rolling trial buffer.
        quality_monitoring: Keep the recent window used by live statistics.
        calibration_pause_ms: Pause between calibration trials.
        chi_square_reference: Expected bin frequencies for the baseline
            goodness-of-fit test ("uniform" or "binomial").
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    target_rate: float = Field(default=1.0, gt=0, le=1000)
    bits_per_trial: int = Field(default=200, ge=1, le=100_000)
    timing_tolerance: float = Field(default=100.0, ge=0)
    drift_compensation: bool = True
    buffer_size: int = Field(default=1000, ge=1)
    quality_monitoring: bool = True
    calibration_pause_ms: float = Field(default=10.0, ge=0)
    chi_square_reference: ChiSquareReference = "uniform"

    @property
    def interval_ms(self) -> float:
        return 1000.0 / self.target_rate

    @property
    def expected_mean(self) -> float:
        return self.bits_per_trial / 2

    @property
    def expected_variance(self) -> float:
        return self.bits_per_trial / 4

    def merged(self, **changes: Any) -> "EngineConfiguration":
        """Return a validated copy with `changes` applied."""
        return build_engine_configuration({**self.model_dump(), **changes})


class LogConfig(BaseModel):
    dir: Optional[str] = None
    rotation: str = "1 day"
    retention: str = "30 days"
    level: str = "INFO"


class RngSightConfig(BaseModel):
    engine: EngineConfiguration = Field(default_factory=EngineConfiguration)
    log: LogConfig = Field(default_factory=LogConfig)


def build_engine_configuration(
    values: Optional[Union[Dict[str, Any], EngineConfiguration]] = None,
    **overrides: Any,
) -> EngineConfiguration:
    """Build an `EngineConfiguration`, translating pydantic errors.

    Args:
        values: A mapping of settings or an existing configuration.
        **overrides: Settings applied on top of `values`.

    Raises:
        ConfigurationError: If any value is unknown or out of range.
    """
    if isinstance(values, EngineConfiguration):
        values = values.model_dump()
    data = {**(values or {}), **overrides}
    try:
        return EngineConfiguration(**data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid engine configuration: {exc}") from exc


def load_config(path: Union[str, os.PathLike[str]]) -> RngSightConfig:
    """Load a `RngSightConfig` from a YAML file.

    Missing sections fall back to defaults.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    try:
        return RngSightConfig(**raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration in {path}: {exc}") from exc
