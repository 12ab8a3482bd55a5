"""
rngsight.api
============

Convenience entry points.

>>> from rngsight.api import create_engine
>>> engine = create_engine(target_rate=10)
>>> engine.get_config().interval_ms
100.0
>>> engine.destroy()
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from loguru import logger

from rngsight.core.models import StatisticalResult
from rngsight.core.names import QualityRating
from rngsight.runtime.engine import TrialEngine
from rngsight.runtime.sources import RandomSource, SourceCheck, verify_random_source


def create_engine(
    source: Optional[RandomSource] = None, **config: Any
) -> TrialEngine:
    """Build a `TrialEngine` from keyword settings.

    Raises:
        ConfigurationError: If a setting is unknown or out of range.
    """
    return TrialEngine(config, source=source)


@dataclass(frozen=True)
class QualityCheck:
    passed: bool
    quality: QualityRating
    issues: Tuple[str, ...]
    statistics: StatisticalResult


def test_rng_quality(
    sample_size: int = 1000, source: Optional[RandomSource] = None
) -> QualityCheck:
    """Run a one-off calibration on a throwaway engine.

    Args:
        sample_size: Number of trials to draw.
        source: Byte source to assess; the OS generator by default.

    Returns:
        Pass/fail, quality rating, issues and the sample's statistics.
    """
    engine = TrialEngine({"calibration_pause_ms": 0}, source=source)
    try:
        result = engine.run_calibration(sample_size)
    finally:
        engine.destroy()
    logger.info("RNG quality check: {} ({} trials)", result.quality_metrics.quality.value, sample_size)
    return QualityCheck(
        passed=result.passed,
        quality=result.quality_metrics.quality,
        issues=result.issues,
        statistics=result.statistics,
    )


# pytest would otherwise collect this module-level function.
test_rng_quality.__test__ = False  # type: ignore[attr-defined]

__all__ = [
    "QualityCheck",
    "SourceCheck",
    "create_engine",
    "test_rng_quality",
    "verify_random_source",
]
