"""
rngsight.stats.schemes.trials.realtime
======================================

Live-monitoring views over the most recent trials.

- `moving_statistics`: sliding-window means and z-scores.
- `current_significance`: z, p, effect size, a verbal interpretation and
  power figures for the trials so far.
- `detect_trend`: regression of overlapping window means on time.
- `detect_anomalies`: value outliers and timing gaps.
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from datetime import datetime
from typing import List, Literal, Sequence, Tuple

from scipy.stats import linregress

from rngsight.core.models import Trial
from rngsight.stats.common.descriptive import basic_stats, mean
from rngsight.stats.common.inference import calculate_p_value, calculate_z_score
from rngsight.stats.common.power import (
    minimum_detectable_effect,
    power_analysis,
    required_sample_size,
)

Interpretation = Literal[
    "random", "marginally_significant", "significant", "highly_significant"
]
TrendDirection = Literal["increasing", "decreasing", "stable"]
AnomalyKind = Literal["outlier", "timing"]


@dataclass(frozen=True)
class MovingStatistics:
    means: Tuple[float, ...]
    z_scores: Tuple[float, ...]
    timestamps: Tuple[datetime, ...]


def moving_statistics(
    trials: Sequence[Trial], window: int, bits_per_trial: int
) -> MovingStatistics:
    """Mean and z-score of every full window ending at each trial."""
    if window < 1:
        raise ValueError(f"window must be >= 1 (got {window})")
    means: List[float] = []
    zs: List[float] = []
    stamps: List[datetime] = []
    values = [t.value for t in trials]
    for end in range(window, len(values) + 1):
        chunk = values[end - window : end]
        means.append(mean(chunk))
        zs.append(calculate_z_score(chunk, bits_per_trial))
        stamps.append(trials[end - 1].timestamp)
    return MovingStatistics(tuple(means), tuple(zs), tuple(stamps))


@dataclass(frozen=True)
class SignificanceResult:
    z_score: float
    p_value: float
    effect_size: float
    interpretation: Interpretation
    sample_size: int
    observed_power: float
    required_sample_size: float
    minimum_detectable_effect: float


def interpret_p_value(p_value: float) -> Interpretation:
    if p_value < 0.001:
        return "highly_significant"
    if p_value < 0.05:
        return "significant"
    if p_value < 0.1:
        return "marginally_significant"
    return "random"


def current_significance(
    values: Sequence[float], bits_per_trial: int, alpha: float = 0.05
) -> SignificanceResult:
    """Where the stream stands right now.

    Raises:
        ValueError: If `values` is empty.
    """
    n = len(values)
    if n == 0:
        raise ValueError("current_significance needs at least one trial")
    expected_std = math.sqrt(bits_per_trial / 4)
    z = calculate_z_score(values, bits_per_trial)
    p = calculate_p_value(z)
    effect = (mean(values) - bits_per_trial / 2) / expected_std
    return SignificanceResult(
        z_score=z,
        p_value=p,
        effect_size=effect,
        interpretation=interpret_p_value(p),
        sample_size=n,
        observed_power=power_analysis(effect, n, alpha) if n >= 2 else 0.0,
        required_sample_size=required_sample_size(effect, 0.8, alpha),
        minimum_detectable_effect=minimum_detectable_effect(n, 0.8, alpha),
    )


@dataclass(frozen=True)
class TrendResult:
    slope: float
    p_value: float
    correlation: float
    direction: TrendDirection
    windows: int


def detect_trend(
    trials: Sequence[Trial], bits_per_trial: int, window: int = 100
) -> TrendResult:
    """Regress overlapping window mean deviations on window time.

    Windows advance by a quarter window. Fewer than ``2 * window`` trials, or
    fewer than three windows, report a stable stream with p = 1. The slope is
    in value units per second.
    """
    stable = TrendResult(0.0, 1.0, 0.0, "stable", 0)
    if window < 1 or len(trials) < 2 * window:
        return stable

    origin = trials[0].timestamp
    step = max(1, window // 4)
    xs: List[float] = []
    ys: List[float] = []
    for end in range(window, len(trials) + 1, step):
        chunk = trials[end - window : end]
        xs.append(mean([(t.timestamp - origin).total_seconds() for t in chunk]))
        ys.append(mean([t.value for t in chunk]) - bits_per_trial / 2)
    if len(xs) < 3 or len(set(xs)) < 2:
        return TrendResult(0.0, 1.0, 0.0, "stable", len(xs))

    fit = linregress(xs, ys)
    slope = float(fit.slope)
    p_value = float(fit.pvalue) if math.isfinite(fit.pvalue) else 1.0
    if p_value < 0.05:
        direction: TrendDirection = "increasing" if slope > 0 else "decreasing"
    else:
        direction = "stable"
    return TrendResult(slope, p_value, float(fit.rvalue), direction, len(xs))


@dataclass(frozen=True)
class Anomaly:
    trial: Trial
    score: float
    kind: AnomalyKind


@dataclass(frozen=True)
class AnomalyReport:
    anomalies: Tuple[Anomaly, ...]
    anomaly_rate: float


def detect_anomalies(
    trials: Sequence[Trial],
    threshold: float = 3.0,
    expected_interval_ms: float = 1000.0,
    tolerance_ms: float = 100.0,
) -> AnomalyReport:
    """Flag value outliers (``|z| > threshold``) and off-cadence trials.

    A timing anomaly's score is its absolute spacing error in units of
    `tolerance_ms`.
    """
    if len(trials) < 2:
        return AnomalyReport((), 0.0)

    stats = basic_stats([t.value for t in trials])
    found: List[Anomaly] = []
    for i, trial in enumerate(trials):
        if stats.standard_deviation > 0:
            z = (trial.value - stats.mean) / stats.standard_deviation
            if abs(z) > threshold:
                found.append(Anomaly(trial, z, "outlier"))
        if i > 0:
            gap_ms = (trial.timestamp - trials[i - 1].timestamp).total_seconds() * 1000.0
            error = abs(gap_ms - expected_interval_ms)
            if error > tolerance_ms:
                score = error / tolerance_ms if tolerance_ms > 0 else math.inf
                found.append(Anomaly(trial, score, "timing"))
    return AnomalyReport(tuple(found), len(found) / len(trials))
