"""
rngsight.stats.common.power
===========================

Power, sample size and effect-size helpers for one-sample comparisons.

`power_analysis` approximates the power of a two-sided one-sample t-test by
shifting a standardized normal by the non-centrality ``effect * sqrt(n)``;
the sample-size formulas use normal quantiles.

Examples
--------
>>> from rngsight.stats.common.power import required_sample_size
>>> required_sample_size(0.5)
32
>>> required_sample_size(0.0)
inf
"""

from __future__ import annotations
import math
from typing import Sequence, Tuple

from rngsight.stats.common.descriptive import mean, standard_deviation
from rngsight.stats.common.special import normal_cdf, normal_inverse, t_inverse


def _noncentral_t_cdf(t: float, df: float, ncp: float) -> float:
    return normal_cdf((t - ncp) / math.sqrt(1.0 + ncp * ncp / df))


def power_analysis(effect_size: float, n: int, alpha: float = 0.05) -> float:
    """Approximate power of a two-sided one-sample t-test.

    Args:
        effect_size: Standardized effect (Cohen's d).
        n: Sample size, at least 2.
        alpha: Two-sided significance level.
    """
    if n < 2:
        raise ValueError(f"power_analysis requires n >= 2 (got {n})")
    df = n - 1
    critical = t_inverse(1.0 - alpha / 2.0, df)
    ncp = effect_size * math.sqrt(n)
    power = 1.0 - _noncentral_t_cdf(critical, df, ncp) + _noncentral_t_cdf(-critical, df, ncp)
    return min(1.0, max(0.0, power))


def required_sample_size(
    effect_size: float, power: float = 0.8, alpha: float = 0.05
) -> float:
    """Smallest n reaching `power` for `effect_size`; ``inf`` for a zero effect."""
    if effect_size == 0:
        return math.inf
    z_alpha = normal_inverse(1.0 - alpha / 2.0)
    z_beta = normal_inverse(power)
    return math.ceil(((z_alpha + z_beta) / effect_size) ** 2)


def minimum_detectable_effect(n: int, power: float = 0.8, alpha: float = 0.05) -> float:
    if n <= 0:
        raise ValueError(f"minimum_detectable_effect requires n > 0 (got {n})")
    z_alpha = normal_inverse(1.0 - alpha / 2.0)
    z_beta = normal_inverse(power)
    return (z_alpha + z_beta) / math.sqrt(n)


def cohens_d(mean1: float, mean2: float, pooled_std: float) -> float:
    if pooled_std == 0:
        return 0.0
    return (mean1 - mean2) / pooled_std


def hedges_g(mean1: float, mean2: float, pooled_std: float, n1: int, n2: int) -> float:
    """Cohen's d with the small-sample factor ``1 - 3 / (4 df - 1)``."""
    df = n1 + n2 - 2
    if df < 1:
        raise ValueError(f"hedges_g requires n1 + n2 > 2 (got {n1} + {n2})")
    return cohens_d(mean1, mean2, pooled_std) * (1.0 - 3.0 / (4.0 * df - 1.0))


def pooled_standard_deviation(std1: float, n1: int, std2: float, n2: int) -> float:
    if n1 + n2 <= 2:
        raise ValueError(
            f"pooled_standard_deviation requires n1 + n2 > 2 (got {n1} + {n2})"
        )
    pooled_var = ((n1 - 1) * std1 * std1 + (n2 - 1) * std2 * std2) / (n1 + n2 - 2)
    return math.sqrt(pooled_var)


def confidence_interval(
    sample_mean: float, std: float, n: int, confidence: float = 0.95
) -> Tuple[float, float]:
    """Two-sided interval for a mean; normal quantile for n >= 30, t below."""
    if n <= 1:
        return (sample_mean, sample_mean)
    alpha = 1.0 - confidence
    if n >= 30:
        critical = normal_inverse(1.0 - alpha / 2.0)
    else:
        critical = t_inverse(1.0 - alpha / 2.0, n - 1)
    margin = critical * std / math.sqrt(n)
    return (sample_mean - margin, sample_mean + margin)


def point_biserial_correlation(values: Sequence[float], groups: Sequence[bool]) -> float:
    if len(values) != len(groups):
        raise ValueError("values and groups must have the same length")
    group1 = [v for v, g in zip(values, groups) if g]
    group0 = [v for v, g in zip(values, groups) if not g]
    if not group1 or not group0:
        return 0.0
    std_total = standard_deviation(values)
    if std_total == 0:
        return 0.0
    n = len(values)
    return (mean(group1) - mean(group0)) / std_total * math.sqrt(len(group1) * len(group0) / (n * n))
