"""
rngsight.stats.common.inference
===============================

Hypothesis tests for a stream of bit-count trials.

- `calculate_z_score` / `calculate_p_value`: mean shift against the fair
  Binomial(bits, 1/2) expectation.
- `chi_square_test`: five equal-width bins over [0, bits].
- `runs_test`: runs above/below the sample median.
- `autocorrelation`: lag-k coefficient against the 2/sqrt(n) band.
- `jarque_bera_test`: normality from skewness and excess kurtosis.
- `ks_test`: one-sample Kolmogorov-Smirnov fit, standard normal by default.

All functions are pure and accept any sequence of numbers.

Examples
--------
>>> from rngsight.stats.common.inference import calculate_z_score, runs_test
>>> calculate_z_score([100, 100, 100, 100], bits_per_trial=200)
0.0
>>> runs_test([1] * 10).is_random
True
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple

from scipy.stats import binom, kstest

from rngsight.core.names import ChiSquareReference
from rngsight.stats.common.descriptive import kurtosis, mean, median, skewness
from rngsight.stats.common.special import chi_square_probability, normal_two_tailed_p

ALPHA = 0.05


def calculate_z_score(values: Sequence[float], bits_per_trial: int) -> float:
    """z of the sample mean against ``bits/2`` with standard error ``sqrt(bits/4)/sqrt(n)``."""
    n = len(values)
    if n == 0:
        return 0.0
    expected_mean = bits_per_trial / 2
    standard_error = math.sqrt(bits_per_trial / 4) / math.sqrt(n)
    return (mean(values) - expected_mean) / standard_error


def calculate_p_value(z_score: float) -> float:
    """Two-tailed p-value for a z-score."""
    return normal_two_tailed_p(z_score)


@dataclass(frozen=True)
class ChiSquareResult:
    chi_square: float
    degrees_of_freedom: int
    p_value: float
    passed: bool
    observed: Tuple[int, ...]
    expected: Tuple[float, ...]


def _binomial_bin_probabilities(range_max: int, bins: int) -> List[float]:
    """Probability mass of Binomial(range_max, 1/2) falling in each bin."""
    bin_size = range_max / bins
    probs = [0.0] * bins
    for k in range(range_max + 1):
        probs[min(int(k // bin_size), bins - 1)] += float(binom.pmf(k, range_max, 0.5))
    return probs


def chi_square_test(
    values: Sequence[float],
    range_max: int,
    bins: int = 5,
    reference: ChiSquareReference = "uniform",
) -> ChiSquareResult:
    """Chi-square goodness-of-fit over equal-width bins of [0, range_max].

    Args:
        values: Trial values.
        range_max: Upper end of the value range (bits per trial).
        bins: Number of equal-width bins.
        reference: ``"uniform"`` compares against equal bin frequencies;
            ``"binomial"`` against the mass Binomial(range_max, 1/2) puts in
            each bin. Bins with zero expected count are skipped.

    Returns:
        ChiSquareResult; passes iff p > 0.05. Empty input passes with p = 1.

    Raises:
        ValueError: If a value lies outside [0, range_max].
    """
    if bins < 2:
        raise ValueError(f"chi_square_test needs at least 2 bins (got {bins})")
    n = len(values)
    if n == 0:
        return ChiSquareResult(0.0, 0, 1.0, True, tuple([0] * bins), tuple([0.0] * bins))

    bin_size = range_max / bins
    observed = [0] * bins
    for v in values:
        if not 0 <= v <= range_max:
            raise ValueError(f"Value {v} is outside [0, {range_max}]")
        observed[min(int(v // bin_size), bins - 1)] += 1

    if reference == "binomial":
        expected = [p * n for p in _binomial_bin_probabilities(range_max, bins)]
    elif reference == "uniform":
        expected = [n / bins] * bins
    else:
        raise ValueError(f"Unknown chi-square reference: {reference!r}")

    statistic = 0.0
    used = 0
    for o, e in zip(observed, expected):
        if e <= 0:
            continue
        statistic += (o - e) ** 2 / e
        used += 1
    df = max(used - 1, 1)
    p_value = chi_square_probability(statistic, df)
    return ChiSquareResult(
        chi_square=statistic,
        degrees_of_freedom=df,
        p_value=p_value,
        passed=p_value > ALPHA,
        observed=tuple(observed),
        expected=tuple(expected),
    )


@dataclass(frozen=True)
class RunsResult:
    runs_observed: int
    runs_expected: float
    z_score: float
    p_value: float
    is_random: bool


def runs_test(values: Sequence[float]) -> RunsResult:
    """Wald-Wolfowitz runs test against the sample median.

    Values strictly above the median count as one class, the rest as the
    other. If either class is empty (or the variance of the runs count is
    zero) there is no evidence against randomness: z = 0, p = 1.
    """
    n = len(values)
    if n < 2:
        return RunsResult(n, float(n), 0.0, 1.0, True)

    m = median(values)
    signs = [v > m for v in values]
    runs = 1 + sum(1 for a, b in zip(signs, signs[1:]) if a != b)
    n1 = sum(signs)
    n2 = n - n1
    if n1 == 0 or n2 == 0:
        return RunsResult(runs, float(runs), 0.0, 1.0, True)

    expected = 2.0 * n1 * n2 / n + 1.0
    var = 2.0 * n1 * n2 * (2.0 * n1 * n2 - n) / (n * n * (n - 1))
    if var <= 0:
        return RunsResult(runs, expected, 0.0, 1.0, True)

    z = abs(runs - expected) / math.sqrt(var)
    p = normal_two_tailed_p(z)
    return RunsResult(runs, expected, z, p, p > ALPHA)


@dataclass(frozen=True)
class AutocorrelationResult:
    coefficient: float
    threshold: float
    is_significant: bool
    lag: int = 1


def autocorrelation(values: Sequence[float], lag: int = 1) -> AutocorrelationResult:
    """Lag-k autocorrelation, significant when ``|r| > 2/sqrt(n)``."""
    if lag < 1:
        raise ValueError(f"lag must be >= 1 (got {lag})")
    n = len(values)
    if n <= lag:
        return AutocorrelationResult(0.0, math.inf, False, lag)

    m = mean(values)
    numerator = math.fsum((values[i] - m) * (values[i + lag] - m) for i in range(n - lag))
    denominator = math.fsum((v - m) ** 2 for v in values)
    r = numerator / denominator if denominator > 0 else 0.0
    threshold = 2.0 / math.sqrt(n)
    return AutocorrelationResult(r, threshold, abs(r) > threshold, lag)


@dataclass(frozen=True)
class JarqueBeraResult:
    statistic: float
    p_value: float
    is_normal: bool


def jarque_bera_test(values: Sequence[float]) -> JarqueBeraResult:
    n = len(values)
    s = skewness(values)
    k = kurtosis(values)
    jb = (n / 6.0) * (s * s + k * k / 4.0)
    p = chi_square_probability(jb, 2)
    return JarqueBeraResult(jb, p, p > ALPHA)


@dataclass(frozen=True)
class KSResult:
    statistic: float
    p_value: float
    passed: bool


def ks_test(values: Sequence[float], cdf: Any = "norm") -> KSResult:
    """One-sample Kolmogorov-Smirnov goodness-of-fit test.

    Meant for continuous quantities such as block z-scores; raw bit counts
    are discrete and should be standardized and aggregated first.

    Args:
        values: Sample to test.
        cdf: Reference distribution, a `scipy.stats` name or a callable CDF.
            Defaults to the standard normal.

    Returns:
        KSResult with the sup-distance D and its exact p-value; passes iff
        p > 0.05. Empty input passes with D = 0, p = 1.

    >>> ks_test([0.0]).statistic
    0.5
    """
    if len(values) == 0:
        return KSResult(0.0, 1.0, True)
    result = kstest(list(values), cdf)
    p_value = float(result.pvalue)
    return KSResult(
        statistic=float(result.statistic), p_value=p_value, passed=p_value > ALPHA
    )
