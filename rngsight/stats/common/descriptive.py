"""
rngsight.stats.common.descriptive
=================================

Descriptive statistics over sequences of numbers, plus `RunningStatistics`,
an O(1)-per-update accumulator (Welford) for live streams.

Conventions: empty input yields 0; `variance` is the sample (n - 1) variance
by default and 0 for fewer than two values; `skewness` needs three values and
`kurtosis` four, otherwise 0 is returned, as it is for constant input.

Examples
--------
>>> from rngsight.stats.common.descriptive import mean, variance, RunningStatistics
>>> mean([1, 2, 3, 4])
2.5
>>> round(variance([1, 2, 3, 4]), 4)
1.6667
>>> rs = RunningStatistics(expected_mean=2.0)
>>> for v in (1, 2, 3, 4): rs.push(v)
>>> rs.count, rs.mean, rs.cumulative_deviation
(4, 2.5, 2.0)
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple


def mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return math.fsum(values) / len(values)


def variance(values: Sequence[float], sample: bool = True) -> float:
    n = len(values)
    if n <= 1:
        return 0.0
    m = mean(values)
    ss = math.fsum((x - m) * (x - m) for x in values)
    return ss / (n - 1 if sample else n)


def standard_deviation(values: Sequence[float], sample: bool = True) -> float:
    return math.sqrt(variance(values, sample))


def skewness(values: Sequence[float]) -> float:
    """Adjusted Fisher-Pearson sample skewness."""
    n = len(values)
    if n < 3:
        return 0.0
    m = mean(values)
    s = standard_deviation(values)
    if s == 0:
        return 0.0
    cubed = math.fsum(((x - m) / s) ** 3 for x in values)
    return (n / ((n - 1) * (n - 2))) * cubed


def kurtosis(values: Sequence[float]) -> float:
    """Unbiased sample excess kurtosis."""
    n = len(values)
    if n < 4:
        return 0.0
    m = mean(values)
    s = standard_deviation(values)
    if s == 0:
        return 0.0
    quartic = math.fsum(((x - m) / s) ** 4 for x in values)
    return (n * (n + 1)) / ((n - 1) * (n - 2) * (n - 3)) * quartic - (
        3 * (n - 1) ** 2
    ) / ((n - 2) * (n - 3))


def median(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return float(ordered[mid])


@dataclass(frozen=True)
class BasicStats:
    count: int
    sum: float
    mean: float
    variance: float
    standard_deviation: float
    min: float
    max: float


def basic_stats(values: Sequence[float]) -> BasicStats:
    """Count, sum, mean, sample variance/std, min and max in one record."""
    if len(values) == 0:
        return BasicStats(0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)
    var = variance(values)
    return BasicStats(
        count=len(values),
        sum=math.fsum(values),
        mean=mean(values),
        variance=var,
        standard_deviation=math.sqrt(var),
        min=float(min(values)),
        max=float(max(values)),
    )


class RunningStatistics:
    """Incremental statistics for a stream of values.

    Each `push` updates count, mean, sample variance, min, max and the
    cumulative deviation from `expected_mean` in constant time (Welford's
    algorithm). The cumulative-deviation series is extended, not recomputed.

    Parameters
    ----------
    expected_mean : float
        Reference mean the cumulative deviation is measured against.
    keep_series : bool
        Whether to retain the cumulative-deviation series.
    """

    def __init__(self, expected_mean: float = 0.0, keep_series: bool = True) -> None:
        self.expected_mean = expected_mean
        self.keep_series = keep_series
        self.reset()

    def reset(self) -> None:
        self.count = 0
        self.mean = 0.0
        self._m2 = 0.0
        self.min: Optional[float] = None
        self.max: Optional[float] = None
        self.cumulative_deviation = 0.0
        self._series: List[float] = []

    def push(self, value: float) -> None:
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self._m2 += delta * (value - self.mean)
        self.min = value if self.min is None else min(self.min, value)
        self.max = value if self.max is None else max(self.max, value)
        self.cumulative_deviation += value - self.expected_mean
        if self.keep_series:
            self._series.append(self.cumulative_deviation)

    @property
    def variance(self) -> float:
        return self._m2 / (self.count - 1) if self.count > 1 else 0.0

    @property
    def standard_deviation(self) -> float:
        return math.sqrt(self.variance)

    @property
    def series(self) -> Tuple[float, ...]:
        return tuple(self._series)

    def snapshot(self) -> "RunningSnapshot":
        return RunningSnapshot(
            count=self.count,
            mean=self.mean,
            variance=self.variance,
            standard_deviation=self.standard_deviation,
            min=self.min,
            max=self.max,
            cumulative_deviation=self.cumulative_deviation,
        )


@dataclass(frozen=True)
class RunningSnapshot:
    count: int
    mean: float
    variance: float
    standard_deviation: float
    min: Optional[float]
    max: Optional[float]
    cumulative_deviation: float
