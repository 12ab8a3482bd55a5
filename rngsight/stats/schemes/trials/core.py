"""
rngsight.stats.schemes.trials.core
==================================

Statistics over a stream of `Trial` records.

Trial values are bit counts, so under a fair source each is
Binomial(bits_per_trial, 1/2): expected mean ``bits/2`` and expected
variance ``bits/4``. Every function here takes `bits_per_trial` explicitly.

- `calculate_cumulative_deviation`: batch series ``sum(v[0..i]) - (i+1)*mu``.
- `CumulativeDeviationTracker`: the same series, extended in O(1) per trial.
- `cumulative_z_scores` / `detect_excursions`: the series in z units and the
  stretches where it stays beyond +-2.
- `calculate_network_variance`: observed/expected variance ratio and its z.
- `calculate_statistical_result`: the full `StatisticalResult`.

Examples
--------
>>> from rngsight.stats.schemes.trials.core import calculate_cumulative_deviation
>>> calculate_cumulative_deviation([101, 99, 102], expected_mean=100)
[1.0, 0.0, 2.0]
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from rngsight.core.models import DataRange, StatisticalResult, Trial
from rngsight.stats.common.descriptive import basic_stats
from rngsight.stats.common.inference import calculate_p_value, calculate_z_score
from rngsight.stats.common.special import normal_one_tailed_p

EXCURSION_THRESHOLD = 2.0
EXCURSION_MIN_DURATION = 100


def calculate_cumulative_deviation(
    values: Sequence[float], expected_mean: float
) -> List[float]:
    """Running deviation of the sum from its expectation, one point per value."""
    series: List[float] = []
    running = 0.0
    for v in values:
        running += v - expected_mean
        series.append(running)
    return series


def cumulative_z_scores(values: Sequence[float], bits_per_trial: int) -> List[float]:
    """z of each cumulative-deviation point, ``D_i / (sigma * sqrt(i))``.

    >>> [round(z, 3) for z in cumulative_z_scores([110, 110], bits_per_trial=200)]
    [1.414, 2.0]
    """
    sigma = math.sqrt(bits_per_trial / 4)
    expected_mean = bits_per_trial / 2
    return [
        d / (sigma * math.sqrt(i))
        for i, d in enumerate(calculate_cumulative_deviation(values, expected_mean), 1)
    ]


@dataclass(frozen=True)
class Excursion:
    """A stretch where the cumulative z stays beyond the threshold on one side."""

    start_index: int
    end_index: int
    max_deviation: float  # signed peak z
    significance: float  # one-tailed p of the peak

    @property
    def length(self) -> int:
        return self.end_index - self.start_index + 1


def detect_excursions(
    values: Sequence[float],
    bits_per_trial: int,
    threshold: float = EXCURSION_THRESHOLD,
    min_duration: int = EXCURSION_MIN_DURATION,
) -> List[Excursion]:
    """Find excursions of the cumulative-deviation z-score.

    An excursion opens when ``|z| > threshold`` and closes at the last point
    before z changes sign or falls back below the threshold; one still open
    at the end of the series closes at the last point. Only excursions of at
    least `min_duration` points are reported.

    >>> [e.length for e in detect_excursions([111] * 5 + [100] * 20, 200, min_duration=5)]
    [14]
    """
    found: List[Excursion] = []
    zs = cumulative_z_scores(values, bits_per_trial)
    start: Optional[int] = None
    sign = 0.0
    peak = 0.0

    def close(end: int) -> None:
        if end - start + 1 >= min_duration:
            found.append(
                Excursion(
                    start_index=start,
                    end_index=end,
                    max_deviation=math.copysign(peak, sign),
                    significance=normal_one_tailed_p(peak),
                )
            )

    for i, z in enumerate(zs):
        if start is not None:
            if math.copysign(1.0, z) != sign or abs(z) < threshold:
                close(i - 1)
                start = None
            else:
                peak = max(peak, abs(z))
        if start is None and abs(z) > threshold:
            start, sign, peak = i, math.copysign(1.0, z), abs(z)
    if start is not None:
        close(len(zs) - 1)
    return found


class CumulativeDeviationTracker:
    """Maintains the cumulative-deviation series incrementally.

    >>> t = CumulativeDeviationTracker(expected_mean=4.0)
    >>> [t.push(v) for v in (5, 3, 6)]
    [1.0, 0.0, 2.0]
    >>> t.series
    (1.0, 0.0, 2.0)
    """

    def __init__(self, expected_mean: float) -> None:
        self.expected_mean = expected_mean
        self._series: List[float] = []
        self._last = 0.0

    def push(self, value: float) -> float:
        self._last += value - self.expected_mean
        self._series.append(self._last)
        return self._last

    @property
    def last(self) -> float:
        return self._last

    @property
    def series(self) -> Tuple[float, ...]:
        return tuple(self._series)

    def __len__(self) -> int:
        return len(self._series)


@dataclass(frozen=True)
class NetworkVariance:
    network_variance: float
    stouffer_z: float
    expected_variance: float


def calculate_network_variance(
    values: Sequence[float], bits_per_trial: int
) -> NetworkVariance:
    """Variance ratio and variance z for a single source.

    With only one node the Stouffer combination of per-node z-scores is the
    node's own variance z, ``(s2 - sigma2) / sqrt(2 sigma2^2 / n)``.
    """
    expected_variance = bits_per_trial / 4
    n = len(values)
    if n == 0:
        return NetworkVariance(0.0, 0.0, 0.0)
    observed = basic_stats(values).variance
    variance_z = (observed - expected_variance) / math.sqrt(
        2.0 * expected_variance * expected_variance / n
    )
    return NetworkVariance(
        network_variance=observed / expected_variance,
        stouffer_z=variance_z,
        expected_variance=expected_variance,
    )


def calculate_statistical_result(
    trials: Sequence[Trial], bits_per_trial: int
) -> StatisticalResult:
    """Summarize `trials` into a `StatisticalResult`.

    An empty input gives a neutral result: zero counts, p = 1 and a data range
    collapsed onto the calculation time.
    """
    now = datetime.now(timezone.utc)
    expected_mean = bits_per_trial / 2
    if not trials:
        return StatisticalResult(
            trial_count=0,
            mean=0.0,
            expected_mean=expected_mean,
            variance=0.0,
            standard_deviation=0.0,
            z_score=0.0,
            p_value=1.0,
            cumulative_deviation=(),
            calculated_at=now,
            data_range=DataRange(start=now, end=now),
        )

    values = [t.value for t in trials]
    stats = basic_stats(values)
    z = calculate_z_score(values, bits_per_trial)
    nv = calculate_network_variance(values, bits_per_trial)
    stamps = [t.timestamp for t in trials]
    return StatisticalResult(
        trial_count=stats.count,
        mean=stats.mean,
        expected_mean=expected_mean,
        variance=stats.variance,
        standard_deviation=stats.standard_deviation,
        z_score=z,
        p_value=calculate_p_value(z),
        cumulative_deviation=tuple(
            calculate_cumulative_deviation(values, expected_mean)
        ),
        network_variance=nv.network_variance,
        stouffer_z=nv.stouffer_z,
        calculated_at=now,
        data_range=DataRange(start=min(stamps), end=max(stamps)),
    )
