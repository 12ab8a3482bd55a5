"""
Statistics for streams of bit-count trials.

- `core`: `StatisticalResult`, cumulative deviation and its excursions,
  network variance
- `baseline`: the calibration quality battery
- `realtime`: moving windows, significance, trends and anomalies

Example Usage
-------------
>>> from rngsight.stats.schemes.trials import run_baseline_test
>>> report = run_baseline_test([100, 101, 99, 102, 98] * 20, bits_per_trial=200)
>>> report.quality.value in {"excellent", "good", "fair", "poor"}
True
"""

from rngsight.stats.schemes.trials.baseline import BaselineReport, run_baseline_test
from rngsight.stats.schemes.trials.core import (
    CumulativeDeviationTracker,
    Excursion,
    NetworkVariance,
    calculate_cumulative_deviation,
    calculate_network_variance,
    calculate_statistical_result,
    cumulative_z_scores,
    detect_excursions,
)
from rngsight.stats.schemes.trials.realtime import (
    current_significance,
    detect_anomalies,
    detect_trend,
    moving_statistics,
)

__all__ = [
    "BaselineReport",
    "run_baseline_test",
    "CumulativeDeviationTracker",
    "Excursion",
    "cumulative_z_scores",
    "detect_excursions",
    "NetworkVariance",
    "calculate_cumulative_deviation",
    "calculate_network_variance",
    "calculate_statistical_result",
    "current_significance",
    "detect_anomalies",
    "detect_trend",
    "moving_statistics",
]
