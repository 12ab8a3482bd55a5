"""
rngsight.stats.schemes.trials.baseline
======================================

Baseline quality report: the battery run after every calibration.

Three randomness tests (chi-square goodness-of-fit, runs, lag-1
autocorrelation) plus a mean-deviation check are combined into a pass/fail
verdict and a `QualityRating`:

- excellent: all three tests pass and ``|mean - bits/2| < 1``
- good: at least two pass and ``|mean - bits/2| < 2``
- fair: at least one passes
- poor: none pass

The report passes only when no issue was raised.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from rngsight.core.models import QualityMetrics
from rngsight.core.names import ChiSquareReference, QualityRating
from rngsight.stats.common.descriptive import mean
from rngsight.stats.common.inference import (
    AutocorrelationResult,
    ChiSquareResult,
    RunsResult,
    autocorrelation,
    chi_square_test,
    runs_test,
)

MEAN_DEVIATION_LIMIT = 2.0


@dataclass(frozen=True)
class BaselineReport:
    passed: bool
    issues: Tuple[str, ...]
    chi_square: ChiSquareResult
    runs: RunsResult
    autocorrelation: AutocorrelationResult
    mean_deviation: float
    quality: QualityRating

    def quality_metrics(self) -> QualityMetrics:
        return QualityMetrics(
            chi_square=self.chi_square.chi_square,
            runs_observed=self.runs.runs_observed,
            autocorrelation=self.autocorrelation.coefficient,
            quality=self.quality,
        )


def rate_quality(tests_passed: int, mean_deviation: float) -> QualityRating:
    if tests_passed == 3 and mean_deviation < 1.0:
        return QualityRating.EXCELLENT
    if tests_passed >= 2 and mean_deviation < 2.0:
        return QualityRating.GOOD
    if tests_passed >= 1:
        return QualityRating.FAIR
    return QualityRating.POOR


def run_baseline_test(
    values: Sequence[float],
    bits_per_trial: int,
    chi_square_reference: ChiSquareReference = "uniform",
) -> BaselineReport:
    """Run the baseline battery over trial values.

    Args:
        values: Trial values.
        bits_per_trial: Bits counted per trial (value range and expectation).
        chi_square_reference: Expected frequencies for the goodness-of-fit test.
    """
    issues: List[str] = []
    chi = chi_square_test(values, bits_per_trial, reference=chi_square_reference)
    runs = runs_test(values)
    ac = autocorrelation(values, lag=1)

    if not chi.passed:
        issues.append(
            f"Chi-square test failed (chi2={chi.chi_square:.2f}, p={chi.p_value:.4f}) "
            "- value distribution does not match the reference"
        )
    if not runs.is_random:
        issues.append(
            f"Runs test failed (z={runs.z_score:.2f}, p={runs.p_value:.4f}) "
            "- data may show sequential patterns"
        )
    if ac.is_significant:
        issues.append(
            f"Significant autocorrelation detected (r={ac.coefficient:.4f}) "
            "- trials may not be independent"
        )

    expected = bits_per_trial / 2
    observed_mean = mean(values)
    deviation = abs(observed_mean - expected) if values else 0.0
    if deviation > MEAN_DEVIATION_LIMIT:
        issues.append(
            f"Mean significantly deviates from expected ({observed_mean:.2f} vs {expected:g})"
        )

    passed_tests = sum([chi.passed, runs.is_random, not ac.is_significant])
    return BaselineReport(
        passed=not issues,
        issues=tuple(issues),
        chi_square=chi,
        runs=runs,
        autocorrelation=ac,
        mean_deviation=deviation,
        quality=rate_quality(passed_tests, deviation),
    )
