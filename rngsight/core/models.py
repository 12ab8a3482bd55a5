"""
rngsight.core.models
====================

Immutable records exchanged between the engine, the statistics functions and
the validation layer.

- `Trial`: one integer observation plus its context.
- `StatisticalResult` / `DataRange`: a summary of a trial stream.
- `TimingMetrics`, `MemoryUsage`, `EngineStatus`: runtime snapshots.
- `QualityMetrics`, `CalibrationResult`: outcome of a baseline calibration.
- `ExperimentSession`: a bounded collection window.
- `ValidationResult`: errors and warnings found by a validator.

Payload contracts (`TrialPayload`, ...) are the JSON-safe dictionaries written
to a ledger.

Examples
--------
>>> from datetime import datetime, timezone
>>> from rngsight.core.models import Trial
>>> from rngsight.core.names import ExperimentMode, Intention
>>> t = Trial(timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc), value=101,
...           session_id="3f1c2d4e-5a6b-4c7d-8e9f-0a1b2c3d4e5f",
...           mode=ExperimentMode.CONTINUOUS, intention=Intention.NONE, trial_number=1)
>>> t.to_payload()["value"]
101
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple, TypedDict

from rngsight.core.names import (
    ExperimentMode,
    Intention,
    QualityRating,
    SessionStatus,
)


class TrialPayload(TypedDict):
    timestamp: str
    value: int
    session_id: str
    mode: str
    intention: str
    trial_number: int


class StatisticsPayload(TypedDict):
    trial_count: int
    mean: float
    expected_mean: float
    variance: float
    z_score: float
    p_value: float
    last_cumulative_deviation: float


class CalibrationPayload(TypedDict):
    id: str
    trial_count: int
    passed: bool
    quality: str
    issues: List[str]
    mean: float
    z_score: float
    p_value: float


@dataclass(frozen=True)
class Trial:
    """One observation: the count of set bits in a fixed-size random draw."""

    timestamp: datetime
    value: int
    session_id: str
    mode: ExperimentMode
    intention: Intention
    trial_number: int

    def to_payload(self) -> TrialPayload:
        return {
            "timestamp": self.timestamp.isoformat(),
            "value": int(self.value),
            "session_id": self.session_id,
            "mode": ExperimentMode(self.mode).value,
            "intention": Intention(self.intention).value,
            "trial_number": int(self.trial_number),
        }


@dataclass(frozen=True)
class DataRange:
    start: datetime
    end: datetime


@dataclass(frozen=True, kw_only=True)
class StatisticalResult:
    """Summary of a trial stream.

    `cumulative_deviation` has one entry per trial; `standard_deviation` is the
    square root of `variance`; `p_value` lies in [0, 1].
    """

    trial_count: int
    mean: float
    expected_mean: float
    variance: float
    standard_deviation: float
    z_score: float
    p_value: float
    cumulative_deviation: Tuple[float, ...]
    calculated_at: datetime
    data_range: DataRange
    network_variance: Optional[float] = None
    stouffer_z: Optional[float] = None

    def to_payload(self) -> StatisticsPayload:
        return {
            "trial_count": self.trial_count,
            "mean": self.mean,
            "expected_mean": self.expected_mean,
            "variance": self.variance,
            "z_score": self.z_score,
            "p_value": self.p_value,
            "last_cumulative_deviation": (
                self.cumulative_deviation[-1] if self.cumulative_deviation else 0.0
            ),
        }


@dataclass(frozen=True)
class TimingMetrics:
    """Scheduler timing quality, in milliseconds.

    `late_ticks` counts ticks whose absolute error exceeded the scheduler's
    tolerance; `missed_intervals` counts ticks later than half an interval.
    """

    average_error: float = 0.0
    max_error: float = 0.0
    missed_intervals: int = 0
    interval_count: int = 0
    late_ticks: int = 0


@dataclass(frozen=True)
class MemoryUsage:
    buffered_trials: int = 0
    recent_trials: int = 0
    current_mb: float = 0.0
    peak_mb: float = 0.0


@dataclass(frozen=True, kw_only=True)
class EngineStatus:
    is_running: bool
    current_rate: float
    target_rate: float
    total_trials: int
    last_trial_time: Optional[datetime]
    start_time: Optional[datetime]
    timing_metrics: TimingMetrics
    memory_usage: MemoryUsage


@dataclass(frozen=True)
class QualityMetrics:
    chi_square: float
    runs_observed: int
    autocorrelation: float
    quality: QualityRating


@dataclass(frozen=True, kw_only=True)
class CalibrationResult:
    """Outcome of a baseline calibration run."""

    id: str
    start_time: datetime
    end_time: datetime
    trial_count: int
    statistics: StatisticalResult
    quality_metrics: QualityMetrics
    passed: bool
    issues: Tuple[str, ...] = ()

    def to_payload(self) -> CalibrationPayload:
        return {
            "id": self.id,
            "trial_count": self.trial_count,
            "passed": self.passed,
            "quality": QualityRating(self.quality_metrics.quality).value,
            "issues": list(self.issues),
            "mean": self.statistics.mean,
            "z_score": self.statistics.z_score,
            "p_value": self.statistics.p_value,
        }


@dataclass(frozen=True, kw_only=True)
class ExperimentSession:
    """A bounded collection window with a declared intention."""

    id: str
    start_time: datetime
    intention: Intention
    target_trials: int
    status: SessionStatus = SessionStatus.RUNNING
    end_time: Optional[datetime] = None
    notes: Optional[str] = None
    participant_id: Optional[str] = None
    duration_ms: Optional[float] = None


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: Tuple[str, ...]
    warnings: Tuple[str, ...]
    validated_at: datetime
    validation_type: str = field(default="")
