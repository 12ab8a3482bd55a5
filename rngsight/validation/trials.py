"""
rngsight.validation.trials
==========================

Validators for trials, sessions, statistics and trial sequences.

Every validator is a pure function returning a `ValidationResult`: `errors`
block acceptance, `warnings` are informational. Nothing here raises on bad
data and nothing mutates its input.

Examples
--------
>>> from datetime import datetime, timezone
>>> from rngsight.core.models import Trial
>>> from rngsight.core.names import ExperimentMode, Intention
>>> from rngsight.validation.trials import validate_trial
>>> t = Trial(timestamp=datetime.now(timezone.utc), value=250,
...           session_id="3f1c2d4e-5a6b-4c7d-8e9f-0a1b2c3d4e5f",
...           mode=ExperimentMode.CONTINUOUS, intention=Intention.NONE, trial_number=1)
>>> r = validate_trial(t, bits_per_trial=200)
>>> r.is_valid, r.errors
(False, ('Trial value 250 is outside valid range (0-200)',))
"""

from __future__ import annotations
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from rngsight.core.models import (
    ExperimentSession,
    StatisticalResult,
    Trial,
    ValidationResult,
)
from rngsight.core.names import ExperimentMode, Intention, SessionStatus

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

FUTURE_TOLERANCE = timedelta(seconds=1)
MAX_TRIAL_AGE = timedelta(days=365)
MAX_TARGET_TRIALS = 86_400  # one day at one trial per second
MAX_SESSION_DURATION_MS = 86_400_000


def _result(
    errors: Iterable[str], warnings: Iterable[str], validation_type: str
) -> ValidationResult:
    errors = tuple(errors)
    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=tuple(warnings),
        validated_at=datetime.now(timezone.utc),
        validation_type=validation_type,
    )


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def _in_enum(value: object, enum: type) -> bool:
    try:
        enum(value)
    except ValueError:
        return False
    return True


def is_uuid(value: object) -> bool:
    return isinstance(value, str) and UUID_PATTERN.match(value) is not None


def validate_trial(
    trial: Trial, bits_per_trial: int = 200, now: Optional[datetime] = None
) -> ValidationResult:
    """Check one trial's value range, timestamp, identifiers and enumerations.

    A timestamp more than a second in the future, or more than a year old, is
    a warning.
    """
    errors: List[str] = []
    warnings: List[str] = []

    value = trial.value
    if isinstance(value, bool) or not isinstance(value, int):
        errors.append(f"Trial value {value!r} must be an integer")
    elif not 0 <= value <= bits_per_trial:
        errors.append(f"Trial value {value} is outside valid range (0-{bits_per_trial})")

    if not isinstance(trial.timestamp, datetime):
        errors.append("Invalid timestamp")
    else:
        now = _aware(now or datetime.now(timezone.utc))
        ts = _aware(trial.timestamp)
        if ts - now > FUTURE_TOLERANCE:
            warnings.append("Trial timestamp is in the future")
        if now - ts > MAX_TRIAL_AGE:
            warnings.append("Trial timestamp is more than 1 year old")

    if not is_uuid(trial.session_id):
        errors.append("Session ID is not a valid UUID")
    if not _in_enum(trial.mode, ExperimentMode):
        errors.append(f"Invalid experiment mode: {trial.mode}")
    if not _in_enum(trial.intention, Intention):
        errors.append(f"Invalid intention type: {trial.intention}")

    number = trial.trial_number
    if isinstance(number, bool) or not isinstance(number, int) or number < 1:
        errors.append(f"Trial number must be a positive integer, got: {number}")

    return _result(errors, warnings, "trial")


def validate_session(session: ExperimentSession) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []

    if not is_uuid(session.id):
        errors.append("Session ID is not a valid UUID")
    if session.end_time is not None and _aware(session.end_time) < _aware(session.start_time):
        errors.append("End time must be after start time")
    if not _in_enum(session.intention, Intention):
        errors.append(f"Invalid intention type: {session.intention}")

    target = session.target_trials
    if isinstance(target, bool) or not isinstance(target, int) or target < 1:
        errors.append(f"Target trials must be a positive integer, got: {target}")
    elif target > MAX_TARGET_TRIALS:
        warnings.append("Target trials exceeds 24 hours of continuous operation")

    if not _in_enum(session.status, SessionStatus):
        errors.append(f"Invalid session status: {session.status}")

    if session.duration_ms is not None:
        if session.duration_ms < 0:
            errors.append("Session duration cannot be negative")
        elif session.duration_ms > MAX_SESSION_DURATION_MS:
            warnings.append("Session duration exceeds 24 hours")

    if session.participant_id is not None and not session.participant_id:
        warnings.append("Participant ID is empty")

    return _result(errors, warnings, "session")


def validate_statistical_result(
    result: StatisticalResult, bits_per_trial: int = 200
) -> ValidationResult:
    """Range and consistency checks on a `StatisticalResult`."""
    errors: List[str] = []
    warnings: List[str] = []
    expected_mean = bits_per_trial / 2

    if result.trial_count < 0:
        errors.append(f"Trial count must be a non-negative integer, got: {result.trial_count}")
    if not 0 <= result.mean <= bits_per_trial:
        errors.append(f"Mean {result.mean} is outside valid range (0-{bits_per_trial})")
    if result.expected_mean != expected_mean:
        errors.append(
            f"Expected mean should be {expected_mean:g} for {bits_per_trial}-bit trials, "
            f"got: {result.expected_mean}"
        )
    if result.variance < 0:
        errors.append(f"Variance cannot be negative, got: {result.variance}")
    if result.standard_deviation < 0:
        errors.append(f"Standard deviation cannot be negative, got: {result.standard_deviation}")
    elif result.variance >= 0 and not math.isclose(
        result.standard_deviation, math.sqrt(result.variance), rel_tol=1e-9, abs_tol=1e-9
    ):
        errors.append("Standard deviation should equal square root of variance")
    if not 0 <= result.p_value <= 1:
        errors.append(f"P-value must be between 0 and 1, got: {result.p_value}")
    if not math.isfinite(result.z_score):
        errors.append("Z-score must be finite")
    if len(result.cumulative_deviation) != result.trial_count:
        errors.append(
            f"Cumulative deviation array length ({len(result.cumulative_deviation)}) "
            f"does not match trial count ({result.trial_count})"
        )
    if result.network_variance is not None and result.network_variance < 0:
        errors.append("Network variance cannot be negative")
    if result.stouffer_z is not None and not math.isfinite(result.stouffer_z):
        errors.append("Stouffer Z must be finite")
    if result.data_range.end < result.data_range.start:
        errors.append("Data range end time must be after start time")

    if result.trial_count > 0:
        if result.trial_count > 1000 and abs(result.mean - result.expected_mean) > 5:
            warnings.append("Large sample mean deviates significantly from expected mean")
        if result.trial_count > 1:
            max_expected_z = 3 * math.sqrt(math.log(result.trial_count))
            if math.isfinite(result.z_score) and abs(result.z_score) > max_expected_z:
                warnings.append("Z-score is unusually large for sample size")

    return _result(errors, warnings, "statistics")


def validate_timing_consistency(
    trials: Sequence[Trial],
    expected_interval_ms: float = 1000.0,
    tolerance_ms: float = 100.0,
) -> ValidationResult:
    """Check spacing between consecutive trials, in the order given.

    Deviations beyond `tolerance_ms` are warnings, beyond one second errors.
    Duplicate and out-of-order timestamps are errors. More than 10 % of
    intervals off tolerance is an error, more than 5 % a warning, and an
    average deviation above 50 ms a warning.
    """
    if len(trials) < 2:
        return _result([], ["Need at least 2 trials for timing validation"], "timing")

    errors: List[str] = []
    warnings: List[str] = []
    significant = 0
    total_error = 0.0

    for previous, current in zip(trials, trials[1:]):
        interval = (_aware(current.timestamp) - _aware(previous.timestamp)).total_seconds() * 1000.0
        error = abs(interval - expected_interval_ms)
        total_error += error

        if interval == 0:
            errors.append(f"Duplicate timestamp at trial {current.trial_number}")
        elif interval < 0:
            errors.append(f"Trials out of chronological order at trial {current.trial_number}")

        if error > tolerance_ms:
            significant += 1
            if error > 1000:
                errors.append(
                    f"Significant timing error at trial {current.trial_number}: {error:.1f}ms deviation"
                )
            else:
                warnings.append(
                    f"Timing error at trial {current.trial_number}: {error:.1f}ms deviation"
                )

    intervals = len(trials) - 1
    error_rate = significant / intervals
    average_error = total_error / intervals
    if error_rate > 0.1:
        errors.append(f"High timing error rate: {error_rate * 100:.1f}%")
    elif error_rate > 0.05:
        warnings.append(f"Elevated timing error rate: {error_rate * 100:.1f}%")
    if average_error > 50:
        warnings.append(f"High average timing error: {average_error:.1f}ms")

    return _result(errors, warnings, "timing")


def validate_session_coherence(
    session: ExperimentSession, trials: Sequence[Trial]
) -> ValidationResult:
    """Check that `trials` belong to `session` and are numbered 1..n."""
    errors: List[str] = []
    warnings: List[str] = []

    orphans = [t for t in trials if t.session_id != session.id]
    if orphans:
        errors.append(f"{len(orphans)} trials do not belong to session {session.id}")

    own = [t for t in trials if t.session_id == session.id]
    if session.status == SessionStatus.COMPLETED and len(own) != session.target_trials:
        warnings.append(
            f"Completed session has {len(own)} trials but target was {session.target_trials}"
        )

    for position, number in enumerate(sorted(t.trial_number for t in own), start=1):
        if number != position:
            errors.append(f"Trial numbering gap or duplicate at position {position}")
            break

    if own:
        stamps = [_aware(t.timestamp) for t in own]
        if min(stamps) < _aware(session.start_time):
            errors.append("Some trials have timestamps before session start time")
        if session.end_time is not None and max(stamps) > _aware(session.end_time):
            errors.append("Some trials have timestamps after session end time")

    mismatched = [t for t in own if t.intention != session.intention]
    if mismatched:
        warnings.append(f"{len(mismatched)} trials have different intention than session")

    return _result(errors, warnings, "session")


def validate_data_integrity(
    trials: Sequence[Trial], bits_per_trial: int = 200
) -> ValidationResult:
    """Cross-session integrity: duplicates, degenerate sequences, clustering.

    Identical and perfectly alternating sequences (more than 10 trials) are
    errors. With more than 100 trials, the share of values within one
    expected standard deviation of the mean is checked: above 0.8 or below
    0.5 is a warning.
    """
    if not trials:
        return _result([], ["No trials to validate"], "integrity")

    errors: List[str] = []
    warnings: List[str] = []

    seen: set[Tuple[str, int, datetime]] = set()
    duplicates = 0
    for t in trials:
        key = (t.session_id, t.trial_number, _aware(t.timestamp))
        if key in seen:
            duplicates += 1
        else:
            seen.add(key)
    if duplicates:
        errors.append(f"Found {duplicates} duplicate trials")

    values = [t.value for t in trials]
    identical = len(set(values)) == 1
    if identical and len(values) > 10:
        errors.append("All trials have identical values - this is statistically impossible")

    if len(values) > 10 and not identical:
        head = values[: min(20, len(values))]
        if all(head[i] == head[i - 2] for i in range(2, len(head))):
            errors.append(
                "Detected perfect alternating pattern - this suggests non-random generation"
            )

    if len(values) > 100:
        m = sum(values) / len(values)
        sigma = math.sqrt(bits_per_trial / 4)
        ratio = sum(1 for v in values if abs(v - m) <= sigma) / len(values)
        if ratio > 0.8:
            warnings.append("Values are clustered more tightly than expected for random data")
        elif ratio < 0.5:
            warnings.append("Values are more dispersed than expected for random data")

    return _result(errors, warnings, "integrity")


def validate_all(
    *,
    sessions: Sequence[ExperimentSession] = (),
    trials: Sequence[Trial] = (),
    statistics: Sequence[StatisticalResult] = (),
    bits_per_trial: int = 200,
    expected_interval_ms: float = 1000.0,
    tolerance_ms: float = 100.0,
) -> ValidationResult:
    """Run every validator and merge the findings with a prefix per source."""
    errors: List[str] = []
    warnings: List[str] = []

    def merge(prefix: str, result: ValidationResult) -> None:
        if result.errors:
            errors.append(f"{prefix}: {', '.join(result.errors)}")
        warnings.extend(f"{prefix}: {w}" for w in result.warnings)

    for i, session in enumerate(sessions, start=1):
        merge(f"Session {i}", validate_session(session))
    for i, trial in enumerate(trials, start=1):
        merge(f"Trial {i}", validate_trial(trial, bits_per_trial))
    for i, result in enumerate(statistics, start=1):
        merge(f"Statistics {i}", validate_statistical_result(result, bits_per_trial))
    if trials:
        merge("Data integrity", validate_data_integrity(trials, bits_per_trial))
        merge(
            "Timing",
            validate_timing_consistency(trials, expected_interval_ms, tolerance_ms),
        )

    return _result(errors, warnings, "comprehensive")
