import dataclasses
from datetime import timedelta

from conftest import SESSION_ID, T0, make_trials, new_session_id, random_values
from rngsight.core.models import ExperimentSession
from rngsight.core.names import Intention, SessionStatus
from rngsight.stats.schemes.trials.core import calculate_statistical_result
from rngsight.validation import (
    is_uuid,
    validate_all,
    validate_data_integrity,
    validate_session,
    validate_session_coherence,
    validate_statistical_result,
    validate_timing_consistency,
    validate_trial,
)


def _session(**overrides):
    fields = dict(
        id=SESSION_ID,
        start_time=T0 - timedelta(seconds=1),
        intention=Intention.HIGH,
        target_trials=10,
    )
    fields.update(overrides)
    return ExperimentSession(**fields)


def test_is_uuid():
    assert is_uuid(SESSION_ID)
    assert is_uuid(new_session_id())
    assert not is_uuid("not-a-uuid")
    assert not is_uuid(None)


def test_valid_trial_passes():
    (trial,) = make_trials([100])
    result = validate_trial(trial, 200, now=T0)
    assert result.is_valid
    assert result.errors == () and result.warnings == ()
    assert result.validation_type == "trial"


def test_trial_errors_accumulate():
    (trial,) = make_trials([100])
    bad = dataclasses.replace(
        trial, value=201, session_id="abc", mode="sometimes", intention="up", trial_number=0
    )
    result = validate_trial(bad, 200, now=T0)
    assert not result.is_valid
    assert len(result.errors) == 5
    assert "Trial value 201 is outside valid range (0-200)" in result.errors
    assert "Session ID is not a valid UUID" in result.errors


def test_trial_timestamp_warnings():
    (trial,) = make_trials([100])
    future = validate_trial(trial, 200, now=T0 - timedelta(seconds=5))
    assert future.is_valid and future.warnings == ("Trial timestamp is in the future",)
    old = validate_trial(trial, 200, now=T0 + timedelta(days=400))
    assert old.is_valid and old.warnings == ("Trial timestamp is more than 1 year old",)


def test_non_integer_value_is_an_error():
    (trial,) = make_trials([100])
    assert not validate_trial(dataclasses.replace(trial, value=100.5), 200, now=T0).is_valid
    assert not validate_trial(dataclasses.replace(trial, value=True), 200, now=T0).is_valid


def test_session_validation():
    assert validate_session(_session()).is_valid
    bad = _session(
        id="x",
        end_time=T0 - timedelta(days=1),
        target_trials=0,
        duration_ms=-5,
    )
    result = validate_session(bad)
    assert not result.is_valid
    assert len(result.errors) == 4
    long_run = validate_session(_session(target_trials=100_000, duration_ms=90_000_000, participant_id=""))
    assert long_run.is_valid
    assert len(long_run.warnings) == 3


def test_statistical_result_validation():
    good = calculate_statistical_result(make_trials(random_values(50)), 200)
    assert validate_statistical_result(good, 200).is_valid

    broken = dataclasses.replace(
        good,
        p_value=1.5,
        standard_deviation=good.standard_deviation + 1,
        cumulative_deviation=good.cumulative_deviation[:-1],
        expected_mean=50.0,
    )
    result = validate_statistical_result(broken, 200)
    assert not result.is_valid
    assert len(result.errors) == 4


def test_statistical_result_large_z_warning():
    shifted = calculate_statistical_result(make_trials([120] * 20), 200)
    result = validate_statistical_result(shifted, 200)
    assert result.is_valid
    assert "Z-score is unusually large for sample size" in result.warnings


def test_timing_consistency_regular_stream():
    result = validate_timing_consistency(make_trials([100] * 20), 1000, 100)
    assert result.is_valid and result.warnings == ()


def test_timing_consistency_needs_two_trials():
    result = validate_timing_consistency(make_trials([100]))
    assert result.is_valid and len(result.warnings) == 1


def test_timing_consistency_detects_disorder_and_duplicates():
    trials = make_trials([100] * 5)
    swapped = [trials[0], trials[2], trials[1], trials[3], trials[3]]
    result = validate_timing_consistency(swapped, 1000, 100)
    assert not result.is_valid
    assert any("out of chronological order" in e for e in result.errors)
    assert any("Duplicate timestamp" in e for e in result.errors)
    assert any("High timing error rate" in e for e in result.errors)


def test_timing_consistency_small_drift_is_a_warning():
    trials = make_trials([100] * 21, interval_ms=1000)
    trials[10] = dataclasses.replace(trials[10], timestamp=trials[10].timestamp + timedelta(milliseconds=300))
    result = validate_timing_consistency(trials, 1000, 100)
    assert result.is_valid
    assert sum("Timing error at trial" in w for w in result.warnings) == 2
    assert any("Elevated timing error rate" in w for w in result.warnings)


def test_session_coherence():
    session = _session(status=SessionStatus.COMPLETED, end_time=T0 + timedelta(hours=1))
    trials = make_trials([100] * 10, intention=Intention.HIGH)
    assert validate_session_coherence(session, trials).is_valid

    stray = make_trials([100], session_id=new_session_id())
    gap = trials[:4] + trials[5:]
    result = validate_session_coherence(session, gap + stray)
    assert not result.is_valid
    assert any("do not belong" in e for e in result.errors)
    assert any("numbering gap" in e for e in result.errors)
    assert any("target was 10" in w for w in result.warnings)


def test_session_coherence_time_bounds_and_intention():
    session = _session(start_time=T0 + timedelta(seconds=2), end_time=T0 + timedelta(seconds=3))
    trials = make_trials([100] * 5, intention=Intention.LOW)
    result = validate_session_coherence(session, trials)
    assert any("before session start" in e for e in result.errors)
    assert any("after session end" in e for e in result.errors)
    assert any("different intention" in w for w in result.warnings)


def test_data_integrity_identical_values():
    result = validate_data_integrity(make_trials([100] * 20))
    assert result.errors == ("All trials have identical values - this is statistically impossible",)


def test_data_integrity_alternation_and_duplicates():
    trials = make_trials([90, 110] * 10)
    result = validate_data_integrity(trials + trials[:2])
    assert any("alternating" in e for e in result.errors)
    assert "Found 2 duplicate trials" in result.errors


def test_data_integrity_clustering():
    clustered = validate_data_integrity(make_trials([99, 100, 101, 102] * 30))
    assert clustered.is_valid
    assert any("clustered" in w for w in clustered.warnings)
    dispersed = validate_data_integrity(make_trials([80, 120, 81, 119] * 30))
    assert any("dispersed" in w for w in dispersed.warnings)


def test_data_integrity_random_stream():
    result = validate_data_integrity(make_trials(random_values(500)))
    assert result.is_valid


def test_validate_all_prefixes_sources():
    trials = make_trials([100, 300])
    result = validate_all(sessions=[_session(id="bad")], trials=trials, bits_per_trial=200)
    assert not result.is_valid
    assert result.validation_type == "comprehensive"
    assert any(e.startswith("Session 1:") for e in result.errors)
    assert any(e.startswith("Trial 2:") for e in result.errors)


def test_validate_all_empty_is_valid():
    assert validate_all().is_valid
