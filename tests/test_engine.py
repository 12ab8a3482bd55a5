import threading
import time

import pytest

from conftest import FakeClock, FixedSource, SeededSource, new_session_id
from rngsight.backends.polars.ledger import PolarsLedger
from rngsight.config import EngineConfiguration
from rngsight.core.errors import (
    ConfigurationError,
    EngineDestroyedError,
    RandomSourceError,
    TrialValidationError,
)
from rngsight.core.models import ValidationResult
from rngsight.core.names import ExperimentMode, Intention, Namespace
from rngsight.runtime import engine as engine_module
from rngsight.runtime.engine import TrialEngine
from rngsight.validation import is_uuid, validate_statistical_result

FAST = {"target_rate": 200, "calibration_pause_ms": 0}


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


class FlakySource:
    """Works for `good` fills, then fails."""

    def __init__(self, good):
        self.good = good
        self._inner = FixedSource([0x0F])

    def fill(self, buffer):
        if self.good <= 0:
            raise OSError("device gone")
        self.good -= 1
        self._inner.fill(buffer)


class ExplodingSink:
    def __init__(self):
        self.calls = 0

    def record_trial(self, trial):
        self.calls += 1
        raise IOError("disk full")

    def record_calibration(self, result):
        raise IOError("disk full")

    def record_statistics(self, session_id, result):
        raise IOError("disk full")


@pytest.fixture
def engine():
    eng = TrialEngine(FAST, source=SeededSource())
    yield eng
    eng.destroy()


def collect(eng, n):
    """Start collecting trials; returns (trials list, event set after n trials)."""
    trials = []
    done = threading.Event()

    def on_trial(trial):
        trials.append(trial)
        if len(trials) >= n:
            done.set()

    eng.on_trial(on_trial)
    return trials, done


def test_generate_trial_numbers_within_lazy_session():
    eng = TrialEngine(source=FixedSource([0x0F]))
    first = eng.generate_trial()
    second = eng.generate_trial()
    assert first.value == 100
    assert is_uuid(first.session_id)
    assert second.session_id == first.session_id
    assert (first.trial_number, second.trial_number) == (1, 2)
    assert first.mode is ExperimentMode.CONTINUOUS
    assert first.intention is Intention.NONE
    assert eng.get_status().total_trials == 2
    eng.destroy()


def test_config_mapping_is_validated():
    with pytest.raises(ConfigurationError):
        TrialEngine({"target_rate": 0})
    with pytest.raises(ConfigurationError):
        TrialEngine({"unknown": 1})
    cfg = EngineConfiguration(bits_per_trial=8)
    eng = TrialEngine(cfg, source=FixedSource([0xFF]))
    assert eng.get_config() is cfg
    assert eng.generate_trial().value == 8
    eng.destroy()


def test_source_failure_surfaces():
    eng = TrialEngine(source=FlakySource(good=0))
    with pytest.raises(RandomSourceError):
        eng.generate_trial()
    assert eng.get_status().total_trials == 0
    eng.destroy()


def test_invalid_trial_is_not_counted(monkeypatch, engine):
    def reject(trial, bits_per_trial=200, now=None):
        return ValidationResult(False, ("rejected",), (), trial.timestamp, "trial")

    monkeypatch.setattr(engine_module, "validate_trial", reject)
    with pytest.raises(TrialValidationError) as info:
        engine.generate_trial()
    assert info.value.errors == ("rejected",)
    monkeypatch.undo()
    assert engine.generate_trial().trial_number == 1


def test_continuous_generation(engine):
    session = new_session_id()
    trials, done = collect(engine, 5)
    engine.start_continuous(session, ExperimentMode.SESSION, "high")
    assert engine.is_running()
    assert done.wait(5.0)
    engine.stop_continuous()
    assert not engine.is_running()

    settled = len(trials)
    time.sleep(0.05)
    assert len(trials) == settled

    assert [t.trial_number for t in trials] == list(range(1, settled + 1))
    assert {t.session_id for t in trials} == {session}
    assert all(t.intention is Intention.HIGH and t.mode is ExperimentMode.SESSION for t in trials)
    assert engine.get_buffered_trials() == tuple(trials)
    assert engine.get_recent_trials(2) == tuple(trials[-2:])
    assert engine.get_recent_trials(0) == ()


def test_start_rejects_bad_session_id(engine):
    with pytest.raises(ValueError):
        engine.start_continuous("session-1")
    with pytest.raises(ValueError):
        engine.start_continuous(new_session_id(), intention="sideways")
    assert not engine.is_running()


def test_status_reports_progress(engine):
    statuses = []
    engine.on_status(statuses.append)
    trials, done = collect(engine, 10)
    engine.start_continuous()
    assert done.wait(5.0)
    assert wait_for(lambda: len(statuses) >= 2)
    engine.stop_continuous()

    assert statuses[0].is_running
    assert statuses[-1].is_running is False
    status = engine.get_status()
    assert status.target_rate == 200
    assert status.total_trials == len(trials)
    assert status.start_time is not None and status.last_trial_time is not None
    assert status.timing_metrics.interval_count >= len(trials)
    assert status.memory_usage.buffered_trials == len(trials)
    assert status.memory_usage.recent_trials == len(trials)
    assert status.memory_usage.peak_mb >= status.memory_usage.current_mb > 0


def test_listener_failure_is_isolated(engine):
    def bad_listener(trial):
        raise RuntimeError("listener bug")

    engine.on_trial(bad_listener)
    trials, done = collect(engine, 3)
    engine.start_continuous()
    assert done.wait(5.0)
    assert engine.is_running()
    engine.stop_continuous()


def test_unsubscribe_stops_delivery(engine):
    seen = []
    subscription = engine.add_trial_listener(seen.append)
    trials, done = collect(engine, 3)
    subscription.unsubscribe()
    engine.start_continuous()
    assert done.wait(5.0)
    engine.stop_continuous()
    assert seen == []


def test_generation_error_stops_continuous_mode():
    eng = TrialEngine(FAST, source=FlakySource(good=3))
    trials, _ = collect(eng, 3)
    eng.start_continuous()
    assert wait_for(lambda: not eng.is_running())
    assert len(trials) == 3
    eng.destroy()


def test_calibration_restores_session(engine):
    before = engine.generate_trial()
    result = engine.run_calibration(100)
    after = engine.generate_trial()

    assert result.trial_count == 100
    assert result.statistics.trial_count == 100
    assert result.end_time >= result.start_time
    assert result.id != before.session_id
    assert result.quality_metrics.quality.value in {"excellent", "good", "fair", "poor"}
    assert result.passed == (result.issues == ())
    assert engine.get_last_calibration() is result

    assert after.session_id == before.session_id
    assert after.trial_number == 2
    assert after.intention is before.intention
    assert engine.get_status().total_trials == 102


def test_calibration_trials_use_baseline_session(monkeypatch, engine):
    seen = []
    original = engine_module.validate_trial

    def spy(trial, bits_per_trial=200, now=None):
        seen.append(trial)
        return original(trial, bits_per_trial, now)

    monkeypatch.setattr(engine_module, "validate_trial", spy)
    result = engine.run_calibration(4)
    assert [t.trial_number for t in seen] == [1, 2, 3, 4]
    assert {t.session_id for t in seen} == {result.id}
    assert all(t.intention is Intention.BASELINE and t.mode is ExperimentMode.SESSION for t in seen)


def test_calibration_pauses_on_engine_clock():
    clock = FakeClock()
    eng = TrialEngine({"calibration_pause_ms": 5}, source=SeededSource(), clock=clock)
    eng.run_calibration(10)
    assert clock.waits == [5] * 9
    eng.run_calibration(3, inter_trial_pause_ms=0)
    assert len(clock.waits) == 9
    eng.destroy()


def test_calibration_binomial_reference_passes_chi_square():
    eng = TrialEngine(
        {"calibration_pause_ms": 0, "chi_square_reference": "binomial"},
        source=FixedSource([0x0F, 0x33, 0x55, 0xF0, 0xCC, 0xAA]),
    )
    result = eng.run_calibration(30)
    # every draw counts exactly half its bits
    assert result.statistics.mean == 100.0
    assert not any("Chi-square" in issue for issue in result.issues)
    eng.destroy()


def test_calibration_argument_checks(engine):
    with pytest.raises(ValueError):
        engine.run_calibration(0)


def test_calibration_failure_restores_state():
    eng = TrialEngine(FAST, source=FlakySource(good=3))
    first = eng.generate_trial()
    with pytest.raises(RandomSourceError):
        eng.run_calibration(10)
    assert eng.session_id == first.session_id
    eng._source = FixedSource([0x0F])
    assert eng.generate_trial().trial_number == 2
    eng.destroy()


def test_calibration_while_running_keeps_stream_clean(engine):
    session = new_session_id()
    trials, done = collect(engine, 3)
    engine.start_continuous(session)
    engine.run_calibration(50)
    assert done.wait(5.0)
    engine.stop_continuous()
    assert {t.session_id for t in engine.get_buffered_trials()} == {session}
    numbers = [t.trial_number for t in trials]
    assert numbers == list(range(1, len(numbers) + 1))


def test_sink_receives_trials_calibrations_and_statistics():
    ledger = PolarsLedger()
    eng = TrialEngine(FAST, source=SeededSource(), sink=ledger)
    session = new_session_id()
    trials, done = collect(eng, 5)
    eng.start_continuous(session)
    assert done.wait(5.0)
    eng.stop_continuous()

    assert ledger.trial_values(session) == [t.value for t in eng.get_buffered_trials()]
    calibration = eng.run_calibration(20)
    assert ledger.latest(namespace=Namespace.CALIBRATION).entity == calibration.id

    stats = eng.get_live_statistics(record=True)
    row = ledger.latest(namespace=Namespace.STATS, session_id=session)
    assert row.payload["trial_count"] == stats.trial_count == len(trials)
    eng.destroy()


def test_sink_failures_do_not_interrupt_generation():
    sink = ExplodingSink()
    eng = TrialEngine(FAST, source=SeededSource(), sink=sink)
    trials, done = collect(eng, 5)
    eng.start_continuous()
    assert done.wait(5.0)
    assert eng.is_running()
    eng.stop_continuous()
    assert sink.calls >= 5
    eng.run_calibration(5)
    eng.get_live_statistics(record=True)
    eng.destroy()


def test_live_and_running_statistics(engine):
    trials, done = collect(engine, 20)
    engine.start_continuous()
    assert done.wait(5.0)
    engine.stop_continuous()

    live = engine.get_live_statistics()
    running = engine.get_running_statistics()
    assert live.trial_count == running.count == len(trials)
    assert running.mean == pytest.approx(live.mean)
    assert running.variance == pytest.approx(live.variance)
    assert running.cumulative_deviation == pytest.approx(live.cumulative_deviation[-1])


def test_live_statistics_without_monitoring():
    eng = TrialEngine({**FAST, "quality_monitoring": False}, source=SeededSource())
    trials, done = collect(eng, 5)
    eng.start_continuous()
    assert done.wait(5.0)
    eng.stop_continuous()
    assert eng.get_status().memory_usage.recent_trials == 0
    assert eng.get_live_statistics().trial_count == len(trials)
    eng.destroy()


def test_live_statistics_empty(engine):
    assert engine.get_live_statistics().trial_count == 0


def test_update_session(engine):
    engine.generate_trial()
    session = new_session_id()
    engine.update_session(session, Intention.LOW)
    trial = engine.generate_trial()
    assert (trial.session_id, trial.trial_number, trial.intention) == (session, 1, Intention.LOW)
    with pytest.raises(ValueError):
        engine.update_session("nope")


def test_update_config_validates_first(engine):
    original = engine.get_config()
    with pytest.raises(ConfigurationError):
        engine.update_config(bits_per_trial=0)
    assert engine.get_config() is original


def test_update_config_resizes_buffer():
    eng = TrialEngine({**FAST, "buffer_size": 50}, source=SeededSource())
    trials, done = collect(eng, 10)
    eng.start_continuous()
    assert done.wait(5.0)
    eng.stop_continuous()
    eng.update_config({"buffer_size": 4})
    assert eng.get_buffered_trials() == tuple(trials[-4:])
    assert not eng.is_running()
    eng.destroy()


def test_changing_bit_count_discards_old_trials():
    eng = TrialEngine(FAST, source=FixedSource([0x0F]))
    trials, done = collect(eng, 5)
    eng.start_continuous()
    assert done.wait(5.0)
    eng.stop_continuous()

    eng.update_config(bits_per_trial=8)
    assert eng.get_buffered_trials() == ()
    assert eng.get_live_statistics().trial_count == 0
    assert eng.get_running_statistics().count == 0

    for _ in range(3):
        assert eng.generate_trial().value == 4
    more, done = collect(eng, 3)
    eng.start_continuous(eng.session_id)
    assert done.wait(5.0)
    eng.stop_continuous()
    live = eng.get_live_statistics()
    assert live.mean == 4.0 and live.expected_mean == 4.0
    assert validate_statistical_result(live, 8).is_valid
    eng.destroy()


def test_large_batch_looks_fair():
    eng = TrialEngine({"bits_per_trial": 200}, source=SeededSource(2024))
    values = [eng.generate_trial().value for _ in range(10_000)]
    eng.destroy()
    n = len(values)
    mean = sum(values) / n
    variance = sum((v - mean) ** 2 for v in values) / (n - 1)
    # standard errors: sqrt(50 / n) for the mean, about sqrt(2 * 50**2 / n) for the variance
    assert abs(mean - 100) < 5 * (50 / n) ** 0.5
    assert abs(variance - 50) < 5 * (2 * 50**2 / n) ** 0.5


def test_update_config_restarts_running_engine(engine):
    session = new_session_id()
    trials, done = collect(engine, 3)
    engine.start_continuous(session, intention=Intention.HIGH)
    assert done.wait(5.0)

    new_config = engine.update_config(target_rate=250)
    assert new_config.target_rate == 250
    assert engine.is_running()
    count = len(trials)
    assert wait_for(lambda: len(trials) >= count + 3)
    engine.stop_continuous()

    assert {t.session_id for t in trials} == {session}
    assert [t.trial_number for t in trials] == list(range(1, len(trials) + 1))
    assert trials[-1].intention is Intention.HIGH


def test_destroy_is_final_and_idempotent():
    eng = TrialEngine(FAST, source=SeededSource())
    trials, done = collect(eng, 2)
    eng.start_continuous()
    assert done.wait(5.0)
    eng.destroy()
    eng.destroy()
    assert not eng.is_running()
    assert eng.get_buffered_trials() == ()
    with pytest.raises(EngineDestroyedError):
        eng.generate_trial()
    with pytest.raises(EngineDestroyedError):
        eng.start_continuous()
    with pytest.raises(EngineDestroyedError):
        eng.on_trial(lambda t: None)
    with pytest.raises(EngineDestroyedError):
        eng.run_calibration(5)
