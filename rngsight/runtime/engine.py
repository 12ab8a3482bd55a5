"""
rngsight.runtime.engine
=======================

`TrialEngine` turns random bytes into validated trials, on demand or at a
fixed rate, and keeps the buffers and counters live statistics are built on.

Per continuous tick the engine:

1. draws ``ceil(bits/8)`` bytes and counts ``bits`` of them into a trial,
2. validates the trial (a failure stops continuous mode),
3. appends it to the rolling buffer and, with quality monitoring, to the
   recent window,
4. hands it to the sink, if any (errors are logged and ignored),
5. notifies trial listeners, and every 10th trial status listeners.

All mutable state sits behind one re-entrant lock. Listeners and the sink are
called outside it, with immutable values.

Examples
--------
>>> from rngsight.runtime.engine import TrialEngine
>>> class Ones:
...     def fill(self, buffer): buffer[:] = b"\\xff" * len(buffer)
>>> engine = TrialEngine({"bits_per_trial": 12}, source=Ones())
>>> engine.generate_trial().value
12
>>> engine.destroy()
"""

from __future__ import annotations
import threading
import uuid
from collections import deque
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import (
    Any,
    Callable,
    Deque,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from loguru import logger

from rngsight.config import EngineConfiguration, build_engine_configuration
from rngsight.core.errors import EngineDestroyedError, GenerationError, TrialValidationError
from rngsight.core.ledger import TrialSink
from rngsight.core.models import (
    CalibrationResult,
    EngineStatus,
    MemoryUsage,
    StatisticalResult,
    Trial,
)
from rngsight.core.names import ExperimentMode, Intention
from rngsight.runtime.scheduler import Clock, MonotonicClock, PrecisionScheduler
from rngsight.runtime.sources import RandomSource, SystemRandomSource, draw_trial_value
from rngsight.runtime.subscriptions import Subscription, SubscriptionRegistry
from rngsight.stats.common.descriptive import RunningSnapshot, RunningStatistics
from rngsight.stats.schemes.trials.baseline import run_baseline_test
from rngsight.stats.schemes.trials.core import calculate_statistical_result
from rngsight.validation.trials import is_uuid, validate_trial

RECENT_WINDOW = 1000
STATUS_EVERY = 10
TRIAL_FOOTPRINT_BYTES = 200  # rough size of one Trial with its strings

ConfigLike = Union[EngineConfiguration, Mapping[str, Any], None]


class TrialEngine:
    """Generator of precision-timed random trials.

    Parameters
    ----------
    config : EngineConfiguration or mapping, optional
        Engine settings; mappings are validated (`ConfigurationError`).
    source : RandomSource, optional
        Byte source; defaults to the OS CSPRNG.
    sink : TrialSink, optional
        Persistence collaborator receiving trials, calibrations and
        statistics. Its failures never interrupt generation.
    clock : Clock, optional
        Time source for the scheduler, rate estimates and calibration pauses.
    """

    def __init__(
        self,
        config: ConfigLike = None,
        source: Optional[RandomSource] = None,
        sink: Optional[TrialSink] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._config = (
            config
            if isinstance(config, EngineConfiguration)
            else build_engine_configuration(dict(config or {}))
        )
        self._source: RandomSource = source or SystemRandomSource()
        self._sink = sink
        self._clock: Clock = clock or MonotonicClock()
        self._lock = threading.RLock()

        self._trial_listeners: SubscriptionRegistry[Trial] = SubscriptionRegistry("trial")
        self._status_listeners: SubscriptionRegistry[EngineStatus] = SubscriptionRegistry(
            "status"
        )

        self._buffer: Deque[Trial] = deque(maxlen=self._config.buffer_size)
        self._recent: Deque[Trial] = deque(maxlen=RECENT_WINDOW)
        self._running_stats = RunningStatistics(
            self._config.expected_mean, keep_series=False
        )

        self._session_id: Optional[str] = None
        self._mode = ExperimentMode.CONTINUOUS
        self._intention = Intention.NONE
        self._trial_counter = 0
        self._total_trials = 0

        self._running = False
        self._calibrating = False
        self._destroyed = False
        self._start_time: Optional[datetime] = None
        self._start_clock: Optional[float] = None
        self._trials_since_start = 0
        self._last_trial_time: Optional[datetime] = None
        self._last_calibration: Optional[CalibrationResult] = None
        self._peak_mb = 0.0

        self._scheduler = self._build_scheduler()

    # ---- internals ----

    def _build_scheduler(self) -> PrecisionScheduler:
        return PrecisionScheduler(
            self._config.interval_ms,
            self._tick,
            drift_compensation=self._config.drift_compensation,
            tolerance_ms=self._config.timing_tolerance,
            clock=self._clock,
        )

    def _ensure_alive(self) -> None:
        if self._destroyed:
            raise EngineDestroyedError("TrialEngine has been destroyed")

    def _generate_locked(self) -> Trial:
        """Draw, package and validate one trial. Caller holds the lock."""
        bits = self._config.bits_per_trial
        value = draw_trial_value(self._source, bits)
        if self._session_id is None:
            self._session_id = str(uuid.uuid4())
        trial = Trial(
            timestamp=datetime.now(timezone.utc),
            value=value,
            session_id=self._session_id,
            mode=self._mode,
            intention=self._intention,
            trial_number=self._trial_counter + 1,
        )
        validation = validate_trial(trial, bits)
        if not validation.is_valid:
            logger.error("Generated invalid trial: {}", "; ".join(validation.errors))
            raise TrialValidationError(validation.errors)
        self._trial_counter += 1
        self._total_trials += 1
        self._last_trial_time = trial.timestamp
        return trial

    def _to_sink(self, method: str, *args: Any) -> None:
        if self._sink is None:
            return
        try:
            getattr(self._sink, method)(*args)
        except Exception:
            logger.exception("Sink {} failed; generation continues", method)

    def _tick(self) -> None:
        with self._lock:
            if not self._running or self._destroyed or self._calibrating:
                return
            try:
                trial = self._generate_locked()
            except GenerationError as exc:
                logger.error("Trial generation failed, stopping continuous mode: {}", exc)
                failed = True
            else:
                failed = False
                self._buffer.append(trial)
                if self._config.quality_monitoring:
                    self._recent.append(trial)
                self._running_stats.push(trial.value)
                self._trials_since_start += 1
                broadcast = self._trial_counter % STATUS_EVERY == 0

        if failed:
            self.stop_continuous()
            return

        self._to_sink("record_trial", trial)
        self._trial_listeners.notify(trial)
        if broadcast:
            self._status_listeners.notify(self.get_status())

    def _memory_usage_locked(self) -> MemoryUsage:
        buffered = len(self._buffer)
        recent = len(self._recent)
        current = (buffered + recent) * TRIAL_FOOTPRINT_BYTES / (1024 * 1024)
        self._peak_mb = max(self._peak_mb, current)
        return MemoryUsage(
            buffered_trials=buffered,
            recent_trials=recent,
            current_mb=current,
            peak_mb=self._peak_mb,
        )

    @contextmanager
    def _calibration_session(self, calibration_id: str) -> Iterator[None]:
        """Swap in a calibration session; restore the previous one on exit."""
        with self._lock:
            if self._calibrating:
                raise RuntimeError("A calibration is already running")
            saved = (self._session_id, self._mode, self._intention, self._trial_counter)
            self._calibrating = True
            self._session_id = calibration_id
            self._mode = ExperimentMode.SESSION
            self._intention = Intention.BASELINE
            self._trial_counter = 0
        try:
            yield
        finally:
            with self._lock:
                (
                    self._session_id,
                    self._mode,
                    self._intention,
                    self._trial_counter,
                ) = saved
                self._calibrating = False

    # ---- generation ----

    def generate_trial(self) -> Trial:
        """Produce one trial in the current session.

        Raises:
            RandomSourceError: If the byte source fails.
            TrialValidationError: If the trial fails validation.
        """
        with self._lock:
            self._ensure_alive()
            return self._generate_locked()

    def start_continuous(
        self,
        session_id: Optional[str] = None,
        mode: Union[ExperimentMode, str] = ExperimentMode.CONTINUOUS,
        intention: Union[Intention, str] = Intention.NONE,
    ) -> None:
        """Start scheduler-driven generation.

        A new session id (or none, which creates one) restarts trial numbering
        at 1; restarting the current session continues its numbering.
        """
        self._ensure_alive()
        if session_id is not None and not is_uuid(session_id):
            raise ValueError(f"session_id must be a UUID (got {session_id!r})")
        mode = ExperimentMode(mode)
        intention = Intention(intention)

        if self.is_running():
            self.stop_continuous()

        with self._lock:
            sid = session_id or str(uuid.uuid4())
            if sid != self._session_id:
                self._trial_counter = 0
                self._running_stats.reset()
            self._session_id = sid
            self._mode = mode
            self._intention = intention
            self._running = True
            self._start_time = datetime.now(timezone.utc)
            self._start_clock = self._clock.now()
            self._trials_since_start = 0
            scheduler = self._scheduler

        scheduler.start()
        logger.info(
            "Engine started - session {}, mode {}, intention {}",
            sid,
            mode.value,
            intention.value,
        )
        self._status_listeners.notify(self.get_status())

    def stop_continuous(self) -> None:
        """Stop continuous generation; no trial is generated after this returns."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            scheduler = self._scheduler
            generated = self._trials_since_start
        scheduler.stop()
        logger.info("Engine stopped - generated {} trials", generated)
        self._status_listeners.notify(self.get_status())

    def run_calibration(
        self, trial_count: int, inter_trial_pause_ms: Optional[float] = None
    ) -> CalibrationResult:
        """Generate `trial_count` baseline trials and assess their quality.

        Trials are generated under a fresh calibration session (mode session,
        intention baseline, numbering from 1). Continuous ticks are skipped
        meanwhile, and the previous session, mode, intention and counter are
        restored whether or not calibration succeeds.

        Raises:
            ValueError: If `trial_count` < 1.
            GenerationError: If a trial cannot be generated.
        """
        self._ensure_alive()
        if trial_count < 1:
            raise ValueError(f"trial_count must be >= 1 (got {trial_count})")
        pause = (
            self._config.calibration_pause_ms
            if inter_trial_pause_ms is None
            else inter_trial_pause_ms
        )
        config = self._config
        calibration_id = str(uuid.uuid4())
        start_time = datetime.now(timezone.utc)
        logger.info("Starting calibration with {} trials", trial_count)

        trials: List[Trial] = []
        never = threading.Event()
        with self._calibration_session(calibration_id):
            for i in range(trial_count):
                with self._lock:
                    trials.append(self._generate_locked())
                if pause > 0 and i < trial_count - 1:
                    self._clock.wait(pause, never)

        end_time = datetime.now(timezone.utc)
        statistics = calculate_statistical_result(trials, config.bits_per_trial)
        report = run_baseline_test(
            [t.value for t in trials],
            config.bits_per_trial,
            chi_square_reference=config.chi_square_reference,
        )
        result = CalibrationResult(
            id=calibration_id,
            start_time=start_time,
            end_time=end_time,
            trial_count=len(trials),
            statistics=statistics,
            quality_metrics=report.quality_metrics(),
            passed=report.passed,
            issues=report.issues,
        )
        with self._lock:
            self._last_calibration = result
        logger.info(
            "Calibration completed - quality {}, passed {}",
            report.quality.value,
            report.passed,
        )
        for issue in report.issues:
            logger.warning("Calibration issue: {}", issue)
        self._to_sink("record_calibration", result)
        return result

    # ---- listeners ----

    def add_trial_listener(self, callback: Callable[[Trial], None]) -> Subscription:
        self._ensure_alive()
        return self._trial_listeners.subscribe(callback)

    def add_status_listener(self, callback: Callable[[EngineStatus], None]) -> Subscription:
        self._ensure_alive()
        return self._status_listeners.subscribe(callback)

    on_trial = add_trial_listener
    on_status = add_status_listener

    # ---- queries ----

    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def get_status(self) -> EngineStatus:
        timing = self._scheduler.get_timing_metrics()
        with self._lock:
            rate = 0.0
            if self._running and self._start_clock is not None:
                elapsed_s = (self._clock.now() - self._start_clock) / 1000.0
                if elapsed_s > 0:
                    rate = self._trials_since_start / elapsed_s
            return EngineStatus(
                is_running=self._running,
                current_rate=rate,
                target_rate=self._config.target_rate,
                total_trials=self._total_trials,
                last_trial_time=self._last_trial_time,
                start_time=self._start_time,
                timing_metrics=timing,
                memory_usage=self._memory_usage_locked(),
            )

    def get_recent_trials(self, count: int = 100) -> Tuple[Trial, ...]:
        """The newest `count` trials from the rolling buffer, oldest first."""
        if count <= 0:
            return ()
        with self._lock:
            items = tuple(self._buffer)
        return items[-count:]

    def get_buffered_trials(self) -> Tuple[Trial, ...]:
        with self._lock:
            return tuple(self._buffer)

    def get_last_calibration(self) -> Optional[CalibrationResult]:
        with self._lock:
            return self._last_calibration

    def get_config(self) -> EngineConfiguration:
        with self._lock:
            return self._config

    @property
    def session_id(self) -> Optional[str]:
        with self._lock:
            return self._session_id

    def get_live_statistics(self, record: bool = False) -> StatisticalResult:
        """Statistics over the recent window (rolling buffer if monitoring is off).

        With ``record=True`` the result is also handed to the sink.
        """
        with self._lock:
            window = tuple(self._recent) if self._config.quality_monitoring else tuple(self._buffer)
            bits = self._config.bits_per_trial
            session_id = self._session_id
        result = calculate_statistical_result(window, bits)
        if record and session_id is not None:
            self._to_sink("record_statistics", session_id, result)
        return result

    def get_running_statistics(self) -> RunningSnapshot:
        """Incrementally maintained statistics of the current continuous session."""
        with self._lock:
            return self._running_stats.snapshot()

    # ---- reconfiguration ----

    def update_session(
        self, session_id: str, intention: Union[Intention, str] = Intention.NONE
    ) -> None:
        """Switch the session and intention new trials are tagged with."""
        self._ensure_alive()
        if not is_uuid(session_id):
            raise ValueError(f"session_id must be a UUID (got {session_id!r})")
        intention = Intention(intention)
        with self._lock:
            if session_id != self._session_id:
                self._trial_counter = 0
                self._running_stats.reset()
            self._session_id = session_id
            self._intention = intention
        logger.info("Session updated - {} ({})", session_id, intention.value)

    def update_config(
        self, partial: Optional[Mapping[str, Any]] = None, **changes: Any
    ) -> EngineConfiguration:
        """Apply configuration changes.

        Changes are validated first (`ConfigurationError`, nothing altered).
        A running engine is stopped, reconfigured and restarted with the same
        session, mode and intention.
        """
        self._ensure_alive()
        updates: Dict[str, Any] = {**(partial or {}), **changes}
        new_config = self._config.merged(**updates)

        with self._lock:
            was_running = self._running
            session, mode, intention = self._session_id, self._mode, self._intention
        if was_running:
            self.stop_continuous()

        with self._lock:
            old = self._config
            self._config = new_config
            self._buffer = deque(self._buffer, maxlen=new_config.buffer_size)
            if not new_config.quality_monitoring:
                self._recent.clear()
            if new_config.bits_per_trial != old.bits_per_trial:
                # trials drawn at the old width would skew every window
                self._buffer.clear()
                self._recent.clear()
                self._running_stats = RunningStatistics(
                    new_config.expected_mean, keep_series=False
                )
            self._scheduler = self._build_scheduler()
        logger.info("Configuration updated: {}", updates)

        if was_running:
            self.start_continuous(session, mode, intention)
        return new_config

    def destroy(self) -> None:
        """Stop, drop listeners and buffers. The engine cannot be reused."""
        if self._destroyed:
            return
        self.stop_continuous()
        with self._lock:
            self._destroyed = True
            self._buffer.clear()
            self._recent.clear()
            self._last_calibration = None
        self._trial_listeners.clear()
        self._status_listeners.clear()
        logger.debug("Engine destroyed")
