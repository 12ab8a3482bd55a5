"""
rngsight.runtime.scheduler
==========================

Fixed-rate scheduling with drift compensation.

`PrecisionScheduler` calls an action once per interval. The first call
happens one interval after `start()`. With drift compensation the delay
before the next call is ``max(1, interval - drift)``, where drift is how far
the current time is past the ideal time of the tick just completed, so the
long-run rate converges to the target even when individual waits overshoot.

Time comes from a `Clock`, in milliseconds. `MonotonicClock` uses
`time.perf_counter`; tests substitute a fake clock whose `wait` advances
virtual time.

Examples
--------
>>> ticks = []
>>> s = PrecisionScheduler(1.0, lambda: ticks.append(1))
>>> s.run(max_ticks=3)
>>> len(ticks), s.get_timing_metrics().interval_count
(3, 3)
"""

from __future__ import annotations
import threading
import time
from typing import Callable, Optional, Protocol

from loguru import logger

from rngsight.core.models import TimingMetrics

MIN_DELAY_MS = 1.0


class Clock(Protocol):
    def now(self) -> float:
        """Current time in milliseconds (monotonic)."""
        ...

    def wait(self, delay_ms: float, stop: threading.Event) -> bool:
        """Sleep up to `delay_ms`; return True if `stop` was set meanwhile."""
        ...


class MonotonicClock:
    def now(self) -> float:
        return time.perf_counter() * 1000.0

    def wait(self, delay_ms: float, stop: threading.Event) -> bool:
        return stop.wait(max(0.0, delay_ms) / 1000.0)


class PrecisionScheduler:
    """Run `action` every `interval_ms` milliseconds.

    Parameters
    ----------
    interval_ms : float
        Target spacing between calls.
    action : callable
        Called with no arguments on every tick. Exceptions are logged and
        scheduling continues.
    drift_compensation : bool
        Adjust each delay to cancel accumulated drift.
    tolerance_ms : float, optional
        Ticks whose absolute timing error exceeds this are counted in
        `TimingMetrics.late_ticks`.
    clock : Clock, optional
        Time source; defaults to `MonotonicClock`.
    """

    def __init__(
        self,
        interval_ms: float,
        action: Callable[[], None],
        drift_compensation: bool = True,
        tolerance_ms: Optional[float] = None,
        clock: Optional[Clock] = None,
        name: str = "rngsight-scheduler",
    ) -> None:
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive (got {interval_ms})")
        self.interval_ms = float(interval_ms)
        self.drift_compensation = drift_compensation
        self.tolerance_ms = tolerance_ms
        self._action = action
        self._clock: Clock = clock or MonotonicClock()
        self._name = name

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._start_time = 0.0
        self._reset_metrics()

    def _reset_metrics(self) -> None:
        self._interval_count = 0
        self._total_abs_error = 0.0
        self._max_error = 0.0
        self._missed = 0
        self._late = 0

    def _begin(self) -> threading.Event:
        self._running = True
        self._stop_event = threading.Event()
        self._reset_metrics()
        self._start_time = self._clock.now()
        return self._stop_event

    # ---- lifecycle ----

    def start(self) -> None:
        """Start ticking on a daemon thread. No-op if already running."""
        with self._lock:
            if self._running:
                return
            stop_event = self._begin()
            self._thread = threading.Thread(
                target=self._loop, args=(stop_event, None), name=self._name, daemon=True
            )
            self._thread.start()
        logger.debug("Scheduler started (interval={}ms)", self.interval_ms)

    def run(self, max_ticks: Optional[int] = None) -> None:
        """Tick in the calling thread until `stop()` or `max_ticks` ticks.

        Raises:
            RuntimeError: If the scheduler is already running.
        """
        with self._lock:
            if self._running:
                raise RuntimeError("Scheduler is already running")
            stop_event = self._begin()
        try:
            self._loop(stop_event, max_ticks)
        finally:
            with self._lock:
                if self._stop_event is stop_event:
                    self._running = False

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop ticking. No further action call starts after this returns.

        Safe to call from inside the action; the scheduler thread is only
        joined when stopping from another thread.
        """
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._stop_event.set()
            thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        logger.debug("Scheduler stopped after {} ticks", self._interval_count)

    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def get_timing_metrics(self) -> TimingMetrics:
        with self._lock:
            count = self._interval_count
            return TimingMetrics(
                average_error=self._total_abs_error / count if count else 0.0,
                max_error=self._max_error,
                missed_intervals=self._missed,
                interval_count=count,
                late_ticks=self._late,
            )

    # ---- loop ----

    def _record(self, error: float, stop_event: threading.Event) -> bool:
        """Count one tick; False once `stop_event` is set."""
        with self._lock:
            # a stopped loop outliving its join must not touch a newer run's metrics
            if stop_event.is_set():
                return False
            self._interval_count += 1
            self._total_abs_error += abs(error)
            self._max_error = max(self._max_error, abs(error))
            if error > self.interval_ms / 2:
                self._missed += 1
            if self.tolerance_ms is not None and abs(error) > self.tolerance_ms:
                self._late += 1
        return True

    def _loop(self, stop_event: threading.Event, max_ticks: Optional[int]) -> None:
        interval = self.interval_ms
        start = self._start_time
        expected = start + interval
        delay = interval
        ticks = 0
        while not stop_event.is_set():
            if self._clock.wait(delay, stop_event) or stop_event.is_set():
                break

            now = self._clock.now()
            if not self._record(now - expected, stop_event):
                break
            try:
                self._action()
            except Exception:
                logger.exception("Scheduled action raised; scheduling continues")
            expected += interval
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break

            if self.drift_compensation:
                drift = self._clock.now() - (start + ticks * interval)
                delay = max(MIN_DELAY_MS, interval - drift)
            else:
                delay = interval


class SessionTimer:
    """Wall-clock duration of a session, excluding paused time (ms).

    >>> class Fake:
    ...     t = 0.0
    ...     def now(self): return self.t
    >>> c = Fake(); timer = SessionTimer(clock=c)
    >>> timer.start(); c.t = 100.0; timer.pause(); c.t = 400.0; timer.resume(); c.t = 450.0
    >>> timer.elapsed_ms()
    150.0
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or MonotonicClock()
        self.reset()

    def reset(self) -> None:
        self._start: Optional[float] = None
        self._end: Optional[float] = None
        self._paused_total = 0.0
        self._pause_start: Optional[float] = None

    def start(self) -> None:
        self.reset()
        self._start = self._clock.now()

    def pause(self) -> None:
        if self._start is not None and self._end is None and self._pause_start is None:
            self._pause_start = self._clock.now()

    def resume(self) -> None:
        if self._pause_start is not None:
            self._paused_total += self._clock.now() - self._pause_start
            self._pause_start = None

    def stop(self) -> Optional[float]:
        if self._start is None or self._end is not None:
            return self.elapsed_ms()
        self.resume()
        self._end = self._clock.now()
        return self.elapsed_ms()

    def elapsed_ms(self) -> Optional[float]:
        if self._start is None:
            return None
        if self._end is not None:
            end = self._end
        elif self._pause_start is not None:
            end = self._pause_start
        else:
            end = self._clock.now()
        return max(0.0, end - self._start - self._paused_total)

    @property
    def is_running(self) -> bool:
        return self._start is not None and self._end is None and self._pause_start is None

    @property
    def is_paused(self) -> bool:
        return self._pause_start is not None
