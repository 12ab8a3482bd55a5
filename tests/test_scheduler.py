import threading
import time

import pytest

from conftest import FakeClock
from rngsight.runtime.scheduler import MonotonicClock, PrecisionScheduler, SessionTimer


def test_first_tick_after_one_interval():
    clock = FakeClock()
    fired = []
    scheduler = PrecisionScheduler(10.0, lambda: fired.append(clock.now()), clock=clock)
    scheduler.run(max_ticks=3)
    assert fired == [10.0, 20.0, 30.0]
    assert not scheduler.is_running()


def test_drift_compensation_keeps_average_error_small():
    clock = FakeClock(jitter=[0.3, -0.2, 0.5, 0.1])
    scheduler = PrecisionScheduler(10.0, lambda: None, clock=clock)
    scheduler.run(max_ticks=1000)
    metrics = scheduler.get_timing_metrics()
    assert metrics.interval_count == 1000
    assert metrics.average_error < 1.0
    assert metrics.max_error == pytest.approx(0.5)
    assert metrics.missed_intervals == 0
    assert clock.now() == pytest.approx(10_000.0, abs=1.0)


def test_without_compensation_drift_accumulates():
    clock = FakeClock(jitter=[0.3, -0.2, 0.5, 0.1])
    scheduler = PrecisionScheduler(10.0, lambda: None, drift_compensation=False, clock=clock)
    scheduler.run(max_ticks=1000)
    assert scheduler.get_timing_metrics().average_error > 10.0
    assert clock.now() == pytest.approx(10_000.0 + 175.0)


def test_missed_and_late_ticks():
    clock = FakeClock(jitter=[6.0])
    scheduler = PrecisionScheduler(10.0, lambda: None, tolerance_ms=2.0, clock=clock)
    scheduler.run(max_ticks=20)
    metrics = scheduler.get_timing_metrics()
    assert metrics.missed_intervals == 20
    assert metrics.late_ticks == 20


def test_delay_never_below_one_millisecond():
    clock = FakeClock(jitter=[25.0])
    scheduler = PrecisionScheduler(10.0, lambda: None, clock=clock)
    scheduler.run(max_ticks=5)
    assert min(clock.waits) == 1.0


def test_action_errors_do_not_stop_scheduling():
    calls = []

    def action():
        calls.append(1)
        raise RuntimeError("boom")

    scheduler = PrecisionScheduler(10.0, action, clock=FakeClock())
    scheduler.run(max_ticks=5)
    assert len(calls) == 5


def test_stop_from_inside_action():
    calls = []
    clock = FakeClock()

    def action():
        calls.append(1)
        if len(calls) == 3:
            scheduler.stop()

    scheduler = PrecisionScheduler(10.0, action, clock=clock)
    scheduler.run()
    assert len(calls) == 3


def test_invalid_interval():
    with pytest.raises(ValueError):
        PrecisionScheduler(0, lambda: None)


def test_threaded_start_and_stop():
    ticked = threading.Event()
    calls = []

    def action():
        calls.append(1)
        if len(calls) >= 3:
            ticked.set()

    scheduler = PrecisionScheduler(5.0, action, clock=MonotonicClock())
    scheduler.start()
    scheduler.start()  # no-op while running
    assert scheduler.is_running()
    with pytest.raises(RuntimeError):
        scheduler.run(max_ticks=1)
    assert ticked.wait(5.0)
    scheduler.stop()
    assert not scheduler.is_running()
    settled = len(calls)
    time.sleep(0.05)
    assert len(calls) == settled
    scheduler.stop()  # idempotent


def test_restart_resets_metrics():
    clock = FakeClock()
    scheduler = PrecisionScheduler(10.0, lambda: None, clock=clock)
    scheduler.run(max_ticks=4)
    scheduler.run(max_ticks=2)
    assert scheduler.get_timing_metrics().interval_count == 2


def test_session_timer_excludes_pauses():
    clock = FakeClock()
    timer = SessionTimer(clock=clock)
    assert timer.elapsed_ms() is None
    timer.start()
    clock.advance(100)
    timer.pause()
    assert timer.is_paused and not timer.is_running
    clock.advance(1000)
    assert timer.elapsed_ms() == 100
    timer.resume()
    clock.advance(50)
    assert timer.stop() == 150
    clock.advance(500)
    assert timer.elapsed_ms() == 150
    assert not timer.is_running


class StallingClock:
    """Fake clock whose first `now()` on a worker thread blocks until released."""

    def __init__(self):
        self.owner = threading.current_thread()
        self.stalled = threading.Event()
        self.release = threading.Event()
        self._armed = True
        self._waits = 0

    def now(self):
        if self._armed and threading.current_thread() is not self.owner:
            self._armed = False
            self.stalled.set()
            self.release.wait(5.0)
        return 0.0

    def wait(self, delay_ms, stop):
        self._waits += 1
        if self._waits == 1:
            return False
        return stop.wait(5.0)


def test_stale_loop_does_not_touch_restarted_metrics():
    calls = []
    clock = StallingClock()
    scheduler = PrecisionScheduler(10.0, lambda: calls.append(1), clock=clock)
    scheduler.start()
    assert clock.stalled.wait(5.0)
    scheduler.stop(timeout=0.05)  # the first loop is still stuck in now()
    scheduler.start()
    clock.release.set()
    time.sleep(0.1)
    assert scheduler.get_timing_metrics().interval_count == 0
    assert calls == []
    scheduler.stop()
