from __future__ import annotations

import itertools
import random
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence

import pytest
from loguru import logger

from rngsight.core.models import Trial
from rngsight.core.names import ExperimentMode, Intention

SESSION_ID = "3f1c2d4e-5a6b-4c7d-8e9f-0a1b2c3d4e5f"
T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _silence_loguru():
    logger.remove()
    logger.add(lambda msg: None)
    yield
    logger.remove()


class FixedSource:
    """Byte source that cycles through a fixed byte pattern."""

    def __init__(self, pattern: Iterable[int] = (0x0F,)) -> None:
        self._bytes = itertools.cycle(list(pattern))
        self.calls = 0

    def fill(self, buffer: bytearray) -> None:
        self.calls += 1
        for i in range(len(buffer)):
            buffer[i] = next(self._bytes)


class SeededSource:
    """Reproducible pseudo-random bytes."""

    def __init__(self, seed: int = 1234) -> None:
        self._rng = random.Random(seed)

    def fill(self, buffer: bytearray) -> None:
        buffer[:] = bytes(self._rng.getrandbits(8) for _ in range(len(buffer)))


class BrokenSource:
    def fill(self, buffer: bytearray) -> None:
        raise OSError("entropy pool unavailable")


class FakeClock:
    """Virtual millisecond clock; `wait` advances time instead of sleeping."""

    def __init__(self, start: float = 0.0, jitter: Optional[Sequence[float]] = None) -> None:
        self.t = start
        self._jitter = itertools.cycle(jitter) if jitter else None
        self.waits: List[float] = []

    def now(self) -> float:
        return self.t

    def wait(self, delay_ms: float, stop: threading.Event) -> bool:
        self.waits.append(delay_ms)
        self.t += delay_ms + (next(self._jitter) if self._jitter else 0.0)
        return stop.is_set()

    def advance(self, ms: float) -> None:
        self.t += ms


def make_trials(
    values: Sequence[int],
    *,
    session_id: str = SESSION_ID,
    interval_ms: float = 1000.0,
    start: datetime = T0,
    intention: Intention = Intention.NONE,
) -> List[Trial]:
    return [
        Trial(
            timestamp=start + timedelta(milliseconds=i * interval_ms),
            value=v,
            session_id=session_id,
            mode=ExperimentMode.CONTINUOUS,
            intention=intention,
            trial_number=i + 1,
        )
        for i, v in enumerate(values)
    ]


def random_values(n: int, bits: int = 200, seed: int = 7) -> List[int]:
    rng = random.Random(seed)
    return [bin(rng.getrandbits(bits)).count("1") for _ in range(n)]


def new_session_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def fixed_source() -> FixedSource:
    return FixedSource()


@pytest.fixture
def seeded_source() -> SeededSource:
    return SeededSource()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
