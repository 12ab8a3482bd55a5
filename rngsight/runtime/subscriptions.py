"""
rngsight.runtime.subscriptions
==============================

Listener registry with unsubscribe handles.

Callbacks are called in registration order with a snapshot of the registry
taken at notification time; an exception in one callback is logged and does
not reach the others or the notifier.

Examples
--------
>>> reg = SubscriptionRegistry("trial")
>>> seen = []
>>> sub = reg.subscribe(seen.append)
>>> reg.notify(1); sub.unsubscribe(); reg.notify(2)
>>> seen
[1]
"""

from __future__ import annotations
import itertools
import threading
from typing import Callable, Dict, Generic, TypeVar

from loguru import logger

T = TypeVar("T")


class Subscription:
    """Handle returned by `SubscriptionRegistry.subscribe`."""

    def __init__(self, registry: "SubscriptionRegistry", key: int) -> None:
        self._registry = registry
        self._key = key

    def unsubscribe(self) -> None:
        """Remove the callback. Calling it twice is harmless."""
        self._registry._remove(self._key)

    @property
    def active(self) -> bool:
        return self._registry._contains(self._key)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc: object) -> None:
        self.unsubscribe()


class SubscriptionRegistry(Generic[T]):
    def __init__(self, topic: str) -> None:
        self.topic = topic
        self._callbacks: Dict[int, Callable[[T], None]] = {}
        self._keys = itertools.count()
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        with self._lock:
            key = next(self._keys)
            self._callbacks[key] = callback
        return Subscription(self, key)

    def _remove(self, key: int) -> None:
        with self._lock:
            self._callbacks.pop(key, None)

    def _contains(self, key: int) -> bool:
        with self._lock:
            return key in self._callbacks

    def notify(self, value: T) -> None:
        with self._lock:
            callbacks = list(self._callbacks.values())
        for callback in callbacks:
            try:
                callback(value)
            except Exception:
                logger.exception("{} listener raised; other listeners unaffected", self.topic)

    def clear(self) -> None:
        with self._lock:
            self._callbacks.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._callbacks)
