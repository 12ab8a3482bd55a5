"""
rngsight.core.ledger
====================

Backend-independent ledger abstractions.

A ledger is an append-only table of events. Each row carries where it belongs
(`namespace`, `kind`, `tag`), whom it concerns (`entity`, usually a session id)
and a JSON payload. Concrete storage lives in `rngsight.backends`.

- `Row`: one decoded ledger record.
- `LedgerReader`: read-only, filterable view.
- `PayloadRegistry`: optional decoders turning JSON payloads back into objects.
- `Ledger`: the minimal write/read interface a backend implements.
- `TrialSink`: what the engine needs from a persistence collaborator.

Examples
--------
>>> from rngsight.core.ledger import PayloadRegistry
>>> PayloadRegistry.register("Pair", lambda d: (d["a"], d["b"]))
>>> PayloadRegistry.decode("Pair", {"a": 1, "b": 2})
(1, 2)
>>> PayloadRegistry.decode("Unknown", {"a": 1})
{'a': 1}
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, Optional, Protocol, Union

from rngsight.core.models import CalibrationResult, StatisticalResult, Trial
from rngsight.core.names import Namespace

NamespaceLike = Union[Namespace, str]


def namespace_value(namespace: NamespaceLike) -> str:
    return namespace.value if isinstance(namespace, Namespace) else str(namespace)


@dataclass(frozen=True)
class Row:
    uuid: str
    time_index: str
    ts: datetime
    namespace: str
    kind: str
    entity: str
    snapshot_id: str
    tag: Optional[str]
    payload_type: str
    payload: Any


class LedgerReader(ABC):
    """Read-only access to ledger rows.

    Filters are keyword arguments: `namespace`, `kind`, `entity`, `tag`.
    Rows are yielded in append order.
    """

    @abstractmethod
    def iter_rows(self, **filters: Any) -> Iterator[Row]: ...

    @abstractmethod
    def latest(self, **filters: Any) -> Optional[Row]: ...

    @abstractmethod
    def count(self, **filters: Any) -> int: ...


class PayloadRegistry:
    """Registry of payload decoders keyed by `payload_type`.

    Unregistered payload types decode to the raw dictionary.
    """

    _decoders: Dict[str, Callable[[Dict[str, Any]], Any]] = {}

    @classmethod
    def register(
        cls, payload_type: str, decoder: Callable[[Dict[str, Any]], Any]
    ) -> None:
        cls._decoders[payload_type] = decoder

    @classmethod
    def decode(cls, payload_type: str, payload: Dict[str, Any]) -> Any:
        decoder = cls._decoders.get(payload_type)
        return decoder(payload) if decoder is not None else payload


class Ledger(ABC):
    """Minimal interface a storage backend implements."""

    @abstractmethod
    def append(
        self,
        *,
        time_index: str,
        ts: datetime,
        namespace: NamespaceLike,
        kind: str,
        entity: str,
        snapshot_id: str,
        payload_type: str,
        payload: Dict[str, Any],
        tag: Optional[str] = None,
    ) -> "Ledger": ...

    @abstractmethod
    def emit_signal(
        self,
        *,
        time_index: str,
        ts: datetime,
        entity: str,
        snapshot_id: str,
        topic: str,
        body: Dict[str, Any],
        tag: str = "signal",
        namespace: NamespaceLike = Namespace.SIGNALS,
        kind: str = "emitted",
    ) -> "Ledger": ...

    @abstractmethod
    def reader(self) -> LedgerReader: ...


class TrialSink(Protocol):
    """Persistence collaborator handed to `TrialEngine`.

    Calls are fire-and-forget: the engine logs and ignores any exception.
    """

    def record_trial(self, trial: Trial) -> None: ...

    def record_calibration(self, result: CalibrationResult) -> None: ...

    def record_statistics(self, session_id: str, result: StatisticalResult) -> None: ...
