"""
rngsight.backends.polars.ledger
===============================

An in-memory ledger on a **Polars** frame, with a JSON-UTF8 payload column.

Continuous runs append one row per trial, often hundreds per second, so
appends only queue a row dict; queued rows are folded into the frame in one
batch the next time anything reads. Appends and reads are serialized with a
lock, since the engine writes from its scheduler thread.

Examples
--------
>>> from datetime import datetime, timezone
>>> from rngsight.backends.polars.ledger import PolarsLedger
>>> from rngsight.core.models import Trial
>>> from rngsight.core.names import ExperimentMode, Intention, Namespace
>>> L = PolarsLedger()
>>> L.record_trial(Trial(timestamp=datetime.now(timezone.utc), value=98,
...     session_id="s1", mode=ExperimentMode.CONTINUOUS,
...     intention=Intention.NONE, trial_number=1))
>>> L.reader().count(namespace=Namespace.OBS)
1
>>> L.trial_values("s1")
[98]
"""

from __future__ import annotations
import json
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, cast

import polars as pl

from rngsight.core.ledger import (
    Ledger,
    LedgerReader,
    NamespaceLike,
    PayloadRegistry,
    Row,
    namespace_value,
)
from rngsight.core.names import Namespace
from rngsight.core.traits import LedgerOps

LEDGER_SCHEMA: Dict[str, Any] = {
    "uuid": pl.Utf8,
    "time_index": pl.Utf8,
    "ts": pl.Datetime(time_unit="us", time_zone="UTC"),
    "namespace": pl.Utf8,
    "kind": pl.Utf8,
    "entity": pl.Utf8,  # session id
    "snapshot_id": pl.Utf8,  # trial number
    "tag": pl.Utf8,
    "payload_type": pl.Utf8,
    "payload": pl.Utf8,  # JSON
}

FILTER_COLUMNS = ("namespace", "kind", "entity", "tag")


class PolarsLedgerReader(LedgerReader):
    """Filterable view over a frozen frame of ledger rows."""

    def __init__(self, df: pl.DataFrame) -> None:
        self.df = df

    def _select(self, **filters: Any) -> pl.DataFrame:
        unknown = set(filters) - set(FILTER_COLUMNS)
        if unknown:
            raise TypeError(f"Unknown ledger filter(s): {sorted(unknown)}")
        conditions = [
            pl.col(column)
            == (namespace_value(value) if column == "namespace" else value)
            for column, value in filters.items()
            if value is not None
        ]
        if not conditions:
            return self.df
        return self.df.filter(pl.all_horizontal(conditions))

    @staticmethod
    def _decode(rec: Dict[str, Any]) -> Row:
        raw = json.loads(rec["payload"]) if rec["payload"] else {}
        return Row(
            payload=PayloadRegistry.decode(rec["payload_type"], raw),
            **{k: rec[k] for k in LEDGER_SCHEMA if k != "payload"},
        )

    def iter_rows(self, **filters: Any) -> Iterator[Row]:
        for rec in self._select(**filters).iter_rows(named=True):
            yield self._decode(rec)

    def latest(self, **filters: Any) -> Optional[Row]:
        selected = self._select(**filters)
        if selected.is_empty():
            return None
        return self._decode(selected.row(-1, named=True))

    def count(self, **filters: Any) -> int:
        return self._select(**filters).height


class PolarsLedger(LedgerOps, Ledger):
    """Append-only ledger kept in a Polars frame."""

    def __init__(self, df: Optional[pl.DataFrame] = None) -> None:
        self._lock = threading.Lock()
        self._df = (
            df if df is not None else pl.DataFrame(schema=cast(Any, LEDGER_SCHEMA))
        )
        self._pending: List[Dict[str, Any]] = []

    def _flush_locked(self) -> pl.DataFrame:
        if self._pending:
            batch = pl.DataFrame(self._pending, schema=cast(Any, LEDGER_SCHEMA))
            self._df = pl.concat([self._df, batch], how="vertical_relaxed")
            self._pending = []
        return self._df

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
    ) -> "PolarsLedger":
        # naive timestamps are taken as UTC
        ts = ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts
        record = {
            "uuid": str(uuid.uuid4()),
            "time_index": time_index,
            "ts": ts.astimezone(timezone.utc),
            "namespace": namespace_value(namespace),
            "kind": kind,
            "entity": entity,
            "snapshot_id": snapshot_id,
            "tag": tag,
            "payload_type": payload_type,
            "payload": json.dumps(payload, separators=(",", ":")),
        }
        with self._lock:
            self._pending.append(record)
        return self

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
    ) -> "PolarsLedger":
        return self.append(
            time_index=time_index,
            ts=ts,
            namespace=namespace,
            kind=kind,
            entity=entity,
            snapshot_id=snapshot_id,
            payload_type="Signal",
            payload={"topic": topic, "body": body},
            tag=tag,
        )

    def reader(self) -> PolarsLedgerReader:
        with self._lock:
            return PolarsLedgerReader(self._flush_locked())

    def frame(self) -> pl.DataFrame:
        """All rows so far as a Polars frame."""
        with self._lock:
            return self._flush_locked().clone()

    def __len__(self) -> int:
        with self._lock:
            return self._df.height + len(self._pending)
