"""
rngsight.core.traits
====================

Mixin giving every `Ledger` backend typed writers and readers on top of the
three primitives it implements.

The host provides `Ledger.append`, `Ledger.emit_signal` and `Ledger.reader`;
in return it gains:

- `write_event()` : append a record with typed parameters
- `emit()`        : append a signal record
- `latest()` / `iter_ns()` : typed convenience readers
- `record_trial()` / `record_calibration()` / `record_statistics()` : the
  `TrialSink` protocol, so any such ledger can be handed to a `TrialEngine`
- `trial_values()` : the value column of one session's trials

Examples
--------
>>> from rngsight.backends.polars.ledger import PolarsLedger
>>> from rngsight.core.names import Namespace
>>> L = PolarsLedger()
>>> L.emit(time_index="1", session_id="s", topic="engine", body={"event": "start"})
>>> L.latest(namespace=Namespace.SIGNALS).payload["topic"]
'engine'
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from rngsight.core.ledger import Ledger, NamespaceLike, Row, namespace_value
from rngsight.core.models import CalibrationResult, StatisticalResult, Trial
from rngsight.core.names import Namespace, SessionId


class LedgerOps(Ledger):
    """Typed ledger writers and readers, including the `TrialSink` methods."""

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    # ---- writers ----

    def write_event(
        self,
        *,
        time_index: str,
        namespace: NamespaceLike,
        kind: str,
        session_id: Union[SessionId, str],
        step_key: str,
        payload_type: str,
        payload: Dict[str, Any],
        tag: Optional[str] = None,
        ts: Optional[datetime] = None,
    ) -> None:
        """Append a typed event to the ledger."""
        self.append(
            time_index=str(time_index),
            ts=ts or self._now(),
            namespace=namespace_value(namespace),
            kind=kind,
            entity=str(session_id),
            snapshot_id=str(step_key),
            payload_type=payload_type,
            payload=payload,
            tag=tag,
        )

    def emit(
        self,
        *,
        time_index: str,
        session_id: Union[SessionId, str],
        topic: str,
        body: Dict[str, Any],
        step_key: str = "",
        tag: str = "signal",
        namespace: NamespaceLike = Namespace.SIGNALS,
        ts: Optional[datetime] = None,
    ) -> None:
        """Append a typed *signal* to the ledger."""
        self.emit_signal(
            time_index=str(time_index),
            ts=ts or self._now(),
            entity=str(session_id),
            snapshot_id=str(step_key),
            topic=topic,
            body=body,
            tag=tag,
            namespace=namespace_value(namespace),
        )

    # ---- TrialSink ----

    def record_trial(self, trial: Trial) -> None:
        self.write_event(
            time_index=str(trial.trial_number),
            namespace=Namespace.OBS,
            kind="trial",
            session_id=trial.session_id,
            step_key=str(trial.trial_number),
            payload_type="Trial",
            payload=dict(trial.to_payload()),
            tag="trial",
            ts=trial.timestamp,
        )

    def record_calibration(self, result: CalibrationResult) -> None:
        self.write_event(
            time_index=str(result.trial_count),
            namespace=Namespace.CALIBRATION,
            kind="calibration",
            session_id=result.id,
            step_key="final",
            payload_type="Calibration",
            payload=dict(result.to_payload()),
            tag="calibration",
            ts=result.end_time,
        )

    def record_statistics(self, session_id: str, result: StatisticalResult) -> None:
        self.write_event(
            time_index=str(result.trial_count),
            namespace=Namespace.STATS,
            kind="statistics",
            session_id=session_id,
            step_key=str(result.trial_count),
            payload_type="Statistics",
            payload=dict(result.to_payload()),
            tag="stat:live",
            ts=result.calculated_at,
        )

    # ---- readers ----

    def latest(
        self,
        *,
        namespace: Optional[NamespaceLike] = None,
        kind: Optional[str] = None,
        session_id: Optional[Union[SessionId, str]] = None,
        tag: Optional[str] = None,
    ) -> Optional[Row]:
        """Return latest row for given filters (or None)."""
        return self.reader().latest(
            namespace=namespace_value(namespace) if namespace is not None else None,
            kind=kind,
            entity=str(session_id) if session_id else None,
            tag=tag,
        )

    def iter_ns(
        self,
        *,
        namespace: NamespaceLike,
        session_id: Optional[Union[SessionId, str]] = None,
    ) -> Iterable[Row]:
        """Iterate rows in a namespace (optionally filtered by session_id)."""
        return self.reader().iter_rows(
            namespace=namespace_value(namespace),
            entity=str(session_id) if session_id else None,
        )

    def trial_values(self, session_id: Union[SessionId, str]) -> List[int]:
        """Values of all trials recorded for `session_id`, in append order.

        Payloads may be raw dictionaries or objects decoded through the
        `PayloadRegistry`.
        """
        values: List[int] = []
        for row in self.iter_ns(namespace=Namespace.OBS, session_id=session_id):
            payload = row.payload
            if hasattr(payload, "value"):
                values.append(int(payload.value))
            elif isinstance(payload, dict) and "value" in payload:
                values.append(int(payload["value"]))
        return values
