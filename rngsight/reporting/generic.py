"""
rngsight.reporting.generic
==========================

A reporter over ledger events: namespace x kind counts and per-session trial
summaries. Queries are ibis table expressions, so the same reporter works
whichever engine executes them (duckdb by default).

Examples
--------
>>> from rngsight.backends.polars.ledger import PolarsLedger
>>> from rngsight.reporting.generic import LedgerReporter
>>> rep = LedgerReporter(PolarsLedger())
>>> rep.unique_sessions()
[]
>>> rep.namespace_kind_counts().to_polars().height
0
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import ibis
import polars as pl

from rngsight.core.names import Namespace

if TYPE_CHECKING:
    from rngsight.backends.polars.ledger import PolarsLedger


@dataclass
class LedgerReporter:
    """
    Summaries over a `PolarsLedger`.
    Works through ibis expressions for backend-agnostic operations.
    """

    ledger: "PolarsLedger"

    def ledger_table(self) -> ibis.Table:
        """Return the ledger as an ibis table, with trial values unpacked."""
        frame = self.ledger.frame().with_columns(
            pl.col("payload").str.json_path_match("$.value").cast(pl.Int64, strict=False).alias("value")
        )
        return ibis.memtable(frame)

    def _unique(self, column: str) -> list[str]:
        table = self.ledger_table()
        values = table.select(column).distinct().to_polars().get_column(column)
        return sorted(values.drop_nulls().to_list())

    def unique_sessions(self) -> list[str]:
        """List all session ids (ledger entities)."""
        return self._unique("entity")

    def unique_namespaces(self) -> list[str]:
        return self._unique("namespace")

    def unique_kinds(self) -> list[str]:
        return self._unique("kind")

    def namespace_kind_counts(self) -> ibis.Table:
        """
        Return counts of events grouped by namespace and kind.

        Returns
        -------
        ibis.Table
            Table with namespace, kind, and count columns
        """
        table = self.ledger_table()
        return (
            table.group_by(["namespace", "kind"])
            .aggregate(count=ibis._.count())
            .order_by(["namespace", "kind"])
        )

    def trial_summary(self) -> ibis.Table:
        """
        Per-session trial counts, value means and time span.

        Returns
        -------
        ibis.Table
            Columns: session_id, trials, mean_value, first_ts, last_ts
        """
        table = self.ledger_table()
        trials = table.filter(table.namespace == Namespace.OBS.value)
        return (
            trials.group_by(session_id=trials.entity)
            .aggregate(
                trials=ibis._.count(),
                mean_value=ibis._.value.mean(),
                first_ts=ibis._.ts.min(),
                last_ts=ibis._.ts.max(),
            )
            .order_by("session_id")
        )
