"""
rngsight.reporting
==================

Read-only summaries of ledger contents.
"""

from rngsight.reporting.generic import LedgerReporter

__all__ = ["LedgerReporter"]
