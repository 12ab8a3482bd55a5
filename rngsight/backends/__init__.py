"""
rngsight.backends
=================

Storage backends implementing `rngsight.core.ledger.Ledger`.
"""
