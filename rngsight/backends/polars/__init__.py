from rngsight.backends.polars.ledger import PolarsLedger

__all__ = ["PolarsLedger"]
