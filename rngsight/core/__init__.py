"""
rngsight.core
=============

Names, immutable records, errors and the ledger abstraction shared by the
rest of the package.
"""

from rngsight.core import names, models, errors

__all__ = ["names", "models", "errors"]
