"""
rngsight: a package for generating precision-timed random trials and
judging, while they stream, whether they still look like a fair coin.

A trial is one integer: the number of set bits in a fixed-size draw from a
cryptographic byte source. Trials are produced at a steady cadence by a
drift-compensating scheduler, pushed through a rolling buffer, and evaluated
by a family of pure statistical functions (descriptive statistics,
goodness-of-fit, runs and autocorrelation tests, multiple-comparison
corrections, power analysis) built on a small special-function library.

Every trial, calibration and statistics snapshot can be handed to an
append-only ledger, so a session is reconstructible from its events.

Example
-------
>>> import rngsight
>>> assert hasattr(rngsight, "core")
>>> assert hasattr(rngsight, "stats")
"""

from loguru import logger

from rngsight.__version__ import __version__
from rngsight import core, stats, validation, runtime

# Library code stays silent until the host calls `configure_logging`.
logger.disable("rngsight")

__all__ = ["__version__", "core", "stats", "validation", "runtime"]
