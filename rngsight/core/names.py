"""
rngsight.core.names
===================

Typed names shared across the package.

- `ExperimentMode`, `Intention`, `SessionStatus`: the closed vocabularies a
  trial or session may carry.
- `QualityRating`: the four-level verdict of a baseline quality report.
- `Namespace`: an Enum for well-known ledger namespaces.
- `SessionId`, `CalibrationId`: NewType wrappers for clarity.

Examples
--------
>>> from rngsight.core.names import Namespace, Intention, SessionId
>>> Namespace.OBS.value
'obs'
>>> Intention("baseline") is Intention.BASELINE
True
>>> sid = SessionId("5f0c..."); isinstance(sid, str)
True
"""

from __future__ import annotations
from enum import Enum
from typing import Literal, NewType


class ExperimentMode(str, Enum):
    """How a trial was collected: inside a bounded session or free-running."""

    SESSION = "session"
    CONTINUOUS = "continuous"


class Intention(str, Enum):
    """Declared intention attached to every trial."""

    HIGH = "high"
    LOW = "low"
    BASELINE = "baseline"
    NONE = "none"


class SessionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"


class QualityRating(str, Enum):
    """Ordered verdicts, best first."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class Namespace(str, Enum):
    """Well-known ledger namespaces.

    - OBS: raw trials
    - STATS: statistics snapshots (derived)
    - CALIBRATION: baseline calibration outcomes
    - SIGNALS: emitted signals / lifecycle notes
    """

    OBS = "obs"
    STATS = "stats"
    CALIBRATION = "calibration"
    SIGNALS = "signals"


SessionId = NewType("SessionId", str)
CalibrationId = NewType("CalibrationId", str)

ChiSquareReference = Literal["uniform", "binomial"]

# Ledger tags.
TrialTag = Literal["trial"]
StatisticsTag = Literal["stat:live"]
CalibrationTag = Literal["calibration"]
