"""
rngsight.core.errors
====================

Exception hierarchy.

Generation and configuration problems are raised to the caller. Scheduling
and listener problems never surface as exceptions; they are logged where they
occur. Validation findings are data (`ValidationResult`), not exceptions,
except when a freshly generated trial fails validation.
"""

from __future__ import annotations
from typing import Sequence, Tuple


class RngSightError(Exception):
    """Base class for all package errors."""


class GenerationError(RngSightError, RuntimeError):
    """A trial could not be produced."""


class RandomSourceError(GenerationError):
    """The byte source failed or is unavailable."""


class TrialValidationError(GenerationError):
    """A freshly generated trial violated its own invariants."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors: Tuple[str, ...] = tuple(errors)
        super().__init__("Generated trial failed validation: " + "; ".join(self.errors))


class ConfigurationError(RngSightError, ValueError):
    """A configuration value is out of range or unknown."""


class EngineDestroyedError(RngSightError, RuntimeError):
    """The engine was destroyed and can no longer be used."""
