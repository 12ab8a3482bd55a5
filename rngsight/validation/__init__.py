"""
rngsight.validation
===================

Pure validators returning `ValidationResult` records.
"""

from rngsight.validation.trials import (
    is_uuid,
    validate_all,
    validate_data_integrity,
    validate_session,
    validate_session_coherence,
    validate_statistical_result,
    validate_timing_consistency,
    validate_trial,
)

__all__ = [
    "is_uuid",
    "validate_all",
    "validate_data_integrity",
    "validate_session",
    "validate_session_coherence",
    "validate_statistical_result",
    "validate_timing_consistency",
    "validate_trial",
]
