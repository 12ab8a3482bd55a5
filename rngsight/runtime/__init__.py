"""
rngsight.runtime
================

Moving parts: byte sources, the drift-compensating scheduler, listener
registries and the `TrialEngine` that ties them together.
"""

from rngsight.runtime.engine import TrialEngine
from rngsight.runtime.scheduler import (
    Clock,
    MonotonicClock,
    PrecisionScheduler,
    SessionTimer,
)
from rngsight.runtime.sources import (
    RandomSource,
    SourceCheck,
    SystemRandomSource,
    count_set_bits,
    draw_trial_value,
    verify_random_source,
)
from rngsight.runtime.subscriptions import Subscription, SubscriptionRegistry

__all__ = [
    "TrialEngine",
    "Clock",
    "MonotonicClock",
    "PrecisionScheduler",
    "SessionTimer",
    "RandomSource",
    "SourceCheck",
    "SystemRandomSource",
    "count_set_bits",
    "draw_trial_value",
    "verify_random_source",
    "Subscription",
    "SubscriptionRegistry",
]
