"""
rngsight.stats.common.corrections
=================================

Multiple-comparison corrections.

Each function takes p-values in any order and returns adjusted p-values in
the same order, every one in [0, 1] and never smaller than its input.

Examples
--------
>>> from rngsight.stats.common.corrections import holm_correction
>>> [round(p, 4) for p in holm_correction([0.01, 0.02, 0.03])]
[0.03, 0.04, 0.04]
"""

from __future__ import annotations
from typing import List, Sequence


def _rank_order(p_values: Sequence[float]) -> List[int]:
    return sorted(range(len(p_values)), key=lambda i: p_values[i])


def bonferroni_correction(p_values: Sequence[float]) -> List[float]:
    m = len(p_values)
    return [min(p * m, 1.0) for p in p_values]


def benjamini_hochberg_correction(p_values: Sequence[float]) -> List[float]:
    """Benjamini-Hochberg FDR adjustment (step-up).

    Walking from the largest p-value down, each adjusted value is the smaller
    of ``p * m / rank`` and the adjusted value of the next larger p-value.
    """
    m = len(p_values)
    order = _rank_order(p_values)
    adjusted = [0.0] * m
    running = 1.0
    for k in range(m - 1, -1, -1):
        i = order[k]
        running = min(running, p_values[i] * m / (k + 1))
        adjusted[i] = running
    return adjusted


def holm_correction(p_values: Sequence[float]) -> List[float]:
    """Holm step-down adjustment.

    Walking from the smallest p-value up, each adjusted value is the larger of
    ``p * (m - k)`` and the previous adjusted value, capped at 1.
    """
    m = len(p_values)
    order = _rank_order(p_values)
    adjusted = [0.0] * m
    running = 0.0
    for k, i in enumerate(order):
        running = min(1.0, max(running, p_values[i] * (m - k)))
        adjusted[i] = running
    return adjusted
