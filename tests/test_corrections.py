import pytest
from hypothesis import given
from hypothesis import strategies as st

from rngsight.stats.common.corrections import (
    benjamini_hochberg_correction,
    bonferroni_correction,
    holm_correction,
)

p_lists = st.lists(st.floats(min_value=0.0, max_value=1.0), min_size=1, max_size=30)


def test_bonferroni_multiplies_and_caps():
    assert bonferroni_correction([0.01, 0.2, 0.5]) == pytest.approx([0.03, 0.6, 1.0])


def test_holm_is_monotone_in_rank():
    assert holm_correction([0.01, 0.02, 0.03]) == pytest.approx([0.03, 0.04, 0.04])
    assert holm_correction([0.03, 0.01, 0.02]) == pytest.approx([0.04, 0.03, 0.04])


def test_benjamini_hochberg_known_values():
    adjusted = benjamini_hochberg_correction([0.01, 0.04, 0.03, 0.005])
    assert adjusted == pytest.approx([0.02, 0.04, 0.04, 0.02])


def test_empty_input():
    assert bonferroni_correction([]) == []
    assert holm_correction([]) == []
    assert benjamini_hochberg_correction([]) == []


@given(p_lists)
def test_adjusted_values_stay_in_range_and_never_shrink(ps):
    for correct in (bonferroni_correction, holm_correction, benjamini_hochberg_correction):
        adjusted = correct(ps)
        assert len(adjusted) == len(ps)
        for p, a in zip(ps, adjusted):
            assert 0.0 <= a <= 1.0
            assert a >= p - 1e-12


@given(p_lists)
def test_adjusted_values_preserve_order(ps):
    order = sorted(range(len(ps)), key=lambda i: ps[i])
    for correct in (holm_correction, benjamini_hochberg_correction):
        adjusted = correct(ps)
        ranked = [adjusted[i] for i in order]
        assert ranked == sorted(ranked)


@given(p_lists)
def test_holm_never_exceeds_bonferroni(ps):
    for h, b in zip(holm_correction(ps), bonferroni_correction(ps)):
        assert h <= b + 1e-12
