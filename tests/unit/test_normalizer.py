"""
Score Normalizer Tests
=======================

Scale detection for model-reported confidence and category scores.
"""

from __future__ import annotations

import math

import pytest

from verigate.verify.normalizer import (
    DEFAULT_CONFIDENCE,
    calculate_confidence,
    coerce_confidence,
    normalize_score,
)


class TestNormalizeScore:

    @pytest.mark.parametrize("raw, expected", [
        (0, 0.0),
        (1, 1.0),
        (0.5, 0.5),
        (4, 0.8),
        (8, 0.8),
        (85, 0.85),
        (100, 1.0),
    ])
    def test_documented_examples(self, raw, expected):
        assert normalize_score(raw) == pytest.approx(expected)

    def test_values_above_100_are_clamped(self):
        assert normalize_score(150) == 1.0
        assert normalize_score(10_000) == 1.0

    def test_negative_and_non_finite_yield_zero(self):
        assert normalize_score(-3) == 0.0
        assert normalize_score(float("nan")) == 0.0
        assert normalize_score(float("inf")) == 0.0

    def test_unparseable_input_yields_zero(self):
        assert normalize_score("not a number") == 0.0
        assert normalize_score(None) == 0.0

    @pytest.mark.parametrize("raw", [0, 0.3, 1, 1.5, 3, 5, 5.5, 7, 10, 42, 99.9, 100, 250])
    def test_idempotent(self, raw):
        once = normalize_score(raw)
        assert normalize_score(once) == once
        assert 0.0 <= once <= 1.0


class TestCoerceConfidence:

    def test_numbers_are_normalized(self):
        assert coerce_confidence(0.7) == 0.7
        assert coerce_confidence(90) == pytest.approx(0.9)

    def test_numeric_strings(self):
        assert coerce_confidence("0.8") == pytest.approx(0.8)
        assert coerce_confidence("85%") == pytest.approx(0.85)
        assert coerce_confidence(" 7 ") == pytest.approx(0.7)
        assert coerce_confidence("150%") == 1.0

    def test_textual_hedges(self):
        assert coerce_confidence("High") == 0.85
        assert coerce_confidence("medium") == 0.6
        assert coerce_confidence("very low") == 0.1

    @pytest.mark.parametrize("value", [None, True, False, "somewhat", [], {}, float("nan")])
    def test_unusable_values_give_none(self, value):
        assert coerce_confidence(value) is None


class TestCalculateConfidence:

    def test_falls_back_to_default(self):
        assert calculate_confidence(None) == DEFAULT_CONFIDENCE
        assert calculate_confidence("??", default=0.2) == 0.2

    def test_uses_reported_value(self):
        assert math.isclose(calculate_confidence("9"), 0.9)
