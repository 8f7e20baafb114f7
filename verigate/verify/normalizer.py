"""
Score Normalizer
=================

Maps the heterogeneous scales models use for confidence and category
scores onto a canonical [0, 1] value.

Scale detection:
    x <= 0          → 0
    0 < x <= 1      → x          (already a probability)
    1 < x <= 5      → x / 5      (0–5 rating)
    5 < x <= 10     → x / 10     (0–10 rating)
    10 < x <= 100   → x / 100    (percentage)
    x > 100         → 1          (clamped)

Every output lies in [0, 1], and [0, 1] maps onto itself, so the
function is idempotent.
"""

from __future__ import annotations

import math
import re
from typing import Any, Optional

DEFAULT_CONFIDENCE = 0.5

# Textual hedges some models return instead of a number
_TEXTUAL_CONFIDENCE: dict[str, float] = {
    "very high": 0.95,
    "certain": 0.95,
    "high": 0.85,
    "medium": 0.6,
    "moderate": 0.6,
    "uncertain": 0.4,
    "low": 0.3,
    "very low": 0.1,
    "none": 0.0,
}

_NUMBER_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*(%?)\s*$")


def normalize_score(score: float) -> float:
    """Normalize a raw numeric score to [0, 1]. Non-finite input yields 0."""
    try:
        value = float(score)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value) or value <= 0:
        return 0.0
    if value <= 1:
        return value
    if value <= 5:
        return value / 5
    if value <= 10:
        return value / 10
    if value <= 100:
        return value / 100
    return 1.0


def coerce_confidence(value: Any) -> Optional[float]:
    """
    Interpret a model-reported confidence.

    Accepts numbers, numeric strings (``"0.8"``, ``"85%"``) and textual
    hedges (``"high"``). Returns None when nothing usable was reported.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        return normalize_score(value)
    if isinstance(value, str):
        text = value.strip().lower()
        match = _NUMBER_RE.match(text)
        if match:
            number = float(match.group(1))
            if match.group(2):
                number = min(number / 100, 1.0)
            return normalize_score(number)
        if text in _TEXTUAL_CONFIDENCE:
            return _TEXTUAL_CONFIDENCE[text]
    return None


def calculate_confidence(value: Any, default: float = DEFAULT_CONFIDENCE) -> float:
    """Confidence in [0, 1], falling back to ``default`` when unusable."""
    coerced = coerce_confidence(value)
    return default if coerced is None else coerced
