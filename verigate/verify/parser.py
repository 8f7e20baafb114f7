"""
Response Parser
================

Extracts a structured verdict from raw model output.

Extraction ladder (first success wins):
    1. Whole-string JSON parse (after stripping markdown code fences)
    2. Greedy ``{...}`` span, parsed as JSON
    3. The same span after bounded textual repairs:
       - normalize escaped quotes (``\\"`` → ``"``, ``\\'`` → ``'``)
       - quote bare / single-quoted object keys
       - strip trailing commas before ``}`` and ``]``
    4. Heuristic free-text parse

A model that cannot follow the output schema is evidence about the
content, not a system failure, so nothing in this module raises: the
worst case is a low-information free-text result.

Every result records how it was obtained in ``metadata``:
    parse_path:         json | json_span | json_repaired | free_text
    confidence_source:  reported | default | explicit | heuristic
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from verigate.errors import ParseError
from verigate.schemas.verification import (
    CANONICAL_CATEGORIES,
    CategoryResult,
    VerificationCriteria,
    VerificationMetrics,
    VerificationResult,
)
from verigate.verify.normalizer import DEFAULT_CONFIDENCE, coerce_confidence, normalize_score

logger = logging.getLogger("verigate.verify.parser")

INCONCLUSIVE_REASON = "Verification inconclusive"
DEFAULT_ISSUES = ["Unable to verify"]
DEFAULT_SUGGESTIONS = ["Please try again"]
FALLBACK_REASON = "Automated analysis completed"
NO_ISSUES_FOUND = ["No specific issues mentioned"]
NO_SUGGESTIONS_FOUND = ["No suggestions provided"]

POSITIVE_WORDS = ("valid", "passed", "ok", "good", "safe", "appropriate", "acceptable")
NEGATIVE_WORDS = ("invalid", "failed", "bad", "unsafe", "inappropriate", "reject")
CONFIDENT_WORDS = ("definitely", "certainly", "clearly", "obviously", "undoubtedly")
UNCERTAIN_WORDS = ("maybe", "perhaps", "possibly", "likely", "probably")

_TRUE_STRINGS = {"true", "yes", "valid", "pass", "passed", "1"}

_JSON_SPAN_RE = re.compile(r"\{[\s\S]*\}")
_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?|\n?```\s*$")
_BARE_KEY_RE = re.compile(r"([{,]\s*)(['\"]?)([A-Za-z_][A-Za-z0-9_]*)\2\s*:")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_EXPLICIT_CONFIDENCE_RE = re.compile(
    r"confidence\b[^\d\n]{0,40}?(\d+(?:\.\d+)?)\s*(%?)", re.IGNORECASE
)
_REASON_RE = re.compile(r"reason[:\s]+([^.\n]+)", re.IGNORECASE)
_ISSUE_LABELS = ("issues?", "problems?", "concerns?")
_SUGGESTION_LABELS = ("suggestions?", "recommendations?", "improvements?")
_LIST_SPLIT_RE = re.compile(r"[,;•]|\s+-\s+")


# ── JSON extraction ────────────────────────────────────────────────

def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = _FENCE_RE.sub("", text).strip()
    return text


def _loads_object(text: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError, RecursionError) as e:
        raise ParseError(str(e)) from e
    if not isinstance(data, dict):
        raise ParseError(f"expected a JSON object, got {type(data).__name__}")
    return data


def repair_json(span: str) -> str:
    """Apply the bounded set of textual repairs to a ``{...}`` span."""
    repaired = span.replace("\\'", "'").replace('\\"', '"')
    repaired = _BARE_KEY_RE.sub(r'\1"\3":', repaired)
    repaired = _TRAILING_COMMA_RE.sub(r"\1", repaired)
    return repaired


def extract_json(text: str) -> tuple[Optional[dict[str, Any]], Optional[str]]:
    """
    Run the JSON extraction ladder.

    Returns:
        (data, parse_path) on success, (None, None) when every step failed.
    """
    cleaned = _strip_fences(text)

    try:
        return _loads_object(cleaned), "json"
    except ParseError:
        pass

    match = _JSON_SPAN_RE.search(cleaned)
    if not match:
        return None, None
    span = match.group(0)

    try:
        return _loads_object(span), "json_span"
    except ParseError:
        pass

    try:
        return _loads_object(repair_json(span)), "json_repaired"
    except ParseError as e:
        logger.debug(f"JSON repair failed: {e}")
        return None, None


# ── Structured path ────────────────────────────────────────────────

def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    if isinstance(value, (int, float)):
        return value != 0
    return False


def _coerce_score(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return normalize_score(value)
    coerced = coerce_confidence(value)
    return 0.0 if coerced is None else coerced


def _string_list(value: Any) -> Optional[list[str]]:
    if not isinstance(value, list):
        return None
    return [item if isinstance(item, str) else json.dumps(item, default=str) for item in value]


def _category_from(entry: Any) -> CategoryResult:
    if not isinstance(entry, dict):
        return CategoryResult.not_checked()
    explanation = entry.get("explanation")
    return CategoryResult(
        passed=_coerce_bool(entry.get("passed", False)),
        score=_coerce_score(entry.get("score", 0)),
        explanation=str(explanation) if explanation else "Not provided",
        details=_string_list(entry.get("details")),
    )


def validate_categories(
    raw: Any, criteria: Optional[VerificationCriteria] = None
) -> dict[str, CategoryResult]:
    """
    Build the category map from the model's ``categories`` object.

    Always contains the seven canonical names, plus any requested
    custom criteria; anything missing or malformed is "not checked".
    """
    source = raw if isinstance(raw, dict) else {}
    names = list(CANONICAL_CATEGORIES)
    if criteria is not None:
        names += [n for n in criteria.enabled() if n not in CANONICAL_CATEGORIES]
    return {name: _category_from(source.get(name)) for name in names}


def _from_structured(
    data: dict[str, Any], parse_path: str, criteria: Optional[VerificationCriteria]
) -> VerificationResult:
    is_valid = data.get("isValid", data.get("is_valid", False))
    confidence = coerce_confidence(data.get("confidence"))
    reason = data.get("reason")
    issues = _string_list(data.get("issues"))
    suggestions = _string_list(data.get("suggestions"))

    return VerificationResult(
        is_valid=_coerce_bool(is_valid),
        confidence=DEFAULT_CONFIDENCE if confidence is None else confidence,
        reason=str(reason) if reason else INCONCLUSIVE_REASON,
        issues=list(DEFAULT_ISSUES) if issues is None else issues,
        suggestions=list(DEFAULT_SUGGESTIONS) if suggestions is None else suggestions,
        categories=validate_categories(data.get("categories"), criteria),
        metrics=VerificationMetrics.zeroed(),
        metadata={
            "parse_path": parse_path,
            "confidence_source": "default" if confidence is None else "reported",
        },
    )


# ── Free-text fallback ─────────────────────────────────────────────

def estimate_confidence_from_text(text: str) -> tuple[float, str]:
    """
    Confidence from free text: an explicit "confidence ... <number>"
    wins; otherwise hedge words decide (0.8 confident, 0.4 uncertain,
    0.6 on a tie).
    """
    match = _EXPLICIT_CONFIDENCE_RE.search(text)
    if match:
        number = float(match.group(1))
        if match.group(2):
            number = min(number / 100, 1.0)
        return normalize_score(number), "explicit"

    lower = text.lower()
    confident = sum(1 for word in CONFIDENT_WORDS if word in lower)
    uncertain = sum(1 for word in UNCERTAIN_WORDS if word in lower)
    if confident > uncertain:
        return 0.8, "heuristic"
    if uncertain > confident:
        return 0.4, "heuristic"
    return 0.6, "heuristic"


def extract_reason(text: str) -> str:
    match = _REASON_RE.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    first_sentence = text.split(".")[0].strip()
    if len(first_sentence) > 10:
        return first_sentence
    return FALLBACK_REASON


def extract_list(text: str, labels: tuple[str, ...]) -> list[str]:
    """Items following any of ``labels``, split on commas/semicolons/bullets, de-duplicated."""
    items: list[str] = []
    for label in labels:
        pattern = re.compile(rf"\b{label}\b[:\s]+([^.\n]+)", re.IGNORECASE)
        for match in pattern.finditer(text):
            for part in _LIST_SPLIT_RE.split(match.group(1)):
                part = part.strip()
                if part and part not in items:
                    items.append(part)
    return items


def parse_free_text(text: str) -> VerificationResult:
    """Heuristic verdict for output that contains no usable JSON."""
    lower = text.lower()
    has_positive = any(word in lower for word in POSITIVE_WORDS)
    has_negative = any(word in lower for word in NEGATIVE_WORDS)
    confidence, source = estimate_confidence_from_text(text)
    issues = extract_list(text, _ISSUE_LABELS)
    suggestions = extract_list(text, _SUGGESTION_LABELS)

    return VerificationResult(
        is_valid=has_positive and not has_negative,
        confidence=confidence,
        reason=extract_reason(text),
        issues=issues or list(NO_ISSUES_FOUND),
        suggestions=suggestions or list(NO_SUGGESTIONS_FOUND),
        categories={},
        metrics=VerificationMetrics.zeroed(),
        metadata={"parse_path": "free_text", "confidence_source": source},
    )


# ── Entry point ────────────────────────────────────────────────────

def parse_response(
    raw_text: str,
    original_input: str,
    criteria: Optional[VerificationCriteria] = None,
) -> VerificationResult:
    """
    Turn raw model output into a VerificationResult.

    Metrics, provider and model are placeholders here; the verifier
    fills them in after the call.

    Args:
        raw_text: Text returned by the provider.
        original_input: The content that was verified (used in logs).
        criteria: Requested criteria, so custom criteria get category slots.
    """
    text = raw_text or ""
    data, parse_path = extract_json(text)
    if data is not None and parse_path is not None:
        return _from_structured(data, parse_path, criteria)

    logger.info(
        f"No JSON in model output ({len(text)} chars) for input of "
        f"{len(original_input)} chars; using free-text fallback"
    )
    return parse_free_text(text)
