"""
Retry Classifier
=================

Decides whether a failed provider call is transient (worth retrying
with backoff) or terminal. The predicate is total: it returns a bool
for every value, including None and objects without the usual
attributes, and never raises.
"""

from __future__ import annotations

import asyncio

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})

RETRYABLE_ERROR_CODES: frozenset[str] = frozenset({
    "ECONNRESET",
    "ETIMEDOUT",
    "ECONNREFUSED",
    "ENOTFOUND",
    "EAI_AGAIN",
    "NETWORK_ERROR",
})

_RETRYABLE_PHRASES: tuple[str, ...] = (
    "rate limit",
    "rate_limit",
    "too many requests",
    "quota exceeded",
    "timeout",
    "timed out",
)


def _status_of(error: object) -> object:
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if value is not None:
            return value
    return None


def is_retryable(error: object) -> bool:
    """
    True when ``error`` looks transient.

    Order of evidence:
        1. A transport error code (connection reset, refused, DNS, timeout)
        2. An HTTP status: 408/429/5xx gateway errors retry, any other
           status is terminal regardless of the message
        3. Builtin timeout / connection exceptions
        4. Rate-limit, quota or timeout phrasing in the message
    """
    try:
        if error is None:
            return False

        code = getattr(error, "code", None)
        if isinstance(code, str) and code.upper() in RETRYABLE_ERROR_CODES:
            return True

        status = _status_of(error)
        if isinstance(status, int) and not isinstance(status, bool):
            return status in RETRYABLE_STATUS_CODES

        if isinstance(error, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
            return True

        message = str(getattr(error, "message", None) or error).lower()
        return any(phrase in message for phrase in _RETRYABLE_PHRASES)
    except Exception:
        return False


def backoff_delay(attempt: int, base: float = 1.0) -> float:
    """Delay before retry number ``attempt + 1``: base, 2·base, 4·base, ..."""
    return base * (2 ** attempt)
