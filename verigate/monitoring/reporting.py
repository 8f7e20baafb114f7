"""
Error Reporting
================

Fire-and-forget capture of exceptions and messages. Context travels as
explicit ``tags`` / ``extra`` arguments on every call; there is no
ambient scope to mutate.

Reporters:
    LoggingErrorReporter  : writes reports to the ``verigate.errors`` logger
    NullErrorReporter     : discards everything
    RecordingErrorReporter: keeps reports in a list (tests)

``safe_report`` guarantees a reporter failure never reaches the caller.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional, Protocol, runtime_checkable

logger = logging.getLogger("verigate.monitoring.reporting")

_SENSITIVE_KEY_RE = re.compile(r"(api_?key|token|password|passwd|secret|authorization)$")
REDACTED = "[REDACTED]"


def scrub_sensitive(data: Any) -> Any:
    """
    Copy of ``data`` with credential-looking values redacted.

    A key is sensitive when it ends in a credential word, case-insensitively,
    so ``openaiApiKey`` and ``X-Auth-Token`` are caught while ``total_tokens``
    is not. Nested dicts and lists are scrubbed recursively.
    """
    if isinstance(data, dict):
        cleaned = {}
        for key, value in data.items():
            if _SENSITIVE_KEY_RE.search(str(key).lower().replace("-", "_")):
                cleaned[key] = REDACTED
            else:
                cleaned[key] = scrub_sensitive(value)
        return cleaned
    if isinstance(data, list):
        return [scrub_sensitive(item) for item in data]
    return data


@runtime_checkable
class ErrorReporter(Protocol):
    def capture_exception(
        self,
        error: BaseException,
        tags: Optional[dict[str, str]] = None,
        extra: Optional[dict[str, Any]] = None,
    ) -> None:
        ...

    def capture_message(
        self,
        message: str,
        level: str = "info",
        tags: Optional[dict[str, str]] = None,
        extra: Optional[dict[str, Any]] = None,
    ) -> None:
        ...


class NullErrorReporter:
    def capture_exception(self, error, tags=None, extra=None) -> None:
        return None

    def capture_message(self, message, level="info", tags=None, extra=None) -> None:
        return None


class LoggingErrorReporter:
    """Reports through the standard logging tree."""

    def __init__(self, logger_name: str = "verigate.errors"):
        self._logger = logging.getLogger(logger_name)

    def capture_exception(self, error, tags=None, extra=None) -> None:
        self._logger.error(
            f"{type(error).__name__}: {error} | tags={tags or {}} extra={scrub_sensitive(extra or {})}"
        )

    def capture_message(self, message, level="info", tags=None, extra=None) -> None:
        lvl = getattr(logging, str(level).upper(), logging.INFO)
        self._logger.log(lvl, f"{message} | tags={tags or {}} extra={scrub_sensitive(extra or {})}")


class RecordingErrorReporter:
    """Keeps every report as a dict in ``self.reports``."""

    def __init__(self):
        self.reports: list[dict[str, Any]] = []

    def capture_exception(self, error, tags=None, extra=None) -> None:
        self.reports.append({
            "kind": "exception",
            "error": error,
            "tags": dict(tags or {}),
            "extra": scrub_sensitive(extra or {}),
        })

    def capture_message(self, message, level="info", tags=None, extra=None) -> None:
        self.reports.append({
            "kind": "message",
            "message": message,
            "level": level,
            "tags": dict(tags or {}),
            "extra": scrub_sensitive(extra or {}),
        })


def safe_report(
    reporter: Optional[ErrorReporter],
    error: BaseException,
    tags: Optional[dict[str, str]] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Report ``error``; a failing reporter is logged and ignored."""
    if reporter is None:
        return
    try:
        reporter.capture_exception(error, tags=tags, extra=scrub_sensitive(extra or {}))
    except Exception as e:
        logger.warning(f"Error reporter failed ({type(e).__name__}): {e}")
