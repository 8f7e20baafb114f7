"""
VeriGate Utilities
===================

Shared helpers for logging, token estimation and file I/O used
across the verifier, the monitoring sinks and the CLI.
"""

from __future__ import annotations

import json
import logging
import math
import sys
import time
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from verigate.schemas.verification import VerificationResult


def generate_run_id() -> str:
    """
    Generate a unique run ID for correlating log lines of one CLI run.

    Format: verigate-{timestamp}-{short_uuid}
    """
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    short_id = uuid.uuid4().hex[:8]
    return f"verigate-{timestamp}-{short_id}"


# ── Logging ────────────────────────────────────────────────────────

def setup_logging(
    level: str = "INFO",
    format_style: str = "text",
    run_id: str | None = None
) -> logging.Logger:
    """
    Configure structured logging for VeriGate.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        format_style: "json" for structured logs, "text" for human-readable.
        run_id: Optional run ID to include in all log entries.

    Returns:
        Configured Logger instance.
    """
    logger = logging.getLogger("verigate")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)

    if format_style == "json":
        class JsonFormatter(logging.Formatter):
            def format(self, record):
                log_entry = {
                    "timestamp": self.formatTime(record),
                    "level": record.levelname,
                    "logger": record.name,
                    "message": record.getMessage(),
                }
                if run_id:
                    log_entry["run_id"] = run_id
                if record.exc_info:
                    log_entry["exception"] = self.formatException(record.exc_info)
                return json.dumps(log_entry)

        handler.setFormatter(JsonFormatter())
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        if run_id:
            fmt = f"%(asctime)s | %(levelname)-8s | {run_id} | %(name)s | %(message)s"
        handler.setFormatter(logging.Formatter(fmt, datefmt="%H:%M:%S"))

    logger.addHandler(handler)
    return logger


def log_verification(result: "VerificationResult", logger: logging.Logger) -> None:
    """Log a completed verification; warn with issues when it was rejected."""
    logger.info(
        "Verification completed: valid=%s confidence=%.2f issues=%d latency=%.0fms "
        "tokens=%d cost=%.6f",
        result.is_valid,
        result.confidence,
        len(result.issues),
        result.metrics.latency_ms,
        result.metrics.total_tokens,
        result.metrics.cost,
    )
    if not result.is_valid and result.issues:
        logger.warning(
            "Content verification failed: issues=%s suggestions=%s",
            result.issues,
            result.suggestions,
        )


# ── Text Helpers ───────────────────────────────────────────────────

def estimate_tokens(text: str) -> int:
    """Length-based token estimate (~4 characters per token)."""
    return math.ceil(len(text) / 4)


def preview(text: str, limit: int = 200) -> str:
    """First ``limit`` characters of ``text`` for logs and error reports."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


# ── File I/O Helpers ───────────────────────────────────────────────

def save_json(data: Any, path: str | Path, indent: int = 2) -> Path:
    """Save data as formatted JSON file with UTF-8 encoding."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, ensure_ascii=False, default=str)
    return path


def load_lines(path: str | Path) -> list[str]:
    """
    Load batch inputs from a file.

    ``.jsonl`` files contribute one entry per line (a JSON string or an
    object with a ``content`` field); any other file contributes one
    entry per non-blank line.
    """
    path = Path(path)
    entries: list[str] = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            if path.suffix == ".jsonl":
                item = json.loads(line)
                entries.append(item["content"] if isinstance(item, dict) else str(item))
            else:
                entries.append(line)
    return entries
