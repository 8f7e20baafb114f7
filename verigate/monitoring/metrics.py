"""
Metrics Sink
=============

Append-only record of verification outcomes. The verifier writes
exactly one ``MetricRecord`` per ``verify()`` call, success or failure.

Sinks:
    NullMetricsSink:     discards everything
    InMemoryMetricsSink: keeps records in a list (tests, ``stats``)
    JsonlMetricsSink:    one JSON object per line, appended to a file

Writing never fails a verification: ``safe_write`` logs and swallows
any sink error.

Also provides the read side used by ``verigate stats``:
``filter_records``, ``summarize_records`` and ``check_health``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from verigate.schemas.verification import utc_timestamp

logger = logging.getLogger("verigate.monitoring.metrics")

HEALTH_WINDOW = timedelta(hours=1)
HEALTH_MAX_FAILURES = 10


class MetricRecord(BaseModel):
    """One verification outcome as seen by the metrics store."""
    operation: str = "verify"
    execution_time_ms: float = Field(default=0.0, ge=0.0)
    tokens_used: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0.0)
    success: bool = True
    error_message: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: str = Field(default_factory=utc_timestamp)


@runtime_checkable
class MetricsSink(Protocol):
    """Anything that can accept a MetricRecord."""

    async def write(self, record: MetricRecord) -> None:
        ...


class NullMetricsSink:
    async def write(self, record: MetricRecord) -> None:
        return None


class InMemoryMetricsSink:
    """Keeps every record in ``self.records``, in write order."""

    def __init__(self):
        self.records: list[MetricRecord] = []

    async def write(self, record: MetricRecord) -> None:
        self.records.append(record)


class JsonlMetricsSink:
    """
    Appends records to a JSONL file.

    Writes from concurrent batch items are serialized through an
    ``asyncio.Lock`` so lines never interleave; the file append itself
    runs in a worker thread.

    Args:
        path: Target file; parent directories are created on first write.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def write(self, record: MetricRecord) -> None:
        line = record.model_dump_json() + "\n"
        async with self._lock:
            await asyncio.to_thread(self._append, line)

    def _append(self, line: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line)

    def read(self) -> list[MetricRecord]:
        """Load every record written so far (missing file → empty list)."""
        if not self.path.exists():
            return []
        records = []
        with open(self.path, "r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(MetricRecord.model_validate_json(line))
                except ValueError as e:
                    logger.warning(f"Skipping malformed metrics line {line_no} in {self.path}: {e}")
        return records


async def safe_write(sink: Optional[MetricsSink], record: MetricRecord) -> None:
    """Write ``record`` to ``sink``; any failure is logged, never raised."""
    if sink is None:
        return
    try:
        await sink.write(record)
    except Exception as e:
        logger.warning(f"Metrics sink write failed ({type(e).__name__}): {e}")


# ── Read side ──────────────────────────────────────────────────────

def _parse_ts(value: str) -> Optional[datetime]:
    try:
        ts = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def filter_records(
    records: Iterable[MetricRecord],
    hours: Optional[float] = None,
    operation: Optional[str] = None,
    provider: Optional[str] = None,
    now: Optional[datetime] = None,
) -> list[MetricRecord]:
    """
    Select records by recency, operation and provider.

    ``hours=None`` keeps every record regardless of age; records with an
    unreadable timestamp are dropped once a window is set.
    """
    cutoff = None
    if hours is not None:
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=hours)

    selected = []
    for record in records:
        if operation is not None and record.operation != operation:
            continue
        if provider is not None and record.metadata.get("provider") != provider:
            continue
        if cutoff is not None:
            ts = _parse_ts(record.timestamp)
            if ts is None or ts < cutoff:
                continue
        selected.append(record)
    return selected


def _aggregate(records: list[MetricRecord]) -> dict[str, Any]:
    total = len(records)
    successful = sum(1 for r in records if r.success)
    timestamps = sorted(r.timestamp for r in records)
    return {
        "total_calls": total,
        "successful_calls": successful,
        "failed_calls": total - successful,
        "success_rate": successful / total if total else 0.0,
        "avg_execution_time_ms": (
            sum(r.execution_time_ms for r in records) / total if total else 0.0
        ),
        "total_tokens": sum(r.tokens_used for r in records),
        "total_cost": sum(r.cost for r in records),
        "first_call": timestamps[0] if timestamps else None,
        "last_call": timestamps[-1] if timestamps else None,
    }


def summarize_records(
    records: Iterable[MetricRecord],
    hours: Optional[float] = None,
    operation: Optional[str] = None,
    provider: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Aggregate statistics over metric records.

    Args:
        records: Records to summarize.
        hours: Only count records from the last ``hours`` (all when None).
        operation: Only count records for this operation.
        provider: Only count records whose ``metadata["provider"]`` matches.
        now: Reference time for the window (defaults to the current time).

    Returns:
        Dict with total/successful/failed calls, success rate, average
        execution time, total tokens and cost, first/last timestamps, the
        applied filters, and ``by_provider``: the same figures per
        provider and model.
    """
    selected = filter_records(records, hours=hours, operation=operation, provider=provider, now=now)

    groups: dict[str, dict[str, list[MetricRecord]]] = {}
    for record in selected:
        provider_name = record.metadata.get("provider") or "unknown"
        model_name = record.metadata.get("model") or "unknown"
        groups.setdefault(provider_name, {}).setdefault(model_name, []).append(record)

    summary = _aggregate(selected)
    summary["filters"] = {"hours": hours, "operation": operation, "provider": provider}
    summary["by_provider"] = {
        provider_name: {model_name: _aggregate(group) for model_name, group in sorted(models.items())}
        for provider_name, models in sorted(groups.items())
    }
    return summary


def check_health(
    records: Iterable[MetricRecord],
    window: timedelta = HEALTH_WINDOW,
    now: Optional[datetime] = None,
    max_failures: int = HEALTH_MAX_FAILURES,
) -> dict[str, Any]:
    """
    Health over the recent window.

    Status is ``degraded`` when more than ``max_failures`` calls failed
    within ``window`` of ``now``, ``healthy`` otherwise. ``failure_rate``
    is failures over calls in the window. Latency figures cover every
    record inside the window.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - window

    recent = []
    for record in records:
        ts = _parse_ts(record.timestamp)
        if ts is not None and ts >= cutoff:
            recent.append(record)

    failures = sum(1 for r in recent if not r.success)
    latencies = [r.execution_time_ms for r in recent]

    return {
        "status": "degraded" if failures > max_failures else "healthy",
        "window_seconds": int(window.total_seconds()),
        "calls": len(recent),
        "failures": failures,
        "failure_rate": failures / len(recent) if recent else 0.0,
        "latency_ms": {
            "avg": sum(latencies) / len(latencies) if latencies else 0.0,
            "max": max(latencies) if latencies else 0.0,
            "min": min(latencies) if latencies else 0.0,
        },
        "checked_at": now.isoformat(),
    }
