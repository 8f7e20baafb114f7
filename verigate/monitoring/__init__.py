"""
VeriGate Monitoring
====================

Metrics and error-reporting sinks consumed by the verifier. Both are
injected capabilities; neither can fail a verification.
"""

from verigate.monitoring.metrics import (
    InMemoryMetricsSink,
    JsonlMetricsSink,
    MetricRecord,
    MetricsSink,
    NullMetricsSink,
    check_health,
    filter_records,
    safe_write,
    summarize_records,
)
from verigate.monitoring.reporting import (
    ErrorReporter,
    LoggingErrorReporter,
    NullErrorReporter,
    RecordingErrorReporter,
    safe_report,
    scrub_sensitive,
)

__all__ = [
    "ErrorReporter",
    "InMemoryMetricsSink",
    "JsonlMetricsSink",
    "LoggingErrorReporter",
    "MetricRecord",
    "MetricsSink",
    "NullErrorReporter",
    "NullMetricsSink",
    "RecordingErrorReporter",
    "check_health",
    "filter_records",
    "safe_report",
    "safe_write",
    "scrub_sensitive",
    "summarize_records",
]
