"""Observability helpers."""

from request_tracker.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_aggregation,
    record_file_skipped,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_aggregation",
    "record_file_skipped",
]
