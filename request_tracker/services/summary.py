"""Header roll-up for a canonical session."""
from __future__ import annotations

from collections import Counter

from request_tracker.date_utils import format_display
from request_tracker.models import CanonicalSession, LogSummary
from request_tracker.parsers.normalizer import UNRECOGNIZED_SOURCE_KIND
from request_tracker.services.aggregator import AGGREGATED_SOURCE_KIND

UNKNOWN_MODEL = "(unknown)"


def _format_score(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def summarize(session: CanonicalSession) -> LogSummary:
    counts = Counter((entry.model.strip() or UNKNOWN_MODEL) for entry in session.entries)
    by_model = dict(sorted(counts.items(), key=lambda item: (-item[1], item[0].lower())))
    stats_by_model = ""
    if by_model:
        stats_by_model = "By model: " + ", ".join(f"{model}: {count}" for model, count in by_model.items())

    scores = [entry.score for entry in session.entries if entry.score is not None]
    stats_by_success = ""
    if scores:
        stats_by_success = (
            f"Success score: min {_format_score(min(scores))}, "
            f"max {_format_score(max(scores))}, "
            f"avg {_format_score(sum(scores) / len(scores))}"
        )

    is_aggregate = session.source_kind == AGGREGATED_SOURCE_KIND
    if is_aggregate:
        lines = [
            f"Type: {AGGREGATED_SOURCE_KIND}",
            f"Total Entries: {session.entry_count}",
            f"Total Tokens: {session.total_tokens}",
            f"Aggregated at: {format_display(session.started_at)}",
        ]
    else:
        lines = [
            f"Type: {session.source_kind or 'Unknown'}",
            f"Session: {session.session_id}",
            f"Entries: {session.entry_count}",
        ]
        if session.default_model:
            lines.append(f"Model: {session.default_model}")
        if session.last_updated_at is not None:
            lines.append(f"Last Updated: {format_display(session.last_updated_at)}")

    schema_type = session.source_kind
    if not schema_type or schema_type == UNRECOGNIZED_SOURCE_KIND:
        schema_type = "Unknown"

    return LogSummary(
        schema_type=schema_type,
        total_count=session.entry_count,
        by_model=by_model,
        stats_by_model=stats_by_model,
        stats_by_success=stats_by_success,
        stats_cost_or_tokens=f"Total tokens: {session.total_tokens}",
        summary_lines=lines,
    )
