"""Map platform-specific decoded logs into the canonical session model."""
from __future__ import annotations

import json
from typing import Any

from request_tracker.models import Action, CanonicalEntry, CanonicalSession
from request_tracker.parsers.platforms.copilot.decoder import (
    SOURCE_KIND as COPILOT_SOURCE_KIND,
    CopilotRequest,
    CopilotSessionLog,
)
from request_tracker.parsers.platforms.cursor.decoder import (
    SOURCE_KIND as CURSOR_SOURCE_KIND,
    CursorEntry,
    CursorRequestLog,
)
from request_tracker.parsers.platforms.unified.decoder import (
    UnifiedEntryRecord,
    UnifiedSessionLog,
)
from request_tracker.parsers.scalars import (
    as_str,
    as_text,
    as_text_list,
    decode_int,
    first_non_empty,
    has_key,
    lookup,
)

UNRECOGNIZED_SOURCE_KIND = "Unrecognized"
MULTIPLE_FILES = "Multiple files"

_INTERPRETATION_SECTIONS = (
    ("requirements", "Requirements:"),
    ("purpose", "Purpose:"),
    ("keyDecisions", "Key Decisions:"),
)


# ── Response / interpretation text ─────────────────────────────────

def flatten_response(value: Any) -> str:
    """Arrays concatenate element-wise; objects render as JSON text."""
    if value is None:
        return ""
    if isinstance(value, list):
        return "".join(as_text(item) for item in value)
    return as_text(value)


def _action_items(value: Any) -> list[Any] | None:
    """Return the raw items of an actions field, parsing JSON-encoded arrays."""
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.startswith("["):
            return None
        try:
            value = json.loads(stripped)
        except json.JSONDecodeError:
            return None
    if isinstance(value, list):
        return value
    return None


def synthesize_response(response: Any, interpretation: Any = None, actions: Any = None) -> str:
    """Use an explicit response when non-blank; otherwise build one.

    The synthesized text renders the interpretation summary and requirements
    followed by the actions as a numbered list. No material yields "".
    """
    explicit = flatten_response(response)
    if explicit.strip():
        return explicit

    blocks: list[str] = []
    if isinstance(interpretation, dict):
        summary = lookup(interpretation, "summary")
        if summary is not None:
            blocks.append(f"### Summary\n{as_text(summary)}")
        requirements = lookup(interpretation, "requirements")
        if isinstance(requirements, list):
            lines = ["### Requirements"] + [f"- {as_text(item)}" for item in requirements]
            blocks.append("\n".join(lines))

    items = _action_items(actions)
    if items:
        lines = ["### Actions Taken"]
        for item in items:
            if isinstance(item, dict):
                description = lookup(item, "description")
                text = as_text(description) if description is not None else as_text(item)
                order = lookup(item, "order")
                if order is not None:
                    lines.append(f"{as_text(order)}. {text}")
                    continue
                lines.append(f"- {text}")
            elif item is not None:
                lines.append(f"- {as_text(item)}")
        blocks.append("\n".join(lines))

    return "\n\n".join(blocks)


def extract_interpretation(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict):
        sections: list[str] = []
        summary = lookup(value, "summary")
        if summary is not None:
            sections.append(as_text(summary))
        for key, heading in _INTERPRETATION_SECTIONS:
            items = lookup(value, key)
            if isinstance(items, list):
                sections.append("\n".join([heading] + [f"- {as_text(item)}" for item in items]))
        return "\n\n".join(sections).strip()
    if isinstance(value, list):
        return "\n".join(as_text_list(value))
    return as_text(value)


# ── Actions ────────────────────────────────────────────────────────

def _explicit_order(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return decode_int(value)
    if isinstance(value, str) and value.strip().lstrip("+-").isdigit():
        return decode_int(value)
    return None


def _structured_action(item: dict[str, Any], position: int) -> Action:
    order = _explicit_order(lookup(item, "order"))
    if has_key(item, "filePath") or has_key(item, "file_path"):
        file_path = as_str(lookup(item, "filePath", "file_path"))
    elif has_key(item, "filePaths"):
        file_path = MULTIPLE_FILES
    else:
        file_path = ""
    return Action(
        order=order if order is not None else position,
        description=as_str(lookup(item, "description")),
        type=as_str(lookup(item, "type")),
        status=as_str(lookup(item, "status")),
        file_path=file_path,
    )


def parse_actions(value: Any) -> list[Action]:
    """Decode an actions field of any observed shape.

    Accepts plain string/number arrays, arrays of objects (with or without an
    explicit ``order``) and either of those JSON-encoded in a string. Anything
    unreadable yields no actions.
    """
    items = _action_items(value)
    if not items:
        return []
    actions: list[Action] = []
    for position, item in enumerate(items, start=1):
        if isinstance(item, dict):
            actions.append(_structured_action(item, position))
        elif isinstance(item, (str, int, float)) and not isinstance(item, bool):
            actions.append(Action(order=position, description=as_text(item)))
    return actions


def extract_actions(actions_taken: list[str], actions: Any) -> list[Action]:
    """Prefer the plain actions-taken list; fall back to the structured field."""
    if actions_taken:
        return parse_actions(actions_taken)
    return parse_actions(actions)


# ── Sessions ───────────────────────────────────────────────────────

def _copilot_entry(request: CopilotRequest) -> CanonicalEntry:
    entry = CanonicalEntry(
        request_id=request.request_id,
        timestamp=request.timestamp,
        model=request.model,
        model_provider=request.model_provider,
        query_text=request.user_request,
        query_title=first_non_empty(request.title, request.slug),
        response_text=synthesize_response(request.response, request.interpretation, request.actions),
        context_list=as_text_list(request.context),
        raw_context=request.context,
        token_count=request.token_count,
        is_premium=request.is_premium,
        score=request.score,
        status=request.status or "Completed",
        interpretation_text=extract_interpretation(request.interpretation),
        actions=extract_actions(request.actions_taken, request.actions),
        original_entry=request.raw,
    )
    if request.request_number is not None:
        entry.tags.append(f"Request #{request.request_number}")
    if request.slug and request.slug != request.title:
        entry.tags.append(f"Slug: {request.slug}")
    return entry


def normalize_copilot(log: CopilotSessionLog) -> CanonicalSession:
    workspace = log.workspace
    entries = [_copilot_entry(request) for request in log.requests]
    statistics = log.statistics
    if statistics is not None and statistics.total_net_tokens is not None:
        total_tokens = statistics.total_net_tokens
    else:
        total_tokens = sum(entry.token_count for entry in entries)
    return CanonicalSession(
        source_kind=COPILOT_SOURCE_KIND,
        session_id=log.session_id,
        title=first_non_empty(
            workspace.project if workspace else "",
            workspace.repository if workspace else "",
            "Copilot Session",
        ),
        default_model=log.model,
        started_at=log.started,
        last_updated_at=log.last_updated or log.completed,
        status=log.status,
        entry_count=len(entries),
        total_tokens=total_tokens,
        workspace=workspace,
        source_statistics=statistics.raw if statistics is not None else None,
        entries=entries,
    )


def _cursor_entry(record: CursorEntry) -> CanonicalEntry:
    successfulness = record.successfulness
    score = successfulness.score if successfulness is not None else None
    entry = CanonicalEntry(
        request_id=record.request_id,
        timestamp=record.timestamp,
        model=record.model,
        model_provider=record.model_provider,
        query_text=record.exact_request,
        query_title=record.exact_request_note,
        response_text=flatten_response(record.response),
        context_list=list(record.context_applied),
        token_count=record.token_count,
        is_premium=record.is_premium,
        score=score,
        status="Scored" if score is not None else "Unknown",
        failure_note=record.prior_failure_note,
        interpretation_text=extract_interpretation(record.interpretation),
        actions=extract_actions(record.actions_taken, record.actions),
        original_entry=record.raw,
    )
    entry.tags.extend(record.actions_taken)
    if successfulness is not None:
        entry.tags.extend(successfulness.notes)
    return entry


def normalize_cursor(log: CursorRequestLog, single_record: bool = False) -> CanonicalSession:
    entries = [_cursor_entry(record) for record in log.entries]
    if single_record:
        title = first_non_empty(entries[0].query_title if entries else "", "Cursor Request")
    else:
        title = first_non_empty(log.description, log.session_label, "Cursor Session")
    return CanonicalSession(
        source_kind=CURSOR_SOURCE_KIND,
        session_id=log.session,
        title=title,
        default_model=log.entries[0].model if log.entries else "",
        started_at=log.started,
        last_updated_at=log.updated,
        status="Unknown",
        entry_count=len(entries),
        total_tokens=sum(entry.token_count for entry in entries),
        session_label=log.session_label,
        entries=entries,
    )


def _unified_entry(record: UnifiedEntryRecord) -> CanonicalEntry:
    return CanonicalEntry(
        request_id=record.request_id,
        timestamp=record.timestamp,
        model=record.model,
        model_provider=record.model_provider,
        agent=record.agent,
        query_text=record.query_text,
        query_title=record.query_title,
        response_text=flatten_response(record.response),
        context_list=list(record.context_list),
        raw_context=record.raw_context,
        token_count=record.token_count,
        is_premium=record.is_premium,
        score=record.score,
        status=record.status,
        tags=list(record.tags),
        failure_note=record.failure_note,
        interpretation_text=extract_interpretation(record.interpretation),
        actions=parse_actions(record.actions),
        source_file=record.source_file,
        original_entry=record.original_entry if record.original_entry is not None else record.raw,
    )


def normalize_unified(log: UnifiedSessionLog) -> CanonicalSession:
    entries = [_unified_entry(record) for record in log.entries]
    return CanonicalSession(
        source_kind=log.source_type,
        session_id=log.session_id,
        title=log.title,
        default_model=log.model,
        started_at=log.started,
        last_updated_at=log.last_updated,
        status=log.status,
        entry_count=len(entries),
        total_tokens=log.total_tokens if log.total_tokens is not None else sum(e.token_count for e in entries),
        workspace=log.workspace,
        source_statistics=log.source_statistics,
        session_label=log.session_label,
        entries=entries,
    )


def unrecognized_session(doc: Any) -> CanonicalSession:
    """Zero-entry session that still carries the raw document for inspection."""
    return CanonicalSession(
        source_kind=UNRECOGNIZED_SOURCE_KIND,
        session_id=as_str(lookup(doc, "sessionId", "session", "id")) if isinstance(doc, dict) else "",
        title="Unrecognized Document",
        status="Unrecognized",
        raw_document=doc,
    )


def backfill_agent(session: CanonicalSession) -> None:
    """Set ``agent`` on entries that do not carry one from the session's source kind."""
    for entry in session.entries:
        if not entry.agent:
            entry.agent = session.source_kind
