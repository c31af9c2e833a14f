"""Decode Cursor request logs (``session`` + ``entries``) and single-record files."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from request_tracker.parsers.platforms.common import record_list
from request_tracker.parsers.scalars import (
    as_dict,
    as_str,
    as_text_list,
    decode_bool,
    decode_float,
    decode_int,
    decode_timestamp,
    lookup,
)

SOURCE_KIND = "Cursor"


class CursorSuccessfulness(BaseModel):
    score: Optional[float] = None
    max_score: Optional[float] = None
    notes: list[str] = Field(default_factory=list)


class CursorEntry(BaseModel):
    request_id: str = ""
    model: str = ""
    model_provider: str = ""
    timestamp: Optional[datetime] = None
    exact_request: str = ""
    exact_request_note: str = ""
    context_applied: list[str] = Field(default_factory=list)
    interpretation: Any = None
    response: Any = None
    actions_taken: list[str] = Field(default_factory=list)
    actions: Any = None
    successfulness: Optional[CursorSuccessfulness] = None
    prior_failure_note: str = ""
    token_count: int = 0
    is_premium: bool = False
    raw: Any = None


class CursorRequestLog(BaseModel):
    description: str = ""
    session: str = ""
    session_label: str = ""
    started: Optional[datetime] = None
    updated: Optional[datetime] = None
    entries: list[CursorEntry] = Field(default_factory=list)


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return as_text_list(value)


def _decode_successfulness(value: Any) -> Optional[CursorSuccessfulness]:
    if not isinstance(value, dict):
        return None
    return CursorSuccessfulness(
        score=decode_float(lookup(value, "score")),
        max_score=decode_float(lookup(value, "maxScore")),
        notes=_string_list(lookup(value, "notes")),
    )


def _decode_entry(raw: dict[str, Any]) -> CursorEntry:
    cost = as_dict(lookup(raw, "cost"))
    tokens = lookup(cost, "tokens")
    if tokens is None:
        tokens = lookup(raw, "totalTokens", "tokens")
    return CursorEntry(
        request_id=as_str(lookup(raw, "requestId")),
        model=as_str(lookup(raw, "model")),
        model_provider=as_str(lookup(raw, "modelProvider")),
        timestamp=decode_timestamp(lookup(raw, "timestamp")),
        exact_request=as_str(lookup(raw, "exactRequest")),
        exact_request_note=as_str(lookup(raw, "exactRequestNote")),
        context_applied=_string_list(lookup(raw, "contextApplied")),
        interpretation=lookup(raw, "interpretation"),
        response=lookup(raw, "response"),
        actions_taken=_string_list(lookup(raw, "actionsTaken")),
        actions=lookup(raw, "actions"),
        successfulness=_decode_successfulness(lookup(raw, "successfulness")),
        prior_failure_note=as_str(lookup(raw, "priorFailureNote")),
        token_count=max(0, decode_int(tokens)),
        is_premium=decode_bool(lookup(cost, "premiumRequests")),
        raw=raw,
    )


def decode_cursor_log(doc: dict[str, Any]) -> CursorRequestLog:
    return CursorRequestLog(
        description=as_str(lookup(doc, "description")),
        session=as_str(lookup(doc, "session")),
        session_label=as_str(lookup(doc, "sessionLabel")),
        started=decode_timestamp(lookup(doc, "started")),
        updated=decode_timestamp(lookup(doc, "updated")),
        entries=[_decode_entry(item) for item in record_list(doc, "entries")],
    )


def decode_cursor_record(doc: dict[str, Any]) -> CursorRequestLog:
    """Decode a file holding one bare entry into a one-entry log."""
    return CursorRequestLog(
        session=as_str(lookup(doc, "session")),
        session_label=as_str(lookup(doc, "sessionLabel")),
        entries=[_decode_entry(doc)],
    )
