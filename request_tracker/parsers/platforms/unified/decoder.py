"""Read and write the unified (pre-normalized) request-log shape."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from request_tracker.models import CanonicalSession, Workspace
from request_tracker.parsers.platforms.common import decode_workspace, record_list
from request_tracker.parsers.scalars import (
    as_str,
    as_text_list,
    decode_bool,
    decode_float,
    decode_int,
    decode_timestamp,
    lookup,
)

DEFAULT_SOURCE_KIND = "Unified"


class UnifiedEntryRecord(BaseModel):
    request_id: str = ""
    timestamp: Optional[datetime] = None
    model: str = ""
    model_provider: str = ""
    agent: str = ""
    query_text: str = ""
    query_title: str = ""
    response: Any = None
    context_list: list[str] = Field(default_factory=list)
    raw_context: Any = None
    token_count: int = 0
    is_premium: bool = False
    score: Optional[float] = None
    status: str = ""
    tags: list[str] = Field(default_factory=list)
    failure_note: str = ""
    interpretation: Any = None
    actions: Any = None
    source_file: str = ""
    original_entry: Any = None
    raw: Any = None


class UnifiedSessionLog(BaseModel):
    source_type: str = DEFAULT_SOURCE_KIND
    session_id: str = ""
    title: str = ""
    model: str = ""
    started: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    status: str = ""
    total_tokens: Optional[int] = None
    workspace: Optional[Workspace] = None
    source_statistics: Optional[dict[str, Any]] = None
    session_label: str = ""
    entries: list[UnifiedEntryRecord] = Field(default_factory=list)


def _list_field(raw: dict[str, Any], key: str) -> list[str]:
    value = lookup(raw, key)
    return as_text_list(value) if isinstance(value, list) else []


def _decode_entry(raw: dict[str, Any]) -> UnifiedEntryRecord:
    return UnifiedEntryRecord(
        request_id=as_str(lookup(raw, "requestId")),
        timestamp=decode_timestamp(lookup(raw, "timestamp")),
        model=as_str(lookup(raw, "model")),
        model_provider=as_str(lookup(raw, "modelProvider")),
        agent=as_str(lookup(raw, "agent")),
        query_text=as_str(lookup(raw, "queryText")),
        query_title=as_str(lookup(raw, "queryTitle")),
        response=lookup(raw, "response"),
        context_list=_list_field(raw, "contextList"),
        raw_context=lookup(raw, "rawContext"),
        token_count=max(0, decode_int(lookup(raw, "tokenCount"))),
        is_premium=decode_bool(lookup(raw, "isPremium")),
        score=decode_float(lookup(raw, "score")),
        status=as_str(lookup(raw, "status")),
        tags=_list_field(raw, "tags"),
        failure_note=as_str(lookup(raw, "failureNote")),
        interpretation=lookup(raw, "interpretation"),
        actions=lookup(raw, "actions"),
        source_file=as_str(lookup(raw, "sourceFile")),
        original_entry=lookup(raw, "originalEntry"),
        raw=raw,
    )


def decode_unified(doc: dict[str, Any]) -> UnifiedSessionLog:
    statistics = lookup(doc, "sourceStatistics")
    total_tokens = lookup(doc, "totalTokens")
    return UnifiedSessionLog(
        source_type=as_str(lookup(doc, "sourceType")) or DEFAULT_SOURCE_KIND,
        session_id=as_str(lookup(doc, "sessionId")),
        title=as_str(lookup(doc, "title")),
        model=as_str(lookup(doc, "model")),
        started=decode_timestamp(lookup(doc, "started")),
        last_updated=decode_timestamp(lookup(doc, "lastUpdated")),
        status=as_str(lookup(doc, "status")),
        total_tokens=max(0, decode_int(total_tokens)) if total_tokens is not None else None,
        workspace=decode_workspace(lookup(doc, "workspace")),
        source_statistics=statistics if isinstance(statistics, dict) else None,
        session_label=as_str(lookup(doc, "sessionLabel")),
        entries=[_decode_entry(item) for item in record_list(doc, "entries")],
    )


def serialize_unified(session: CanonicalSession) -> dict[str, Any]:
    """Dump a canonical session in the unified on-disk shape."""
    return session.model_dump(mode="json", by_alias=True)


def dumps_unified(session: CanonicalSession, indent: int | None = 2) -> str:
    return json.dumps(serialize_unified(session), indent=indent, ensure_ascii=False)
