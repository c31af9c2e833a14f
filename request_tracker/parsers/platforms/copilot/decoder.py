"""Decode Copilot session logs (``sessionId`` + ``statistics`` + ``requests``)."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from request_tracker.models import Workspace
from request_tracker.parsers.platforms.common import decode_workspace, record_list
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

SOURCE_KIND = "Copilot"


class CopilotStatistics(BaseModel):
    average_success_score: Optional[float] = None
    total_net_tokens: Optional[int] = None
    total_net_premium_requests: Optional[float] = None
    completed_count: Optional[int] = None
    in_progress_count: Optional[int] = None
    failed_count: Optional[int] = None
    raw: dict[str, Any] = Field(default_factory=dict)


class CopilotRequest(BaseModel):
    request_id: str = ""
    request_number: Optional[int] = None
    slug: str = ""
    timestamp: Optional[datetime] = None
    model: str = ""
    model_provider: str = ""
    title: str = ""
    user_request: str = ""
    status: str = ""
    context: Any = None
    response: Any = None
    interpretation: Any = None
    actions: Any = None
    actions_taken: list[str] = Field(default_factory=list)
    token_count: int = 0
    is_premium: bool = False
    score: Optional[float] = None
    raw: Any = None


class CopilotSessionLog(BaseModel):
    session_id: str = ""
    started: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    completed: Optional[datetime] = None
    status: str = ""
    total_requests: Optional[int] = None
    completed_requests: Optional[int] = None
    model: str = ""
    model_provider: str = ""
    workspace: Optional[Workspace] = None
    statistics: Optional[CopilotStatistics] = None
    requests: list[CopilotRequest] = Field(default_factory=list)


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return decode_int(value)


def _decode_statistics(value: Any) -> Optional[CopilotStatistics]:
    if not isinstance(value, dict):
        return None
    tokens = lookup(value, "totalNetTokens")
    if tokens is None:
        tokens = lookup(value, "totalTokens")
    return CopilotStatistics(
        average_success_score=decode_float(lookup(value, "averageSuccessScore")),
        total_net_tokens=max(0, decode_int(tokens)) if tokens is not None else None,
        total_net_premium_requests=decode_float(lookup(value, "totalNetPremiumRequests")),
        completed_count=_optional_int(lookup(value, "completedCount")),
        in_progress_count=_optional_int(lookup(value, "inProgressCount")),
        failed_count=_optional_int(lookup(value, "failedCount")),
        raw=value,
    )


def _decode_request(raw: dict[str, Any]) -> CopilotRequest:
    cost = as_dict(lookup(raw, "cost"))
    tokens = lookup(cost, "tokens")
    if tokens is None:
        tokens = lookup(raw, "totalTokens", "tokens")
    actions_taken = lookup(raw, "actionsTaken")
    return CopilotRequest(
        request_id=as_str(lookup(raw, "requestId")),
        request_number=_optional_int(lookup(raw, "requestNumber")),
        slug=as_str(lookup(raw, "slug")),
        timestamp=decode_timestamp(lookup(raw, "timestamp")),
        model=as_str(lookup(raw, "model")),
        model_provider=as_str(lookup(raw, "modelProvider")),
        title=as_str(lookup(raw, "title")),
        user_request=as_str(lookup(raw, "userRequest")),
        status=as_str(lookup(raw, "status")),
        context=lookup(raw, "context"),
        response=lookup(raw, "response"),
        interpretation=lookup(raw, "interpretation"),
        actions=lookup(raw, "actions"),
        actions_taken=as_text_list(actions_taken) if isinstance(actions_taken, list) else [],
        token_count=max(0, decode_int(tokens)),
        is_premium=decode_bool(lookup(cost, "premiumRequests")),
        score=decode_float(lookup(raw, "score", "successScore")),
        raw=raw,
    )


def decode_copilot_session(doc: dict[str, Any]) -> CopilotSessionLog:
    """Decode a Copilot session document; mistyped fields fall back to defaults."""
    return CopilotSessionLog(
        session_id=as_str(lookup(doc, "sessionId")),
        started=decode_timestamp(lookup(doc, "started")),
        last_updated=decode_timestamp(lookup(doc, "lastUpdated")),
        completed=decode_timestamp(lookup(doc, "completed")),
        status=as_str(lookup(doc, "status")),
        total_requests=_optional_int(lookup(doc, "totalRequests")),
        completed_requests=_optional_int(lookup(doc, "completedRequests")),
        model=as_str(lookup(doc, "model")),
        model_provider=as_str(lookup(doc, "modelProvider")),
        workspace=decode_workspace(lookup(doc, "workspace")),
        statistics=_decode_statistics(lookup(doc, "statistics")),
        requests=[_decode_request(item) for item in record_list(doc, "requests")],
    )
