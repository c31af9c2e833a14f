"""Pydantic models for the canonical request-log model and its projections.

Python attributes are snake_case; the wire form is camelCase, matching the
unified on-disk shape that the unified decoder reads back.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    offset: int
    limit: int

# ── Canonical model ────────────────────────────────────────────────

class Workspace(_CamelModel):
    project: str = ""
    target_framework: str = ""
    repository: str = ""
    branch: str = ""


class Action(_CamelModel):
    order: int = 0
    description: str = ""
    type: str = ""
    status: str = ""
    file_path: str = ""  # "Multiple files" when the source listed several paths


class CanonicalEntry(_CamelModel):
    request_id: str = ""
    timestamp: Optional[datetime] = None
    model: str = ""
    model_provider: str = ""
    agent: str = ""  # source kind that produced the entry
    query_text: str = ""
    query_title: str = ""
    response_text: str = Field(default="", alias="response")
    context_list: list[str] = Field(default_factory=list)
    raw_context: Any = None
    token_count: int = 0
    is_premium: bool = False
    score: Optional[float] = None
    status: str = ""
    tags: list[str] = Field(default_factory=list)
    failure_note: str = ""
    interpretation_text: str = Field(default="", alias="interpretation")
    actions: list[Action] = Field(default_factory=list)
    source_file: str = ""
    original_entry: Any = None


class CanonicalSession(_CamelModel):
    source_kind: str = Field(default="", alias="sourceType")
    session_id: str = ""
    title: str = ""
    default_model: str = Field(default="", alias="model")
    started_at: Optional[datetime] = Field(default=None, alias="started")
    last_updated_at: Optional[datetime] = Field(default=None, alias="lastUpdated")
    status: str = ""
    entry_count: int = 0
    total_tokens: int = 0
    workspace: Optional[Workspace] = None
    source_statistics: Optional[dict[str, Any]] = None
    session_label: str = ""
    entries: list[CanonicalEntry] = Field(default_factory=list)
    # Raw document kept for inspecting unrecognized files; never serialized.
    raw_document: Any = Field(default=None, exclude=True)


# ── Aggregation ────────────────────────────────────────────────────

class AggregationFailure(_CamelModel):
    path: str
    message: str


class AggregationResult(_CamelModel):
    session: CanonicalSession
    files_total: int = 0
    files_parsed: int = 0
    files_skipped: int = 0
    files_unrecognized: int = 0
    duplicates_dropped: int = 0
    deduplicated_tokens: int = 0
    elapsed_ms: int = 0
    failures: list[AggregationFailure] = Field(default_factory=list)


# ── Search index ───────────────────────────────────────────────────

class SearchableEntry(_CamelModel):
    request_id: str = ""
    display_text: str = ""
    timestamp_raw: str = ""
    timestamp_display: str = ""
    model: str = ""
    agent: str = ""
    entry_index: int = 0
    source_path: str = ""  # e.g. "entries[7]"
    search_text: str = ""
    entry: Optional[CanonicalEntry] = Field(default=None, exclude=True)

    @property
    def list_line(self) -> str:
        if not self.timestamp_display:
            return f"{self.display_text} | {self.model}"
        return f"{self.display_text} | {self.model} | {self.timestamp_display}"


class SearchFilters(_CamelModel):
    request_id: str = ""
    display_text: str = ""
    model: str = ""
    agent: str = ""
    timestamp: str = ""
    text: str = ""


# ── Tree projection ────────────────────────────────────────────────

class TreeNode(_CamelModel):
    name: str
    value: str = ""
    type_tag: str = "Value"  # Object | Array | Value | Item | null | Error
    source_path: Optional[str] = None
    children: list[TreeNode] = Field(default_factory=list)


# ── Summary ────────────────────────────────────────────────────────

class LogSummary(_CamelModel):
    schema_type: str = "Unknown"
    total_count: int = 0
    by_model: dict[str, int] = Field(default_factory=dict)
    stats_by_model: str = ""
    stats_by_success: str = ""
    stats_cost_or_tokens: str = ""
    summary_lines: list[str] = Field(default_factory=list)
