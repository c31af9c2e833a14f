"""Flat, filterable search index over canonical entries."""
from __future__ import annotations

from typing import Optional, Sequence

from request_tracker.date_utils import format_display, format_iso
from request_tracker.models import CanonicalSession, SearchableEntry, SearchFilters, TreeNode
from request_tracker.services.tree import find_node_by_source_path

DISPLAY_TEXT_LIMIT = 60


def _display_text(query_text: str, position: int) -> str:
    display = (query_text or "").strip()
    if len(display) > DISPLAY_TEXT_LIMIT:
        display = display[: DISPLAY_TEXT_LIMIT - 3] + "..."
    return display or f"Entry {position}"


def build_index(session: CanonicalSession) -> list[SearchableEntry]:
    """One searchable row per entry, in the session's entry order."""
    index: list[SearchableEntry] = []
    for i, entry in enumerate(session.entries):
        timestamp_display = format_display(entry.timestamp)
        search_text = " ".join(
            [
                entry.request_id,
                entry.query_text,
                entry.query_title,
                entry.model,
                entry.agent,
                timestamp_display,
                entry.status,
            ]
        )
        index.append(
            SearchableEntry(
                request_id=entry.request_id,
                display_text=_display_text(entry.query_text, i + 1),
                timestamp_raw=format_iso(entry.timestamp),
                timestamp_display=timestamp_display,
                model=entry.model,
                agent=entry.agent,
                entry_index=i,
                source_path=f"entries[{i}]",
                search_text=search_text,
                entry=entry,
            )
        )
    return index


def _matches_exact(value: str, wanted: str) -> bool:
    return not wanted or value.lower() == wanted.lower()


def filter_index(index: Sequence[SearchableEntry], filters: SearchFilters) -> list[SearchableEntry]:
    """Evaluate all filters against the full index.

    Field filters are case-insensitive equality tests combined with AND; an
    empty filter is ignored. The free-text filter is a case-insensitive
    substring match against any of the searchable fields.
    """
    request_id = filters.request_id.strip()
    display_text = filters.display_text.strip()
    model = filters.model.strip()
    agent = filters.agent.strip()
    timestamp = filters.timestamp.strip()
    text = filters.text.strip().lower()

    results: list[SearchableEntry] = []
    for item in index:
        if not (
            _matches_exact(item.request_id, request_id)
            and _matches_exact(item.display_text, display_text)
            and _matches_exact(item.model, model)
            and _matches_exact(item.agent, agent)
            and _matches_exact(item.timestamp_display, timestamp)
        ):
            continue
        if text and not any(
            text in (field or "").lower()
            for field in (
                item.search_text,
                item.request_id,
                item.display_text,
                item.model,
                item.agent,
                item.timestamp_raw,
            )
        ):
            continue
        results.append(item)
    return results


def facet_values(index: Sequence[SearchableEntry]) -> dict[str, list[str]]:
    """Distinct non-empty models and agents for filter pick-lists."""
    models = sorted({item.model for item in index if item.model.strip()}, key=str.lower)
    agents = sorted({item.agent for item in index if item.agent.strip()}, key=str.lower)
    return {"models": models, "agents": agents}


def find_by_source_path(
    target: TreeNode | Sequence[SearchableEntry],
    path: str,
) -> Optional[TreeNode | SearchableEntry]:
    """Resolve a source path such as ``entries[3]`` in a tree or an index."""
    if not path:
        return None
    if isinstance(target, TreeNode):
        return find_node_by_source_path(target, path)
    wanted = path.lower()
    for item in target:
        if item.source_path.lower() == wanted:
            return item
    return None
