"""Request log API: aggregate status, search, tree and single-document parsing."""
from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request
from pydantic import BaseModel, Field

from request_tracker.models import PaginatedResponse, SearchableEntry, SearchFilters
from request_tracker.parsers.errors import NormalizationError
from request_tracker.parsers.platforms.registry import classify_and_normalize
from request_tracker.parsers.platforms.unified.decoder import serialize_unified
from request_tracker.services.file_watcher import file_watcher
from request_tracker.services.library import LibraryNotReady, LogLibrary
from request_tracker.services.summary import summarize
from request_tracker.services.tree import error_tree, project_tree

logger = logging.getLogger("request_tracker.logs")

logs_router = APIRouter(prefix="/api/logs", tags=["logs"])


class RefreshRequest(BaseModel):
    background: bool = True
    trigger: str = "api"


class ParseRequest(BaseModel):
    text: str = Field(..., min_length=1)
    path: str = ""


def _get_library(request: Request) -> LogLibrary:
    library = getattr(request.app.state, "library", None)
    if not library:
        raise HTTPException(status_code=503, detail="Log library not initialized")
    return library


def _not_ready(exc: LibraryNotReady) -> HTTPException:
    return HTTPException(status_code=503, detail=str(exc))


@logs_router.get("")
async def get_logs_status(request: Request):
    """Return the published aggregate's status, summary and refresh operations."""
    library = _get_library(request)
    payload = library.status()
    payload["watcher"] = "running" if file_watcher.is_running else "stopped"
    payload["summary"] = library.summary().model_dump(by_alias=True) if library.is_ready else None
    return payload


@logs_router.post("/refresh")
async def trigger_refresh(request: Request, background_tasks: BackgroundTasks, body: RefreshRequest):
    """Re-aggregate the log root, in the background or inline."""
    library = _get_library(request)

    if body.background:
        background_tasks.add_task(library.refresh, body.trigger)
        return {"status": "ok", "mode": "background", "message": "Refresh triggered in background"}

    result = await library.refresh(body.trigger)
    if result is None:
        return {"status": "cancelled", "mode": "foreground", "message": "Superseded by a newer refresh"}
    return {
        "status": "ok",
        "mode": "foreground",
        "entryCount": result.session.entry_count,
        "filesTotal": result.files_total,
        "filesSkipped": result.files_skipped,
        "failures": [failure.model_dump(by_alias=True) for failure in result.failures],
    }


@logs_router.get("/entries", response_model=PaginatedResponse[SearchableEntry])
async def list_entries(
    request: Request,
    q: str = "",
    request_id: str = Query("", alias="requestId"),
    display_text: str = Query("", alias="displayText"),
    model: str = "",
    agent: str = "",
    timestamp: str = "",
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
):
    """Filtered, paginated search over the aggregate's entries."""
    library = _get_library(request)
    filters = SearchFilters(
        request_id=request_id,
        display_text=display_text,
        model=model,
        agent=agent,
        timestamp=timestamp,
        text=q,
    )
    try:
        return library.search(filters, offset=offset, limit=limit)
    except LibraryNotReady as exc:
        raise _not_ready(exc) from exc


@logs_router.get("/entry")
async def get_entry(request: Request, path: str = Query(..., min_length=1)):
    """Return the canonical entry addressed by a source path such as ``entries[3]``."""
    library = _get_library(request)
    try:
        entry = library.entry_by_source_path(path)
    except LibraryNotReady as exc:
        raise _not_ready(exc) from exc
    if entry is None:
        raise HTTPException(status_code=404, detail=f"No entry at {path}")
    return entry.model_dump(mode="json", by_alias=True)


@logs_router.get("/tree")
async def get_tree(request: Request):
    library = _get_library(request)
    try:
        return library.tree().model_dump(by_alias=True)
    except LibraryNotReady as exc:
        raise _not_ready(exc) from exc


@logs_router.get("/facets")
async def get_facets(request: Request):
    library = _get_library(request)
    try:
        return library.facets()
    except LibraryNotReady as exc:
        raise _not_ready(exc) from exc


@logs_router.post("/parse")
async def parse_document(body: ParseRequest):
    """Normalize one pasted document without touching the published aggregate."""
    try:
        session = classify_and_normalize(body.text, body.path)
    except NormalizationError as exc:
        logger.info("Rejected pasted document: %s", exc)
        raise HTTPException(
            status_code=422,
            detail={"message": exc.message, "tree": error_tree(exc.message).model_dump(by_alias=True)},
        ) from exc
    return {
        "sourceType": session.source_kind,
        "unified": serialize_unified(session),
        "summary": summarize(session).model_dump(by_alias=True),
        "tree": project_tree(session).model_dump(by_alias=True),
    }
