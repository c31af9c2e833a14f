"""Holds the published aggregate for one log root and refreshes it.

A refresh runs ``aggregate`` in a worker thread. Starting a new refresh
supersedes any in-flight one: the older run sees its generation go stale at
its next file boundary and stops without publishing. The aggregate, its search
index and its tree are published together as one snapshot, so readers never
see a half-built index.
"""
from __future__ import annotations

import asyncio
import copy
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from request_tracker import config
from request_tracker.models import (
    AggregationResult,
    CanonicalEntry,
    LogSummary,
    PaginatedResponse,
    SearchableEntry,
    SearchFilters,
    TreeNode,
)
from request_tracker.services.aggregator import (
    AggregationCancelled,
    FileReader,
    aggregate,
    find_log_files,
    read_log_file,
)
from request_tracker.services.search_index import build_index, facet_values, filter_index, find_by_source_path
from request_tracker.services.summary import summarize
from request_tracker.services.tree import project_tree

logger = logging.getLogger("request_tracker.library")


class LibraryNotReady(RuntimeError):
    """No aggregate has been published yet."""


@dataclass
class _Snapshot:
    generation: int
    result: AggregationResult
    index: list[SearchableEntry]
    published_at: str
    tree: Optional[TreeNode] = field(default=None, repr=False)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class LogLibrary:
    def __init__(
        self,
        root: Path,
        suffix: str = config.LOG_FILE_SUFFIX,
        reader: FileReader = read_log_file,
        max_operation_history: int = 20,
    ) -> None:
        self.root = Path(root)
        self.suffix = suffix
        self._reader = reader
        self._generation = 0
        self._snapshot: Optional[_Snapshot] = None
        self._ops_lock = threading.Lock()
        self._operations: dict[str, dict[str, Any]] = {}
        self._operation_order: list[str] = []
        self._max_operation_history = max_operation_history

    # ── Operations ──────────────────────────────────────────────────

    def _start_operation(self, trigger: str, generation: int) -> str:
        op_id = f"OP-{uuid.uuid4()}"
        now = _now_iso()
        payload = {
            "id": op_id,
            "kind": "refresh",
            "trigger": trigger,
            "generation": generation,
            "status": "running",
            "startedAt": now,
            "updatedAt": now,
            "finishedAt": "",
            "progress": {"processed": 0, "total": 0},
            "stats": {},
            "error": "",
        }
        with self._ops_lock:
            self._operations[op_id] = payload
            self._operation_order.insert(0, op_id)
            for stale_id in self._operation_order[self._max_operation_history :]:
                self._operations.pop(stale_id, None)
            del self._operation_order[self._max_operation_history :]
        logger.info("Refresh started [%s] (root=%s trigger=%s)", op_id, self.root, trigger)
        return op_id

    def _update_progress(self, op_id: str, processed: int, total: int) -> None:
        with self._ops_lock:
            operation = self._operations.get(op_id)
            if operation is None:
                return
            operation["progress"] = {"processed": processed, "total": total}
            operation["updatedAt"] = _now_iso()

    def _finish_operation(self, op_id: str, status: str, stats: dict[str, Any] | None = None, error: str = "") -> None:
        now = _now_iso()
        with self._ops_lock:
            operation = self._operations.get(op_id)
            if operation is None:
                return
            operation["status"] = status
            operation["updatedAt"] = now
            operation["finishedAt"] = now
            if stats:
                operation["stats"].update(stats)
            if error:
                operation["error"] = error
        if status == "failed":
            logger.error("Refresh failed [%s]: %s", op_id, error)
        else:
            logger.info("Refresh finished [%s] status=%s", op_id, status)

    def list_operations(self, limit: int = 20) -> list[dict[str, Any]]:
        """Latest refresh operations, newest first."""
        with self._ops_lock:
            return [
                copy.deepcopy(self._operations[op_id])
                for op_id in self._operation_order[: max(1, limit)]
                if op_id in self._operations
            ]

    # ── Refresh ─────────────────────────────────────────────────────

    async def refresh(self, trigger: str = "api") -> Optional[AggregationResult]:
        """Re-aggregate the root and publish the result.

        Returns None when a newer refresh superseded this one.
        """
        self._generation += 1
        generation = self._generation
        op_id = self._start_operation(trigger, generation)

        def _cancelled() -> bool:
            return generation != self._generation

        def _progress(processed: int, total: int) -> None:
            self._update_progress(op_id, processed, total)

        try:
            paths = await asyncio.to_thread(find_log_files, self.root, self.suffix)
            self._update_progress(op_id, 0, len(paths))
            result = await asyncio.to_thread(
                aggregate,
                paths,
                _progress,
                _cancelled,
                self._reader,
                str(self.root),
            )
        except AggregationCancelled as exc:
            self._finish_operation(op_id, "cancelled", error=str(exc))
            return None
        except Exception as exc:
            self._finish_operation(op_id, "failed", error=str(exc))
            raise

        if _cancelled():
            self._finish_operation(op_id, "cancelled", error="Superseded by a newer refresh")
            return None

        index = build_index(result.session)
        self._snapshot = _Snapshot(
            generation=generation,
            result=result,
            index=index,
            published_at=_now_iso(),
        )
        self._finish_operation(
            op_id,
            "completed",
            stats={
                "entries": result.session.entry_count,
                "filesTotal": result.files_total,
                "filesParsed": result.files_parsed,
                "filesSkipped": result.files_skipped,
                "duplicatesDropped": result.duplicates_dropped,
                "elapsedMs": result.elapsed_ms,
            },
        )
        return result

    # ── Published views ─────────────────────────────────────────────

    def _require_snapshot(self) -> _Snapshot:
        snapshot = self._snapshot
        if snapshot is None:
            raise LibraryNotReady(f"No aggregate published yet for {self.root}")
        return snapshot

    @property
    def is_ready(self) -> bool:
        return self._snapshot is not None

    @property
    def result(self) -> AggregationResult:
        return self._require_snapshot().result

    def status(self) -> dict[str, Any]:
        snapshot = self._snapshot
        with self._ops_lock:
            active = [
                copy.deepcopy(self._operations[op_id])
                for op_id in self._operation_order
                if self._operations.get(op_id, {}).get("status") == "running"
            ]
        payload: dict[str, Any] = {
            "root": str(self.root),
            "ready": snapshot is not None,
            "generation": self._generation,
            "activeOperations": active,
            "recentOperations": self.list_operations(limit=5),
        }
        if snapshot is not None:
            result = snapshot.result
            payload.update(
                {
                    "publishedAt": snapshot.published_at,
                    "entryCount": result.session.entry_count,
                    "totalTokens": result.session.total_tokens,
                    "deduplicatedTokens": result.deduplicated_tokens,
                    "filesTotal": result.files_total,
                    "filesParsed": result.files_parsed,
                    "filesSkipped": result.files_skipped,
                    "filesUnrecognized": result.files_unrecognized,
                    "duplicatesDropped": result.duplicates_dropped,
                    "failures": [failure.model_dump(by_alias=True) for failure in result.failures],
                }
            )
        return payload

    def search(
        self,
        filters: SearchFilters | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> PaginatedResponse[SearchableEntry]:
        snapshot = self._require_snapshot()
        matches = filter_index(snapshot.index, filters or SearchFilters())
        offset = max(0, offset)
        limit = max(1, limit)
        return PaginatedResponse[SearchableEntry](
            items=matches[offset : offset + limit],
            total=len(matches),
            offset=offset,
            limit=limit,
        )

    def entry_by_source_path(self, path: str) -> Optional[CanonicalEntry]:
        snapshot = self._require_snapshot()
        item = find_by_source_path(snapshot.index, path)
        if item is None:
            return None
        return item.entry

    def tree(self) -> TreeNode:
        snapshot = self._require_snapshot()
        if snapshot.tree is None:
            snapshot.tree = project_tree(snapshot.result.session)
        return snapshot.tree

    def summary(self) -> LogSummary:
        return summarize(self._require_snapshot().result.session)

    def facets(self) -> dict[str, list[str]]:
        return facet_values(self._require_snapshot().index)
