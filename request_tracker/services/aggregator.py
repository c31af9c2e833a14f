"""Directory-wide aggregation of request logs into one master session.

Each file is read, classified and normalized on its own; a failure anywhere in
that chain skips the file and is counted, it never aborts the run. Entries
from all files are merged, sorted newest-first and de-duplicated by request id.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional

from request_tracker import config
from request_tracker.date_utils import newest_first_key
from request_tracker.models import (
    AggregationFailure,
    AggregationResult,
    CanonicalEntry,
    CanonicalSession,
)
from request_tracker.observability import record_aggregation, record_file_skipped, start_span
from request_tracker.parsers.errors import NormalizationError
from request_tracker.parsers.normalizer import UNRECOGNIZED_SOURCE_KIND, backfill_agent
from request_tracker.parsers.platforms.registry import classify_and_normalize

logger = logging.getLogger("request_tracker.aggregator")

AGGREGATED_SOURCE_KIND = "Aggregated"
AGGREGATED_SESSION_ID = "ALL-JSON"

ProgressCallback = Callable[[int, int], None]
CancellationCheck = Callable[[], bool]
FileReader = Callable[[Path], str]


class AggregationCancelled(Exception):
    """Raised between file reads when the caller asked the run to stop."""


def find_log_files(root: Path, suffix: str = config.LOG_FILE_SUFFIX) -> list[Path]:
    """Recursively list log files under ``root`` in a stable order."""
    if not root.exists():
        return []
    token = suffix.lower()
    return sorted(p for p in root.rglob("*") if p.suffix.lower() == token and p.is_file())


def read_log_file(path: Path) -> str:
    return path.read_text(encoding="utf-8-sig")


def sort_newest_first(entries: Iterable[CanonicalEntry]) -> list[CanonicalEntry]:
    """Stable descending sort by timestamp; entries without one go last."""
    return sorted(entries, key=lambda entry: newest_first_key(entry.timestamp), reverse=True)


def dedupe_entries(entries: Iterable[CanonicalEntry]) -> list[CanonicalEntry]:
    """Keep the first entry per non-empty request id (case-insensitive).

    Entries with an empty request id are always kept.
    """
    seen: set[str] = set()
    kept: list[CanonicalEntry] = []
    for entry in entries:
        key = entry.request_id.strip().casefold()
        if key:
            if key in seen:
                continue
            seen.add(key)
        kept.append(entry)
    return kept


def _report_progress(callback: Optional[ProgressCallback], processed: int, total: int) -> None:
    if callback is None:
        return
    try:
        callback(processed, total)
    except Exception:  # noqa: BLE001
        logger.warning("Progress callback failed at %d/%d", processed, total, exc_info=True)


def aggregate(
    paths: Iterable[Path],
    progress_callback: Optional[ProgressCallback] = None,
    cancellation_check: Optional[CancellationCheck] = None,
    reader: FileReader = read_log_file,
    root: str = "",
) -> AggregationResult:
    """Aggregate ``paths`` into one master session.

    ``cancellation_check`` is polled before every file read; when it returns
    true the run stops with AggregationCancelled and publishes nothing.
    """
    files = list(paths)
    total = len(files)
    t0 = time.monotonic()
    sessions: list[CanonicalSession] = []
    failures: list[AggregationFailure] = []
    unrecognized = 0

    with start_span("request_tracker.aggregate", {"root": root, "files": total}):
        for index, path in enumerate(files, start=1):
            if cancellation_check is not None and cancellation_check():
                logger.info("Aggregation cancelled after %d/%d files", index - 1, total)
                record_aggregation("cancelled", (time.monotonic() - t0) * 1000, root=root)
                raise AggregationCancelled(f"Cancelled after {index - 1} of {total} files")

            try:
                text = reader(path)
                session = classify_and_normalize(text, str(path))
            except NormalizationError as exc:
                failures.append(AggregationFailure(path=str(path), message=exc.message))
                logger.warning("Skipping %s: %s", path, exc.message)
                record_file_skipped("malformed", root=root)
            except (OSError, UnicodeDecodeError) as exc:
                failures.append(AggregationFailure(path=str(path), message=str(exc)))
                logger.warning("Skipping unreadable file %s: %s", path, exc)
                record_file_skipped("unreadable", root=root)
            except Exception as exc:  # noqa: BLE001
                failures.append(AggregationFailure(path=str(path), message=str(exc)))
                logger.exception("Unexpected failure while aggregating %s", path)
                record_file_skipped("unexpected", root=root)
            else:
                if session.source_kind == UNRECOGNIZED_SOURCE_KIND:
                    unrecognized += 1
                backfill_agent(session)
                sessions.append(session)

            _report_progress(progress_callback, index, total)

        merged = sort_newest_first(entry for session in sessions for entry in session.entries)
        deduped = dedupe_entries(merged)

    master = CanonicalSession(
        source_kind=AGGREGATED_SOURCE_KIND,
        session_id=AGGREGATED_SESSION_ID,
        title="All Requests",
        default_model="Various",
        started_at=datetime.now().astimezone(),
        last_updated_at=deduped[0].timestamp if deduped else None,
        status="Aggregated",
        entry_count=len(deduped),
        # Per-file totals, summed before de-duplication.
        total_tokens=sum(session.total_tokens for session in sessions),
        entries=deduped,
    )

    elapsed = int((time.monotonic() - t0) * 1000)
    result = AggregationResult(
        session=master,
        files_total=total,
        files_parsed=len(sessions),
        files_skipped=len(failures),
        files_unrecognized=unrecognized,
        duplicates_dropped=len(merged) - len(deduped),
        deduplicated_tokens=sum(entry.token_count for entry in deduped),
        elapsed_ms=elapsed,
        failures=failures,
    )
    record_aggregation(
        "partial" if failures else "success",
        elapsed,
        root=root,
        files_parsed=result.files_parsed,
        files_skipped=result.files_skipped,
        files_unrecognized=result.files_unrecognized,
        duplicates_dropped=result.duplicates_dropped,
    )
    logger.info(
        "Aggregated %d entries from %d files (%d skipped, %d duplicates) in %dms",
        master.entry_count,
        total,
        result.files_skipped,
        result.duplicates_dropped,
        elapsed,
    )
    return result
