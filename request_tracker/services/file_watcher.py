"""File watcher service using watchfiles.

Monitors the log root for changes to request logs and re-aggregates the
library when any of them is added, modified or deleted.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from watchfiles import Change, awatch

from request_tracker import config

logger = logging.getLogger("request_tracker.watcher")


class FileWatcher:
    """Background file watcher that triggers a library refresh on change."""

    def __init__(self, suffix: str = config.LOG_FILE_SUFFIX):
        self.suffix = suffix.lower()
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._running = False

    async def start(self, library) -> None:
        """Start watching the library's root in a background task."""
        if self._running:
            logger.warning("File watcher already running")
            return

        self._running = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._watch_loop(library))
        logger.info("File watcher started for %s", library.root)

    async def stop(self) -> None:
        """Stop the file watcher."""
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("File watcher stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    async def _watch_loop(self, library) -> None:
        root = library.root
        if not root.exists():
            logger.warning("Log root %s does not exist, watcher has nothing to monitor", root)
            self._running = False
            return

        try:
            async for changes in awatch(root, stop_event=self._stop_event):
                if not self._running:
                    break

                relevant = self.relevant_changes(changes)
                if relevant:
                    logger.info("Detected %d log file changes, refreshing...", len(relevant))
                    try:
                        await library.refresh(trigger="watcher")
                    except Exception as e:
                        logger.error("Error refreshing after file changes: %s", e)
        except asyncio.CancelledError:
            logger.info("File watcher task cancelled")
        except Exception as e:
            logger.error("File watcher error: %s", e)
        finally:
            self._running = False

    def relevant_changes(self, changes: set[tuple[Change, str]]) -> list[tuple[str, str]]:
        """Keep only changes to request log files, as (change_type, path) pairs."""
        result = []
        for change_type, path_str in changes:
            if not path_str.lower().endswith(self.suffix):
                continue
            if change_type == Change.deleted:
                result.append(("deleted", path_str))
            elif change_type in (Change.modified, Change.added):
                result.append(("modified", path_str))
        return sorted(result, key=lambda item: item[1])


# Singleton instance
file_watcher = FileWatcher()
