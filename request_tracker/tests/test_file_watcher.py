import asyncio
import tempfile
import types
import unittest
from pathlib import Path
from unittest.mock import patch

from watchfiles import Change

from request_tracker.services import file_watcher as watcher_module
from request_tracker.services.file_watcher import FileWatcher


class _FakeLibrary:
    def __init__(self, root: Path) -> None:
        self.root = root
        self.triggers: list[str] = []
        self.refreshed = asyncio.Event()

    async def refresh(self, trigger="api"):
        self.triggers.append(trigger)
        self.refreshed.set()


class FileWatcherTests(unittest.IsolatedAsyncioTestCase):
    def _root(self) -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        return Path(tmpdir.name)

    def test_relevant_changes_keep_only_log_files(self) -> None:
        watcher = FileWatcher()
        changes = {
            (Change.added, "/logs/b.json"),
            (Change.deleted, "/logs/a.JSON"),
            (Change.modified, "/logs/readme.md"),
        }
        self.assertEqual(
            watcher.relevant_changes(changes),
            [("deleted", "/logs/a.JSON"), ("modified", "/logs/b.json")],
        )

    async def test_change_batch_triggers_refresh(self) -> None:
        library = _FakeLibrary(self._root())
        batches = [
            {(Change.modified, str(library.root / "notes.txt"))},
            {(Change.added, str(library.root / "new.json"))},
        ]

        async def _fake_awatch(*paths, stop_event=None):
            for batch in batches:
                yield batch

        watcher = FileWatcher()
        with patch.object(watcher_module, "awatch", _fake_awatch):
            await watcher.start(library)
            await asyncio.wait_for(library.refreshed.wait(), timeout=5)
            await watcher.stop()

        self.assertEqual(library.triggers, ["watcher"])
        self.assertFalse(watcher.is_running)

    async def test_missing_root_stops_immediately(self) -> None:
        library = types.SimpleNamespace(root=self._root() / "missing")
        watcher = FileWatcher()
        await watcher.start(library)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        self.assertFalse(watcher.is_running)
        await watcher.stop()


if __name__ == "__main__":
    unittest.main()
