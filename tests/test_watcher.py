import asyncio
import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from watchfiles import Change

from mdgraph.graph.build import BuildOptions
from mdgraph.graph.manager import GraphManager
from mdgraph.ingest.repository import InMemoryRepository
from mdgraph.watcher import (
    FileChanged,
    GraphWatcher,
    GraphWritten,
    Initialized,
    MarkdownFilter,
    Ready,
    WatcherState,
    WatchOptions,
    _collapse,
)


NO_NL = BuildOptions(natural_language=False)


async def _wait_for(predicate, timeout=5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.05)


class TestChangeHandling(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.out = self.root / "graph.json"
        self.repo = InMemoryRepository({"a": "# A", "b": "# B\n\n[[a]]"})
        manager = GraphManager(self.repo, options=NO_NL)
        await manager.initialize()
        self.watcher = GraphWatcher(
            WatchOptions(target_directory=self.root, output_file=self.out, debounce_ms=50),
            manager=manager,
        )
        self.events = []
        self.watcher.subscribe(self.events.append)

    async def asyncTearDown(self):
        await self.watcher.stop()
        self._tmp.cleanup()

    def _of(self, kind):
        return [e for e in self.events if isinstance(e, kind)]

    async def test_burst_of_changes_writes_once_with_final_state(self):
        for i in range(5):
            self.repo.put("a", f"# Version {i}")
            await self.watcher.handle_change("changed", "a")

        await _wait_for(lambda: self._of(GraphWritten))
        await asyncio.sleep(0.2)

        self.assertEqual(len(self._of(FileChanged)), 5)
        written = self._of(GraphWritten)
        self.assertEqual(len(written), 1)
        self.assertEqual(written[0].output_file, self.out)
        data = json.loads(self.out.read_text(encoding="utf-8"))
        self.assertEqual(data["nodes"]["a"]["label"], "Version 4")

    async def test_removal(self):
        await self.watcher.handle_change("removed", "a")
        [event] = self._of(FileChanged)
        self.assertEqual(event.change_type, "removed")
        self.assertEqual(event.stats.node_count, 1)
        self.assertEqual(event.stats.link_count, 0)

    async def test_failures_are_logged_not_raised(self):
        self.watcher.manager = mock.Mock()
        self.watcher.manager.update_file = mock.AsyncMock(side_effect=RuntimeError("boom"))
        with self.assertLogs("mdgraph.watcher", level="ERROR"):
            await self.watcher.handle_change("changed", "a")
        self.assertEqual(self._of(FileChanged), [])

    async def test_subscriber_errors_do_not_stop_others(self):
        def broken(event):
            raise ValueError("subscriber bug")

        self.watcher.subscribe(broken)
        later = []
        self.watcher.subscribe(later.append)
        with self.assertLogs("mdgraph.watcher", level="ERROR"):
            await self.watcher.handle_change("removed", "b")
        self.assertEqual(len(later), 1)

    async def test_unsubscribe(self):
        received = []
        unsubscribe = self.watcher.subscribe(received.append)
        unsubscribe()
        await self.watcher.handle_change("removed", "b")
        self.assertEqual(received, [])

    async def test_stop_cancels_pending_write(self):
        await self.watcher.handle_change("removed", "b")
        await self.watcher.stop()
        await asyncio.sleep(0.1)
        self.assertEqual(self._of(GraphWritten), [])
        self.assertFalse(self.out.exists())


class TestWatcherLifecycle(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        (self.root / "a.md").write_text("# A\n", encoding="utf-8")

    def tearDown(self):
        self._tmp.cleanup()

    def _watcher(self):
        return GraphWatcher(
            WatchOptions(target_directory=self.root, debounce_ms=50, build=NO_NL, force_polling=True)
        )

    async def test_start_watch_and_stop(self):
        watcher = self._watcher()
        events = []
        watcher.subscribe(events.append)

        await watcher.start()
        try:
            self.assertEqual(watcher.state, WatcherState.WATCHING)
            self.assertIsInstance(events[0], Initialized)
            self.assertEqual(events[0].stats.node_count, 1)
            self.assertTrue(any(isinstance(e, GraphWritten) for e in events))
            self.assertTrue(any(isinstance(e, Ready) for e in events))
            self.assertTrue((self.root / ".garden-graph.json").exists())

            with self.assertRaises(RuntimeError):
                await watcher.start()

            (self.root / "b.md").write_text("# B\n\n[[a]]\n", encoding="utf-8")
            await _wait_for(
                lambda: any(isinstance(e, GraphWritten) and e.node_count == 2 for e in events)
            )
            data = json.loads((self.root / ".garden-graph.json").read_text(encoding="utf-8"))
            self.assertEqual(data["links"], [{"source": "b", "target": "a"}])
        finally:
            await watcher.stop()

        self.assertEqual(watcher.state, WatcherState.STOPPED)
        await watcher.stop()

    async def test_cannot_start_after_stop(self):
        watcher = self._watcher()
        await watcher.stop()
        with self.assertRaises(RuntimeError):
            await watcher.start()


class TestMarkdownFilter(unittest.TestCase):
    def setUp(self):
        self.root = Path("/notes")
        self.filter = MarkdownFilter(self.root, excludes=("node_modules",), include_hidden=False)

    def test_markdown_only(self):
        self.assertTrue(self.filter(Change.added, "/notes/a.md"))
        self.assertFalse(self.filter(Change.added, "/notes/a.txt"))

    def test_hidden_and_excluded(self):
        self.assertFalse(self.filter(Change.added, "/notes/.obsidian/a.md"))
        self.assertFalse(self.filter(Change.added, "/notes/node_modules/pkg/a.md"))
        hidden_ok = MarkdownFilter(self.root, excludes=(), include_hidden=True)
        self.assertTrue(hidden_ok(Change.added, "/notes/.obsidian/a.md"))

    def test_collapse(self):
        self.assertEqual(_collapse({Change.deleted}, exists=False), "removed")
        self.assertEqual(_collapse({Change.added, Change.modified}, exists=True), "added")
        self.assertEqual(_collapse({Change.deleted, Change.added}, exists=True), "added")
        self.assertEqual(_collapse({Change.modified}, exists=True), "changed")


if __name__ == "__main__":
    unittest.main()
