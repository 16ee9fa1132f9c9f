"""Keep a graph JSON file in step with a directory of markdown files.

The watcher runs one initial scan, writes the graph, then subscribes to file
system notifications. Every change is applied to the in-memory graph straight
away; writing the file is debounced (trailing edge), so a burst of edits ends
in a single write of the final state.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Union

import anyio
from watchfiles import Change, DefaultFilter, awatch

from .graph.build import BuildOptions
from .graph.manager import GraphManager
from .graph.model import GraphStats
from .graph.store import DEFAULT_OUTPUT_NAME, save_graph
from .ingest.repository import DEFAULT_EXCLUDES, MARKDOWN_EXT, FileRepository


logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 300
# Wait this long without further changes to a batch before handling it.
FILE_STABILITY_MS = 100
# Poll interval of the notification thread; also bounds how long ready takes.
WATCH_TIMEOUT_MS = 100
POLL_DELAY_MS = 50

ChangeType = Literal["added", "changed", "removed"]


class WatcherState(str, enum.Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    WATCHING = "watching"
    STOPPED = "stopped"


_TRANSITIONS: dict[WatcherState, set[WatcherState]] = {
    WatcherState.IDLE: {WatcherState.SCANNING, WatcherState.STOPPED},
    WatcherState.SCANNING: {WatcherState.WATCHING, WatcherState.STOPPED},
    WatcherState.WATCHING: {WatcherState.STOPPED},
    WatcherState.STOPPED: set(),
}


@dataclass(frozen=True)
class Initialized:
    stats: GraphStats


@dataclass(frozen=True)
class GraphWritten:
    output_file: Path
    node_count: int
    link_count: int


@dataclass(frozen=True)
class FileChanged:
    file_path: str
    change_type: ChangeType
    stats: GraphStats


@dataclass(frozen=True)
class Ready:
    pass


WatchEvent = Union[Initialized, GraphWritten, FileChanged, Ready]
Subscriber = Callable[[WatchEvent], None]


@dataclass
class WatchOptions:
    target_directory: str | Path
    output_file: str | Path | None = None
    excludes: list[str] | None = None
    include_hidden: bool = False
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    build: BuildOptions = field(default_factory=BuildOptions)
    force_polling: bool | None = None


class MarkdownFilter(DefaultFilter):
    """Only markdown files, honoring excluded names and hidden entries."""

    def __init__(self, root: Path, *, excludes: tuple[str, ...], include_hidden: bool):
        super().__init__(ignore_dirs=excludes)
        self.root = root
        self.include_hidden = include_hidden

    def __call__(self, change: Change, path: str) -> bool:
        if not path.lower().endswith(MARKDOWN_EXT):
            return False
        if not self.include_hidden:
            try:
                parts = Path(path).relative_to(self.root).parts
            except ValueError:
                parts = (Path(path).name,)
            if any(part.startswith(".") for part in parts):
                return False
        return super().__call__(change, path)


def _collapse(kinds: set[Change], exists: bool) -> ChangeType:
    if not exists and Change.deleted in kinds:
        return "removed"
    if Change.added in kinds:
        return "added"
    return "changed"


class GraphWatcher:
    def __init__(self, options: WatchOptions, *, manager: GraphManager | None = None):
        self.options = options
        self.target = Path(options.target_directory).resolve()
        self.output_file = Path(options.output_file) if options.output_file else self.target / DEFAULT_OUTPUT_NAME
        excludes = tuple(DEFAULT_EXCLUDES if options.excludes is None else options.excludes)

        if manager is None:
            repository = FileRepository(self.target, excludes=excludes, include_hidden=options.include_hidden)
            manager = GraphManager(repository, self.target, options.build)
        self.manager = manager

        self.filter = MarkdownFilter(self.target, excludes=excludes, include_hidden=options.include_hidden)
        self._state = WatcherState.IDLE
        self._subscribers: list[Subscriber] = []
        self._stop_event = asyncio.Event()
        self._ready = asyncio.Event()
        self._watch_task: asyncio.Task[None] | None = None
        self._persist_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> WatcherState:
        return self._state

    def _transition(self, new_state: WatcherState) -> None:
        if new_state not in _TRANSITIONS[self._state]:
            raise RuntimeError(f"Watcher cannot go from {self._state.value} to {new_state.value}")
        logger.debug("Watcher %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a callback for lifecycle events; returns an unsubscribe function."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def _emit(self, event: WatchEvent) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception:
                logger.exception("Subscriber failed handling %s", type(event).__name__)

    def stats(self) -> GraphStats:
        return self.manager.stats()

    async def start(self) -> None:
        """Scan, write the initial graph, then watch. Returns once watching."""
        self._transition(WatcherState.SCANNING)
        logger.info("Initializing graph from %s", self.target)
        try:
            await self.manager.initialize()
        except Exception:
            self._transition(WatcherState.STOPPED)
            raise

        stats = self.stats()
        self._emit(Initialized(stats=stats))
        await self.persist()
        logger.info("Initial graph created with %d nodes and %d links", stats.node_count, stats.link_count)

        self._transition(WatcherState.WATCHING)
        self._watch_task = asyncio.create_task(self._watch())
        ready = asyncio.create_task(self._ready.wait())
        done, _ = await asyncio.wait({ready, self._watch_task}, return_when=asyncio.FIRST_COMPLETED)
        if ready not in done:
            ready.cancel()
            # The watch ended before it was ready; surface why.
            self._watch_task.result()
        logger.info("Watching for changes in %s", self.target)

    async def run_forever(self) -> None:
        await self.start()
        try:
            if self._watch_task is not None:
                await self._watch_task
        finally:
            await self.stop()

    async def stop(self) -> None:
        if self._state == WatcherState.STOPPED:
            return
        self._transition(WatcherState.STOPPED)
        self._stop_event.set()
        if self._watch_task is not None and self._watch_task is not asyncio.current_task():
            await asyncio.gather(self._watch_task, return_exceptions=True)
        if self._persist_task is not None:
            self._persist_task.cancel()
            await asyncio.gather(self._persist_task, return_exceptions=True)
        logger.info("File watcher stopped")

    async def _watch(self) -> None:
        async for changes in awatch(
            self.target,
            watch_filter=self.filter,
            step=FILE_STABILITY_MS,
            stop_event=self._stop_event,
            rust_timeout=WATCH_TIMEOUT_MS,
            yield_on_timeout=True,
            force_polling=self.options.force_polling,
            poll_delay_ms=POLL_DELAY_MS,
            recursive=True,
        ):
            if not self._ready.is_set():
                self._ready.set()
                logger.debug("Initial scan complete. Ready for changes")
                self._emit(Ready())
            await self.handle_changes(changes)

    async def handle_changes(self, changes: set[tuple[Change, str]]) -> None:
        """Apply one batch of notifications, one path at a time."""
        by_path: dict[str, set[Change]] = {}
        for change, path in changes:
            by_path.setdefault(path, set()).add(change)
        for path in sorted(by_path):
            exists = await anyio.Path(path).is_file()
            await self.handle_change(_collapse(by_path[path], exists), path)

    async def handle_change(self, change_type: ChangeType, file_path: str) -> None:
        logger.debug("File %s: %s", change_type, file_path)
        try:
            if change_type == "removed":
                self.manager.remove_file(file_path)
            else:
                await self.manager.update_file(file_path)
        except Exception:
            logger.exception("Failed to handle file %s: %s", change_type, file_path)
            return

        self._schedule_persist()
        logger.info("Graph updated: %s %s", Path(file_path).name, change_type)
        self._emit(FileChanged(file_path=str(file_path), change_type=change_type, stats=self.stats()))

    def _schedule_persist(self) -> None:
        if self._state == WatcherState.STOPPED:
            return
        if self._persist_task is not None and not self._persist_task.done():
            self._persist_task.cancel()
        self._persist_task = asyncio.create_task(self._persist_later())

    async def _persist_later(self) -> None:
        await asyncio.sleep(self.options.debounce_ms / 1000)
        # Once the write has started let it finish even if a newer edit arrives.
        await asyncio.shield(self.persist())

    async def persist(self) -> None:
        graph = self.manager.get_graph()
        try:
            await save_graph(graph, self.output_file)
        except OSError as e:
            logger.error("Failed to write graph file %s: %s", self.output_file, e)
            return
        stats = graph.stats()
        logger.debug("Graph written to %s (%d nodes, %d links)", self.output_file, stats.node_count, stats.link_count)
        self._emit(GraphWritten(output_file=self.output_file, node_count=stats.node_count, link_count=stats.link_count))
