"""
Watch loop for one source/output pair

The watchdog observer runs in its own thread; its callbacks only hand
events over to the asyncio loop (call_soon_threadsafe onto a queue).
Everything else, the orchestrator included, runs on the loop thread.

Each event is dispatched as its own task, so handlers for events that
arrive close together interleave at their I/O points. Same-entry races are
settled by the orchestrator's per-entry single-flight.
"""

import asyncio
import os
from pathlib import Path
from typing import Any, Callable, Optional, Set, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..config.settings import AppSettings
from ..config.targets import WatchTarget
from ..models.events import EventKind, WatchEvent
from .log import ERROR, LOG
from .orchestrator import BuildOrchestrator, BuildStrategy
from .toolchain import Toolchain


class SourceEventHandler(FileSystemEventHandler):
    """
    Translates watchdog callbacks into WatchEvents on an asyncio queue

    Ignores dot-files and dot-directories, and anything under the output
    root (which may live inside the source root).

    Files get per-file events. For directories only whole-subtree changes
    are forwarded: a directory created (or moved in from outside) and a
    directory deleted (or moved out). watchdog reports a subtree moved out
    of the watched tree as a bare directory deletion, without events for
    the files inside it.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        queue: "asyncio.Queue[WatchEvent]",
        source_root: Path,
        output_root: Path,
    ) -> None:
        super().__init__()
        self.loop = loop
        self.queue = queue
        self.source_root = Path(os.path.realpath(source_root))
        self.output_root = Path(os.path.realpath(output_root))

    def on_created(self, event: FileSystemEvent) -> None:
        self.event_forward(EventKind.ADD, event.src_path, event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.event_forward(EventKind.CHANGE, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self.event_forward(EventKind.UNLINK, event.src_path, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.event_forward(EventKind.UNLINK, event.src_path)
            self.event_forward(EventKind.ADD, event.dest_path)
            return
        # moves within the tree also arrive as per-file moves
        source_inside = self.path_isWatched(self.path_absolute(event.src_path))
        dest_inside = self.path_isWatched(self.path_absolute(event.dest_path))
        if source_inside and not dest_inside:
            self.event_forward(EventKind.UNLINK, event.src_path, directory=True)
        elif dest_inside and not source_inside:
            self.event_forward(EventKind.ADD, event.dest_path, directory=True)

    def path_isWatched(self, path: Path) -> bool:
        """True for non-hidden paths under the source root, outside the output root"""
        try:
            parts = path.relative_to(self.source_root).parts
        except ValueError:
            return False
        if any(part.startswith(".") for part in parts):
            return False
        try:
            path.relative_to(self.output_root)
            return False
        except ValueError:
            return True

    def path_absolute(self, raw_path: Union[str, bytes]) -> Path:
        return Path(os.path.abspath(os.fsdecode(raw_path)))

    def event_forward(
        self, kind: EventKind, raw_path: Union[str, bytes], directory: bool = False
    ) -> None:
        path = self.path_absolute(raw_path)
        if not self.path_isWatched(path):
            return
        self.loop.call_soon_threadsafe(
            self.queue.put_nowait, WatchEvent(kind, path, directory=directory)
        )


class TargetWatcher:
    """
    Watches one source root and keeps its output root in sync

    Responsibilities:
    - Start a recursive watchdog observer on the source root
    - Run the initial full build
    - Dispatch every watch event to the orchestrator as its own task
    - Stop the observer and cancel in-flight event tasks on shutdown
    """

    def __init__(
        self,
        target: WatchTarget,
        toolchain: Toolchain,
        strategy: Union[str, BuildStrategy, None] = None,
        settings: Optional[AppSettings] = None,
        observer_factory: Callable[[], Any] = Observer,
    ) -> None:
        self.target = target
        self.orchestrator = BuildOrchestrator(
            target.src, target.out, toolchain, strategy=strategy, settings=settings
        )
        self.observer_factory = observer_factory
        self._tasks: Set["asyncio.Task[Any]"] = set()

    async def run(self) -> None:
        """Watch until cancelled"""
        source_root = self.orchestrator.source_root
        if not source_root.is_dir():
            ERROR(f"❌ Source directory not found, skipping target: {source_root}")
            return

        loop = asyncio.get_running_loop()
        queue: "asyncio.Queue[WatchEvent]" = asyncio.Queue()
        handler = SourceEventHandler(loop, queue, source_root, self.orchestrator.output_root)

        observer = self.observer_factory()
        observer.schedule(handler, str(source_root), recursive=True)
        observer.start()
        LOG(f"📡 Watching: {source_root}", level=1)
        LOG(f"📦 Output to: {self.orchestrator.output_root}", level=1)

        try:
            await self.orchestrator.tree_build()
            while True:
                event = await queue.get()
                self.task_spawn(event)
        finally:
            observer.stop()
            await asyncio.to_thread(observer.join, 5)
            await self.tasks_cancel()
            LOG(
                f"Watcher for {self.target.key} stopped "
                f"({self.orchestrator.stats.summary()})",
                level=2,
            )

    def task_spawn(self, event: WatchEvent) -> "asyncio.Task[Any]":
        task = asyncio.create_task(self.event_dispatch(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def event_dispatch(self, event: WatchEvent) -> None:
        try:
            await self.orchestrator.event_handle(event)
        except asyncio.CancelledError:
            raise
        except Exception:
            # one bad event must not take the watcher down
            ERROR(f"❌ Unexpected error handling {event.kind.name} {event.path}", exc_info=True)

    async def tasks_cancel(self) -> None:
        """Cancel in-flight event tasks and wait for them to unwind"""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
