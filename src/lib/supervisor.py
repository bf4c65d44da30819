"""
Supervisor for several independently configured watch targets

Each target runs as its own asyncio task, keyed by "<src>→<out>".
Reconfiguration never mutates a running watcher: every config-file event
cancels all watchers and respawns them from the freshly loaded config.
"""

import asyncio
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from ..config.settings import AppSettings, appsettings
from ..config.targets import ConfigError, WatchTarget, targets_load
from .log import ERROR, LOG
from .orchestrator import BuildStrategy
from .toolchain import Toolchain
from .watcher import TargetWatcher


class ConfigEventHandler(FileSystemEventHandler):
    """Signals the loop whenever the config file is created, edited, moved or deleted"""

    RELEVANT = {EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_DELETED, EVENT_TYPE_MOVED}

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        queue: "asyncio.Queue[Path]",
        config_path: Path,
    ) -> None:
        super().__init__()
        self.loop = loop
        self.queue = queue
        self.config_path = Path(os.path.abspath(config_path))

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in self.RELEVANT:
            return
        touched = [event.src_path, getattr(event, "dest_path", "")]
        for raw in touched:
            if raw and Path(os.path.abspath(os.fsdecode(raw))) == self.config_path:
                self.loop.call_soon_threadsafe(self.queue.put_nowait, self.config_path)
                return


class WatchSupervisor:
    """
    Owns one cancellable watcher task per configured target

    Responsibilities:
    - Spawn watchers for a list of targets
    - Cancel all watchers ("cancel all, then respawn" on reload)
    - Follow a config file and reload on every change to it
    - Log watcher crashes without stopping the others
    """

    def __init__(
        self,
        toolchain: Optional[Toolchain] = None,
        strategy: Union[str, BuildStrategy, None] = None,
        settings: Optional[AppSettings] = None,
        watcher_factory: Optional[Callable[[WatchTarget], Any]] = None,
        observer_factory: Callable[[], Any] = Observer,
    ) -> None:
        self.settings = settings or appsettings
        self.toolchain = toolchain or Toolchain.toolchain_createDefault(self.settings)
        self.strategy = strategy
        self.watcher_factory = watcher_factory or self.watcher_create
        self.observer_factory = observer_factory
        self.watchers: Dict[str, "asyncio.Task[None]"] = {}

    def watcher_create(self, target: WatchTarget) -> TargetWatcher:
        return TargetWatcher(
            target,
            self.toolchain,
            strategy=self.strategy,
            settings=self.settings,
            observer_factory=self.observer_factory,
        )

    def targets_spawn(self, targets: List[WatchTarget]) -> List[str]:
        """
        Start a watcher task for every target not already running.

        Returns:
            Keys of the watchers started
        """
        started: List[str] = []
        for target in targets:
            if target.key in self.watchers:
                LOG(f"Already watching {target.key}", level=2)
                continue
            watcher = self.watcher_factory(target)
            self.watchers[target.key] = asyncio.create_task(
                self.watcher_run(target.key, watcher), name=target.key
            )
            started.append(target.key)
        return started

    async def watcher_run(self, key: str, watcher: Any) -> None:
        try:
            await watcher.run()
        except asyncio.CancelledError:
            raise
        except Exception:
            ERROR(f"❌ Watcher for {key} crashed", exc_info=True)

    async def targets_cancelAll(self) -> None:
        """Cancel every watcher task and wait for them to finish"""
        for key, task in self.watchers.items():
            LOG(f"🪦 Stopping watcher for {key}", level=1)
            task.cancel()
        tasks = list(self.watchers.values())
        self.watchers.clear()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def targets_reload(self, targets: List[WatchTarget]) -> List[str]:
        """Cancel all running watchers, then spawn the given targets"""
        await self.targets_cancelAll()
        return self.targets_spawn(targets)

    async def config_reload(self, config_path: Path, src_base: Path, out_base: Path) -> List[str]:
        """
        Cancel all watchers and respawn from the config file.

        An unusable config file leaves no watchers running until the next
        change to it.
        """
        await self.targets_cancelAll()
        try:
            targets = targets_load(config_path, src_base, out_base)
        except ConfigError as e:
            ERROR(f"❌ {e}")
            return []
        return self.targets_spawn(targets)

    async def config_watch(self, config_path: Path, src_base: Path, out_base: Path) -> None:
        """Follow config_path until cancelled, reloading on every change"""
        config_path = Path(os.path.abspath(config_path))
        loop = asyncio.get_running_loop()
        queue: "asyncio.Queue[Path]" = asyncio.Queue()

        observer = self.observer_factory()
        observer.schedule(
            ConfigEventHandler(loop, queue, config_path), str(config_path.parent), recursive=False
        )
        observer.start()
        LOG(f"Following config file {config_path}", level=2)

        try:
            await self.config_reload(config_path, src_base, out_base)
            while True:
                await queue.get()
                # editors tend to fire several events per save
                while not queue.empty():
                    queue.get_nowait()
                await self.config_reload(config_path, src_base, out_base)
        finally:
            observer.stop()
            await asyncio.to_thread(observer.join, 5)
            await self.targets_cancelAll()

    async def run(self, targets: List[WatchTarget]) -> None:
        """Watch a fixed list of targets until cancelled"""
        self.targets_spawn(targets)
        try:
            await asyncio.Event().wait()
        finally:
            await self.targets_cancelAll()
