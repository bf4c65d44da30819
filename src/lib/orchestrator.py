"""
Build orchestrator

Turns watch events into build actions for one source/output pair.

Routing (targeted strategy):

    kind / visibility      Add, Change          Unlink
    ---------------------  -------------------  ------------------------------
    script/style, entry    compile the entry    remove artifacts, forget deps
    script/style, partial  rebuild dependents   rebuild dependents
    anything else          ignore               ignore

The rescan strategy is the simpler alternative: any qualifying event
rebuilds every entry under the source root. It costs O(entries) per event
but needs no dependency bookkeeping to be correct.

Builds of the same entry are single-flight: each request takes a new
generation number and only the newest generation may write its artifact
or record its dependencies. Older builds still run to completion but
their results are discarded. Generation numbers only live while a build
of the entry is in flight.

Directory events bypass the strategy. A subtree that leaves the source
root arrives as a single directory deletion, so every known entry below
it is removed here; a subtree moved in is scanned and built.
"""

import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Union

from ..config.settings import AppSettings, appsettings
from ..models.events import BuildAction, BuildStats, EventKind, WatchEvent
from ..models.source import SourceClass, SourceKind, Visibility
from .classifier import FileClassifier
from .graph import DependencyGraph
from .log import ERROR, LOG
from .resolver import ImportResolver, Reader, ResolveError
from .toolchain import CompileError, Toolchain
from .writer import OutputWriter


class BuildStrategy:
    """Maps (event kind, classification) to a build action"""

    name = "base"

    def action_decide(self, kind: EventKind, source: SourceClass) -> BuildAction:
        raise NotImplementedError


class TargetedStrategy(BuildStrategy):
    """Rebuild only what an event affects, using the dependency graph"""

    name = "targeted"

    def action_decide(self, kind: EventKind, source: SourceClass) -> BuildAction:
        if not source.compilable:
            return BuildAction.IGNORE
        if source.visibility is Visibility.ENTRY:
            return BuildAction.REMOVE if kind is EventKind.UNLINK else BuildAction.COMPILE
        # partials never compile on their own; unlink flushes stale inlined content
        return BuildAction.PROPAGATE


class RescanStrategy(BuildStrategy):
    """Rebuild every entry on any qualifying event"""

    name = "rescan"

    def action_decide(self, kind: EventKind, source: SourceClass) -> BuildAction:
        if not source.compilable:
            return BuildAction.IGNORE
        if source.visibility is Visibility.ENTRY and kind is EventKind.UNLINK:
            return BuildAction.REMOVE
        return BuildAction.RESCAN


STRATEGIES: Dict[str, type] = {
    TargetedStrategy.name: TargetedStrategy,
    RescanStrategy.name: RescanStrategy,
}


def strategy_get(name: str) -> BuildStrategy:
    """
    Instantiate a strategy by name.

    Raises:
        ValueError: If name is not a known strategy
    """
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown strategy '{name}'. Known strategies: {', '.join(sorted(STRATEGIES))}"
        )


class BuildOrchestrator:
    """
    Event-driven incremental builder for one source root

    Responsibilities:
    - Classify event paths and pick an action via the strategy
    - Resolve, compile and write entries (single-flight per entry)
    - Propagate partial edits to every entry that inlined them
    - Remove artifacts and graph records of deleted entries
    """

    def __init__(
        self,
        source_root: Path,
        output_root: Path,
        toolchain: Toolchain,
        strategy: Union[str, BuildStrategy, None] = None,
        graph: Optional[DependencyGraph] = None,
        reader: Optional[Reader] = None,
        settings: Optional[AppSettings] = None,
    ) -> None:
        """
        Initialize orchestrator

        Args:
            source_root: Directory being watched
            output_root: Directory artifacts are written under
            toolchain: Script/stylesheet compile collaborators
            strategy: Strategy instance or name (default: settings.strategy)
            graph: Dependency graph to use (a fresh one if omitted)
            reader: Async file reader passed to the resolver
            settings: AppSettings override
        """
        self.settings = settings or appsettings
        self.source_root = Path(os.path.realpath(source_root))
        self.output_root = Path(os.path.realpath(output_root))
        self.toolchain = toolchain

        if strategy is None:
            strategy = self.settings.strategy
        self.strategy = strategy_get(strategy) if isinstance(strategy, str) else strategy

        self.classifier = FileClassifier(self.source_root, self.settings)
        self.graph = graph if graph is not None else DependencyGraph()
        self.resolver = ImportResolver(self.graph, reader=reader, settings=self.settings)
        self.writer = OutputWriter(
            self.source_root, self.output_root, self.classifier, self.settings
        )

        self.stats = BuildStats()
        self._generations: Dict[Path, int] = {}
        self._inflight: Dict[Path, int] = {}

    def path_canonical(self, path: Path) -> Path:
        """Absolute, symlink-free path; relative paths are taken from the source root"""
        path = Path(path)
        if not path.is_absolute():
            path = self.source_root / path
        return Path(os.path.realpath(path))

    def path_display(self, path: Path) -> str:
        try:
            return str(path.relative_to(self.source_root))
        except ValueError:
            return str(path)

    def path_isUnder(self, path: Path, directory: Path) -> bool:
        return path == directory or directory in path.parents

    def action_decide(self, event: WatchEvent) -> BuildAction:
        """Routing decision for an event, without executing it"""
        path = self.path_canonical(event.path)
        if event.directory:
            if not self.path_isUnder(path, self.source_root):
                return BuildAction.IGNORE
            return BuildAction.REMOVE if event.kind is EventKind.UNLINK else BuildAction.COMPILE
        return self.strategy.action_decide(event.kind, self.classifier.classify(path))

    async def event_handle(self, event: WatchEvent) -> BuildAction:
        """
        Decide and execute the action for one watch event.

        Args:
            event: Add/Change/Unlink event for a path under the source root

        Returns:
            The action that was executed
        """
        path = self.path_canonical(event.path)
        action = self.action_decide(event)
        LOG(f"{event.kind.name} {self.path_display(path)} -> {action.name}", level=2)

        if event.directory:
            if action is BuildAction.REMOVE:
                await self.subtree_remove(path)
            elif action is BuildAction.COMPILE:
                await self.subtree_build(path)
            return action

        if action is BuildAction.COMPILE:
            await self.entry_build(path)
        elif action is BuildAction.PROPAGATE:
            await self.dependents_rebuild(path)
        elif action is BuildAction.REMOVE:
            self.entry_remove(path)
        elif action is BuildAction.RESCAN:
            await self.tree_build()
        return action

    def generation_next(self, entry: Path) -> int:
        """Claim a new build generation for entry, superseding older ones"""
        generation = self._generations.get(entry, 0) + 1
        self._generations[entry] = generation
        return generation

    def generation_current(self, entry: Path) -> Optional[int]:
        """Newest generation of entry, None when no build of it is in flight"""
        return self._generations.get(entry)

    def generation_isCurrent(self, entry: Path, generation: int) -> bool:
        return self._generations.get(entry) == generation

    def generation_release(self, entry: Path) -> None:
        """One build of entry settled; forget its generations once none remain"""
        remaining = self._inflight.get(entry, 1) - 1
        if remaining:
            self._inflight[entry] = remaining
        else:
            self._inflight.pop(entry, None)
            self._generations.pop(entry, None)

    def terminator_get(self, kind: SourceKind) -> str:
        if kind is SourceKind.STYLESHEET:
            return self.settings.stylesheet_terminator
        return self.settings.script_terminator

    async def entry_build(self, entry: Path) -> bool:
        """
        Resolve, compile and write one entry.

        Read and compile failures are logged with the entry path and leave
        any previous artifact in place. A build superseded by a newer request
        for the same entry (or by its deletion) writes nothing.

        Args:
            entry: Entry source path

        Returns:
            True if an artifact was written
        """
        entry = self.path_canonical(entry)
        generation = self.generation_next(entry)
        self._inflight[entry] = self._inflight.get(entry, 0) + 1
        try:
            return await self.generation_build(entry, generation)
        finally:
            self.generation_release(entry)

    async def generation_build(self, entry: Path, generation: int) -> bool:
        name = self.path_display(entry)
        kind = self.classifier.kind_get(entry)

        try:
            resolution = await self.resolver.flatten(entry, self.terminator_get(kind))
        except ResolveError as e:
            return self.failure_note(entry, generation, f"Failed to read imports for {name}: {e}")

        if not self.generation_isCurrent(entry, generation):
            return self.supersede_note(entry)
        self.graph.record(entry, resolution.dependencies)

        try:
            if kind is SourceKind.STYLESHEET:
                result = await self.toolchain.stylesheet_build(resolution.text, entry)
            else:
                result = await self.toolchain.script_build(resolution.text, entry)
        except CompileError as e:
            return self.failure_note(entry, generation, f"Failed to compile {name}: {e}")

        if not self.generation_isCurrent(entry, generation):
            return self.supersede_note(entry)

        # synchronous on purpose: no suspension point between the staleness
        # check above and the write. Large artifacts block the loop meanwhile.
        try:
            self.writer.write(entry, result.code, result.map)
        except OSError as e:
            return self.failure_note(entry, generation, f"Failed to write artifact for {name}: {e}")

        self.stats.built += 1
        LOG(f"✅ Built {kind.value}: {name}", level=1)
        return True

    def failure_note(self, entry: Path, generation: int, message: str) -> bool:
        if not self.generation_isCurrent(entry, generation):
            return self.supersede_note(entry)
        self.stats.failed += 1
        ERROR(f"❌ {message}")
        return False

    def supersede_note(self, entry: Path) -> bool:
        self.stats.superseded += 1
        LOG(f"Discarding superseded build of {self.path_display(entry)}", level=2)
        return False

    async def dependents_rebuild(self, changed: Path) -> int:
        """
        Rebuild every entry that inlined changed.

        Args:
            changed: Partial (or any inlined file) that was added, edited or deleted

        Returns:
            Number of dependents rebuilt successfully
        """
        changed = self.path_canonical(changed)
        dependents = sorted(self.graph.dependents(changed))
        if not dependents:
            LOG(f"No entries depend on {self.path_display(changed)}", level=2)
            return 0

        LOG(
            f"Rebuilding {len(dependents)} dependent(s) of {self.path_display(changed)}",
            level=2,
        )
        return await self.entries_build(dependents)

    def entry_remove(self, entry: Path) -> bool:
        """
        Remove a deleted entry's artifact pair and dependency record.

        Any build of the entry still in flight is superseded so it cannot
        write the artifact back.

        Returns:
            True if an artifact or sidecar map was deleted
        """
        entry = self.path_canonical(entry)
        if entry in self._inflight:
            self.generation_next(entry)
        self.graph.remove(entry)
        removed = self.writer.remove(entry)
        if removed:
            self.stats.removed += 1
        LOG(f"✖ Removed: {self.path_display(entry)}", level=1)
        return removed

    def tree_scan(self, root: Optional[Path] = None) -> List[Path]:
        """
        Every non-hidden file under root (default: the source root), sorted.

        Dot-files and dot-directories are skipped, as is the output root
        when it sits inside the source root.
        """
        found: List[Path] = []
        for directory, dirnames, filenames in os.walk(root or self.source_root):
            current = Path(directory)
            dirnames[:] = sorted(
                d for d in dirnames
                if not d.startswith(".") and (current / d) != self.output_root
            )
            found.extend(current / f for f in filenames if not f.startswith("."))
        return sorted(found)

    async def entries_build(self, entries: Iterable[Path]) -> int:
        built = 0
        for entry in entries:
            if await self.entry_build(entry):
                built += 1
        return built

    async def tree_build(self) -> int:
        """
        Build every entry under the source root.

        Returns:
            Number of entries built successfully
        """
        entries = [path for path in self.tree_scan() if self.classifier.classify(path).emits]
        LOG(f"Building {len(entries)} entries under {self.source_root}", level=2)
        return await self.entries_build(entries)

    async def subtree_propagate(self, directory: Path, exclude: Iterable[Path] = ()) -> int:
        """Rebuild entries that inlined any file under directory"""
        changed: Set[Path] = {
            dependency
            for entry in self.graph.entries()
            for dependency in self.graph.dependencies(entry)
            if self.path_isUnder(dependency, directory)
        }
        skip = set(exclude)
        dependents = sorted(
            {entry for path in changed for entry in self.graph.dependents(path)} - skip
        )
        if dependents:
            LOG(
                f"Rebuilding {len(dependents)} dependent(s) of {self.path_display(directory)}/",
                level=2,
            )
        return await self.entries_build(dependents)

    async def subtree_remove(self, directory: Path) -> int:
        """
        Forget a directory that left the source root.

        watchdog reports a subtree moved out of the watched tree as one
        directory deletion with no per-file events. Every entry recorded
        under the directory has its artifacts removed; entries elsewhere
        that inlined a file from it are rebuilt (and fail until restored).

        Returns:
            Number of entries removed
        """
        directory = self.path_canonical(directory)
        entries = sorted(e for e in self.graph.entries() if self.path_isUnder(e, directory))
        for entry in entries:
            self.entry_remove(entry)
        await self.subtree_propagate(directory)
        return len(entries)

    async def subtree_build(self, directory: Path) -> int:
        """
        Build a directory that appeared under the source root.

        Entries below it are built, then entries elsewhere that were
        waiting on a file from it are rebuilt.

        Returns:
            Number of entries built successfully
        """
        directory = self.path_canonical(directory)
        if not directory.is_dir():
            return 0
        entries = [path for path in self.tree_scan(directory) if self.classifier.classify(path).emits]
        built = await self.entries_build(entries)
        await self.subtree_propagate(directory, exclude=entries)
        return built
