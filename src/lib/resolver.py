"""
Include directive resolver

Flattens an entry by replacing every directive line with the resolved
content of the file it names, recursively:

    app.js                       _util.js
    ------                       --------
    // @import "_util.js";       console.log(0);
    console.log(1);

    flattened: "console.log(0);;\\nconsole.log(1);;"

Every resolved unit gets one terminator appended so that inlined units
stay syntactically separate when concatenated blindly. A file already
visited during the current top-level resolution contributes nothing,
which is what breaks include cycles.

The resolver is asynchronous: file reads run in a worker thread so the
event loop keeps dispatching watch events while a deep include tree is
being read.
"""

import asyncio
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Set

from ..config.settings import AppSettings, appsettings
from ..models.directives import DIRECTIVE_ALIASES, Directive, Resolution
from .graph import DependencyGraph
from .log import LOG


# A directive occupies a whole line: optional indent, "//", the alias,
# the path (optionally quoted, same quote on both sides), an optional ";".
# The line break itself is not part of the match.
DIRECTIVE_PATTERN = re.compile(
    r"^[ \t]*//[ \t]*@(?P<alias>"
    + "|".join(re.escape(alias) for alias in DIRECTIVE_ALIASES)
    + r")[ \t]+(?P<quote>[\"']?)(?P<path>[^\"'\r\n;]+?)(?P=quote)[ \t]*;?[ \t]*(?=\r?$)",
    re.MULTILINE,
)


class ResolveError(Exception):
    """
    Raised when an entry or one of its includes cannot be read

    Attributes:
        path: File that could not be read
        includer: File whose directive named it (None for the entry itself)
    """

    def __init__(self, path: Path, message: str, includer: Optional[Path] = None) -> None:
        self.path = path
        self.includer = includer
        where = f" (included from {includer})" if includer else ""
        super().__init__(f"{message}: {path}{where}")


class IncludeDepthError(ResolveError):
    """Raised when directives nest deeper than the configured bound"""
    pass


Reader = Callable[[Path], Awaitable[str]]


async def file_read(path: Path) -> str:
    """Default reader: UTF-8 text, read off the event loop"""
    return await asyncio.to_thread(path.read_text, encoding="utf-8")


def path_canonical(path: Path) -> Path:
    return Path(os.path.realpath(path))


@dataclass
class _ResolveContext:
    """Per-call bookkeeping; never shared between top-level calls"""
    entry: Path
    terminator: str
    visited: Set[Path] = field(default_factory=set)
    dependencies: Dict[Path, None] = field(default_factory=dict)
    directives: List[Directive] = field(default_factory=list)


class ImportResolver:
    """
    Flattens directive-based include graphs into a single text

    Responsibilities:
    - Find directive lines in a source text
    - Inline targets recursively, relative to the including file
    - Break cycles with a per-call visited set
    - Record each entry's flattened dependency set in the graph
    """

    def __init__(
        self,
        graph: Optional[DependencyGraph] = None,
        terminator: Optional[str] = None,
        max_depth: Optional[int] = None,
        reader: Optional[Reader] = None,
        settings: Optional[AppSettings] = None,
    ) -> None:
        """
        Initialize resolver

        Args:
            graph: Graph that resolve() records into (a private one if omitted)
            terminator: Appended after every resolved unit (default: script terminator)
            max_depth: Maximum include nesting (default: settings.max_include_depth)
            reader: Async callable returning a file's text (default: file_read)
            settings: AppSettings override
        """
        self.settings = settings or appsettings
        self.graph = graph if graph is not None else DependencyGraph()
        self.terminator = self.settings.script_terminator if terminator is None else terminator
        self.max_depth = self.settings.max_include_depth if max_depth is None else max_depth
        self.reader: Reader = reader or file_read

    def directives_find(self, text: str, including: Path) -> List[Directive]:
        """
        Locate directive lines in text.

        Args:
            text: Source text to scan
            including: Path of the file the text came from (targets resolve
                       relative to its directory)

        Returns:
            Directives in textual order
        """
        base = Path(including).parent
        return [
            Directive(
                alias=match.group("alias"),
                rawPath=match.group("path").strip(),
                resolvedPath=path_canonical(base / match.group("path").strip()),
                start=match.start(),
                end=match.end(),
            )
            for match in DIRECTIVE_PATTERN.finditer(text)
        ]

    async def resolve(self, entry: Path, terminator: Optional[str] = None) -> str:
        """
        Flatten entry and record its dependencies in the graph.

        Args:
            entry: Entry file to flatten
            terminator: Override the unit terminator for this call

        Returns:
            Flattened text

        Raises:
            ResolveError: If the entry or any include cannot be read; the
                          graph is left exactly as it was
        """
        resolution = await self.flatten(entry, terminator)
        self.graph.record(path_canonical(entry), resolution.dependencies)
        return resolution.text

    async def flatten(self, entry: Path, terminator: Optional[str] = None) -> Resolution:
        """
        Flatten entry without touching the graph.

        Args:
            entry: Entry file to flatten
            terminator: Override the unit terminator for this call

        Returns:
            Resolution with text, ordered dependencies and directives seen

        Raises:
            ResolveError: If the entry or any include cannot be read
        """
        entry = path_canonical(entry)
        context = _ResolveContext(
            entry=entry,
            terminator=self.terminator if terminator is None else terminator,
        )
        context.visited.add(entry)

        text = await self.unit_resolve(entry, context, depth=0, includer=None)

        LOG(f"Resolved {entry.name}: {len(context.dependencies)} dependencies", level=3)
        return Resolution(
            text=text,
            dependencies=list(context.dependencies),
            directives=context.directives,
        )

    async def unit_resolve(
        self,
        path: Path,
        context: _ResolveContext,
        depth: int,
        includer: Optional[Path],
    ) -> str:
        """
        Resolve one file: inline its directives and terminate it

        Args:
            path: Canonical file to resolve
            context: Bookkeeping for the current top-level call
            depth: Current include nesting (entry = 0)
            includer: File whose directive led here

        Returns:
            Text with every directive replaced, terminator appended
        """
        if depth > self.max_depth:
            raise IncludeDepthError(
                path, f"Includes nested deeper than {self.max_depth} levels", includer
            )

        text = await self.text_read(path, includer)

        pieces: List[str] = []
        cursor = 0
        for directive in self.directives_find(text, path):
            context.directives.append(directive)
            target = directive.resolvedPath
            if target != context.entry:
                context.dependencies.setdefault(target, None)

            pieces.append(text[cursor:directive.start])
            if target in context.visited:
                LOG(f"Skipping repeat include {directive.rawPath} in {path.name}", level=3)
            else:
                context.visited.add(target)
                LOG(f"Inlining {directive.rawPath} into {path.name}", level=3)
                pieces.append(await self.unit_resolve(target, context, depth + 1, path))
            cursor = directive.end

        pieces.append(text[cursor:])
        pieces.append(context.terminator)
        return "".join(pieces)

    async def text_read(self, path: Path, includer: Optional[Path]) -> str:
        """Read through the configured reader, normalizing failures"""
        try:
            return await self.reader(path)
        except (OSError, UnicodeDecodeError) as e:
            reason = e.strerror if isinstance(e, OSError) and e.strerror else type(e).__name__
            raise ResolveError(path, f"Cannot read ({reason})", includer) from e
