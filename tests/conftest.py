"""
Shared fixtures: an in-process toolchain and a scratch project layout

The fake toolchain passes flattened text straight through every stage so
tests can assert on artifact content directly. Text containing
"SYNTAX ERROR" is rejected like a real compiler would, and text
containing "SLOW" waits on an asyncio.Event so tests can hold a build
in flight.
"""

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import pytest

from minikit.lib.toolchain import (
    CompileError,
    CompileResult,
    Minifier,
    PostProcessor,
    ScriptTransformer,
    StylesheetCompiler,
    Toolchain,
)


def sourcemap_make(filename: str) -> str:
    return json.dumps({"version": 3, "file": filename, "sources": [filename], "mappings": ""})


class FakeStages(ScriptTransformer, Minifier, StylesheetCompiler, PostProcessor):
    """All four collaborator stages in one pass-through object"""

    def __init__(self) -> None:
        self.calls: List[tuple[str, str]] = []
        self.gate: Optional[asyncio.Event] = None
        self.waiting = 0

    async def checkpoint(self, stage: str, text: str, filename: str) -> None:
        self.calls.append((stage, filename))
        if "SLOW" in text:
            if self.gate is None:
                self.gate = asyncio.Event()
            self.waiting += 1
            await self.gate.wait()
        if "SYNTAX ERROR" in text:
            raise CompileError(f"{filename}: Unexpected token")

    async def transform(self, text: str, filename: str) -> CompileResult:
        await self.checkpoint("transform", text, filename)
        return CompileResult(code=text, map=sourcemap_make(filename))

    async def minify(self, code: str, sourceMap: Optional[str], filename: str) -> CompileResult:
        self.calls.append(("minify", filename))
        return CompileResult(code=code, map=sourceMap)

    async def compile(self, text: str, filename: str, load_paths: List[Path]) -> CompileResult:
        await self.checkpoint("compile", text, filename)
        return CompileResult(code=text, map=sourcemap_make(filename))

    async def process(self, css: str, sourceMap: Optional[str], filename: str) -> CompileResult:
        self.calls.append(("process", filename))
        return CompileResult(code=css, map=sourceMap)

    def built(self, filename: str) -> int:
        """Number of times filename entered a first compile stage"""
        return sum(1 for stage, name in self.calls if name == filename and stage in ("transform", "compile"))


@pytest.fixture
def stages() -> FakeStages:
    return FakeStages()


@pytest.fixture
def toolchain(stages: FakeStages) -> Toolchain:
    return Toolchain(
        transformer=stages,
        minifier=stages,
        compiler=stages,
        postprocessor=stages,
    )


@pytest.fixture
def project(tmp_path: Path) -> tuple[Path, Path]:
    """(source_root, output_root), canonical, source root created"""
    root = tmp_path.resolve()
    source_root = root / "src"
    output_root = root / "out"
    source_root.mkdir()
    return source_root, output_root


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class FakeObserver:
    """Stands in for a watchdog Observer; tests feed events to the handler"""

    def __init__(self) -> None:
        self.scheduled: List[tuple] = []
        self.started = False
        self.stopped = False
        self.joined = False

    def schedule(self, handler, path: str, recursive: bool = False) -> None:
        self.scheduled.append((handler, path, recursive))

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout: Optional[float] = None) -> None:
        self.joined = True

    @property
    def handler(self):
        return self.scheduled[0][0]


@pytest.fixture
def observers() -> List[FakeObserver]:
    return []


@pytest.fixture
def observer_factory(observers: List[FakeObserver]):
    def factory() -> FakeObserver:
        observers.append(FakeObserver())
        return observers[-1]
    return factory


class DirectLoop:
    """call_soon_threadsafe without a thread hop"""

    def call_soon_threadsafe(self, callback, *args) -> None:
        callback(*args)


class ListQueue(list):
    def put_nowait(self, item) -> None:
        self.append(item)


async def wait_for(condition, timeout: float = 5.0) -> None:
    """Poll condition on the running loop until true"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)
