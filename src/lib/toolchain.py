"""
External compile collaborators

The engine only needs "flattened text + filename hint in, code + sourcemap
out". Each stage is a small class with one async method; the default
implementations shell out to the usual front-end CLIs:

    scripts:      esbuild (downlevel)  ->  terser (minify)
    stylesheets:  sass (compile)       ->  postcss + autoprefixer

Each stage works in a private temporary directory so that nothing it
writes lands inside a watched source tree. Any stage may be swapped for
an in-process implementation by passing it to Toolchain().
"""

import asyncio
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..config.settings import AppSettings, appsettings
from .log import LOG


class CompileError(Exception):
    """Raised when a collaborator rejects its input or cannot be run"""
    pass


@dataclass
class CompileResult:
    """
    Output of one compile stage

    Attributes:
        code: Compiled text
        map: Sourcemap JSON text, None if the stage produced none
    """
    code: str
    map: Optional[str] = None


async def process_run(argv: List[str], cwd: Optional[Path] = None) -> str:
    """
    Run an external tool and return its stdout.

    A cancelled caller kills the child process before re-raising.

    Raises:
        CompileError: On a missing executable or a non-zero exit status
    """
    LOG(f"Running: {' '.join(argv)}", level=3)
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        raise CompileError(f"'{argv[0]}' command not found. Is it installed and on PATH?")

    try:
        stdout, stderr = await process.communicate()
    except asyncio.CancelledError:
        if process.returncode is None:
            process.kill()
            await process.wait()
        raise

    if process.returncode != 0:
        detail = stderr.decode("utf-8", errors="replace").strip() or stdout.decode(
            "utf-8", errors="replace"
        ).strip()
        raise CompileError(f"{Path(argv[0]).name} exited with {process.returncode}: {detail[:500]}")
    return stdout.decode("utf-8", errors="replace")


def map_read(path: Path) -> Optional[str]:
    return path.read_text(encoding="utf-8") if path.exists() else None


class ScriptTransformer:
    """Downlevels script syntax for the configured targets"""

    async def transform(self, text: str, filename: str) -> CompileResult:
        raise NotImplementedError


class Minifier:
    """Minifies already-transformed script, chaining the incoming sourcemap"""

    async def minify(self, code: str, sourceMap: Optional[str], filename: str) -> CompileResult:
        raise NotImplementedError


class StylesheetCompiler:
    """Compiles a stylesheet dialect to CSS"""

    async def compile(self, text: str, filename: str, load_paths: List[Path]) -> CompileResult:
        raise NotImplementedError


class PostProcessor:
    """Rewrites compiled CSS (vendor prefixing), chaining the incoming sourcemap"""

    async def process(self, css: str, sourceMap: Optional[str], filename: str) -> CompileResult:
        raise NotImplementedError


class EsbuildTransformer(ScriptTransformer):
    def __init__(self, settings: Optional[AppSettings] = None) -> None:
        self.settings = settings or appsettings

    async def transform(self, text: str, filename: str) -> CompileResult:
        with tempfile.TemporaryDirectory(prefix="minikit-") as tmp:
            work = Path(tmp)
            source = work / filename
            output = work / "out" / filename
            output.parent.mkdir()
            source.write_text(text, encoding="utf-8")
            await process_run(
                [
                    self.settings.esbuild_command,
                    str(source),
                    f"--outfile={output}",
                    f"--target={','.join(self.settings.browser_targets)}",
                    "--sourcemap",
                    "--sources-content=true",
                    "--log-level=error",
                ],
                cwd=work,
            )
            return CompileResult(
                code=output.read_text(encoding="utf-8"),
                map=map_read(output.with_name(filename + ".map")),
            )


class TerserMinifier(Minifier):
    def __init__(self, settings: Optional[AppSettings] = None) -> None:
        self.settings = settings or appsettings

    async def minify(self, code: str, sourceMap: Optional[str], filename: str) -> CompileResult:
        with tempfile.TemporaryDirectory(prefix="minikit-") as tmp:
            work = Path(tmp)
            source = work / filename
            output = work / "out" / filename
            output.parent.mkdir()
            source.write_text(code, encoding="utf-8")

            map_options = f"url='{filename}{self.settings.map_suffix}'"
            if sourceMap is not None:
                incoming = work / (filename + ".in.map")
                incoming.write_text(sourceMap, encoding="utf-8")
                map_options = f"content='{incoming}',{map_options}"

            await process_run(
                [
                    self.settings.terser_command,
                    str(source),
                    "--compress",
                    "--mangle",
                    "--source-map",
                    map_options,
                    "--output",
                    str(output),
                ],
                cwd=work,
            )
            return CompileResult(
                code=output.read_text(encoding="utf-8"),
                map=map_read(output.with_name(filename + ".map")),
            )


class SassCompiler(StylesheetCompiler):
    def __init__(self, settings: Optional[AppSettings] = None) -> None:
        self.settings = settings or appsettings

    async def compile(self, text: str, filename: str, load_paths: List[Path]) -> CompileResult:
        with tempfile.TemporaryDirectory(prefix="minikit-") as tmp:
            work = Path(tmp)
            # keep the original extension: .sass selects the indented syntax
            source = work / filename
            output = work / Path(filename).with_suffix(self.settings.compiled_stylesheet_extension).name
            source.write_text(text, encoding="utf-8")
            await process_run(
                [
                    self.settings.sass_command,
                    "--style=compressed",
                    "--source-map",
                    "--embed-sources",
                    "--no-error-css",
                    *[f"--load-path={path}" for path in load_paths],
                    str(source),
                    str(output),
                ],
                cwd=work,
            )
            return CompileResult(
                code=output.read_text(encoding="utf-8"),
                map=map_read(output.with_name(output.name + ".map")),
            )


class PostcssPrefixer(PostProcessor):
    def __init__(self, settings: Optional[AppSettings] = None) -> None:
        self.settings = settings or appsettings

    async def process(self, css: str, sourceMap: Optional[str], filename: str) -> CompileResult:
        with tempfile.TemporaryDirectory(prefix="minikit-") as tmp:
            work = Path(tmp)
            source = work / filename
            output = work / "out" / filename
            output.parent.mkdir()
            source.write_text(css, encoding="utf-8")
            if sourceMap is not None:
                # picked up through the sourceMappingURL annotation sass left in css
                source.with_name(filename + ".map").write_text(sourceMap, encoding="utf-8")
            await process_run(
                [
                    self.settings.postcss_command,
                    str(source),
                    "--use",
                    "autoprefixer",
                    "--map",
                    "--output",
                    str(output),
                ],
                cwd=work,
            )
            return CompileResult(
                code=output.read_text(encoding="utf-8"),
                map=map_read(output.with_name(filename + ".map")),
            )


class Toolchain:
    """
    The two compile pipelines an entry can go through

    Responsibilities:
    - Scripts: transform then minify
    - Stylesheets: compile then post-process
    - Give each stage the filename hint it needs for sourcemaps
    """

    def __init__(
        self,
        transformer: ScriptTransformer,
        minifier: Minifier,
        compiler: StylesheetCompiler,
        postprocessor: PostProcessor,
        settings: Optional[AppSettings] = None,
    ) -> None:
        self.settings = settings or appsettings
        self.transformer = transformer
        self.minifier = minifier
        self.compiler = compiler
        self.postprocessor = postprocessor

    @classmethod
    def toolchain_createDefault(cls, settings: Optional[AppSettings] = None) -> "Toolchain":
        """Toolchain backed by the esbuild/terser/sass/postcss CLIs"""
        settings = settings or appsettings
        return cls(
            transformer=EsbuildTransformer(settings),
            minifier=TerserMinifier(settings),
            compiler=SassCompiler(settings),
            postprocessor=PostcssPrefixer(settings),
            settings=settings,
        )

    async def script_build(self, text: str, entry: Path) -> CompileResult:
        """Flattened script text -> minified code + chained sourcemap"""
        transformed = await self.transformer.transform(text, entry.name)
        return await self.minifier.minify(transformed.code, transformed.map, entry.name)

    async def stylesheet_build(self, text: str, entry: Path) -> CompileResult:
        """Flattened stylesheet text -> prefixed CSS + chained sourcemap"""
        compiled = await self.compiler.compile(text, entry.name, [entry.parent])
        css_name = Path(entry.name).with_suffix(self.settings.compiled_stylesheet_extension).name
        return await self.postprocessor.process(compiled.code, compiled.map, css_name)
