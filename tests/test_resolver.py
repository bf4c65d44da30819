"""
Import resolver tests

Covers directive matching, inlining order, cycle breaking, failure
atomicity and dependency recording.
"""

import asyncio
from pathlib import Path
from typing import Dict

import pytest

from conftest import write
from minikit.lib.graph import DependencyGraph
from minikit.lib.resolver import (
    ImportResolver,
    IncludeDepthError,
    ResolveError,
)


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return tmp_path.resolve()


def counting_reader(counts: Dict[Path, int]):
    async def reader(path: Path) -> str:
        counts[path] = counts.get(path, 0) + 1
        return path.read_text(encoding="utf-8")
    return reader


class TestNoDirectives:

    def test_content_plus_one_terminator(self, root: Path):
        """A file without directives gets one trailing terminator"""
        entry = write(root / "app.js", "const a = 1;\nconsole.log(a)")
        text = asyncio.run(ImportResolver().resolve(entry))
        assert text == "const a = 1;\nconsole.log(a);"

    def test_empty_file(self, root: Path):
        """An empty file resolves to the terminator alone"""
        entry = write(root / "empty.js", "")
        assert asyncio.run(ImportResolver().resolve(entry)) == ";"

    def test_custom_terminator(self, root: Path):
        """Stylesheets use a newline terminator"""
        entry = write(root / "main.scss", "a { color: red; }")
        text = asyncio.run(ImportResolver(terminator="\n").resolve(entry))
        assert text == "a { color: red; }\n"


class TestDirectiveMatching:
    """Which lines count as directives"""

    @pytest.mark.parametrize(
        "line",
        [
            '// @import "b.js";',
            "// @import 'b.js';",
            "// @import b.js;",
            "// @import b.js",
            '//@import "b.js"',
            '    // @import "b.js";',
            '\t//\t@import\t"b.js"  ',
            '// @codekit-prepend "b.js";',
            "// @prepros-prepend 'b.js'",
        ],
    )
    def test_accepted_spellings(self, root: Path, line: str):
        """Every accepted directive spelling inlines the target"""
        write(root / "b.js", "B")
        entry = write(root / "a.js", f"{line}\nA")
        text = asyncio.run(ImportResolver().resolve(entry))
        assert text == "B;\nA;"

    @pytest.mark.parametrize(
        "line",
        [
            'console.log("// @import b.js");',
            '/* @import "b.js"; */',
            '// @import "b.js"; doSomething();',
            '// @require "b.js";',
            '// @import "b.js\'',
            '@import "b.js";',
        ],
    )
    def test_non_directive_lines_are_content(self, root: Path, line: str):
        """Lines that only look like directives are kept verbatim"""
        write(root / "b.js", "B")
        entry = write(root / "a.js", f"{line}\nA")
        text = asyncio.run(ImportResolver().resolve(entry))
        assert text == f"{line}\nA;"

    def test_directives_find_reports_paths(self, root: Path):
        """Directive records carry alias, raw path, resolved path and span"""
        resolver = ImportResolver()
        source = '// @import "lib/_x.js";\n// @codekit-prepend \'../y.js\'\n'
        directives = resolver.directives_find(source, root / "pages" / "a.js")
        assert [d.alias for d in directives] == ["import", "codekit-prepend"]
        assert [d.rawPath for d in directives] == ["lib/_x.js", "../y.js"]
        assert directives[0].resolvedPath == root / "pages" / "lib" / "_x.js"
        assert directives[1].resolvedPath == root / "y.js"
        assert source[directives[0].start:directives[0].end] == '// @import "lib/_x.js";'

    def test_crlf_directive_line(self, root: Path):
        """A CRLF line ending is not part of the directive"""
        source = '// @import "b.js";\r\nA'
        directives = ImportResolver().directives_find(source, root / "a.js")
        assert [d.rawPath for d in directives] == ["b.js"]
        assert source[directives[0].end:] == "\r\nA"


class TestInlining:

    def test_three_level_chain_in_document_order(self, root: Path):
        """Nested includes are inlined depth-first in document order"""
        write(root / "c.js", "C")
        write(root / "b.js", 'B1\n// @import "c.js";\nB2')
        entry = write(root / "a.js", 'A1\n// @import "b.js";\nA2')

        text = asyncio.run(ImportResolver().resolve(entry))

        assert text == "A1\nB1\nC;\nB2;\nA2;"
        assert text.index("C") < text.index("B2") < text.index("A2")

    def test_targets_resolve_relative_to_including_file(self, root: Path):
        """Include paths are relative to the file that names them"""
        write(root / "lib" / "_c.js", "C")
        write(root / "lib" / "_b.js", '// @import "_c.js";\nB')
        entry = write(root / "a.js", '// @import "lib/_b.js";\nA')

        text = asyncio.run(ImportResolver().resolve(entry))
        assert text == "C;\nB;\nA;"

    def test_multiple_directives_in_order(self, root: Path):
        """Several directives in one file inline in order"""
        write(root / "one.js", "1")
        write(root / "two.js", "2")
        entry = write(root / "a.js", '// @import "one.js"\n// @prepros-prepend "two.js"\nA')

        text = asyncio.run(ImportResolver().resolve(entry))
        assert text == "1;\n2;\nA;"

    def test_repeat_sibling_include_contributes_nothing(self, root: Path):
        """A file already inlined is read once and inlined once"""
        counts: Dict[Path, int] = {}
        write(root / "b.js", "B")
        entry = write(root / "a.js", '// @import "b.js";\n// @import "b.js";\nA')

        text = asyncio.run(ImportResolver(reader=counting_reader(counts)).resolve(entry))

        assert text == "B;\n\nA;"
        assert counts[root / "b.js"] == 1


class TestCycles:

    def test_direct_cycle_terminates(self, root: Path):
        """A two-file cycle terminates with the back-edge empty"""
        counts: Dict[Path, int] = {}
        write(root / "b.js", '// @import "a.js";\nB')
        entry = write(root / "a.js", '// @import "b.js";\nA')

        text = asyncio.run(ImportResolver(reader=counting_reader(counts)).resolve(entry))

        assert text == "\nB;\nA;"
        assert counts[root / "b.js"] <= 2
        assert counts[root / "a.js"] == 1

    def test_self_include_is_empty(self, root: Path):
        """A file including itself contributes nothing"""
        entry = write(root / "a.js", '// @import "a.js";\nA')
        assert asyncio.run(ImportResolver().resolve(entry)) == "\nA;"

    def test_indirect_cycle(self, root: Path):
        """A longer cycle also terminates"""
        write(root / "c.js", '// @import "b.js";\nC')
        write(root / "b.js", '// @import "c.js";\nB')
        entry = write(root / "a.js", '// @import "b.js";\nA')

        text = asyncio.run(ImportResolver().resolve(entry))
        assert text == "\nC;\nB;\nA;"

    def test_depth_is_bounded(self, root: Path):
        """Include chains deeper than the limit are rejected"""
        for index in range(5):
            write(root / f"f{index}.js", f'// @import "f{index + 1}.js";\n{index}')
        write(root / "f5.js", "end")

        resolver = ImportResolver(max_depth=2)
        with pytest.raises(IncludeDepthError):
            asyncio.run(resolver.resolve(root / "f0.js"))


class TestFailure:

    def test_missing_target_fails_whole_resolution(self, root: Path):
        """A missing include fails the whole entry and names the includer"""
        entry = write(root / "a.js", '// @import "_gone.js";\nA')

        with pytest.raises(ResolveError) as excinfo:
            asyncio.run(ImportResolver().resolve(entry))

        assert excinfo.value.path == root / "_gone.js"
        assert excinfo.value.includer == entry
        assert "_gone.js" in str(excinfo.value)

    def test_missing_entry(self, root: Path):
        """A missing entry fails with no includer"""
        with pytest.raises(ResolveError) as excinfo:
            asyncio.run(ImportResolver().resolve(root / "nope.js"))
        assert excinfo.value.includer is None

    def test_failure_leaves_graph_untouched(self, root: Path):
        """A failed resolution keeps earlier records intact"""
        graph = DependencyGraph()
        entry = write(root / "a.js", '// @import "_util.js";\nA')
        other = root / "other.js"
        graph.record(entry, [root / "_old.js"])
        graph.record(other, [root / "_util.js"])

        with pytest.raises(ResolveError):
            asyncio.run(ImportResolver(graph).resolve(entry))

        assert graph.dependencies(entry) == [root / "_old.js"]
        assert graph.dependencies(other) == [root / "_util.js"]


class TestDependencyRecording:

    def test_transitive_dependencies_recorded_in_order(self, root: Path):
        """Transitive includes are recorded in first-inlined order"""
        graph = DependencyGraph()
        write(root / "_c.js", "C")
        write(root / "_b.js", '// @import "_c.js";\nB')
        write(root / "_d.js", "D")
        entry = write(root / "a.js", '// @import "_b.js";\n// @import "_d.js";\nA')

        asyncio.run(ImportResolver(graph).resolve(entry))

        assert graph.dependencies(entry) == [root / "_b.js", root / "_c.js", root / "_d.js"]
        assert graph.dependents(root / "_c.js") == {entry}

    def test_rerecording_replaces_previous_set(self, root: Path):
        """A later resolution replaces the recorded set"""
        graph = DependencyGraph()
        write(root / "_b.js", "B")
        write(root / "_c.js", "C")
        entry = write(root / "a.js", '// @import "_b.js";\nA')
        resolver = ImportResolver(graph)

        asyncio.run(resolver.resolve(entry))
        write(entry, '// @import "_c.js";\nA')
        asyncio.run(resolver.resolve(entry))

        assert graph.dependencies(entry) == [root / "_c.js"]
        assert graph.dependents(root / "_b.js") == set()

    def test_entry_never_depends_on_itself(self, root: Path):
        """A cycle back to the entry is not recorded"""
        graph = DependencyGraph()
        write(root / "b.js", '// @import "a.js";\nB')
        entry = write(root / "a.js", '// @import "b.js";\nA')

        asyncio.run(ImportResolver(graph).resolve(entry))
        assert graph.dependencies(entry) == [root / "b.js"]

    def test_flatten_does_not_record(self, root: Path):
        """flatten reports dependencies without touching the graph"""
        graph = DependencyGraph()
        write(root / "_b.js", "B")
        entry = write(root / "a.js", '// @import "_b.js";\nA')

        resolution = asyncio.run(ImportResolver(graph).flatten(entry))

        assert resolution.dependencies == [root / "_b.js"]
        assert [d.rawPath for d in resolution.directives] == ["_b.js"]
        assert entry not in graph


class TestScenario:
    """app.js inlining _util.js"""

    def test_app_inlines_util(self, root: Path):
        """app.js inlines _util.js ahead of its own content"""
        graph = DependencyGraph()
        write(root / "_util.js", "console.log(0);")
        entry = write(root / "app.js", '// @import "_util.js";\nconsole.log(1);')

        text = asyncio.run(ImportResolver(graph).resolve(entry))

        assert text.startswith("console.log(0);;\nconsole.log(1);")
        assert text == "console.log(0);;\nconsole.log(1);;"
        assert graph.dependencies(entry) == [root / "_util.js"]
