"""
Watch-target config tests

Parsing the {src, out} list, per-entry validation and whole-file errors.
"""

from pathlib import Path

import pytest

from conftest import write
from minikit.config.settings import AppSettings
from minikit.config.targets import ConfigError, WatchTarget, targets_load, targets_parse


@pytest.fixture
def bases(tmp_path: Path) -> tuple[Path, Path]:
    root = tmp_path.resolve()
    return root / "in", root / "out"


class TestParse:

    def test_relative_paths_anchored_on_bases(self, bases):
        """Relative src/out are anchored on the input and output bases"""
        src_base, out_base = bases
        targets = targets_parse([{"src": "js", "out": "public/js"}], src_base, out_base)

        assert targets == [WatchTarget(src=src_base / "js", out=out_base / "public" / "js")]
        assert targets[0].key == f"{src_base / 'js'}→{out_base / 'public' / 'js'}"

    def test_absolute_paths_kept(self, bases, tmp_path: Path):
        """Absolute paths are used as given"""
        src_base, out_base = bases
        absolute = tmp_path.resolve() / "elsewhere"
        targets = targets_parse([{"src": str(absolute), "out": "o"}], src_base, out_base)
        assert targets[0].src == absolute

    def test_invalid_entries_skipped_siblings_kept(self, bases):
        """Malformed entries are skipped without dropping valid ones"""
        src_base, out_base = bases
        raw = [
            {"src": "a", "out": "a-out"},
            {"src": "missing-out"},
            "not a mapping",
            {"src": "", "out": "x"},
            {"src": "b", "out": "b-out"},
        ]

        targets = targets_parse(raw, src_base, out_base)

        assert [t.src.name for t in targets] == ["a", "b"]

    def test_duplicates_removed(self, bases):
        """Targets naming the same pair are kept once"""
        src_base, out_base = bases
        raw = [{"src": "a", "out": "o"}, {"src": "./a", "out": "o/"}]
        assert len(targets_parse(raw, src_base, out_base)) == 1

    @pytest.mark.parametrize("raw", [{"src": "a", "out": "b"}, "text", 3, None])
    def test_document_must_be_a_list(self, bases, raw):
        """Anything but a list is a config error"""
        src_base, out_base = bases
        with pytest.raises(ConfigError):
            targets_parse(raw, src_base, out_base)

    def test_empty_list_is_valid(self, bases):
        """An empty list means no targets"""
        src_base, out_base = bases
        assert targets_parse([], src_base, out_base) == []


class TestLoad:

    def test_json_file(self, bases):
        """A JSON config file loads in order"""
        src_base, out_base = bases
        config = write(
            src_base / "minikit.config.json",
            '[{"src": "js", "out": "js"}, {"src": "css", "out": "css"}]',
        )

        targets = targets_load(config, src_base, out_base)

        assert [(t.src.name, t.out.name) for t in targets] == [("js", "js"), ("css", "css")]

    def test_yaml_file(self, bases):
        """A YAML config file loads the same way"""
        src_base, out_base = bases
        config = write(src_base / "minikit.yml", "- src: js\n  out: build/js\n")
        targets = targets_load(config, src_base, out_base)
        assert targets[0].out == out_base / "build" / "js"

    def test_missing_file(self, bases):
        """A missing config file is a config error"""
        src_base, out_base = bases
        with pytest.raises(ConfigError, match="not found"):
            targets_load(src_base / "minikit.config.json", src_base, out_base)

    def test_malformed_file(self, bases):
        """Unparseable config text is a config error"""
        src_base, out_base = bases
        config = write(src_base / "minikit.config.json", '[{"src": "js", "out": ')
        with pytest.raises(ConfigError, match="Invalid JSON/YAML"):
            targets_load(config, src_base, out_base)

    def test_wrong_shape(self, bases):
        """A parseable config of the wrong shape is a config error"""
        src_base, out_base = bases
        config = write(src_base / "minikit.config.json", '{"src": "js", "out": "js"}')
        with pytest.raises(ConfigError):
            targets_load(config, src_base, out_base)


class TestSettings:

    def test_defaults(self):
        """Settings defaults for markers, extensions and charset"""
        settings = AppSettings()
        assert settings.partial_marker == "_"
        assert settings.script_extensions == [".js"]
        assert settings.stylesheet_extensions == [".scss", ".sass"]
        assert settings.charset_header == '@charset "UTF-8";\n'

    def test_environment_override(self, monkeypatch):
        """MINIKIT_ environment variables override settings"""
        monkeypatch.setenv("MINIKIT_STRATEGY", "rescan")
        monkeypatch.setenv("MINIKIT_SASS_COMMAND", "/opt/sass/sass")
        settings = AppSettings()
        assert settings.strategy == "rescan"
        assert settings.sass_command == "/opt/sass/sass"
