"""
Watch-target configuration

A config file holds a list of source/output directory pairs, one watcher
per pair:

    [
        {"src": "site/js",  "out": "public/js"},
        {"src": "site/css", "out": "public/css"}
    ]

The file is read with yaml.safe_load, so JSON and YAML are both accepted.
Each entry is validated on its own: a broken entry is logged and skipped
without affecting its siblings.
"""

from pathlib import Path
from typing import Any, List

import yaml
from pydantic import BaseModel, ValidationError, field_validator

from ..lib.log import ERROR, LOG


class ConfigError(Exception):
    """Raised when the config file as a whole cannot be used"""
    pass


class WatchTarget(BaseModel):
    """
    One source/output pair to watch.

    Attributes:
        src: Source root (canonical absolute path once resolved)
        out: Output root (canonical absolute path once resolved)
    """

    src: Path
    out: Path

    @field_validator("src", "out")
    @classmethod
    def path_nonEmpty(cls, value: Path) -> Path:
        if not str(value).strip() or str(value) == ".":
            # Path("") collapses to "."; an empty entry is never what was meant
            raise ValueError("path must not be empty")
        return value

    @property
    def key(self) -> str:
        """Identity used by the supervisor to track this target's watcher"""
        return f"{self.src}→{self.out}"

    def resolved(self, src_base: Path, out_base: Path) -> "WatchTarget":
        """
        Anchor relative paths under the given bases and canonicalize.

        Args:
            src_base: Directory that relative ``src`` entries are taken from
            out_base: Directory that relative ``out`` entries are taken from

        Returns:
            New WatchTarget with absolute, symlink-resolved paths
        """
        return WatchTarget(
            src=(src_base / self.src).resolve(),
            out=(out_base / self.out).resolve(),
        )


def targets_parse(raw: Any, src_base: Path, out_base: Path) -> List[WatchTarget]:
    """
    Validate a decoded config document into resolved watch targets.

    Args:
        raw: Decoded config document (expected: list of mappings)
        src_base: Base directory for relative ``src`` entries
        out_base: Base directory for relative ``out`` entries

    Returns:
        Targets that validated, in file order, duplicates removed

    Raises:
        ConfigError: If the document is not a list
    """
    if not isinstance(raw, list):
        raise ConfigError("config should be a list of {src, out} objects")

    targets: List[WatchTarget] = []
    seen: set[str] = set()
    for index, item in enumerate(raw):
        try:
            target = WatchTarget.model_validate(item).resolved(src_base, out_base)
        except (ValidationError, TypeError, ValueError) as e:
            ERROR(f"Invalid watch target #{index} in config: {e}")
            continue
        if target.key in seen:
            LOG(f"Duplicate watch target skipped: {target.key}", level=2)
            continue
        seen.add(target.key)
        targets.append(target)
    return targets


def targets_load(config_path: Path, src_base: Path, out_base: Path) -> List[WatchTarget]:
    """
    Read and validate a watch-target config file.

    Args:
        config_path: Path to the JSON/YAML config file
        src_base: Base directory for relative ``src`` entries
        out_base: Base directory for relative ``out`` entries

    Returns:
        List of resolved WatchTarget objects

    Raises:
        ConfigError: If the file is missing, unreadable, malformed or not a list
    """
    if not config_path.exists():
        raise ConfigError(f"{config_path.name} not found. Waiting for it to appear...")

    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Error reading {config_path.name}: {e}")

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid JSON/YAML in {config_path.name}: {e}")

    targets = targets_parse(raw, src_base, out_base)
    LOG(f"Loaded {len(targets)} watch target(s) from {config_path}", level=2)
    return targets
