"""
Source path classifier

Pure function of the path string and the configured source root: no file
is opened, nothing is cached.
"""

import os
from pathlib import Path
from typing import Optional

from ..config.settings import AppSettings, appsettings
from ..models.source import SourceClass, SourceKind, Visibility


class FileClassifier:
    """
    Classifies paths under one source root into kind and visibility

    A path is a partial when any of its components relative to the root
    (directories included) starts with the partial marker, so
    ``_vendor/lib/jquery.js`` is a partial just like ``lib/_helpers.js``.
    """

    def __init__(self, source_root: Path, settings: Optional[AppSettings] = None) -> None:
        self.settings = settings or appsettings
        self.source_root = Path(os.path.abspath(source_root))
        self.script_extensions = {e.lower() for e in self.settings.script_extensions}
        self.stylesheet_extensions = {e.lower() for e in self.settings.stylesheet_extensions}

    def kind_get(self, path: Path) -> SourceKind:
        """Kind from the file extension (case-insensitive)"""
        suffix = Path(path).suffix.lower()
        if suffix in self.script_extensions:
            return SourceKind.SCRIPT
        if suffix in self.stylesheet_extensions:
            return SourceKind.STYLESHEET
        return SourceKind.IGNORED

    def parts_relative(self, path: Path) -> Optional[tuple[str, ...]]:
        """Components of path relative to the source root, None if outside it"""
        absolute = Path(os.path.abspath(path))
        try:
            return absolute.relative_to(self.source_root).parts
        except ValueError:
            return None

    def classify(self, path: Path) -> SourceClass:
        """
        Classify a path into kind and visibility.

        Args:
            path: Absolute path, or path relative to the working directory

        Returns:
            SourceClass; paths outside the source root are Ignored
        """
        parts = self.parts_relative(path)
        if not parts:
            return SourceClass(SourceKind.IGNORED, Visibility.ENTRY)

        marker = self.settings.partial_marker
        visibility = (
            Visibility.PARTIAL
            if any(part.startswith(marker) for part in parts)
            else Visibility.ENTRY
        )
        return SourceClass(self.kind_get(path), visibility)
