"""
Artifact placement and removal

An entry's artifact mirrors its path relative to the source root under
the output root; stylesheets get the compiled extension. The sourcemap
sits next to the artifact with the map suffix appended:

    src/pages/home.scss  ->  out/pages/home.css
                             out/pages/home.css.map
"""

import os
from pathlib import Path
from typing import Optional, Tuple

from ..config.settings import AppSettings, appsettings
from ..models.source import SourceKind
from .classifier import FileClassifier
from .log import LOG


class OutputWriter:
    """
    Writes and removes artifact + sidecar map pairs for entries

    Writes are synchronous: the orchestrator relies on write() containing
    no suspension point so that a superseded build cannot interleave with
    the current one between the staleness check and the write.
    """

    def __init__(
        self,
        source_root: Path,
        output_root: Path,
        classifier: Optional[FileClassifier] = None,
        settings: Optional[AppSettings] = None,
    ) -> None:
        self.settings = settings or appsettings
        self.source_root = Path(os.path.abspath(source_root))
        self.output_root = Path(os.path.abspath(output_root))
        self.classifier = classifier or FileClassifier(self.source_root, self.settings)

    def artifact_paths(self, entry: Path) -> Tuple[Path, Path]:
        """
        Compute (artifactPath, mapPath) for an entry.

        Raises:
            ValueError: If entry is not under the source root
        """
        relative = Path(os.path.abspath(entry)).relative_to(self.source_root)
        artifact = self.output_root / relative
        if self.classifier.kind_get(entry) is SourceKind.STYLESHEET:
            artifact = artifact.with_suffix(self.settings.compiled_stylesheet_extension)
        return artifact, artifact.with_name(artifact.name + self.settings.map_suffix)

    def stylesheet_prefix(self, css: str) -> str:
        """Put exactly one charset declaration at the top of css"""
        css = css.lstrip("\ufeff")
        if css.lower().startswith("@charset"):
            # drop whatever charset rule the compiler emitted
            end = css.find(";")
            css = css[end + 1:].lstrip("\r\n") if end != -1 else css
        return self.settings.charset_header + css

    def write(self, entry: Path, content: str, sourceMap: Optional[str]) -> Path:
        """
        Write an entry's artifact and sidecar map.

        Args:
            entry: Entry source path
            content: Compiled output
            sourceMap: Sourcemap JSON text, None when the collaborator made none

        Returns:
            Path of the written artifact
        """
        artifact, map_path = self.artifact_paths(entry)
        if self.classifier.kind_get(entry) is SourceKind.STYLESHEET:
            content = self.stylesheet_prefix(content)

        artifact.parent.mkdir(parents=True, exist_ok=True)
        artifact.write_text(content, encoding="utf-8")
        if sourceMap is not None:
            map_path.write_text(sourceMap, encoding="utf-8")
        else:
            map_path.unlink(missing_ok=True)

        LOG(f"Wrote {artifact}", level=2)
        return artifact

    def remove(self, entry: Path) -> bool:
        """
        Delete an entry's artifact and sidecar map if present.

        Returns:
            True if at least one file was deleted
        """
        removed = False
        for path in self.artifact_paths(entry):
            try:
                path.unlink()
                removed = True
                LOG(f"Removed {path}", level=2)
            except FileNotFoundError:
                pass
        return removed
