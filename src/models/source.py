"""
Source file classification models

Kind is derived from the file extension, visibility from the partial
marker on any path segment. Neither is stored anywhere: both are
recomputed from the path on every event.
"""

from dataclasses import dataclass
from enum import Enum


class SourceKind(Enum):
    """What compile pipeline a source file goes through"""
    SCRIPT = "script"            # .js -> transform + minify
    STYLESHEET = "stylesheet"    # .scss/.sass -> compile + prefix
    IGNORED = "ignored"          # never resolved, never written


class Visibility(Enum):
    """Whether a source file is emitted on its own"""
    ENTRY = "entry"      # produces an artifact
    PARTIAL = "partial"  # only reachable through a directive


@dataclass(frozen=True)
class SourceClass:
    """
    Classification of one source path

    Attributes:
        kind: Script, Stylesheet or Ignored (from extension)
        visibility: Entry or Partial (from path segments)

    Example:
        For "src/_lib/util.js" under root "src":
        SourceClass(kind=SourceKind.SCRIPT, visibility=Visibility.PARTIAL)
    """
    kind: SourceKind
    visibility: Visibility

    @property
    def compilable(self) -> bool:
        """Script or Stylesheet, regardless of visibility"""
        return self.kind is not SourceKind.IGNORED

    @property
    def emits(self) -> bool:
        """True only for Script/Stylesheet entries"""
        return self.compilable and self.visibility is Visibility.ENTRY
