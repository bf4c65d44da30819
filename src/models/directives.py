"""
Include directive models

A directive is a single-line comment asking for another file's content
to be inlined at that spot:

    // @import "_util.js";
    // @codekit-prepend '_vendor/jquery.js'
    // @prepros-prepend _helpers.js;

The three spellings are aliases kept for interoperability with the
CodeKit and Prepros preprocessors.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List


# Accepted directive spellings (without the leading "@")
DIRECTIVE_ALIASES: List[str] = [
    "import",
    "codekit-prepend",
    "prepros-prepend",
]


@dataclass
class Directive:
    """
    One include directive found in a source file

    Attributes:
        alias: Spelling used ("import", "codekit-prepend", "prepros-prepend")
        rawPath: Target path exactly as written between the optional quotes
        resolvedPath: Canonical path, relative to the including file's directory
        start: Offset of the directive line's first character in the including text
        end: Offset just past the directive (the line break is not consumed)

    Example:
        For '// @import "_util.js";' inside /site/app.js:
        Directive(alias="import", rawPath="_util.js",
                  resolvedPath=Path("/site/_util.js"), start=0, end=22)
    """
    alias: str
    rawPath: str
    resolvedPath: Path
    start: int
    end: int


@dataclass
class Resolution:
    """
    Result of flattening one entry

    Attributes:
        text: Flattened text, every inlined unit terminated
        dependencies: Every distinct file inlined, direct or transitive,
                      in first-encounter order
        directives: All directives encountered, in resolution order
    """
    text: str
    dependencies: List[Path] = field(default_factory=list)
    directives: List[Directive] = field(default_factory=list)
