"""
minikit - Incremental front-end build watcher

Compiles script and stylesheet entries, inlines // @import partials, and
rebuilds exactly the entries a change affects.
"""

__version__ = "1.0.0"

from .lib import (
    BuildOrchestrator,
    DependencyGraph,
    FileClassifier,
    ImportResolver,
    OutputWriter,
    Toolchain,
    WatchSupervisor,
    LOG,
    state_connectToLogger,
)

__all__ = [
    "BuildOrchestrator",
    "DependencyGraph",
    "FileClassifier",
    "ImportResolver",
    "OutputWriter",
    "Toolchain",
    "WatchSupervisor",
    "LOG",
    "state_connectToLogger",
    "__version__",
]
