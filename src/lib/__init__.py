"""
minikit - Incremental front-end build watcher

Watches a source tree and keeps compiled scripts and stylesheets, plus
their sourcemaps, in sync in an output tree.
"""

__version__ = "1.0.0"

from .log import LOG, ERROR, state_connectToLogger
from .classifier import FileClassifier
from .graph import DependencyGraph
from .resolver import ImportResolver, ResolveError, IncludeDepthError
from .writer import OutputWriter
from .toolchain import Toolchain, CompileError, CompileResult
from .orchestrator import BuildOrchestrator, TargetedStrategy, RescanStrategy, strategy_get
from .watcher import TargetWatcher
from .supervisor import WatchSupervisor

__all__ = [
    "FileClassifier",
    "DependencyGraph",
    "ImportResolver",
    "ResolveError",
    "IncludeDepthError",
    "OutputWriter",
    "Toolchain",
    "CompileError",
    "CompileResult",
    "BuildOrchestrator",
    "TargetedStrategy",
    "RescanStrategy",
    "strategy_get",
    "TargetWatcher",
    "WatchSupervisor",
    "LOG",
    "ERROR",
    "state_connectToLogger",
    "__version__",
]
