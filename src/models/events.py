"""
Watch event and build action models

The orchestrator is a small state machine: a WatchEvent goes in, a
BuildAction is decided from the event kind and the path's classification,
and the action is executed.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path


class EventKind(Enum):
    """Filesystem events reported by the watch primitive"""
    ADD = auto()
    CHANGE = auto()
    UNLINK = auto()


class BuildAction(Enum):
    """What the orchestrator does in response to one event"""
    COMPILE = auto()     # rebuild this one entry
    PROPAGATE = auto()   # rebuild every entry that inlined this partial
    REMOVE = auto()      # delete artifacts, forget dependencies
    RESCAN = auto()      # rebuild every entry under the source root
    IGNORE = auto()      # not a script or stylesheet


@dataclass(frozen=True)
class WatchEvent:
    """
    One filesystem event for a path under a watched source root

    Attributes:
        kind: Add, Change or Unlink
        path: Path as reported by the watcher (canonicalized by the orchestrator)
        directory: True when the event is for a whole directory (a subtree
                   moved in or out of the source root)
    """
    kind: EventKind
    path: Path
    directory: bool = False


@dataclass
class BuildStats:
    """Outcome counters for one orchestrator's lifetime"""
    built: int = field(default=0)
    failed: int = field(default=0)
    superseded: int = field(default=0)
    removed: int = field(default=0)

    def summary(self) -> str:
        return (
            f"{self.built} built, {self.failed} failed, "
            f"{self.superseded} superseded, {self.removed} removed"
        )
