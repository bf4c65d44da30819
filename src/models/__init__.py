"""
Models package for minikit

Contains data structures and type definitions for the build engine.
"""

from .state import ProgramState, pipeline
from .source import SourceKind, Visibility, SourceClass
from .directives import Directive, Resolution, DIRECTIVE_ALIASES
from .events import EventKind, BuildAction, WatchEvent, BuildStats

__all__ = [
    "ProgramState",
    "pipeline",
    "SourceKind",
    "Visibility",
    "SourceClass",
    "Directive",
    "Resolution",
    "DIRECTIVE_ALIASES",
    "EventKind",
    "BuildAction",
    "WatchEvent",
    "BuildStats",
]
