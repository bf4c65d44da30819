"""
Configuration package for minikit

Provides application settings via environment variables using pydantic-settings,
and the watch-target config file loader.
"""

from .settings import appsettings, AppSettings
from .targets import ConfigError, WatchTarget, targets_load, targets_parse

__all__ = [
    "appsettings",
    "AppSettings",
    "ConfigError",
    "WatchTarget",
    "targets_load",
    "targets_parse",
]
