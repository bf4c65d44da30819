"""
Application settings and configuration

Uses pydantic-settings for type-safe configuration via environment variables.
All settings use MINIKIT_ prefix (e.g., MINIKIT_STRATEGY=rescan).

Settings can also be loaded from a .env file in the project root.
"""

from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application configuration via environment variables.

    Environment variables use MINIKIT_ prefix.

    Examples:
        MINIKIT_PARTIAL_MARKER=_
        MINIKIT_STRATEGY=rescan
        MINIKIT_SASS_COMMAND=/opt/dart-sass/sass
    """

    model_config = SettingsConfigDict(
        env_prefix="MINIKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Classification
    partial_marker: str = Field(
        default="_",
        description="Leading character that marks a path segment as a partial",
    )

    script_extensions: List[str] = Field(
        default=[".js"],
        description="Extensions compiled through the script transform + minify stages",
    )

    stylesheet_extensions: List[str] = Field(
        default=[".scss", ".sass"],
        description="Extensions compiled through the stylesheet compile + prefix stages",
    )

    # Output layout
    compiled_stylesheet_extension: str = Field(
        default=".css",
        description="Extension written for stylesheet artifacts",
    )

    map_suffix: str = Field(
        default=".map",
        description="Suffix appended to the artifact name for the sidecar sourcemap",
    )

    charset_header: str = Field(
        default='@charset "UTF-8";\n',
        description="Declaration prepended to every stylesheet artifact",
    )

    # Build behavior
    strategy: Literal["targeted", "rescan"] = Field(
        default="targeted",
        description="Rebuild policy: dependency-targeted rebuilds or full rescan per event",
    )

    max_include_depth: int = Field(
        default=64,
        description="Maximum directive nesting depth before resolution is aborted",
    )

    script_terminator: str = Field(
        default=";",
        description="Appended after each inlined script unit",
    )

    stylesheet_terminator: str = Field(
        default="\n",
        description="Appended after each inlined stylesheet unit",
    )

    # External collaborators
    browser_targets: List[str] = Field(
        default=["chrome120", "firefox121", "safari13"],
        description="esbuild --target list used when downleveling scripts",
    )

    esbuild_command: str = Field(default="esbuild", description="Script transform executable")
    terser_command: str = Field(default="terser", description="Script minifier executable")
    sass_command: str = Field(default="sass", description="Stylesheet compiler executable")
    postcss_command: str = Field(default="postcss", description="Stylesheet post-processor executable")

    # Supervisor
    config_filename: str = Field(
        default="minikit.config.json",
        description="Watch-target list looked up inside the input directory",
    )


# Singleton instance - import this in your code
appsettings = AppSettings()
