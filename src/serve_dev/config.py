"""Configuration models for serve-dev.

Configuration is derived once at startup from the command line merged with
an optional ``serve.json`` file, and is immutable afterwards.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from serve_dev.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_LISTEN = "tcp://localhost:3000"
DEFAULT_CONFIG_FILE = "./serve.json"
DEFAULT_RELOAD_PATH = "/__reload"

# serve.json keys that override command-line options
OPTION_KEYS = {"listen", "https", "cert", "key", "reload", "watch", "make", "program", "cors"}

# serve.json keys consumed by the static file layer
STATIC_KEYS = {"public", "cleanUrls", "headers", "directoryListing"}


@dataclass(frozen=True)
class WatchBinding:
    """A watch pattern and the build target it triggers, if any.

    Attributes:
        pattern: Glob pattern handed to the directory watcher
        target: Build target passed to the build program, or None
    """

    pattern: str
    target: str | None = None


def build_bindings(patterns: list[str], targets: list[str]) -> list[WatchBinding]:
    """Pair watch patterns with build targets by position.

    Pattern ``i`` gets target ``i`` when the target list is long enough;
    remaining patterns only trigger a reload. Targets without a pattern are
    not represented here (the startup summary reports them as unavailable).
    """
    return [
        WatchBinding(pattern=pattern, target=(targets[i] or None) if i < len(targets) else None)
        for i, pattern in enumerate(patterns)
    ]


class HeaderValue(BaseModel):
    """A single header in a ``headers`` rule."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: str


class HeaderRule(BaseModel):
    """Extra response headers for static paths matching ``source``."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(description="Glob matched against the request path")
    headers: list[HeaderValue] = Field(default_factory=list)


class StaticOptions(BaseModel):
    """Static-serving options read from ``serve.json``.

    Uses the ``serve.json`` key names, so existing files keep working.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    public: Path | None = Field(
        default=None,
        description="Directory to serve, overriding the ROOT argument",
    )
    clean_urls: bool = Field(
        default=True,
        alias="cleanUrls",
        description="Serve /page from page.html when /page does not exist",
    )
    headers: list[HeaderRule] = Field(
        default_factory=list,
        description="Custom response headers per path glob",
    )
    directory_listing: bool = Field(
        default=True,
        alias="directoryListing",
        description="List directories that have no index.html",
    )


def _as_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


class ServeConfig(BaseModel):
    """Configuration for the development server.

    Attributes:
        root: Directory served as the public root
        listen: Listen address string (see serve_dev.listen)
        https: Serve over TLS using cert/key
        cert: PEM certificate path
        key: PEM private key path
        config: Path of the JSON file merged into these options
        reload: URL path that opens a push-notification stream
        watch: Ordered watch patterns
        make: Ordered build targets, paired with watch by position
        program: Executable used to run build targets
        cors: Access-Control-Allow-Origin value for static responses
        static: Static-serving options from the JSON file
    """

    model_config = ConfigDict(frozen=True)

    root: Path = Field(default_factory=Path.cwd, description="Public root directory")
    listen: str = Field(default=DEFAULT_LISTEN, description="Listen address")
    https: bool = Field(default=False, description="Use TLS")
    cert: Path | None = Field(default=None, description="TLS certificate (PEM)")
    key: Path | None = Field(default=None, description="TLS private key (PEM)")
    config: Path = Field(default=Path(DEFAULT_CONFIG_FILE), description="JSON config file")
    reload: str = Field(default=DEFAULT_RELOAD_PATH, description="Push-notification path")
    watch: list[str] = Field(default_factory=list, description="Watch patterns")
    make: list[str] = Field(default_factory=list, description="Build targets")
    program: str = Field(default="make", min_length=1, description="Build program")
    cors: str = Field(default="*", description="Access-Control-Allow-Origin value")
    static: StaticOptions = Field(default_factory=StaticOptions)

    @field_validator("watch", "make", mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> Any:
        return _as_list(value)

    @field_validator("reload")
    @classmethod
    def _check_reload(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"reload path must start with '/': {value!r}")
        return value

    @property
    def bindings(self) -> list[WatchBinding]:
        """Watch patterns paired with their build targets."""
        return build_bindings(self.watch, self.make)

    @property
    def public_root(self) -> Path:
        """Directory actually served, after applying ``public`` from the file."""
        if self.static.public is None:
            return self.root
        return self.static.public.resolve()

    @property
    def reload_enabled(self) -> bool:
        """True when the push-notification path is active."""
        return bool(self.watch)

    @classmethod
    def from_sources(
        cls,
        options: dict[str, Any],
        file_data: dict[str, Any] | None = None,
    ) -> ServeConfig:
        """Merge command-line options with JSON file data.

        File keys override command-line values. Unknown file keys are
        logged and ignored.

        Args:
            options: Values from the command line (field name -> value)
            file_data: Parsed JSON object from the config file

        Returns:
            The merged configuration

        Raises:
            ConfigError: If the merged values are invalid
        """
        merged = {k: v for k, v in options.items() if v is not None}
        static: dict[str, Any] = {}

        for key, value in (file_data or {}).items():
            if key in OPTION_KEYS:
                merged[key] = value
            elif key in STATIC_KEYS:
                static[key] = value
            else:
                logger.warning(f"Ignoring unknown config key: {key}")

        try:
            return cls(**merged, static=StaticOptions(**static))
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}", config=str(merged.get("config"))) from e


def load_config_file(path: Path) -> dict[str, Any]:
    """Read a JSON config file.

    A missing file is not an error and yields an empty dict.

    Args:
        path: Path to the JSON file (relative paths use the working directory)

    Returns:
        Parsed JSON object

    Raises:
        ConfigError: If the file exists but cannot be read or parsed
    """
    path = Path.cwd() / path
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug(f"No config file at {path}")
        return {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}", path=str(path)) from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file {path}: {e}", path=str(path)) from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object", path=str(path))

    logger.debug(f"Loaded config file {path}")
    return data


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_LISTEN",
    "DEFAULT_RELOAD_PATH",
    "HeaderRule",
    "HeaderValue",
    "ServeConfig",
    "StaticOptions",
    "WatchBinding",
    "build_bindings",
    "load_config_file",
]
