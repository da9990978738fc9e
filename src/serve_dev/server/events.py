"""Event models for file watching and builds."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class FileChange:
    """A file change event from a pattern watcher.

    Attributes:
        change_type: Type of change - 'added', 'modified', or 'deleted'
        path: Absolute path to the changed file
    """

    change_type: str  # 'added', 'modified', 'deleted'
    path: Path

    def display_path(self, base: Path | None = None) -> str:
        """Path as sent to browsers: relative to ``base`` (cwd) when beneath it."""
        base = base or Path.cwd()
        try:
            return self.path.relative_to(base).as_posix()
        except ValueError:
            return self.path.as_posix()


@dataclass(frozen=True)
class BuildResult:
    """Outcome of one build program run.

    Attributes:
        target: Build target that was run
        returncode: Exit status, or None if the program never started
        duration: Wall-clock seconds from spawn to exit
        error: Spawn failure message, if any
    """

    target: str
    returncode: int | None
    duration: float = 0.0
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        """True when the program ran and exited with status 0."""
        return self.returncode == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "target": self.target,
            "returncode": self.returncode,
            "duration": self.duration,
            "error": self.error,
        }


__all__ = ["BuildResult", "FileChange"]
