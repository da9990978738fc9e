"""File system watchers for watch patterns.

Each watch pattern gets its own :class:`PatternWatcher` backed by
watchfiles. Changes are handed to a :class:`ChangeDispatcher`, which either
starts a build or broadcasts a reload straight away.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from pathlib import Path

from watchfiles import Change, awatch

from serve_dev.config import WatchBinding
from serve_dev.errors import ConfigError
from serve_dev.globs import glob_match, has_glob, split_path
from serve_dev.server.build import BuildTrigger
from serve_dev.server.events import BuildResult, FileChange
from serve_dev.server.hub import NotificationHub

logger = logging.getLogger(__name__)


def _change_type_to_str(change: Change) -> str:
    """Convert watchfiles Change enum to string."""
    if change == Change.added:
        return "added"
    elif change == Change.deleted:
        return "deleted"
    return "modified"


def _pattern_base(pattern: str, cwd: Path) -> Path:
    """Absolute directory named by the non-glob prefix of a pattern."""
    pattern = pattern.replace("\\", "/")
    prefix: list[str] = []
    for part in split_path(pattern):
        if has_glob(part):
            break
        prefix.append(part)

    if Path(pattern).is_absolute():
        base = Path(Path(pattern).anchor, *prefix)
    else:
        base = cwd.joinpath(*prefix)
    return Path(os.path.normpath(base))


def watch_root(pattern: str, cwd: Path | None = None) -> Path:
    """Directory to hand to the OS watcher for a pattern.

    The non-glob prefix of the pattern, shortened until it names an
    existing directory. Shortening stops at ``cwd``; a prefix outside
    ``cwd`` may shorten to any existing ancestor except the filesystem root.

    Raises:
        ConfigError: Nothing but the filesystem root exists above the prefix
    """
    cwd = (cwd or Path.cwd()).resolve()
    base = _pattern_base(pattern, cwd)

    root = base
    while not root.is_dir() and root != cwd and root != root.parent:
        root = root.parent

    if not root.is_dir() or (root == root.parent and root != base):
        raise ConfigError(
            f"Cannot watch {pattern}: directory {base} does not exist",
            pattern=pattern,
        )
    return root


def matches(pattern: str, path: Path, cwd: Path | None = None) -> bool:
    """Check whether a changed path matches a watch pattern.

    Relative patterns match against the path relative to ``cwd``. Globs
    stay within one path segment, ``**`` matches any number of directories,
    and a pattern without glob characters matches itself and everything
    beneath it.
    """
    cwd = cwd or Path.cwd()
    pattern = pattern.replace("\\", "/")
    if pattern.startswith("./"):
        pattern = pattern[2:]

    if Path(pattern).is_absolute():
        candidate = path.as_posix()
    else:
        try:
            candidate = Path(os.path.relpath(path, cwd)).as_posix()
        except ValueError:
            # Different drive on Windows
            return False

    if not has_glob(pattern):
        base = pattern.rstrip("/")
        return candidate == base or candidate.startswith(base + "/")

    return glob_match(pattern, candidate)


class ChangeDispatcher:
    """Route a file change to a build or a direct reload broadcast."""

    def __init__(self, hub: NotificationHub, trigger: BuildTrigger, cwd: Path | None = None) -> None:
        self.hub = hub
        self.trigger = trigger
        self.cwd = (cwd or Path.cwd()).resolve()

    def dispatch(self, binding: WatchBinding, change: FileChange) -> asyncio.Task[BuildResult] | None:
        """Handle one change for a binding.

        Returns:
            The build task when a target is bound, otherwise None
        """
        logger.info(f"changed {change.path}")
        payload = change.display_path(self.cwd)

        if binding.target is None:
            self.hub.broadcast(payload)
            return None

        def on_complete(result: BuildResult) -> None:
            self.hub.broadcast(payload)

        return self.trigger.start(binding.target, on_complete)


class PatternWatcher:
    """Async watcher for one watch pattern.

    Attributes:
        binding: The pattern (and target) being watched
        callback: Invoked with each matching change
    """

    def __init__(
        self,
        binding: WatchBinding,
        callback: Callable[[WatchBinding, FileChange], object],
        cwd: Path | None = None,
    ) -> None:
        """Initialize the watcher.

        Args:
            binding: Watch binding to monitor
            callback: callback(binding, change) for every matching change
            cwd: Directory relative patterns are resolved against
        """
        self.binding = binding
        self.callback = callback
        self.cwd = (cwd or Path.cwd()).resolve()
        self.root = watch_root(binding.pattern, self.cwd)
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    async def start(self) -> None:
        """Start watching in a background task."""
        if self._task is not None:
            logger.warning(f"Watcher for {self.binding.pattern} already running")
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._watch())
        logger.debug(f"Watching {self.binding.pattern} under {self.root}")

    async def stop(self) -> None:
        """Stop watching and wait for the task to finish."""
        if self._task is None:
            return

        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _watch(self) -> None:
        """Main watch loop."""
        try:
            async for changes in awatch(
                self.root,
                stop_event=self._stop_event,
                watch_filter=self._watch_filter,
            ):
                for change_type, path_str in sorted(changes, key=lambda c: c[1]):
                    change = FileChange(
                        change_type=_change_type_to_str(change_type),
                        path=Path(path_str),
                    )
                    try:
                        self.callback(self.binding, change)
                    except Exception as e:
                        logger.error(f"Error handling change to {change.path}: {e}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Watcher for {self.binding.pattern} failed: {e}")
            raise

    def _watch_filter(self, change: Change, path: str) -> bool:
        """Filter function for watchfiles."""
        return matches(self.binding.pattern, Path(path), self.cwd)

    @property
    def is_running(self) -> bool:
        """True while the watch task is alive."""
        return self._task is not None and not self._task.done()


__all__ = [
    "ChangeDispatcher",
    "PatternWatcher",
    "matches",
    "watch_root",
]
