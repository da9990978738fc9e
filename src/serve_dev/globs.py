"""Glob matching for slash-separated paths.

Patterns are matched one path segment at a time, so ``*``, ``?`` and
``[...]`` never cross a ``/``. A ``**`` segment stands for zero or more
directories:

    >>> glob_match("src/*.js", "src/app.js")
    True
    >>> glob_match("src/*.js", "src/vendor/lib.js")
    False
    >>> glob_match("src/**/*.js", "src/vendor/lib.js")
    True
"""

from __future__ import annotations

from collections.abc import Sequence
from fnmatch import fnmatch

GLOB_CHARS = frozenset("*?[")

# Segment matching any number of directories
GLOBSTAR = "**"


def has_glob(text: str) -> bool:
    """True if the text contains a glob metacharacter."""
    return any(c in GLOB_CHARS for c in text)


def split_path(text: str) -> list[str]:
    """Split a path or pattern into segments, dropping empty and ``.`` parts."""
    return [part for part in text.replace("\\", "/").split("/") if part not in ("", ".")]


def match_segments(pattern: Sequence[str], path: Sequence[str]) -> bool:
    """Match path segments against pattern segments."""
    if not pattern:
        return not path

    head, rest = pattern[0], pattern[1:]
    if head == GLOBSTAR:
        return any(match_segments(rest, path[i:]) for i in range(len(path) + 1))
    if not path:
        return False
    return fnmatch(path[0], head) and match_segments(rest, path[1:])


def glob_match(pattern: str, path: str) -> bool:
    """Check a slash-separated path against a glob pattern.

    Both sides are split the same way, so an absolute pattern must be
    compared with an absolute path and a relative one with a relative path.
    """
    return match_segments(split_path(pattern), split_path(path))


__all__ = ["GLOBSTAR", "glob_match", "has_glob", "match_segments", "split_path"]
