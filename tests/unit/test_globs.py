"""Tests for segment-wise glob matching."""

from __future__ import annotations

import pytest

from serve_dev.globs import glob_match, has_glob, split_path


class TestGlobMatch:
    """Tests for glob_match."""

    @pytest.mark.parametrize(
        "pattern,path",
        [
            ("src/*.js", "src/app.js"),
            ("src/**/*.js", "src/app.js"),
            ("src/**/*.js", "src/lib/deep/util.js"),
            ("**/*.css", "style.css"),
            ("src/**", "src/lib/util.js"),
            ("src/?.js", "src/a.js"),
            ("src/[ab].js", "src/b.js"),
            ("/*.html", "/index.html"),
            ("docs/*", "/docs/index.html"),
            ("../src/*.js", "../src/app.js"),
        ],
    )
    def test_matches(self, pattern: str, path: str) -> None:
        """Test patterns that should match."""
        assert glob_match(pattern, path)

    @pytest.mark.parametrize(
        "pattern,path",
        [
            ("src/*.js", "src/vendor/lib.js"),
            ("*.js", "src/app.js"),
            ("/*.html", "/docs/index.html"),
            ("src/?.js", "src/ab.js"),
            ("src/**/*.js", "lib/app.js"),
            ("src/*.js", "src"),
        ],
    )
    def test_does_not_match(self, pattern: str, path: str) -> None:
        """Test single-segment globs never cross a slash."""
        assert not glob_match(pattern, path)


def test_split_path() -> None:
    """Test separators, empty parts and ./ are normalized away."""
    assert split_path("./src//lib\\util.js") == ["src", "lib", "util.js"]
    assert split_path("/") == []


def test_has_glob() -> None:
    """Test glob metacharacter detection."""
    assert has_glob("*.js")
    assert has_glob("file[0-9]")
    assert not has_glob("src/app.js")
