"""Static file serving on top of Starlette's StaticFiles.

StaticFiles does the real work (path mapping, ETag / Last-Modified
conditional requests, content types, ``index.html``, ``404.html``). This
module adds the ``serve.json`` extras: clean URLs, directory listings and
per-path header rules.
"""

from __future__ import annotations

import html
import logging
import os
import stat
from pathlib import Path
from urllib.parse import quote

from starlette.datastructures import URL
from starlette.responses import HTMLResponse, RedirectResponse, Response
from starlette.staticfiles import StaticFiles
from starlette.types import Scope

from serve_dev.config import HeaderRule, StaticOptions
from serve_dev.errors import ConfigError
from serve_dev.globs import glob_match

logger = logging.getLogger(__name__)

LISTING_METHODS = {"GET", "HEAD"}

LISTING_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
</head>
<body>
<h1>{title}</h1>
<ul>
{items}
</ul>
</body>
</html>
"""


class StaticSite:
    """Serve files from a public root directory.

    Attributes:
        root: Directory being served
        options: Static-serving options from serve.json
    """

    def __init__(self, root: Path, options: StaticOptions | None = None) -> None:
        """Initialize the site.

        Raises:
            ConfigError: If the root is not a directory
        """
        self.root = root
        self.options = options or StaticOptions()
        if not root.is_dir():
            raise ConfigError(f"Public directory does not exist: {root}", root=str(root))
        self.files = StaticFiles(directory=root, html=True)

    async def get_response(self, scope: Scope) -> Response:
        """Build the response for a request scope.

        Raises:
            HTTPException: 404 for missing files (without a 404.html), 405 for
                methods other than GET and HEAD
        """
        url_path = scope["path"]
        path = self.files.get_path(scope)

        if self._clean_url_candidate(url_path) and self._find(path) is None:
            if self._is_file(path + ".html"):
                path += ".html"

        listing = self._listing_directory(path, scope)
        if listing is not None:
            if not url_path.endswith("/"):
                url = URL(scope=scope)
                return RedirectResponse(url=url.replace(path=url.path + "/"))
            logger.debug(f"Listing {listing}")
            response: Response = self.render_listing(url_path, listing)
        else:
            response = await self.files.get_response(path, scope)

        self.apply_headers(url_path, response)
        return response

    def _find(self, path: str) -> os.stat_result | None:
        _, stat_result = self.files.lookup_path(path)
        return stat_result

    def _is_file(self, path: str) -> bool:
        stat_result = self._find(path)
        return stat_result is not None and stat.S_ISREG(stat_result.st_mode)

    def _clean_url_candidate(self, url_path: str) -> bool:
        last = url_path.rsplit("/", 1)[-1]
        return self.options.clean_urls and bool(last) and "." not in last

    def _listing_directory(self, path: str, scope: Scope) -> Path | None:
        """Directory to list for a request, or None to serve normally."""
        if not self.options.directory_listing or scope["method"] not in LISTING_METHODS:
            return None
        full_path, stat_result = self.files.lookup_path(path)
        if stat_result is None or not stat.S_ISDIR(stat_result.st_mode):
            return None
        if self._is_file(os.path.join(path, "index.html")):
            return None
        return Path(full_path)

    def render_listing(self, url_path: str, directory: Path) -> HTMLResponse:
        """HTML index of a directory, folders first."""
        entries = sorted(directory.iterdir(), key=lambda p: (not p.is_dir(), p.name.lower()))
        items = [] if url_path == "/" else ['<li><a href="../">../</a></li>']
        for entry in entries:
            name = entry.name + ("/" if entry.is_dir() else "")
            items.append(f'<li><a href="{quote(name)}">{html.escape(name)}</a></li>')

        title = html.escape(f"Index of {url_path}")
        return HTMLResponse(LISTING_TEMPLATE.format(title=title, items="\n".join(items)))

    def headers_for(self, url_path: str) -> list[tuple[str, str]]:
        """Custom headers configured for a URL path, in rule order."""
        headers: list[tuple[str, str]] = []
        for rule in self.options.headers:
            if _rule_matches(rule, url_path):
                headers.extend((h.key, h.value) for h in rule.headers)
        return headers

    def apply_headers(self, url_path: str, response: Response) -> None:
        """Add configured custom headers to a response."""
        for key, value in self.headers_for(url_path):
            response.headers[key] = value


def _rule_matches(rule: HeaderRule, url_path: str) -> bool:
    # Rule sources are relative to the public root with or without a leading "/"
    return glob_match(rule.source, url_path)


__all__ = ["StaticSite"]
