"""Development server - static files, pattern watchers and live reload.

Serves a directory over HTTP(S), watches glob patterns, runs the paired
build target for a change and pushes the changed path to every browser
listening on the reload stream.

Example:
    Start the server from the CLI:

        $ serve-dev -w 'src/**/*.ts' -m bundle -w 'public/*.css' public

    Or use the Python API:

        >>> from serve_dev.config import ServeConfig
        >>> from serve_dev.server import ServerBootstrap
        >>>
        >>> config = ServeConfig(watch=["public/*.css"])
        >>> ServerBootstrap(config).run()

Endpoints:
    GET /__reload   - Server-Sent Events stream, one ``data: <path>`` per change
    GET /*          - Static files from the public root
"""

from serve_dev.server.app import AppState, RequestRouter, create_app
from serve_dev.server.build import BuildTrigger
from serve_dev.server.events import BuildResult, FileChange
from serve_dev.server.hub import NotificationHub
from serve_dev.server.lifecycle import ServerBootstrap
from serve_dev.server.watcher import ChangeDispatcher, PatternWatcher

__all__ = [
    # App
    "AppState",
    "RequestRouter",
    "create_app",
    # Builds
    "BuildTrigger",
    "BuildResult",
    # Watching
    "ChangeDispatcher",
    "FileChange",
    "PatternWatcher",
    # Notifications
    "NotificationHub",
    # Startup
    "ServerBootstrap",
]
