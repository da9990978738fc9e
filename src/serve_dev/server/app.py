"""FastAPI application for the development server.

Every request goes through :class:`RequestRouter`: the push-notification
path opens a Server-Sent Events stream, everything else is a static file.
Pattern watchers run for the lifetime of the application.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from starlette.exceptions import HTTPException

from serve_dev.config import ServeConfig
from serve_dev.server.build import BuildTrigger
from serve_dev.server.hub import NotificationHub
from serve_dev.server.static import StaticSite
from serve_dev.server.watcher import ChangeDispatcher, PatternWatcher

logger = logging.getLogger(__name__)

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

SSE_HEADERS = {
    "Connection": "keep-alive",
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
}


class RequestRouter:
    """Decide per request between a subscription and a static file."""

    def __init__(self, config: ServeConfig, hub: NotificationHub, site: StaticSite) -> None:
        self.config = config
        self.hub = hub
        self.site = site

    def is_subscription(self, request: Request) -> bool:
        """True if the request should become a push-notification stream."""
        return self.config.reload_enabled and request.url.path == self.config.reload

    async def handle(self, request: Request) -> Response:
        """Respond to one request."""
        if self.is_subscription(request):
            return self.subscribe(request)
        return await self.serve_static(request)

    def subscribe(self, request: Request) -> StreamingResponse:
        """Stream reload events; the subscriber registers once the body is sent."""
        client = request.client.host if request.client else "unknown"
        logger.debug(f"Reload stream requested by {client}")
        return StreamingResponse(
            self.hub.stream(),
            status_code=200,
            headers=SSE_HEADERS,
        )

    async def serve_static(self, request: Request) -> Response:
        """Serve a file from the public root with the CORS header set."""
        cors = {"Access-Control-Allow-Origin": self.config.cors}
        try:
            response = await self.site.get_response(request.scope)
        except HTTPException as e:
            headers = {**(e.headers or {}), **cors}
            return PlainTextResponse(str(e.detail), status_code=e.status_code, headers=headers)

        response.headers.update(cors)
        return response


class AppState:
    """Shared application state for server components."""

    def __init__(
        self,
        config: ServeConfig,
        hub: NotificationHub,
        trigger: BuildTrigger,
        cwd: Path | None = None,
    ) -> None:
        self.config = config
        self.hub = hub
        self.trigger = trigger
        self.dispatcher = ChangeDispatcher(hub, trigger, cwd=cwd)
        self.router = RequestRouter(config, hub, StaticSite(config.public_root, config.static))
        self.watchers = [
            PatternWatcher(binding, self.dispatcher.dispatch, cwd=cwd) for binding in config.bindings
        ]


def create_app(
    config: ServeConfig,
    hub: NotificationHub | None = None,
    trigger: BuildTrigger | None = None,
    cwd: Path | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Server configuration
        hub: Notification hub, created if not given
        trigger: Build trigger, created from ``config.program`` if not given
        cwd: Directory watch patterns are relative to (default: cwd)

    Returns:
        Configured FastAPI application
    """
    state = AppState(
        config,
        hub or NotificationHub(),
        trigger or BuildTrigger(config.program),
        cwd=cwd,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Start pattern watchers, stop them and close streams on shutdown."""
        for watcher in state.watchers:
            await watcher.start()

        yield

        for watcher in state.watchers:
            await watcher.stop()
        state.hub.close()
        logger.debug("Server shutdown complete")

    app = FastAPI(
        title="serve-dev",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.serve = state

    @app.api_route("/{path:path}", methods=ALL_METHODS, include_in_schema=False)
    async def handle(request: Request) -> Response:
        return await state.router.handle(request)

    return app


__all__ = ["AppState", "RequestRouter", "create_app"]
