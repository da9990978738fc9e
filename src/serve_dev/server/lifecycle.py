"""Server startup: listen target, TLS, uvicorn, startup summary."""

from __future__ import annotations

import asyncio
import logging
import socket
import ssl
from pathlib import Path

import uvicorn
from rich.console import Console

from serve_dev.config import ServeConfig
from serve_dev.errors import ConfigError, TLSError
from serve_dev.listen import ListenTarget, PipeTarget, TcpTarget, UnixSocketTarget, parse_listen
from serve_dev.logging import Verbosity, uvicorn_log_level
from serve_dev.server.app import create_app
from serve_dev.server.build import BuildTrigger
from serve_dev.server.hub import NotificationHub
from serve_dev.summary import print_summary

logger = logging.getLogger(__name__)

# Host used when the listen address names no host
ANY_HOST = "0.0.0.0"

# Addresses shown as "localhost" in the summary
WILDCARD_HOSTS = {"0.0.0.0", "::", ""}

# Interval between checks for a completed bind
STARTUP_POLL = 0.05

# Seconds open reload streams may delay shutdown
SHUTDOWN_TIMEOUT = 2.0


class ReloadServer(uvicorn.Server):
    """uvicorn server that ends reload streams as soon as shutdown starts."""

    def __init__(self, config: uvicorn.Config, hub: NotificationHub) -> None:
        super().__init__(config)
        self.hub = hub

    async def shutdown(self, sockets: list[socket.socket] | None = None) -> None:
        self.hub.close()
        await super().shutdown(sockets=sockets)


class ServerBootstrap:
    """Wire the hub, build trigger and router together and serve.

    Attributes:
        config: Server configuration
        hub: Notification hub shared by the router and the watchers
        trigger: Build trigger for bound watch patterns
        server: The uvicorn server once serve() has started it
    """

    def __init__(
        self,
        config: ServeConfig,
        verbosity: Verbosity = "normal",
        console: Console | None = None,
    ) -> None:
        self.config = config
        self.verbosity = verbosity
        self.console = console
        self.hub = NotificationHub()
        self.trigger = BuildTrigger(config.program)
        self.server: uvicorn.Server | None = None

    def listen_target(self) -> ListenTarget:
        """Parse the configured listen address.

        Raises:
            ListenAddressError: Malformed address
            ConfigError: Named pipes cannot be served by uvicorn
        """
        target = parse_listen(self.config.listen)
        if isinstance(target, PipeTarget):
            raise ConfigError(
                f"Listening on a Windows named pipe is not supported: {target.path}",
                listen=self.config.listen,
            )
        return target

    def tls_files(self) -> tuple[Path, Path] | None:
        """Validate the certificate/key pair when TLS is enabled.

        Returns:
            (cert, key) paths, or None when serving plain HTTP

        Raises:
            TLSError: Missing option, missing file or unloadable pair
        """
        if not self.config.https:
            return None

        cert, key = self.config.cert, self.config.key
        if cert is None or key is None:
            raise TLSError("--https requires both --cert and --key")

        for name, path in (("certificate", cert), ("key", key)):
            if not path.is_file():
                raise TLSError(f"TLS {name} file not found: {path}", path=str(path))

        try:
            context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
            context.load_cert_chain(certfile=cert, keyfile=key)
        except (ssl.SSLError, OSError) as e:
            raise TLSError(f"Cannot load TLS certificate/key: {e}", cert=str(cert), key=str(key)) from e

        return cert, key

    def uvicorn_config(
        self,
        app: object,
        target: ListenTarget,
        tls: tuple[Path, Path] | None = None,
    ) -> uvicorn.Config:
        """Build the uvicorn configuration for a bind target."""
        options: dict[str, object] = {
            "log_level": uvicorn_log_level(self.verbosity),
            "timeout_graceful_shutdown": SHUTDOWN_TIMEOUT,
        }
        if isinstance(target, UnixSocketTarget):
            options["uds"] = target.path
        elif isinstance(target, TcpTarget):
            options["host"] = target.host or ANY_HOST
            options["port"] = target.port
        if tls is not None:
            options["ssl_certfile"] = str(tls[0])
            options["ssl_keyfile"] = str(tls[1])
        return uvicorn.Config(app, **options)

    def local_url(self, server: uvicorn.Server, target: ListenTarget) -> str:
        """URL of the bound server, read back from the listening socket."""
        scheme = "https" if self.config.https else "http"
        if not isinstance(target, TcpTarget):
            return f"unix:{target.path}"

        host, port = target.host or "localhost", target.port
        if server.servers and server.servers[0].sockets:
            sockname = server.servers[0].sockets[0].getsockname()
            host, port = sockname[0], sockname[1]

        if host in WILDCARD_HOSTS:
            host = "localhost"
        elif ":" in host:
            host = f"[{host}]"
        return f"{scheme}://{host}:{port}"

    async def serve(self) -> None:
        """Start listening, print the summary and serve until shutdown."""
        target = self.listen_target()
        tls = self.tls_files()

        app = create_app(self.config, self.hub, self.trigger)
        server = self.server = ReloadServer(self.uvicorn_config(app, target, tls), self.hub)
        serve_task = asyncio.create_task(server.serve())

        while not server.started:
            if serve_task.done():
                # Startup failed; uvicorn has already logged why
                await serve_task
                return
            await asyncio.sleep(STARTUP_POLL)

        print_summary(self.config, self.local_url(server, target), self.console)

        try:
            await serve_task
        finally:
            self.hub.close()
            if self.trigger.running:
                logger.info(f"Waiting for {self.trigger.running} build(s) to finish")
                await self.trigger.wait()

    def run(self) -> None:
        """Run the server on a new event loop (blocking)."""
        asyncio.run(self.serve())


__all__ = ["ReloadServer", "ServerBootstrap"]
