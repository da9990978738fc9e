"""Parsing of the --listen option into a concrete bind target.

Accepted forms:

    3000                    bare port, all interfaces
    tcp://localhost:8080    host and port (port defaults to 3000)
    tcp://[::1]             IPv6 host
    unix:/tmp/serve.sock    UNIX domain socket
    pipe:\\\\.\\pipe\\serve   Windows named pipe

Example:
    >>> parse_listen("tcp://localhost")
    TcpTarget(port=3000, host='localhost')
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

from serve_dev.errors import (
    InvalidPipeEndpointError,
    InvalidSocketEndpointError,
    ListenAddressError,
    UnknownSchemeError,
)

DEFAULT_PORT = 3000

PIPE_PREFIX = "\\\\.\\"


@dataclass(frozen=True)
class TcpTarget:
    """Bind to a TCP port, optionally on a specific host.

    Attributes:
        port: Port number (0 lets the OS pick one)
        host: Host name or address; None binds every interface
    """

    port: int
    host: str | None = None


@dataclass(frozen=True)
class UnixSocketTarget:
    """Bind to a UNIX domain socket path."""

    path: str


@dataclass(frozen=True)
class PipeTarget:
    """Bind to a Windows named pipe path (``\\\\.\\pipe\\name``)."""

    path: str


ListenTarget = TcpTarget | UnixSocketTarget | PipeTarget


def _check_port(port: int, value: str) -> int:
    if not 0 <= port <= 65535:
        raise ListenAddressError(f"Invalid port in --listen endpoint: {value}", value=value)
    return port


def parse_listen(value: str) -> ListenTarget:
    """Parse a listen address string.

    Args:
        value: Bare port number or a tcp:, unix: or pipe: URI

    Returns:
        The bind target

    Raises:
        UnknownSchemeError: Scheme is not tcp:, unix: or pipe:
        InvalidPipeEndpointError: pipe: address without the named pipe prefix
        InvalidSocketEndpointError: unix: address without a path
        ListenAddressError: Port is not a valid port number
    """
    try:
        port = int(value, 10)
    except ValueError:
        pass
    else:
        return TcpTarget(port=_check_port(port, value))

    try:
        url = urlsplit(value)
    except ValueError as e:
        raise ListenAddressError(f"Invalid --listen endpoint: {value} ({e})", value=value) from e

    scheme = f"{url.scheme}:" if url.scheme else ""

    if scheme == "pipe:":
        path = value[len("pipe:") :]
        if not path.startswith(PIPE_PREFIX):
            raise InvalidPipeEndpointError(value)
        return PipeTarget(path=path)

    if scheme == "unix:":
        if not url.path:
            raise InvalidSocketEndpointError(value)
        return UnixSocketTarget(path=url.path)

    if scheme == "tcp:":
        try:
            port = url.port
        except ValueError as e:
            raise ListenAddressError(
                f"Invalid port in --listen endpoint: {value}", value=value
            ) from e
        return TcpTarget(
            port=_check_port(port if port is not None else DEFAULT_PORT, value),
            host=url.hostname or None,
        )

    raise UnknownSchemeError(scheme or "(none)", value)


__all__ = [
    "DEFAULT_PORT",
    "ListenTarget",
    "PipeTarget",
    "TcpTarget",
    "UnixSocketTarget",
    "parse_listen",
]
