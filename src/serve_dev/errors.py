"""Error handling framework for serve-dev."""

from __future__ import annotations

from enum import IntEnum
from typing import Any


class ExitCode(IntEnum):
    """serve-dev exit codes."""

    SUCCESS = 0
    CONFIG_ERROR = 1  # Bad listen address, config file or TLS material (user fixable)
    FATAL_ERROR = 3  # Unexpected crash


class ServeError(Exception):
    """Base exception for serve-dev errors."""

    exit_code: ExitCode = ExitCode.FATAL_ERROR

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for JSON output."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "exit_code": self.exit_code,
            **self.context,
        }


class ConfigError(ServeError):
    """Configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class ListenAddressError(ConfigError):
    """The --listen value could not be turned into a bind target."""

    def __init__(self, message: str, value: str, **context: Any) -> None:
        super().__init__(message, value=value, **context)
        self.value = value


class UnknownSchemeError(ListenAddressError):
    """Listen address uses a scheme other than tcp:, unix: or pipe:."""

    def __init__(self, scheme: str, value: str) -> None:
        super().__init__(
            f"Unknown --listen endpoint scheme (protocol): {scheme}",
            value=value,
            scheme=scheme,
        )
        self.scheme = scheme


class InvalidPipeEndpointError(ListenAddressError):
    """pipe: address that is not a Windows named pipe path."""

    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid Windows named pipe endpoint: {value}", value=value)


class InvalidSocketEndpointError(ListenAddressError):
    """unix: address without a socket path."""

    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid UNIX domain socket endpoint: {value}", value=value)


class TLSError(ConfigError):
    """Missing or unloadable certificate/key pair."""

    pass


class BuildError(ServeError):
    """The build program could not be spawned."""

    def __init__(self, message: str, program: str, target: str) -> None:
        super().__init__(message, program=program, target=target)
        self.program = program
        self.target = target


__all__ = [
    "ExitCode",
    "ServeError",
    "ConfigError",
    "ListenAddressError",
    "UnknownSchemeError",
    "InvalidPipeEndpointError",
    "InvalidSocketEndpointError",
    "TLSError",
    "BuildError",
]
