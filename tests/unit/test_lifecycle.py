"""Tests for server startup: listen targets, TLS material and serving."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest
from rich.console import Console

from serve_dev.config import ServeConfig
from serve_dev.errors import ConfigError, TLSError, UnknownSchemeError
from serve_dev.listen import TcpTarget, UnixSocketTarget
from serve_dev.server.lifecycle import ANY_HOST, ReloadServer, ServerBootstrap


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def public(tmp_path: Path) -> Path:
    """Create a public directory."""
    root = tmp_path / "public"
    root.mkdir()
    (root / "index.html").write_text("<h1>home</h1>")
    return root


@pytest.fixture
def pem_files(tmp_path: Path) -> tuple[Path, Path]:
    """Create cert/key files with placeholder content."""
    cert = tmp_path / "cert.pem"
    key = tmp_path / "key.pem"
    cert.write_text("not a certificate")
    key.write_text("not a key")
    return cert, key


def fake_server(sockname: object) -> MagicMock:
    """uvicorn.Server stand-in with one bound socket."""
    sock = MagicMock()
    sock.getsockname.return_value = sockname
    server = MagicMock()
    server.servers = [MagicMock(sockets=[sock])]
    return server


# =============================================================================
# TestListenTarget
# =============================================================================


class TestListenTarget:
    """Tests for resolving the configured listen address."""

    def test_tcp(self, public: Path) -> None:
        """Test the default address."""
        bootstrap = ServerBootstrap(ServeConfig(root=public))

        assert bootstrap.listen_target() == TcpTarget(port=3000, host="localhost")

    def test_malformed(self, public: Path) -> None:
        """Test a malformed address is a fatal configuration error."""
        bootstrap = ServerBootstrap(ServeConfig(root=public, listen="ftp://x"))

        with pytest.raises(UnknownSchemeError):
            bootstrap.listen_target()

    def test_named_pipe_not_served(self, public: Path) -> None:
        """Test a valid pipe address is rejected at bind time."""
        bootstrap = ServerBootstrap(ServeConfig(root=public, listen="pipe:\\\\.\\pipe\\dev"))

        with pytest.raises(ConfigError) as exc_info:
            bootstrap.listen_target()

        assert "named pipe" in str(exc_info.value)


# =============================================================================
# TestTLS
# =============================================================================


class TestTLS:
    """Tests for certificate/key validation."""

    def test_plain_http(self, public: Path) -> None:
        """Test no TLS files are needed without --https."""
        assert ServerBootstrap(ServeConfig(root=public)).tls_files() is None

    def test_missing_options(self, public: Path) -> None:
        """Test --https without cert and key fails."""
        bootstrap = ServerBootstrap(ServeConfig(root=public, https=True))

        with pytest.raises(TLSError) as exc_info:
            bootstrap.tls_files()

        assert exc_info.value.exit_code == 1

    def test_missing_files(self, public: Path, tmp_path: Path) -> None:
        """Test cert/key paths that do not exist fail."""
        config = ServeConfig(
            root=public, https=True, cert=tmp_path / "nope.pem", key=tmp_path / "nope.key"
        )

        with pytest.raises(TLSError) as exc_info:
            ServerBootstrap(config).tls_files()

        assert "not found" in str(exc_info.value)

    def test_unloadable_files(self, public: Path, pem_files: tuple[Path, Path]) -> None:
        """Test files that are not PEM material fail."""
        cert, key = pem_files
        config = ServeConfig(root=public, https=True, cert=cert, key=key)

        with pytest.raises(TLSError) as exc_info:
            ServerBootstrap(config).tls_files()

        assert "Cannot load" in str(exc_info.value)

    def test_loadable_files(self, public: Path, pem_files: tuple[Path, Path]) -> None:
        """Test a pair that loads is returned for uvicorn."""
        cert, key = pem_files
        config = ServeConfig(root=public, https=True, cert=cert, key=key)

        with patch("serve_dev.server.lifecycle.ssl.create_default_context") as create:
            assert ServerBootstrap(config).tls_files() == (cert, key)

        create.return_value.load_cert_chain.assert_called_once_with(certfile=cert, keyfile=key)


# =============================================================================
# TestUvicornConfig
# =============================================================================


class TestUvicornConfig:
    """Tests for mapping bind targets onto uvicorn settings."""

    def test_tcp(self, public: Path) -> None:
        """Test host and port are passed through."""
        config = ServerBootstrap(ServeConfig(root=public)).uvicorn_config(
            MagicMock(), TcpTarget(port=8080, host="127.0.0.1")
        )

        assert config.host == "127.0.0.1"
        assert config.port == 8080
        assert config.uds is None

    def test_tcp_any_host(self, public: Path) -> None:
        """Test a bare port binds every interface."""
        config = ServerBootstrap(ServeConfig(root=public)).uvicorn_config(
            MagicMock(), TcpTarget(port=8080)
        )

        assert config.host == ANY_HOST

    def test_unix_socket(self, public: Path) -> None:
        """Test a socket path becomes uvicorn's uds."""
        config = ServerBootstrap(ServeConfig(root=public)).uvicorn_config(
            MagicMock(), UnixSocketTarget(path="/tmp/dev.sock")
        )

        assert config.uds == "/tmp/dev.sock"

    def test_tls(self, public: Path, pem_files: tuple[Path, Path]) -> None:
        """Test cert and key are handed to uvicorn."""
        cert, key = pem_files
        config = ServerBootstrap(ServeConfig(root=public)).uvicorn_config(
            MagicMock(), TcpTarget(port=8443), tls=(cert, key)
        )

        assert config.ssl_certfile == str(cert)
        assert config.ssl_keyfile == str(key)

    def test_log_level_follows_verbosity(self, public: Path) -> None:
        """Test uvicorn only logs access lines in verbose mode."""
        quiet = ServerBootstrap(ServeConfig(root=public), verbosity="quiet")
        verbose = ServerBootstrap(ServeConfig(root=public), verbosity="verbose")

        assert quiet.uvicorn_config(MagicMock(), TcpTarget(port=1)).log_level == "error"
        assert verbose.uvicorn_config(MagicMock(), TcpTarget(port=1)).log_level == "info"


# =============================================================================
# TestLocalUrl
# =============================================================================


class TestLocalUrl:
    """Tests for the URL shown in the startup summary."""

    def test_wildcard_is_localhost(self, public: Path) -> None:
        """Test an all-interfaces bind is shown as localhost."""
        bootstrap = ServerBootstrap(ServeConfig(root=public))

        url = bootstrap.local_url(fake_server(("0.0.0.0", 3000)), TcpTarget(port=3000))

        assert url == "http://localhost:3000"

    def test_effective_port(self, public: Path) -> None:
        """Test the port comes from the bound socket (port 0 binds)."""
        bootstrap = ServerBootstrap(ServeConfig(root=public))

        url = bootstrap.local_url(fake_server(("127.0.0.1", 54321)), TcpTarget(port=0))

        assert url == "http://127.0.0.1:54321"

    def test_ipv6(self, public: Path) -> None:
        """Test IPv6 hosts are bracketed."""
        bootstrap = ServerBootstrap(ServeConfig(root=public))

        url = bootstrap.local_url(fake_server(("::1", 3000, 0, 0)), TcpTarget(port=3000))

        assert url == "http://[::1]:3000"

    def test_https(self, public: Path) -> None:
        """Test the scheme follows --https."""
        bootstrap = ServerBootstrap(ServeConfig(root=public, https=True))

        url = bootstrap.local_url(fake_server(("127.0.0.1", 3000)), TcpTarget(port=3000))

        assert url.startswith("https://")

    def test_unix_socket(self, public: Path) -> None:
        """Test socket targets are shown by path."""
        bootstrap = ServerBootstrap(ServeConfig(root=public))

        url = bootstrap.local_url(fake_server(None), UnixSocketTarget(path="/tmp/dev.sock"))

        assert url == "unix:/tmp/dev.sock"


# =============================================================================
# TestServe
# =============================================================================


class TestServe:
    """End-to-end startup on an ephemeral port."""

    @pytest.mark.asyncio
    async def test_serve_and_shutdown(self, public: Path) -> None:
        """Test the server binds, serves, prints the summary and stops."""
        console = Console(record=True, width=200, color_system=None)
        config = ServeConfig(root=public, listen="tcp://127.0.0.1:0")
        bootstrap = ServerBootstrap(config, verbosity="quiet", console=console)

        task = asyncio.create_task(bootstrap.serve())
        for _ in range(200):
            if bootstrap.server is not None and bootstrap.server.started:
                break
            await asyncio.sleep(0.05)
        assert bootstrap.server is not None and bootstrap.server.started

        port = bootstrap.server.servers[0].sockets[0].getsockname()[1]
        async with httpx.AsyncClient() as client:
            response = await client.get(f"http://127.0.0.1:{port}/index.html")

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

        bootstrap.server.should_exit = True
        await asyncio.wait_for(task, timeout=10)

        assert isinstance(bootstrap.server, ReloadServer)
        assert f"http://127.0.0.1:{port}" in console.export_text()

    @pytest.mark.asyncio
    async def test_config_errors_before_bind(self, public: Path) -> None:
        """Test configuration errors surface before anything is started."""
        bootstrap = ServerBootstrap(ServeConfig(root=public, listen="unix:"))

        with pytest.raises(ConfigError):
            await bootstrap.serve()

        assert bootstrap.server is None
