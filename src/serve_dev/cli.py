"""serve-dev CLI - static file server with watch, rebuild and live reload."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import click

from serve_dev import __version__
from serve_dev.config import DEFAULT_CONFIG_FILE, DEFAULT_LISTEN, DEFAULT_RELOAD_PATH
from serve_dev.errors import ExitCode, ServeError


@click.command("serve-dev", context_settings={"help_option_names": ["-h", "--help"]})
@click.argument(
    "root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    required=False,
)
@click.option("--listen", "-l", default=DEFAULT_LISTEN, show_default=True, help="Listen address")
@click.option("--https", is_flag=True, help="Serve over TLS (requires --cert and --key)")
@click.option("--cert", type=click.Path(path_type=Path), help="TLS certificate (PEM)")
@click.option("--key", type=click.Path(path_type=Path), help="TLS private key (PEM)")
@click.option(
    "--config",
    "-c",
    "config_file",
    type=click.Path(path_type=Path),
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    help="JSON config merged into these options (ignored if missing)",
)
@click.option("--reload", default=DEFAULT_RELOAD_PATH, show_default=True, help="Reload stream path")
@click.option("--watch", "-w", multiple=True, help="Glob pattern to watch (repeatable)")
@click.option("--make", "-m", multiple=True, help="Build target for the matching --watch (repeatable)")
@click.option("--program", default="make", show_default=True, help="Build program")
@click.option("--cors", default="*", show_default=True, help="Access-Control-Allow-Origin value")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("-q", "--quiet", is_flag=True, help="Suppress non-error output")
@click.option("--debug", is_flag=True, help="Show full tracebacks on errors")
@click.version_option(version=__version__, prog_name="serve-dev")
def cli(
    root: Path | None,
    listen: str,
    https: bool,
    cert: Path | None,
    key: Path | None,
    config_file: Path,
    reload: str,
    watch: tuple[str, ...],
    make: tuple[str, ...],
    program: str,
    cors: str,
    verbose: bool,
    quiet: bool,
    debug: bool,
) -> None:
    """Serve ROOT (default: current directory) with live reload.

    Changes to a --watch pattern run the --make target at the same position
    (if any) and then tell every browser listening on the reload path.

    \b
    Examples:
        serve-dev public
        serve-dev -l 8080 -w 'src/**/*.js' -m bundle public
        serve-dev -l unix:/tmp/dev.sock --watch 'public/*.css'
        serve-dev --https --cert dev.pem --key dev-key.pem

    \b
    Browser side:
        new EventSource('/__reload').onmessage = () => location.reload()
    """
    from serve_dev.config import ServeConfig, load_config_file
    from serve_dev.logging import err_console, print_error, print_info, setup_logging
    from serve_dev.server.lifecycle import ServerBootstrap

    verbosity = "verbose" if verbose else "quiet" if quiet else "normal"
    setup_logging(verbosity)

    options: dict[str, Any] = {
        "root": (root or Path.cwd()).resolve(),
        "listen": listen,
        "https": https,
        "cert": cert,
        "key": key,
        "config": config_file,
        "reload": reload,
        "watch": list(watch),
        "make": list(make),
        "program": program,
        "cors": cors,
    }

    try:
        config = ServeConfig.from_sources(options, load_config_file(config_file))
        ServerBootstrap(config, verbosity=verbosity).run()
    except ServeError as e:
        print_error(e.message)
        if debug:
            err_console.print_exception()
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        print_info("\nShutting down...")


def main() -> None:
    """Entry point for the CLI."""
    debug_mode = "--debug" in sys.argv

    try:
        cli()
    except click.ClickException:
        # Let Click handle its own exceptions
        raise
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception as e:
        from serve_dev.logging import print_error, print_info

        print_error(str(e))
        if debug_mode:
            print_info("")
            print_info("Full traceback (--debug mode):")
            import traceback

            traceback.print_exc()
        else:
            print_info("Run with --debug for full traceback.")

        sys.exit(ExitCode.FATAL_ERROR)


if __name__ == "__main__":
    main()
