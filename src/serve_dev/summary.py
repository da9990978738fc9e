"""Startup summary box."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from serve_dev.config import ServeConfig
from serve_dev.logging import console as default_console


def _targets_with_patterns(config: ServeConfig) -> dict[str, list[str]]:
    """Map each distinct build target to the patterns that trigger it."""
    targets: dict[str, list[str]] = {target: [] for target in config.make if target}
    for binding in config.bindings:
        if binding.target is not None:
            targets[binding.target].append(binding.pattern)
    return targets


def render_summary(config: ServeConfig, local_url: str) -> Panel:
    """Build the startup summary panel.

    Args:
        config: Server configuration
        local_url: Effective URL the server is reachable at

    Returns:
        A rich Panel ready to print
    """
    text = Text()
    text.append("Serving", style="blue")
    text.append("\n\n- Public:  ")
    text.append(str(config.public_root), style="blue")
    text.append("\n- Local:   ")
    text.append(local_url, style="blue")

    if config.reload_enabled:
        text.append("\n- Reload:  ")
        text.append(local_url.rstrip("/") + config.reload, style="blue")

    if not (config.watch or config.make):
        return Panel(text, padding=1, border_style="blue", expand=False)

    text.append("\n\n")
    text.append("Watching & Rebuilding", style="blue")

    for target, patterns in _targets_with_patterns(config).items():
        text.append("\n- ")
        if patterns:
            text.append("Changing ")
            text.append(", ".join(patterns), style="blue")
            text.append(" builds ")
            text.append(f"{config.program} {target}", style="blue")
        else:
            text.append("Unavailable build ")
            text.append(f"{config.program} {target}", style="yellow")

    for binding in config.bindings:
        if binding.target is None:
            text.append("\n- Watching ")
            text.append(binding.pattern, style="blue")

    return Panel(text, padding=1, border_style="blue", expand=False)


def print_summary(config: ServeConfig, local_url: str, console: Console | None = None) -> None:
    """Print the startup summary to the console."""
    (console or default_console).print(render_summary(config, local_url))


__all__ = ["print_summary", "render_summary"]
