"""Shared CLI helpers (consoles, logging, config resolution)."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from offline_sync.config import OfflineSyncConfig

console = Console()
err_console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    """Route library logging to stderr through rich."""
    handler = RichHandler(console=err_console, show_path=False, rich_tracebacks=verbose)
    handler.setFormatter(logging.Formatter("%(message)s", "%Y-%m-%d %H:%M:%S"))

    package_logger = logging.getLogger("offline_sync")
    package_logger.handlers = [handler]
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def load_config_or_exit(path: Path | None) -> OfflineSyncConfig:
    """Load configuration, exiting with a readable error if an explicit file is missing."""
    if path is not None and not path.exists():
        err_console.print(f"[red]❌ Config file not found:[/red] {path}")
        raise typer.Exit(1)
    return OfflineSyncConfig.load(path)


def format_age(when: datetime | None, now: datetime | None = None) -> str:
    """Human-readable age such as ``42s``, ``5m``, ``3h``, ``2d``."""
    if when is None:
        return "-"
    delta = (now or datetime.now(timezone.utc)) - when
    seconds = max(int(delta / timedelta(seconds=1)), 0)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"
