"""Offline queue CLI commands (status indicator, retry, view/clear)."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.panel import Panel
from rich.table import Table

from offline_sync.cli.helpers import console, format_age, load_config_or_exit
from offline_sync.config import OfflineSyncConfig
from offline_sync.context import OfflineContext, QueueStats, build_backend
from offline_sync.notify import ConsoleNotifier
from offline_sync.queue.models import ItemKind
from offline_sync.queue.store import DurableQueueStore
from offline_sync.sync.engine import SyncReport

app = typer.Typer(
    name="queue",
    help="Inspect and synchronize the offline mutation queue.",
    no_args_is_help=True,
)

ConfigOption = typer.Option(None, "--config", "-c", help="Explicit config file (TOML)")


def _open_store(config: OfflineSyncConfig) -> DurableQueueStore:
    return DurableQueueStore(build_backend(config))


async def _probe_stats(config: OfflineSyncConfig) -> QueueStats:
    ctx = OfflineContext(config, notifier=ConsoleNotifier(console))
    try:
        await ctx.monitor.check_connection()
        return ctx.stats()
    finally:
        await ctx.stop()


async def _run_retry(config: OfflineSyncConfig) -> SyncReport:
    ctx = OfflineContext(config, notifier=ConsoleNotifier(console))
    try:
        return await ctx.retry()
    finally:
        await ctx.stop()


# ============================================================================
# Status / Check
# ============================================================================


def status_command(config_path: Path | None = None, as_json: bool = False) -> None:
    """Display connectivity and pending queue size."""
    config = load_config_or_exit(config_path)
    stats = asyncio.run(_probe_stats(config))

    if as_json:
        print(json.dumps({**stats.to_dict(), "base_url": config.server.base_url}, indent=2))
        return

    state = "[green]online[/green]" if stats.is_online else "[yellow]offline[/yellow]"
    lines = [
        f"[cyan]Server:[/cyan] {config.server.base_url}",
        f"[cyan]Connectivity:[/cyan] {state}",
        f"[cyan]Pending actions:[/cyan] {stats.queue_length}",
        f"[cyan]Oldest pending:[/cyan] {format_age(stats.oldest_item)}",
    ]
    console.print(Panel("\n".join(lines), title="Offline Queue", border_style="cyan"))


@app.command("status")
def status_cmd(
    config: Optional[Path] = ConfigOption,
    as_json: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Show connectivity and pending action count."""
    status_command(config, as_json)


@app.command("check")
def check_cmd(config: Optional[Path] = ConfigOption) -> None:
    """Probe the server; exit code 1 when offline."""
    cfg = load_config_or_exit(config)
    stats = asyncio.run(_probe_stats(cfg))
    if stats.is_online:
        console.print(f"✅ {cfg.server.base_url} is reachable")
    else:
        console.print(f"[yellow]⚠️  {cfg.server.base_url} is not reachable[/yellow]")
        raise typer.Exit(1)


# ============================================================================
# List / Clear
# ============================================================================


def list_command(config_path: Path | None = None, as_json: bool = False) -> None:
    """Print pending queue items in replay order."""
    store = _open_store(load_config_or_exit(config_path))
    items = store.all()

    if as_json:
        print(json.dumps([item.to_record() for item in items], indent=2))
        return

    if not items:
        console.print("[dim]No pending actions.[/dim]")
        return

    table = Table(title=f"Pending actions ({len(items)})", show_header=True)
    table.add_column("ID", style="cyan")
    table.add_column("Kind", style="magenta")
    table.add_column("Method", style="green")
    table.add_column("URL", overflow="fold")
    table.add_column("Age", style="dim")

    for item in items:
        kind = "form" if item.kind is ItemKind.FORM_SUBMISSION else "request"
        table.add_row(str(item.id), kind, item.method, item.url, format_age(item.enqueued_at))

    console.print(table)


@app.command("list")
def list_cmd(
    config: Optional[Path] = ConfigOption,
    as_json: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """List pending actions in replay order."""
    list_command(config, as_json)


@app.command("clear")
def clear_cmd(
    config: Optional[Path] = ConfigOption,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Discard every pending action (cannot be undone)."""
    store = _open_store(load_config_or_exit(config))
    count = store.size()

    if count == 0:
        console.print("[dim]Queue already empty.[/dim]")
        return

    if not yes and not typer.confirm(f"Discard {count} pending action(s)?"):
        console.print("Aborted")
        raise typer.Exit(1)

    store.clear()
    if store.degraded:
        console.print("[red]❌ Queue cleared in memory but could not be saved[/red]")
        raise typer.Exit(1)
    console.print(f"✅ Cleared {count} pending action(s)")


# ============================================================================
# Retry
# ============================================================================


@app.command("retry")
def retry_cmd(config: Optional[Path] = ConfigOption) -> None:
    """Probe the server and replay pending actions now."""
    cfg = load_config_or_exit(config)
    report = asyncio.run(_run_retry(cfg))

    if report.skipped:
        raise typer.Exit(1)
    if report.total == 0:
        console.print("[dim]Nothing to synchronize.[/dim]")
        return

    console.print(f"Synchronized: [green]{report.succeeded}[/green]  Failed: [red]{report.failed}[/red]")
    if report.failed:
        raise typer.Exit(1)
