"""Command line entry point: ``offline-sync``."""

from __future__ import annotations

import typer

from offline_sync import __version__
from offline_sync.cli.commands import queue
from offline_sync.cli.helpers import console, setup_logging

app = typer.Typer(
    name="offline-sync",
    help="Offline mutation queue: connectivity status, manual retry, queue inspection.",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"offline-sync {__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    setup_logging(verbose)


app.add_typer(queue.app, name="queue")


def main() -> None:
    app()
