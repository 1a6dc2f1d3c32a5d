"""User notification sink (toast-style, fire-and-forget)."""

from __future__ import annotations

import logging
from typing import Literal, Protocol

from rich.console import Console
from rich.markup import escape

NotificationKind = Literal["success", "error", "info"]

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """One-way sink for user-visible messages."""

    def notify(self, message: str, kind: NotificationKind = "info") -> None: ...


def pluralize(count: int, noun: str = "action") -> str:
    """Format ``count`` with a naive English plural: ``1 action``, ``2 actions``."""
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


class ConsoleNotifier:
    """Print notifications to a rich console."""

    _styles = {
        "success": "[green]✅ {message}[/green]",
        "error": "[red]❌ {message}[/red]",
        "info": "[cyan]ℹ️  {message}[/cyan]",
    }

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)

    def notify(self, message: str, kind: NotificationKind = "info") -> None:
        template = self._styles.get(kind, self._styles["info"])
        self.console.print(template.format(message=escape(message)))


class LoggingNotifier:
    """Route notifications into the log (headless services)."""

    _levels = {"success": logging.INFO, "error": logging.WARNING, "info": logging.INFO}

    def notify(self, message: str, kind: NotificationKind = "info") -> None:
        logger.log(self._levels.get(kind, logging.INFO), "[%s] %s", kind, message)


class NullNotifier:
    """Discard every notification."""

    def notify(self, message: str, kind: NotificationKind = "info") -> None:
        return None
