"""Layered TOML configuration."""

from __future__ import annotations

import logging
import os
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

APP_DIR = Path.home() / ".offline-sync"
CONFIG_FILE = APP_DIR / "config.toml"
LOCAL_CONFIG_NAME = "offline-sync.toml"


def parse_time(value: int | float | str) -> float:
    """Converts human-readable time strings (e.g., '90s', '1m', '15min') to seconds."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(ms|s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {"ms": 0.001, "s": 1, "sec": 1, "m": 60, "min": 60, "h": 3600, "hr": 3600}
    return num * multiplier[unit]


@dataclass
class ServerConfig:
    """Origin server settings.

    Attributes:
        base_url (str): Origin all queued requests are sent to.
        probe_path (str): Cheap, side-effect free route used for reachability checks.
        probe_timeout (float): Seconds before a probe counts as failed.
    """

    base_url: str = "http://localhost:8000"
    probe_path: str = "/health"
    probe_timeout: float = 5.0


@dataclass
class SyncConfig:
    """Sync engine settings.

    Attributes:
        interval (float): Seconds between periodic sync ticks.
        max_interval (float): Upper bound for the backoff after failing passes.
        request_timeout (float): Timeout for each replayed request.
        debounce (float): Minimum seconds between reconnect-triggered passes.
    """

    interval: float = 60.0
    max_interval: float = 900.0
    request_timeout: float = 10.0
    debounce: float = 2.0


@dataclass
class StorageConfig:
    """Queue persistence settings.

    Attributes:
        backend (str): 'file' (durable) or 'memory' (session only).
        directory (Path): Directory holding the queue file.
    """

    backend: str = "file"
    directory: Path = APP_DIR


@dataclass
class FormsConfig:
    """Form interception settings.

    Attributes:
        file_fields (str): 'exclude' drops file fields with a warning,
            'reject' refuses to queue such forms.
    """

    file_fields: str = "exclude"


_TIME_KEYS = {"probe_timeout", "interval", "max_interval", "request_timeout", "debounce"}
_CHOICES = {"backend": {"file", "memory"}, "file_fields": {"exclude", "reject"}}


@dataclass
class OfflineSyncConfig:
    """Global configuration aggregator.

    Attributes:
        server (ServerConfig): Origin and probe settings.
        sync (SyncConfig): Sync scheduling settings.
        storage (StorageConfig): Persistence settings.
        forms (FormsConfig): Form handling settings.
    """

    server: ServerConfig = field(default_factory=ServerConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    forms: FormsConfig = field(default_factory=FormsConfig)

    @classmethod
    def load(cls, path: Path | None = None, cwd: Path | None = None) -> "OfflineSyncConfig":
        """Loads and merges configuration from defaults, global, local and explicit sources.

        Args:
            path (Path | None): Explicit config file (highest file precedence).
            cwd (Path | None): Directory searched for a local config.

        Returns:
            OfflineSyncConfig: The fully merged configuration object.
        """
        instance = cls()

        if CONFIG_FILE.exists():
            instance._merge_from_file(CONFIG_FILE)

        local_dir = cwd or Path.cwd()
        local_toml = local_dir / LOCAL_CONFIG_NAME
        pyproject = local_dir / "pyproject.toml"
        if local_toml.exists():
            instance._merge_from_file(local_toml)
        elif pyproject.exists():
            instance._merge_from_file(pyproject, section="tool.offline-sync")

        if path is not None:
            instance._merge_from_file(Path(path))

        instance._merge_from_env()
        return instance

    def _merge_from_env(self) -> None:
        if base_url := os.getenv("OFFLINE_SYNC_BASE_URL"):
            self.server = replace(self.server, base_url=base_url)
        if state_dir := os.getenv("OFFLINE_SYNC_STATE_DIR"):
            self.storage = replace(self.storage, directory=Path(state_dir))

    def _merge_from_file(self, path: Path, section: str | None = None) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
            section (str | None): Dot-separated section path (e.g., 'tool.offline-sync').
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
            return
        except OSError as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            return

        if section:
            for key in section.split("."):
                data = data.get(key, {})

        if not data:
            return

        for name in ("server", "sync", "storage", "forms"):
            if name in data:
                setattr(self, name, self._update_dataclass(name, getattr(self, name), data[name]))

        unknown = set(data) - {"server", "sync", "storage", "forms"}
        if unknown:
            logger.warning(f"Unknown config sections in {path}: {', '.join(sorted(unknown))}. Ignoring.")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k in _TIME_KEYS:
                    filtered_updates[k] = parse_time(v)
                elif k == "directory":
                    filtered_updates[k] = Path(str(v)).expanduser()
                elif k in _CHOICES:
                    if v not in _CHOICES[k]:
                        raise ValueError(f"expected one of {', '.join(sorted(_CHOICES[k]))}, got '{v}'")
                    filtered_updates[k] = v
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)
