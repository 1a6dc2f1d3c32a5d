"""Key/value storage backends for the durable queue."""

from __future__ import annotations

import logging
import os
import sys
import time
from pathlib import Path
from typing import Protocol

from offline_sync.errors import QueuePersistenceError

# Cross-platform file locking
if sys.platform == "win32":
    import msvcrt
else:
    import fcntl

logger = logging.getLogger(__name__)


def _lock_file(file_handle) -> None:
    """Acquire exclusive lock on file (cross-platform)."""
    if sys.platform == "win32":
        msvcrt.locking(file_handle.fileno(), msvcrt.LK_LOCK, 1)
    else:
        fcntl.flock(file_handle.fileno(), fcntl.LOCK_EX)


def _unlock_file(file_handle) -> None:
    """Release lock on file (cross-platform)."""
    if sys.platform == "win32":
        msvcrt.locking(file_handle.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        fcntl.flock(file_handle.fileno(), fcntl.LOCK_UN)


class KeyValueBackend(Protocol):
    """Minimal persisted key/value interface (localStorage-like)."""

    def read(self, key: str) -> str | None: ...

    def write(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryBackend:
    """Backend that keeps values in process memory only."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def read(self, key: str) -> str | None:
        return self._values.get(key)

    def write(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class FileBackend:
    """
    Backend storing each key as ``<directory>/<key>.json``.

    Writes go to a temp file that is locked, fsynced and atomically swapped
    into place, so a crash mid-write never leaves a truncated queue.
    """

    max_retries = 2

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory).expanduser()

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise QueuePersistenceError(key, f"Cannot read {path}: {e}") from e

    def write(self, key: str, value: str) -> None:
        """
        Persist ``value`` under ``key`` (atomic write with file locking).

        Raises:
            QueuePersistenceError: If the directory cannot be created, the
                file is not writable, or I/O keeps failing after a retry
        """
        path = self.path_for(key)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise QueuePersistenceError(
                key,
                f"Cannot create queue directory {path.parent}. "
                f"Check permissions on {self.directory}. Error: {e}",
            ) from e

        temp_path = path.with_suffix(".tmp")

        for attempt in range(self.max_retries):
            try:
                with open(temp_path, "w", encoding="utf-8") as f:
                    _lock_file(f)
                    try:
                        f.write(value)
                        f.flush()
                        os.fsync(f.fileno())
                    finally:
                        _unlock_file(f)

                temp_path.replace(path)
                break

            except PermissionError as e:
                # Not transient, fail immediately
                raise QueuePersistenceError(
                    key,
                    f"Cannot write to queue file {path}. "
                    f"Check file permissions and ownership. Error: {e}",
                ) from e

            except OSError as e:
                if attempt < self.max_retries - 1:
                    time.sleep(0.1)
                    continue
                raise QueuePersistenceError(
                    key,
                    f"Failed to write {path} after {self.max_retries} attempts. Last error: {e}",
                ) from e

        try:
            path.chmod(0o600)
        except PermissionError:
            logger.warning("Could not set permissions on %s (continuing)", path)

    def delete(self, key: str) -> None:
        try:
            self.path_for(key).unlink(missing_ok=True)
        except OSError as e:
            raise QueuePersistenceError(key, f"Cannot delete {self.path_for(key)}: {e}") from e
