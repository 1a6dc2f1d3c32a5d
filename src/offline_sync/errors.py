"""Exception hierarchy for the offline queue and sync engine."""


class OfflineSyncError(Exception):
    """Base class for all offline-sync errors."""


class QueuePersistenceError(OfflineSyncError):
    """Raised by a storage backend when the queue cannot be read or written."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(message)
        self.key = key


class ReplayError(OfflineSyncError):
    """Raised when the server rejects a replayed queue item."""

    def __init__(self, item_id: int, status_code: int) -> None:
        super().__init__(f"Replay of queue item {item_id} failed with HTTP {status_code}")
        self.item_id = item_id
        self.status_code = status_code


class FormNotQueueableError(OfflineSyncError):
    """Raised when an offline form carries file fields under the ``reject`` policy."""

    def __init__(self, action: str, file_fields: list[str]) -> None:
        super().__init__(
            f"Form {action} cannot be queued offline: file fields "
            f"{', '.join(file_fields)} cannot be stored durably"
        )
        self.action = action
        self.file_fields = file_fields
