"""
Offline mutation queue and synchronization engine.

Mutating HTTP calls and form submissions issued while the origin is
unreachable are persisted in a durable FIFO queue and replayed in order once
connectivity is confirmed again.

Components:
- connectivity: passive online/offline signals plus an active probe
- queue: durable, ordered store of pending operations
- interceptor: httpx transport decorator and form submission handling
- sync: sequential replay with a reentrancy guard
- context: explicit wiring of all of the above
"""

from offline_sync.config import OfflineSyncConfig
from offline_sync.connectivity import ConnectivityMonitor
from offline_sync.context import OfflineContext, QueueStats
from offline_sync.errors import (
    FormNotQueueableError,
    OfflineSyncError,
    QueuePersistenceError,
    ReplayError,
)
from offline_sync.interceptor import (
    Delivered,
    FileField,
    OfflineForm,
    Queued,
    QueueingTransport,
    RequestInterceptor,
    is_queued,
)
from offline_sync.notify import ConsoleNotifier, LoggingNotifier, Notifier, NullNotifier
from offline_sync.queue import (
    DurableQueueStore,
    FileBackend,
    ItemKind,
    MemoryBackend,
    QueueItem,
)
from offline_sync.sync import SyncEngine, SyncReport, SyncState

__version__ = "0.1.0"

__all__ = [
    "OfflineSyncConfig",
    "ConnectivityMonitor",
    "OfflineContext",
    "QueueStats",
    "OfflineSyncError",
    "QueuePersistenceError",
    "ReplayError",
    "FormNotQueueableError",
    "Delivered",
    "Queued",
    "FileField",
    "OfflineForm",
    "QueueingTransport",
    "RequestInterceptor",
    "is_queued",
    "Notifier",
    "ConsoleNotifier",
    "LoggingNotifier",
    "NullNotifier",
    "DurableQueueStore",
    "FileBackend",
    "MemoryBackend",
    "ItemKind",
    "QueueItem",
    "SyncEngine",
    "SyncReport",
    "SyncState",
]
