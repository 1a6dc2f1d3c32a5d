"""
Durable offline queue.

Storage Format:
- Key ``offline-queue`` holding a JSON array of queue item records
- File backend: ``<state dir>/offline-queue.json`` (0600, atomic writes)
"""

from .models import ItemKind, QueueItem, MUTATING_METHODS, is_mutating
from .backends import FileBackend, KeyValueBackend, MemoryBackend
from .store import DurableQueueStore, QUEUE_KEY

__all__ = [
    "ItemKind",
    "QueueItem",
    "MUTATING_METHODS",
    "is_mutating",
    "KeyValueBackend",
    "FileBackend",
    "MemoryBackend",
    "DurableQueueStore",
    "QUEUE_KEY",
]
