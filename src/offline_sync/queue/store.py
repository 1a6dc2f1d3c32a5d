"""Durable, ordered store of pending queue items."""

from __future__ import annotations

import copy
import json
import logging
import time

from offline_sync.errors import QueuePersistenceError
from offline_sync.queue.backends import KeyValueBackend
from offline_sync.queue.models import QueueItem

logger = logging.getLogger(__name__)

QUEUE_KEY = "offline-queue"


class DurableQueueStore:
    """
    Persisted FIFO list of :class:`QueueItem` surviving reloads and crashes.

    The whole list is rewritten on every mutation. Queues hold user-driven
    mutations, so they stay small.

    If the backend fails, the in-memory list is still updated so the current
    session keeps working; ``degraded`` reports that durability was lost.
    A queue that could not be read is never overwritten; it is merged back in
    on the next write that finds it readable again.
    """

    def __init__(self, backend: KeyValueBackend, key: str = QUEUE_KEY) -> None:
        self._backend = backend
        self._key = key
        self._degraded = False
        # Set while the persisted queue could not be read; writes must not clobber it
        self._unread = False
        self._items: list[QueueItem] = self._load()
        self._last_id = max((item.id for item in self._items), default=0)

    @property
    def key(self) -> str:
        return self._key

    @property
    def degraded(self) -> bool:
        """True if the in-memory queue is not backed by durable storage right now."""
        return self._degraded

    def _load(self) -> list[QueueItem]:
        try:
            return self._read()
        except QueuePersistenceError as e:
            logger.error(
                "Could not load offline queue '%s'; it will not be overwritten until readable: %s",
                self._key,
                e,
            )
            self._unread = True
            self._degraded = True
            return []

    def _read(self) -> list[QueueItem]:
        """
        Read the persisted queue.

        An unparsable value is copied to ``<key>.corrupt`` before it is
        treated as empty.

        Raises:
            QueuePersistenceError: If the value cannot be read, or cannot be
                set aside when it is unparsable
        """
        raw = self._backend.read(self._key)
        if not raw:
            return []

        try:
            records = json.loads(raw)
            if not isinstance(records, list):
                raise ValueError("expected a JSON array")
        except ValueError as e:
            backup_key = f"{self._key}.corrupt"
            self._backend.write(backup_key, raw)
            logger.warning("Unreadable offline queue '%s' (%s) was moved to '%s'", self._key, e, backup_key)
            return []

        items = []
        for index, record in enumerate(records):
            try:
                items.append(QueueItem.from_record(record))
            except (ValueError, TypeError) as e:
                logger.warning("Skipping corrupted queue record %d in '%s': %s", index, self._key, e)
        return items

    def _recover(self) -> bool:
        """Merge the persisted queue back in after an earlier failed load."""
        try:
            persisted = self._read()
        except QueuePersistenceError as e:
            logger.error(
                "Offline queue '%s' still unreadable (%d items in memory only): %s",
                self._key,
                len(self._items),
                e,
            )
            self._degraded = True
            return False

        known = {item.id for item in persisted}
        self._items = persisted + [item for item in self._items if item.id not in known]
        self._last_id = max([self._last_id, *(item.id for item in persisted)])
        self._unread = False
        logger.info("Recovered %d persisted items of offline queue '%s'", len(persisted), self._key)
        return True

    def _persist(self) -> bool:
        if self._unread and not self._recover():
            return False

        value = json.dumps([item.to_record() for item in self._items], separators=(",", ":"))
        try:
            self._backend.write(self._key, value)
        except QueuePersistenceError as e:
            logger.error("Offline queue not persisted (%d items in memory only): %s", len(self._items), e)
            self._degraded = True
            return False
        self._degraded = False
        return True

    def new_id(self) -> int:
        """Allocate an id greater than every id handed out so far."""
        self._last_id = max(int(time.time() * 1000), self._last_id + 1)
        return self._last_id

    def append(self, item: QueueItem) -> bool:
        """
        Add ``item`` to the end of the queue and persist before returning.

        Returns:
            True if the item reached durable storage, False if it is only
            held in memory
        """
        self._items.append(item)
        self._last_id = max(self._last_id, item.id)
        return self._persist()

    def remove(self, item_id: int) -> bool:
        """
        Remove the item with ``item_id``; no-op if it is already gone.

        Returns:
            False if the removal could not be persisted, so the item would
            come back after a reload
        """
        remaining = [item for item in self._items if item.id != item_id]
        if len(remaining) == len(self._items):
            return True
        self._items = remaining
        return self._persist()

    def all(self) -> tuple[QueueItem, ...]:
        """Return a detached snapshot of the queue in enqueue order."""
        return tuple(copy.deepcopy(self._items))

    def clear(self) -> None:
        """Drop every pending item (explicit user action only)."""
        self._items = []
        # Discarding everything, so an unread queue may be overwritten
        self._unread = False
        self._persist()

    def oldest(self) -> QueueItem | None:
        """Return a copy of the next item to replay, if any."""
        return copy.deepcopy(self._items[0]) if self._items else None

    def size(self) -> int:
        """Number of pending items."""
        return len(self._items)

    def __len__(self) -> int:
        return len(self._items)
