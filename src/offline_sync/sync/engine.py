"""Sequential replay of the offline queue against the real network."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

import httpx

from offline_sync.connectivity.monitor import ConnectivityMonitor
from offline_sync.errors import ReplayError
from offline_sync.notify import Notifier, pluralize
from offline_sync.queue.models import ItemKind, QueueItem
from offline_sync.queue.store import DurableQueueStore

logger = logging.getLogger(__name__)

_CONNECTION_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)

REMOVAL_NOT_SAVED_MESSAGE = (
    "Synchronized actions could not be removed from the saved queue and may be "
    "sent again after a restart"
)


class SyncState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass
class SyncReport:
    """Outcome of one sync pass."""

    succeeded: int = 0
    failed: int = 0
    skipped: bool = False
    failed_ids: list[int] = field(default_factory=list)
    # Delivered items whose removal did not reach durable storage
    unsaved_removals: int = 0

    @property
    def total(self) -> int:
        return self.succeeded + self.failed


class SyncEngine:
    """
    Drains the durable queue once connectivity is confirmed.

    Items are replayed strictly one after another in enqueue order. A failing
    item stays queued and does not block the ones behind it. Only one pass
    runs at a time; overlapping calls to :meth:`sync` return a skipped report.

    Triggers:
    - probe-confirmed reconnect (registered with the monitor on construction)
    - :meth:`tick` from :meth:`run_periodic`
    - :meth:`retry` (manual user action)
    """

    def __init__(
        self,
        store: DurableQueueStore,
        monitor: ConnectivityMonitor,
        notifier: Notifier,
        client: httpx.AsyncClient,
        *,
        interval: float = 60.0,
        max_interval: float = 900.0,
        request_timeout: float = 10.0,
    ) -> None:
        self._store = store
        self._monitor = monitor
        self._notifier = notifier
        self._client = client
        self.interval = interval
        self.max_interval = max(max_interval, interval)
        self._request_timeout = request_timeout
        self._state = SyncState.IDLE
        self._failing_passes = 0
        self._passes = 0
        self.last_report: SyncReport | None = None

        monitor.on_restored(self._on_restored)

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def in_progress(self) -> bool:
        return self._state is SyncState.RUNNING

    @property
    def next_delay(self) -> float:
        """Seconds until the next periodic tick (capped exponential after failures)."""
        if self._failing_passes == 0:
            return self.interval
        return min(self.interval * (2 ** self._failing_passes), self.max_interval)

    async def _on_restored(self) -> None:
        self._failing_passes = 0
        await self.sync()

    async def sync(self) -> SyncReport:
        """
        Run one sync pass over a snapshot of the queue.

        Never raises; failures are logged, counted and reported.
        """
        if self._state is SyncState.RUNNING:
            logger.debug("Sync pass already running, ignoring trigger")
            return SyncReport(skipped=True)

        # Guard must be taken before the snapshot, with no await in between
        self._state = SyncState.RUNNING
        report = SyncReport()
        try:
            snapshot = self._store.all()
            if not snapshot:
                return report

            logger.info("Sync pass started with %d queued items", len(snapshot))
            self._notifier.notify(f"Synchronizing {pluralize(len(snapshot))}...", "info")

            for item in snapshot:
                if await self._replay_one(item):
                    if not self._store.remove(item.id):
                        report.unsaved_removals += 1
                    report.succeeded += 1
                else:
                    report.failed += 1
                    report.failed_ids.append(item.id)

            self._report(report)
            return report
        except Exception:
            logger.exception("Sync pass aborted unexpectedly")
            return report
        finally:
            self._state = SyncState.IDLE
            self._passes += 1
            if report.failed:
                self._failing_passes += 1
            elif report.succeeded:
                self._failing_passes = 0
            self.last_report = report

    async def _replay_one(self, item: QueueItem) -> bool:
        try:
            await self.replay(item)
        except ReplayError as e:
            logger.warning("%s", e)
            return False
        except _CONNECTION_ERRORS as e:
            logger.warning("Replay of queue item %d could not connect: %s", item.id, e)
            await self._monitor.handle_offline()
            return False
        except httpx.HTTPError as e:
            logger.warning("Replay of queue item %d failed: %s", item.id, e)
            return False
        except Exception:
            logger.exception("Replay of queue item %d raised", item.id)
            return False
        return True

    async def replay(self, item: QueueItem) -> httpx.Response:
        """
        Re-issue ``item`` against the real network.

        Raises:
            ReplayError: If the server answers with status >= 400
            httpx.HTTPError: On transport failures
        """
        if item.kind is ItemKind.FORM_SUBMISSION:
            response = await self._client.request(
                item.method,
                item.url,
                data=item.payload,
                timeout=self._request_timeout,
            )
        else:
            response = await self._client.request(
                item.method,
                item.url,
                headers=item.headers,
                content=item.body,
                timeout=self._request_timeout,
            )

        if response.status_code >= 400:
            raise ReplayError(item.id, response.status_code)
        logger.info("Replayed queue item %d: %s %s -> %d", item.id, item.method, item.url, response.status_code)
        return response

    def _report(self, report: SyncReport) -> None:
        logger.info("Sync pass finished: %d succeeded, %d failed", report.succeeded, report.failed)
        if report.succeeded:
            self._notifier.notify(f"{pluralize(report.succeeded)} synchronized", "success")
        if report.failed:
            self._notifier.notify(f"Failed to synchronize {pluralize(report.failed)}", "error")
        if report.unsaved_removals:
            self._notifier.notify(REMOVAL_NOT_SAVED_MESSAGE, "error")

    async def tick(self) -> SyncReport | None:
        """
        Periodic trigger.

        While offline, re-probes the origin; a confirmed reconnect runs a pass
        through the restore callback. While online, runs a pass if the queue is
        non-empty.
        """
        if not self._monitor.is_online:
            passes_before = self._passes
            await self._monitor.check_connection()
            return self.last_report if self._passes != passes_before else None
        if self._store.size() == 0:
            return None
        return await self.sync()

    async def retry(self) -> SyncReport:
        """Manual retry: confirm connectivity, then run a pass."""
        passes_before = self._passes
        if not await self._monitor.check_connection():
            self._notifier.notify("Still offline; queued actions will be sent later", "info")
            return SyncReport(skipped=True)
        if self._passes != passes_before and self.last_report is not None:
            # Reconnect already triggered a pass
            return self.last_report
        return await self.sync()

    async def run_periodic(self) -> None:
        """Tick forever, waiting :attr:`next_delay` between passes."""
        while True:
            await asyncio.sleep(self.next_delay)
            await self.tick()

