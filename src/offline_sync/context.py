"""Explicit wiring and lifecycle of the offline queue components."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import datetime

import httpx

from offline_sync.config import OfflineSyncConfig
from offline_sync.connectivity.monitor import ConnectivityMonitor
from offline_sync.interceptor.interceptor import QueueingTransport, RequestInterceptor
from offline_sync.notify import ConsoleNotifier, Notifier
from offline_sync.queue.backends import FileBackend, KeyValueBackend, MemoryBackend
from offline_sync.queue.store import DurableQueueStore
from offline_sync.sync.engine import SyncEngine, SyncReport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueStats:
    """Snapshot for status indicators and badges."""

    is_online: bool
    queue_length: int
    oldest_item: datetime | None

    def to_dict(self) -> dict[str, object]:
        return {
            "is_online": self.is_online,
            "queue_length": self.queue_length,
            "oldest_item": self.oldest_item.isoformat() if self.oldest_item else None,
        }


def build_backend(config: OfflineSyncConfig) -> KeyValueBackend:
    if config.storage.backend == "memory":
        return MemoryBackend()
    return FileBackend(config.storage.directory)


class OfflineContext:
    """
    One instance per application: owns the monitor, store, interceptor and
    sync engine and hands them to each other explicitly.

    ``client`` is the intercepting ``httpx.AsyncClient`` the application
    should use for mutating calls. ``raw_client`` talks to the network
    directly and is used for probes and replay.

    Usage::

        async with OfflineContext(OfflineSyncConfig.load()) as ctx:
            response = await ctx.client.post("/tasks", json={"title": "Buy milk"})
    """

    def __init__(
        self,
        config: OfflineSyncConfig | None = None,
        *,
        notifier: Notifier | None = None,
        backend: KeyValueBackend | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        online: bool = True,
    ) -> None:
        """
        Initialize context.

        Args:
            config: Settings (defaults when omitted)
            notifier: User notification sink (rich console by default)
            backend: Queue storage (derived from config when omitted)
            transport: Real network transport (``httpx.AsyncHTTPTransport`` by default)
            online: Assumed connectivity before the first probe
        """
        self.config = config or OfflineSyncConfig()
        self.notifier = notifier or ConsoleNotifier()

        self._transport = transport or httpx.AsyncHTTPTransport()
        base_url = self.config.server.base_url
        self.raw_client = httpx.AsyncClient(base_url=base_url, transport=self._transport)

        self.store = DurableQueueStore(backend or build_backend(self.config))
        self.monitor = ConnectivityMonitor(
            self.raw_client,
            self.config.server.probe_path,
            timeout=self.config.server.probe_timeout,
            debounce=self.config.sync.debounce,
            online=online,
        )
        self.interceptor = RequestInterceptor(
            self.monitor,
            self.store,
            self.notifier,
            self.raw_client,
            file_fields=self.config.forms.file_fields,  # type: ignore[arg-type]
        )
        self.engine = SyncEngine(
            self.store,
            self.monitor,
            self.notifier,
            self.raw_client,
            interval=self.config.sync.interval,
            max_interval=self.config.sync.max_interval,
            request_timeout=self.config.sync.request_timeout,
        )
        self.client = httpx.AsyncClient(
            base_url=base_url,
            transport=QueueingTransport(self.interceptor, self._transport),
        )

        self.monitor.subscribe(self._announce_connectivity)
        self._periodic: asyncio.Task[None] | None = None

    def _announce_connectivity(self, online: bool) -> None:
        if online:
            self.notifier.notify("Connection restored", "success")
        else:
            self.notifier.notify("Working offline; changes will be queued", "info")

    async def start(self, periodic: bool = True) -> None:
        """
        Probe connectivity, resume leftover work and start the periodic ticker.

        Items left over from a previous run are replayed right away when the
        origin is reachable.
        """
        previous = self.engine.last_report
        reachable = await self.monitor.check_connection()
        # A reconnect during the probe has already run a pass
        if reachable and self.store.size() and self.engine.last_report is previous:
            await self.engine.sync()

        if periodic and self._periodic is None:
            self._periodic = asyncio.get_running_loop().create_task(self.engine.run_periodic())

    async def stop(self) -> None:
        """Cancel the periodic ticker and close both clients."""
        if self._periodic is not None:
            self._periodic.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._periodic
            self._periodic = None

        await self.client.aclose()
        await self.raw_client.aclose()

    async def __aenter__(self) -> "OfflineContext":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    def stats(self) -> QueueStats:
        oldest = self.store.oldest()
        return QueueStats(
            is_online=self.monitor.is_online,
            queue_length=self.store.size(),
            oldest_item=oldest.enqueued_at if oldest else None,
        )

    async def retry(self) -> SyncReport:
        """Manual retry action."""
        return await self.engine.retry()

    def clear_queue(self) -> int:
        """Drop every pending item; returns how many were discarded."""
        count = self.store.size()
        self.store.clear()
        logger.warning("Offline queue cleared by user (%d items discarded)", count)
        self.notifier.notify(f"Offline queue cleared ({count} pending)", "info")
        return count
