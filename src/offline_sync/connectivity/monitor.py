"""Connectivity monitor combining passive signals with an active probe."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

Listener = Callable[[bool], "Awaitable[None] | None"]
RestoreCallback = Callable[[], "Awaitable[None] | None"]

# Probe must bypass every cache between us and the origin
NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


async def _invoke(callback: Callable, *args) -> None:
    """Call a sync or async callback, logging instead of raising."""
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception("Connectivity listener %r failed", callback)


def _remover(registry: list, entry) -> Callable[[], None]:
    def remove() -> None:
        if entry in registry:
            registry.remove(entry)

    return remove


class ConnectivityMonitor:
    """
    Tracks whether the origin server is actually reachable.

    Passive offline signals are trusted immediately (a false "offline" only
    causes extra queuing). Passive online signals are confirmed with a probe
    before anything is replayed, because the network interface being up says
    nothing about the origin being reachable.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        probe_url: str = "/health",
        *,
        timeout: float = 5.0,
        debounce: float = 2.0,
        online: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize monitor.

        Args:
            client: Non-intercepting client used for the probe
            probe_url: Cheap, side-effect free same-origin route
            timeout: Probe timeout in seconds
            debounce: Minimum seconds between two restore callbacks
            online: Initial state before the first probe
            clock: Monotonic clock (injectable for tests)
        """
        self._client = client
        self.probe_url = probe_url
        self._timeout = timeout
        self._debounce = debounce
        self._online = online
        self._clock = clock
        self._listeners: list[Listener] = []
        self._restore_callbacks: list[RestoreCallback] = []
        self._probe_task: asyncio.Task[bool] | None = None
        self._last_restored_at: float | None = None

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register ``listener(online)`` for every state change.

        Returns:
            Callable that removes the listener again
        """
        self._listeners.append(listener)
        return _remover(self._listeners, listener)

    def on_restored(self, callback: RestoreCallback) -> Callable[[], None]:
        """Register ``callback()`` for probe-confirmed offline->online transitions."""
        self._restore_callbacks.append(callback)
        return _remover(self._restore_callbacks, callback)

    async def handle_offline(self) -> None:
        """Passive offline signal: flip immediately, no confirmation."""
        await self._set_online(False)

    async def handle_online(self) -> bool:
        """Passive online signal: confirm with a probe before flipping."""
        return await self.check_connection()

    async def check_connection(self) -> bool:
        """
        Probe the origin and update state accordingly.

        Concurrent callers share one in-flight probe.

        Returns:
            True if the probe succeeded (2xx/3xx), False otherwise
        """
        task = self._probe_task
        if task is None:
            task = asyncio.get_running_loop().create_task(self._probe())
            self._probe_task = task
            task.add_done_callback(self._probe_finished)

        reachable = await asyncio.shield(task)
        await self._set_online(reachable)
        return reachable

    def _probe_finished(self, task: asyncio.Task[bool]) -> None:
        if self._probe_task is task:
            self._probe_task = None

    async def _probe(self) -> bool:
        try:
            response = await self._client.head(
                self.probe_url,
                headers=NO_CACHE_HEADERS,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            logger.info("Connectivity probe %s failed: %s", self.probe_url, e)
            return False

        reachable = 200 <= response.status_code < 400
        if not reachable:
            logger.info("Connectivity probe %s returned HTTP %d", self.probe_url, response.status_code)
        return reachable

    async def _set_online(self, online: bool) -> None:
        if online == self._online:
            return

        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")

        for listener in list(self._listeners):
            await _invoke(listener, online)

        if not online:
            return

        now = self._clock()
        if self._last_restored_at is not None and now - self._last_restored_at < self._debounce:
            logger.debug("Restore within %.1fs of the previous one, not re-triggering", self._debounce)
            return
        self._last_restored_at = now

        for callback in list(self._restore_callbacks):
            await _invoke(callback)
