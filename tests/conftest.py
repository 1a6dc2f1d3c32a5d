"""Shared fixtures: fake origin server, recording notifier, queue stores."""

from __future__ import annotations

import asyncio
import logging

import httpx
import pytest

from offline_sync.connectivity.monitor import ConnectivityMonitor
from offline_sync.queue.backends import FileBackend, MemoryBackend
from offline_sync.queue.store import DurableQueueStore

BASE_URL = "https://app.example.com"


class RecordingNotifier:
    """Notifier that keeps every (message, kind) pair."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def notify(self, message: str, kind: str = "info") -> None:
        self.messages.append((message, kind))

    def of_kind(self, kind: str) -> list[str]:
        return [message for message, k in self.messages if k == kind]


class FakeServer:
    """
    In-process origin server behind ``httpx.MockTransport``.

    - ``reachable = False`` makes every call raise ``httpx.ConnectError``
    - ``respond(method, path, *statuses)`` scripts status codes (last one sticks)
    - ``delay`` suspends each call so concurrent coroutines interleave
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.probes = 0
        self.reachable = True
        self.delay = 0.0
        self._scripts: dict[tuple[str, str], list[int]] = {}

    def respond(self, method: str, path: str, *statuses: int) -> None:
        self._scripts[(method.upper(), path)] = list(statuses)

    def _status_for(self, request: httpx.Request) -> int:
        script = self._scripts.get((request.method, request.url.path))
        if not script:
            return 200
        return script.pop(0) if len(script) > 1 else script[0]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.reachable:
            raise httpx.ConnectError("Connection refused", request=request)

        if request.method == "HEAD":
            self.probes += 1
        else:
            self.requests.append(request)

        status = self._status_for(request)
        return httpx.Response(status, json={"ok": status < 400})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture(autouse=True)
def restore_package_logger():
    """CLI tests install handlers on the package logger; undo that."""
    package_logger = logging.getLogger("offline_sync")
    handlers, level = list(package_logger.handlers), package_logger.level
    yield
    package_logger.handlers = handlers
    package_logger.setLevel(level)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def raw_client(server: FakeServer) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=BASE_URL, transport=server.transport)


@pytest.fixture
def store() -> DurableQueueStore:
    return DurableQueueStore(MemoryBackend())


@pytest.fixture
def file_store(tmp_path) -> DurableQueueStore:
    return DurableQueueStore(FileBackend(tmp_path / "state"))


@pytest.fixture
def monitor(raw_client: httpx.AsyncClient) -> ConnectivityMonitor:
    return ConnectivityMonitor(raw_client, "/health", timeout=1.0, debounce=0.0)
