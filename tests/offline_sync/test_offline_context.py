"""Tests for OfflineContext wiring and lifecycle."""

import asyncio

import pytest

from offline_sync.config import OfflineSyncConfig, ServerConfig, SyncConfig
from offline_sync.context import OfflineContext, QueueStats
from offline_sync.interceptor import is_queued
from offline_sync.queue.backends import MemoryBackend
from offline_sync.queue.models import QueueItem
from offline_sync.queue.store import DurableQueueStore


@pytest.fixture
def config():
    return OfflineSyncConfig(server=ServerConfig(base_url="https://app.example.com"))


@pytest.fixture
def backend():
    return MemoryBackend()


def _context(config, backend, server, notifier, **kwargs):
    return OfflineContext(config, notifier=notifier, backend=backend, transport=server.transport, **kwargs)


def _seed(backend, *paths):
    store = DurableQueueStore(backend)
    for path in paths:
        store.append(QueueItem.form_submission(store.new_id(), "POST", path, {"from": "last-run"}))


def test_stats_snapshot(config, backend, server, notifier):
    ctx = _context(config, backend, server, notifier)
    assert ctx.stats() == QueueStats(is_online=True, queue_length=0, oldest_item=None)

    item = QueueItem.form_submission(ctx.store.new_id(), "POST", "/a", {})
    ctx.store.append(item)

    stats = ctx.stats()
    assert stats.queue_length == 1
    assert stats.oldest_item == item.enqueued_at
    assert stats.to_dict()["oldest_item"] == item.enqueued_at.isoformat()


@pytest.mark.asyncio
async def test_start_replays_leftovers_once(config, backend, server, notifier):
    _seed(backend, "/a", "/b")
    ctx = _context(config, backend, server, notifier)

    await ctx.start(periodic=False)
    try:
        assert server.paths == ["/a", "/b"]
        assert len(ctx.store) == 0
    finally:
        await ctx.stop()


@pytest.mark.asyncio
async def test_start_offline_with_leftovers_runs_single_pass_on_reconnect(config, backend, server, notifier):
    _seed(backend, "/a")
    ctx = _context(config, backend, server, notifier, online=False)

    await ctx.start(periodic=False)
    try:
        assert server.paths == ["/a"]
        assert ctx.engine.last_report.succeeded == 1
    finally:
        await ctx.stop()


@pytest.mark.asyncio
async def test_start_while_unreachable_keeps_queue(config, backend, server, notifier):
    _seed(backend, "/a")
    server.reachable = False
    ctx = _context(config, backend, server, notifier)

    await ctx.start(periodic=False)
    try:
        assert not ctx.monitor.is_online
        assert len(ctx.store) == 1
        assert ("Working offline; changes will be queued", "info") in notifier.messages
    finally:
        await ctx.stop()


@pytest.mark.asyncio
async def test_intercepting_client_queues_while_offline(config, backend, server, notifier):
    async with _context(config, backend, server, notifier) as ctx:
        await ctx.monitor.handle_offline()

        response = await ctx.client.post("/tasks", json={"title": "Buy milk"})

        assert is_queued(response)
        assert ctx.stats().queue_length == 1
        assert server.requests == []

        await ctx.monitor.handle_online()

        assert server.paths == ["/tasks"]
        assert ctx.stats().queue_length == 0
        assert ("Connection restored", "success") in notifier.messages


@pytest.mark.asyncio
async def test_clear_queue_discards_and_notifies(config, backend, server, notifier):
    _seed(backend, "/a", "/b", "/c")
    ctx = _context(config, backend, server, notifier)

    assert ctx.clear_queue() == 3
    assert len(ctx.store) == 0
    assert len(DurableQueueStore(backend)) == 0
    assert ("Offline queue cleared (3 pending)", "info") in notifier.messages

    await ctx.stop()


@pytest.mark.asyncio
async def test_stop_cancels_periodic_task(config, backend, server, notifier):
    ctx = _context(config, backend, server, notifier)
    await ctx.start()
    task = ctx._periodic

    await ctx.stop()

    assert task.cancelled()
    assert ctx._periodic is None
    assert ctx.client.is_closed
    assert ctx.raw_client.is_closed


@pytest.mark.asyncio
async def test_retry_delegates_to_engine(config, backend, server, notifier):
    _seed(backend, "/a")
    ctx = _context(config, backend, server, notifier)

    report = await ctx.retry()

    assert report.succeeded == 1
    await ctx.stop()


def test_memory_backend_from_config(tmp_path, notifier, server):
    config = OfflineSyncConfig()
    config.storage.backend = "memory"
    config.storage.directory = tmp_path / "unused"

    ctx = OfflineContext(config, notifier=notifier, transport=server.transport)
    ctx.store.append(QueueItem.form_submission(ctx.store.new_id(), "POST", "/a", {}))

    assert not (tmp_path / "unused").exists()


@pytest.mark.asyncio
async def test_periodic_ticks_recover_from_outage(backend, server, notifier):
    """With no reconnect signal at all, the ticker alone drains the queue."""
    config = OfflineSyncConfig(
        server=ServerConfig(base_url="https://app.example.com"),
        sync=SyncConfig(interval=0.01, max_interval=0.01, debounce=0.0),
    )
    async with _context(config, backend, server, notifier) as ctx:
        server.reachable = False
        response = await ctx.client.post("/tasks", json={"title": "Buy milk"})
        assert response.status_code == 202
        assert not ctx.monitor.is_online

        server.reachable = True
        for _ in range(100):
            if not len(ctx.store):
                break
            await asyncio.sleep(0.01)

        assert ctx.monitor.is_online
        assert len(ctx.store) == 0
        assert server.paths == ["/tasks"]
