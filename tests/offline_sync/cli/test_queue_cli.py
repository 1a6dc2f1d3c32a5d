"""Tests for the ``offline-sync queue`` commands."""

import json

import httpx
import pytest
import respx
from typer.testing import CliRunner

from offline_sync import __version__
from offline_sync import config as config_module
from offline_sync.cli import app
from offline_sync.queue.backends import FileBackend
from offline_sync.queue.models import QueueItem
from offline_sync.queue.store import DurableQueueStore

runner = CliRunner()

BASE_URL = "http://testserver"


@pytest.fixture
def state_dir(tmp_path, monkeypatch):
    """Isolated state directory and config (no global or local files)."""
    state = tmp_path / "state"
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "missing.toml")
    monkeypatch.setenv("OFFLINE_SYNC_BASE_URL", BASE_URL)
    monkeypatch.setenv("OFFLINE_SYNC_STATE_DIR", str(state))
    monkeypatch.chdir(tmp_path)
    return state


def _seed(state_dir, *paths):
    store = DurableQueueStore(FileBackend(state_dir))
    items = []
    for path in paths:
        item = QueueItem.form_submission(store.new_id(), "POST", path, {"title": path.strip("/")})
        store.append(item)
        items.append(item)
    return items


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_list_empty(state_dir):
    result = runner.invoke(app, ["queue", "list"])

    assert result.exit_code == 0
    assert "No pending actions." in result.stdout


def test_list_shows_items_in_order(state_dir):
    _seed(state_dir, "/a", "/b")

    result = runner.invoke(app, ["queue", "list"])

    assert result.exit_code == 0
    assert "Pending actions (2)" in result.stdout
    assert result.stdout.index("/a") < result.stdout.index("/b")
    assert "form" in result.stdout


def test_list_json(state_dir):
    items = _seed(state_dir, "/a")

    result = runner.invoke(app, ["queue", "list", "--json"])

    assert result.exit_code == 0
    records = json.loads(result.stdout)
    assert records[0]["id"] == items[0].id
    assert records[0]["kind"] == "form-submission"
    assert records[0]["payload"] == {"title": "a"}


def test_clear_with_yes(state_dir):
    _seed(state_dir, "/a", "/b")

    result = runner.invoke(app, ["queue", "clear", "--yes"])

    assert result.exit_code == 0
    assert "Cleared 2 pending action(s)" in result.stdout
    assert len(DurableQueueStore(FileBackend(state_dir))) == 0


def test_clear_declined_keeps_queue(state_dir):
    _seed(state_dir, "/a")

    result = runner.invoke(app, ["queue", "clear"], input="n\n")

    assert result.exit_code == 1
    assert "Aborted" in result.stdout
    assert len(DurableQueueStore(FileBackend(state_dir))) == 1


def test_clear_empty_queue(state_dir):
    result = runner.invoke(app, ["queue", "clear", "--yes"])

    assert result.exit_code == 0
    assert "Queue already empty." in result.stdout


def test_missing_explicit_config_exits(state_dir, tmp_path):
    result = runner.invoke(app, ["queue", "list", "--config", str(tmp_path / "nope.toml")])

    assert result.exit_code == 1


def test_status_json_online(state_dir):
    _seed(state_dir, "/a")

    with respx.mock(base_url=BASE_URL) as mock:
        mock.head("/health").mock(return_value=httpx.Response(200))
        result = runner.invoke(app, ["queue", "status", "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["is_online"] is True
    assert payload["queue_length"] == 1
    assert payload["base_url"] == BASE_URL
    assert payload["oldest_item"] is not None


def test_status_panel_offline(state_dir):
    with respx.mock(base_url=BASE_URL) as mock:
        mock.head("/health").mock(side_effect=httpx.ConnectError("refused"))
        result = runner.invoke(app, ["queue", "status"])

    assert result.exit_code == 0
    assert "offline" in result.stdout
    assert "Pending actions: 0" in result.stdout


def test_check_reachable(state_dir):
    with respx.mock(base_url=BASE_URL) as mock:
        mock.head("/health").mock(return_value=httpx.Response(204))
        result = runner.invoke(app, ["queue", "check"])

    assert result.exit_code == 0
    assert "is reachable" in result.stdout


def test_check_unreachable_exits_nonzero(state_dir):
    with respx.mock(base_url=BASE_URL) as mock:
        mock.head("/health").mock(return_value=httpx.Response(503))
        result = runner.invoke(app, ["queue", "check"])

    assert result.exit_code == 1
    assert "not reachable" in result.stdout


def test_retry_replays_queue(state_dir):
    _seed(state_dir, "/a", "/b")

    with respx.mock(base_url=BASE_URL) as mock:
        mock.head("/health").mock(return_value=httpx.Response(200))
        route_a = mock.post("/a").mock(return_value=httpx.Response(201))
        route_b = mock.post("/b").mock(return_value=httpx.Response(201))
        result = runner.invoke(app, ["queue", "retry"])

    assert result.exit_code == 0
    assert "Synchronized: 2" in result.stdout
    assert route_a.call_count == 1
    assert route_b.call_count == 1
    assert len(DurableQueueStore(FileBackend(state_dir))) == 0


def test_retry_with_failures_exits_nonzero(state_dir):
    _seed(state_dir, "/a", "/b")

    with respx.mock(base_url=BASE_URL) as mock:
        mock.head("/health").mock(return_value=httpx.Response(200))
        mock.post("/a").mock(return_value=httpx.Response(422))
        mock.post("/b").mock(return_value=httpx.Response(201))
        result = runner.invoke(app, ["queue", "retry"])

    assert result.exit_code == 1
    assert "Failed: 1" in result.stdout
    remaining = DurableQueueStore(FileBackend(state_dir)).all()
    assert [item.url for item in remaining] == ["/a"]


def test_retry_offline(state_dir):
    _seed(state_dir, "/a")

    with respx.mock(base_url=BASE_URL) as mock:
        mock.head("/health").mock(side_effect=httpx.ConnectError("refused"))
        result = runner.invoke(app, ["queue", "retry"])

    assert result.exit_code == 1
    assert "Still offline" in result.stdout
    assert len(DurableQueueStore(FileBackend(state_dir))) == 1


def test_retry_nothing_to_do(state_dir):
    with respx.mock(base_url=BASE_URL) as mock:
        mock.head("/health").mock(return_value=httpx.Response(200))
        result = runner.invoke(app, ["queue", "retry"])

    assert result.exit_code == 0
    assert "Nothing to synchronize." in result.stdout
