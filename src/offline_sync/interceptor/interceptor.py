"""Transparent offline queuing for outgoing HTTP calls and form submissions."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Literal

import httpx

from offline_sync.connectivity.monitor import ConnectivityMonitor
from offline_sync.errors import FormNotQueueableError
from offline_sync.interceptor.forms import OfflineForm, serialize_form, split_files
from offline_sync.interceptor.results import Delivered, Queued, SendResult, queued_response
from offline_sync.notify import Notifier
from offline_sync.queue.models import QueueItem, is_mutating
from offline_sync.queue.store import DurableQueueStore

logger = logging.getLogger(__name__)

FileFieldPolicy = Literal["exclude", "reject"]

Send = Callable[[httpx.Request], Awaitable[httpx.Response]]

# Headers recomputed by the client on replay
_UNREPLAYABLE_HEADERS = frozenset({"host", "content-length", "transfer-encoding", "connection"})

# Errors raised before the request left the machine
_CONNECTION_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)

QUEUED_MESSAGE = "Action queued; it will run when the connection is restored"
NOT_DURABLE_MESSAGE = (
    "Action queued for this session only: it could not be saved and will be "
    "lost if the application restarts before the connection returns"
)


def replayable_headers(headers: httpx.Headers) -> dict[str, str]:
    return {
        name: value
        for name, value in headers.items()
        if name.lower() not in _UNREPLAYABLE_HEADERS
    }


class RequestInterceptor:
    """
    Decides, per call, whether to send now or queue for later.

    Online calls and read-only verbs pass straight through. Mutating calls
    made while offline become queue items and the caller gets a
    :class:`Queued` result (or a synthetic 202 through
    :class:`QueueingTransport`) instead of an exception.
    """

    def __init__(
        self,
        monitor: ConnectivityMonitor,
        store: DurableQueueStore,
        notifier: Notifier,
        client: httpx.AsyncClient,
        *,
        file_fields: FileFieldPolicy = "exclude",
    ) -> None:
        """
        Initialize interceptor.

        Args:
            monitor: Connectivity state source
            store: Durable queue receiving deferred calls
            notifier: User notification sink
            client: Real (non-intercepting) client for pass-through calls
            file_fields: What to do with file fields of forms queued offline
        """
        self._monitor = monitor
        self._store = store
        self._notifier = notifier
        self._client = client
        self._file_fields = file_fields

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        content: bytes | str | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
    ) -> SendResult:
        """Issue an HTTP call, queuing it if it cannot reach the network."""
        request = self._client.build_request(
            method, url, headers=headers, content=content, json=json, data=data
        )
        return await self.dispatch(request, self._client.send)

    async def dispatch(self, request: httpx.Request, send: Send) -> SendResult:
        """
        Route ``request`` to ``send`` or to the queue.

        A connection-level failure while nominally online marks the monitor
        offline; mutating requests are then queued, reads re-raise.
        """
        mutating = is_mutating(request.method)

        if self._monitor.is_online or not mutating:
            try:
                return Delivered(await send(request))
            except _CONNECTION_ERRORS as e:
                logger.warning("Connection to %s failed: %s", request.url, e)
                await self._monitor.handle_offline()
                if not mutating:
                    raise

        return await self._enqueue_request(request)

    async def _enqueue_request(self, request: httpx.Request) -> Queued:
        body = await request.aread()
        item = QueueItem.raw_request(
            self._store.new_id(),
            request.method,
            str(request.url),
            replayable_headers(request.headers),
            body or None,
        )
        return self._enqueue(item)

    async def submit_form(self, form: OfflineForm) -> SendResult:
        """
        Submit ``form``, queuing it while offline if it supports offline mode.

        Raises:
            FormNotQueueableError: If the form has file fields and the
                policy is ``reject``
        """
        method = form.method.upper()
        queueable = form.offline_support and is_mutating(method)

        if self._monitor.is_online or not queueable:
            data, files = split_files(form)
            try:
                if method == "GET":
                    response = await self._client.get(form.action, params=data)
                else:
                    response = await self._client.request(method, form.action, data=data, files=files or None)
                return Delivered(response)
            except _CONNECTION_ERRORS as e:
                logger.warning("Form submission to %s failed: %s", form.action, e)
                await self._monitor.handle_offline()
                if not queueable:
                    raise

        fields, dropped = serialize_form(form)
        if dropped:
            if self._file_fields == "reject":
                error = FormNotQueueableError(form.action, dropped)
                self._notifier.notify(str(error), "error")
                raise error
            logger.warning("Dropping file fields %s from offline form %s", dropped, form.action)
            self._notifier.notify(
                f"Attachments cannot be saved offline; {', '.join(dropped)} will not be sent",
                "error",
            )

        item = QueueItem.form_submission(self._store.new_id(), method, form.action, fields)
        return self._enqueue(item)

    def _enqueue(self, item: QueueItem) -> Queued:
        durable = self._store.append(item)
        logger.info("Queued %s %s %s (id=%d, durable=%s)", item.kind.value, item.method, item.url, item.id, durable)
        if durable:
            self._notifier.notify(QUEUED_MESSAGE, "info")
        else:
            self._notifier.notify(NOT_DURABLE_MESSAGE, "error")
        return Queued(item=item, durable=durable)


class QueueingTransport(httpx.AsyncBaseTransport):
    """
    Transport decorator composing offline queuing into any ``httpx.AsyncClient``.

    Usage::

        client = httpx.AsyncClient(
            base_url="https://app.example.com",
            transport=QueueingTransport(interceptor, httpx.AsyncHTTPTransport()),
        )
        response = await client.post("/tasks", json={"title": "Buy milk"})
        if is_queued(response):
            ...
    """

    def __init__(
        self,
        interceptor: RequestInterceptor,
        inner: httpx.AsyncBaseTransport,
        *,
        close_inner: bool = False,
    ) -> None:
        self._interceptor = interceptor
        self._inner = inner
        self._close_inner = close_inner

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        result = await self._interceptor.dispatch(request, self._inner.handle_async_request)
        if isinstance(result, Queued):
            return queued_response(result, request)
        return result.response

    async def aclose(self) -> None:
        if self._close_inner:
            await self._inner.aclose()
