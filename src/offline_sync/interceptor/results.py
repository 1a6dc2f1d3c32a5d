"""Discriminated result type for intercepted calls."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import httpx

from offline_sync.queue.models import QueueItem

QUEUED_EXTENSION = "offline_sync.queued"


@dataclass(frozen=True)
class Delivered:
    """The call reached the network; ``response`` is the real server reply."""

    response: httpx.Response


@dataclass(frozen=True)
class Queued:
    """
    The call was deferred.

    ``durable`` is False when the item could only be kept in memory and will
    not survive a reload.
    """

    item: QueueItem
    durable: bool = True


SendResult = Union[Delivered, Queued]


def queued_response(result: Queued, request: httpx.Request) -> httpx.Response:
    """Synthetic 202 response handed to transport-level callers."""
    return httpx.Response(
        202,
        json={"queued": True},
        request=request,
        extensions={QUEUED_EXTENSION: result},
    )


def is_queued(response: httpx.Response) -> bool:
    """True if ``response`` is a synthetic reply for a deferred call."""
    return QUEUED_EXTENSION in response.extensions


def queued_result(response: httpx.Response) -> Queued | None:
    """Return the :class:`Queued` value attached to a synthetic response."""
    return response.extensions.get(QUEUED_EXTENSION)
