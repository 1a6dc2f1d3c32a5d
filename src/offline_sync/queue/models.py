"""Queue item model with record (de)serialization."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class ItemKind(str, Enum):
    """Kind of deferred operation."""

    FORM_SUBMISSION = "form-submission"
    RAW_REQUEST = "raw-request"


def is_mutating(method: str) -> bool:
    """Return True for verbs that change server state and may be queued."""
    return method.upper() in MUTATING_METHODS


def encode_body(body: bytes | None) -> tuple[str | None, str]:
    """Encode a request body for JSON storage.

    Returns:
        ``(text, encoding)`` where encoding is ``"utf-8"`` or ``"base64"``
    """
    if body is None or body == b"":
        return None, "utf-8"
    try:
        return body.decode("utf-8"), "utf-8"
    except UnicodeDecodeError:
        return base64.b64encode(body).decode("ascii"), "base64"


def decode_body(text: str | None, encoding: str) -> bytes | None:
    """Inverse of :func:`encode_body`."""
    if text is None:
        return None
    if encoding == "base64":
        return base64.b64decode(text)
    return text.encode("utf-8")


@dataclass(frozen=True)
class QueueItem:
    """
    A single deferred mutating operation awaiting replay.

    Fields:
    - id: Unique, monotonically increasing identifier (assigned at enqueue)
    - kind: form-submission or raw-request
    - url: Target URL (as configured on the form or issued by the caller)
    - method: Upper-cased HTTP verb (POST/PUT/PATCH/DELETE)
    - payload: Form field map, or {"headers", "body", "body_encoding"}
    - enqueued_at: UTC timestamp used for ordering and queue age
    """

    id: int
    kind: ItemKind
    url: str
    method: str
    payload: dict[str, Any]
    enqueued_at: datetime

    @classmethod
    def raw_request(
        cls,
        item_id: int,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        enqueued_at: datetime | None = None,
    ) -> "QueueItem":
        """Build a raw-request item from an outgoing HTTP call."""
        text, encoding = encode_body(body)
        return cls(
            id=item_id,
            kind=ItemKind.RAW_REQUEST,
            url=url,
            method=method.upper(),
            payload={"headers": dict(headers), "body": text, "body_encoding": encoding},
            enqueued_at=enqueued_at or datetime.now(timezone.utc),
        )

    @classmethod
    def form_submission(
        cls,
        item_id: int,
        method: str,
        url: str,
        fields: dict[str, Any],
        enqueued_at: datetime | None = None,
    ) -> "QueueItem":
        """Build a form-submission item from serialized form fields."""
        return cls(
            id=item_id,
            kind=ItemKind.FORM_SUBMISSION,
            url=url,
            method=method.upper(),
            payload=dict(fields),
            enqueued_at=enqueued_at or datetime.now(timezone.utc),
        )

    @property
    def headers(self) -> dict[str, str]:
        """Stored headers (raw-request items only)."""
        if self.kind is not ItemKind.RAW_REQUEST:
            return {}
        return dict(self.payload.get("headers") or {})

    @property
    def body(self) -> bytes | None:
        """Original request body (raw-request items only)."""
        if self.kind is not ItemKind.RAW_REQUEST:
            return None
        return decode_body(self.payload.get("body"), self.payload.get("body_encoding", "utf-8"))

    def age(self, now: datetime | None = None) -> timedelta:
        """Time spent waiting in the queue."""
        return (now or datetime.now(timezone.utc)) - self.enqueued_at

    def to_record(self) -> dict[str, object]:
        """Serialize to a JSON-compatible queue record."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "url": self.url,
            "method": self.method,
            "payload": self.payload,
            "enqueuedAt": self.enqueued_at.isoformat(),
        }

    @classmethod
    def from_record(cls, data: dict[str, object]) -> "QueueItem":
        """
        Deserialize from a queue record.

        Unknown keys are ignored so records written by newer versions stay
        readable.

        Raises:
            ValueError: If a required field is missing or malformed
        """
        if not isinstance(data, dict):
            raise ValueError(f"Queue record must be an object, got {type(data).__name__}")

        missing = [key for key in ("id", "kind", "url", "method", "enqueuedAt") if key not in data]
        if missing:
            raise ValueError(f"Queue record missing fields: {', '.join(missing)}")

        raw_id = data["id"]
        if isinstance(raw_id, bool) or not isinstance(raw_id, (int, str)):
            raise ValueError(f"Invalid queue item id: {raw_id!r}")

        payload = data.get("payload") or {}
        if not isinstance(payload, dict):
            raise ValueError("Queue record payload must be an object")

        enqueued_at = datetime.fromisoformat(str(data["enqueuedAt"]))
        if enqueued_at.tzinfo is None:
            enqueued_at = enqueued_at.replace(tzinfo=timezone.utc)

        return cls(
            id=int(raw_id),
            kind=ItemKind(str(data["kind"])),
            url=str(data["url"]),
            method=str(data["method"]).upper(),
            payload=payload,
            enqueued_at=enqueued_at,
        )
