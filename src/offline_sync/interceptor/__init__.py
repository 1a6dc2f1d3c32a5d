"""Request interception: pass through when online, queue when offline."""

from .forms import FileField, OfflineForm, serialize_form
from .results import Delivered, Queued, SendResult, is_queued, queued_response, queued_result
from .interceptor import QueueingTransport, RequestInterceptor

__all__ = [
    "FileField",
    "OfflineForm",
    "serialize_form",
    "Delivered",
    "Queued",
    "SendResult",
    "is_queued",
    "queued_response",
    "queued_result",
    "QueueingTransport",
    "RequestInterceptor",
]
