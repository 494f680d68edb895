"""Client-side upload queue driving the per-item upload endpoint."""

from .guard import LeaveGuard
from .scheduler import DEFAULT_CONCURRENCY, QueueItem, UploadScheduler
from .state import Cancelled, Done, Error, Idle, InvalidTransition, ItemState, Uploading, reduce
from .transport import HttpUploadTransport, UploadCancelled, UploadFailed, UploadRequest

__all__ = [
    "LeaveGuard",
    "DEFAULT_CONCURRENCY",
    "QueueItem",
    "UploadScheduler",
    "Cancelled",
    "Done",
    "Error",
    "Idle",
    "InvalidTransition",
    "ItemState",
    "Uploading",
    "reduce",
    "HttpUploadTransport",
    "UploadCancelled",
    "UploadFailed",
    "UploadRequest",
]
