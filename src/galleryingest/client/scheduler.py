"""
Bounded-concurrency upload queue.

N worker threads consume a shared cursor over pending item indices. Each
worker carries one item from Idle to a terminal state before taking the
next, so at most N requests are in flight.
"""

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Protocol

from ..logging_config import get_logger, log_error
from ..services.grouping import AssetGroup
from .state import (
    Cancel,
    Cancelled,
    Done,
    Error,
    Failed,
    Idle,
    ItemEvent,
    ItemState,
    Progress,
    Retry,
    Start,
    Succeeded,
    Uploading,
    reduce,
)
from .transport import UPLOAD_FAILED_MESSAGE, ProgressHandler, UploadCancelled, UploadFailed, UploadRequest

logger = get_logger(__name__)

DEFAULT_CONCURRENCY = 3


class UploadTransport(Protocol):
    def send(self, request: UploadRequest, on_progress: ProgressHandler, cancel_event: threading.Event) -> str: ...


@dataclass
class QueueItem:
    key: str
    request: UploadRequest
    state: ItemState = field(default_factory=Idle)
    cancel_event: threading.Event = field(default_factory=threading.Event)


StateListener = Callable[[int, QueueItem], None]


class UploadScheduler:
    """Drives queued items through the transport with a fixed worker pool."""

    def __init__(
        self,
        transport: UploadTransport,
        concurrency: int = DEFAULT_CONCURRENCY,
        on_change: StateListener | None = None,
    ) -> None:
        self.transport = transport
        self.concurrency = max(1, concurrency)
        self.on_change = on_change
        self.items: list[QueueItem] = []
        self._lock = threading.RLock()

    def add(self, request: UploadRequest, key: str | None = None) -> int:
        """Queue one request; returns its index."""
        with self._lock:
            self.items.append(QueueItem(key=key or request.image.name, request=request))
            return len(self.items) - 1

    def add_groups(self, groups: Iterable[AssetGroup], fields: dict[str, str] | None = None) -> list[AssetGroup]:
        """
        Queue one request per group that has an image.

        Returns:
            list[AssetGroup]: Groups skipped because they have no image
        """
        skipped = []
        for group in groups:
            if group.image is None:
                skipped.append(group)
                continue
            self.add(UploadRequest(image=group.image, video=group.video, fields=dict(fields or {})), key=group.key)
        return skipped

    def states(self) -> list[ItemState]:
        with self._lock:
            return [item.state for item in self.items]

    def is_uploading(self) -> bool:
        """True while any item is in flight."""
        return any(isinstance(state, Uploading) for state in self.states())

    def run(self, indices: list[int] | None = None) -> list[ItemState]:
        """
        Upload every Idle item (or the given ones) and block until done.

        Returns:
            list[ItemState]: Final state of every queued item
        """
        with self._lock:
            pending = [
                index
                for index in (range(len(self.items)) if indices is None else indices)
                if isinstance(self.items[index].state, Idle)
            ]

        if not pending:
            return self.states()

        cursor = iter(pending)
        cursor_lock = threading.Lock()

        def next_index() -> int | None:
            with cursor_lock:
                return next(cursor, None)

        def worker() -> None:
            while (index := next_index()) is not None:
                self._process(index)

        workers = [
            threading.Thread(target=worker, name=f"upload-worker-{n}", daemon=True)
            for n in range(min(self.concurrency, len(pending)))
        ]
        logger.info("upload_queue_started", pending=len(pending), workers=len(workers))

        for thread in workers:
            thread.start()
        # Short joins keep the main thread responsive to signals
        while any(thread.is_alive() for thread in workers):
            for thread in workers:
                thread.join(0.2)

        states = self.states()
        logger.info(
            "upload_queue_finished",
            done=sum(isinstance(state, Done) for state in states),
            errors=sum(isinstance(state, Error) for state in states),
            cancelled=sum(isinstance(state, Cancelled) for state in states),
        )
        return states

    def cancel(self, index: int) -> None:
        """
        Cancel one item. An Idle item is cancelled at once; an Uploading item
        is aborted at its next body chunk, or ends Cancelled when its response
        arrives. Other items are unaffected.
        """
        with self._lock:
            item = self.items[index]
            if isinstance(item.state, Idle):
                self._dispatch(index, Cancel())
            elif isinstance(item.state, Uploading):
                item.cancel_event.set()

    def cancel_all(self) -> None:
        for index in range(len(self.items)):
            self.cancel(index)

    def retry(self, index: int) -> ItemState:
        """
        Re-run a Cancelled or Error item.

        Raises:
            InvalidTransition: If the item is in any other state
        """
        self._dispatch(index, Retry())
        return self.run([index])[index]

    def _process(self, index: int) -> None:
        with self._lock:
            item = self.items[index]
            if not isinstance(item.state, Idle):
                return
            item.cancel_event = threading.Event()
            self._dispatch(index, Start())

        outcome: ItemEvent
        try:
            asset_id = self.transport.send(
                item.request, lambda percent: self._dispatch(index, Progress(percent)), item.cancel_event
            )
        except UploadCancelled:
            outcome = Cancel()
        except UploadFailed as e:
            outcome = Failed(e.message)
        except Exception as e:
            log_error(e, {"operation": "upload_item", "key": item.key})
            outcome = Failed(UPLOAD_FAILED_MESSAGE)
        else:
            outcome = Succeeded(asset_id)

        with self._lock:
            # A cancel that arrived while waiting for the response wins over its outcome
            if item.cancel_event.is_set():
                outcome = Cancel()
            self._dispatch(index, outcome)

    def _dispatch(self, index: int, event: ItemEvent) -> ItemState:
        with self._lock:
            item = self.items[index]
            previous = item.state
            item.state = reduce(previous, event)
            changed = item.state != previous

        if changed:
            if not isinstance(event, Progress):
                logger.debug(
                    "upload_item_transition",
                    key=item.key,
                    transition=type(event).__name__,
                    state=type(item.state).__name__,
                )
            if self.on_change:
                self.on_change(index, item)
        return item.state
