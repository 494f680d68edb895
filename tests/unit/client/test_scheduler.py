"""
Unit tests for the bounded-concurrency upload queue.
"""

import threading
import time
from unittest.mock import create_autospec, patch

import pytest
import structlog

from galleryingest.client.scheduler import UploadScheduler
from galleryingest.client.state import Cancelled, Done, Error, Idle, InvalidTransition, Uploading
from galleryingest.client.transport import UploadCancelled, UploadFailed, UploadRequest
from galleryingest.services.grouping import AssetGroup, RawFile


def make_request(name: str) -> UploadRequest:
    return UploadRequest(image=RawFile(name=name, data=b"image-bytes", mime_type="image/jpeg"))


class FakeTransport:
    """Transport recording concurrency; names listed in ``failures`` fail once."""

    def __init__(self, delay: float = 0.02, failures: set[str] | None = None) -> None:
        self.delay = delay
        self.failures = set(failures or ())
        self.in_flight = 0
        self.max_in_flight = 0
        self.sent: list[str] = []
        self.lock = threading.Lock()

    def send(self, request, on_progress, cancel_event):
        name = request.image.name
        with self.lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            self.sent.append(name)
        try:
            on_progress(50)
            time.sleep(self.delay)
            if name in self.failures:
                self.failures.discard(name)
                raise UploadFailed("存储上传失败", status_code=500)
            on_progress(100)
            return f"id-{name}"
        finally:
            with self.lock:
                self.in_flight -= 1


class BlockingTransport:
    """Transport that waits until its cancel event is set."""

    def __init__(self) -> None:
        self.started = threading.Event()

    def send(self, request, on_progress, cancel_event):
        self.started.set()
        if cancel_event.wait(5):
            raise UploadCancelled("Upload cancelled")
        return "never"


class ResponseHoldingTransport:
    """Transport whose body is fully sent, then waits for ``release`` before answering."""

    def __init__(self, result: str | Exception = "asset-1") -> None:
        self.result = result
        self.body_sent = threading.Event()
        self.release = threading.Event()

    def send(self, request, on_progress, cancel_event):
        on_progress(100)
        self.body_sent.set()
        self.release.wait(5)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class TestUploadScheduler:
    """Test cases for UploadScheduler."""

    def test_all_items_complete(self):
        transport = FakeTransport()
        scheduler = UploadScheduler(transport, concurrency=3)
        for n in range(5):
            scheduler.add(make_request(f"IMG_{n}.jpg"))

        states = scheduler.run()

        assert states == [Done(asset_id=f"id-IMG_{n}.jpg") for n in range(5)]
        assert sorted(transport.sent) == sorted(f"IMG_{n}.jpg" for n in range(5))

    def test_concurrency_is_bounded(self):
        transport = FakeTransport(delay=0.05)
        scheduler = UploadScheduler(transport, concurrency=2)
        for n in range(6):
            scheduler.add(make_request(f"IMG_{n}.jpg"))

        scheduler.run()

        assert transport.max_in_flight <= 2

    def test_failure_does_not_stop_siblings(self):
        transport = FakeTransport(failures={"bad.jpg"})
        scheduler = UploadScheduler(transport, concurrency=2)
        scheduler.add(make_request("good.jpg"))
        scheduler.add(make_request("bad.jpg"))

        states = scheduler.run()

        assert states[0] == Done(asset_id="id-good.jpg")
        assert states[1] == Error(message="存储上传失败")

    def test_unexpected_transport_error(self):
        class BrokenTransport:
            def send(self, request, on_progress, cancel_event):
                raise RuntimeError("boom")

        scheduler = UploadScheduler(BrokenTransport())
        scheduler.add(make_request("a.jpg"))

        assert scheduler.run() == [Error(message="上传失败")]

    def test_retry_after_error(self):
        transport = FakeTransport(failures={"a.jpg"})
        scheduler = UploadScheduler(transport)
        scheduler.add(make_request("a.jpg"))
        scheduler.run()

        state = scheduler.retry(0)

        assert state == Done(asset_id="id-a.jpg")
        assert transport.sent == ["a.jpg", "a.jpg"]

    def test_retry_of_done_item_is_rejected(self):
        scheduler = UploadScheduler(FakeTransport())
        scheduler.add(make_request("a.jpg"))
        scheduler.run()

        with pytest.raises(InvalidTransition):
            scheduler.retry(0)

    def test_cancel_idle_item(self):
        transport = FakeTransport()
        scheduler = UploadScheduler(transport)
        scheduler.add(make_request("a.jpg"))
        scheduler.add(make_request("b.jpg"))

        scheduler.cancel(0)
        states = scheduler.run()

        assert states == [Cancelled(), Done(asset_id="id-b.jpg")]
        assert transport.sent == ["b.jpg"]

    def test_cancel_in_flight_item(self):
        transport = BlockingTransport()
        scheduler = UploadScheduler(transport)
        scheduler.add(make_request("a.jpg"))

        runner = threading.Thread(target=scheduler.run)
        runner.start()
        assert transport.started.wait(5)
        assert scheduler.is_uploading()

        scheduler.cancel(0)
        runner.join(5)

        assert scheduler.states() == [Cancelled()]
        assert not scheduler.is_uploading()

    def test_cancelled_item_can_be_retried(self):
        scheduler = UploadScheduler(FakeTransport())
        scheduler.add(make_request("a.jpg"))
        scheduler.cancel(0)

        assert scheduler.retry(0) == Done(asset_id="id-a.jpg")

    def test_listener_sees_progress(self):
        seen = []
        scheduler = UploadScheduler(FakeTransport(), on_change=lambda index, item: seen.append(item.state))
        scheduler.add(make_request("a.jpg"))

        scheduler.run()

        assert seen == [
            Uploading(progress=0),
            Uploading(progress=50),
            Uploading(progress=100),
            Done(asset_id="id-a.jpg"),
        ]

    def test_add_groups_skips_groups_without_image(self):
        image = RawFile(name="a.jpg", data=b"x", mime_type="image/jpeg")
        video = RawFile(name="a.mov", data=b"y", mime_type="video/quicktime")
        orphan = AssetGroup(key="b", video=RawFile(name="b.mov", data=b"z"))
        scheduler = UploadScheduler(FakeTransport())

        skipped = scheduler.add_groups([AssetGroup(key="a", image=image, video=video), orphan], {"title": "Trip"})

        assert skipped == [orphan]
        assert len(scheduler.items) == 1
        assert scheduler.items[0].key == "a"
        assert scheduler.items[0].request.video == video
        assert scheduler.items[0].request.fields == {"title": "Trip"}
        assert scheduler.states() == [Idle()]

    def test_transitions_are_logged(self):
        mock_logger = create_autospec(structlog.stdlib.BoundLogger, instance=True)
        scheduler = UploadScheduler(FakeTransport())
        scheduler.add(make_request("a.jpg"))

        with patch("galleryingest.client.scheduler.logger", mock_logger):
            states = scheduler.run()

        assert states == [Done(asset_id="id-a.jpg")]
        transitions = [
            call.kwargs["transition"]
            for call in mock_logger.debug.call_args_list
            if call.args and call.args[0] == "upload_item_transition"
        ]
        assert transitions == ["Start", "Succeeded"]

    @pytest.mark.parametrize("result", ["asset-1", UploadFailed("存储上传失败", status_code=500)])
    def test_cancel_while_waiting_for_response(self, result):
        transport = ResponseHoldingTransport(result)
        scheduler = UploadScheduler(transport)
        scheduler.add(make_request("a.jpg"))

        runner = threading.Thread(target=scheduler.run)
        runner.start()
        assert transport.body_sent.wait(5)

        scheduler.cancel(0)
        transport.release.set()
        runner.join(5)

        assert scheduler.states() == [Cancelled()]

    def test_cancel_after_response_can_be_retried(self):
        transport = ResponseHoldingTransport()
        scheduler = UploadScheduler(transport)
        scheduler.add(make_request("a.jpg"))

        runner = threading.Thread(target=scheduler.run)
        runner.start()
        assert transport.body_sent.wait(5)
        scheduler.cancel(0)
        transport.release.set()
        runner.join(5)

        assert scheduler.retry(0) == Done(asset_id="asset-1")
