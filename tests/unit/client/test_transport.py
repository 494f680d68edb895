"""
Unit tests for the HTTP upload transport.
"""

import threading
from unittest.mock import MagicMock

import pytest
import requests

from galleryingest.client.transport import (
    HttpUploadTransport,
    ProgressReader,
    UploadCancelled,
    UploadFailed,
    UploadRequest,
)
from galleryingest.services.grouping import RawFile


def make_response(status_code: int, payload=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if payload is None:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = payload
    return response


class TestProgressReader:
    """Test cases for ProgressReader."""

    def test_reports_percent_per_chunk(self):
        percents = []
        reader = ProgressReader(b"0123456789", percents.append, threading.Event(), chunk_size=4)

        chunks = [reader.read(8192) for _ in range(4)]

        assert chunks == [b"0123", b"4567", b"89", b""]
        assert percents == [40, 80, 100]
        assert len(reader) == 10

    def test_cancel_aborts_next_read(self):
        cancel_event = threading.Event()
        reader = ProgressReader(b"0123456789", lambda percent: None, cancel_event, chunk_size=4)
        reader.read()

        cancel_event.set()

        with pytest.raises(UploadCancelled):
            reader.read()


class TestHttpUploadTransport:
    """Test cases for HttpUploadTransport."""

    def setup_method(self):
        """Set up test fixtures."""
        self.session = MagicMock()
        self.transport = HttpUploadTransport(
            "http://localhost:8000/api/admin/gallery/upload",
            session=self.session,
            headers={"X-Goog-IAP-JWT-Assertion": "token"},
            chunk_size=16,
        )
        self.request = UploadRequest(
            image=RawFile(name="IMG_0001.HEIC", data=b"image" * 20, mime_type="image/heic"),
            video=RawFile(name="IMG_0001.MOV", data=b"video" * 4, mime_type="video/quicktime"),
            fields={"title": "Trip", "postId": ""},
        )

    def drain_and_respond(self, response):
        def post(url, data, headers, timeout):
            while data.read(16):
                pass
            return response

        self.session.post.side_effect = post

    def test_encode(self):
        body, content_type = self.transport.encode(self.request)

        assert content_type.startswith("multipart/form-data; boundary=")
        assert b'name="title"' in body
        assert b'name="postId"' not in body
        assert b'filename="IMG_0001.HEIC"' in body
        assert b'name="video"; filename="IMG_0001.MOV"' in body

    def test_successful_upload(self):
        self.drain_and_respond(make_response(200, {"image": {"id": "asset-1"}}))
        percents = []

        asset_id = self.transport.send(self.request, percents.append, threading.Event())

        assert asset_id == "asset-1"
        assert percents[-1] == 100
        assert percents == sorted(percents)
        headers = self.session.post.call_args.kwargs["headers"]
        assert headers["X-Goog-IAP-JWT-Assertion"] == "token"
        assert headers["Content-Type"].startswith("multipart/form-data")

    def test_rejected_upload_uses_server_message(self):
        self.drain_and_respond(make_response(422, {"status": "error", "error": "无法解析图片"}))

        with pytest.raises(UploadFailed) as exc_info:
            self.transport.send(self.request, lambda percent: None, threading.Event())

        assert exc_info.value.message == "无法解析图片"
        assert exc_info.value.status_code == 422

    def test_rejected_upload_without_json(self):
        self.drain_and_respond(make_response(502, text="Bad Gateway"))

        with pytest.raises(UploadFailed, match="Bad Gateway"):
            self.transport.send(self.request, lambda percent: None, threading.Event())

    def test_success_without_id(self):
        self.drain_and_respond(make_response(200, {"status": "ok"}))

        with pytest.raises(UploadFailed, match="响应无效"):
            self.transport.send(self.request, lambda percent: None, threading.Event())

    def test_connection_error(self):
        self.session.post.side_effect = requests.ConnectionError("refused")

        with pytest.raises(UploadFailed) as exc_info:
            self.transport.send(self.request, lambda percent: None, threading.Event())

        assert exc_info.value.message == "上传失败"

    def test_cancel_during_body(self):
        cancel_event = threading.Event()
        self.drain_and_respond(make_response(200, {"image": {"id": "asset-1"}}))

        def cancel_at_half(percent):
            if percent >= 50:
                cancel_event.set()

        with pytest.raises(UploadCancelled):
            self.transport.send(self.request, cancel_at_half, cancel_event)

    def test_transport_error_after_cancel(self):
        cancel_event = threading.Event()
        cancel_event.set()
        self.session.post.side_effect = requests.ConnectionError("aborted")

        with pytest.raises(UploadCancelled):
            self.transport.send(self.request, lambda percent: None, cancel_event)
