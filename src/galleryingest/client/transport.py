"""HTTP transport for the per-item upload endpoint, with progress and cancellation."""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field

import requests
from urllib3.filepost import encode_multipart_formdata

from ..logging_config import get_logger
from ..services.grouping import RawFile

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
UPLOAD_FAILED_MESSAGE = "上传失败"

ProgressHandler = Callable[[int], None]


class UploadCancelled(Exception):
    """The request was aborted through its cancel event."""


class UploadFailed(Exception):
    """The server rejected the upload or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class UploadRequest:
    """One queued item: an image, its optional Live Photo video, and form fields."""

    image: RawFile
    video: RawFile | None = None
    fields: dict[str, str] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return self.image.size + (self.video.size if self.video else 0)


class ProgressReader:
    """
    File-like request body that reports integer percent sent and aborts on cancel.

    ``requests`` takes the length from ``__len__`` and pulls the body through
    ``read``, so every chunk is a checkpoint for the cancel event.
    """

    def __init__(
        self,
        body: bytes,
        on_progress: ProgressHandler,
        cancel_event: threading.Event,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._body = body
        self._offset = 0
        self._last_percent = -1
        self.on_progress = on_progress
        self.cancel_event = cancel_event
        self.chunk_size = chunk_size

    def __len__(self) -> int:
        return len(self._body)

    def read(self, size: int = -1) -> bytes:
        if self.cancel_event.is_set():
            raise UploadCancelled("Upload cancelled")

        if size is None or size < 0:
            size = self.chunk_size
        chunk = self._body[self._offset : self._offset + min(size, self.chunk_size)]
        self._offset += len(chunk)

        percent = 100 if not self._body else round(self._offset * 100 / len(self._body))
        if percent != self._last_percent:
            self._last_percent = percent
            self.on_progress(percent)
        return chunk


class HttpUploadTransport:
    """Posts one UploadRequest as multipart form data to the upload endpoint."""

    def __init__(
        self,
        endpoint: str,
        session: requests.Session | None = None,
        timeout: float = 300.0,
        headers: dict[str, str] | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.endpoint = endpoint
        self.session = session or requests.Session()
        self.timeout = timeout
        self.headers = dict(headers or {})
        self.chunk_size = chunk_size

    def encode(self, request: UploadRequest) -> tuple[bytes, str]:
        """Multipart body and its content type."""
        parts: list[tuple[str, object]] = [
            (name, value) for name, value in request.fields.items() if value is not None and value != ""
        ]
        parts.append(("image", (request.image.name, request.image.data, request.image.resolved_mime_type())))
        if request.video is not None:
            parts.append(("video", (request.video.name, request.video.data, request.video.resolved_mime_type())))
        return encode_multipart_formdata(parts)

    def send(self, request: UploadRequest, on_progress: ProgressHandler, cancel_event: threading.Event) -> str:
        """
        Upload one item.

        Returns:
            str: Id of the created asset

        Raises:
            UploadCancelled: If ``cancel_event`` was set while the body was being sent
            UploadFailed: On a non-2xx response or a transport error
        """
        body, content_type = self.encode(request)
        reader = ProgressReader(body, on_progress, cancel_event, self.chunk_size)
        headers = {**self.headers, "Content-Type": content_type}

        try:
            response = self.session.post(self.endpoint, data=reader, headers=headers, timeout=self.timeout)
        except UploadCancelled:
            raise
        except requests.RequestException as e:
            if cancel_event.is_set():
                raise UploadCancelled("Upload cancelled") from e
            logger.warning("upload_request_failed", filename=request.image.name, error=str(e))
            raise UploadFailed(UPLOAD_FAILED_MESSAGE) from e

        return self._parse_response(request, response)

    @staticmethod
    def _parse_response(request: UploadRequest, response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if 200 <= response.status_code < 300:
            asset_id = (payload or {}).get("image", {}).get("id") if isinstance(payload, dict) else None
            if not asset_id:
                raise UploadFailed("响应无效", status_code=response.status_code)
            return str(asset_id)

        message = None
        if isinstance(payload, dict):
            message = payload.get("error") or payload.get("message")
        message = message or response.text or UPLOAD_FAILED_MESSAGE
        logger.warning(
            "upload_rejected", filename=request.image.name, status_code=response.status_code, error=message
        )
        raise UploadFailed(str(message), status_code=response.status_code)
