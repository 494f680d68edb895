"""
Pytest configuration and fixtures for galleryingest tests.
"""

import base64
import io
import json
import time
from collections.abc import Generator
from unittest.mock import MagicMock

import pytest
from PIL import Image

from galleryingest.config import get_config
from galleryingest.models.asset import GalleryAsset
from galleryingest.models.database import create_database
from galleryingest.services import cache, gallery_repository, geocoding, storage
from galleryingest.services.gallery_repository import GalleryRepository
from galleryingest.services.storage import LocalStorage


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Set up test environment variables and reset cached configuration and singletons."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("GCS_PHOTOS_BUCKET", "test-photos-bucket")
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "test-project")
    monkeypatch.setenv("DATABASE_PATH", ":memory:")
    monkeypatch.delenv("STORAGE_TYPE", raising=False)
    monkeypatch.delenv("ADMIN_EMAILS", raising=False)
    monkeypatch.delenv("INGEST_MAX_WORKERS", raising=False)

    get_config().clear_cache()
    gallery_repository._repository = None
    geocoding._geocoder = None
    storage._storage_providers.clear()
    cache._hooks.clear()

    yield

    get_config().clear_cache()
    gallery_repository._repository = None
    geocoding._geocoder = None
    storage._storage_providers.clear()
    cache._hooks.clear()


@pytest.fixture
def repository() -> GalleryRepository:
    """Repository on a fresh in-memory database."""
    return GalleryRepository(create_database(":memory:"))


@pytest.fixture
def local_storage(tmp_path) -> LocalStorage:
    """Local storage writing into a temporary directory."""
    return LocalStorage(upload_dir=tmp_path / "uploads", url_prefix="/api/uploads/gallery")


@pytest.fixture
def mock_geocoder() -> MagicMock:
    """Geocoder that never resolves anything."""
    geocoder = MagicMock()
    geocoder.geocode.return_value = None
    return geocoder


class TestDataFactory:
    """Factory class for creating test data objects."""

    @staticmethod
    def create_test_image(
        size: tuple[int, int] = (800, 600),
        image_format: str = "JPEG",
        mode: str = "RGB",
        color: str | tuple[int, ...] | None = "red",
        exif: Image.Exif | None = None,
    ) -> bytes:
        """Create an image in memory, optionally carrying EXIF tags."""
        image = Image.new(mode, size, color=color)
        buffer = io.BytesIO()
        save_kwargs = {}
        if exif is not None:
            save_kwargs["exif"] = exif.tobytes()
        image.save(buffer, format=image_format, **save_kwargs)
        return buffer.getvalue()

    @staticmethod
    def create_asset(**overrides) -> GalleryAsset:
        """Create a GalleryAsset with local storage paths."""
        values = {
            "file_path": "/api/uploads/gallery/abc.jpg",
            "micro_thumb_path": "/api/uploads/gallery/abc_micro.webp",
            "small_thumb_path": "/api/uploads/gallery/abc_small.webp",
            "medium_path": "/api/uploads/gallery/abc_medium.webp",
            "storage_type": "local",
            "title": "Sunset",
            "width": 800,
            "height": 600,
            "mime_type": "image/jpeg",
        }
        values.update(overrides)
        return GalleryAsset.create_new(**values)

    @staticmethod
    def create_jwt_payload(
        user_id: str = "test-user-123",
        email: str = "admin@example.com",
        name: str | None = "Test User",
    ) -> dict:
        """Create an IAP JWT payload for testing."""
        current_time = int(time.time())
        payload = {
            "sub": user_id,
            "email": email,
            "iss": "https://cloud.google.com/iap",
            "iat": current_time,
            "exp": current_time + 3600,
        }
        if name is not None:
            payload["name"] = name
        return payload

    @staticmethod
    def create_jwt_token(payload: dict | None = None) -> str:
        """Create an unsigned JWT carrying ``payload``."""
        if payload is None:
            payload = TestDataFactory.create_jwt_payload()

        header = {"alg": "RS256", "typ": "JWT"}
        header_b64 = base64.urlsafe_b64encode(json.dumps(header).encode()).decode().rstrip("=")
        payload_b64 = base64.urlsafe_b64encode(json.dumps(payload).encode()).decode().rstrip("=")
        signature_b64 = base64.urlsafe_b64encode(b"test_signature").decode().rstrip("=")

        return f"{header_b64}.{payload_b64}.{signature_b64}"
