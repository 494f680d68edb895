"""Storage providers for gallery originals, renditions and Live Photo videos."""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from google.cloud import storage  # type: ignore[attr-defined]
from google.cloud.exceptions import GoogleCloudError, NotFound

from ..config import get_env, get_storage_type, get_upload_dir, get_upload_url_prefix
from ..errors import StorageError
from ..logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class UploadItem:
    """One object of a batch upload."""

    data: bytes
    filename: str
    mime_type: str


def safe_filename(filename: str) -> str:
    """
    Strip any directory components to prevent path traversal.

    Raises:
        StorageError: If nothing usable remains
    """
    name = PurePosixPath(filename.replace("\\", "/")).name
    if name in ("", ".", ".."):
        raise StorageError(f"Invalid storage filename: {filename!r}", code="invalid_filename")
    return name


class StorageProvider(ABC):
    """Blob store used by the ingestion pipeline."""

    storage_type: str = ""

    @abstractmethod
    def upload(self, data: bytes, filename: str, mime_type: str) -> str:
        """
        Store one object.

        Returns:
            str: Storage path of the object

        Raises:
            StorageError: If the upload fails
        """

    @abstractmethod
    def get_public_url(self, path: str) -> str:
        """Public URL of a stored object."""

    @abstractmethod
    def delete(self, path: str) -> None:
        """
        Delete an object by storage path or public URL. Missing objects are ignored.

        Raises:
            StorageError: If the object exists but cannot be deleted
        """

    def upload_batch(self, items: list[UploadItem]) -> list[str]:
        """
        Upload several objects as one logical unit.

        Paths come back in input order. If any upload fails, objects already
        stored by this batch are deleted best-effort and the error is re-raised.

        Raises:
            StorageError: If any upload fails
        """
        paths: list[str] = []
        try:
            for item in items:
                paths.append(self.upload(item.data, item.filename, item.mime_type))
        except StorageError:
            self._rollback(paths)
            raise

        logger.info("batch_upload_completed", storage_type=self.storage_type, object_count=len(paths))
        return paths

    def _rollback(self, paths: list[str]) -> None:
        for path in paths:
            try:
                self.delete(path)
            except StorageError as e:
                logger.warning("batch_rollback_delete_failed", path=path, error=str(e))


class LocalStorage(StorageProvider):
    """Stores objects in a local directory served under a URL prefix."""

    storage_type = "local"

    def __init__(self, upload_dir: str | Path | None = None, url_prefix: str | None = None) -> None:
        self.upload_dir = Path(upload_dir or get_upload_dir())
        self.url_prefix = (url_prefix or get_upload_url_prefix()).rstrip("/")

    def upload(self, data: bytes, filename: str, mime_type: str) -> str:
        name = safe_filename(filename)
        target = self.upload_dir / name

        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            os.chmod(target, 0o644)
        except OSError as e:
            raise StorageError(
                f"Failed to write '{name}' to local storage: {e}",
                code="upload_failed",
                details={"filename": name, "mime_type": mime_type, "storage_type": self.storage_type},
                original_exception=e,
            ) from e

        path = f"{self.url_prefix}/{name}"
        logger.debug("local_object_stored", path=path, size=len(data), mime_type=mime_type)
        return path

    def get_public_url(self, path: str) -> str:
        return path

    def delete(self, path: str) -> None:
        target = self.upload_dir / safe_filename(path)

        if not target.exists():
            logger.debug("local_object_already_absent", path=path)
            return

        try:
            target.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(
                f"Failed to delete '{path}' from local storage: {e}",
                code="delete_failed",
                details={"path": path, "storage_type": self.storage_type},
                original_exception=e,
            ) from e

        logger.info("local_object_deleted", path=path)

    def resolve(self, path: str) -> Path:
        """Filesystem location of a stored path."""
        return self.upload_dir / safe_filename(path)


class GCSStorage(StorageProvider):
    """Stores objects in a Google Cloud Storage bucket."""

    storage_type = "gcs"

    def __init__(
        self,
        bucket_name: str | None = None,
        project_id: str | None = None,
        prefix: str | None = None,
        public_base_url: str | None = None,
    ) -> None:
        """
        Initialize the GCS provider.

        Environment Variables:
            GCS_PHOTOS_BUCKET: Bucket for gallery objects
            GOOGLE_CLOUD_PROJECT: GCP project ID
            GCS_OBJECT_PREFIX: Object name prefix (default "gallery/")
            GCS_PUBLIC_BASE_URL: Base of public URLs (default https://storage.googleapis.com/<bucket>)
        """
        self.bucket_name = bucket_name or get_env("GCS_PHOTOS_BUCKET")
        self.project_id = project_id or get_env("GOOGLE_CLOUD_PROJECT")
        self.prefix = prefix if prefix is not None else str(get_env("GCS_OBJECT_PREFIX", "gallery/"))

        if not self.bucket_name:
            raise StorageError("GCS_PHOTOS_BUCKET environment variable is required")
        if not self.project_id:
            raise StorageError("GOOGLE_CLOUD_PROJECT environment variable is required")

        self.public_base_url = (
            public_base_url
            or get_env("GCS_PUBLIC_BASE_URL")
            or f"https://storage.googleapis.com/{self.bucket_name}"
        ).rstrip("/")

        try:
            self.client = storage.Client(project=self.project_id)
            self.bucket = self.client.bucket(self.bucket_name)
        except Exception as e:
            raise StorageError(f"Failed to initialize GCS client: {e}", original_exception=e) from e

        logger.info(
            "gcs_storage_initialized",
            bucket=self.bucket_name,
            project_id=self.project_id,
            prefix=self.prefix,
        )

    def upload(self, data: bytes, filename: str, mime_type: str) -> str:
        object_name = f"{self.prefix}{safe_filename(filename)}"

        try:
            blob = self.bucket.blob(object_name)
            blob.upload_from_string(data, content_type=mime_type)
        except GoogleCloudError as e:
            raise StorageError(
                f"Failed to upload '{object_name}': {e}",
                code="upload_failed",
                details={"object_name": object_name, "storage_type": self.storage_type},
                original_exception=e,
            ) from e
        except Exception as e:
            raise StorageError(
                f"Unexpected error uploading '{object_name}': {e}",
                code="upload_failed",
                details={"object_name": object_name, "storage_type": self.storage_type},
                original_exception=e,
            ) from e

        logger.info("gcs_object_uploaded", object_name=object_name, size=len(data), mime_type=mime_type)
        return object_name

    def get_public_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.public_base_url}/{path.lstrip('/')}"

    def delete(self, path: str) -> None:
        object_name = self._object_name(path)

        try:
            self.bucket.blob(object_name).delete()
        except NotFound:
            logger.debug("gcs_object_already_absent", object_name=object_name)
            return
        except GoogleCloudError as e:
            raise StorageError(
                f"Failed to delete '{object_name}': {e}",
                code="delete_failed",
                details={"object_name": object_name, "storage_type": self.storage_type},
                original_exception=e,
            ) from e
        except Exception as e:
            raise StorageError(
                f"Unexpected error deleting '{object_name}': {e}",
                code="delete_failed",
                details={"object_name": object_name, "storage_type": self.storage_type},
                original_exception=e,
            ) from e

        logger.info("gcs_object_deleted", object_name=object_name)

    def _object_name(self, path: str) -> str:
        """Accept either an object name or one of our public URLs."""
        base = f"{self.public_base_url}/"
        if path.startswith(base):
            return path[len(base):]
        return path.lstrip("/")


_storage_providers: dict[str, StorageProvider] = {}


def get_storage_provider(storage_type: str | None = None) -> StorageProvider:
    """
    Get the storage provider for ``storage_type`` (defaults to STORAGE_TYPE).

    Args:
        storage_type: "local" or "gcs"

    Returns:
        StorageProvider: Cached provider instance

    Raises:
        StorageError: If the type is unknown or the provider cannot be initialized
    """
    resolved = (storage_type or get_storage_type()).lower()

    if resolved not in _storage_providers:
        if resolved == "local":
            _storage_providers[resolved] = LocalStorage()
        elif resolved == "gcs":
            _storage_providers[resolved] = GCSStorage()
        else:
            raise StorageError(f"Unknown storage type: {resolved}", code="unknown_storage_type")

    return _storage_providers[resolved]
