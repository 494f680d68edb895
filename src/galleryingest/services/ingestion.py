"""
Ingestion orchestrator.

Runs every asset group through extraction, geocoding, thumbnailing, storage
and persistence, collecting one report entry per group. A failing group never
stops its siblings; only an empty request is rejected as a whole.
"""

import mimetypes
import threading
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..config import get_ingest_max_workers, get_storage_type
from ..errors import DatabaseError, GalleryError, StorageError, ValidationError
from ..logging_config import get_logger, log_error, log_performance
from ..models.asset import AssetCategory, GalleryAsset
from .cache import invalidate_gallery_caches
from .exif import MetadataExtractor, get_metadata_extractor
from .gallery_repository import GalleryRepository, get_gallery_repository
from .geocoding import ReverseGeocoder, get_reverse_geocoder
from .grouping import AssetGroup, RawFile, group_files, group_key
from .image_processor import THUMBNAIL_MIME_TYPE, ImageProcessor, get_image_processor, get_thumbnail_filename
from .storage import StorageProvider, UploadItem, get_storage_provider

logger = get_logger(__name__)

NO_FILES_MESSAGE = "请选择要上传的文件"
MISSING_IMAGE_MESSAGE = "缺少图片文件"
UNEXPECTED_ERROR_MESSAGE = "上传失败"


@dataclass
class IngestDefaults:
    """Fields applied to every asset created by one request."""

    title: str | None = None
    description: str | None = None
    post_id: str | None = None
    category: str = AssetCategory.ORIGINAL.value
    # Wins over the EXIF capture time when set
    captured_at: datetime | None = None


@dataclass
class GroupResult:
    """Outcome of one asset group."""

    key: str
    ok: bool
    id: str | None = None
    error: str | None = None
    code: str | None = None
    asset: GalleryAsset | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            return {"key": self.key, "ok": True, "id": self.id}
        return {"key": self.key, "ok": False, "error": self.error, "code": self.code}


@dataclass
class BatchReport:
    """Per-group results of one bulk request, in group order."""

    results: list[GroupResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for result in self.results if result.ok)

    @property
    def failure_count(self) -> int:
        return len(self.results) - self.success_count

    @property
    def status(self) -> str:
        return "success" if self.success_count > 0 else "error"

    @property
    def message(self) -> str:
        return f"完成：成功 {self.success_count}，失败 {self.failure_count}"

    def failures(self) -> list[GroupResult]:
        return [result for result in self.results if not result.ok]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "message": self.message,
            "results": [result.to_dict() for result in self.results],
        }


ProgressCallback = Callable[[str, int, int], None]


class IngestionOrchestrator:
    """Turns uploaded files into persisted gallery assets."""

    def __init__(
        self,
        storage: StorageProvider,
        repository: GalleryRepository,
        extractor: MetadataExtractor | None = None,
        geocoder: ReverseGeocoder | None = None,
        image_processor: ImageProcessor | None = None,
        max_workers: int = 1,
    ) -> None:
        self.storage = storage
        self.repository = repository
        self.extractor = extractor or get_metadata_extractor()
        self.geocoder = geocoder or get_reverse_geocoder()
        self.image_processor = image_processor or get_image_processor()
        self.max_workers = max(1, max_workers)

    def process_batch(
        self,
        files: list[RawFile],
        defaults: IngestDefaults | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> BatchReport:
        """
        Group the files and ingest every group.

        Args:
            files: Raw uploaded files in submission order
            defaults: Shared title, description and post id
            progress_callback: Called with (group key, completed count, total) after each group

        Returns:
            BatchReport: One entry per group

        Raises:
            ValidationError: If no files were supplied
        """
        if not files:
            raise ValidationError("No files supplied", code="no_files", user_message=NO_FILES_MESSAGE)

        defaults = defaults or IngestDefaults()
        groups = group_files(files)
        start_time = datetime.now()
        logger.info("batch_ingest_started", file_count=len(files), group_count=len(groups), max_workers=self.max_workers)

        completed = 0
        progress_lock = threading.Lock()

        def run(group: AssetGroup) -> GroupResult:
            nonlocal completed
            result = self.ingest_group(group, defaults)
            if progress_callback:
                with progress_lock:
                    completed += 1
                    progress_callback(group.key, completed, len(groups))
            return result

        if self.max_workers > 1 and len(groups) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="ingest") as executor:
                results = list(executor.map(run, groups))
        else:
            results = [run(group) for group in groups]

        report = BatchReport(results=results)
        if report.success_count:
            invalidate_gallery_caches()

        duration = (datetime.now() - start_time).total_seconds()
        log_performance(
            "batch_ingest",
            duration,
            group_count=len(groups),
            success_count=report.success_count,
            failure_count=report.failure_count,
        )
        return report

    def ingest_group(self, group: AssetGroup, defaults: IngestDefaults | None = None) -> GroupResult:
        """Ingest one group, capturing any failure as a report entry."""
        try:
            asset = self._ingest(group, defaults or IngestDefaults())
        except GalleryError as e:
            logger.warning("group_ingest_failed", key=group.key, code=e.code, error=str(e))
            return GroupResult(key=group.key, ok=False, error=e.user_message, code=e.code)
        except Exception as e:
            log_error(e, {"operation": "ingest_group", "key": group.key})
            return GroupResult(key=group.key, ok=False, error=UNEXPECTED_ERROR_MESSAGE, code="unexpected_error")

        return GroupResult(key=group.key, ok=True, id=asset.id, asset=asset)

    def ingest_single(
        self,
        image: RawFile | None,
        video: RawFile | None = None,
        defaults: IngestDefaults | None = None,
    ) -> GalleryAsset:
        """
        Ingest one image and its optional paired video.

        Raises:
            GalleryError: On any fatal step
        """
        if image is None:
            raise ValidationError("No image supplied", code="missing_image", user_message=MISSING_IMAGE_MESSAGE)

        group = AssetGroup(key=group_key(image.name), image=image, video=video)
        asset = self._ingest(group, defaults or IngestDefaults())
        invalidate_gallery_caches()
        return asset

    def _ingest(self, group: AssetGroup, defaults: IngestDefaults) -> GalleryAsset:
        image = group.image
        if image is None:
            raise ValidationError(
                f"Group '{group.key}' has no image",
                code="missing_image",
                user_message=MISSING_IMAGE_MESSAGE,
                details={"key": group.key},
            )

        metadata = self.extractor.extract(image.data)

        location = None
        if metadata.has_gps:
            location = self.geocoder.geocode(metadata.latitude, metadata.longitude)

        thumbnails = self.image_processor.generate(image.data)

        image_mime_type = image.resolved_mime_type("image/jpeg")
        filename = f"{uuid.uuid4().hex}{image.extension or mimetypes.guess_extension(image_mime_type) or ''}"
        items = [UploadItem(data=image.data, filename=filename, mime_type=image_mime_type)]
        items += [
            UploadItem(data=data, filename=get_thumbnail_filename(filename, size), mime_type=THUMBNAIL_MIME_TYPE)
            for size, data in thumbnails.items()
        ]
        stored_paths = self.storage.upload_batch(items)

        video_path = None
        if group.video is not None:
            video_mime_type = group.video.resolved_mime_type("video/quicktime")
            video_filename = f"{uuid.uuid4().hex}{group.video.extension or '.mov'}"
            try:
                video_path = self.storage.upload(group.video.data, video_filename, video_mime_type)
            except StorageError:
                self._discard(stored_paths)
                raise
            stored_paths.append(video_path)

        urls = [self.storage.get_public_url(path) for path in stored_paths]

        asset = GalleryAsset.create_new(
            file_path=urls[0],
            micro_thumb_path=urls[1],
            small_thumb_path=urls[2],
            medium_path=urls[3],
            storage_type=self.storage.storage_type,
            title=defaults.title,
            description=defaults.description,
            post_id=defaults.post_id,
            category=defaults.category,
            latitude=metadata.latitude,
            longitude=metadata.longitude,
            location_name=location.location_name if location else None,
            city=location.city if location else None,
            country=location.country if location else None,
            live_photo_video_path=urls[4] if video_path else None,
            file_size=image.size,
            width=metadata.width,
            height=metadata.height,
            mime_type=image_mime_type,
            captured_at=defaults.captured_at or metadata.captured_at,
        )

        try:
            self.repository.create(asset)
        except DatabaseError:
            self._discard(stored_paths)
            raise

        logger.info(
            "group_ingested",
            key=group.key,
            asset_id=asset.id,
            is_live_photo=asset.is_live_photo,
            has_location=location is not None,
        )
        return asset

    def _discard(self, paths: list[str]) -> None:
        """Best-effort removal of objects whose record was never written."""
        for path in paths:
            try:
                self.storage.delete(path)
            except StorageError as e:
                logger.warning("orphan_blob_cleanup_failed", path=path, error=str(e))


def get_ingestion_orchestrator() -> IngestionOrchestrator:
    """Build an orchestrator from the current configuration."""
    return IngestionOrchestrator(
        storage=get_storage_provider(get_storage_type()),
        repository=get_gallery_repository(),
        max_workers=get_ingest_max_workers(),
    )
