"""
Bulk metadata update and bulk delete of gallery assets.

A bulk update carries a tri-state patch: every field is either absent (leave
unchanged), ``{"set": value}`` (overwrite) or ``{"clear": true}`` (null out).
``location`` is one group covering latitude, longitude, city, country and
location name; it is always written or cleared as a whole.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ..errors import DatabaseError, StorageError, ValidationError
from ..logging_config import get_logger
from ..models.asset import LOCATION_FIELDS, GalleryAsset
from .cache import invalidate_gallery_caches
from .exif import parse_exif_datetime
from .gallery_repository import GalleryRepository, get_gallery_repository
from .storage import StorageProvider, get_storage_provider

logger = get_logger(__name__)

NO_IDS_MESSAGE = "未选择任何图片"
BAD_REQUEST_MESSAGE = "缺少参数"

# Patch key -> column for plain text fields
_TEXT_FIELDS = {"title": "title", "description": "description", "postId": "post_id"}

# Keys accepted inside location.set
_LOCATION_KEYS = {
    "latitude": "latitude",
    "longitude": "longitude",
    "city": "city",
    "country": "country",
    "locationName": "location_name",
}


class PatchAction(Enum):
    SET = "set"
    CLEAR = "clear"


@dataclass(frozen=True)
class FieldPatch:
    """One present field of a tri-state patch."""

    action: PatchAction
    value: Any = None


@dataclass
class GalleryPatch:
    """Parsed bulk update patch. A field left as None is not touched."""

    title: FieldPatch | None = None
    description: FieldPatch | None = None
    post_id: FieldPatch | None = None
    captured_at: FieldPatch | None = None
    location: FieldPatch | None = None

    def is_empty(self) -> bool:
        return not self.to_values()

    def to_values(self) -> dict[str, Any]:
        """Column assignments for the repository."""
        values: dict[str, Any] = {}

        for column in ("title", "description", "post_id", "captured_at"):
            patch = getattr(self, column)
            if patch is not None:
                values[column] = patch.value if patch.action is PatchAction.SET else None

        if self.location is not None:
            location = self.location.value if self.location.action is PatchAction.SET else {}
            for column in LOCATION_FIELDS:
                values[column] = location.get(column)

        return values


def _parse_tri_state(name: str, raw: Any) -> FieldPatch | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValidationError(f"Patch field '{name}' must be an object", code="invalid_patch", user_message=BAD_REQUEST_MESSAGE)
    if raw.get("clear") is True:
        return FieldPatch(PatchAction.CLEAR)
    if "set" in raw:
        return FieldPatch(PatchAction.SET, raw["set"])
    if not raw:
        return None
    raise ValidationError(
        f"Patch field '{name}' needs 'set' or 'clear'",
        code="invalid_patch",
        user_message=BAD_REQUEST_MESSAGE,
    )


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_captured_at(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    parsed = parse_exif_datetime(value)
    if parsed is None:
        raise ValidationError(
            f"Invalid capturedAt value: {value!r}",
            code="invalid_captured_at",
            user_message=BAD_REQUEST_MESSAGE,
        )
    return parsed


def _parse_coordinate(name: str, value: Any, limit: float) -> float | None:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(
            f"Invalid {name}: {value!r}", code="invalid_location", user_message=BAD_REQUEST_MESSAGE
        ) from e
    if not -limit <= number <= limit:
        raise ValidationError(f"{name} out of range: {number}", code="invalid_location", user_message=BAD_REQUEST_MESSAGE)
    return number


def _parse_location(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise ValidationError("location.set must be an object", code="invalid_location", user_message=BAD_REQUEST_MESSAGE)

    location = {column: raw.get(key) for key, column in _LOCATION_KEYS.items()}
    location["latitude"] = _parse_coordinate("latitude", location["latitude"], 90.0)
    location["longitude"] = _parse_coordinate("longitude", location["longitude"], 180.0)
    for column in ("city", "country", "location_name"):
        location[column] = _clean_text(location[column])
    return location


def parse_patch(raw: Any) -> GalleryPatch:
    """
    Parse a JSON patch object into a GalleryPatch.

    Args:
        raw: Patch object with optional title, description, postId, capturedAt and location

    Returns:
        GalleryPatch: Parsed patch

    Raises:
        ValidationError: If the patch is malformed
    """
    if not isinstance(raw, dict):
        raise ValidationError("Patch must be an object", code="invalid_patch", user_message=BAD_REQUEST_MESSAGE)

    unknown = set(raw) - set(_TEXT_FIELDS) - {"capturedAt", "location"}
    if unknown:
        logger.warning("unknown_patch_fields_ignored", fields=sorted(unknown))

    patch = GalleryPatch()

    for key, column in _TEXT_FIELDS.items():
        field_patch = _parse_tri_state(key, raw.get(key))
        if field_patch is not None and field_patch.action is PatchAction.SET:
            field_patch = FieldPatch(PatchAction.SET, _clean_text(field_patch.value))
        setattr(patch, column, field_patch)

    captured_at = _parse_tri_state("capturedAt", raw.get("capturedAt"))
    if captured_at is not None and captured_at.action is PatchAction.SET:
        captured_at = FieldPatch(PatchAction.SET, _parse_captured_at(captured_at.value))
    patch.captured_at = captured_at

    location = _parse_tri_state("location", raw.get("location"))
    if location is not None and location.action is PatchAction.SET:
        location = FieldPatch(PatchAction.SET, _parse_location(location.value))
    patch.location = location

    return patch


def parse_ids(raw: Any) -> list[str]:
    """
    Validate a list of asset ids, dropping duplicates while keeping order.

    Raises:
        ValidationError: If the value is not a list of strings, or is empty
    """
    if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
        raise ValidationError("ids must be a list of strings", code="invalid_ids", user_message=BAD_REQUEST_MESSAGE)

    ids = list(dict.fromkeys(item.strip() for item in raw if item.strip()))
    if not ids:
        raise ValidationError("No ids selected", code="no_ids", user_message=NO_IDS_MESSAGE)
    return ids


@dataclass
class DeleteResult:
    """Outcome of deleting one asset."""

    id: str
    ok: bool
    blob_errors: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "ok": self.ok, "blobErrors": list(self.blob_errors)}
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class BulkDeleteReport:
    results: list[DeleteResult] = field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return sum(1 for result in self.results if result.ok)

    @property
    def message(self) -> str:
        return f"已删除 {self.deleted_count} 项"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "success",
            "message": self.message,
            "deletedCount": self.deleted_count,
            "results": [result.to_dict() for result in self.results],
        }


class GalleryBulkEditor:
    """Applies bulk updates and deletes to gallery assets."""

    def __init__(
        self,
        repository: GalleryRepository,
        storage_resolver: Callable[[str], StorageProvider] = get_storage_provider,
    ) -> None:
        self.repository = repository
        self.storage_resolver = storage_resolver

    def update(self, ids: list[str], patch: GalleryPatch) -> int:
        """
        Apply the same patch to every asset.

        Applying a patch twice leaves the same state as applying it once.

        Returns:
            int: Number of existing assets written
        """
        values = patch.to_values()
        if not values:
            logger.info("bulk_update_empty_patch", id_count=len(ids))
            return 0

        updated_count = 0
        for asset_id in ids:
            if self.repository.update_fields(asset_id, values):
                updated_count += 1

        invalidate_gallery_caches()
        logger.info("bulk_update_completed", id_count=len(ids), updated_count=updated_count, columns=sorted(values))
        return updated_count

    def delete(self, ids: list[str]) -> BulkDeleteReport:
        """
        Delete every existing asset and its stored objects.

        Blob deletion is best effort: paths that could not be removed are
        listed in ``blob_errors`` and the record is deleted regardless.
        Unknown ids are skipped.
        """
        report = BulkDeleteReport()

        for asset in self.repository.get_by_ids(ids):
            blob_errors = self._delete_blobs(asset)
            try:
                deleted = self.repository.delete(asset.id)
            except DatabaseError as e:
                report.results.append(DeleteResult(id=asset.id, ok=False, blob_errors=blob_errors, error=e.user_message))
                continue
            report.results.append(DeleteResult(id=asset.id, ok=deleted, blob_errors=blob_errors))

        invalidate_gallery_caches()
        logger.info(
            "bulk_delete_completed",
            id_count=len(ids),
            deleted_count=report.deleted_count,
            blob_error_count=sum(len(result.blob_errors) for result in report.results),
        )
        return report

    def _delete_blobs(self, asset: GalleryAsset) -> list[str]:
        """Delete every stored object of an asset; returns the paths that failed."""
        try:
            storage = self.storage_resolver(asset.storage_type)
        except StorageError:
            logger.warning("bulk_delete_storage_unavailable", asset_id=asset.id, storage_type=asset.storage_type)
            return asset.blob_paths()

        failed = []
        for path in asset.blob_paths():
            try:
                storage.delete(path)
            except StorageError as e:
                logger.warning("bulk_delete_blob_failed", asset_id=asset.id, path=path, error=str(e))
                failed.append(path)
        return failed


def get_bulk_editor() -> GalleryBulkEditor:
    """Build a bulk editor on the global repository."""
    return GalleryBulkEditor(get_gallery_repository())
