"""
Gallery asset model.

This module contains the GalleryAsset dataclass that represents one
persisted gallery entry (a still image, optionally paired with a Live Photo video).
"""

import uuid
from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from enum import Enum


class AssetCategory(str, Enum):
    """Where a gallery asset comes from."""

    ORIGINAL = "ORIGINAL"
    REPOST = "REPOST"
    AI = "AI"


# Fields written together by one geocode result or one location patch
LOCATION_FIELDS = ("latitude", "longitude", "city", "country", "location_name")


@dataclass
class GalleryAsset:
    """
    Represents a gallery asset stored in DuckDB.

    Paths are public URLs as returned by the storage provider. Exactly three
    thumbnail renditions exist for every asset.
    """

    id: str
    file_path: str
    micro_thumb_path: str
    small_thumb_path: str
    medium_path: str
    storage_type: str
    title: str | None = None
    description: str | None = None
    post_id: str | None = None
    category: str = AssetCategory.ORIGINAL.value
    latitude: float | None = None
    longitude: float | None = None
    location_name: str | None = None
    city: str | None = None
    country: str | None = None
    live_photo_video_path: str | None = None
    is_live_photo: bool = False
    file_size: int | None = None
    width: int | None = None
    height: int | None = None
    mime_type: str | None = None
    captured_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def create_new(cls, **values) -> "GalleryAsset":
        """
        Create a new GalleryAsset with a generated id.

        ``is_live_photo`` is derived from ``live_photo_video_path`` and cannot be
        passed in. Text fields are stripped and blank strings stored as None.

        Returns:
            New GalleryAsset instance
        """
        values.pop("is_live_photo", None)
        for name in ("title", "description", "post_id", "location_name", "city", "country"):
            value = values.get(name)
            if isinstance(value, str):
                values[name] = value.strip() or None

        return cls(
            id=str(uuid.uuid4()),
            is_live_photo=bool(values.get("live_photo_video_path")),
            **values,
        )

    @classmethod
    def column_names(cls) -> list[str]:
        """Column order used for database rows."""
        return [f.name for f in fields(cls)]

    def to_dict(self) -> dict:
        """
        Convert GalleryAsset to a JSON-friendly dictionary.

        Returns:
            Dictionary representation with ISO formatted timestamps
        """
        data = {name: getattr(self, name) for name in self.column_names()}
        data["captured_at"] = self.captured_at.isoformat() if self.captured_at else None
        data["created_at"] = self.created_at.isoformat()
        return data

    def to_row(self) -> tuple:
        """Values in ``column_names()`` order for a parameterized insert."""
        return tuple(getattr(self, name) for name in self.column_names())

    @classmethod
    def from_dict(cls, data: dict) -> "GalleryAsset":
        """
        Create GalleryAsset from dictionary (e.g., from database).

        Args:
            data: Dictionary containing asset columns

        Returns:
            GalleryAsset instance
        """
        values = {name: data.get(name) for name in cls.column_names() if name in data}

        for name in ("captured_at", "created_at"):
            value = values.get(name)
            if isinstance(value, str):
                values[name] = datetime.fromisoformat(value)

        if values.get("created_at") is None:
            values.pop("created_at", None)
        values["is_live_photo"] = bool(values.get("is_live_photo"))

        return cls(**values)

    def thumbnail_paths(self) -> list[str]:
        """The three rendition paths, smallest first."""
        return [self.micro_thumb_path, self.small_thumb_path, self.medium_path]

    def blob_paths(self) -> list[str]:
        """Every stored object that belongs to this asset."""
        paths = [self.file_path, *self.thumbnail_paths()]
        if self.live_photo_video_path:
            paths.append(self.live_photo_video_path)
        return paths
