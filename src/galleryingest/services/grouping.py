"""
Grouping of raw uploaded files into asset groups.

Files sharing a basename (case-insensitive, extension stripped) form one
group: ``IMG_1.HEIC`` and ``img_1.mov`` both land under ``img_1`` and become a
Live Photo. Both the bulk endpoint and the per-item client path group through
``group_files``.
"""

import mimetypes
from dataclasses import dataclass
from pathlib import PurePath

from ..logging_config import get_logger

logger = get_logger(__name__)

IMAGE_EXTENSIONS = frozenset({".heic", ".heif", ".jpg", ".jpeg", ".png", ".webp", ".gif"})
VIDEO_EXTENSIONS = frozenset({".mov", ".mp4"})

_EXTENSION_MIME_TYPES = {
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".mov": "video/quicktime",
    ".mp4": "video/mp4",
}


@dataclass(frozen=True)
class RawFile:
    """One uploaded file as supplied by the caller."""

    name: str
    data: bytes
    mime_type: str = ""

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        """Lower-cased extension including the dot, or "" if there is none."""
        return PurePath(self.name).suffix.lower()

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/") or self.extension in IMAGE_EXTENSIONS

    @property
    def is_video(self) -> bool:
        return self.mime_type.startswith("video/") or self.extension in VIDEO_EXTENSIONS

    def resolved_mime_type(self, fallback: str = "application/octet-stream") -> str:
        """The declared MIME type, else one guessed from the extension."""
        if self.mime_type:
            return self.mime_type
        return _EXTENSION_MIME_TYPES.get(self.extension) or mimetypes.guess_type(self.name)[0] or fallback


@dataclass
class AssetGroup:
    """The unit of ingestion: one basename's image and optional paired video."""

    key: str
    image: RawFile | None = None
    video: RawFile | None = None

    @property
    def is_live_photo(self) -> bool:
        return self.image is not None and self.video is not None


def group_key(filename: str) -> str:
    """
    Normalized basename used to pair files.

    Only the last extension is stripped, and only when the name has a stem:
    ``"a.b.jpg"`` -> ``"a.b"``, ``".hidden"`` -> ``".hidden"``.
    """
    name = PurePath(filename).name
    dot = name.rfind(".")
    if dot > 0:
        name = name[:dot]
    return name.lower()


def group_files(files: list[RawFile]) -> list[AssetGroup]:
    """
    Group raw files by basename, keeping the first image and first video per key.

    Later same-type duplicates under a key are dropped. Groups come back in the
    order their key first appeared. A group without an image is returned as-is;
    rejecting it is the orchestrator's job.

    Args:
        files: Flat list of uploaded files

    Returns:
        list[AssetGroup]: One group per distinct key
    """
    groups: dict[str, AssetGroup] = {}

    for raw_file in files:
        key = group_key(raw_file.name)
        group = groups.setdefault(key, AssetGroup(key=key))

        if raw_file.is_image:
            if group.image is None:
                group.image = raw_file
            else:
                logger.debug("duplicate_image_dropped", key=key, kept=group.image.name, dropped=raw_file.name)
        elif raw_file.is_video:
            if group.video is None:
                group.video = raw_file
            else:
                logger.debug("duplicate_video_dropped", key=key, kept=group.video.name, dropped=raw_file.name)
        else:
            logger.debug("unsupported_file_ignored", key=key, filename=raw_file.name, mime_type=raw_file.mime_type)

    logger.info(
        "files_grouped",
        file_count=len(files),
        group_count=len(groups),
        live_photo_count=sum(1 for group in groups.values() if group.is_live_photo),
    )
    return list(groups.values())
