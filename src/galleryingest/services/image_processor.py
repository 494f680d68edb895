"""Thumbnail rendition generation for gallery images."""

import io
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePath

from PIL import Image, ImageOps

from ..config import get_env
from ..errors import ThumbnailError
from ..logging_config import get_logger, log_error, log_performance

try:
    from pillow_heif import register_heif_opener  # type: ignore[import-untyped]

    register_heif_opener()
    HEIF_AVAILABLE = True
except ImportError:
    HEIF_AVAILABLE = False

logger = get_logger(__name__)

THUMBNAIL_MIME_TYPE = "image/webp"
THUMBNAIL_EXTENSION = ".webp"


@dataclass
class ThumbnailSet:
    """The three WebP renditions of one original."""

    micro: bytes
    small: bytes
    medium: bytes

    def items(self) -> list[tuple[str, bytes]]:
        """(size name, data) pairs, smallest first."""
        return [("micro", self.micro), ("small", self.small), ("medium", self.medium)]


def get_thumbnail_filename(filename: str, size: str) -> str:
    """
    Storage filename of a rendition: ``abc.heic`` + ``small`` -> ``abc_small.webp``.
    """
    return f"{PurePath(filename).stem}_{size}{THUMBNAIL_EXTENSION}"


class ImageProcessor:
    """Service for deriving fixed-size thumbnail renditions."""

    # Longer-edge targets in pixels
    THUMBNAIL_SIZES = {
        "micro": 40,
        "small": 400,
        "medium": 1200,
    }

    def __init__(self) -> None:
        """Initialize the image processor."""
        self.THUMBNAIL_QUALITY = int(get_env("THUMBNAIL_QUALITY", 82, int))

        if not HEIF_AVAILABLE:
            logger.warning("heif_support_unavailable", message="Install pillow-heif for HEIC support")

    def generate(self, image_data: bytes) -> ThumbnailSet:
        """
        Generate the micro, small and medium renditions of an image.

        The image is decoded once with its EXIF orientation applied; each
        rendition is resized from that decoded copy.

        Args:
            image_data: Raw image data as bytes

        Returns:
            ThumbnailSet: All three renditions

        Raises:
            ThumbnailError: If any rendition cannot be produced
        """
        start_time = datetime.now()

        try:
            with Image.open(io.BytesIO(image_data)) as opened:
                image = ImageOps.exif_transpose(opened)
                image = self._to_encodable_mode(image)

                renditions = {
                    name: self._render(image, max_edge) for name, max_edge in self.THUMBNAIL_SIZES.items()
                }
                original_size = image.size

        except Exception as e:
            log_error(e, {"operation": "generate_thumbnails", "original_file_size": len(image_data)})
            raise ThumbnailError(
                f"Failed to generate thumbnails: {e}",
                details={"original_file_size": len(image_data), "operation": "generate_thumbnails"},
                original_exception=e,
            ) from e

        thumbnails = ThumbnailSet(**renditions)

        duration = (datetime.now() - start_time).total_seconds()
        log_performance(
            "generate_thumbnails",
            duration,
            original_size=original_size,
            original_file_size=len(image_data),
            rendition_sizes={name: len(data) for name, data in thumbnails.items()},
            quality=self.THUMBNAIL_QUALITY,
        )
        return thumbnails

    def _render(self, image: Image.Image, max_edge: int) -> bytes:
        target_size = self.calculate_thumbnail_size(image.size, max_edge)
        resized = image if target_size == image.size else image.resize(target_size, Image.Resampling.LANCZOS)

        buffer = io.BytesIO()
        resized.save(buffer, format="WEBP", quality=self.THUMBNAIL_QUALITY, method=4)
        return buffer.getvalue()

    @staticmethod
    def _to_encodable_mode(image: Image.Image) -> Image.Image:
        """WebP takes RGB or RGBA; everything else is converted."""
        if image.mode in ("RGB", "RGBA"):
            return image
        if image.mode in ("LA", "PA") or (image.mode == "P" and "transparency" in image.info):
            return image.convert("RGBA")
        return image.convert("RGB")

    @staticmethod
    def calculate_thumbnail_size(original_size: tuple[int, int], max_edge: int) -> tuple[int, int]:
        """
        Calculate a rendition size preserving aspect ratio.

        The longer edge is clamped to ``max_edge``; images already within the
        bound keep their size. The shorter edge never drops below 1px.

        Args:
            original_size: Original image size as (width, height)
            max_edge: Maximum length of the longer edge

        Returns:
            tuple: Rendition size as (width, height)
        """
        width, height = original_size
        longer = max(width, height)
        if longer <= max_edge:
            return (width, height)

        scale = max_edge / longer
        if width >= height:
            return (max_edge, max(1, round(height * scale)))
        return (max(1, round(width * scale)), max_edge)


def get_image_processor() -> ImageProcessor:
    """
    Get a new image processor instance.

    Returns:
        ImageProcessor: Processor configured from the current environment
    """
    return ImageProcessor()
