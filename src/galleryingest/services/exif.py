"""EXIF metadata extraction for gallery images."""

import io
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from PIL import ExifTags, Image

from ..errors import DecodeError
from ..logging_config import get_logger, log_performance
from .image_processor import HEIF_AVAILABLE  # noqa: F401  (registers the HEIF opener)

logger = get_logger(__name__)

# Orientation values that rotate the image by 90 or 270 degrees
_TRANSPOSING_ORIENTATIONS = {5, 6, 7, 8}

# Capture time tags in priority order, with their timezone offset companions
_DATE_TAGS = [
    (ExifTags.Base.DateTimeOriginal, ExifTags.Base.OffsetTimeOriginal),
    (ExifTags.Base.DateTimeDigitized, ExifTags.Base.OffsetTimeDigitized),
    (ExifTags.Base.DateTime, ExifTags.Base.OffsetTime),
]


@dataclass
class ExtractedMetadata:
    """Best-effort metadata of one image. Every field except the size may be None."""

    width: int
    height: int
    captured_at: datetime | None = None
    latitude: float | None = None
    longitude: float | None = None
    camera: str | None = None
    lens: str | None = None
    aperture: float | None = None
    iso: int | None = None
    shutter: str | None = None

    @property
    def has_gps(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["captured_at"] = self.captured_at.isoformat() if self.captured_at else None
        return data


class MetadataExtractor:
    """Reads dimensions, capture time, GPS and camera settings from image bytes."""

    def extract(self, image_data: bytes) -> ExtractedMetadata:
        """
        Extract metadata from an image.

        Missing or corrupt EXIF never raises; the affected fields stay None.

        Args:
            image_data: Raw image data as bytes

        Returns:
            ExtractedMetadata: Decoded size plus whatever EXIF could be read

        Raises:
            DecodeError: If the bytes are not a decodable image
        """
        start_time = datetime.now()

        try:
            image = Image.open(io.BytesIO(image_data))
            width, height = image.size
        except Exception as e:
            raise DecodeError(
                f"Cannot decode image: {e}",
                details={"file_size": len(image_data), "operation": "extract_metadata"},
                original_exception=e,
            ) from e

        with image:
            try:
                exif = image.getexif()
            except Exception as e:
                logger.warning("exif_read_failed", error=str(e))
                exif = Image.Exif()

            if self._orientation(exif) in _TRANSPOSING_ORIENTATIONS:
                width, height = height, width

            metadata = ExtractedMetadata(width=width, height=height)
            if exif:
                self._fill_from_exif(metadata, exif)

        duration = (datetime.now() - start_time).total_seconds()
        log_performance(
            "extract_metadata",
            duration,
            width=metadata.width,
            height=metadata.height,
            has_gps=metadata.has_gps,
            has_capture_time=metadata.captured_at is not None,
        )
        return metadata

    def _fill_from_exif(self, metadata: ExtractedMetadata, exif: Image.Exif) -> None:
        """Each group of tags is read independently so one bad tag only loses its own fields."""
        exif_ifd = self._safe_ifd(exif, ExifTags.IFD.Exif)
        gps_ifd = self._safe_ifd(exif, ExifTags.IFD.GPSInfo)

        readers = [
            ("captured_at", lambda: self._capture_time(exif, exif_ifd)),
            ("gps", lambda: self._gps(gps_ifd)),
            ("camera", lambda: self._camera(exif)),
            ("lens", lambda: self._text(exif_ifd.get(ExifTags.Base.LensModel))),
            ("aperture", lambda: self._aperture(exif_ifd.get(ExifTags.Base.FNumber))),
            ("iso", lambda: self._iso(exif_ifd.get(ExifTags.Base.ISOSpeedRatings))),
            ("shutter", lambda: self._shutter(exif_ifd.get(ExifTags.Base.ExposureTime))),
        ]

        for field_name, reader in readers:
            try:
                value = reader()
            except Exception as e:
                logger.debug("exif_field_unreadable", field=field_name, error=str(e))
                continue

            if field_name == "gps":
                if value is not None:
                    metadata.latitude, metadata.longitude = value
            else:
                setattr(metadata, field_name, value)

    @staticmethod
    def _safe_ifd(exif: Image.Exif, ifd: ExifTags.IFD) -> dict:
        try:
            return dict(exif.get_ifd(ifd))
        except Exception as e:
            logger.debug("exif_ifd_unreadable", ifd=ifd.name, error=str(e))
            return {}

    @staticmethod
    def _orientation(exif: Image.Exif) -> int | None:
        try:
            value = exif.get(ExifTags.Base.Orientation)
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    def _capture_time(self, exif: Image.Exif, exif_ifd: dict) -> datetime | None:
        for date_tag, offset_tag in _DATE_TAGS:
            raw = exif_ifd.get(date_tag) or exif.get(date_tag)
            captured_at = parse_exif_datetime(raw)
            if captured_at is None:
                continue

            offset = parse_exif_offset(exif_ifd.get(offset_tag) or exif.get(offset_tag))
            if offset is not None and captured_at.tzinfo is None:
                captured_at = captured_at.replace(tzinfo=offset)
            return captured_at

        return None

    def _gps(self, gps_ifd: dict) -> tuple[float, float] | None:
        latitude = dms_to_decimal(
            gps_ifd.get(ExifTags.GPS.GPSLatitude), gps_ifd.get(ExifTags.GPS.GPSLatitudeRef)
        )
        longitude = dms_to_decimal(
            gps_ifd.get(ExifTags.GPS.GPSLongitude), gps_ifd.get(ExifTags.GPS.GPSLongitudeRef)
        )

        if latitude is None or longitude is None:
            return None
        if not (-90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0):
            logger.debug("gps_out_of_range", latitude=latitude, longitude=longitude)
            return None
        return latitude, longitude

    def _camera(self, exif: Image.Exif) -> str | None:
        make = self._text(exif.get(ExifTags.Base.Make))
        model = self._text(exif.get(ExifTags.Base.Model))

        if make and model:
            if model.lower().startswith(make.lower()):
                return model
            return f"{make} {model}"
        return model or make

    @staticmethod
    def _text(value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="ignore")
        text = str(value).replace("\x00", "").strip()
        return text or None

    @staticmethod
    def _aperture(value: Any) -> float | None:
        number = _to_float(value)
        return round(number, 1) if number else None

    @staticmethod
    def _iso(value: Any) -> int | None:
        if isinstance(value, (tuple, list)):
            value = value[0] if value else None
        number = _to_float(value)
        return int(number) if number else None

    @staticmethod
    def _shutter(value: Any) -> str | None:
        seconds = _to_float(value)
        if not seconds or seconds <= 0:
            return None
        if seconds >= 1:
            return f"{seconds:g}s"
        return f"1/{round(1 / seconds)}"


def _to_float(value: Any) -> float | None:
    """Convert an EXIF number or rational to float; None for missing or NaN values."""
    if value is None:
        return None
    try:
        if isinstance(value, tuple) and len(value) == 2:
            numerator, denominator = value
            if not denominator:
                return None
            number = float(numerator) / float(denominator)
        else:
            number = float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    return number if math.isfinite(number) else None


def dms_to_decimal(dms: Any, ref: Any) -> float | None:
    """
    Convert EXIF degrees/minutes/seconds plus hemisphere reference to decimal degrees.

    Args:
        dms: Sequence of up to three rationals (degrees, minutes, seconds)
        ref: "N", "S", "E" or "W" (str or bytes)

    Returns:
        float: Signed decimal degrees, or None if the value is unusable
    """
    if dms is None:
        return None
    if not isinstance(dms, (tuple, list)):
        dms = (dms,)
    if not dms:
        return None

    parts = [_to_float(part) for part in dms[:3]]
    if any(part is None for part in parts):
        return None

    degrees, minutes, seconds = (parts + [0.0, 0.0])[:3]
    decimal = degrees + minutes / 60.0 + seconds / 3600.0

    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    if isinstance(ref, str) and ref.strip().upper() in ("S", "W"):
        decimal = -decimal

    return round(decimal, 7)


def parse_exif_datetime(value: Any) -> datetime | None:
    """
    Parse an EXIF timestamp ("YYYY:MM:DD HH:MM:SS") or an ISO 8601 string.

    Returns:
        datetime: Parsed value, or None if absent or malformed
    """
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")

    text = str(value).replace("\x00", "").strip()
    if not text:
        return None

    try:
        return datetime.strptime(text[:19], "%Y:%m:%d %H:%M:%S")
    except ValueError:
        pass

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("exif_date_parse_failed", date_string=text)
        return None


def parse_exif_offset(value: Any) -> timezone | None:
    """Parse an EXIF OffsetTime value such as "+08:00"."""
    if not value:
        return None
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")

    text = str(value).replace("\x00", "").strip()
    if len(text) != 6 or text[0] not in "+-" or text[3] != ":":
        return None

    try:
        hours, minutes = int(text[1:3]), int(text[4:6])
    except ValueError:
        return None

    sign = -1 if text[0] == "-" else 1
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


metadata_extractor = MetadataExtractor()


def get_metadata_extractor() -> MetadataExtractor:
    """Get the global metadata extractor instance."""
    return metadata_extractor
