"""
Error classification for galleryingest.

Every pipeline failure is raised as a GalleryError subclass carrying a stable
``code`` and a ``user_message`` that ends up in batch reports and API payloads.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from .logging_config import get_logger, log_error, log_security_event

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Error categories for classification and handling."""

    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    IMAGE_PROCESSING = "image_processing"
    GEOCODING = "geocoding"
    STORAGE = "storage"
    DATABASE = "database"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class GalleryError(Exception):
    """Base exception class for galleryingest."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        recoverable: bool = True,
        original_exception: Exception | None = None,
    ):
        super().__init__(message)
        self.category = category
        self.severity = severity
        self.code = code or f"{category.value}_error"
        self.user_message = user_message or self._generate_user_message()
        self.details = details or {}
        self.recoverable = recoverable
        self.original_exception = original_exception
        self.timestamp = datetime.now()

        self._log_error()

    def _generate_user_message(self) -> str:
        """Generate user-friendly error message."""
        user_messages = {
            ErrorCategory.AUTHORIZATION: "未授权",
            ErrorCategory.VALIDATION: "输入数据有误",
            ErrorCategory.IMAGE_PROCESSING: "图片处理失败",
            ErrorCategory.GEOCODING: "位置解析失败",
            ErrorCategory.STORAGE: "存储上传失败",
            ErrorCategory.DATABASE: "保存记录失败",
            ErrorCategory.UNKNOWN: "上传失败",
        }
        return user_messages.get(self.category, "上传失败")

    def _log_error(self) -> None:
        """Log the error with appropriate level."""
        error_context = {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "recoverable": self.recoverable,
            **self.details,
        }

        if self.original_exception:
            error_context["original_exception"] = str(self.original_exception)

        log_error(self, error_context)

        if self.category is ErrorCategory.AUTHORIZATION:
            log_security_event(self.category.value, context=error_context)


class AuthorizationError(GalleryError):
    """Caller is not an authenticated administrator."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.AUTHORIZATION,
            severity=ErrorSeverity.HIGH,
            code=code or "access_denied",
            user_message=user_message or "未授权",
            details=details,
            recoverable=False,
            original_exception=original_exception,
        )


class ValidationError(GalleryError):
    """Structurally invalid input: no files, a group without an image, bad patch."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            code=code or "validation_failed",
            user_message=user_message or "输入数据有误",
            details=details,
            recoverable=True,
            original_exception=original_exception,
        )


class ImageProcessingError(GalleryError):
    """Image processing-related errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.IMAGE_PROCESSING,
            severity=ErrorSeverity.MEDIUM,
            code=code or "image_processing_failed",
            user_message=user_message or "图片处理失败",
            details=details,
            recoverable=True,
            original_exception=original_exception,
        )


class DecodeError(ImageProcessingError):
    """Image bytes could not be decoded at all."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            code="cannot_decode_image",
            user_message="无法解析图片",
            details=details,
            original_exception=original_exception,
        )


class ThumbnailError(ImageProcessingError):
    """One of the thumbnail renditions could not be produced."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            code="thumbnail_generation_failed",
            user_message="缩略图生成失败",
            details=details,
            original_exception=original_exception,
        )


class GeocodeError(GalleryError):
    """Reverse geocoding failed. Never leaves the geocoder."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.GEOCODING,
            severity=ErrorSeverity.LOW,
            code="geocode_failed",
            details=details,
            recoverable=True,
            original_exception=original_exception,
        )


class StorageError(GalleryError):
    """Storage-related errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.STORAGE,
            severity=ErrorSeverity.HIGH,
            code=code or "storage_error",
            user_message=user_message or "存储上传失败",
            details=details,
            recoverable=True,
            original_exception=original_exception,
        )


class DatabaseError(GalleryError):
    """Database-related errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.DATABASE,
            severity=ErrorSeverity.HIGH,
            code=code or "database_error",
            user_message=user_message or "保存记录失败",
            details=details,
            recoverable=True,
            original_exception=original_exception,
        )
