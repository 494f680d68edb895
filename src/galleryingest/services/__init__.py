"""
Services module for galleryingest.

This module contains the pipeline stages and their collaborators:
- group_files: Live Photo pairing of raw uploads
- MetadataExtractor: EXIF extraction
- ReverseGeocoder: best-effort coordinates to place names
- ImageProcessor: thumbnail renditions
- StorageProvider: local disk and Google Cloud Storage backends
- IngestionOrchestrator: per-group pipeline and batch report
- GalleryBulkEditor: tri-state bulk update and bulk delete
- AdminGuard: Cloud IAP administrator check
"""

from .auth import AdminGuard, UserInfo, get_admin_guard
from .bulk_edit import GalleryBulkEditor, GalleryPatch, get_bulk_editor, parse_ids, parse_patch
from .exif import ExtractedMetadata, MetadataExtractor, get_metadata_extractor
from .gallery_repository import GalleryRepository, get_gallery_repository
from .geocoding import GeocodeResult, ReverseGeocoder, get_reverse_geocoder
from .grouping import AssetGroup, RawFile, group_files
from .image_processor import ImageProcessor, ThumbnailSet, get_image_processor
from .ingestion import BatchReport, GroupResult, IngestDefaults, IngestionOrchestrator, get_ingestion_orchestrator
from .storage import GCSStorage, LocalStorage, StorageProvider, UploadItem, get_storage_provider

__all__ = [
    "AdminGuard",
    "UserInfo",
    "get_admin_guard",
    "GalleryBulkEditor",
    "GalleryPatch",
    "get_bulk_editor",
    "parse_ids",
    "parse_patch",
    "ExtractedMetadata",
    "MetadataExtractor",
    "get_metadata_extractor",
    "GalleryRepository",
    "get_gallery_repository",
    "GeocodeResult",
    "ReverseGeocoder",
    "get_reverse_geocoder",
    "AssetGroup",
    "RawFile",
    "group_files",
    "ImageProcessor",
    "ThumbnailSet",
    "get_image_processor",
    "BatchReport",
    "GroupResult",
    "IngestDefaults",
    "IngestionOrchestrator",
    "get_ingestion_orchestrator",
    "GCSStorage",
    "LocalStorage",
    "StorageProvider",
    "UploadItem",
    "get_storage_provider",
]
