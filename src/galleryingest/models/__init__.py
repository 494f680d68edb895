"""
Models module for galleryingest.

This module contains data models and schemas:
- GalleryAsset: Data class for a persisted gallery asset
- Database schemas and table definitions
- DatabaseManager: Database connection and schema management
"""

from .asset import LOCATION_FIELDS, AssetCategory, GalleryAsset
from .database import DatabaseManager, create_database
from .schema import get_schema_statements, validate_schema_compatibility

__all__ = [
    "AssetCategory",
    "GalleryAsset",
    "LOCATION_FIELDS",
    "DatabaseManager",
    "create_database",
    "get_schema_statements",
    "validate_schema_compatibility",
]
