"""
Database schema definitions for galleryingest.

This module contains the SQL schema for the gallery_assets table.
"""

from .asset import GalleryAsset

# SQL schema for the gallery_assets table
GALLERY_ASSETS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS gallery_assets (
    id TEXT PRIMARY KEY,
    file_path TEXT NOT NULL,
    micro_thumb_path TEXT NOT NULL,
    small_thumb_path TEXT NOT NULL,
    medium_path TEXT NOT NULL,
    storage_type TEXT NOT NULL,
    title TEXT,
    description TEXT,
    post_id TEXT,
    category TEXT NOT NULL DEFAULT 'ORIGINAL',
    latitude DOUBLE,
    longitude DOUBLE,
    location_name TEXT,
    city TEXT,
    country TEXT,
    live_photo_video_path TEXT,
    is_live_photo BOOLEAN NOT NULL DEFAULT FALSE,
    file_size BIGINT,
    width INTEGER,
    height INTEGER,
    mime_type TEXT,
    captured_at TIMESTAMP,
    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""

GALLERY_ASSETS_TABLE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_gallery_assets_created_at ON gallery_assets(created_at);",
]

ALL_SCHEMA_STATEMENTS = [GALLERY_ASSETS_TABLE_SCHEMA] + GALLERY_ASSETS_TABLE_INDEXES


def get_schema_statements() -> list[str]:
    """
    Get all database schema creation statements.

    Returns:
        List of SQL statements to create tables and indexes
    """
    return ALL_SCHEMA_STATEMENTS


def validate_schema_compatibility() -> bool:
    """
    Check that every GalleryAsset field has a column in the schema.

    Returns:
        True if schema is compatible, False otherwise
    """
    schema_lower = GALLERY_ASSETS_TABLE_SCHEMA.lower()
    return all(f"    {column} " in schema_lower for column in GalleryAsset.column_names())
