"""
galleryingest - Gallery bulk-ingestion pipeline

Turns batches of uploaded image/video files into gallery assets:
- Live Photo pairing of same-named image and video files
- EXIF metadata extraction and best-effort reverse geocoding
- Three-tier WebP thumbnail generation
- Local disk or Google Cloud Storage persistence
- Partial-failure tolerant batch reports
"""

__version__ = "0.1.0"
__author__ = "galleryingest"
__description__ = "Gallery bulk-ingestion pipeline for a personal content site"
