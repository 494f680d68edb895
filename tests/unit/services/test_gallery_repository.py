"""
Unit tests for the gallery asset repository.
"""

from datetime import UTC, datetime, timedelta, timezone
from unittest.mock import MagicMock

import duckdb
import pytest

from galleryingest.errors import DatabaseError
from galleryingest.services.gallery_repository import GalleryRepository, get_gallery_repository
from tests.conftest import TestDataFactory


class TestGalleryRepository:
    """Test cases for GalleryRepository."""

    def test_create_and_get_by_id(self, repository):
        asset = TestDataFactory.create_asset(
            latitude=35.0,
            longitude=139.0,
            city="Tokyo",
            live_photo_video_path="/api/uploads/gallery/abc.mov",
            captured_at=datetime(2024, 5, 1, 10, 0, 0),
        )

        repository.create(asset)
        loaded = repository.get_by_id(asset.id)

        assert loaded is not None
        assert loaded.id == asset.id
        assert loaded.title == "Sunset"
        assert loaded.city == "Tokyo"
        assert loaded.is_live_photo is True
        assert loaded.live_photo_video_path == "/api/uploads/gallery/abc.mov"
        assert loaded.captured_at == datetime(2024, 5, 1, 10, 0, 0)
        assert loaded.thumbnail_paths() == asset.thumbnail_paths()

    def test_aware_timestamps_are_stored_as_utc(self, repository):
        asset = TestDataFactory.create_asset(
            captured_at=datetime(2024, 5, 1, 18, 0, 0, tzinfo=timezone(timedelta(hours=8)))
        )

        repository.create(asset)

        assert repository.get_by_id(asset.id).captured_at == datetime(2024, 5, 1, 10, 0, 0)

    def test_get_by_id_missing(self, repository):
        assert repository.get_by_id("missing") is None

    def test_get_by_ids_ignores_unknown(self, repository):
        first = repository.create(TestDataFactory.create_asset())
        second = repository.create(TestDataFactory.create_asset())

        assets = repository.get_by_ids([first.id, "unknown", second.id])

        assert {asset.id for asset in assets} == {first.id, second.id}
        assert repository.get_by_ids([]) == []

    def test_update_fields(self, repository):
        asset = repository.create(TestDataFactory.create_asset())

        updated = repository.update_fields(asset.id, {"title": "New", "description": None, "city": "Kyoto"})

        assert updated is True
        loaded = repository.get_by_id(asset.id)
        assert loaded.title == "New"
        assert loaded.description is None
        assert loaded.city == "Kyoto"

    def test_update_missing_asset(self, repository):
        assert repository.update_fields("missing", {"title": "New"}) is False

    def test_update_rejects_unknown_columns(self, repository):
        asset = repository.create(TestDataFactory.create_asset())

        with pytest.raises(ValueError, match="cannot be updated"):
            repository.update_fields(asset.id, {"file_path": "/etc/passwd"})

    def test_update_with_no_values(self, repository):
        assert repository.update_fields("any", {}) is False

    def test_delete(self, repository):
        asset = repository.create(TestDataFactory.create_asset())

        assert repository.delete(asset.id) is True
        assert repository.get_by_id(asset.id) is None
        assert repository.delete(asset.id) is False

    def test_list_recent_and_count(self, repository):
        older = TestDataFactory.create_asset(title="old")
        older.created_at = datetime.now(UTC) - timedelta(days=1)
        newer = TestDataFactory.create_asset(title="new")
        repository.create(older)
        repository.create(newer)

        assets = repository.list_recent(limit=10)

        assert [asset.title for asset in assets] == ["new", "old"]
        assert repository.count() == 2

    def test_duplicate_id_raises_database_error(self, repository):
        asset = repository.create(TestDataFactory.create_asset())

        with pytest.raises(DatabaseError) as exc_info:
            repository.create(asset)

        assert exc_info.value.user_message == "保存记录失败"
        assert exc_info.value.code == "asset_save_failed"

    def test_query_failure_raises_database_error(self):
        db_manager = MagicMock()
        db_manager.execute_query.side_effect = duckdb.Error("broken")
        repository = GalleryRepository(db_manager)

        with pytest.raises(DatabaseError):
            repository.get_by_ids(["a"])

    def test_get_gallery_repository_uses_configured_path(self):
        repository = get_gallery_repository()

        assert repository is get_gallery_repository()
        assert repository.db_manager.db_path == ":memory:"
