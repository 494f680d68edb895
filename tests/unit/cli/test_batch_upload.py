"""
Unit tests for the command line tasks.
"""

from unittest.mock import MagicMock, patch

import pytest
from invoke import Context

from galleryingest.cli.batch_upload import bulk_upload, find_media_files, ingest_local, read_raw_files
from galleryingest.services.ingestion import IngestionOrchestrator
from tests.conftest import TestDataFactory


@pytest.fixture
def photo_dir(tmp_path):
    """Directory with a Live Photo pair, a still, an orphan video and an unrelated file."""
    directory = tmp_path / "photos"
    nested = directory / "nested"
    nested.mkdir(parents=True)
    (directory / "IMG_0001.JPG").write_bytes(TestDataFactory.create_test_image())
    (directory / "IMG_0001.MOV").write_bytes(b"video-bytes")
    (directory / "IMG_0002.png").write_bytes(TestDataFactory.create_test_image(image_format="PNG"))
    (directory / "clip.mp4").write_bytes(b"video-bytes")
    (directory / "notes.txt").write_text("not media")
    (nested / "IMG_0003.jpg").write_bytes(TestDataFactory.create_test_image())
    return directory


class FakeTransport:
    def send(self, request, on_progress, cancel_event):
        on_progress(100)
        return f"id-{request.image.name}"


class TestMediaDiscovery:
    """Test cases for find_media_files and read_raw_files."""

    def test_non_recursive(self, photo_dir):
        paths = find_media_files(str(photo_dir))

        assert [p.rsplit("/", 1)[-1] for p in paths] == ["IMG_0001.JPG", "IMG_0001.MOV", "IMG_0002.png", "clip.mp4"]

    def test_recursive(self, photo_dir):
        paths = find_media_files(str(photo_dir), recursive=True)

        assert any(p.endswith("nested/IMG_0003.jpg") for p in paths)
        assert not any(p.endswith("notes.txt") for p in paths)

    def test_read_raw_files(self, photo_dir):
        raw_files = read_raw_files([str(photo_dir / "IMG_0001.MOV")])

        assert raw_files[0].name == "IMG_0001.MOV"
        assert raw_files[0].data == b"video-bytes"


class TestBulkUploadTask:
    """Test cases for the bulk-upload task."""

    def setup_method(self):
        """Set up test fixtures."""
        self.context = MagicMock(spec=Context)

    def test_dry_run_lists_groups(self, photo_dir, tmp_path, capsys):
        bulk_upload(
            self.context,
            directory=str(photo_dir),
            endpoint="http://localhost/upload",
            env_file=str(tmp_path / "missing.env"),
            dry_run=True,
        )

        output = capsys.readouterr().out
        assert "img_0001: IMG_0001.JPG + IMG_0001.MOV [Live Photo]" in output
        assert "clip: (missing image) + clip.mp4" in output

    def test_upload_reports_summary(self, photo_dir, tmp_path, capsys):
        with patch("galleryingest.cli.batch_upload.HttpUploadTransport", return_value=FakeTransport()) as transport_cls:
            bulk_upload(
                self.context,
                directory=str(photo_dir),
                endpoint="http://localhost/upload",
                iap_token="token",
                env_file=str(tmp_path / "missing.env"),
            )

        output = capsys.readouterr().out
        assert "✓ img_0001 -> id-IMG_0001.JPG" in output
        assert "✗ clip: 缺少图片文件" in output
        assert "完成：成功 2，失败 1" in output
        assert transport_cls.call_args.kwargs["headers"] == {"X-Goog-IAP-JWT-Assertion": "token"}

    def test_missing_directory(self, tmp_path, capsys):
        bulk_upload(
            self.context,
            directory=str(tmp_path / "nowhere"),
            endpoint="http://localhost/upload",
            env_file=str(tmp_path / "missing.env"),
        )

        assert "Directory not found" in capsys.readouterr().out


class TestIngestLocalTask:
    """Test cases for the ingest-local task."""

    def test_ingests_directory(self, photo_dir, tmp_path, capsys, repository, local_storage, mock_geocoder):
        orchestrator = IngestionOrchestrator(local_storage, repository, geocoder=mock_geocoder)

        with patch("galleryingest.cli.batch_upload.get_ingestion_orchestrator", return_value=orchestrator):
            ingest_local(
                MagicMock(spec=Context),
                directory=str(photo_dir),
                title="Trip",
                env_file=str(tmp_path / "missing.env"),
            )

        output = capsys.readouterr().out
        assert "✗ clip: 缺少图片文件" in output
        assert "完成：成功 2，失败 1" in output
        assert {asset.title for asset in repository.list_recent()} == {"Trip"}
