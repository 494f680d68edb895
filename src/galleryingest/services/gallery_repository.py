"""Persistence of gallery assets in DuckDB."""

from datetime import UTC, datetime
from typing import Any

from ..errors import DatabaseError
from ..logging_config import get_logger, log_error
from ..models.asset import GalleryAsset
from ..models.database import DatabaseManager, create_database

logger = get_logger(__name__)

# Columns a bulk update may touch
UPDATABLE_COLUMNS = frozenset(
    {
        "title",
        "description",
        "post_id",
        "category",
        "captured_at",
        "latitude",
        "longitude",
        "location_name",
        "city",
        "country",
    }
)


def _to_db_value(value: Any) -> Any:
    """DuckDB TIMESTAMP columns hold naive UTC."""
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value


class GalleryRepository:
    """
    Create, read, update and delete GalleryAsset records.

    Each operation is a single statement on the shared connection, so concurrent
    ingestion workers can create records independently.
    """

    def __init__(self, db_manager: DatabaseManager) -> None:
        self.db_manager = db_manager
        self._columns = GalleryAsset.column_names()

    def create(self, asset: GalleryAsset) -> GalleryAsset:
        """
        Insert a new asset.

        Raises:
            DatabaseError: If the insert fails
        """
        placeholders = ", ".join("?" for _ in self._columns)
        try:
            self.db_manager.execute_query(
                f"INSERT INTO gallery_assets ({', '.join(self._columns)}) VALUES ({placeholders})",  # nosec B608
                [_to_db_value(value) for value in asset.to_row()],
            )
        except Exception as e:
            log_error(e, {"operation": "create_gallery_asset", "asset_id": asset.id})
            raise DatabaseError(
                f"Failed to save gallery asset: {e}",
                code="asset_save_failed",
                details={"asset_id": asset.id},
                original_exception=e,
            ) from e

        logger.info("gallery_asset_created", asset_id=asset.id, is_live_photo=asset.is_live_photo)
        return asset

    def get_by_id(self, asset_id: str) -> GalleryAsset | None:
        """Get one asset, or None if it does not exist."""
        assets = self.get_by_ids([asset_id])
        return assets[0] if assets else None

    def get_by_ids(self, asset_ids: list[str]) -> list[GalleryAsset]:
        """
        Get every existing asset among ``asset_ids``. Unknown ids are ignored.

        Raises:
            DatabaseError: If the query fails
        """
        if not asset_ids:
            return []

        placeholders = ", ".join("?" for _ in asset_ids)
        try:
            rows = self.db_manager.execute_query(
                f"SELECT {', '.join(self._columns)} FROM gallery_assets WHERE id IN ({placeholders})",  # nosec B608
                list(asset_ids),
            )
        except Exception as e:
            log_error(e, {"operation": "get_gallery_assets", "count": len(asset_ids)})
            raise DatabaseError(f"Failed to load gallery assets: {e}", original_exception=e) from e

        return [self._row_to_asset(row) for row in rows]

    def list_recent(self, limit: int = 50, offset: int = 0) -> list[GalleryAsset]:
        """Newest assets first."""
        try:
            rows = self.db_manager.execute_query(
                f"SELECT {', '.join(self._columns)} FROM gallery_assets "  # nosec B608
                "ORDER BY created_at DESC LIMIT ? OFFSET ?",
                (limit, offset),
            )
        except Exception as e:
            log_error(e, {"operation": "list_gallery_assets", "limit": limit, "offset": offset})
            raise DatabaseError(f"Failed to list gallery assets: {e}", original_exception=e) from e

        return [self._row_to_asset(row) for row in rows]

    def count(self) -> int:
        """Total number of assets."""
        try:
            result = self.db_manager.execute_query("SELECT COUNT(*) FROM gallery_assets")
        except Exception as e:
            raise DatabaseError(f"Failed to count gallery assets: {e}", original_exception=e) from e
        return int(result[0][0]) if result else 0

    def update_fields(self, asset_id: str, values: dict[str, Any]) -> bool:
        """
        Overwrite the given columns of one asset.

        Args:
            asset_id: Asset to update
            values: Column name to new value; None clears the column

        Returns:
            True if the asset existed and was updated

        Raises:
            ValueError: If a column is not updatable
            DatabaseError: If the update fails
        """
        if not values:
            return False

        unknown = set(values) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Columns cannot be updated: {sorted(unknown)}")

        assignments = ", ".join(f"{column} = ?" for column in values)
        parameters = [_to_db_value(value) for value in values.values()] + [asset_id]
        try:
            rows = self.db_manager.execute_query(
                f"UPDATE gallery_assets SET {assignments} WHERE id = ? RETURNING id",  # nosec B608
                parameters,
            )
        except Exception as e:
            log_error(e, {"operation": "update_gallery_asset", "asset_id": asset_id})
            raise DatabaseError(
                f"Failed to update gallery asset: {e}",
                details={"asset_id": asset_id},
                original_exception=e,
            ) from e

        updated = bool(rows)
        if updated:
            logger.info("gallery_asset_updated", asset_id=asset_id, columns=sorted(values))
        else:
            logger.warning("gallery_asset_not_found_for_update", asset_id=asset_id)
        return updated

    def delete(self, asset_id: str) -> bool:
        """
        Delete one asset record.

        Returns:
            True if deleted, False if not found

        Raises:
            DatabaseError: If deletion fails
        """
        try:
            rows = self.db_manager.execute_query("DELETE FROM gallery_assets WHERE id = ? RETURNING id", (asset_id,))
        except Exception as e:
            log_error(e, {"operation": "delete_gallery_asset", "asset_id": asset_id})
            raise DatabaseError(
                f"Failed to delete gallery asset: {e}",
                details={"asset_id": asset_id},
                original_exception=e,
            ) from e

        deleted = bool(rows)
        if deleted:
            logger.info("gallery_asset_deleted", asset_id=asset_id)
        else:
            logger.warning("gallery_asset_not_found_for_delete", asset_id=asset_id)
        return deleted

    def _row_to_asset(self, row: tuple) -> GalleryAsset:
        return GalleryAsset.from_dict(dict(zip(self._columns, row, strict=True)))


_repository: GalleryRepository | None = None


def get_gallery_repository(db_path: str | None = None) -> GalleryRepository:
    """
    Get the global repository, creating the database on first use.

    Args:
        db_path: Database path (defaults to DATABASE_PATH configuration)
    """
    global _repository
    if _repository is None:
        from ..config import get_database_path

        _repository = GalleryRepository(create_database(db_path or get_database_path()))
    return _repository
