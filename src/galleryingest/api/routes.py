"""Admin gallery endpoints."""

from typing import Any

from fastapi import APIRouter, Body, Depends, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool

from ..errors import ValidationError
from ..logging_config import get_logger, log_user_action
from ..models.asset import AssetCategory, GalleryAsset
from ..services.auth import UserInfo, get_admin_guard
from ..services.bulk_edit import GalleryBulkEditor, get_bulk_editor, parse_ids, parse_patch
from ..services.exif import parse_exif_datetime
from ..services.grouping import RawFile
from ..services.ingestion import IngestDefaults, IngestionOrchestrator, get_ingestion_orchestrator

logger = get_logger(__name__)


def require_admin(request: Request) -> UserInfo:
    """Dependency rejecting every caller who is not a gallery administrator."""
    return get_admin_guard().require_admin(request.headers)


def get_orchestrator() -> IngestionOrchestrator:
    return get_ingestion_orchestrator()


def get_editor() -> GalleryBulkEditor:
    return get_bulk_editor()


router = APIRouter(prefix="/api/admin/gallery", tags=["gallery"])


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def asset_payload(asset: GalleryAsset) -> dict[str, Any]:
    """JSON shape of an asset: camelCase keys, ISO timestamps."""
    return {_camel(key): value for key, value in asset.to_dict().items()}


async def _read_upload(upload: UploadFile | None) -> RawFile | None:
    if upload is None or not upload.filename:
        return None
    return RawFile(name=upload.filename, data=await upload.read(), mime_type=upload.content_type or "")


def _parse_category(value: str | None) -> str:
    if not value:
        return AssetCategory.ORIGINAL.value
    try:
        return AssetCategory(value.strip().upper()).value
    except ValueError as e:
        raise ValidationError(f"Unknown category: {value!r}", code="invalid_category", user_message="分类无效") from e


@router.post("/bulk-upload", summary="Ingest a batch of images and Live Photo videos")
async def bulk_upload(
    user: UserInfo = Depends(require_admin),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
    files: list[UploadFile] = File(default=[]),
    title: str | None = Form(None),
    description: str | None = Form(None),
    post_id: str | None = Form(None, alias="postId"),
) -> dict[str, Any]:
    raw_files = [raw for raw in [await _read_upload(upload) for upload in files] if raw is not None]
    defaults = IngestDefaults(title=title, description=description, post_id=post_id)

    log_user_action(user.user_id, "bulk_upload", file_count=len(raw_files))
    report = await run_in_threadpool(orchestrator.process_batch, raw_files, defaults)
    return report.to_dict()


@router.post("/upload", summary="Ingest one image with an optional paired video")
async def upload_single(
    user: UserInfo = Depends(require_admin),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
    image: UploadFile | None = File(None),
    video: UploadFile | None = File(None),
    title: str | None = Form(None),
    description: str | None = Form(None),
    category: str | None = Form(None),
    post_id: str | None = Form(None, alias="postId"),
    captured_at_raw: str | None = Form(None, alias="capturedAt"),
) -> dict[str, Any]:
    captured_at = None
    if captured_at_raw and captured_at_raw.strip():
        captured_at = parse_exif_datetime(captured_at_raw)
        if captured_at is None:
            raise ValidationError(
                f"Invalid capturedAt value: {captured_at_raw!r}", code="invalid_captured_at", user_message="拍摄时间无效"
            )

    defaults = IngestDefaults(
        title=title,
        description=description,
        post_id=post_id,
        category=_parse_category(category),
        captured_at=captured_at,
    )
    image_file = await _read_upload(image)
    video_file = await _read_upload(video)

    log_user_action(user.user_id, "single_upload", filename=image_file.name if image_file else None)
    asset = await run_in_threadpool(orchestrator.ingest_single, image_file, video_file, defaults)
    return {"image": asset_payload(asset)}


@router.post("/bulk-update", summary="Apply a tri-state patch to several assets")
async def bulk_update(
    user: UserInfo = Depends(require_admin),
    editor: GalleryBulkEditor = Depends(get_editor),
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    ids = parse_ids(payload.get("ids"))
    patch = parse_patch(payload.get("patch"))

    log_user_action(user.user_id, "bulk_update", id_count=len(ids))
    updated_count = await run_in_threadpool(editor.update, ids, patch)
    return {"status": "success", "message": f"已更新 {updated_count} 项", "updatedCount": updated_count}


@router.post("/bulk-delete", summary="Delete several assets and their stored objects")
async def bulk_delete(
    user: UserInfo = Depends(require_admin),
    editor: GalleryBulkEditor = Depends(get_editor),
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    ids = parse_ids(payload.get("ids"))

    log_user_action(user.user_id, "bulk_delete", id_count=len(ids))
    report = await run_in_threadpool(editor.delete, ids)
    return report.to_dict()
