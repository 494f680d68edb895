"""
Command line tasks for bulk gallery ingestion.

Usage:
    galleryingest bulk-upload --directory ./photos --endpoint http://localhost:8000/api/admin/gallery/upload
    galleryingest ingest-local --directory ./photos --title "Trip"
    galleryingest serve --port 8000
"""

import os

from dotenv import load_dotenv
from invoke import Collection, Context, Program, task

from .. import __version__
from ..client import HttpUploadTransport, LeaveGuard, UploadScheduler
from ..client.scheduler import QueueItem
from ..client.state import Cancelled, Done, Error
from ..errors import ValidationError
from ..logging_config import configure_structured_logging, get_logger
from ..services.grouping import IMAGE_EXTENSIONS, VIDEO_EXTENSIONS, RawFile, group_files
from ..services.ingestion import IngestDefaults, get_ingestion_orchestrator

logger = get_logger(__name__)

SUPPORTED_EXTENSIONS = IMAGE_EXTENSIONS | VIDEO_EXTENSIONS
IAP_HEADER_NAME = "X-Goog-IAP-JWT-Assertion"


def _load_environment(env_file: str) -> None:
    if os.path.exists(env_file):
        load_dotenv(dotenv_path=env_file)
        logger.info("environment_loaded", env_file=env_file)
    else:
        logger.warning("environment_file_not_found", env_file=env_file)
    configure_structured_logging()


def find_media_files(directory: str, recursive: bool = False) -> list[str]:
    """Paths of supported image and video files, sorted for a stable pairing order."""
    paths = []
    if recursive:
        for root, _, files in os.walk(directory):
            for name in files:
                if os.path.splitext(name)[1].lower() in SUPPORTED_EXTENSIONS:
                    paths.append(os.path.join(root, name))
    else:
        for name in os.listdir(directory):
            path = os.path.join(directory, name)
            if os.path.isfile(path) and os.path.splitext(name)[1].lower() in SUPPORTED_EXTENSIONS:
                paths.append(path)
    return sorted(paths)


def read_raw_files(paths: list[str]) -> list[RawFile]:
    raw_files = []
    for path in paths:
        with open(path, "rb") as f:
            raw_files.append(RawFile(name=os.path.basename(path), data=f.read()))
    return raw_files


def _print_dry_run(raw_files: list[RawFile]) -> None:
    print("\n--- Dry Run Mode: Groups to be processed ---")
    for group in group_files(raw_files):
        image = group.image.name if group.image else "(missing image)"
        video = f" + {group.video.name}" if group.video else ""
        marker = " [Live Photo]" if group.is_live_photo else ""
        print(f"- {group.key}: {image}{video}{marker}")
    print("--- End of Dry Run ---")


def _collect(directory: str, recursive: bool) -> list[RawFile] | None:
    if not os.path.isdir(directory):
        logger.error("directory_not_found", directory=directory)
        print(f"Directory not found: {directory}")
        return None

    paths = find_media_files(directory, recursive)
    if not paths:
        logger.warning("no_media_files_found", directory=directory)
        print("No image or video files found to process.")
        return None

    logger.info("media_files_found", directory=directory, count=len(paths))
    return read_raw_files(paths)


def _report_item(index: int, item: QueueItem) -> None:
    state = item.state
    if isinstance(state, Done):
        print(f"  ✓ {item.key} -> {state.asset_id}")
    elif isinstance(state, Error):
        print(f"  ✗ {item.key}: {state.message}")
    elif isinstance(state, Cancelled):
        print(f"  - {item.key}: cancelled")


@task(
    help={
        "directory": "Directory containing images and Live Photo videos",
        "endpoint": "URL of the per-item upload endpoint",
        "concurrency": "Number of uploads in flight (default 3)",
        "iap_token": "Value of the IAP assertion header sent with every request",
    }
)
def bulk_upload(
    c: Context,
    directory: str,
    endpoint: str,
    concurrency: int = 3,
    title: str = "",
    description: str = "",
    category: str = "",
    post_id: str = "",
    iap_token: str = "",
    env_file: str = ".env",
    recursive: bool = False,
    dry_run: bool = False,
):
    """
    Upload a local directory through the per-item endpoint with bounded concurrency.
    """
    _load_environment(env_file)

    raw_files = _collect(directory, recursive)
    if raw_files is None:
        return

    if dry_run:
        _print_dry_run(raw_files)
        return

    headers = {IAP_HEADER_NAME: iap_token} if iap_token else {}
    scheduler = UploadScheduler(
        HttpUploadTransport(endpoint, headers=headers), concurrency=concurrency, on_change=_report_item
    )
    fields = {"title": title, "description": description, "category": category, "postId": post_id}
    skipped = scheduler.add_groups(group_files(raw_files), fields)
    for group in skipped:
        print(f"  ✗ {group.key}: 缺少图片文件")

    logger.info("bulk_upload_started", endpoint=endpoint, items=len(scheduler.items), concurrency=concurrency)
    with LeaveGuard(scheduler.is_uploading, on_leave=scheduler.cancel_all):
        states = scheduler.run()

    ok_count = sum(isinstance(state, Done) for state in states)
    fail_count = len(states) - ok_count + len(skipped)
    logger.info("bulk_upload_finished", successful=ok_count, failed=fail_count)
    print(f"\n完成：成功 {ok_count}，失败 {fail_count}")


@task(help={"directory": "Directory containing images and Live Photo videos"})
def ingest_local(
    c: Context,
    directory: str,
    title: str = "",
    description: str = "",
    post_id: str = "",
    env_file: str = ".env",
    recursive: bool = False,
    dry_run: bool = False,
):
    """
    Ingest a local directory in-process, writing straight to the configured storage and database.
    """
    _load_environment(env_file)

    raw_files = _collect(directory, recursive)
    if raw_files is None:
        return

    if dry_run:
        _print_dry_run(raw_files)
        return

    defaults = IngestDefaults(title=title or None, description=description or None, post_id=post_id or None)
    try:
        report = get_ingestion_orchestrator().process_batch(raw_files, defaults)
    except ValidationError as e:
        print(e.user_message)
        return

    for result in report.failures():
        print(f"  ✗ {result.key}: {result.error}")
    print(f"\n{report.message}")


@task
def serve(c: Context, host: str = "127.0.0.1", port: int = 8000, reload: bool = False, env_file: str = ".env"):
    """Run the admin API with uvicorn."""
    import uvicorn

    _load_environment(env_file)
    uvicorn.run("galleryingest.api.app:create_app", factory=True, host=host, port=port, reload=reload)


namespace = Collection(bulk_upload, ingest_local, serve)
program = Program(namespace=namespace, version=__version__)
