"""FastAPI application factory."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .. import __version__
from ..config import get_storage_type, get_upload_dir, get_upload_url_prefix
from ..errors import DatabaseError, ErrorCategory, GalleryError
from ..logging_config import configure_structured_logging, get_logger
from ..services.gallery_repository import get_gallery_repository
from .routes import router as gallery_router

logger = get_logger(__name__)

_STATUS_BY_CATEGORY = {
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.IMAGE_PROCESSING: 422,
}

# Credentials absent or unreadable, as opposed to a known non-admin
_UNAUTHENTICATED_CODES = {"missing_credentials", "invalid_credentials"}


def error_status_code(error: GalleryError) -> int:
    """HTTP status for a pipeline error."""
    if error.category is ErrorCategory.AUTHORIZATION:
        return 401 if error.code in _UNAUTHENTICATED_CODES else 403
    return _STATUS_BY_CATEGORY.get(error.category, 500)


async def gallery_error_handler(request: Request, exc: GalleryError) -> JSONResponse:
    status_code = error_status_code(exc)
    logger.info("request_failed", path=request.url.path, status_code=status_code, code=exc.code)
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": exc.user_message, "error": exc.user_message, "code": exc.code},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("request_malformed", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=400,
        content={"status": "error", "message": "缺少参数", "error": "缺少参数", "code": "bad_request"},
    )


def create_app() -> FastAPI:
    configure_structured_logging()

    app = FastAPI(title="Gallery Ingest API", version=__version__)

    app.add_exception_handler(GalleryError, gallery_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]

    app.include_router(gallery_router)

    # Local storage returns URL-prefix paths; serve them from the upload directory
    if get_storage_type() == "local":
        app.mount(
            get_upload_url_prefix().rstrip("/"),
            StaticFiles(directory=get_upload_dir(), check_dir=False),
            name="gallery-uploads",
        )

    @app.get("/health", summary="Liveness and database check")
    def health() -> JSONResponse:
        try:
            asset_count = get_gallery_repository().count()
        except (DatabaseError, RuntimeError) as e:
            logger.error("health_check_failed", error=str(e))
            return JSONResponse(status_code=503, content={"status": "unhealthy", "database": "error"})
        return JSONResponse(content={"status": "healthy", "database": "ok", "assetCount": asset_count})

    logger.info("api_created", version=__version__)
    return app
