"""SAFI FastAPI server — application factory.

Run with ``python -m safi`` or
``uvicorn safi.api.server:create_app --factory``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException

from safi import __version__
from safi.api.limits import BodySizeLimitMiddleware
from safi.api.routes.tracks import router as tracks_router
from safi.config import Settings, settings as default_settings
from safi.errors import TrackNotFoundError, UploadError, UploadTooLargeError
from safi.jobs.orchestrator import JobRunner, Separator
from safi.jobs.sweeper import RetentionSweeper
from safi.logging_setup import setup_logging
from safi.media.normalizer import AUDIO_EXTENSIONS, VIDEO_EXTENSIONS, MediaNormalizer
from safi.media.uploads import PUBLIC_PREFIX, UploadStorage
from safi.separation.client import SeparationClient
from safi.store.db import create_db_engine
from safi.store.tracks import TrackStore

logger = structlog.get_logger()


# ── Error rendering ──────────────────────────────────────
# Every error body is {"message": ...}


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


async def _http_error(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def _validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    detail = first.get("msg", "Invalid request")
    return _message(400, f"{field}: {detail}" if field else detail)


async def _not_found(_request: Request, exc: TrackNotFoundError) -> JSONResponse:
    return _message(404, "Track not found")


async def _upload_error(_request: Request, exc: UploadError) -> JSONResponse:
    status_code = 413 if isinstance(exc, UploadTooLargeError) else 400
    return _message(status_code, str(exc))


# ── Factory ──────────────────────────────────────────────


def create_app(
    config: Settings | None = None,
    separator: Separator | None = None,
) -> FastAPI:
    """Build the application and its collaborators.

    ``separator`` replaces the Replicate client (tests pass a fake).
    """
    config = config or default_settings
    setup_logging(json_logs=config.log_json)

    engine = create_db_engine(config.database_url)
    store = TrackStore(engine)
    uploads = UploadStorage(config.uploads_dir, config.max_upload_bytes)
    uploads.ensure_directory()
    normalizer = MediaNormalizer(
        ffmpeg_binary=config.ffmpeg_binary,
        timeout_s=config.ffmpeg_timeout_s,
        output_limit=config.ffmpeg_output_limit,
    )
    separation = separator or SeparationClient(
        api_token=config.replicate_api_token,
        model=config.replicate_model,
        timeout_s=config.separation_timeout_s,
    )
    jobs = JobRunner(store, normalizer, separation)
    sweeper = RetentionSweeper(
        config.uploads_dir,
        retention_s=config.retention_s,
        interval_s=config.sweep_interval_s,
    )

    if isinstance(separation, SeparationClient) and not separation.configured:
        # Uploads are still accepted; each job fails until a token is set
        logger.warning("server.missing_token", msg="REPLICATE_API_TOKEN not set")

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        sweeper.start()
        try:
            yield
        finally:
            await jobs.shutdown()
            await sweeper.stop()
            engine.dispose()

    app = FastAPI(
        title="SAFI",
        description="Split any song into vocals and instrumental.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.store = store
    app.state.uploads = uploads
    app.state.jobs = jobs
    app.state.sweeper = sweeper

    app.add_middleware(BodySizeLimitMiddleware, max_upload_mb=config.max_upload_mb)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(HTTPException, _http_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(TrackNotFoundError, _not_found)  # type: ignore[arg-type]
    app.add_exception_handler(UploadError, _upload_error)  # type: ignore[arg-type]

    app.include_router(tracks_router, prefix="/api")
    app.mount(PUBLIC_PREFIX, StaticFiles(directory=config.uploads_dir), name="uploads")

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "safi"}

    @app.get("/api/info")
    async def info() -> dict[str, object]:
        """Service capabilities and limits."""
        return {
            "name": "SAFI",
            "version": __version__,
            "formats": {
                "audio": list(AUDIO_EXTENSIONS),
                "video": list(VIDEO_EXTENSIONS),
            },
            "max_upload_mb": config.max_upload_mb,
            "separation_configured": getattr(separation, "configured", True),
            "active_jobs": jobs.active,
            "endpoints": {
                "list": "GET /api/tracks",
                "get": "GET /api/tracks/{id}",
                "upload": "POST /api/tracks",
                "delete": "DELETE /api/tracks/{id}",
                "media": f"GET {PUBLIC_PREFIX}/{{name}}",
            },
        }

    return app
