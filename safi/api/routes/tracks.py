"""API routes for tracks — upload, list, fetch, delete."""

from __future__ import annotations

import asyncio
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, Response, UploadFile
from sqlalchemy.exc import SQLAlchemyError

from safi.api.schemas import ErrorOut, TrackOut
from safi.jobs.orchestrator import JobRunner
from safi.media.uploads import UploadStorage
from safi.store.models import Track
from safi.store.tracks import TrackStore

logger = structlog.get_logger()

router = APIRouter(prefix="/tracks", tags=["tracks"])


def get_store(request: Request) -> TrackStore:
    return request.app.state.store


def get_uploads(request: Request) -> UploadStorage:
    return request.app.state.uploads


def get_jobs(request: Request) -> JobRunner:
    return request.app.state.jobs


StoreDep = Annotated[TrackStore, Depends(get_store)]
UploadsDep = Annotated[UploadStorage, Depends(get_uploads)]
JobsDep = Annotated[JobRunner, Depends(get_jobs)]


@router.get("", response_model=list[TrackOut])
async def list_tracks(store: StoreDep) -> list[Track]:
    """All tracks, oldest first."""
    return await asyncio.to_thread(store.list)


@router.get("/{track_id}", response_model=TrackOut, responses={404: {"model": ErrorOut}})
async def get_track(track_id: int, store: StoreDep) -> Track:
    return await asyncio.to_thread(store.get, track_id)


@router.post(
    "",
    status_code=201,
    response_model=TrackOut,
    responses={400: {"model": ErrorOut}, 413: {"model": ErrorOut}},
)
async def create_track(
    store: StoreDep,
    uploads: UploadsDep,
    jobs: JobsDep,
    file: Annotated[UploadFile | None, File()] = None,
    title: Annotated[str | None, Form()] = None,
) -> Track:
    """Upload a track and start separation.

    Responds as soon as the row exists; poll ``GET /api/tracks/{id}``
    until the status is ``completed`` or ``failed``.
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    display_title = (title or "").strip() or file.filename
    path = await uploads.save(file)

    try:
        track = await asyncio.to_thread(store.create, display_title, uploads.url_for(path))
    except SQLAlchemyError:
        logger.exception("tracks.create_failed", path=str(path))
        path.unlink(missing_ok=True)
        raise HTTPException(status_code=500, detail="Upload failed. Please try again") from None

    jobs.submit(track.id, path)
    logger.info("tracks.accepted", track_id=track.id, file=path.name)
    return track


@router.delete("/{track_id}", status_code=204, responses={404: {"model": ErrorOut}})
async def delete_track(track_id: int, store: StoreDep, uploads: UploadsDep) -> Response:
    """Delete a track and, best effort, its local files."""
    track = await asyncio.to_thread(store.get, track_id)
    await asyncio.to_thread(store.delete, track_id)
    removed = await asyncio.to_thread(uploads.remove_for, track.original_url)
    logger.info("tracks.deleted", track_id=track_id, files_removed=len(removed))
    return Response(status_code=204)
