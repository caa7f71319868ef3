"""Job orchestrator — per-upload pipeline.

processing → completed | failed. Each job is one detached asyncio task:
normalize → separate → persist. The row is written exactly once, with
the terminal state; nothing in between is persisted.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Protocol

import structlog

from safi.errors import (
    InvalidTransitionError,
    SeparationError,
    TrackNotFoundError,
    UnsupportedFormatError,
)
from safi.media.normalizer import MediaNormalizer, classify, extension_of, needs_conversion
from safi.separation.output import SeparationOutput
from safi.store.models import TrackStatus
from safi.store.tracks import TrackStore

logger = structlog.get_logger()

FAILURE_MESSAGE = "Processing failed. Please try again"


class Separator(Protocol):
    async def separate(self, audio_path: Path) -> SeparationOutput: ...


class JobRunner:
    """Spawns and tracks separation jobs."""

    def __init__(
        self,
        store: TrackStore,
        normalizer: MediaNormalizer,
        separator: Separator,
    ) -> None:
        self.store = store
        self.normalizer = normalizer
        self.separator = separator
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def active(self) -> int:
        return len(self._tasks)

    def submit(self, track_id: int, upload_path: Path) -> asyncio.Task[None]:
        """Start the job in the background and return its handle."""
        task = asyncio.create_task(
            self.process(track_id, Path(upload_path)), name=f"track-{track_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_all(self) -> None:
        """Wait for every in-flight job to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel in-flight jobs; their tracks stay in ``processing``."""
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def process(self, track_id: int, upload_path: Path) -> None:
        log = logger.bind(track_id=track_id)
        try:
            output = await self._run_pipeline(upload_path, log)
        except (SeparationError, UnsupportedFormatError) as e:
            log.error("job.failed", error=str(e), error_type=type(e).__name__)
            await self._fail(track_id, log, getattr(e, "prediction_id", None))
            return
        except Exception:
            log.exception("job.crashed")
            await self._fail(track_id, log, None)
            return

        await self._finish(
            track_id,
            log,
            status=TrackStatus.COMPLETED,
            vocals_url=output.vocals_url,
            instrumental_url=output.instrumental_url,
            replicate_id=output.prediction_id,
        )
        log.info("job.completed", has_instrumental=output.instrumental_url is not None)

    async def _run_pipeline(self, upload_path: Path, log: Any) -> SeparationOutput:
        extension = extension_of(upload_path)
        kind = classify(extension)
        log.info("job.started", path=str(upload_path), kind=kind)

        audio_path = upload_path
        if needs_conversion(extension):
            audio_path = await self.normalizer.normalize(upload_path)

        return await self.separator.separate(audio_path)

    async def _fail(self, track_id: int, log: Any, prediction_id: str | None) -> None:
        # Provider detail stays in the logs; the row only gets the generic message
        await self._finish(
            track_id,
            log,
            status=TrackStatus.FAILED,
            error=FAILURE_MESSAGE,
            replicate_id=prediction_id,
        )

    async def _finish(self, track_id: int, log: Any, **fields: object) -> None:
        try:
            await asyncio.to_thread(self.store.update, track_id, **fields)
        except TrackNotFoundError:
            log.info("job.track_deleted")
        except InvalidTransitionError as e:
            log.warning("job.stale_update", error=str(e))
        except Exception:
            # Row stays in processing; nothing else can record the outcome
            log.exception("job.persist_failed")
