"""Track Store — sole owner of ``tracks`` persistence.

All methods are synchronous; request handlers and jobs call them through
``asyncio.to_thread``. Returned rows are detached snapshots.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import Engine, delete, select
from sqlalchemy.orm import sessionmaker

from safi.errors import InvalidTransitionError, TrackNotFoundError
from safi.store.db import make_session_factory
from safi.store.models import Track, TrackStatus

logger = structlog.get_logger()

_MUTABLE_FIELDS = frozenset(
    {"title", "status", "vocals_url", "instrumental_url", "replicate_id", "error"}
)


class TrackStore:
    """CRUD over the ``tracks`` table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._sessions: sessionmaker = make_session_factory(engine)

    def list(self) -> list[Track]:
        """All tracks, oldest first."""
        with self._sessions() as session:
            stmt = select(Track).order_by(Track.created_at.asc(), Track.id.asc())
            return list(session.scalars(stmt))

    def get(self, track_id: int) -> Track:
        with self._sessions() as session:
            track = session.get(Track, track_id)
            if track is None:
                raise TrackNotFoundError(track_id)
            return track

    def create(self, title: str, original_url: str) -> Track:
        """Insert a new row in ``processing`` state."""
        if not title:
            raise ValueError("title must be non-empty")
        track = Track(
            title=title,
            original_url=original_url,
            status=TrackStatus.PROCESSING.value,
        )
        with self._sessions() as session:
            session.add(track)
            session.commit()
            session.refresh(track)
        logger.info("store.created", track_id=track.id, title=title)
        return track

    def update(self, track_id: int, **fields: Any) -> Track:
        """Merge ``fields`` into the row and return the updated track.

        A row in a terminal state is frozen: any further update raises
        InvalidTransitionError. ``error`` and ``vocals_url`` never coexist.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if "status" in fields:
            fields["status"] = TrackStatus(fields["status"]).value

        with self._sessions() as session:
            track = session.get(Track, track_id, with_for_update=True)
            if track is None:
                raise TrackNotFoundError(track_id)

            current = TrackStatus(track.status)
            if current.is_terminal:
                raise InvalidTransitionError(
                    f"Track {track_id} is {current}; it cannot be updated"
                )

            error = fields.get("error", track.error)
            vocals_url = fields.get("vocals_url", track.vocals_url)
            if error is not None and vocals_url is not None:
                raise ValueError("error and vocals_url are mutually exclusive")

            for name, value in fields.items():
                setattr(track, name, value)
            session.commit()
            session.refresh(track)
        return track

    def delete(self, track_id: int) -> None:
        with self._sessions() as session:
            result = session.execute(delete(Track).where(Track.id == track_id))
            session.commit()
            if result.rowcount == 0:
                raise TrackNotFoundError(track_id)
        logger.info("store.deleted", track_id=track_id)
