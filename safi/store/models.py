"""ORM model for the ``tracks`` table."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class TrackStatus(StrEnum):
    """Lifecycle states of a track."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TrackStatus.COMPLETED, TrackStatus.FAILED)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Track(Base):
    """One uploaded media item and its derived stems."""

    __tablename__ = "tracks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default=TrackStatus.PENDING.value)
    original_url = Column(Text, nullable=False)
    vocals_url = Column(Text, nullable=True)
    instrumental_url = Column(Text, nullable=True)
    replicate_id = Column(Text, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self) -> str:
        return f"<Track id={self.id} status={self.status}>"
