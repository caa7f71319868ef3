"""Persistence for track records."""

from safi.store.db import create_db_engine
from safi.store.models import Track, TrackStatus
from safi.store.tracks import TrackStore

__all__ = [
    "Track",
    "TrackStatus",
    "TrackStore",
    "create_db_engine",
]
