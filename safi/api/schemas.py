"""Response models for the JSON API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from safi.store.models import TrackStatus


class TrackOut(BaseModel):
    """A track as the browser client sees it (camelCase keys)."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: int
    title: str
    status: TrackStatus
    original_url: str
    vocals_url: str | None = None
    instrumental_url: str | None = None
    replicate_id: str | None = None
    error: str | None = None
    created_at: datetime


class ErrorOut(BaseModel):
    message: str
