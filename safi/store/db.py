"""Engine and session factory."""

from __future__ import annotations

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import sessionmaker

from safi.store.models import Base


def create_db_engine(url: str) -> Engine:
    """Create an engine and make sure the schema exists."""
    connect_args: dict[str, object] = {}
    if url.startswith("sqlite"):
        # Sessions are opened from asyncio.to_thread workers
        connect_args["check_same_thread"] = False
    engine = create_engine(url, connect_args=connect_args)
    Base.metadata.create_all(bind=engine)
    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)
