"""Shared fixtures — isolated settings, fake ffmpeg, fake separator."""

from __future__ import annotations

import stat
from pathlib import Path

import pytest

from safi.config import Settings
from safi.errors import SeparationError
from safi.separation.output import OutputShape, SeparationOutput
from safi.store.db import create_db_engine
from safi.store.tracks import TrackStore

VOCALS_URL = "https://replicate.delivery/pbxt/v.mp3"
INSTRUMENTAL_URL = "https://replicate.delivery/pbxt/i.mp3"


# ── Fakes ────────────────────────────────────────────────


class FakeSeparator:
    """Stands in for the Replicate-backed client."""

    def __init__(
        self,
        output: SeparationOutput | None = None,
        error: Exception | None = None,
    ) -> None:
        self.output = output or SeparationOutput(
            shape=OutputShape.MAPPING,
            vocals_url=VOCALS_URL,
            instrumental_url=INSTRUMENTAL_URL,
            prediction_id="pred-123",
        )
        self.error = error
        self.calls: list[Path] = []

    configured = True

    async def separate(self, audio_path: Path) -> SeparationOutput:
        self.calls.append(Path(audio_path))
        if self.error is not None:
            raise self.error
        return self.output


def write_script(path: Path, body: str) -> Path:
    """Write an executable shell script."""
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


# Copies the -i input to the last argument, like a successful transcode
COPY_FFMPEG = """\
in=""
prev=""
for arg in "$@"; do
  if [ "$prev" = "-i" ]; then in="$arg"; fi
  prev="$arg"
  out="$arg"
done
cp "$in" "$out"
"""

FAILING_FFMPEG = """\
echo "Invalid data found when processing input" >&2
exit 1
"""


# ── Fixtures ─────────────────────────────────────────────


@pytest.fixture
def fake_ffmpeg(tmp_path: Path) -> Path:
    return write_script(tmp_path / "ffmpeg", COPY_FFMPEG)


@pytest.fixture
def failing_ffmpeg(tmp_path: Path) -> Path:
    return write_script(tmp_path / "ffmpeg-broken", FAILING_FFMPEG)


@pytest.fixture
def settings(tmp_path: Path, fake_ffmpeg: Path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'safi.db'}",
        uploads_dir=tmp_path / "uploads",
        ffmpeg_binary=str(fake_ffmpeg),
        replicate_api_token="",
        sweep_interval_s=3600,
    )


@pytest.fixture
def store(tmp_path: Path) -> TrackStore:
    return TrackStore(create_db_engine(f"sqlite:///{tmp_path / 'store.db'}"))


@pytest.fixture
def separator() -> FakeSeparator:
    return FakeSeparator()


@pytest.fixture
def failing_separator() -> FakeSeparator:
    return FakeSeparator(error=SeparationError("upstream 502", prediction_id="pred-err"))
