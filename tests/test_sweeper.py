"""Tests for the Retention Sweeper."""

from __future__ import annotations

import asyncio
import os
import time
from pathlib import Path

from safi.jobs.sweeper import RetentionSweeper


def _file(directory: Path, name: str, age_s: float) -> Path:
    path = directory / name
    path.write_bytes(b"x")
    mtime = time.time() - age_s
    os.utime(path, (mtime, mtime))
    return path


def test_sweep_removes_only_stale_files(tmp_path: Path) -> None:
    old = _file(tmp_path, "old.wav", age_s=11 * 60)
    fresh = _file(tmp_path, "fresh.mp3", age_s=30)

    removed = RetentionSweeper(tmp_path, retention_s=600).sweep_once()

    assert removed == 1
    assert not old.exists()
    assert fresh.exists()


def test_sweep_skips_directories(tmp_path: Path) -> None:
    sub = tmp_path / "nested"
    sub.mkdir()
    os.utime(sub, (0, 0))

    assert RetentionSweeper(tmp_path, retention_s=1).sweep_once() == 0
    assert sub.exists()


def test_sweep_missing_directory_is_noop(tmp_path: Path) -> None:
    assert RetentionSweeper(tmp_path / "never-created").sweep_once() == 0


def test_sweep_uses_supplied_clock(tmp_path: Path) -> None:
    path = _file(tmp_path, "a.wav", age_s=0)

    sweeper = RetentionSweeper(tmp_path, retention_s=600)
    assert sweeper.sweep_once(now=time.time() + 60) == 0
    assert sweeper.sweep_once(now=time.time() + 601) == 1
    assert not path.exists()


def test_background_loop_start_stop(tmp_path: Path) -> None:
    """The loop sweeps on its interval and stops cleanly."""
    stale = _file(tmp_path, "stale.mp4", age_s=3600)
    sweeper = RetentionSweeper(tmp_path, retention_s=600, interval_s=0.05)

    async def scenario() -> None:
        sweeper.start()
        sweeper.start()  # idempotent
        assert sweeper.running
        for _ in range(100):
            if not stale.exists():
                break
            await asyncio.sleep(0.02)
        await sweeper.stop()
        assert not sweeper.running

    asyncio.run(scenario())

    assert not stale.exists()
