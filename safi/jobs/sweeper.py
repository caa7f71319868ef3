"""Retention sweeper — bounds disk use in the upload directory.

Deletes any file older than the retention window. There is no link to
track rows; a file may disappear before or after its track resolves.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from pathlib import Path

import structlog

logger = structlog.get_logger()


class RetentionSweeper:
    """Owned background task that periodically prunes stale uploads."""

    def __init__(self, directory: Path, retention_s: float = 600.0, interval_s: float = 60.0) -> None:
        self.directory = Path(directory)
        self.retention_s = retention_s
        self.interval_s = interval_s
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="retention-sweeper")
        logger.info("sweeper.started", directory=str(self.directory), retention_s=self.retention_s)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("sweeper.stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            await asyncio.to_thread(self.sweep_once)

    def sweep_once(self, now: float | None = None) -> int:
        """Delete stale files; returns how many were removed."""
        now = time.time() if now is None else now
        try:
            entries = list(self.directory.iterdir())
        except FileNotFoundError:
            return 0
        except OSError as e:
            logger.error("sweeper.scan_failed", directory=str(self.directory), error=str(e))
            return 0

        removed = 0
        for path in entries:
            try:
                stat = path.stat()
                if not path.is_file() or now - stat.st_mtime <= self.retention_s:
                    continue
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error("sweeper.remove_failed", file=path.name, error=str(e))
                continue
            removed += 1
            logger.info("sweeper.removed", file=path.name)
        return removed
