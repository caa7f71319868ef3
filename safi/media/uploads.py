"""Upload storage — files on disk under the public ``/uploads`` path."""

from __future__ import annotations

import secrets
import time
from pathlib import Path

import structlog
from fastapi import UploadFile

from safi.errors import UploadTooLargeError
from safi.media.normalizer import classify, extension_of, output_path_for

logger = structlog.get_logger()

PUBLIC_PREFIX = "/uploads"
_CHUNK_SIZE = 1024 * 1024


class UploadStorage:
    """Maps stored uploads to public URLs and back."""

    def __init__(self, directory: Path, max_bytes: int) -> None:
        self.directory = Path(directory)
        self.max_bytes = max_bytes

    def ensure_directory(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def generate_name(extension: str) -> str:
        """``<epoch-ms>-<9 random digits>.<ext>``"""
        return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}.{extension}"

    def url_for(self, path: Path) -> str:
        return f"{PUBLIC_PREFIX}/{path.name}"

    def path_for(self, url: str) -> Path:
        """Resolve a public URL to a path inside the upload directory."""
        return self.directory / Path(url).name

    async def save(self, upload: UploadFile) -> Path:
        """Stream ``upload`` to disk, enforcing the size limit.

        Raises UnsupportedFormatError before anything is written and
        UploadTooLargeError after removing the partial file.
        """
        extension = extension_of(upload.filename or "")
        classify(extension)

        self.ensure_directory()
        path = self.directory / self.generate_name(extension)
        written = 0
        try:
            with path.open("wb") as out:
                while chunk := await upload.read(_CHUNK_SIZE):
                    written += len(chunk)
                    if written > self.max_bytes:
                        raise UploadTooLargeError(self.max_bytes // (1024 * 1024))
                    out.write(chunk)
        except BaseException:
            path.unlink(missing_ok=True)
            raise

        logger.info("uploads.saved", path=str(path), size_mb=round(written / 1024 / 1024, 2))
        return path

    def remove_for(self, original_url: str) -> list[Path]:
        """Best-effort removal of an upload and its normalized sibling."""
        original = self.path_for(original_url)
        removed: list[Path] = []
        for candidate in {original, output_path_for(original)}:
            try:
                candidate.unlink()
                removed.append(candidate)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("uploads.remove_failed", path=str(candidate), error=str(e))
        return removed
