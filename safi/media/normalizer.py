"""Media normalizer — canonical PCM audio via ffmpeg.

Every supported input except MP3 is re-encoded to 16-bit PCM WAV,
44.1 kHz stereo, written next to the original. Conversion is best effort:
on any failure the original path is returned and separation proceeds with
the unconverted file.
"""

from __future__ import annotations

import asyncio
import contextlib
from enum import StrEnum
from pathlib import Path

import structlog

from safi.errors import UnsupportedFormatError

logger = structlog.get_logger()


# ── Formats ──────────────────────────────────────────────


class MediaKind(StrEnum):
    AUDIO = "audio"
    VIDEO = "video"


AUDIO_EXTENSIONS = ("mp3", "wav", "flac", "m4a", "aac", "ogg", "wma")
VIDEO_EXTENSIONS = ("mp4", "mkv", "mov", "avi", "webm", "flv", "wmv")
PASSTHROUGH_EXTENSION = "mp3"

SAMPLE_RATE = 44100
CHANNELS = 2


def extension_of(path: str | Path) -> str:
    """Lower-cased extension without the dot ("" when absent)."""
    return Path(path).suffix.lower().lstrip(".")


def classify(extension: str) -> MediaKind:
    ext = extension.lower().lstrip(".")
    if ext in AUDIO_EXTENSIONS:
        return MediaKind.AUDIO
    if ext in VIDEO_EXTENSIONS:
        return MediaKind.VIDEO
    raise UnsupportedFormatError(ext)


def needs_conversion(extension: str) -> bool:
    classify(extension)
    return extension.lower().lstrip(".") != PASSTHROUGH_EXTENSION


def output_path_for(input_path: Path) -> Path:
    """WAV sibling of ``input_path``; never the input itself."""
    if extension_of(input_path) == "wav":
        return input_path.with_name(f"{input_path.stem}.norm.wav")
    return input_path.with_suffix(".wav")


# ── Process helpers ──────────────────────────────────────


async def _drain_tail(stream: asyncio.StreamReader | None, limit: int) -> bytes:
    """Read a stream to EOF keeping only its last ``limit`` bytes."""
    if stream is None:
        return b""
    tail = bytearray()
    while chunk := await stream.read(8192):
        tail += chunk
        if len(tail) > limit:
            del tail[: len(tail) - limit]
    return bytes(tail)


async def _kill(proc: asyncio.subprocess.Process) -> None:
    with contextlib.suppress(ProcessLookupError):
        proc.kill()
    await proc.wait()


# ── Normalizer ───────────────────────────────────────────


class MediaNormalizer:
    """Runs ffmpeg to extract or re-encode the audio track."""

    def __init__(
        self,
        ffmpeg_binary: str = "ffmpeg",
        timeout_s: float = 120.0,
        output_limit: int = 64 * 1024,
    ) -> None:
        self.ffmpeg_binary = ffmpeg_binary
        self.timeout_s = timeout_s
        self.output_limit = output_limit

    def command(self, input_path: Path, output_path: Path) -> list[str]:
        return [
            self.ffmpeg_binary,
            "-y",
            "-i", str(input_path),
            "-vn",
            "-acodec", "pcm_s16le",
            "-ar", str(SAMPLE_RATE),
            "-ac", str(CHANNELS),
            str(output_path),
        ]

    async def normalize(self, input_path: Path) -> Path:
        """Return the path to use for separation.

        MP3 passes through untouched. For everything else a WAV sibling is
        produced and the input deleted; any failure returns ``input_path``.
        """
        input_path = Path(input_path)
        if not needs_conversion(extension_of(input_path)):
            return input_path

        output_path = output_path_for(input_path)
        try:
            await self._transcode(input_path, output_path)
        except (OSError, RuntimeError, TimeoutError) as e:
            logger.warning(
                "normalizer.failed",
                input=str(input_path),
                error=str(e),
            )
            output_path.unlink(missing_ok=True)
            return input_path

        try:
            input_path.unlink()
        except OSError as e:
            logger.warning("normalizer.cleanup_failed", input=str(input_path), error=str(e))

        logger.info("normalizer.converted", input=str(input_path), output=str(output_path))
        return output_path

    async def _transcode(self, input_path: Path, output_path: Path) -> None:
        proc = await asyncio.create_subprocess_exec(
            *self.command(input_path, output_path),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )

        async def _collect() -> tuple[bytes, int]:
            tail = await _drain_tail(proc.stderr, self.output_limit)
            return tail, await proc.wait()

        try:
            stderr, returncode = await asyncio.wait_for(_collect(), timeout=self.timeout_s)
        except TimeoutError:
            await _kill(proc)
            raise TimeoutError(f"ffmpeg timed out after {self.timeout_s:.0f}s") from None
        except asyncio.CancelledError:
            await _kill(proc)
            raise

        if returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip().splitlines()
            raise RuntimeError(
                f"ffmpeg exited with {returncode}: {detail[-1] if detail else 'no output'}"
            )
        if not output_path.exists():
            raise RuntimeError("ffmpeg produced no output file")
