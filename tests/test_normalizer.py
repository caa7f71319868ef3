"""Tests for the Media Normalizer — classification and ffmpeg fallback."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from conftest import write_script
from safi.errors import UnsupportedFormatError
from safi.media.normalizer import (
    MediaKind,
    MediaNormalizer,
    classify,
    extension_of,
    needs_conversion,
    output_path_for,
)


def _media(tmp_path: Path, name: str, payload: bytes = b"RIFF....data") -> Path:
    path = tmp_path / name
    path.write_bytes(payload)
    return path


# ── Classification ───────────────────────────────────────


@pytest.mark.parametrize("ext", ["mp3", "wav", "flac", "m4a", "aac", "ogg", "wma"])
def test_audio_extensions(ext: str) -> None:
    assert classify(ext) == MediaKind.AUDIO


@pytest.mark.parametrize("ext", ["mp4", "mkv", "mov", "avi", "webm", "flv", "wmv"])
def test_video_extensions(ext: str) -> None:
    assert classify(ext) == MediaKind.VIDEO
    assert needs_conversion(ext)


def test_classify_is_case_insensitive() -> None:
    assert classify(".MP4") == MediaKind.VIDEO
    assert extension_of("Song.FLAC") == "flac"


def test_unsupported_extension_named_in_error() -> None:
    with pytest.raises(UnsupportedFormatError) as exc:
        classify("txt")
    assert ".txt" in str(exc.value)


def test_only_mp3_skips_conversion() -> None:
    assert not needs_conversion("mp3")
    assert needs_conversion("wav")
    assert needs_conversion("flac")


def test_wav_output_never_overwrites_input(tmp_path: Path) -> None:
    assert output_path_for(tmp_path / "a.mp4") == tmp_path / "a.wav"
    assert output_path_for(tmp_path / "a.wav") == tmp_path / "a.norm.wav"


# ── Normalization ────────────────────────────────────────


def test_mp3_passes_through(tmp_path: Path) -> None:
    """MP3 is returned as-is without spawning ffmpeg."""
    source = _media(tmp_path, "song.mp3")
    normalizer = MediaNormalizer(ffmpeg_binary=str(tmp_path / "does-not-exist"))

    result = asyncio.run(normalizer.normalize(source))

    assert result == source
    assert source.exists()


def test_conversion_replaces_original(tmp_path: Path, fake_ffmpeg: Path) -> None:
    """A successful transcode returns the WAV sibling and deletes the input."""
    source = _media(tmp_path, "clip.mp4", b"video-bytes")
    normalizer = MediaNormalizer(ffmpeg_binary=str(fake_ffmpeg))

    result = asyncio.run(normalizer.normalize(source))

    assert result == tmp_path / "clip.wav"
    assert result.read_bytes() == b"video-bytes"
    assert not source.exists()


def test_wav_input_is_renormalized_alongside(tmp_path: Path, fake_ffmpeg: Path) -> None:
    source = _media(tmp_path, "take.wav")
    normalizer = MediaNormalizer(ffmpeg_binary=str(fake_ffmpeg))

    result = asyncio.run(normalizer.normalize(source))

    assert result == tmp_path / "take.norm.wav"
    assert result.exists()
    assert not source.exists()


def test_failed_transcode_falls_back_to_original(tmp_path: Path, failing_ffmpeg: Path) -> None:
    """Non-zero exit never raises; the original file is kept and returned."""
    source = _media(tmp_path, "clip.mkv")
    normalizer = MediaNormalizer(ffmpeg_binary=str(failing_ffmpeg))

    result = asyncio.run(normalizer.normalize(source))

    assert result == source
    assert source.exists()
    assert not (tmp_path / "clip.wav").exists()


def test_missing_binary_falls_back(tmp_path: Path) -> None:
    source = _media(tmp_path, "clip.flac")
    normalizer = MediaNormalizer(ffmpeg_binary=str(tmp_path / "no-ffmpeg-here"))

    assert asyncio.run(normalizer.normalize(source)) == source


def test_timeout_kills_and_falls_back(tmp_path: Path) -> None:
    """A hung transcode is killed at the timeout."""
    slow = write_script(tmp_path / "slow-ffmpeg", "exec sleep 10\n")
    source = _media(tmp_path, "clip.mov")
    normalizer = MediaNormalizer(ffmpeg_binary=str(slow), timeout_s=0.3)

    result = asyncio.run(asyncio.wait_for(normalizer.normalize(source), timeout=5))

    assert result == source
    assert source.exists()


def test_chatty_failure_output_is_bounded(tmp_path: Path) -> None:
    """Large stderr volume is drained without being held in full."""
    noisy = write_script(
        tmp_path / "noisy-ffmpeg",
        "i=0\nwhile [ $i -lt 2000 ]; do echo \"frame $i garbage garbage garbage\" >&2; "
        "i=$((i+1)); done\necho 'final error' >&2\nexit 1\n",
    )
    source = _media(tmp_path, "clip.ogg")
    normalizer = MediaNormalizer(ffmpeg_binary=str(noisy), output_limit=256)

    with pytest.raises(RuntimeError, match="final error"):
        asyncio.run(normalizer._transcode(source, tmp_path / "clip.wav"))
    assert asyncio.run(normalizer.normalize(source)) == source
