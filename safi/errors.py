"""SAFI exception hierarchy."""

from __future__ import annotations


class SafiError(Exception):
    """Base class for all SAFI errors."""


# ── Store ────────────────────────────────────────────────


class TrackNotFoundError(SafiError):
    """Requested track id does not exist."""

    def __init__(self, track_id: int) -> None:
        super().__init__(f"Track {track_id} not found")
        self.track_id = track_id


class InvalidTransitionError(SafiError):
    """Status change out of a terminal state."""


# ── Uploads ──────────────────────────────────────────────


class UploadError(SafiError):
    """Upload rejected before a track was created."""


class UnsupportedFormatError(UploadError):
    """File extension is neither a supported audio nor video format."""

    def __init__(self, extension: str) -> None:
        super().__init__(
            f"File format .{extension} is not supported. Please upload audio "
            "(MP3, WAV, FLAC, M4A, AAC) or video (MP4, MKV, MOV) files."
        )
        self.extension = extension


class UploadTooLargeError(UploadError):
    """Upload exceeded the configured size limit."""

    def __init__(self, limit_mb: int) -> None:
        super().__init__(f"File is too large. Maximum size is {limit_mb}MB.")
        self.limit_mb = limit_mb


# ── Separation ───────────────────────────────────────────


class SeparationError(SafiError):
    """Remote separation did not yield usable stems."""

    def __init__(self, message: str, prediction_id: str | None = None) -> None:
        super().__init__(message)
        self.prediction_id = prediction_id


class MissingCredentialError(SeparationError):
    """No Replicate API token configured."""


class RemoteSeparationError(SeparationError):
    """Replicate call raised, failed, or timed out."""


class OutputShapeError(SeparationError):
    """Prediction output matched none of the accepted shapes."""
