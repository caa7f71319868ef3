"""Media handling — upload storage and ffmpeg normalization."""

from safi.media.normalizer import (
    AUDIO_EXTENSIONS,
    VIDEO_EXTENSIONS,
    MediaKind,
    MediaNormalizer,
    classify,
    needs_conversion,
)
from safi.media.uploads import UploadStorage

__all__ = [
    "AUDIO_EXTENSIONS",
    "VIDEO_EXTENSIONS",
    "MediaKind",
    "MediaNormalizer",
    "UploadStorage",
    "classify",
    "needs_conversion",
]
