"""Parsing of isolate-vocals prediction output.

Two shapes are accepted:

- ``mapping``: ``{"vocals": url, "instrumental"|"accompaniment": url}``
- ``pair``: ``[vocals_url, instrumental_url]``

Entries are URL strings or objects exposing a string ``url`` (Replicate's
``FileOutput``). Anything else is an ``OutputShapeError``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from safi.errors import OutputShapeError

INSTRUMENTAL_KEYS = ("instrumental", "accompaniment")


class OutputShape(StrEnum):
    MAPPING = "mapping"
    PAIR = "pair"


@dataclass(frozen=True)
class SeparationOutput:
    """Stem URLs extracted from a prediction."""

    shape: OutputShape
    vocals_url: str
    instrumental_url: str | None = None
    prediction_id: str | None = None


def _as_url(value: Any, stem: str, prediction_id: str | None) -> str:
    url = getattr(value, "url", value)
    if isinstance(url, str) and url.strip():
        return url
    raise OutputShapeError(
        f"No usable {stem} reference in output ({type(value).__name__})", prediction_id
    )


def parse_output(output: Any, prediction_id: str | None = None) -> SeparationOutput:
    """Turn raw prediction output into a ``SeparationOutput``.

    A missing instrumental entry is allowed; a missing or malformed vocals
    entry is not.
    """
    if isinstance(output, Mapping):
        vocals = output.get("vocals")
        if vocals is None:
            raise OutputShapeError("Output mapping has no 'vocals' entry", prediction_id)
        instrumental = next(
            (output[key] for key in INSTRUMENTAL_KEYS if output.get(key) is not None),
            None,
        )
        shape = OutputShape.MAPPING
    elif isinstance(output, Sequence) and not isinstance(output, (str, bytes)):
        if len(output) != 2:
            raise OutputShapeError(
                f"Expected [vocals, instrumental], got {len(output)} entries", prediction_id
            )
        vocals, instrumental = output
        shape = OutputShape.PAIR
    else:
        raise OutputShapeError(
            f"Unrecognised output type {type(output).__name__}", prediction_id
        )

    return SeparationOutput(
        shape=shape,
        vocals_url=_as_url(vocals, "vocals", prediction_id),
        instrumental_url=(
            None if instrumental is None
            else _as_url(instrumental, "instrumental", prediction_id)
        ),
        prediction_id=prediction_id,
    )
