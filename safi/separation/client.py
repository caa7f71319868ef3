"""Separation client — vocal/instrumental split via Replicate.

One prediction per call, no retries. The audio is sent inline as a data
URI and the prediction is polled with the SDK's async API until it settles
or the configured timeout expires. No worker thread is held while waiting.
"""

from __future__ import annotations

import asyncio
import base64
import mimetypes
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import replicate
import structlog
from replicate.exceptions import ReplicateError

from safi.config import DEFAULT_MODEL
from safi.errors import MissingCredentialError, RemoteSeparationError, SeparationError
from safi.separation.output import SeparationOutput, parse_output

logger = structlog.get_logger()

_REMOTE_ERRORS = (ReplicateError, httpx.HTTPError)


def encode_data_uri(path: Path) -> str:
    """Read ``path`` into a ``data:<mime>;base64,...`` URI."""
    mime = "audio/wav" if path.suffix.lower() == ".wav" else mimetypes.guess_type(path.name)[0]
    payload = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime or 'application/octet-stream'};base64,{payload}"


def _prediction_target(model: str) -> dict[str, str]:
    """``owner/name:version`` pins a version; a bare ``owner/name`` uses the latest."""
    if ":" in model:
        return {"version": model.split(":", 1)[1]}
    return {"model": model}


class SeparationClient:
    """Wraps the single outbound call to the isolate-vocals model."""

    def __init__(
        self,
        api_token: str = "",
        model: str = DEFAULT_MODEL,
        timeout_s: float | None = 900.0,
        client_factory: Callable[[str], Any] | None = None,
    ) -> None:
        self.api_token = api_token
        self.model = model
        self.timeout_s = timeout_s or None
        self._client_factory = client_factory or (lambda token: replicate.Client(api_token=token))

    def _token(self) -> str:
        # Prioritize config, fallback to env var
        return self.api_token or os.getenv("REPLICATE_API_TOKEN", "")

    @property
    def configured(self) -> bool:
        return bool(self._token())

    async def separate(self, audio_path: Path) -> SeparationOutput:
        """Submit ``audio_path`` and return the extracted stem URLs."""
        token = self._token()
        if not token:
            raise MissingCredentialError("REPLICATE_API_TOKEN is missing")

        try:
            data_uri = await asyncio.to_thread(encode_data_uri, Path(audio_path))
        except OSError as e:
            raise SeparationError(f"Could not read {audio_path}: {e}") from e

        client = self._client_factory(token)
        logger.info("separation.submit", audio=str(audio_path), model=self.model)
        try:
            prediction = await client.predictions.async_create(
                input={"audio": data_uri},
                **_prediction_target(self.model),
            )
        except _REMOTE_ERRORS as e:
            raise RemoteSeparationError(f"Prediction create failed: {e}") from e

        try:
            await asyncio.wait_for(prediction.async_wait(), timeout=self.timeout_s)
        except TimeoutError:
            await self._cancel(prediction)
            raise RemoteSeparationError(
                f"Prediction timed out after {self.timeout_s:.0f}s", prediction.id
            ) from None
        except _REMOTE_ERRORS as e:
            raise RemoteSeparationError(f"Prediction wait failed: {e}", prediction.id) from e

        if prediction.status != "succeeded":
            raise RemoteSeparationError(
                f"Prediction {prediction.status}: {prediction.error}", prediction.id
            )

        result = parse_output(prediction.output, prediction.id)
        logger.info(
            "separation.done",
            prediction_id=prediction.id,
            shape=result.shape,
            has_instrumental=result.instrumental_url is not None,
        )
        return result

    @staticmethod
    async def _cancel(prediction: Any) -> None:
        try:
            await prediction.async_cancel()
        except _REMOTE_ERRORS as e:
            logger.warning("separation.cancel_failed", prediction_id=prediction.id, error=str(e))
