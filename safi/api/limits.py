"""Request body size guard.

Rejects an oversized upload from its Content-Length before any of it is
read, and aborts a body without one as soon as the running total passes the
limit. The exact per-file limit is still enforced by ``UploadStorage``.
"""

from __future__ import annotations

import structlog
from fastapi import HTTPException
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from safi.errors import UploadTooLargeError

logger = structlog.get_logger()

# Room for multipart boundaries, part headers and the title field
MULTIPART_OVERHEAD = 1024 * 1024


def _content_length(scope: Scope) -> int | None:
    for name, value in scope.get("headers", []):
        if name == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None


class BodySizeLimitMiddleware:
    """Caps the size of every HTTP request body."""

    def __init__(self, app: ASGIApp, max_upload_mb: int) -> None:
        self.app = app
        self.max_upload_mb = max_upload_mb
        self.limit = max_upload_mb * 1024 * 1024 + MULTIPART_OVERHEAD

    def _too_large(self) -> str:
        return str(UploadTooLargeError(self.max_upload_mb))

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        declared = _content_length(scope)
        if declared is not None and declared > self.limit:
            logger.warning("uploads.rejected_length", content_length=declared, limit=self.limit)
            response = JSONResponse(status_code=413, content={"message": self._too_large()})
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.limit:
                    logger.warning("uploads.rejected_stream", received=received, limit=self.limit)
                    raise HTTPException(status_code=413, detail=self._too_large())
            return message

        await self.app(scope, limited_receive, send)
