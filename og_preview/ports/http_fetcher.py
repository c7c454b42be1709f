# /og_preview/ports/http_fetcher.py
from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager
from typing import Protocol


class StreamedResponse(Protocol):
    status: int | None
    content_type: str | None

    def iter_chunks(self) -> AsyncIterator[bytes]:
        """Yield body chunks in arrival order."""

    async def discard(self) -> None:
        """Give up on the unread body; the connection is closed, not drained."""


class HTTPStreamPort(Protocol):
    def stream(self, url: str) -> AbstractAsyncContextManager[StreamedResponse]:
        """GET url; the body is only read through the yielded response."""
