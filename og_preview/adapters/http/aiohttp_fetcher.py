# /og_preview/adapters/http/aiohttp_fetcher.py
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiohttp

from og_preview.config import settings

LOG = logging.getLogger("adapter.http_fetcher")


class AiohttpStreamedResponse:
    """Thin view over an open aiohttp response; the body is pulled chunk by chunk."""

    def __init__(self, resp: aiohttp.ClientResponse, chunk_size: int) -> None:
        self._resp = resp
        self._chunk_size = chunk_size
        self.status: int | None = resp.status
        self.content_type: str | None = resp.headers.get(aiohttp.hdrs.CONTENT_TYPE)

    def iter_chunks(self) -> AsyncIterator[bytes]:
        return self._resp.content.iter_chunked(self._chunk_size)

    async def discard(self) -> None:
        # closes the connection instead of reading the rest of the body
        self._resp.release()


class AiohttpStreamFetcher:
    """
    Loop-aware aiohttp streaming fetcher.
    The CLI and tests each run their own event loop, so a session bound to a previous
    (likely closed) loop is dropped and rebuilt for the current one.
    """

    def __init__(self, *, chunk_size: int = settings.CHUNK_SIZE, verify_tls: bool = settings.VERIFY_TLS) -> None:
        self._session: aiohttp.ClientSession | None = None
        self._chunk_size = chunk_size
        self._verify_tls = verify_tls
        self._loop: asyncio.AbstractEventLoop | None = None  # track owning loop

    async def _ensure_session(self) -> aiohttp.ClientSession:
        loop = asyncio.get_running_loop()
        loop_changed = self._loop is not None and self._loop is not loop

        if loop_changed:
            # old session belonged to a different (likely closed) loop -> close & reset
            try:
                if self._session and not self._session.closed:
                    await self._session.close()
            finally:
                self._session = None
                self._loop = None

        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(raise_for_status=False)
            self._loop = loop

        return self._session

    @asynccontextmanager
    async def stream(self, url: str) -> AsyncIterator[AiohttpStreamedResponse]:
        """Open a GET and yield the response before its body is read; closed on exit."""
        sess = await self._ensure_session()
        LOG.info("fetching", extra={"extra": {"url": url, "verify_tls": self._verify_tls}})
        async with sess.get(url, ssl=self._verify_tls, allow_redirects=True) as resp:
            yield AiohttpStreamedResponse(resp, self._chunk_size)

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
            self._loop = None
