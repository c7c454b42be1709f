# /og_preview/domain/parser_service.py
from __future__ import annotations

import asyncio
import codecs
import logging
import re
from collections.abc import Callable

from og_preview.config import settings
from og_preview.domain.events import (
    DataReady,
    Ended,
    Errored,
    InvalidResponseError,
    MissingURLError,
    ParserError,
    ParserEvent,
    RequestTimeoutError,
    Started,
    TransportError,
    UnsupportedSchemeError,
)
from og_preview.domain.meta_extractor import ExtractionResult, extract_tags
from og_preview.ports.http_fetcher import HTTPStreamPort, StreamedResponse

LOG = logging.getLogger("parser_service")

HEAD_END = "</head>"
_HTML = re.compile(r"html")
_PLAIN = re.compile(r"^text/plain$")

Listener = Callable[[ParserEvent], None]


class ParseRun:
    """
    One attempt at fetching and extracting a URL. Owns the request and timer tasks
    and is closed exactly once, either with a terminal event or by being superseded.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self.terminal: ParserEvent | None = None
        self.result: ExtractionResult | None = None
        self._request: asyncio.Task[None] | None = None
        self._timer: asyncio.Task[None] | None = None
        self._closed = asyncio.Event()

    def done(self) -> bool:
        return self._closed.is_set()

    async def wait(self) -> ParserEvent | None:
        """Wait for the run to close; None means it was cancelled before finishing."""
        await self._closed.wait()
        return self.terminal

    def _close(self, terminal: ParserEvent | None) -> None:
        self.terminal = terminal
        self._closed.set()
        for task in (self._timer, self._request):
            if task is not None and not task.done() and task is not asyncio.current_task():
                task.cancel()


class MetaTagParser:
    """Fetches a page head and reports its Open Graph tags as started/data/ended/error events."""

    def __init__(
        self,
        fetcher: HTTPStreamPort,
        *,
        timeout_ms: int = settings.TIMEOUT_MS,
        listener: Listener | None = None,
        max_bytes: int = settings.MAX_BYTES,
    ) -> None:
        self._check_timeout(timeout_ms)
        self.fetcher = fetcher
        self.timeout_ms = timeout_ms
        self.max_bytes = max_bytes
        self._listeners: list[Listener] = [listener] if listener else []
        self._url = ""
        self._run: ParseRun | None = None

    @property
    def current_url(self) -> str:
        return self._url

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    # --- public entrypoints ---

    def start(self, url: str, timeout_ms: int | None = None) -> ParseRun:
        if timeout_ms is not None:
            self._check_timeout(timeout_ms)
            self.timeout_ms = timeout_ms
        self.cancel()

        self._url = url
        run = ParseRun(url)
        self._run = run

        try:
            self._validate_url(url)
        except ParserError as e:
            LOG.warning("parse.rejected", extra={"extra": {"url": url, "kind": e.kind.value}})
            self._finish(run, Errored(url, e))
            return run

        asyncio.get_running_loop()  # fail before announcing a run we cannot schedule
        LOG.info("parse.started", extra={"extra": {"url": url, "timeout_ms": self.timeout_ms}})
        self._emit(Started(url))
        if run.done():  # a listener moved on to another run
            return run
        run._timer = asyncio.create_task(self._expire(run, self.timeout_ms))
        run._request = asyncio.create_task(self._fetch(run))
        return run

    def restart(self, url: str) -> ParseRun:
        return self.start(url)

    def cancel(self) -> None:
        run = self._run
        if run is not None and not run.done():
            LOG.info("parse.cancelled", extra={"extra": {"url": run.url}})
            run._close(None)

    # --- small helpers ---

    @staticmethod
    def _check_timeout(timeout_ms: int) -> None:
        if timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {timeout_ms}")

    @staticmethod
    def _validate_url(url: str) -> None:
        if not url:
            raise MissingURLError("URL is required")
        if not url.startswith("http"):
            raise UnsupportedSchemeError("URL should start with http or https")

    @staticmethod
    def _check_response(resp: StreamedResponse) -> InvalidResponseError | None:
        status, content_type = resp.status, resp.content_type
        if not status or status > 399 or not content_type:
            return InvalidResponseError(
                f"Request failed. Status code: {status}", status=status, content_type=content_type
            )
        if not _HTML.search(content_type) and not _PLAIN.match(content_type):
            return InvalidResponseError(
                f"Invalid content-type. Expected html or text/plain but received {content_type}",
                status=status,
                content_type=content_type,
            )
        return None

    def _emit(self, event: ParserEvent) -> None:
        LOG.debug("parse.event", extra={"extra": {"url": event.url, "event": event.name}})
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                LOG.exception(
                    "parse.listener_error", extra={"extra": {"url": event.url, "event": event.name}}
                )

    def _finish(self, run: ParseRun, *events: ParserEvent) -> None:
        if run.done():
            return
        *leading, terminal = events
        for event in leading:
            if isinstance(event, DataReady):
                run.result = event.result
            self._emit(event)
        if run.done():  # a listener restarted us mid-run
            return
        run._close(terminal)  # cancels whichever of timer/request is still pending
        self._emit(terminal)

    # --- the two racing tasks ---

    async def _expire(self, run: ParseRun, timeout_ms: int) -> None:
        await asyncio.sleep(timeout_ms / 1000)
        LOG.warning("parse.timeout", extra={"extra": {"url": run.url, "timeout_ms": timeout_ms}})
        self._finish(run, Errored(run.url, RequestTimeoutError("Request timed out")))

    async def _fetch(self, run: ParseRun) -> None:
        try:
            events = await self._request(run.url)
        except Exception as e:
            LOG.warning(
                "parse.transport_error",
                extra={"extra": {"url": run.url, "error": type(e).__name__, "detail": str(e)}},
            )
            error = TransportError(f"Got error while doing http call: {e}", cause=e)
            events = (Errored(run.url, error),)
        self._finish(run, *events)

    async def _request(self, url: str) -> tuple[ParserEvent, ...]:
        async with self.fetcher.stream(url) as resp:
            error = self._check_response(resp)
            if error is not None:
                LOG.warning(
                    "parse.invalid_response",
                    extra={"extra": {"url": url, "status": resp.status, "content_type": resp.content_type}},
                )
                await resp.discard()
                return (Errored(url, error),)
            head = await self._read_head(url, resp)

        result = extract_tags(head)
        LOG.info("parse.data", extra={"extra": {"url": url, **result.as_dict()}})
        return DataReady(url, result), Ended(url)

    async def _read_head(self, url: str, resp: StreamedResponse) -> str:
        """
        Accumulate decoded body text until the first </head>, returning the buffer cut
        right after it. Falls back to everything read when the body ends (or exceeds
        max_bytes) without the marker.
        """
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        buffer = ""
        read = 0
        async for chunk in resp.iter_chunks():
            read += len(chunk)
            # a marker may straddle the previous chunk boundary
            scan_from = max(0, len(buffer) - len(HEAD_END) + 1)
            buffer += decoder.decode(chunk)
            end = buffer.find(HEAD_END, scan_from)
            if end != -1:
                return buffer[: end + len(HEAD_END)]
            if read > self.max_bytes:
                LOG.warning("body_truncated", extra={"extra": {"url": url, "max": self.max_bytes}})
                return buffer

        buffer += decoder.decode(b"", final=True)
        LOG.info("parse.head_end_missing", extra={"extra": {"url": url, "bytes": read}})
        return buffer
