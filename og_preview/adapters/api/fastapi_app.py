# /og_preview/adapters/api/fastapi_app.py
from __future__ import annotations
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, HTTPException

from og_preview.config import settings
from og_preview.adapters.http.aiohttp_fetcher import AiohttpStreamFetcher
from og_preview.adapters.system.logging_cfg import configure_logger
from og_preview.adapters.system.redis_preview_store import RedisPreviewStore
from og_preview.domain.events import ErrorKind, Errored
from og_preview.domain.parser_service import MetaTagParser

LOG = logging.getLogger("adapter.api")

_fetcher = AiohttpStreamFetcher()
_store = (
    RedisPreviewStore(settings.REDIS_URL, ttl_seconds=settings.CACHE_TTL_SECONDS)
    if settings.REDIS_URL
    else None
)

_STATUS_BY_KIND = {
    ErrorKind.MISSING_URL: 400,
    ErrorKind.UNSUPPORTED_SCHEME: 400,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.TRANSPORT_ERROR: 502,
    ErrorKind.INVALID_RESPONSE: 502,
}

@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    configure_logger()
    yield
    await _fetcher.close()

app = FastAPI(title="og-preview", lifespan=lifespan)

def get_parser() -> MetaTagParser:
    return MetaTagParser(_fetcher)

def get_store() -> RedisPreviewStore | None:
    return _store

@app.get("/health")
def health() -> dict:
    return {"status": "ok"}

@app.get("/preview")
async def preview(
    url: str = "",
    timeout_ms: int | None = None,
    x_api_key: str | None = Header(default=None),
    parser: MetaTagParser = Depends(get_parser),
    store: RedisPreviewStore | None = Depends(get_store),
) -> dict:
    if settings.API_KEY and x_api_key != settings.API_KEY:
        raise HTTPException(status_code=401, detail="invalid api key")
    if timeout_ms is not None and timeout_ms <= 0:
        raise HTTPException(status_code=400, detail="timeout_ms must be positive")

    cached = store.get(url) if store is not None and url else None
    if cached is not None:
        return {"url": url, "status": "done", "cached": True, "result": cached.as_dict()}

    run = parser.start(url, timeout_ms)
    event = await run.wait()
    if isinstance(event, Errored):
        err = event.error
        LOG.info("preview.failed", extra={"extra": {"url": url, "kind": err.kind.value}})
        raise HTTPException(
            status_code=_STATUS_BY_KIND[err.kind],
            detail={"kind": err.kind.value, "message": err.message},
        )
    if run.result is None:
        raise HTTPException(status_code=503, detail="preview cancelled")

    if store is not None:
        store.set(url, run.result)
    return {"url": url, "status": "done", "cached": False, "result": run.result.as_dict()}
