# /og_preview/adapters/system/redis_preview_store.py
from __future__ import annotations
import logging

import redis

from og_preview.domain.meta_extractor import TAGS, ExtractionResult

LOG = logging.getLogger("adapter.preview_store.redis")

class RedisPreviewStore:
    def __init__(self, redis_url: str, prefix: str = "preview", ttl_seconds: int = 3600) -> None:
        self._r = redis.Redis.from_url(redis_url, decode_responses=True)
        self._prefix = prefix
        self._ttl = ttl_seconds

    def _key(self, url: str) -> str:
        return f"{self._prefix}:{url}"

    def set(self, url: str, result: ExtractionResult) -> None:
        key = self._key(url)
        self._r.hset(key, mapping=result.as_dict())
        self._r.expire(key, self._ttl)
        LOG.info("store.set", extra={"extra": {"url": url, "ttl": self._ttl}})

    def get(self, url: str) -> ExtractionResult | None:
        data = self._r.hgetall(self._key(url))
        if not data:
            return None
        LOG.info("store.hit", extra={"extra": {"url": url}})
        return ExtractionResult(**{tag: data.get(tag, "") for tag in TAGS})
