# /og_preview/config.py
from __future__ import annotations

import os

from pydantic import BaseModel


class Settings(BaseModel):
    API_KEY: str | None = os.getenv("API_KEY")
    VERIFY_TLS: bool = os.getenv("VERIFY_TLS", "true").lower() == "true"

    # Fetch / streaming
    TIMEOUT_MS: int = int(os.getenv("TIMEOUT_MS", "10000"))
    CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", "16384"))
    MAX_BYTES: int = int(os.getenv("MAX_BYTES", "1048576"))  # 1 MB without </head> -> give up reading

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Redis cache (disabled when unset)
    REDIS_URL: str | None = os.getenv("REDIS_URL") or None
    CACHE_TTL_SECONDS: int = int(os.getenv("CACHE_TTL_SECONDS", "3600"))

    # Demo server
    DEMO_HOST: str = os.getenv("DEMO_HOST", "127.0.0.1")
    DEMO_PORT: int = int(os.getenv("DEMO_PORT", "3000"))


settings = Settings()
