# /og_preview/cli.py
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from og_preview.adapters.http.aiohttp_fetcher import AiohttpStreamFetcher
from og_preview.adapters.system.logging_cfg import configure_logger
from og_preview.config import settings
from og_preview.domain.events import DataReady, Errored, ParserEvent
from og_preview.domain.parser_service import MetaTagParser

LOG = logging.getLogger("cli")


def _log_event(event: ParserEvent) -> None:
    if isinstance(event, Errored):
        LOG.error(
            event.name,
            extra={"extra": {"url": event.url, "kind": event.error.kind.value, "detail": event.error.message}},
        )
    elif isinstance(event, DataReady):
        LOG.info(event.name, extra={"extra": {"url": event.url, **event.result.as_dict()}})
    else:
        LOG.info(event.name, extra={"extra": {"url": event.url}})


async def _run(url: str, timeout_ms: int) -> int:
    fetcher = AiohttpStreamFetcher()
    parser = MetaTagParser(fetcher, timeout_ms=timeout_ms, listener=_log_event)
    try:
        run = parser.start(url)
        await run.wait()
    finally:
        await fetcher.close()

    if run.result is None:
        return 1
    print(json.dumps(run.result.as_dict(), indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(prog="og-preview", description="Print the Open Graph tags of a page.")
    ap.add_argument("url")
    ap.add_argument("--timeout-ms", type=int, default=settings.TIMEOUT_MS)
    args = ap.parse_args(argv)
    if args.timeout_ms <= 0:
        ap.error("--timeout-ms must be positive")

    configure_logger()
    return asyncio.run(_run(args.url, args.timeout_ms))


if __name__ == "__main__":
    sys.exit(main())
