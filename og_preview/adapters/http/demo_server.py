# /og_preview/adapters/http/demo_server.py
from __future__ import annotations

import logging
import ssl

from aiohttp import web

from og_preview.adapters.system.logging_cfg import configure_logger
from og_preview.config import settings

LOG = logging.getLogger("adapter.demo_server")

DEMO_HTML = """<!DOCTYPE html>
<html>
  <head>
    <title>Test</title>
    <meta property="og:title" content="Test Title" />
    <meta property="og:description" content="Test Description" />
    <meta property="og:image" content="https://example.com/image.jpg" />
  </head>
  <body>
    <h1>Test</h1>
  </body>
</html>"""


def make_app(body: str = DEMO_HTML) -> web.Application:
    """Serve body on GET /; everything else is a plain-text 404."""

    async def handle(request: web.Request) -> web.Response:
        LOG.debug("demo.request", extra={"extra": {"path": request.path, "method": request.method}})
        if request.path != "/" or request.method != "GET":
            return web.Response(status=404, text="Not Found", content_type="text/plain")
        return web.Response(status=200, text=body, content_type="text/html")

    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", handle)
    return app


async def start_demo_server(
    host: str = settings.DEMO_HOST,
    port: int = settings.DEMO_PORT,
    body: str = DEMO_HTML,
    ssl_context: ssl.SSLContext | None = None,
) -> web.AppRunner:
    """Start serving in the running loop; port 0 picks a free port (see runner.addresses)."""
    runner = web.AppRunner(make_app(body))
    await runner.setup()
    await web.TCPSite(runner, host, port, ssl_context=ssl_context).start()
    LOG.info("demo.started", extra={"extra": {"addresses": runner.addresses}})
    return runner


def main() -> None:
    configure_logger()
    web.run_app(make_app(), host=settings.DEMO_HOST, port=settings.DEMO_PORT, print=None)
