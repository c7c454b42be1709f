# tests/test_aiohttp_fetcher.py
from __future__ import annotations

import socket
import ssl
from pathlib import Path

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web

from og_preview.adapters.http.aiohttp_fetcher import AiohttpStreamFetcher
from og_preview.adapters.http.demo_server import start_demo_server
from og_preview.domain.events import ErrorKind, Errored, InvalidResponseError, TransportError
from og_preview.domain.parser_service import MetaTagParser
from tests.fakes import CORRECT, EventRecorder

DATA = Path(__file__).parent / "data"


@pytest_asyncio.fixture
async def demo_url():
    runner = await start_demo_server("127.0.0.1", 0)
    host, port = runner.addresses[0][:2]
    yield f"http://{host}:{port}"
    await runner.cleanup()


@pytest_asyncio.fixture
async def fetcher():
    f = AiohttpStreamFetcher(chunk_size=32)
    yield f
    await f.close()


def _closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.mark.asyncio
async def test_extracts_tags_from_demo_server(demo_url, fetcher) -> None:
    rec = EventRecorder()
    parser = MetaTagParser(fetcher, timeout_ms=5000, listener=rec)

    run = parser.start(demo_url + "/")
    await run.wait()

    assert rec.names == ["started", "data", "ended"]
    assert run.result == CORRECT
    assert parser.current_url == demo_url + "/"


@pytest.mark.asyncio
async def test_not_found_is_invalid_response(demo_url, fetcher) -> None:
    parser = MetaTagParser(fetcher, timeout_ms=5000)

    terminal = await parser.start(demo_url + "/missing").wait()

    assert isinstance(terminal, Errored)
    assert isinstance(terminal.error, InvalidResponseError)
    assert terminal.error.status == 404
    assert terminal.error.content_type.startswith("text/plain")


@pytest.mark.asyncio
async def test_connection_refused_is_transport_error(fetcher) -> None:
    parser = MetaTagParser(fetcher, timeout_ms=5000)

    terminal = await parser.start(f"http://127.0.0.1:{_closed_port()}/").wait()

    assert isinstance(terminal.error, TransportError)
    assert terminal.error.kind is ErrorKind.TRANSPORT_ERROR
    assert isinstance(terminal.error.cause, aiohttp.ClientError)


@pytest.mark.asyncio
async def test_demo_server_rejects_other_methods(demo_url) -> None:
    async with aiohttp.ClientSession() as sess:
        async with sess.post(demo_url + "/") as resp:
            assert resp.status == 404
            assert await resp.text() == "Not Found"
        async with sess.get(demo_url + "/") as resp:
            assert resp.status == 200
            assert resp.headers["Content-Type"].startswith("text/html")


@pytest.mark.asyncio
async def test_session_is_reused_within_a_loop(demo_url, fetcher) -> None:
    parser = MetaTagParser(fetcher, timeout_ms=5000)
    await parser.start(demo_url + "/").wait()
    first = fetcher._session
    await parser.restart(demo_url + "/").wait()
    assert fetcher._session is first


# --- TLS ---


@pytest_asyncio.fixture
async def tls_url():
    ctx = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    ctx.load_cert_chain(DATA / "selfsigned.pem", DATA / "selfsigned.key")
    runner = await start_demo_server("127.0.0.1", 0, ssl_context=ctx)
    host, port = runner.addresses[0][:2]
    yield f"https://{host}:{port}/"
    await runner.cleanup()


@pytest_asyncio.fixture
async def redirect_url(tls_url):
    async def handle(request: web.Request) -> web.Response:
        raise web.HTTPFound(tls_url)

    app = web.Application()
    app.router.add_get("/", handle)
    runner = web.AppRunner(app)
    await runner.setup()
    await web.TCPSite(runner, "127.0.0.1", 0).start()
    host, port = runner.addresses[0][:2]
    yield f"http://{host}:{port}/"
    await runner.cleanup()


@pytest.mark.asyncio
async def test_untrusted_certificate_is_transport_error(tls_url) -> None:
    fetcher = AiohttpStreamFetcher(verify_tls=True)
    try:
        terminal = await MetaTagParser(fetcher, timeout_ms=5000).start(tls_url).wait()
    finally:
        await fetcher.close()

    assert isinstance(terminal, Errored)
    assert isinstance(terminal.error, TransportError)
    assert isinstance(terminal.error.cause, aiohttp.ClientError)


@pytest.mark.asyncio
async def test_redirect_from_http_to_untrusted_https_still_verifies(redirect_url) -> None:
    fetcher = AiohttpStreamFetcher(verify_tls=True)
    rec = EventRecorder()
    try:
        terminal = await MetaTagParser(fetcher, timeout_ms=5000, listener=rec).start(redirect_url).wait()
    finally:
        await fetcher.close()

    assert rec.names == ["started", "error"]
    assert isinstance(terminal.error, TransportError)


@pytest.mark.asyncio
async def test_https_without_verification_extracts_tags(tls_url) -> None:
    fetcher = AiohttpStreamFetcher(verify_tls=False)
    try:
        run = MetaTagParser(fetcher, timeout_ms=5000).start(tls_url)
        await run.wait()
    finally:
        await fetcher.close()

    assert run.result == CORRECT
