import asyncio
from collections import Counter

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from crawler.exceptions import FetchFailed, FetchTimeout, RedirectLoop
from crawler.model import CrawlSettings, FetchResult
from crawler.services.async_page_fetcher_service import PageFetcher

HTML = "<html><head><title>Ok</title></head><body><h1>Ok</h1></body></html>"


def _build_app(hits: Counter) -> web.Application:
    async def ok(request):
        hits["ok"] += 1
        return web.Response(text=HTML, content_type="text/html")

    async def missing(request):
        hits["missing"] += 1
        return web.Response(status=404, text="nope", content_type="text/html")

    async def unavailable(request):
        hits["unavailable"] += 1
        return web.Response(status=503, text="busy", content_type="text/html")

    async def recovers(request):
        hits["recovers"] += 1
        if hits["recovers"] < 2:
            return web.Response(status=502)
        return web.Response(text=HTML, content_type="text/html")

    async def hop(request):
        n = int(request.match_info["n"])
        if n == 0:
            return web.Response(text=HTML, content_type="text/html")
        raise web.HTTPFound(f"/hop/{n - 1}")

    async def loop_a(request):
        raise web.HTTPMovedPermanently("/loop-b")

    async def loop_b(request):
        raise web.HTTPMovedPermanently("/loop-a")

    async def slow(request):
        hits["slow"] += 1
        await asyncio.sleep(1)
        return web.Response(text=HTML, content_type="text/html")

    async def image(request):
        return web.Response(body=b"\x89PNG\r\n", content_type="image/png")

    app = web.Application()
    app.router.add_get("/ok", ok)
    app.router.add_get("/missing", missing)
    app.router.add_get("/unavailable", unavailable)
    app.router.add_get("/recovers", recovers)
    app.router.add_get("/hop/{n}", hop)
    app.router.add_get("/loop-a", loop_a)
    app.router.add_get("/loop-b", loop_b)
    app.router.add_get("/slow", slow)
    app.router.add_get("/logo.png", image)
    return app


def _fetch(path, **settings):
    """Starts a local server, fetches `path` once and returns (result or exception, hits)."""
    settings.setdefault("backoff_base", 0)

    async def main():
        hits = Counter()
        server = TestServer(_build_app(hits))
        await server.start_server()
        try:
            async with PageFetcher(CrawlSettings(**settings)) as fetcher:
                try:
                    return await fetcher.fetch(str(server.make_url(path))), hits
                except Exception as e:
                    return e, hits
        finally:
            await server.close()

    return asyncio.run(main())


def test_fetch_ok():
    result, _ = _fetch("/ok")
    assert result.status_code == 200
    assert result.is_success and result.is_html
    assert b"<title>Ok</title>" in result.content
    assert result.final_url.endswith("/ok")
    assert not result.was_redirected


def test_redirects_are_followed_and_recorded():
    result, _ = _fetch("/hop/2")
    assert result.status_code == 200
    assert result.final_url.endswith("/hop/0")
    assert [hop["status"] for hop in result.redirect_chain] == [302, 302]


def test_redirect_bound_raises_redirect_loop():
    result, _ = _fetch("/hop/3", max_redirects=2)
    assert isinstance(result, RedirectLoop)


def test_redirect_cycle_raises_redirect_loop():
    result, _ = _fetch("/loop-a")
    assert isinstance(result, RedirectLoop)
    assert result.kind == "RedirectLoop"


def test_4xx_is_returned_without_retry():
    result, hits = _fetch("/missing", max_retries=3)
    assert result.status_code == 404
    assert hits["missing"] == 1


def test_5xx_is_retried_then_fails():
    result, hits = _fetch("/unavailable", max_retries=2)
    assert isinstance(result, FetchFailed)
    assert result.status_code == 503
    assert hits["unavailable"] == 3


def test_5xx_recovers_within_retry_budget():
    result, hits = _fetch("/recovers", max_retries=2)
    assert result.status_code == 200
    assert hits["recovers"] == 2


def test_timeout_raises_fetch_timeout():
    result, hits = _fetch("/slow", timeout=0.2, max_retries=1)
    assert isinstance(result, FetchTimeout)
    assert hits["slow"] == 2


def test_asset_body_is_not_downloaded():
    result, _ = _fetch("/logo.png")
    assert result.status_code == 200
    assert not result.is_html
    assert result.content == b""


def test_backoff_is_exponential():
    fetcher = PageFetcher(CrawlSettings(backoff_base=0.5))
    assert [fetcher._backoff_delay(a) for a in range(3)] == [0.5, 1.0, 2.0]


@pytest.mark.parametrize("content_type, textual", [
    ("text/html; charset=utf-8", True),
    ("text/plain", True),
    ("application/xml", True),
    ("application/x-gzip", True),
    ("image/png", False),
])
def test_is_textual(content_type, textual):
    result = FetchResult(url="u", final_url="u", status_code=200, content_type=content_type)
    assert result.is_textual is textual
