import asyncio
from unittest.mock import MagicMock

from crawler.controllers.async_crawl_controller import AsyncCrawlController
from crawler.exceptions import FetchTimeout
from crawler.model import CrawlSettings
from parser.services.page_parse_service import PageParser

S = "https://site.test"


def _crawl(fetcher, seeds=(f"{S}/",), parser=None, **settings):
    settings.setdefault("show_progress", False)

    async def main():
        controller = AsyncCrawlController(
            fetcher, CrawlSettings(**settings), internal_hosts=["site.test"], parser=parser
        )
        await controller.run(list(seeds))
        return controller

    return asyncio.run(main())


def test_crawls_every_internal_page_once(make_fetcher, page):
    pages = {f"{S}/": page(links=[f"/p{i}" for i in range(10)] + ["https://elsewhere.test/"])}
    for i in range(10):
        pages[f"{S}/p{i}"] = page(links=["/", "/hub", f"/p{(i + 1) % 10}"])
    pages[f"{S}/hub"] = page(links=["/"])
    fetcher = make_fetcher(pages, delay=0.005)

    controller = _crawl(fetcher, workers=8)

    assert sorted(controller.state.documents) == sorted(pages)
    assert fetcher.calls[f"{S}/hub"] == 1
    assert all(count == 1 for count in fetcher.calls.values())
    assert "https://elsewhere.test/" not in fetcher.calls
    assert controller.graph.in_degree(f"{S}/hub") == 10


def test_page_budget_leaves_unvisited_urls(make_fetcher, page):
    pages = {
        f"{S}/": page(links=["/a", "/b", "/c"]),
        f"{S}/a": page(), f"{S}/b": page(), f"{S}/c": page(),
    }
    controller = _crawl(make_fetcher(pages), workers=1, max_pages=2)
    snapshot = controller.snapshot([f"{S}/"])

    assert controller.state.pages_fetched == 2
    assert sorted(snapshot.documents) == [f"{S}/", f"{S}/a"]
    assert snapshot.unvisited == [f"{S}/b", f"{S}/c"]
    assert snapshot.is_excluded(f"{S}/b")


def test_redirect_is_followed_and_recorded(make_fetcher, page):
    pages = {f"{S}/": page(links=["/old"]), f"{S}/new": page()}
    fetcher = make_fetcher(pages, redirects={f"{S}/old": f"{S}/new"})
    snapshot = _crawl(fetcher).snapshot([f"{S}/"])

    assert f"{S}/new" in snapshot.documents
    assert f"{S}/old" not in snapshot.documents
    assert snapshot.redirects == {f"{S}/old": f"{S}/new"}
    assert snapshot.status_of(f"{S}/old") == 200
    assert snapshot.graph.edge_count(f"{S}/old", f"{S}/new") == 1


def test_http_errors_and_fetch_failures_become_findings(make_fetcher, page):
    pages = {f"{S}/": page(links=["/gone", "/slow"])}
    fetcher = make_fetcher(pages, errors={f"{S}/slow": FetchTimeout(f"{S}/slow", "Timed out after 1s")})
    snapshot = _crawl(fetcher).snapshot([f"{S}/"])

    by_rule = {f.rule_id: f for f in snapshot.crawl_findings}
    assert by_rule["HttpError"].page_url == f"{S}/gone"
    assert by_rule["HttpError"].detail == {"status_code": 404}
    assert by_rule["FetchFailed"].page_url == f"{S}/slow"
    assert by_rule["FetchFailed"].detail["error"] == "FetchTimeout"
    assert snapshot.status_of(f"{S}/gone") == 404
    assert set(snapshot.failures) == {f"{S}/gone", f"{S}/slow"}


def test_canonical_target_is_crawled(make_fetcher, page):
    pages = {f"{S}/": page(canonical="/home"), f"{S}/home": page()}
    fetcher = make_fetcher(pages)
    _crawl(fetcher)
    assert fetcher.calls[f"{S}/home"] == 1


def test_robots_txt_disallow_is_respected(make_fetcher, page):
    pages = {
        f"{S}/": page(links=["/private/x", "/public"]),
        f"{S}/public": page(),
        f"{S}/private/x": page(),
        f"{S}/robots.txt": (200, "User-agent: *\nDisallow: /private/\n", "text/plain"),
    }
    fetcher = make_fetcher(pages)
    snapshot = _crawl(fetcher, respect_robots_txt=True).snapshot([f"{S}/"])

    assert fetcher.calls[f"{S}/private/x"] == 0
    assert [f.page_url for f in snapshot.crawl_findings if f.rule_id == "RobotsDisallowed"] == [f"{S}/private/x"]
    assert snapshot.is_excluded(f"{S}/private/x")
    assert f"{S}/public" in snapshot.documents


def test_off_site_redirect_target_is_not_audited(make_fetcher, page):
    pages = {f"{S}/": page(links=["/out"]), "https://other.test/": page(links=["/elsewhere"])}
    fetcher = make_fetcher(pages, redirects={f"{S}/out": "https://other.test/"})
    snapshot = _crawl(fetcher).snapshot([f"{S}/"])

    assert sorted(snapshot.documents) == [f"{S}/"]
    assert snapshot.redirects == {f"{S}/out": "https://other.test/"}
    assert snapshot.status_of(f"{S}/out") == 200
    assert "https://other.test/" not in snapshot.graph.graph
    assert "https://other.test/elsewhere" not in fetcher.calls


def test_deeply_nested_json_ld_keeps_page_with_finding(make_fetcher, page):
    deep = '<script type="application/ld+json">' + '[' * 100000 + '</script>'
    pages = {f"{S}/": page(links=["/bad"]), f"{S}/bad": page(head=deep)}
    snapshot = _crawl(make_fetcher(pages)).snapshot([f"{S}/"])

    assert f"{S}/bad" in snapshot.documents
    assert [(f.rule_id, f.page_url) for f in snapshot.crawl_findings] == [("StructuredDataInvalid", f"{S}/bad")]


def test_unexpected_parser_error_becomes_parse_error_finding(make_fetcher, page):
    real_parser = PageParser(["site.test"])

    def parse(raw, url, **kwargs):
        if url == f"{S}/bad":
            raise RuntimeError("boom")
        return real_parser.parse(raw, url, **kwargs)

    parser = MagicMock(parse=MagicMock(side_effect=parse))
    pages = {f"{S}/": page(links=["/bad"]), f"{S}/bad": page()}
    snapshot = _crawl(make_fetcher(pages), parser=parser).snapshot([f"{S}/"])

    assert sorted(snapshot.documents) == [f"{S}/"]
    finding = next(f for f in snapshot.crawl_findings if f.page_url == f"{S}/bad")
    assert finding.rule_id == "ParseError"
    assert "RuntimeError: boom" in finding.message
    assert snapshot.failures[f"{S}/bad"] == "ParseError"
