import pytest

from crawler.utils.url_utils import UrlUtils


@pytest.mark.parametrize("raw, expected", [
    ("HTTPS://Site.Test:443/About/#team", "https://site.test/About"),
    ("https://site.test", "https://site.test/"),
    ("https://site.test/", "https://site.test/"),
    ("http://site.test:80/a/b/", "http://site.test/a/b"),
    ("http://site.test:8080/a/", "http://site.test:8080/a"),
    ("https://site.test/search?q=1#top", "https://site.test/search?q=1"),
])
def test_normalize_url(raw, expected):
    assert UrlUtils.normalize_url(raw) == expected


@pytest.mark.parametrize("raw", ["mailto:info@site.test", "ftp://site.test/file", "not a url", ""])
def test_normalize_url_rejects_non_http(raw):
    assert UrlUtils.normalize_url(raw) is None


def test_normalize_url_resolves_relative():
    assert UrlUtils.normalize_url("../b/", "https://site.test/a/c") == "https://site.test/b"


@pytest.mark.parametrize("href", ["#top", "", "javascript:void(0)", "mailto:a@b.c", "tel:+3100", "data:image/png;base64,AA"])
def test_resolve_href_ignores_non_navigational(href):
    assert UrlUtils.resolve_href(href, "https://site.test/") is None


def test_resolve_href_normalizes():
    assert UrlUtils.resolve_href(" /Contact/ ", "https://SITE.test/about") == "https://site.test/Contact"


def test_is_internal_link_is_exact_host_match():
    hosts = UrlUtils.normalize_hosts(["Site.Test"])
    assert UrlUtils.is_internal_link("http://site.test/x", hosts)
    assert UrlUtils.is_internal_link("https://site.test/", hosts)
    assert not UrlUtils.is_internal_link("https://blog.site.test/x", hosts)
    assert not UrlUtils.is_internal_link("https://other.test/", hosts)
    assert not UrlUtils.is_internal_link(None, hosts)


def test_normalize_hosts_accepts_urls():
    assert UrlUtils.normalize_hosts(["https://Site.Test/path", "", "cdn.site.test"]) == {"site.test", "cdn.site.test"}
