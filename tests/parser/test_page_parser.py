import pytest

from parser.exceptions import ParseError
from parser.services.page_parse_service import PageParser

URL = "https://site.test/blog/post"

HTML = """<!DOCTYPE html>
<html lang="en-GB">
<head>
  <title>  Hello
     World </title>
  <meta name="Description" content="A short description.">
  <meta name="robots" content="noindex, follow">
  <meta property="og:title" content="OG Hello">
  <meta name="twitter:card" content="summary">
  <link rel="canonical" href="/blog/post/">
  <script type="application/ld+json">
    {"@context": "https://schema.org", "@graph": [
      {"@type": "Article", "headline": "Hello World"},
      {"@type": "BreadcrumbList", "itemListElement": []}
    ]}
  </script>
  <script type="application/ld+json">{"headline": "no type"}</script>
  <script type="application/ld+json">{not json</script>
</head>
<body>
  <h1>Hello <em>World</em></h1>
  <h2>Sub</h2>
  <img src="/a.png" alt="" width="100" height="50px">
  <img src="b.png">
  <img data-src="/lazy.png" alt="Lazy" loading="LAZY">
  <a href="/about/">About</a>
  <a href="https://SITE.test/contact#form" rel="nofollow">Contact</a>
  <a href="https://other.test/">Other</a>
  <a href="mailto:hi@site.test">Mail</a>
  <a href="#top">Top</a>
</body>
</html>
"""


@pytest.fixture
def parsed():
    return PageParser(["site.test"]).parse(HTML.encode("utf-8"), URL)


def test_head_fields(parsed):
    doc = parsed.document
    assert doc.url == URL
    assert doc.title == "Hello World"
    assert doc.meta_description == "A short description."
    assert doc.canonical_raw == "/blog/post/"
    assert doc.canonical_url == URL
    assert doc.lang == "en-GB"
    assert doc.og_tags == {"og:title": "OG Hello"}
    assert doc.twitter_tags == {"twitter:card": "summary"}
    assert doc.is_noindex
    assert doc.robots_meta.follow


def test_headings_in_document_order(parsed):
    assert [(h.level, h.text) for h in parsed.document.headings] == [(1, "Hello World"), (2, "Sub")]


def test_images_keep_alt_verbatim(parsed):
    images = parsed.document.images
    assert [img.src for img in images] == [
        "https://site.test/a.png", "https://site.test/blog/b.png", "https://site.test/lazy.png",
    ]
    assert images[0].alt == ""
    assert images[1].alt is None
    assert (images[0].width, images[0].height) == (100, 50)
    assert images[1].width is None
    assert images[2].loading == "lazy"


def test_anchors_are_resolved_and_classified(parsed):
    anchors = parsed.document.anchors
    resolved = [(a.href_resolved, a.is_internal) for a in anchors]
    assert resolved == [
        ("https://site.test/about", True),
        ("https://site.test/contact", True),
        ("https://other.test/", False),
        (None, False),
        (None, False),
    ]
    assert anchors[1].is_nofollow
    assert parsed.document.internal_targets == ["https://site.test/about", "https://site.test/contact"]


def test_structured_data_graph_is_flattened_and_invalid_blocks_reported(parsed):
    assert [item["@type"] for item in parsed.document.structured_data] == ["Article", "BreadcrumbList"]
    assert [f.rule_id for f in parsed.findings] == ["StructuredDataInvalid", "StructuredDataInvalid"]
    assert all(f.severity.value == "error" and f.page_url == URL for f in parsed.findings)
    assert [f.detail["block"] for f in parsed.findings] == [2, 3]
    assert parsed.findings[0].detail["error"] == "Missing @type"


def test_non_object_json_ld_is_invalid():
    html = '<html><head><script type="application/ld+json">[1, 2]</script></head><body></body></html>'
    result = PageParser().parse(html, URL)
    assert result.document.structured_data == []
    assert len(result.findings) == 1


def test_deeply_nested_json_ld_is_invalid_and_page_still_parses():
    html = (
        '<html><head><title>Deep</title>'
        '<script type="application/ld+json">' + '[' * 100000 + '</script>'
        '<script type="application/ld+json">{"@type": "WebPage", "name": "Deep"}</script>'
        '</head><body></body></html>'
    )
    result = PageParser().parse(html, URL)
    assert result.document.title == "Deep"
    assert [item["@type"] for item in result.document.structured_data] == ["WebPage"]
    assert [(f.rule_id, f.detail["block"]) for f in result.findings] == [("StructuredDataInvalid", 1)]


def test_image_without_source_is_kept():
    html = '<html><body><img data-lazy="x.png"></body></html>'
    images = PageParser().parse(html, URL).document.images
    assert [(img.src, img.alt) for img in images] == [("", None)]


def test_base_href_changes_resolution():
    html = '<html><head><base href="https://site.test/docs/"></head><body><a href="intro">x</a></body></html>'
    doc = PageParser(["site.test"]).parse(html, URL).document
    assert doc.anchors[0].href_resolved == "https://site.test/docs/intro"


def test_missing_title_is_none_and_broken_markup_is_tolerated():
    html = "<html><body><h1>Unclosed <b>bold<p>para<div><img src='/x.png' alt='x'></body>"
    doc = PageParser().parse(html, URL).document
    assert doc.title is None
    assert doc.lang is None
    assert doc.headings[0].level == 1
    assert doc.images[0].alt == "x"


def test_declared_charset_is_used_for_decoding():
    raw = '<html><head><meta charset="iso-8859-1"><title>Café</title></head></html>'.encode("iso-8859-1")
    assert PageParser().parse(raw, URL).document.title == "Café"


def test_undecodable_bytes_are_replaced():
    raw = b"<html><head><title>Bad \xff byte</title></head></html>"
    assert PageParser().parse(raw, URL).document.title == "Bad \ufffd byte"


@pytest.mark.parametrize("raw", [b"", b"   \n ", None])
def test_empty_document_raises_parse_error(raw):
    with pytest.raises(ParseError):
        PageParser().parse(raw, URL)
