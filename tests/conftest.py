import asyncio
from collections import Counter
from typing import Dict, Iterable, Optional

import pytest

from crawler.exceptions import FetchError
from crawler.model import FetchResult

SITE = "https://site.test"


class FakeFetcher:
    """
    In-memory site. `pages` maps URL -> html, (status, html) or
    (status, body, content_type); unknown URLs answer 404.
    """

    def __init__(
            self,
            pages: Dict[str, object],
            redirects: Optional[Dict[str, str]] = None,
            errors: Optional[Dict[str, FetchError]] = None,
            delay: float = 0.0,
            slow: Optional[Dict[str, float]] = None,
    ):
        self.pages = pages
        self.redirects = redirects or {}
        self.errors = errors or {}
        self.delay = delay
        self.slow = slow or {}
        self.calls = Counter()
        self.user_agent = "TestBot/1.0"

    async def fetch(self, url: str) -> FetchResult:
        self.calls[url] += 1
        await asyncio.sleep(self.slow.get(url, self.delay))
        if url in self.errors:
            raise self.errors[url]

        chain = []
        final = url
        while final in self.redirects:
            chain.append({"source": final, "target": self.redirects[final], "status": 301})
            final = self.redirects[final]

        entry = self.pages.get(final)
        if entry is None:
            status, body, content_type = 404, "<html><body>Not found</body></html>", "text/html"
        elif isinstance(entry, tuple):
            status, body = entry[0], entry[1]
            content_type = entry[2] if len(entry) > 2 else "text/html; charset=utf-8"
        else:
            status, body, content_type = 200, entry, "text/html; charset=utf-8"

        return FetchResult(
            url=url,
            final_url=final,
            status_code=status,
            content=body.encode("utf-8"),
            content_type=content_type,
            redirect_chain=chain,
        )


def build_page(
        title: Optional[str] = "A page title that is long enough to pass the check",
        description: Optional[str] = None,
        links: Iterable[str] = (),
        canonical: Optional[str] = None,
        lang: Optional[str] = "en",
        h1: Optional[str] = "Heading",
        head: str = "",
        body: str = "",
) -> str:
    parts = [f'<html lang="{lang}">' if lang else "<html>", "<head>"]
    if title is not None:
        parts.append(f"<title>{title}</title>")
    if description is not None:
        parts.append(f'<meta name="description" content="{description}">')
    if canonical is not None:
        parts.append(f'<link rel="canonical" href="{canonical}">')
    parts.append(head)
    parts.append("</head><body>")
    if h1 is not None:
        parts.append(f"<h1>{h1}</h1>")
    parts.extend(f'<a href="{href}">{href}</a>' for href in links)
    parts.append(body)
    parts.append("</body></html>")
    return "".join(parts)


@pytest.fixture
def site():
    return SITE


@pytest.fixture
def make_fetcher():
    return FakeFetcher


@pytest.fixture
def page():
    return build_page
