import asyncio
import logging
import time
from typing import Optional, List, Dict, Any
from urllib.parse import urljoin

import aiohttp

from crawler.exceptions import FetchFailed, FetchTimeout, RedirectLoop
from crawler.model import CrawlSettings, FetchResult
from crawler.services.generate_default_user_agent_service import generate_default_user_agent

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = (301, 302, 303, 307, 308)


class _TransientStatus(Exception):
    """Internal signal: the server answered with a retryable 5xx."""

    def __init__(self, status: int):
        self.status = status
        super().__init__(f"HTTP {status}")


class PageFetcherService:
    """
    Core class for managing the asynchronous HTTP session.
    Owns the aiohttp.ClientSession and its timeout/header defaults.
    """

    def __init__(self, settings: Optional[CrawlSettings] = None, user_agent: Optional[str] = None):
        self.settings = settings or CrawlSettings()
        self.user_agent = user_agent or self.settings.user_agent or generate_default_user_agent()

        self.timeout = float(self.settings.timeout)
        self.max_redirects = int(self.settings.max_redirects)
        self.max_retries = int(self.settings.max_retries)
        self.backoff_base = float(self.settings.backoff_base)

        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def initialize(self):
        if not self.session or self.session.closed:
            connector = aiohttp.TCPConnector(limit=0, ttl_dns_cache=300)
            timeout_obj = aiohttp.ClientTimeout(total=self.timeout)
            default_headers = {
                'Accept': 'text/html,application/xhtml+xml;q=0.9,*/*;q=0.8',
                'Accept-Encoding': 'gzip, deflate',
                'User-Agent': self.user_agent
            }
            self.session = aiohttp.ClientSession(
                connector=connector,
                timeout=timeout_obj,
                headers=default_headers
            )
            logger.debug(f"Fetch Service initialized. Timeout: {self.timeout}s, retries: {self.max_retries}")

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()

    def _backoff_delay(self, attempt: int) -> float:
        """Exponential backoff: base, 2*base, 4*base, ..."""
        return self.backoff_base * (2 ** attempt)


class PageFetcher(PageFetcherService):
    """
    Fetches rendered HTML for a URL.

    Redirects are followed manually so the chain can be bounded and recorded.
    4xx answers are returned as data; 5xx answers, network errors and timeouts
    are retried with exponential backoff before failing.
    """

    async def fetch(self, url: str) -> FetchResult:
        if not self.session or self.session.closed:
            await self.initialize()

        start_total_time = time.perf_counter()
        last_status: Optional[int] = None
        last_error: str = ""
        timed_out = False

        for attempt in range(self.max_retries + 1):
            try:
                result = await self._fetch_once(url)
                result.elapsed_time = round(time.perf_counter() - start_total_time, 4)
                return result
            except _TransientStatus as e:
                last_status, last_error, timed_out = e.status, str(e), False
            except asyncio.TimeoutError:
                last_error, timed_out = f"Timed out after {self.timeout}s", True
            except aiohttp.ClientError as e:
                last_error, timed_out = f"{type(e).__name__}: {e}", False

            if attempt < self.max_retries:
                delay = self._backoff_delay(attempt)
                logger.debug("Retrying %s in %.2fs (attempt %d): %s", url, delay, attempt + 1, last_error)
                await asyncio.sleep(delay)

        logger.warning("Giving up on %s after %d attempts: %s", url, self.max_retries + 1, last_error)
        if timed_out:
            raise FetchTimeout(url, last_error, status_code=last_status)
        raise FetchFailed(url, last_error, status_code=last_status)

    async def _fetch_once(self, url: str) -> FetchResult:
        redirect_chain: List[Dict[str, Any]] = []
        visited = {url}
        current_url = url
        request_timeout = aiohttp.ClientTimeout(total=self.timeout)

        while True:
            async with self.session.get(
                    current_url,
                    allow_redirects=False,
                    timeout=request_timeout
            ) as response:
                status = response.status
                location = response.headers.get('Location')

                if status in REDIRECT_STATUSES and location:
                    next_url = urljoin(current_url, location)
                    redirect_chain.append({'source': current_url, 'target': next_url, 'status': status})
                    if next_url in visited:
                        raise RedirectLoop(url, f"Redirect loop via {next_url}", status_code=status)
                    if len(redirect_chain) > self.max_redirects:
                        raise RedirectLoop(
                            url, f"More than {self.max_redirects} redirects", status_code=status
                        )
                    visited.add(next_url)
                    current_url = next_url
                    continue

                if status >= 500:
                    raise _TransientStatus(status)

                content_type = response.headers.get('Content-Type', '')
                result = FetchResult(
                    url=url,
                    final_url=str(current_url),
                    status_code=status,
                    content_type=content_type or None,
                    redirect_chain=redirect_chain,
                )
                # Assets (images, pdf, ...) keep their status only.
                if result.is_textual:
                    result.content = await response.read()
                else:
                    logger.debug(f"Asset detected ({content_type}): {current_url}. Skipping body.")
                return result
