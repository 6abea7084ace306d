# src/crawler/services/robots_txt_service.py
import asyncio
import logging
import urllib.robotparser
from typing import Dict
from urllib.parse import urljoin, urlparse

from crawler.exceptions import FetchError
from crawler.model import Fetcher
from crawler.utils.url_utils import UrlUtils

logger = logging.getLogger(__name__)


class RobotsTxtService:
    """
    Manages fetching, parsing, and caching of robots.txt files.
    robots.txt is retrieved through the same fetch capability as pages.
    """

    def __init__(self, fetcher: Fetcher, user_agent: str):
        """
        Initializes the service.

        Args:
            fetcher: The fetch capability used for the crawl.
            user_agent: The User-Agent string used for rule matching.
        """
        self._fetcher = fetcher
        self._user_agent = user_agent
        self._parser_cache: Dict[str, urllib.robotparser.RobotFileParser] = {}
        self._fetch_locks: Dict[str, asyncio.Lock] = {}

    async def _get_parser(self, base_url: str) -> urllib.robotparser.RobotFileParser:
        """
        Retrieves a parsed RobotFileParser for a domain, fetching if not
        cached. This method ensures a domain's robots.txt is fetched only once.
        """
        if base_url in self._parser_cache:
            return self._parser_cache[base_url]

        if base_url not in self._fetch_locks:
            self._fetch_locks[base_url] = asyncio.Lock()

        async with self._fetch_locks[base_url]:
            if base_url in self._parser_cache:
                return self._parser_cache[base_url]

            robots_url = urljoin(base_url, "/robots.txt")
            parser = urllib.robotparser.RobotFileParser(url=robots_url)
            # An empty rule set allows everything.
            parser.parse([])

            try:
                result = await self._fetcher.fetch(robots_url)
                if result.is_success and result.content:
                    content = result.content.decode("utf-8", errors="replace")
                    parser.parse(content.splitlines())
                    logger.debug("Fetched and parsed robots.txt for %s", base_url)
                else:
                    logger.debug(
                        "robots.txt not found for %s (status: %d). Allowing all.",
                        base_url, result.status_code
                    )
            except FetchError as e:
                logger.warning(
                    "Could not fetch robots.txt for %s: %s. Allowing all.", base_url, e
                )

            self._parser_cache[base_url] = parser
            return parser

    async def can_fetch(self, url: str) -> bool:
        """
        Checks if the crawler is allowed to fetch a URL based on rules.

        Args:
            url: The full URL to check.

        Returns:
            True if fetching is allowed, False otherwise.
        """
        base_url = UrlUtils.get_base_url(url)
        if not base_url:
            return False

        parser = await self._get_parser(base_url)
        allowed = parser.can_fetch(self._user_agent, url)
        if not allowed:
            logger.debug(f"robots.txt disallows {urlparse(url).path} for {self._user_agent}")
        return allowed
