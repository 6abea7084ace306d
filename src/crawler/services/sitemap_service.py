# src/crawler/services/sitemap_service.py
import gzip
import logging
import warnings
import zlib
from pathlib import Path
from typing import List, Optional, Tuple, Union

from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning

from crawler.exceptions import FetchError
from crawler.model import Fetcher
from crawler.utils.url_utils import UrlUtils

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


class SitemapService:
    """
    Resolves a sitemap (local file or URL) into a finite list of seed URLs.

    Supports <urlset> documents, one level of <sitemapindex> nesting, gzip
    compressed files and plain-text sitemaps (one URL per line).
    """

    def __init__(self, fetcher: Optional[Fetcher] = None, max_index_entries: int = 50):
        self.fetcher = fetcher
        self.max_index_entries = max_index_entries

    async def load(self, source: Union[str, Path]) -> List[str]:
        """Returns the normalized, de-duplicated URLs listed by the sitemap."""
        content = await self._read(source)
        if content is None:
            return []

        urls, children = self._parse_or_skip(source, content)
        for child in children[:self.max_index_entries]:
            child_source = self._child_source(source, child)
            child_content = await self._read(child_source)
            if child_content is None:
                continue
            child_urls, _ = self._parse_or_skip(child_source, child_content)
            urls.extend(child_urls)

        seen = set()
        out: List[str] = []
        for url in urls:
            normalized = UrlUtils.normalize_url(url)
            if normalized and normalized not in seen:
                seen.add(normalized)
                out.append(normalized)

        logger.info("Sitemap %s yielded %d URL(s).", source, len(out))
        return out

    def _parse_or_skip(self, source: Union[str, Path], content: bytes) -> Tuple[List[str], List[str]]:
        try:
            return self.parse(content)
        except (OSError, EOFError, zlib.error) as e:
            logger.warning("Sitemap %s could not be decompressed: %s", source, e)
            return [], []

    @staticmethod
    def parse(content: Union[bytes, str]):
        """
        Parses sitemap content.

        Returns (page_urls, child_sitemap_locations).
        """
        if isinstance(content, bytes):
            if content.startswith(GZIP_MAGIC):
                content = gzip.decompress(content)
            content = content.decode("utf-8", errors="replace")

        if "<" not in content:
            lines = [line.strip() for line in content.splitlines()]
            return [line for line in lines if line.startswith(("http://", "https://"))], []

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", XMLParsedAsHTMLWarning)
            soup = BeautifulSoup(content, "html.parser")

        if soup.find("sitemapindex"):
            children = [loc.get_text(strip=True) for loc in soup.select("sitemap > loc")]
            return [], [c for c in children if c]

        urls = [loc.get_text(strip=True) for loc in soup.select("url > loc")]
        return [u for u in urls if u], []

    @staticmethod
    def _child_source(parent: Union[str, Path], child: str) -> str:
        """Index entries are URLs; for local index files a same-named local file wins."""
        parent_path = Path(str(parent))
        if not str(parent).startswith(("http://", "https://")) and parent_path.exists():
            local = parent_path.parent / Path(child.rsplit("/", 1)[-1])
            if local.exists():
                return str(local)
        return child

    async def _read(self, source: Union[str, Path]) -> Optional[bytes]:
        source_str = str(source)
        if source_str.startswith(("http://", "https://")):
            if self.fetcher is None:
                logger.warning("No fetcher available to download sitemap %s", source_str)
                return None
            try:
                result = await self.fetcher.fetch(source_str)
            except FetchError as e:
                logger.warning("Could not fetch sitemap %s: %s", source_str, e)
                return None
            if not result.is_success:
                logger.warning("Sitemap %s returned HTTP %d", source_str, result.status_code)
                return None
            return result.content

        path = Path(source_str)
        if not path.is_file():
            logger.warning("Sitemap file not found: %s", path)
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            logger.warning("Could not read sitemap file %s: %s", path, e)
            return None
