# src/crawler/utils/url_utils.py
import logging
from typing import Iterable, Optional
from urllib.parse import urlparse, urljoin, urlunparse

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}

# Hrefs that never point at a fetchable document.
UNRESOLVABLE_PREFIXES = ("javascript:", "mailto:", "tel:", "data:", "sms:", "ftp:")


class UrlUtils:
    """A collection of static methods for URL parsing and manipulation."""

    @staticmethod
    def normalize_url(url: str, base_url: Optional[str] = None) -> Optional[str]:
        """
        Creates the canonical key form of a URL.

        Scheme and host are lowercased, default ports and fragments are dropped
        and the trailing slash is stripped from every path except the root '/'.
        Relative URLs are resolved against base_url first. Returns None when the
        result is not an absolute http(s) URL.
        """
        if isinstance(base_url, bytes):
            base_url = base_url.decode('utf-8')
        if isinstance(url, bytes):
            url = url.decode('utf-8')
        if url is None:
            return None

        url = url.strip()
        absolute_url = urljoin(base_url, url) if base_url else url

        try:
            parsed_url = urlparse(absolute_url)
            port = parsed_url.port
        except ValueError:
            logger.debug(f"Could not parse invalid URL: {absolute_url}")
            return None

        scheme = parsed_url.scheme.lower()
        if scheme not in DEFAULT_PORTS or not parsed_url.hostname:
            return None

        host = parsed_url.hostname.lower()
        if port is not None and port != DEFAULT_PORTS[scheme]:
            host = f"{host}:{port}"

        path = parsed_url.path or '/'
        if len(path) > 1:
            path = path.rstrip('/') or '/'

        return urlunparse((scheme, host, path, parsed_url.params, parsed_url.query, ''))

    @staticmethod
    def get_host(url: str) -> Optional[str]:
        """Returns the lowercased host (with non-default port) of an absolute URL."""
        try:
            parsed_url = urlparse(url)
            if not parsed_url.hostname:
                return None
            port = parsed_url.port
        except ValueError:
            return None

        host = parsed_url.hostname.lower()
        if port is not None and port != DEFAULT_PORTS.get(parsed_url.scheme.lower()):
            host = f"{host}:{port}"
        return host

    @staticmethod
    def get_base_url(url: str) -> str | None:
        """
        Extracts and returns the core URL (scheme + netloc) from a given URL.
        """
        if isinstance(url, bytes):
            url = url.decode('utf-8')

        if not url.startswith(('http://', 'https://')):
            url = 'http://' + url

        try:
            parsed_url = urlparse(url)
            if not parsed_url.scheme or not parsed_url.netloc:
                logger.debug(f"Invalid URL format: {url}")
                return None
            return f"{parsed_url.scheme}://{parsed_url.netloc}"
        except ValueError:
            logger.debug(f"Could not parse invalid URL: {url}")
            return None

    @staticmethod
    def resolve_href(href: Optional[str], base_url: str) -> Optional[str]:
        """
        Resolves a raw href against the document URL.

        Returns the normalized absolute URL, or None for empty hrefs, in-page
        fragments and non-http protocols (javascript:, mailto:, ...).
        """
        if href is None:
            return None
        href = href.strip()
        if not href or href.startswith('#'):
            return None
        if href.lower().startswith(UNRESOLVABLE_PREFIXES):
            return None
        return UrlUtils.normalize_url(href, base_url)

    @staticmethod
    def normalize_hosts(hosts: Iterable[str]) -> frozenset:
        """Lowercases a host collection; full URLs are reduced to their host."""
        out = set()
        for host in hosts or ():
            if not host:
                continue
            host = host.strip().lower()
            if '://' in host:
                host = UrlUtils.get_host(host) or ''
            if host:
                out.add(host)
        return frozenset(out)

    @staticmethod
    def is_internal_link(url: Optional[str], internal_hosts: Iterable[str]) -> bool:
        """
        Checks if a resolved URL belongs to the site.

        The host must match one of internal_hosts exactly; subdomains are not
        implicitly included and the scheme is ignored.
        """
        if not url:
            return False
        host = UrlUtils.get_host(url)
        return host is not None and host in internal_hosts
