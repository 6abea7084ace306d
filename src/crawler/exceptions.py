# src/crawler/exceptions.py
from typing import Optional


class FetchError(Exception):
    """Base class for failures of the page fetcher."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.message = message
        self.status_code = status_code
        super().__init__(f"{message} ({url})")

    @property
    def kind(self) -> str:
        return type(self).__name__


class FetchTimeout(FetchError):
    """The per-request timeout elapsed (after retries)."""


class RedirectLoop(FetchError):
    """Redirect chain revisited a URL or exceeded the redirect bound."""


class FetchFailed(FetchError):
    """Transient 5xx/network errors persisted beyond the retry budget."""
