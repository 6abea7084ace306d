# src/crawler/model.py (Crawl Layer)
import logging
from typing import Optional, List, Dict, Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class FetchResult(BaseModel):
    """Outcome of a single fetch: raw body, status and the post-redirect URL."""
    url: str
    final_url: str
    status_code: int
    content: bytes = b""
    content_type: Optional[str] = None
    redirect_chain: List[Dict[str, Any]] = Field(default_factory=list)
    elapsed_time: float = 0.0

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_html(self) -> bool:
        # Missing content type is treated as HTML (static file servers, fixtures).
        if not self.content_type:
            return True
        ct = self.content_type.lower()
        return "text/html" in ct or "application/xhtml" in ct

    @property
    def is_textual(self) -> bool:
        """HTML, plain text (robots.txt) and XML/gzip (sitemaps) bodies are worth downloading."""
        if self.is_html:
            return True
        ct = self.content_type.lower()
        return ct.startswith("text/") or "xml" in ct or "gzip" in ct

    @property
    def was_redirected(self) -> bool:
        return bool(self.redirect_chain)


@runtime_checkable
class Fetcher(Protocol):
    """The fetch capability consumed by the crawl controller."""

    async def fetch(self, url: str) -> FetchResult:
        ...


class CrawlSettings(BaseModel):
    max_pages: Optional[int] = Field(default=None, ge=1)
    workers: int = Field(default=8, ge=1)
    timeout: float = Field(default=20.0, gt=0, description="Per-request timeout in seconds.")
    max_redirects: int = Field(default=5, ge=0)
    max_retries: int = Field(default=2, ge=0)
    backoff_base: float = Field(default=0.5, ge=0)
    respect_robots_txt: bool = Field(default=False)
    show_progress: bool = Field(default=True)
    user_agent: Optional[str] = None

    @field_validator("max_pages", mode="before")
    @classmethod
    def _zero_means_unlimited(cls, v: Any) -> Any:
        if v in (0, "0", ""):
            return None
        return v
