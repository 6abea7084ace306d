import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Set

from auditor.model import Finding
from crawler.utils.link_graph import LinkGraph
from parser.model import PageDocument

logger = logging.getLogger(__name__)


@dataclass
class CrawlSnapshot:
    """
    The completed (or, after an abort, partial) result of the crawl phase.
    Rules read it; nothing writes to it after the crawl has finished.
    """
    documents: Dict[str, PageDocument]
    statuses: Dict[str, Optional[int]]
    graph: LinkGraph
    roots: List[str]
    internal_hosts: FrozenSet[str] = frozenset()
    redirects: Dict[str, str] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)
    unvisited: List[str] = field(default_factory=list)
    crawl_findings: List[Finding] = field(default_factory=list)
    complete: bool = True

    @property
    def crawled_urls(self) -> List[str]:
        return sorted(self.documents)

    def resolve(self, url: str) -> str:
        """Follows recorded redirects to the URL the content was served from."""
        seen = set()
        while url in self.redirects and url not in seen:
            seen.add(url)
            url = self.redirects[url]
        return url

    def status_of(self, url: str) -> Optional[int]:
        """HTTP status observed for url (after redirects); None if never fetched."""
        if url in self.statuses:
            return self.statuses[url]
        return self.statuses.get(self.resolve(url))

    def __post_init__(self) -> None:
        self._excluded: Set[str] = set(self.unvisited) | {
            f.page_url for f in self.crawl_findings if f.rule_id == "RobotsDisallowed"
        }

    def is_excluded(self, url: str) -> bool:
        """URLs left unvisited on purpose (crawl budget, robots.txt)."""
        return url in self._excluded


class CrawlDataManager:
    """
    In-memory state of one crawl run.

    The seen-set and the page budget share a single asyncio.Lock: claiming a URL
    is an atomic check-and-insert, so two workers can never fetch the same URL.
    """

    def __init__(self, max_pages: Optional[int] = None) -> None:
        self.max_pages = max_pages
        self._lock = asyncio.Lock()
        self._seen: Set[str] = set()

        self.pages_fetched = 0
        self.request_failures = 0
        self.documents: Dict[str, PageDocument] = {}
        self.statuses: Dict[str, Optional[int]] = {}
        self.redirects: Dict[str, str] = {}
        self.failures: Dict[str, str] = {}
        self.unvisited: Set[str] = set()
        self.findings: List[Finding] = []

    @property
    def seen(self) -> FrozenSet[str]:
        return frozenset(self._seen)

    async def claim(self, url: str) -> bool:
        """Marks url as scheduled. Returns False if it was already claimed."""
        async with self._lock:
            if url in self._seen:
                return False
            self._seen.add(url)
            return True

    async def reserve_fetch(self, url: str) -> bool:
        """Consumes one unit of the page budget; records url as unvisited when exhausted."""
        async with self._lock:
            if self.max_pages is not None and self.pages_fetched >= self.max_pages:
                self.unvisited.add(url)
                return False
            self.pages_fetched += 1
            return True

    @property
    def budget_exhausted(self) -> bool:
        return self.max_pages is not None and self.pages_fetched >= self.max_pages

    def record_status(self, url: str, status: Optional[int]) -> None:
        self.statuses[url] = status

    def record_redirect(self, source_url: str, target_url: str) -> None:
        if source_url != target_url:
            self.redirects[source_url] = target_url

    def record_failure(self, url: str, reason: str, finding: Optional[Finding] = None) -> None:
        self.request_failures += 1
        self.failures[url] = reason
        if finding is not None:
            self.findings.append(finding)

    def record_document(self, doc: PageDocument, findings: Optional[List[Finding]] = None) -> None:
        self.documents[doc.url] = doc
        if findings:
            self.findings.extend(findings)

    def add_finding(self, finding: Finding) -> None:
        self.findings.append(finding)

    def snapshot(
            self,
            graph: LinkGraph,
            roots: List[str],
            internal_hosts: FrozenSet[str],
            complete: bool = True,
    ) -> CrawlSnapshot:
        return CrawlSnapshot(
            documents=dict(self.documents),
            statuses=dict(self.statuses),
            graph=graph,
            roots=sorted(roots),
            internal_hosts=internal_hosts,
            redirects=dict(self.redirects),
            failures=dict(self.failures),
            unvisited=sorted(self.unvisited),
            crawl_findings=list(self.findings),
            complete=complete,
        )
