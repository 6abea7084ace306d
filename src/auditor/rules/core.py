# src/auditor/rules/core.py
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from auditor.model import Finding, Severity
from crawler.managers.crawl_data_manager import CrawlSnapshot
from crawler.utils.link_graph import DepthMap, LinkGraph
from crawler.utils.url_utils import UrlUtils
from parser.model import PageDocument

RuleFunc = Callable[["AuditContext"], Iterable[Finding]]


def audit_rule(rule_ids: List[str]):
    """
    Decorator to declare which rule IDs a rule function emits.
    Facilitates auto-discovery and listing by the RuleRegistry.
    """
    def decorator(func):
        func.rule_ids = list(rule_ids)
        return func
    return decorator


def normalize_text(value: Any) -> str:
    """Trim, collapse whitespace, casefold. Used for every text comparison."""
    if not isinstance(value, str):
        return ""
    return " ".join(value.split()).casefold()


class AuditContext:
    """
    Read-only view of a finished crawl handed to every rule.

    Rules only read from the context; anything expensive (depths) is computed
    once on first use.
    """

    def __init__(self, snapshot: CrawlSnapshot, config: Any):
        self.snapshot = snapshot
        self.config = config
        self._pages: Optional[List[PageDocument]] = None
        self._depths: Optional[DepthMap] = None
        self._roots: Optional[List[str]] = None

    @property
    def documents(self) -> Mapping[str, PageDocument]:
        return MappingProxyType(self.snapshot.documents)

    @property
    def graph(self) -> LinkGraph:
        return self.snapshot.graph

    @property
    def pages(self) -> List[PageDocument]:
        """Successfully fetched and parsed pages, ordered by URL."""
        if self._pages is None:
            self._pages = [
                self.snapshot.documents[url] for url in self.snapshot.crawled_urls
                if 200 <= self.snapshot.documents[url].status_code < 300
            ]
        return self._pages

    @property
    def roots(self) -> List[str]:
        """Declared roots plus the pages they redirect to."""
        if self._roots is None:
            roots = set(self.snapshot.roots)
            roots.update(self.snapshot.resolve(r) for r in self.snapshot.roots)
            self._roots = sorted(roots)
        return self._roots

    def is_root(self, url: str) -> bool:
        return url in self.roots

    @property
    def depths(self) -> DepthMap:
        if self._depths is None:
            self._depths = self.graph.compute_depths(self.roots)
        return self._depths

    def depth(self, url: str) -> float:
        return self.depths.depth(url)

    def path_to(self, url: str) -> Optional[List[str]]:
        return self.depths.path_to(url)

    def is_internal(self, url: Optional[str]) -> bool:
        return UrlUtils.is_internal_link(url, self.snapshot.internal_hosts)

    def finding(
            self,
            rule_id: str,
            severity: Severity,
            page_url: Optional[str],
            message: str,
            detail: Optional[Dict[str, Any]] = None,
    ) -> Finding:
        return Finding(rule_id=rule_id, severity=severity, page_url=page_url, message=message, detail=detail)


