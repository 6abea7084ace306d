import asyncio
import logging
from enum import Enum
from typing import List, Optional, Tuple

from auditor.controllers.report_controller import ReportAssembler
from auditor.model import Report
from auditor.rules.engine import RuleEngine
from crawler.controllers.async_crawl_controller import AsyncCrawlController
from crawler.managers.crawl_data_manager import CrawlSnapshot
from crawler.model import Fetcher
from crawler.services.async_page_fetcher_service import PageFetcher
from crawler.services.sitemap_service import SitemapService
from crawler.utils.run_timers import RunTimers
from crawler.utils.url_utils import UrlUtils
from seo_audit.exceptions import AuditAborted, AuditFailed, ConfigError
from seo_audit.model import AuditConfig

logger = logging.getLogger(__name__)


class AuditState(str, Enum):
    IDLE = "idle"
    SEEDING = "seeding"
    CRAWLING = "crawling"
    ANALYZING = "analyzing"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"


class AuditCoordinator:
    """
    Drives one audit run: seeding, crawling, rule analysis and reporting.

    States advance strictly in order (IDLE -> SEEDING -> CRAWLING -> ANALYZING
    -> REPORTING -> DONE); FAILED can be entered from any state except DONE.
    Analysis never starts before the crawl has finished. A coordinator runs once.
    """

    def __init__(
            self,
            config: AuditConfig,
            fetcher: Optional[Fetcher] = None,
            rule_engine: Optional[RuleEngine] = None,
            assembler: Optional[ReportAssembler] = None,
    ):
        self.config = config
        self.fetcher = fetcher
        self.rule_engine = rule_engine or RuleEngine(config)
        self.assembler = assembler or ReportAssembler()

        self.state = AuditState.IDLE
        self.history: List[AuditState] = [AuditState.IDLE]
        self.timer = RunTimers()

        self.seeds: List[str] = []
        self.roots: List[str] = []
        self.internal_hosts: frozenset = frozenset()
        self.crawl_controller: Optional[AsyncCrawlController] = None
        self.snapshot: Optional[CrawlSnapshot] = None
        self.report: Optional[Report] = None

    def _transition(self, state: AuditState) -> None:
        if self.state in (AuditState.DONE, AuditState.FAILED):
            raise RuntimeError(f"Cannot leave terminal state {self.state.value}")
        self.timer.stop(self.state.value)
        logger.info("Audit state: %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)
        self.timer.start(state.value)

    def _fail(self) -> None:
        if self.state not in (AuditState.DONE, AuditState.FAILED):
            self._transition(AuditState.FAILED)

    async def run(self) -> Report:
        """
        Runs the full audit and returns the report.

        Raises:
            ConfigError: no seed URL could be resolved.
            AuditFailed: nothing could be crawled.
            AuditAborted: run_timeout expired; carries a partial report.
        """
        if self.state != AuditState.IDLE:
            raise RuntimeError("An AuditCoordinator can only run once")

        owns_fetcher = self.fetcher is None
        if owns_fetcher:
            self.fetcher = PageFetcher(self.config.crawl_settings())

        self.timer.start()
        try:
            return await self._run()
        except BaseException:
            self._fail()
            raise
        finally:
            if owns_fetcher:
                await self.fetcher.close()
            self.timer.stop()
            logger.info("Audit finished in state %s after %.2fs.", self.state.value, self.timer.duration)

    async def _run(self) -> Report:
        run_timeout = self.config.run_timeout
        try:
            if run_timeout:
                await asyncio.wait_for(self._seed_and_crawl(), timeout=run_timeout)
            else:
                await self._seed_and_crawl()
        except asyncio.TimeoutError:
            logger.error("Run timeout of %.1fs expired during %s.", run_timeout, self.state.value)
            partial = self._partial_report()
            self._fail()
            raise AuditAborted(f"Audit aborted after {run_timeout}s", partial_report=partial)

        self.snapshot = self.crawl_controller.snapshot(self.roots, complete=True)
        if not self.snapshot.documents:
            self._fail()
            reasons = ", ".join(f"{url}: {reason}" for url, reason in sorted(self.snapshot.failures.items()))
            raise AuditFailed(f"No page could be crawled from {len(self.seeds)} seed URL(s). {reasons}".strip())

        self._transition(AuditState.ANALYZING)
        findings = self.rule_engine.run(self.snapshot)

        self._transition(AuditState.REPORTING)
        self.report = self.assembler.assemble(findings, pages_audited=len(self.snapshot.documents))

        self._transition(AuditState.DONE)
        return self.report

    async def _seed_and_crawl(self) -> None:
        self._transition(AuditState.SEEDING)
        self.seeds, self.roots = await self._resolve_seeds()
        self.internal_hosts = UrlUtils.normalize_hosts(
            self.config.internal_hosts or [UrlUtils.get_host(url) for url in self.seeds]
        )
        logger.info(
            "Seeded %d URL(s); roots: %s; internal hosts: %s",
            len(self.seeds), ", ".join(self.roots), ", ".join(sorted(self.internal_hosts))
        )

        self._transition(AuditState.CRAWLING)
        self.crawl_controller = AsyncCrawlController(
            fetcher=self.fetcher,
            settings=self.config.crawl_settings(),
            internal_hosts=self.internal_hosts,
        )
        await self.crawl_controller.run(self.seeds)

    async def _resolve_seeds(self) -> Tuple[List[str], List[str]]:
        explicit: List[str] = []
        for raw in self.config.seed_urls:
            url = UrlUtils.normalize_url(raw)
            if url is None:
                logger.warning("Ignoring invalid seed URL: %s", raw)
                continue
            explicit.append(url)

        from_sitemap: List[str] = []
        if self.config.sitemap:
            from_sitemap = await SitemapService(self.fetcher).load(self.config.sitemap)

        seeds = list(dict.fromkeys(explicit + from_sitemap))
        if not seeds:
            self._fail()
            raise ConfigError("No seed URLs: pass at least one valid URL or a sitemap that lists pages")

        roots = [u for u in (UrlUtils.normalize_url(r) for r in self.config.root_urls) if u]
        if not roots:
            roots = list(dict.fromkeys(explicit)) or from_sitemap[:1]
        return seeds, roots

    def _partial_report(self) -> Report:
        """Analyzes whatever was crawled before the timeout (empty if crawling never started)."""
        if self.crawl_controller is None:
            return self.assembler.assemble([], pages_audited=0, complete=False)
        self.snapshot = self.crawl_controller.snapshot(self.roots, complete=False)
        findings = self.rule_engine.run(self.snapshot)
        return self.assembler.assemble(findings, pages_audited=len(self.snapshot.documents), complete=False)
