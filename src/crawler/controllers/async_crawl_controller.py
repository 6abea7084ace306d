import asyncio
import logging
from typing import Iterable, List, Optional

from auditor.model import Finding, Severity
from crawler.controllers.async_controller import AsyncController
from crawler.exceptions import FetchError
from crawler.managers.adaptive_worker_manager import AdaptiveWorkerManager
from crawler.managers.crawl_data_manager import CrawlDataManager, CrawlSnapshot
from crawler.managers.progress_manager import ProgressManager
from crawler.model import CrawlSettings, Fetcher, FetchResult
from crawler.services.generate_default_user_agent_service import generate_default_user_agent
from crawler.services.robots_txt_service import RobotsTxtService
from crawler.utils.link_graph import LinkGraph
from crawler.utils.run_timers import RunTimers
from crawler.utils.url_utils import UrlUtils
from parser.exceptions import ParseError
from parser.services.page_parse_service import PageParser

logger = logging.getLogger(__name__)


class AsyncCrawlController(AsyncController):
    """
    Async crawl phase of an audit run.

    Seeds go into one FIFO queue; a bounded pool of workers fetches and parses
    each URL exactly once, feeds every document into the link graph and
    schedules newly discovered internal targets. The crawl ends when the queue
    drains. URLs that could not be fetched because the page budget ran out are
    recorded as unvisited instead of being dropped.
    """

    def __init__(
            self,
            fetcher: Fetcher,
            settings: CrawlSettings,
            internal_hosts: Iterable[str],
            parser: Optional[PageParser] = None,
            graph: Optional[LinkGraph] = None,
    ):
        super().__init__()
        self.fetcher = fetcher
        self.settings = settings
        self.internal_hosts = UrlUtils.normalize_hosts(internal_hosts)

        self.parser = parser or PageParser(self.internal_hosts)
        self.graph = graph or LinkGraph()
        self.state = CrawlDataManager(max_pages=settings.max_pages)
        self.queue: asyncio.Queue = asyncio.Queue()
        self.timer = RunTimers()

        self.robots_txt_service: Optional[RobotsTxtService] = None
        if settings.respect_robots_txt:
            user_agent = settings.user_agent or getattr(fetcher, "user_agent", None) or generate_default_user_agent()
            self.robots_txt_service = RobotsTxtService(fetcher, user_agent)

        self.worker_manager: Optional[AdaptiveWorkerManager] = None
        self.progress_manager: Optional[ProgressManager] = None

    async def run(self, seeds: List[str]) -> None:
        """
        Crawls from the given (normalized) seed URLs until the queue is empty.
        Cancellation stops all workers; the state gathered so far stays readable.
        """
        self.timer.start()
        for seed in seeds:
            await self._schedule(seed)

        self.progress_manager = ProgressManager(
            total=max(1, self.queue.qsize()),
            desc="Crawling",
            unit="url",
            max_pages=self.settings.max_pages,
            enabled=self.settings.show_progress,
        )
        self.worker_manager = AdaptiveWorkerManager(
            work_coro=self._process_url,
            queue=self.queue,
            concurrency=self.settings.workers,
            stop_event=self.stop_crawl_event,
        )
        self._worker_task = asyncio.create_task(self.worker_manager.run())

        try:
            await self.queue.join()
            await self.worker_manager.close()
            await self._worker_task
        finally:
            await self.shutdown()
            self.timer.stop()
            self.progress_manager.close(
                self.state.pages_fetched,
                self.state.request_failures,
                capped=self.state.budget_exhausted,
            )
            duration = self.timer.duration
            logger.info(
                "Crawl finished. %d pages fetched, %d documents, %d failures in %.2fs.",
                self.state.pages_fetched, len(self.state.documents), self.state.request_failures, duration
            )

    def snapshot(self, roots: Iterable[str], complete: bool = True) -> CrawlSnapshot:
        return self.state.snapshot(self.graph, list(roots), self.internal_hosts, complete=complete)

    async def _schedule(self, url: str) -> bool:
        """Queues url unless some worker already claimed it."""
        if not await self.state.claim(url):
            return False
        self.graph.add_node(url)
        await self.queue.put(url)
        if self.progress_manager:
            self.progress_manager.set_total(len(self.state.seen))
        return True

    async def _process_url(self, url: str) -> None:
        try:
            if self.robots_txt_service and not await self.robots_txt_service.can_fetch(url):
                self.state.add_finding(Finding(
                    rule_id="RobotsDisallowed",
                    severity=Severity.INFO,
                    page_url=url,
                    message="Skipped: robots.txt disallows crawling this URL",
                ))
                return

            if not await self.state.reserve_fetch(url):
                logger.debug("Page budget exhausted, leaving %s unvisited.", url)
                return

            try:
                result = await self.fetcher.fetch(url)
            except FetchError as e:
                self.state.record_status(url, e.status_code)
                self.state.record_failure(url, e.kind, Finding(
                    rule_id="FetchFailed",
                    severity=Severity.ERROR,
                    page_url=url,
                    message=f"Page could not be fetched ({e.kind}): {e.message}",
                    detail={"error": e.kind, "status_code": e.status_code},
                ))
                return

            await self._handle_result(url, result)
        finally:
            if self.progress_manager:
                self.progress_manager.advance(
                    pages_count=self.state.pages_fetched,
                    failures_count=self.state.request_failures
                )

    async def _handle_result(self, url: str, result: FetchResult) -> None:
        status = result.status_code
        final_url = UrlUtils.normalize_url(result.final_url) or url
        self.state.record_status(url, status)

        if final_url != url:
            self.state.record_redirect(url, final_url)
            self.state.record_status(final_url, status)
            if not UrlUtils.is_internal_link(final_url, self.internal_hosts):
                logger.debug("%s redirects off-site to %s, not auditing it.", url, final_url)
                return
            self.graph.add_redirect(url, final_url)
            if not await self.state.claim(final_url):
                logger.debug("%s redirects to already scheduled %s", url, final_url)
                return
            self.graph.add_node(final_url)

        if not result.is_success:
            self.state.record_failure(final_url, f"HTTP {status}", Finding(
                rule_id="HttpError",
                severity=Severity.ERROR,
                page_url=final_url,
                message=f"Page returned HTTP {status}",
                detail={"status_code": status},
            ))
            return

        if not result.is_html:
            logger.debug("Not an HTML document (%s): %s", result.content_type, final_url)
            return

        try:
            parsed = self.parser.parse(result.content, final_url, status_code=status, final_url=final_url)
        except ParseError as e:
            self._record_parse_error(final_url, e.reason)
            return
        except Exception as e:
            logger.exception("Unexpected error while parsing %s", final_url)
            self._record_parse_error(final_url, f"{type(e).__name__}: {e}")
            return

        document = parsed.document
        self.state.record_document(document, parsed.findings)
        self.graph.add_page(document)

        # Internal canonical targets are fetched too, so their status is known.
        targets = set(document.internal_targets)
        if UrlUtils.is_internal_link(document.canonical_url, self.internal_hosts):
            targets.add(document.canonical_url)
        for target in sorted(targets):
            await self._schedule(target)

    def _record_parse_error(self, url: str, reason: str) -> None:
        self.state.record_failure(url, "ParseError", Finding(
            rule_id="ParseError",
            severity=Severity.ERROR,
            page_url=url,
            message=f"Page could not be parsed: {reason}",
        ))
