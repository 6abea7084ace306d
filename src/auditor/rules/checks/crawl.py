# src/auditor/rules/checks/crawl.py
from typing import Iterator

from auditor.model import Finding, Severity
from auditor.rules.core import AuditContext, audit_rule


@audit_rule(rule_ids=[
    "HttpError", "FetchFailed", "ParseError", "RobotsDisallowed", "StructuredDataInvalid",
])
def check_crawl_outcome(ctx: AuditContext) -> Iterator[Finding]:
    """Problems recorded while fetching and parsing (non-2xx, fetch errors, invalid JSON-LD)."""
    yield from ctx.snapshot.crawl_findings


@audit_rule(rule_ids=["CrawlBudgetExceeded"])
def check_crawl_budget(ctx: AuditContext) -> Iterator[Finding]:
    """One site-wide finding listing the URLs left unvisited by max_pages."""
    unvisited = ctx.snapshot.unvisited
    if unvisited:
        yield ctx.finding(
            "CrawlBudgetExceeded", Severity.WARNING, None,
            f"Page budget of {ctx.config.max_pages} reached; {len(unvisited)} URL(s) were not crawled",
            {"max_pages": ctx.config.max_pages, "unvisited": sorted(unvisited)},
        )


RULES = [check_crawl_outcome, check_crawl_budget]
