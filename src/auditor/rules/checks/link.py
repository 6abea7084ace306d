# src/auditor/rules/checks/link.py
from typing import Dict, Iterator, List

from auditor.model import Finding, Severity
from auditor.rules.core import AuditContext, audit_rule
from crawler.utils.link_graph import UNREACHABLE


@audit_rule(rule_ids=["OrphanPage"])
def check_orphans(ctx: AuditContext) -> Iterator[Finding]:
    """A crawled page that no other page links to (roots excepted)."""
    for page in ctx.pages:
        if ctx.is_root(page.url):
            continue
        if ctx.graph.in_degree(page.url) == 0:
            yield ctx.finding("OrphanPage", Severity.WARNING, page.url, "No internal page links to this page")


@audit_rule(rule_ids=["CrawlDepthViolation"])
def check_crawl_depth(ctx: AuditContext) -> Iterator[Finding]:
    """Pages deeper than max_crawl_depth clicks from every root, or not reachable at all."""
    max_depth = ctx.config.max_crawl_depth
    for page in ctx.pages:
        depth = ctx.depth(page.url)
        if depth == UNREACHABLE:
            yield ctx.finding(
                "CrawlDepthViolation", Severity.WARNING, page.url,
                "Page is not reachable from any root by internal links",
                {"depth": None, "max_depth": max_depth},
            )
        elif depth > max_depth:
            yield ctx.finding(
                "CrawlDepthViolation", Severity.WARNING, page.url,
                f"Page is {int(depth)} clicks from the nearest root (max {max_depth})",
                {"depth": int(depth), "max_depth": max_depth, "path": ctx.path_to(page.url)},
            )


@audit_rule(rule_ids=["BrokenInternalLink"])
def check_broken_links(ctx: AuditContext) -> Iterator[Finding]:
    """
    Internal anchor and canonical targets must resolve to a 2xx page.
    One finding per distinct target per page; targets skipped on purpose
    (page budget, robots.txt) are not reported.
    """
    snapshot = ctx.snapshot
    for page in ctx.pages:
        via: Dict[str, List[str]] = {}
        for target in page.internal_targets:
            via.setdefault(target, ["anchor"])
        if ctx.is_internal(page.canonical_url):
            via.setdefault(page.canonical_url, [])
            if "canonical" not in via[page.canonical_url]:
                via[page.canonical_url].append("canonical")

        for target in sorted(via):
            if snapshot.is_excluded(target):
                continue
            status = snapshot.status_of(target)
            if status is not None and 200 <= status < 300:
                continue

            failed = snapshot.resolve(target) in snapshot.failures or target in snapshot.failures
            if status is None and not failed:
                if not snapshot.complete:
                    # The run stopped before this target was fetched.
                    continue
                reason = "never reached by the crawl"
            elif status is None:
                reason = snapshot.failures.get(target) or snapshot.failures.get(snapshot.resolve(target))
            else:
                reason = f"HTTP {status}"

            yield ctx.finding(
                "BrokenInternalLink", Severity.ERROR, page.url,
                f"Internal link to {target} is broken ({reason})",
                {"target": target, "status_code": status, "via": via[target]},
            )


@audit_rule(rule_ids=["ThinInternalLinking"])
def check_thin_linking(ctx: AuditContext) -> Iterator[Finding]:
    """Pages that receive fewer than min_inbound_links internal anchors."""
    minimum = ctx.config.min_inbound_links
    for page in ctx.pages:
        if ctx.is_root(page.url):
            continue
        inbound = ctx.graph.inbound_count(page.url)
        if 0 < inbound < minimum:
            yield ctx.finding(
                "ThinInternalLinking", Severity.INFO, page.url,
                f"Page receives only {inbound} internal link(s) (min {minimum})",
                {"inbound": inbound, "min": minimum},
            )


RULES = [check_orphans, check_crawl_depth, check_broken_links, check_thin_linking]
