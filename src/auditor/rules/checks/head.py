# src/auditor/rules/checks/head.py
from collections import defaultdict
from typing import Dict, Iterator, List, Optional, Tuple

from auditor.model import Finding, Severity
from auditor.rules.core import AuditContext, audit_rule, normalize_text

OPEN_GRAPH_REQUIRED = ("og:title", "og:description", "og:image")


def _length_finding(
        ctx: AuditContext, rule_id: str, label: str, url: str, text: str, bounds: Tuple[int, int]
) -> Optional[Finding]:
    low, high = bounds
    length = len(text)
    if low <= length <= high:
        return None
    return ctx.finding(
        rule_id, Severity.INFO, url,
        f"{label} is {length} characters (expected {low}-{high})",
        {"length": length, "min": low, "max": high},
    )


@audit_rule(rule_ids=["MissingTitle", "TitleLength"])
def check_title(ctx: AuditContext) -> Iterator[Finding]:
    """<title> must be present, non-empty and within the configured length."""
    for page in ctx.pages:
        title = (page.title or "").strip()
        if not title:
            yield ctx.finding("MissingTitle", Severity.ERROR, page.url, "Page has no <title> or it is empty")
            continue
        finding = _length_finding(ctx, "TitleLength", "Title", page.url, title, ctx.config.title_length_bounds)
        if finding:
            yield finding


@audit_rule(rule_ids=["MissingDescription", "DescriptionLength"])
def check_description(ctx: AuditContext) -> Iterator[Finding]:
    """Meta description must be present, non-empty and within the configured length."""
    for page in ctx.pages:
        description = (page.meta_description or "").strip()
        if not description:
            yield ctx.finding(
                "MissingDescription", Severity.ERROR, page.url, "Page has no meta description or it is empty"
            )
            continue
        finding = _length_finding(
            ctx, "DescriptionLength", "Meta description", page.url, description,
            ctx.config.description_length_bounds,
        )
        if finding:
            yield finding


def _duplicates(ctx: AuditContext, rule_id: str, label: str, attr: str) -> Iterator[Finding]:
    groups: Dict[str, List[str]] = defaultdict(list)
    for page in ctx.pages:
        key = normalize_text(getattr(page, attr))
        if key:
            groups[key].append(page.url)

    for key in sorted(groups):
        urls = sorted(set(groups[key]))
        if len(urls) < 2:
            continue
        for url in urls:
            others = [u for u in urls if u != url]
            yield ctx.finding(
                rule_id, Severity.WARNING, url,
                f"{label} is shared with {len(others)} other page(s)",
                {"value": key, "duplicates": others},
            )


@audit_rule(rule_ids=["DuplicateTitle", "DuplicateDescription"])
def check_duplicates(ctx: AuditContext) -> Iterator[Finding]:
    """Titles and descriptions must be unique across the site (case and whitespace insensitive)."""
    yield from _duplicates(ctx, "DuplicateTitle", "Title", "title")
    yield from _duplicates(ctx, "DuplicateDescription", "Meta description", "meta_description")


@audit_rule(rule_ids=["MissingCanonical"])
def check_canonical(ctx: AuditContext) -> Iterator[Finding]:
    """Every page should declare <link rel="canonical">."""
    for page in ctx.pages:
        if not page.canonical_raw:
            yield ctx.finding("MissingCanonical", Severity.WARNING, page.url, "Page has no canonical link")


@audit_rule(rule_ids=["MissingLang"])
def check_lang(ctx: AuditContext) -> Iterator[Finding]:
    """<html> should declare the page language."""
    for page in ctx.pages:
        if not (page.lang or "").strip():
            yield ctx.finding("MissingLang", Severity.WARNING, page.url, "<html> has no lang attribute")


@audit_rule(rule_ids=["MissingOpenGraph"])
def check_open_graph(ctx: AuditContext) -> Iterator[Finding]:
    """og:title, og:description and og:image should all be set."""
    for page in ctx.pages:
        missing = [tag for tag in OPEN_GRAPH_REQUIRED if not (page.og_tags.get(tag) or "").strip()]
        if missing:
            yield ctx.finding(
                "MissingOpenGraph", Severity.INFO, page.url,
                f"Missing Open Graph tags: {', '.join(missing)}",
                {"missing": missing},
            )


@audit_rule(rule_ids=["NoindexPage"])
def check_noindex(ctx: AuditContext) -> Iterator[Finding]:
    """A noindex page that the site links to is usually a mistake."""
    for page in ctx.pages:
        if page.is_noindex and ctx.graph.in_degree(page.url) > 0:
            yield ctx.finding(
                "NoindexPage", Severity.INFO, page.url,
                "Page is marked noindex but receives internal links",
                {"robots": page.robots_meta.raw, "linked_from": ctx.graph.predecessors(page.url)},
            )


RULES = [check_title, check_description, check_duplicates, check_canonical, check_lang, check_open_graph, check_noindex]
