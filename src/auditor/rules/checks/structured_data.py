# src/auditor/rules/checks/structured_data.py
from typing import Any, Iterator, List, Set

from auditor.model import Finding, Severity
from auditor.rules.core import AuditContext, audit_rule, normalize_text
from parser.model import PageDocument

# Types whose `name` describes the page itself, not some embedded entity.
PAGE_PRIMARY_TYPES = {
    "Article", "BlogPosting", "NewsArticle", "Product", "WebPage", "Recipe", "Event", "Course",
}


def _types(item: dict) -> List[str]:
    value = item.get("@type")
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [t for t in value if isinstance(t, str)]
    return []


def _visible_titles(page: PageDocument) -> Set[str]:
    texts = page.headings_at(1) + page.headings_at(2) + [page.title or ""]
    return {normalize_text(t) for t in texts if normalize_text(t)}


def _descriptions(page: PageDocument) -> Set[str]:
    texts = [page.meta_description or "", page.og_tags.get("og:description", "")]
    return {normalize_text(t) for t in texts if normalize_text(t)}


def _mismatch(ctx: AuditContext, page: PageDocument, item_type: str, field: str, value: Any, against: str):
    return ctx.finding(
        "StructuredDataMismatch", Severity.ERROR, page.url,
        f"JSON-LD {item_type}.{field} does not match the page's {against}",
        {"type": item_type, "field": field, "value": value},
    )


@audit_rule(rule_ids=["StructuredDataMismatch"])
def check_structured_data(ctx: AuditContext) -> Iterator[Finding]:
    """
    JSON-LD must mirror the visible page: headline (and name for page-level
    types) must equal the title or an h1/h2; description must equal the meta
    or og description when the page has one.
    """
    for page in ctx.pages:
        if not page.structured_data:
            continue
        titles = _visible_titles(page)
        descriptions = _descriptions(page)

        for item in page.structured_data:
            types = _types(item)
            item_type = types[0] if types else "Thing"

            fields = ["headline"]
            if PAGE_PRIMARY_TYPES.intersection(types):
                fields.append("name")
            for field in fields:
                value = item.get(field)
                if isinstance(value, str) and normalize_text(value) not in titles:
                    yield _mismatch(ctx, page, item_type, field, value, "title or headings")

            description = item.get("description")
            if isinstance(description, str) and descriptions and normalize_text(description) not in descriptions:
                yield _mismatch(ctx, page, item_type, "description", description, "meta description")


RULES = [check_structured_data]
