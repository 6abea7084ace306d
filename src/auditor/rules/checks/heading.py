# src/auditor/rules/checks/heading.py
from typing import Iterator

from auditor.model import Finding, Severity
from auditor.rules.core import AuditContext, audit_rule


@audit_rule(rule_ids=["H1Count"])
def check_h1_count(ctx: AuditContext) -> Iterator[Finding]:
    """Exactly one <h1> per page."""
    for page in ctx.pages:
        count = len(page.headings_at(1))
        if count == 1:
            continue
        message = "Page has no <h1>" if count == 0 else f"Page has {count} <h1> headings"
        yield ctx.finding("H1Count", Severity.WARNING, page.url, message, {"count": count})


RULES = [check_h1_count]
