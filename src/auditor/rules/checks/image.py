# src/auditor/rules/checks/image.py
from typing import Iterator

from auditor.model import Finding, Severity
from auditor.rules.core import AuditContext, audit_rule


@audit_rule(rule_ids=["MissingAlt"])
def check_alt_text(ctx: AuditContext) -> Iterator[Finding]:
    """
    Every <img> needs an alt attribute. alt="" marks a decorative image and passes.
    One finding per offending image.
    """
    for page in ctx.pages:
        for index, image in enumerate(page.images):
            if image.alt is None:
                yield ctx.finding(
                    "MissingAlt", Severity.ERROR, page.url,
                    f"Image has no alt attribute: {image.src}",
                    {"src": image.src, "index": index},
                )


@audit_rule(rule_ids=["MissingImageDimensions"])
def check_dimensions(ctx: AuditContext) -> Iterator[Finding]:
    """Explicit width and height avoid layout shift."""
    for page in ctx.pages:
        for index, image in enumerate(page.images):
            missing = [name for name in ("width", "height") if getattr(image, name) is None]
            if missing:
                yield ctx.finding(
                    "MissingImageDimensions", Severity.WARNING, page.url,
                    f"Image is missing {' and '.join(missing)}: {image.src}",
                    {"src": image.src, "index": index, "missing": missing},
                )


RULES = [check_alt_text, check_dimensions]
