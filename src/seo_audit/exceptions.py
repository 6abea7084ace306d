# src/seo_audit/exceptions.py
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from auditor.model import Report


class SeoAuditError(Exception):
    """Base class for errors that end an audit run."""


class ConfigError(SeoAuditError):
    """The run cannot start: invalid settings or no resolvable seed URLs."""


class AuditFailed(SeoAuditError):
    """The run started but produced nothing worth reporting (e.g. every seed failed)."""


class AuditAborted(SeoAuditError):
    """
    The overall run timeout expired.
    `partial_report` holds whatever could be assembled from the pages crawled so far.
    """

    def __init__(self, message: str, partial_report: Optional["Report"] = None):
        super().__init__(message)
        self.partial_report = partial_report
