import json
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]


SEVERITY_RANK = {Severity.ERROR: 0, Severity.WARNING: 1, Severity.INFO: 2}


class Finding(BaseModel):
    """
    A single defect or observation produced by a rule.
    Findings are immutable: the report assembler groups them but never edits them.
    """
    model_config = ConfigDict(frozen=True)

    rule_id: str
    severity: Severity
    page_url: Optional[str] = None  # None for site-wide findings
    message: str
    detail: Optional[Dict[str, Any]] = None

    @field_validator('severity', mode='before')
    @classmethod
    def parse_severity(cls, v: Any) -> Any:
        """Accepts 'ERROR', 'Warning', ... as well as Severity members."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    def sort_key(self) -> Tuple[str, int, str, str]:
        detail = json.dumps(self.detail, sort_keys=True, default=str) if self.detail else ""
        return self.rule_id, self.severity.rank, self.message, detail

    def with_severity(self, severity: Severity) -> "Finding":
        """Returns a copy with another severity (used for configured overrides)."""
        return self.model_copy(update={"severity": Severity(severity)})


class ReportSummary(BaseModel):
    errors: int = 0
    warnings: int = 0
    infos: int = 0
    pages_audited: int = 0
    total_findings: int = 0


class PageReport(BaseModel):
    url: str
    findings: List[Finding] = Field(default_factory=list)


class RuleReport(BaseModel):
    rule_id: str
    count: int = 0
    urls: List[str] = Field(default_factory=list)


class Report(BaseModel):
    """The deterministic, serializable result of one audit run."""
    summary: ReportSummary = Field(default_factory=ReportSummary)
    pages: List[PageReport] = Field(default_factory=list)
    site: List[Finding] = Field(default_factory=list)
    rules: List[RuleReport] = Field(default_factory=list)
    complete: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, indent=indent, ensure_ascii=False)

    def all_findings(self) -> List[Finding]:
        out = [f for page in self.pages for f in page.findings]
        out.extend(self.site)
        return out

    def findings_for(self, url: str) -> List[Finding]:
        for page in self.pages:
            if page.url == url:
                return list(page.findings)
        return []

    def count(self, rule_id: str) -> int:
        for rule in self.rules:
            if rule.rule_id == rule_id:
                return rule.count
        return 0
