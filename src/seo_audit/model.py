# src/seo_audit/model.py (Application Layer)
import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from auditor.model import Severity
from crawler.model import CrawlSettings
from crawler.services.generate_default_user_agent_service import generate_default_user_agent
from seo_audit.core.utils.config_loader import get_nested
from seo_audit.exceptions import ConfigError

logger = logging.getLogger(__name__)

CRAWLER_KEYS = (
    "max_pages", "workers", "timeout", "max_redirects", "max_retries",
    "backoff_base", "respect_robots_txt", "run_timeout", "show_progress",
)
RULE_KEYS = (
    "title_length_bounds", "description_length_bounds", "max_crawl_depth",
    "min_inbound_links", "severity_overrides", "disabled_rules",
)


class AuditConfig(BaseModel):
    """
    Everything one audit run needs. Passed explicitly to the coordinator;
    nothing reads settings from module-level state.
    """
    seed_urls: List[str] = Field(default_factory=list)
    sitemap: Optional[str] = Field(default=None, description="Sitemap file path or URL.")
    root_urls: List[str] = Field(default_factory=list, description="Depth roots; defaults to the seeds.")
    internal_hosts: List[str] = Field(default_factory=list, description="Defaults to the hosts of the seeds.")

    max_pages: Optional[int] = Field(default=None, ge=1)
    workers: int = Field(default=8, ge=1)
    timeout: float = Field(default=20.0, gt=0)
    max_redirects: int = Field(default=5, ge=0)
    max_retries: int = Field(default=2, ge=0)
    backoff_base: float = Field(default=0.5, ge=0)
    respect_robots_txt: bool = False
    run_timeout: Optional[float] = Field(default=None, gt=0)
    show_progress: bool = True
    user_agent: Optional[str] = None

    title_length_bounds: Tuple[int, int] = (45, 60)
    description_length_bounds: Tuple[int, int] = (120, 160)
    max_crawl_depth: int = Field(default=3, ge=0)
    min_inbound_links: int = Field(default=2, ge=0)
    severity_overrides: Dict[str, Severity] = Field(default_factory=dict)
    disabled_rules: List[str] = Field(default_factory=list)

    @field_validator("max_pages", "run_timeout", mode="before")
    @classmethod
    def _zero_means_unlimited(cls, v: Any) -> Any:
        if v in (0, "0", ""):
            return None
        return v

    @field_validator("severity_overrides", mode="before")
    @classmethod
    def _lowercase_severities(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {k: (s.strip().lower() if isinstance(s, str) else s) for k, s in v.items()}
        return v

    @model_validator(mode="after")
    def _check_bounds(self) -> "AuditConfig":
        for name in ("title_length_bounds", "description_length_bounds"):
            low, high = getattr(self, name)
            if low < 0 or low > high:
                raise ValueError(f"{name} must be (min, max) with 0 <= min <= max, got ({low}, {high})")
        return self

    def crawl_settings(self) -> CrawlSettings:
        return CrawlSettings(
            max_pages=self.max_pages,
            workers=self.workers,
            timeout=self.timeout,
            max_redirects=self.max_redirects,
            max_retries=self.max_retries,
            backoff_base=self.backoff_base,
            respect_robots_txt=self.respect_robots_txt,
            show_progress=self.show_progress,
            user_agent=self.user_agent,
        )

    def severity_for(self, rule_id: str, default: Severity) -> Severity:
        return self.severity_overrides.get(rule_id, default)

    def is_enabled(self, rule_id: str) -> bool:
        return rule_id not in self.disabled_rules

    @classmethod
    def from_settings(cls, settings: Optional[Dict[str, Any]] = None, **overrides: Any) -> "AuditConfig":
        """
        Builds a validated config from a settings dict (see settings.json).
        Keyword overrides win over settings; overrides set to None are ignored
        so unset CLI flags keep the configured value.
        """
        settings = settings or {}
        values: Dict[str, Any] = {}

        for key in CRAWLER_KEYS:
            value = get_nested(settings, f"crawler.{key}")
            if value is not None:
                values[key] = value
        for key in RULE_KEYS:
            value = get_nested(settings, f"rules.{key}")
            if value is not None:
                values[key] = value

        chrome_version = get_nested(settings, "user_agent.chrome_version")
        if chrome_version:
            values["user_agent"] = generate_default_user_agent(chrome_version)

        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid audit configuration: {e}") from e
