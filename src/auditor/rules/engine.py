# src/auditor/rules/engine.py
import logging
from typing import Any, List, Optional

from auditor.model import Finding, Severity
from auditor.rules.core import AuditContext, RuleFunc
from auditor.rules.registry import RuleRegistry
from crawler.managers.crawl_data_manager import CrawlSnapshot

logger = logging.getLogger(__name__)

RULE_FAILED = "RuleFailed"


class RuleEngine:
    """
    Runs every registered rule over a finished crawl snapshot.

    Configured severity overrides are applied to the emitted findings and
    findings of disabled rules are dropped. Rules run one after another
    in registration order; none of them may mutate the snapshot. A rule that
    raises is skipped and reported as a site-wide RuleFailed finding.
    """

    def __init__(self, config: Any, rules: Optional[List[RuleFunc]] = None):
        self.config = config
        self.rules = rules if rules is not None else RuleRegistry.get_all_rules()

    def run(self, snapshot: CrawlSnapshot) -> List[Finding]:
        ctx = AuditContext(snapshot, self.config)

        findings: List[Finding] = []
        for rule in self.rules:
            if not any(self.config.is_enabled(rule_id) for rule_id in rule.rule_ids):
                continue
            try:
                produced = list(rule(ctx))
            except Exception as e:
                logger.error(f"Rule {rule.__name__} failed: {e}", exc_info=True)
                findings.append(Finding(
                    rule_id=RULE_FAILED,
                    severity=Severity.INFO,
                    message=f"Rule {rule.__name__} failed and was skipped: {type(e).__name__}: {e}",
                    detail={"rule": rule.__name__, "rule_ids": sorted(rule.rule_ids)},
                ))
                continue

            for finding in produced:
                if not self.config.is_enabled(finding.rule_id):
                    continue
                severity = self.config.severity_for(finding.rule_id, finding.severity)
                if severity != finding.severity:
                    finding = finding.with_severity(severity)
                findings.append(finding)

        logger.info("Rule engine produced %d finding(s) over %d page(s).", len(findings), len(ctx.pages))
        return findings
