import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Union

import pandas as pd

from auditor.model import Finding, PageReport, Report, ReportSummary, RuleReport, Severity
from seo_audit.core.utils.path_utils import PathUtils

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ['Severity', 'Rule', 'URL', 'Message', 'Detail']


class ReportAssembler:
    """
    Turns the flat list of findings into a deterministic Report.

    Pages are ordered by URL, findings within a page by
    (rule_id, severity rank, message, serialized detail); the same input always
    serializes to the same bytes.
    """

    def assemble(self, findings: Iterable[Finding], pages_audited: int, complete: bool = True) -> Report:
        by_page: Dict[str, List[Finding]] = defaultdict(list)
        site: List[Finding] = []
        by_rule: Dict[str, List[Finding]] = defaultdict(list)
        summary = ReportSummary(pages_audited=pages_audited)

        for finding in findings:
            if finding.page_url is None:
                site.append(finding)
            else:
                by_page[finding.page_url].append(finding)
            by_rule[finding.rule_id].append(finding)

            summary.total_findings += 1
            if finding.severity == Severity.ERROR:
                summary.errors += 1
            elif finding.severity == Severity.WARNING:
                summary.warnings += 1
            else:
                summary.infos += 1

        pages = [
            PageReport(url=url, findings=sorted(by_page[url], key=Finding.sort_key))
            for url in sorted(by_page)
        ]
        rules = [
            RuleReport(
                rule_id=rule_id,
                count=len(items),
                urls=sorted({f.page_url for f in items if f.page_url is not None}),
            )
            for rule_id, items in sorted(by_rule.items())
        ]

        report = Report(
            summary=summary,
            pages=pages,
            site=sorted(site, key=Finding.sort_key),
            rules=rules,
            complete=complete,
        )
        logger.info(
            "Report assembled: %d error(s), %d warning(s), %d info over %d page(s)%s.",
            summary.errors, summary.warnings, summary.infos, pages_audited,
            "" if complete else " (partial)",
        )
        return report


def findings_dataframe(report: Report) -> pd.DataFrame:
    """One row per finding, in report order."""
    rows = [
        {
            'Severity': f.severity.value,
            'Rule': f.rule_id,
            'URL': f.page_url or "",
            'Message': f.message,
            'Detail': json.dumps(f.detail, sort_keys=True) if f.detail else "",
        }
        for f in report.all_findings()
    ]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def export_findings(report: Report, path: Union[str, Path]) -> Path:
    """
    Writes all findings as a flat table. The file suffix selects the format:
    .xlsx gets a findings sheet plus a per-rule summary sheet, anything else CSV.
    """
    target = PathUtils.prepare_output_path(path)
    df_findings = findings_dataframe(report)

    if target.suffix.lower() == '.xlsx':
        df_summary = pd.DataFrame(
            [{'Rule': r.rule_id, 'Count': r.count, 'Pages': len(r.urls)} for r in report.rules],
            columns=['Rule', 'Count', 'Pages'],
        )
        with pd.ExcelWriter(target, engine='openpyxl') as writer:
            df_summary.to_excel(writer, sheet_name="Summary", index=False)
            df_findings.to_excel(writer, sheet_name="Findings", index=False)

            for sheet in writer.sheets.values():
                for col in sheet.columns:
                    max_len = max((len(str(cell.value)) for cell in col if cell.value is not None), default=0)
                    sheet.column_dimensions[col[0].column_letter].width = min(max_len + 2, 100)
    else:
        df_findings.to_csv(target, index=False)

    logger.info("Exported %d finding(s) to %s", len(df_findings), target)
    return target
