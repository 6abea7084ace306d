import json
from unittest.mock import AsyncMock, patch

from auditor.controllers.report_controller import ReportAssembler
from auditor.model import Finding
from seo_audit.app import main
from seo_audit.exceptions import AuditAborted

S = "https://site.test"


def _report(*severities, complete=True):
    findings = [
        Finding(rule_id=f"Rule{i}", severity=sev, page_url=f"{S}/", message="m")
        for i, sev in enumerate(severities)
    ]
    return ReportAssembler().assemble(findings, pages_audited=1, complete=complete)


def test_rules_command_lists_rule_ids(capsys):
    assert main(["rules", "--log-level", "CRITICAL"]) == 0
    out = capsys.readouterr().out
    assert "MissingAlt" in out
    assert "CrawlDepthViolation" in out


def test_run_without_seeds_exits_1(capsys):
    assert main(["run", "--log-level", "CRITICAL", "--no-progress"]) == 1
    assert "No seed URLs" in capsys.readouterr().err


@patch("seo_audit.app.AuditCoordinator")
def test_run_writes_report_and_applies_cli_overrides(mock_coordinator_class, tmp_path):
    mock_coordinator_class.return_value.run = AsyncMock(return_value=_report("warning"))
    output = tmp_path / "report.json"

    code = main([
        "run", f"{S}/", "--max-pages", "5", "--max-depth", "2", "--host", "site.test",
        "--no-progress", "--output", str(output), "--log-level", "CRITICAL",
    ])

    assert code == 0
    config = mock_coordinator_class.call_args.args[0]
    assert config.seed_urls == [f"{S}/"]
    assert config.max_pages == 5
    assert config.max_crawl_depth == 2
    assert config.internal_hosts == ["site.test"]
    assert config.show_progress is False
    assert json.loads(output.read_text(encoding="utf-8"))["summary"]["warnings"] == 1


@patch("seo_audit.app.AuditCoordinator")
def test_fail_on_threshold(mock_coordinator_class):
    mock_coordinator_class.return_value.run = AsyncMock(return_value=_report("warning", "info"))
    assert main(["run", f"{S}/", "--fail-on", "error", "--log-level", "CRITICAL"]) == 0
    assert main(["run", f"{S}/", "--fail-on", "warning", "--log-level", "CRITICAL"]) == 2


@patch("seo_audit.app.AuditCoordinator")
def test_report_goes_to_stdout_and_export_is_written(mock_coordinator_class, tmp_path, capsys):
    mock_coordinator_class.return_value.run = AsyncMock(return_value=_report("error"))
    export = tmp_path / "findings.csv"

    assert main(["run", f"{S}/", "--export", str(export), "--log-level", "CRITICAL"]) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["summary"]["errors"] == 1
    assert export.exists()


@patch("seo_audit.app.AuditCoordinator")
def test_aborted_run_writes_partial_report(mock_coordinator_class, tmp_path):
    partial = _report("error", complete=False)
    mock_coordinator_class.return_value.run = AsyncMock(side_effect=AuditAborted("timeout", partial_report=partial))
    output = tmp_path / "partial.json"

    assert main(["run", f"{S}/", "--run-timeout", "1", "--output", str(output), "--log-level", "CRITICAL"]) == 1
    assert json.loads(output.read_text(encoding="utf-8"))["complete"] is False
