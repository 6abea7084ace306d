from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional

from auditor.controllers.audit_controller import AuditCoordinator
from auditor.controllers.report_controller import export_findings
from auditor.model import Report, Severity
from auditor.rules.registry import RuleRegistry
from seo_audit.core.utils.config_loader import get_nested, load_config
from seo_audit.core.utils.configure_logging import configure_logger
from seo_audit.core.utils.path_utils import PathUtils
from seo_audit.exceptions import AuditAborted, AuditFailed, ConfigError
from seo_audit.model import AuditConfig

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_FINDINGS = 2

# --- HELP TEXT ---

run_help_text = """
  seo-audit run <url> [<url> ...] [--sitemap <file|url>] [--root <url>] [--host <host>]
                      Crawls the site from the given URLs and prints (or writes) the
                      JSON audit report. Exit code 2 when --fail-on is reached.

  seo-audit rules     Lists every rule ID the engine can emit.
""".strip()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="seo-audit",
        description="Crawl a site and audit its SEO metadata, structured data and link graph.",
        epilog=run_help_text,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", help="Path to a settings.json (default: the packaged one).")
    common.add_argument("--log-level", help="Overrides debug.level from the settings.")
    sub = parser.add_subparsers(dest="command", required=True)

    run_parser = sub.add_parser("run", parents=[common], help="Run an audit.")
    run_parser.add_argument("urls", nargs="*", metavar="URL", help="Seed URLs.")
    run_parser.add_argument("--sitemap", help="Sitemap file or URL providing additional seeds.")
    run_parser.add_argument("--root", action="append", dest="roots", default=None,
                            help="Depth root (repeatable). Defaults to the seed URLs.")
    run_parser.add_argument("--host", action="append", dest="hosts", default=None,
                            help="Internal host (repeatable). Defaults to the seed hosts.")
    run_parser.add_argument("--max-pages", type=int)
    run_parser.add_argument("--workers", type=int)
    run_parser.add_argument("--timeout", type=float, help="Per-request timeout in seconds.")
    run_parser.add_argument("--max-depth", type=int, dest="max_crawl_depth")
    run_parser.add_argument("--run-timeout", type=float, help="Abort the whole run after this many seconds.")
    run_parser.add_argument("--respect-robots", action="store_true", default=None, dest="respect_robots_txt")
    run_parser.add_argument("--output", "-o", help="Write the JSON report here instead of stdout.")
    run_parser.add_argument("--export", help="Also write a flat findings table (.csv or .xlsx).")
    run_parser.add_argument("--fail-on", choices=["error", "warning"],
                            help="Exit with code 2 if findings of this severity (or worse) exist.")
    run_parser.add_argument("--no-progress", action="store_false", default=None, dest="show_progress")

    sub.add_parser("rules", parents=[common], help="List all rule IDs.")
    return parser


def _setup_logging(settings: Dict[str, Any], level_override: Optional[str]) -> None:
    configure_logger(
        level_override or get_nested(settings, "debug.level", "WARNING"),
        module_specific_levels=get_nested(settings, "debug.module_levels", {}),
        silenced_loggers=get_nested(settings, "debug.silenced_loggers", {}),
    )


def _write_report(report: Report, output: Optional[str]) -> None:
    payload = report.to_json()
    if output:
        target = PathUtils.prepare_output_path(output)
        target.write_text(payload + "\n", encoding="utf-8")
        logger.info("Report written to %s", target)
    else:
        sys.stdout.write(payload + "\n")


def _threshold_reached(report: Report, fail_on: Optional[str]) -> bool:
    if not fail_on:
        return False
    limit = Severity(fail_on).rank
    return any(f.severity.rank <= limit for f in report.all_findings())


def _handle_run(args: argparse.Namespace, settings: Dict[str, Any]) -> int:
    try:
        config = AuditConfig.from_settings(
            settings,
            seed_urls=args.urls,
            sitemap=args.sitemap,
            root_urls=args.roots,
            internal_hosts=args.hosts,
            max_pages=args.max_pages,
            workers=args.workers,
            timeout=args.timeout,
            max_crawl_depth=args.max_crawl_depth,
            run_timeout=args.run_timeout,
            respect_robots_txt=args.respect_robots_txt,
            show_progress=args.show_progress,
        )
        report = asyncio.run(AuditCoordinator(config).run())
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        print(f"❌ {e}", file=sys.stderr)
        return EXIT_FAILURE
    except AuditFailed as e:
        logger.error("Audit failed: %s", e)
        print(f"❌ {e}", file=sys.stderr)
        return EXIT_FAILURE
    except AuditAborted as e:
        logger.error("Audit aborted: %s", e)
        print(f"⚠️ {e}. Writing partial report.", file=sys.stderr)
        if e.partial_report is not None:
            _write_report(e.partial_report, args.output)
        return EXIT_FAILURE

    _write_report(report, args.output)
    if args.export:
        path = export_findings(report, args.export)
        print(f"✅ Findings exported to {path}", file=sys.stderr)

    s = report.summary
    print(
        f"Audited {s.pages_audited} page(s): {s.errors} error(s), {s.warnings} warning(s), {s.infos} info.",
        file=sys.stderr,
    )
    return EXIT_FINDINGS if _threshold_reached(report, args.fail_on) else EXIT_OK


def _handle_rules(args: argparse.Namespace, settings: Dict[str, Any]) -> int:
    for rule_id, description in RuleRegistry.describe().items():
        print(f"{rule_id:<24} {description}")
    return EXIT_OK


def main(argv: List[str] | None = None) -> int:
    """Entrypoint for the seo-audit command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_config(args.config)
    except ConfigError as e:
        print(f"❌ {e}", file=sys.stderr)
        return EXIT_FAILURE
    _setup_logging(settings, args.log_level)

    handlers = {"run": _handle_run, "rules": _handle_rules}
    return handlers[args.command](args, settings)


if __name__ == "__main__":
    sys.exit(main())
