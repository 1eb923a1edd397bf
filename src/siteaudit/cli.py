"""Command-line interface for the site audit pipeline."""

import asyncio
import dataclasses
import json
import sys
from typing import Optional

from siteaudit.auditor import SiteAuditor
from siteaudit.config import Config
from siteaudit.exceptions import ScoringError
from siteaudit.fingerprint import fingerprint
from siteaudit.logging_config import setup_logging
from siteaudit.models import CrawlResult
from siteaudit.orchestrator import ScrapingOrchestrator
from siteaudit.report_store import get_report_store


def _build_config(args) -> Config:
    config = Config.from_env()
    if getattr(args, 'max_pages', None):
        config = dataclasses.replace(config, max_pages=args.max_pages)
    if getattr(args, 'no_headless', False):
        config = dataclasses.replace(config, headless_enabled=False)
    if getattr(args, 'no_metrics', False):
        config = dataclasses.replace(config, collect_metrics=False)
    return config


def _emit(payload: dict, output_file: Optional[str] = None):
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output_file:
        with open(output_file, 'w') as f:
            f.write(text)
        print(f"Results written to {output_file}")
    else:
        print(text)


def print_crawl_result(result: CrawlResult):
    """Print a crawl result in a readable form.

    Args:
        result: Acquisition output
    """
    print(f"\n{'=' * 60}")
    print(f"Acquisition for: {result.url}")
    print(f"{'=' * 60}")
    print(f"\nCompany: {result.company_name}")
    print(f"Depth: {result.analysis_depth.value}" + (" (fallback data)" if result.fallback_used else ""))
    print(f"Tier: {result.acquired_with.value if result.acquired_with else 'none'}")
    print(f"Pages analyzed: {len(result.pages)}")

    print("\nAttempts:")
    for attempt in result.attempts:
        detail = attempt.error or f"HTTP {attempt.status_code}"
        print(f"  • {attempt.tier.value} #{attempt.attempt + 1}: {attempt.status.value} ({detail}, {attempt.latency:.2f}s)")

    print(f"\nTitle: {result.homepage.title}")
    print(f"Description: {result.homepage.description}")

    if result.consistency:
        c = result.consistency
        print(f"\nConsistency: brand {c.brand_score}, navigation {c.navigation_score}, content {c.content_score}")
        for issue in c.issues:
            print(f"  • {issue}")

    seo = result.seo
    print(f"\nSSL: {seo.has_ssl}  robots.txt: {seo.has_robots_txt}  sitemap: {seo.has_sitemap}  viewport: {seo.mobile_optimized}")
    if result.performance:
        print(f"PageSpeed performance: {result.performance.performance_score}/100")
    print(f"\n{'=' * 60}\n")


def acquire_command(args):
    """Fetch and analyze a URL without scoring it."""
    orchestrator = ScrapingOrchestrator(_build_config(args))
    result = asyncio.run(orchestrator.acquire(args.url))

    if args.json:
        _emit(result.to_dict(), args.output_file)
    else:
        print_crawl_result(result)


def fingerprint_command(args):
    """Print the website signature for a URL."""
    orchestrator = ScrapingOrchestrator(_build_config(args))
    result = asyncio.run(orchestrator.acquire(args.url))
    signature = fingerprint(result)

    payload = signature.to_dict()
    payload['cache_key'] = signature.cache_key
    payload['analysis_depth'] = result.analysis_depth.value
    _emit(payload)


def audit_command(args):
    """Audit a URL and store the report."""
    config = _build_config(args)
    auditor = SiteAuditor(config, report_store=get_report_store(args.backend))

    try:
        report = asyncio.run(auditor.audit(args.url))
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except ScoringError as e:
        print(f"Error: could not score {args.url}: {e}")
        sys.exit(1)
    finally:
        auditor.report_store.close()

    if args.json:
        _emit(report.to_dict(), args.output_file)
        return

    print(f"\n{'=' * 60}")
    print(report.title)
    print(f"{'=' * 60}")
    print(f"\n📊 Overall Score: {report.overall_score}/100"
          + (" (cached)" if report.from_cache else ""))
    if report.industry_adjusted_score is not None and report.industry not in (None, "general"):
        print(f"   Weighted for {report.industry}: {report.industry_adjusted_score}/100")
    if report.fallback_used:
        print("⚠️  Site could not be fetched; scores reflect missing data")
    print("\nSections:")
    for section in report.sections:
        print(f"  • {section['title']}: {section['score']:.0f}/100")
    if report.summary:
        print(f"\n{report.summary}")
    print(f"\n{'=' * 60}\n")


def reports_command(args):
    """List stored reports."""
    store = get_report_store(args.backend)
    try:
        reports = store.list(url=args.url, limit=args.limit)
    finally:
        store.close()

    if args.json:
        _emit({'reports': [r.to_dict() for r in reports]})
        return

    if not reports:
        print("No reports found.")
        return
    for r in reports:
        print(f"{r.created_at:%Y-%m-%d %H:%M}  {r.overall_score:5.1f}  {r.analysis_depth.value:<12} {r.url}  ({r.id})")


def main(argv=None):
    """Main CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Site Audit - acquire, fingerprint and score websites"
    )

    # Global flags (before subcommands)
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Set logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to file in addition to console",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def add_pipeline_flags(sub):
        sub.add_argument("url", help="URL to process (scheme optional)")
        sub.add_argument(
            "--max-pages",
            type=int,
            help="Maximum pages to analyze, homepage included",
        )
        sub.add_argument(
            "--no-headless",
            action="store_true",
            help="Skip the headless browser tier",
        )
        sub.add_argument(
            "--no-metrics",
            action="store_true",
            help="Skip PageSpeed Insights and SEO probes",
        )

    acquire_parser = subparsers.add_parser(
        "acquire", help="Fetch and analyze a URL without scoring."
    )
    add_pipeline_flags(acquire_parser)
    acquire_parser.add_argument("--json", action="store_true", help="Output JSON")
    acquire_parser.add_argument(
        "--output-file",
        "-f",
        help="Write output to file (only with --json)",
    )
    acquire_parser.set_defaults(func=acquire_command)

    audit_parser = subparsers.add_parser(
        "audit", help="Acquire, score and store an audit report."
    )
    add_pipeline_flags(audit_parser)
    audit_parser.add_argument("--json", action="store_true", help="Output JSON")
    audit_parser.add_argument(
        "--output-file",
        "-f",
        help="Write output to file (only with --json)",
    )
    audit_parser.add_argument(
        "--backend",
        choices=["memory", "sqlite"],
        help="Report store backend (default: REPORT_BACKEND)",
    )
    audit_parser.set_defaults(func=audit_command)

    fingerprint_parser = subparsers.add_parser(
        "fingerprint", help="Print the website signature used as the score cache key."
    )
    add_pipeline_flags(fingerprint_parser)
    fingerprint_parser.set_defaults(func=fingerprint_command)

    reports_parser = subparsers.add_parser(
        "reports", help="List stored audit reports."
    )
    reports_parser.add_argument("--url", help="Only reports for this URL")
    reports_parser.add_argument("--limit", type=int, default=20, help="Maximum reports (default: 20)")
    reports_parser.add_argument("--json", action="store_true", help="Output JSON")
    reports_parser.add_argument(
        "--backend",
        choices=["memory", "sqlite"],
        default="sqlite",
        help="Report store backend (default: sqlite)",
    )
    reports_parser.set_defaults(func=reports_command)

    args = parser.parse_args(argv)

    # Configure logging based on flags
    setup_logging(
        level=args.log_level,
        log_file=getattr(args, 'log_file', None),
    )

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
