"""Upload verification command wiring for the scraping CLI."""

from __future__ import annotations

import argparse
from typing import Any

from tqdm import tqdm

from core.config import AppConfig
from core.constants import ALL_SOURCES, EXIT_INCOMPLETE, EXIT_INTERRUPTED, EXIT_OK, EXIT_PARTIAL
from core.errors import ConfigError
from core.time_windows import day_count, parse_date, validate_date_range
from core.types import AuditReport, DayCheck
from store.measurement_store import MeasurementStore
from store.reconciliation import ReconciliationAuditor, build_audit_report
from store.s3_client import create_s3_client


def add_verify_command(subparsers: Any) -> None:
    """Register verify subcommand."""
    parser = subparsers.add_parser(
        "verify",
        help="Report days without an uploaded partition in object storage",
    )
    parser.add_argument("source", help=f"Configured source name or '{ALL_SOURCES}'")
    parser.add_argument("start_date", help="First day, YYYY-MM-DD")
    parser.add_argument("end_date", help="Last day (inclusive), YYYY-MM-DD")


def run_verify_command(config: AppConfig, args: argparse.Namespace) -> int:
    """Audit remote storage and print missing days per source.

    Ctrl-C stops the audit and prints the days checked so far.
    """
    start_date = parse_date(args.start_date, "start_date")
    end_date = parse_date(args.end_date, "end_date")
    validate_date_range(start_date, end_date)
    if config.s3 is None:
        raise ConfigError("No S3 bucket configured. Add an 's3' section to verify uploads.")
    store = MeasurementStore.from_config(config)
    auditor = ReconciliationAuditor(config, create_s3_client(config.s3), store=store)
    source_names = [source.name for source in auditor.select_sources(args.source)]
    checks: list[DayCheck] = []
    total = len(source_names) * day_count(start_date, end_date)
    interrupted = False
    with tqdm(total=total, desc="verify", unit="day") as progress:
        try:
            for check in auditor.iter_checks(args.source, start_date, end_date):
                checks.append(check)
                progress.update(1)
        except KeyboardInterrupt:
            interrupted = True
    report = build_audit_report(start_date, end_date, source_names, checks)
    _print_report(report, checks)
    if interrupted:
        print("status=interrupted")
        return EXIT_INTERRUPTED
    if report.has_missing:
        print("status=missing")
        return EXIT_INCOMPLETE
    if report.has_unknown:
        print("status=unknown")
        return EXIT_PARTIAL
    print("status=complete")
    return EXIT_OK


def _print_report(report: AuditReport, checks: list[DayCheck]) -> None:
    for name, days in sorted(report.missing_by_source().items()):
        print(f"missing\tsource={name}\tdates={','.join(day.isoformat() for day in days)}")
    for name, days in sorted(report.unknown_by_source().items()):
        print(f"unknown\tsource={name}\tdates={','.join(day.isoformat() for day in days)}")
    local_only = [
        check for check in checks if check.status == "missing" and check.local_present
    ]
    for check in local_only:
        print(f"local_only\tsource={check.source_name}\tdate={check.day.isoformat()}")
    print(f"checked_days={len(checks)}")
