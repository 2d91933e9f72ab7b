"""Backfill command wiring for the scraping CLI."""

from __future__ import annotations

import argparse
import asyncio
from datetime import date
from typing import Any

from tqdm import tqdm

from adapters.factory import create_adapter
from core.config import AppConfig
from core.constants import EXIT_OK, EXIT_PARTIAL
from core.time_windows import day_count, parse_date
from core.types import BackfillResult
from ingest.backfill import BackfillAbortedError, BackfillRunner
from store.measurement_store import MeasurementStore
from store.s3_client import create_s3_client
from store.uploader import PartitionUploader, PendingUploads


def add_backfill_command(subparsers: Any) -> None:
    """Register backfill subcommand."""
    parser = subparsers.add_parser(
        "backfill",
        help="Fetch and store historical days for one source",
    )
    parser.add_argument("source", help="Configured source name")
    parser.add_argument("start_date", help="First day, YYYY-MM-DD")
    parser.add_argument("end_date", help="Last day (inclusive), YYYY-MM-DD")


def run_backfill_command(config: AppConfig, args: argparse.Namespace) -> int:
    """Backfill one source, then upload touched partitions once.

    When the provider rejects a request mid-range, the days already written
    are still uploaded and reported before the error propagates.
    """
    start_date = parse_date(args.start_date, "start_date")
    end_date = parse_date(args.end_date, "end_date")
    pending = PendingUploads()
    store = MeasurementStore.from_config(config, on_partition_written=pending.add)
    runner = BackfillRunner(config, store, adapter_factory=create_adapter)
    try:
        result = asyncio.run(_backfill_with_progress(runner, args.source, start_date, end_date))
    except BackfillAbortedError as error:
        _upload_pending(config, store, pending)
        _print_result(error.result)
        raise
    _upload_pending(config, store, pending)
    _print_result(result)
    if result.is_partial:
        return EXIT_PARTIAL
    return EXIT_OK


def _upload_pending(config: AppConfig, store: MeasurementStore, pending: PendingUploads) -> None:
    if config.s3 is None or not len(pending):
        return
    uploader = PartitionUploader(create_s3_client(config.s3), config.s3, store.data_root, pending)
    summary = asyncio.run(uploader.flush())
    print(f"uploaded={len(summary.uploaded)}")
    print(f"upload_failed={len(summary.failed)}")


def _print_result(result: BackfillResult) -> None:
    print(f"rows_written={result.rows_written}")
    print(f"days_processed={result.days_processed}")
    print(f"days_with_new_rows={result.days_with_new_rows}")
    if result.failed_days:
        print(f"failed_days={','.join(day.isoformat() for day in result.failed_days)}")


async def _backfill_with_progress(
    runner: BackfillRunner,
    source_name: str,
    start_date: date,
    end_date: date,
) -> BackfillResult:
    total = day_count(start_date, end_date) if start_date <= end_date else 0
    with tqdm(total=total, desc=f"backfill {source_name}", unit="day") as progress:
        return await runner.backfill(
            source_name,
            start_date,
            end_date,
            on_day=lambda _day, _written: progress.update(1),
        )
