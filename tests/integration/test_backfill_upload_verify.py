"""Integration tests for backfill, upload and reconciliation together."""

from __future__ import annotations

from datetime import date

import pytest

from core.config import S3Settings
from core.errors import TransientError
from ingest.backfill import BackfillRunner
from scraper_fakes import FakeS3Client, make_config, make_source, quarter_hours, utc
from store.measurement_store import MeasurementStore
from store.reconciliation import ReconciliationAuditor
from store.uploader import PartitionUploader, PendingUploads


class _GappyAdapter:
    """Serves every day except 2025-01-02, which keeps timing out."""

    def __init__(self, source_name: str) -> None:
        self.source_name = source_name

    async def fetch(self, window):
        day = window.end.date()
        if day == date(2025, 1, 2):
            raise TransientError("request timed out")
        return quarter_hours(utc(day.year, day.month, day.day, 6), 40)

    async def close(self) -> None:
        return None


@pytest.mark.asyncio
async def test_failed_backfill_day_is_reported_missing_after_upload(tmp_path) -> None:
    """Only the day that never reached object storage should be reported."""
    settings = S3Settings(bucket="market-data", prefix="raw/")
    config = make_config(
        tmp_path, [make_source("x", storage_folder="apg/x"), make_source("y")], s3=settings
    )
    pending = PendingUploads()
    store = MeasurementStore.from_config(config, on_partition_written=pending.add)
    client = FakeS3Client()
    runner = BackfillRunner(
        config, store, adapter_factory=lambda source: _GappyAdapter(source.name)
    )

    result = await runner.backfill("x", date(2025, 1, 1), date(2025, 1, 3))
    await PartitionUploader(client, settings, tmp_path, pending).flush()
    report = ReconciliationAuditor(config, client, store=store).verify(
        "x", date(2025, 1, 1), date(2025, 1, 3)
    )

    assert result.failed_days == (date(2025, 1, 2),)
    assert report.missing_by_source() == {"x": [date(2025, 1, 2)]}


@pytest.mark.asyncio
async def test_rerun_after_outage_fills_the_gap(tmp_path) -> None:
    """A second backfill should complete the range without duplicating rows."""
    settings = S3Settings(bucket="market-data", prefix="raw/")
    config = make_config(tmp_path, [make_source("x")], s3=settings)
    pending = PendingUploads()
    store = MeasurementStore.from_config(config, on_partition_written=pending.add)
    client = FakeS3Client()
    uploader = PartitionUploader(client, settings, tmp_path, pending)
    gappy = BackfillRunner(config, store, adapter_factory=lambda source: _GappyAdapter(source.name))
    await gappy.backfill("x", date(2025, 1, 1), date(2025, 1, 3))
    await uploader.flush()
    healthy = BackfillRunner(
        config,
        store,
        adapter_factory=lambda source: _HealthyAdapter(source.name),
    )

    result = await healthy.backfill("x", date(2025, 1, 1), date(2025, 1, 3))
    await uploader.flush()
    report = ReconciliationAuditor(config, client).verify("x", date(2025, 1, 1), date(2025, 1, 3))

    assert result.days_with_new_rows == 1 and not report.has_missing


class _HealthyAdapter(_GappyAdapter):
    async def fetch(self, window):
        day = window.end.date()
        return quarter_hours(utc(day.year, day.month, day.day, 6), 40)
