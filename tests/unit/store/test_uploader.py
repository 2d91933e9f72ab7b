"""Unit tests for partition uploads."""

from __future__ import annotations

import asyncio
from datetime import date

import pytest

from core.config import S3Settings
from core.time_windows import resolve_timezone
from scraper_fakes import FakeS3Client, quarter_hours, utc
from store.measurement_store import MeasurementStore
from store.uploader import PartitionUploader, PendingUploads


def _setup(
    tmp_path,
    client: FakeS3Client,
) -> tuple[MeasurementStore, PartitionUploader, PendingUploads]:
    pending = PendingUploads()
    store = MeasurementStore(
        data_root=tmp_path,
        partition_timezone=resolve_timezone("Europe/Vienna"),
        on_partition_written=pending.add,
    )
    uploader = PartitionUploader(
        client, S3Settings(bucket="market-data", prefix="raw/"), tmp_path, pending
    )
    return store, uploader, pending


@pytest.mark.asyncio
async def test_flush_uploads_changed_partitions_under_prefix(tmp_path) -> None:
    """Changed partitions should be uploaded with the configured prefix."""
    client = FakeS3Client()
    store, uploader, pending = _setup(tmp_path, client)
    store.append("x", quarter_hours(utc(2025, 1, 1, 10), 2))

    summary = await uploader.flush()

    assert summary.uploaded == ("raw/x/year=2025/month=01/day=01/data.parquet",)
    assert len(pending) == 0


@pytest.mark.asyncio
async def test_failed_uploads_are_requeued(tmp_path) -> None:
    """An upload failure should leave the file pending for the next round."""
    client = FakeS3Client()
    client.fail_uploads = True
    store, uploader, pending = _setup(tmp_path, client)
    store.append("x", quarter_hours(utc(2025, 1, 1, 10), 2))

    summary = await uploader.flush()

    assert len(summary.failed) == 1 and len(pending) == 1


@pytest.mark.asyncio
async def test_run_flushes_after_stop(tmp_path) -> None:
    """Stopping the uploader loop should still upload pending files."""
    client = FakeS3Client()
    store, uploader, _ = _setup(tmp_path, client)
    store.append("x", quarter_hours(utc(2025, 1, 2, 10), 1))
    stop_event = asyncio.Event()
    stop_event.set()

    await uploader.run(stop_event, interval_seconds=60.0)

    assert [key for _, _, key in client.uploads] == [
        "raw/x/year=2025/month=01/day=02/data.parquet"
    ]


def test_pending_uploads_deduplicates_paths(tmp_path) -> None:
    """The same partition should only be queued once."""
    pending = PendingUploads()
    path = tmp_path / "x" / "data.parquet"

    pending.add(path)
    pending.add(path)

    assert pending.drain() == [path] and len(pending) == 0


def test_day_key_matches_store_layout(tmp_path) -> None:
    """Uploaded keys should mirror the local partition layout."""
    client = FakeS3Client()
    store, uploader, _ = _setup(tmp_path, client)

    key = uploader.upload_file(_touch(store.partition_file("x", date(2025, 3, 9))))

    assert key == "raw/x/year=2025/month=03/day=09/data.parquet"


def _touch(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")
    return path
