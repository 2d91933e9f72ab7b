"""Unit tests for live service wiring."""

from __future__ import annotations

import pytest

from core.config import S3Settings
from core.errors import ConfigError
from core.types import SourceState
from ingest.service import run_service
from scraper_fakes import FakeAdapter, FakeS3Client, make_config, make_source, quarter_hours, utc


@pytest.mark.asyncio
async def test_service_uploads_pending_partitions_on_exit(tmp_path) -> None:
    """When every source has stopped, written partitions are uploaded once more."""
    adapter = FakeAdapter(
        "x", [quarter_hours(utc(2025, 1, 1, 10), 2), ConfigError("token revoked")]
    )
    client = FakeS3Client()
    config = make_config(
        tmp_path, [make_source("x")], s3=S3Settings(bucket="market-data", prefix="raw/")
    )

    statuses = await run_service(
        config, adapter_factory=lambda source: adapter, s3_client=client
    )

    assert statuses["x"].state is SourceState.SUSPENDED
    assert [key for _, _, key in client.uploads] == [
        "raw/x/year=2025/month=01/day=01/data.parquet"
    ]
    assert adapter.closed


@pytest.mark.asyncio
async def test_service_runs_without_object_storage(tmp_path) -> None:
    """Without S3 settings the service still collects into the local store."""
    adapter = FakeAdapter("x", [ConfigError("bad column")])
    config = make_config(tmp_path, [make_source("x")])

    statuses = await run_service(config, adapter_factory=lambda source: adapter)

    assert statuses["x"].last_error == "bad column"
