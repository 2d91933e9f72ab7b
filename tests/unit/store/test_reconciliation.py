"""Unit tests for the reconciliation auditor."""

from __future__ import annotations

from datetime import date

import pytest

from core.config import S3Settings
from core.errors import ConfigError
from scraper_fakes import FakeS3Client, make_config, make_source, quarter_hours, utc
from store.measurement_store import MeasurementStore
from store.reconciliation import ReconciliationAuditor, build_audit_report

_SETTINGS = S3Settings(bucket="market-data", prefix="raw/")


def _key(folder: str, day: date) -> str:
    return f"raw/{folder}/year={day.year}/month={day.month:02d}/day={day.day:02d}/data.parquet"


def _auditor(tmp_path, client: FakeS3Client, store=None) -> ReconciliationAuditor:
    config = make_config(tmp_path, [make_source("x"), make_source("y")], s3=_SETTINGS)
    return ReconciliationAuditor(config, client, store=store)


def test_verify_all_lists_confirmed_missing_day(tmp_path) -> None:
    """A day without an object should be reported missing for its source."""
    keys = [_key("x", date(2025, 1, 1)), _key("x", date(2025, 1, 3))]
    keys += [_key("y", date(2025, 1, day)) for day in (1, 2, 3)]
    auditor = _auditor(tmp_path, FakeS3Client(keys))

    report = auditor.verify("all", date(2025, 1, 1), date(2025, 1, 3))

    assert report.missing_by_source() == {"x": [date(2025, 1, 2)]}


def test_listing_errors_are_unknown_not_present(tmp_path) -> None:
    """A failed listing must never count as a confirmed upload."""
    client = FakeS3Client(
        [_key("x", date(2025, 1, 1))],
        failing_prefixes=["raw/x/year=2025/month=01/day=01/"],
    )
    auditor = _auditor(tmp_path, client)

    report = auditor.verify("x", date(2025, 1, 1), date(2025, 1, 1))

    assert report.unknown_by_source() == {"x": [date(2025, 1, 1)]}
    assert not report.has_missing


def test_one_bounded_listing_per_source_day(tmp_path) -> None:
    """Each source-day should cost exactly one single-key listing."""
    client = FakeS3Client()
    auditor = _auditor(tmp_path, client)

    auditor.verify("all", date(2025, 1, 1), date(2025, 1, 2))

    assert len(client.list_calls) == 4
    assert all(
        call["MaxKeys"] == 1 and call["Bucket"] == "market-data" for call in client.list_calls
    )


def test_local_presence_does_not_confirm_upload(tmp_path) -> None:
    """A local-only partition is reported but still missing."""
    store = MeasurementStore.from_config(
        make_config(tmp_path, [make_source("x"), make_source("y")], s3=_SETTINGS)
    )
    store.append("x", quarter_hours(utc(2025, 1, 1, 10), 1))
    auditor = _auditor(tmp_path, FakeS3Client(), store=store)

    checks = list(auditor.iter_checks("x", date(2025, 1, 1), date(2025, 1, 1)))

    assert checks[0].status == "missing" and checks[0].local_present is True


def test_unknown_source_raises_config_error(tmp_path) -> None:
    """Auditing an unconfigured source should fail fast."""
    auditor = _auditor(tmp_path, FakeS3Client())

    with pytest.raises(ConfigError):
        auditor.verify("z", date(2025, 1, 1), date(2025, 1, 1))


def test_reversed_range_raises_config_error(tmp_path) -> None:
    """A start after the end should fail fast."""
    auditor = _auditor(tmp_path, FakeS3Client())

    with pytest.raises(ConfigError):
        auditor.verify("all", date(2025, 1, 3), date(2025, 1, 1))


def test_missing_bucket_raises_config_error(tmp_path) -> None:
    """Auditing without S3 settings should fail fast."""
    config = make_config(tmp_path, [make_source("x")])

    with pytest.raises(ConfigError):
        ReconciliationAuditor(config, FakeS3Client())


def test_partial_checks_build_partial_report(tmp_path) -> None:
    """An interrupted audit should still summarise the checks done so far."""
    auditor = _auditor(tmp_path, FakeS3Client([_key("x", date(2025, 1, 1))]))
    checks = auditor.iter_checks("all", date(2025, 1, 1), date(2025, 1, 3))
    first_two = [next(checks), next(checks)]

    report = build_audit_report(date(2025, 1, 1), date(2025, 1, 3), ["x", "y"], first_two)

    assert report.missing_by_source() == {"x": [date(2025, 1, 2)]}
    assert report.results["y"].checked_days == 0
