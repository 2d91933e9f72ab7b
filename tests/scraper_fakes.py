"""Shared fakes and builders for scraping-service tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Sequence, Union

from botocore.exceptions import ClientError

from core.config import AppConfig, S3Settings, SourceConfig
from core.types import Sample, TimeWindow

FetchOutcome = Union[Sequence[Sample], Exception]


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    """Build a tz-aware UTC datetime."""
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def quarter_hours(start: datetime, count: int, value: float = 1.0) -> list[Sample]:
    """Build consecutive 15-minute samples starting at ``start``."""
    step = timedelta(minutes=15)
    return [
        Sample(start + step * index, start + step * (index + 1), value + index)
        for index in range(count)
    ]


def make_source(name: str, **overrides: object) -> SourceConfig:
    """Build an APG-kind source config with test-friendly defaults."""
    values: dict[str, object] = {
        "name": name,
        "kind": "apg",
        "cadence_ms": 10,
        "params": {"url": "https://transparency.apg.at/api/v1/AE", "column": "AE"},
    }
    values.update(overrides)
    return SourceConfig(**values)  # type: ignore[arg-type]


def make_config(
    data_root: Path,
    sources: Sequence[SourceConfig],
    s3: S3Settings | None = None,
    workers: int | None = None,
) -> AppConfig:
    """Build an app config rooted at ``data_root``."""
    return AppConfig(
        data_root=data_root,
        sources={source.name: source for source in sources},
        workers=workers,
        s3=s3,
    )


class FakeAdapter:
    """Adapter returning scripted outcomes, one per fetch call.

    The last outcome repeats once the script is exhausted.
    """

    def __init__(self, source_name: str, outcomes: Sequence[FetchOutcome]) -> None:
        self.source_name = source_name
        self._outcomes = list(outcomes)
        self.windows: list[TimeWindow] = []
        self.closed = False

    async def fetch(self, window: TimeWindow) -> list[Sample]:
        self.windows.append(window)
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return list(outcome)

    async def close(self) -> None:
        self.closed = True


class FakeS3Client:
    """In-memory stand-in for the boto3 S3 calls used by the service."""

    def __init__(self, keys: Sequence[str] = (), failing_prefixes: Sequence[str] = ()) -> None:
        self.keys = set(keys)
        self.failing_prefixes = tuple(failing_prefixes)
        self.fail_uploads = False
        self.list_calls: list[dict[str, object]] = []
        self.uploads: list[tuple[str, str, str]] = []

    def list_objects_v2(self, **kwargs: object) -> dict[str, object]:
        self.list_calls.append(kwargs)
        prefix = str(kwargs["Prefix"])
        if any(prefix.startswith(failing) for failing in self.failing_prefixes):
            raise ClientError(
                {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}},
                "ListObjectsV2",
            )
        matches = sorted(key for key in self.keys if key.startswith(prefix))
        limit = int(kwargs.get("MaxKeys", 1000))  # type: ignore[arg-type]
        response: dict[str, object] = {"KeyCount": len(matches[:limit])}
        if matches:
            response["Contents"] = [{"Key": key} for key in matches[:limit]]
        return response

    def upload_file(self, filename: str, bucket: str, key: str) -> None:
        if self.fail_uploads:
            raise ClientError(
                {"Error": {"Code": "SlowDown", "Message": "Please reduce your request rate"}},
                "PutObject",
            )
        self.uploads.append((filename, bucket, key))
        self.keys.add(key)
