"""APG transparency adapter.

APG serves JSON value rows with local (Europe/Vienna) wall-clock bounds
and one value per configured column; ``column`` selects which one to keep.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping
from zoneinfo import ZoneInfo

import aiohttp

from adapters.base import HttpSourceAdapter, optional_str, require_str, timeout_param
from core.config import SourceConfig
from core.constants import DEFAULT_FETCH_TIMEOUT_SECONDS
from core.errors import ConfigError, TransientError
from core.time_windows import resolve_timezone
from core.types import Sample, TimeWindow

_APG_TIMEZONE = "Europe/Vienna"
_PATH_TIME_FORMAT = "%Y-%m-%dT%H%M%S"
_DATE_FORMATS = ("%Y-%m-%d", "%d.%m.%Y")


@dataclass(frozen=True)
class ApgParams:
    """Validated APG source parameters."""

    url: str
    column: str
    timezone: str
    timeout_seconds: float

    @classmethod
    def from_mapping(cls, params: Mapping[str, Any], source_name: str) -> "ApgParams":
        """Validate raw config values.

        Raises:
            ConfigError: If required values are missing or invalid.
        """
        timezone_name = optional_str(params, "timezone", source_name) or _APG_TIMEZONE
        resolve_timezone(timezone_name)
        return cls(
            url=require_str(params, "url", source_name).rstrip("/"),
            column=require_str(params, "column", source_name),
            timezone=timezone_name,
            timeout_seconds=timeout_param(params, source_name, DEFAULT_FETCH_TIMEOUT_SECONDS),
        )


class ApgAdapter(HttpSourceAdapter):
    """Fetch one APG value column for a time window."""

    def __init__(self, source: SourceConfig, session: aiohttp.ClientSession | None = None) -> None:
        self.params = ApgParams.from_mapping(source.params, source.name)
        super().__init__(source.name, self.params.timeout_seconds, session)
        self._tz = resolve_timezone(self.params.timezone)

    async def fetch(self, window: TimeWindow) -> list[Sample]:
        """Fetch and decode the value rows covering ``window``."""
        url = self.request_url(window)
        status, body = await self._get(url)
        self._raise_for_status(status, url, body)
        try:
            payload = json.loads(body)
        except json.JSONDecodeError as error:
            raise TransientError(
                f"[{self.source_name}] invalid JSON from {url}: {error.msg}"
            ) from error
        return decode_apg_payload(payload, self.params.column, self._tz, self.source_name)

    def request_url(self, window: TimeWindow) -> str:
        """Build the path-encoded request URL in APG local time."""
        local_start = window.start.astimezone(self._tz).strftime(_PATH_TIME_FORMAT)
        local_end = window.end.astimezone(self._tz).strftime(_PATH_TIME_FORMAT)
        return f"{self.params.url}/{local_start}/{local_end}"


def decode_apg_payload(
    payload: object,
    column: str,
    tz: ZoneInfo,
    source_name: str,
) -> list[Sample]:
    """Decode an APG ``ResponseData`` document into samples.

    Raises:
        ConfigError: If ``column`` is not among the response columns.
        TransientError: If the document shape is not recognised.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("ResponseData"), dict):
        raise TransientError(f"[{source_name}] response has no ResponseData object")
    data = payload["ResponseData"]
    columns = [str(item.get("InternalName")) for item in data.get("ValueColumns") or []]
    if column not in columns:
        raise ConfigError(
            f"[{source_name}] column '{column}' not in response columns {columns}"
        )
    column_index = columns.index(column)
    samples: list[Sample] = []
    previous_start: datetime | None = None
    for row in data.get("ValueRows") or []:
        values = row.get("V") or []
        if column_index >= len(values):
            continue
        cell = values[column_index]
        raw_value = cell.get("V") if isinstance(cell, dict) else None
        if raw_value is None:
            continue
        start = _local_to_utc(row.get("DF"), row.get("TF"), tz, previous_start, source_name)
        end = _local_to_utc(row.get("DT"), row.get("TT"), tz, start, source_name)
        previous_start = start
        samples.append(Sample(interval_start=start, interval_end=end, value=float(raw_value)))
    return samples


def _local_to_utc(
    raw_date: object,
    raw_time: object,
    tz: ZoneInfo,
    not_before: datetime | None,
    source_name: str,
) -> datetime:
    """Convert local date/time fields, disambiguating repeated DST hours."""
    naive = _parse_local(raw_date, raw_time, source_name)
    first = naive.replace(tzinfo=tz).astimezone(timezone.utc)
    if not_before is not None and first <= not_before:
        second = naive.replace(tzinfo=tz, fold=1).astimezone(timezone.utc)
        if second > not_before:
            return second
    return first


def _parse_local(raw_date: object, raw_time: object, source_name: str) -> datetime:
    if not isinstance(raw_date, str) or not isinstance(raw_time, str):
        raise TransientError(f"[{source_name}] value row without date/time fields")
    hour_minute = raw_time.strip()
    for date_format in _DATE_FORMATS:
        try:
            return datetime.strptime(f"{raw_date.strip()} {hour_minute}", f"{date_format} %H:%M")
        except ValueError:
            continue
    if hour_minute == "24:00":
        for date_format in _DATE_FORMATS:
            try:
                midnight = datetime.strptime(raw_date.strip(), date_format)
            except ValueError:
                continue
            return midnight + timedelta(days=1)
    raise TransientError(f"[{source_name}] unparsable row time '{raw_date} {raw_time}'")
