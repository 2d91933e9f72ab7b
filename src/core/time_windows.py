"""Calendar and time-window helpers.

Day boundaries are computed in the partition timezone so the store,
backfill and reconciliation agree on what one calendar day means.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.constants import DATE_FORMAT
from core.errors import ConfigError
from core.types import TimeWindow


def utc_now() -> datetime:
    """Return the current tz-aware UTC time."""
    return datetime.now(timezone.utc)


def resolve_timezone(name: str) -> ZoneInfo:
    """Resolve an IANA timezone name.

    Raises:
        ConfigError: If the name is unknown.
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as error:
        raise ConfigError(
            f"Unknown timezone '{name}'. Use an IANA name such as Europe/Vienna."
        ) from error


def parse_date(raw_value: str, field_name: str) -> date:
    """Parse a ``YYYY-MM-DD`` date argument.

    Raises:
        ConfigError: If the value is not a valid date.
    """
    try:
        return datetime.strptime(raw_value, DATE_FORMAT).date()
    except ValueError as error:
        raise ConfigError(
            f"Failed to parse {field_name} '{raw_value}'. Use YYYY-MM-DD format."
        ) from error


def validate_date_range(start_date: date, end_date: date) -> None:
    """Reject ranges whose start lies after their end."""
    if start_date > end_date:
        raise ConfigError(
            f"Invalid date range {start_date} to {end_date}: "
            "end_date must be equal to or after start_date."
        )


def iter_days(start_date: date, end_date: date) -> Iterator[date]:
    """Yield every calendar day in ``[start_date, end_date]``."""
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def day_count(start_date: date, end_date: date) -> int:
    """Return the number of days in an inclusive range."""
    return (end_date - start_date).days + 1


def local_day_window(day: date, tz: ZoneInfo) -> TimeWindow:
    """Return the UTC window covering one local calendar day.

    DST transition days yield 23 or 25 hour windows.
    """
    local_start = datetime.combine(day, time.min, tzinfo=tz)
    local_end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return TimeWindow(
        start=local_start.astimezone(timezone.utc),
        end=local_end.astimezone(timezone.utc),
    )


def partition_day(moment: datetime, tz: ZoneInfo) -> date:
    """Return the local calendar day a tz-aware instant falls on."""
    return moment.astimezone(tz).date()
