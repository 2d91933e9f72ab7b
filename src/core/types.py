"""Shared typed models.

This module defines immutable data models used by adapters, the store,
the scheduler, backfill and reconciliation to keep interfaces explicit.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Literal, Mapping

DayStatus = Literal["present", "missing", "unknown"]


@dataclass(frozen=True)
class Sample:
    """One measurement over a half-open time interval.

    Attributes:
        interval_start: Inclusive UTC start of the measured interval.
        interval_end: Exclusive UTC end of the measured interval.
        value: Measured value.
        collected_at: Wall-clock time of live collection; ``None`` for
            backfilled samples.
    """

    interval_start: datetime
    interval_end: datetime
    value: float
    collected_at: datetime | None = None

    @property
    def identity(self) -> tuple[datetime, datetime]:
        """Deduplication key within one source."""
        return (self.interval_start, self.interval_end)


@dataclass(frozen=True)
class TimeWindow:
    """Half-open fetch window ``[start, end)`` in UTC."""

    start: datetime
    end: datetime

    @property
    def is_empty(self) -> bool:
        """Return whether the window covers no time at all."""
        return self.start >= self.end


@dataclass(frozen=True)
class DayCheck:
    """Remote confirmation result for one source and calendar day.

    Attributes:
        source_name: Configured source name.
        day: Calendar day that was checked.
        status: ``present``, ``missing`` or ``unknown``.
        detail: Object key found, or the error text for unknown days.
        local_present: Whether a local partition exists; ``None`` when the
            local store was not consulted.
    """

    source_name: str
    day: date
    status: DayStatus
    detail: str = ""
    local_present: bool | None = None


@dataclass(frozen=True)
class SourceAuditResult:
    """Audit outcome for one source over a date range."""

    source_name: str
    checked_days: int
    missing: tuple[date, ...]
    unknown: tuple[date, ...]


@dataclass(frozen=True)
class AuditReport:
    """Audit outcome for every requested source."""

    start_date: date
    end_date: date
    results: Mapping[str, SourceAuditResult]

    def missing_by_source(self) -> dict[str, list[date]]:
        """Return confirmed missing days, omitting fully confirmed sources."""
        return {
            name: list(result.missing)
            for name, result in self.results.items()
            if result.missing
        }

    def unknown_by_source(self) -> dict[str, list[date]]:
        """Return days whose status could not be determined."""
        return {
            name: list(result.unknown)
            for name, result in self.results.items()
            if result.unknown
        }

    @property
    def has_missing(self) -> bool:
        """Whether any day was confirmed missing."""
        return any(result.missing for result in self.results.values())

    @property
    def has_unknown(self) -> bool:
        """Whether any day could not be checked."""
        return any(result.unknown for result in self.results.values())


@dataclass(frozen=True)
class BackfillResult:
    """Summary of one backfill run.

    Attributes:
        source_name: Backfilled source.
        start_date: First day, inclusive.
        end_date: Last day, inclusive.
        rows_written: New rows persisted by this run.
        days_processed: Days attempted.
        days_with_new_rows: Days that added at least one row; a rerun over
            stored days reports zero even when the provider returned data.
        failed_days: Days whose fetch failed.
    """

    source_name: str
    start_date: date
    end_date: date
    rows_written: int
    days_processed: int
    days_with_new_rows: int
    failed_days: tuple[date, ...] = ()

    @property
    def is_partial(self) -> bool:
        """Whether some days could not be fetched."""
        return bool(self.failed_days)


class SourceState(str, Enum):
    """Lifecycle state of one source loop."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SUSPENDED = "suspended"
    STOPPED = "stopped"


@dataclass
class SourceStatus:
    """Mutable per-source progress tracked by the scheduler."""

    source_name: str
    state: SourceState = SourceState.IDLE
    cycles_completed: int = 0
    rows_written: int = 0
    consecutive_failures: int = 0
    last_error: str | None = None
    last_success_at: datetime | None = None
    history: deque[SourceState] = field(default_factory=lambda: deque(maxlen=32))

    def transition(self, state: SourceState) -> None:
        """Move to ``state`` and remember it in the history."""
        self.state = state
        self.history.append(state)
