"""Historical backfill for one source over an inclusive date range.

Days are fetched one at a time using local calendar-day windows and
written through the same deduplicating store as the live service, so
re-running a backfill, or overlapping it with live collection, never
duplicates rows.
"""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Callable

from adapters.base import SourceAdapter
from adapters.factory import AdapterFactory, create_adapter
from core.config import AppConfig
from core.errors import ConfigError, TransientError
from core.logging_config import get_logger
from core.time_windows import iter_days, local_day_window, resolve_timezone, validate_date_range
from core.types import BackfillResult, Sample
from store.measurement_store import MeasurementStore

_LOGGER = get_logger(__name__)

DayCallback = Callable[[date, int], None]


class BackfillAbortedError(ConfigError):
    """Raised when a provider rejects a backfill request mid-range.

    Attributes:
        result: Totals for the days processed before the rejection, with
            the rejected day listed in ``failed_days``.
    """

    def __init__(self, message: str, result: BackfillResult) -> None:
        super().__init__(message)
        self.result = result


class BackfillRunner:
    """Fetch and persist historical days for configured sources."""

    def __init__(
        self,
        config: AppConfig,
        store: MeasurementStore,
        adapter_factory: AdapterFactory = create_adapter,
    ) -> None:
        self._config = config
        self._store = store
        self._adapter_factory = adapter_factory
        self._tz = resolve_timezone(config.partition_timezone)

    async def backfill(
        self,
        source_name: str,
        start_date: date,
        end_date: date,
        on_day: DayCallback | None = None,
    ) -> BackfillResult:
        """Backfill every day in ``[start_date, end_date]``.

        Args:
            source_name: Configured source name.
            start_date: First day, inclusive.
            end_date: Last day, inclusive.
            on_day: Optional callback receiving each day and its new row count.

        Returns:
            Totals for the run. Days failing with a transient or unexpected
            adapter error are listed in ``failed_days`` and the run continues.

        Raises:
            ConfigError: For an unknown source, a reversed range or invalid
                adapter parameters.
            BackfillAbortedError: When the provider rejects a request partway
                through the range; carries the totals of the days already done.
        """
        source = self._config.source(source_name)
        validate_date_range(start_date, end_date)
        adapter = self._adapter_factory(source)
        _LOGGER.info(
            "backfill_started",
            source_name=source_name,
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
        )
        rows_written = 0
        days_processed = 0
        days_with_new_rows = 0
        failed_days: list[date] = []

        def _result() -> BackfillResult:
            return BackfillResult(
                source_name=source_name,
                start_date=start_date,
                end_date=end_date,
                rows_written=rows_written,
                days_processed=days_processed,
                days_with_new_rows=days_with_new_rows,
                failed_days=tuple(failed_days),
            )

        try:
            for day in iter_days(start_date, end_date):
                days_processed += 1
                written: int | None
                try:
                    written = await self._backfill_day(adapter, source_name, day)
                except ConfigError as error:
                    failed_days.append(day)
                    _LOGGER.error(
                        "backfill_aborted",
                        source_name=source_name,
                        day=day.isoformat(),
                        rows_written=rows_written,
                        error=str(error),
                    )
                    raise BackfillAbortedError(str(error), _result()) from error
                except TransientError as error:
                    _LOGGER.warning(
                        "backfill_day_failed",
                        source_name=source_name,
                        day=day.isoformat(),
                        error=str(error),
                    )
                    written = None
                except Exception:
                    _LOGGER.exception(
                        "backfill_day_failed",
                        source_name=source_name,
                        day=day.isoformat(),
                    )
                    written = None
                if written is None:
                    failed_days.append(day)
                    if on_day is not None:
                        on_day(day, 0)
                    continue
                rows_written += written
                if written:
                    days_with_new_rows += 1
                if on_day is not None:
                    on_day(day, written)
        finally:
            await adapter.close()
        result = _result()
        _LOGGER.info(
            "backfill_finished",
            source_name=source_name,
            rows_written=rows_written,
            days_processed=days_processed,
            failed_days=[day.isoformat() for day in failed_days],
        )
        return result

    async def _backfill_day(self, adapter: SourceAdapter, source_name: str, day: date) -> int:
        window = local_day_window(day, self._tz)
        samples = await adapter.fetch(window)
        historical = [
            Sample(sample.interval_start, sample.interval_end, sample.value, None)
            for sample in samples
        ]
        return await asyncio.to_thread(self._store.append, source_name, historical)
