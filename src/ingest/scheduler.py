"""Periodic per-source scrape scheduling.

Every configured source runs its own loop::

    idle -> running -> (succeeded | failed) -> idle -> ...

with a fixed delay between the end of one cycle and the start of the next.
A global semaphore bounds how many sources fetch at once; sources beyond
the bound wait for a slot and are never dropped. A ``ConfigError`` suspends
only the affected source. Shutdown is cooperative: in-flight cycles finish
and no new cycle starts.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable, Mapping, Sequence

from adapters.base import SourceAdapter
from adapters.factory import AdapterFactory, create_adapter
from core.config import SourceConfig
from core.errors import ConfigError, TransientError
from core.logging_config import get_logger
from core.time_windows import utc_now
from core.types import Sample, SourceState, SourceStatus
from ingest.window_policy import WindowPolicy
from store.measurement_store import MeasurementStore

_LOGGER = get_logger(__name__)


class TaskScheduler:
    """Drive independent scrape loops for many sources concurrently."""

    def __init__(
        self,
        sources: Sequence[SourceConfig],
        store: MeasurementStore,
        pool_size: int,
        adapter_factory: AdapterFactory = create_adapter,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the scheduler.

        Args:
            sources: Sources to schedule; names must be unique.
            store: Measurement store receiving every fetched batch.
            pool_size: Global bound on concurrently running cycles.
            adapter_factory: Builds and validates one adapter per source.
            clock: Returns the current UTC time.
        """
        if pool_size < 1:
            raise ConfigError(f"Worker pool size must be at least 1, got {pool_size}.")
        self._sources = list(sources)
        self._store = store
        self._pool_size = pool_size
        self._adapter_factory = adapter_factory
        self._clock = clock
        self._shutdown = asyncio.Event()
        self._adapters: dict[str, SourceAdapter] = {}
        self._statuses = {source.name: SourceStatus(source.name) for source in self._sources}

    @property
    def shutdown_requested(self) -> bool:
        """Whether a cooperative shutdown was requested."""
        return self._shutdown.is_set()

    def request_shutdown(self) -> None:
        """Stop launching cycles; in-flight cycles run to completion."""
        if not self._shutdown.is_set():
            _LOGGER.info("scheduler_shutdown_requested")
        self._shutdown.set()

    def statuses(self) -> Mapping[str, SourceStatus]:
        """Return the live per-source status objects."""
        return dict(self._statuses)

    async def run(self) -> Mapping[str, SourceStatus]:
        """Run every source loop until shutdown or suspension.

        Returns:
            Final status per source.
        """
        pool = asyncio.Semaphore(self._pool_size)
        _LOGGER.info(
            "scheduler_started",
            sources=[source.name for source in self._sources],
            pool_size=self._pool_size,
        )
        try:
            await asyncio.gather(
                *(self._run_source(source, pool) for source in self._sources)
            )
        finally:
            await self._close_adapters()
        _LOGGER.info(
            "scheduler_stopped",
            states={name: status.state.value for name, status in self._statuses.items()},
        )
        return self.statuses()

    async def run_cycle(self, source: SourceConfig, adapter: SourceAdapter) -> int:
        """Fetch one window for ``source`` and persist the returned samples.

        Returns:
            Number of new rows written.

        Raises:
            TransientError: For retryable adapter failures.
            ConfigError: For non-retryable adapter failures.
        """
        policy = WindowPolicy.for_source(source)
        now = self._clock()
        last_end = await asyncio.to_thread(self._store.latest_interval_end, source.name)
        window = policy.window(now, last_end)
        if window.is_empty:
            _LOGGER.debug("cycle_window_empty", source_name=source.name)
            return 0
        samples = await adapter.fetch(window)
        collected_at = self._clock()
        stamped = [
            Sample(sample.interval_start, sample.interval_end, sample.value, collected_at)
            for sample in samples
        ]
        written = await asyncio.to_thread(self._store.append, source.name, stamped)
        _LOGGER.info(
            "cycle_completed",
            source_name=source.name,
            window_start=window.start.isoformat(),
            window_end=window.end.isoformat(),
            fetched=len(samples),
            written=written,
        )
        return written

    async def _run_source(self, source: SourceConfig, pool: asyncio.Semaphore) -> None:
        status = self._statuses[source.name]
        adapter = self._build_adapter(source, status)
        if adapter is None:
            return
        delay_seconds = source.cadence_ms / 1000
        while not self._shutdown.is_set():
            async with pool:
                if self._shutdown.is_set():
                    break
                suspended = await self._guarded_cycle(source, adapter, status)
            if suspended:
                return
            status.transition(SourceState.IDLE)
            await self._wait(delay_seconds)
        status.transition(SourceState.STOPPED)

    async def _guarded_cycle(
        self,
        source: SourceConfig,
        adapter: SourceAdapter,
        status: SourceStatus,
    ) -> bool:
        """Run one cycle, recording its outcome; return whether to suspend."""
        status.transition(SourceState.RUNNING)
        try:
            written = await self.run_cycle(source, adapter)
        except ConfigError as error:
            _LOGGER.error("source_suspended", source_name=source.name, error=str(error))
            status.last_error = str(error)
            status.transition(SourceState.SUSPENDED)
            return True
        except TransientError as error:
            _LOGGER.warning("cycle_failed", source_name=source.name, error=str(error))
            self._record_failure(status, error)
            return False
        except Exception as error:
            _LOGGER.exception("cycle_crashed", source_name=source.name, error=str(error))
            self._record_failure(status, error)
            return False
        status.cycles_completed += 1
        status.rows_written += written
        status.consecutive_failures = 0
        status.last_error = None
        status.last_success_at = self._clock()
        status.transition(SourceState.SUCCEEDED)
        return False

    def _build_adapter(self, source: SourceConfig, status: SourceStatus) -> SourceAdapter | None:
        try:
            adapter = self._adapter_factory(source)
        except ConfigError as error:
            _LOGGER.error("source_suspended", source_name=source.name, error=str(error))
            status.last_error = str(error)
            status.transition(SourceState.SUSPENDED)
            return None
        self._adapters[source.name] = adapter
        return adapter

    def _record_failure(self, status: SourceStatus, error: Exception) -> None:
        status.cycles_completed += 1
        status.consecutive_failures += 1
        status.last_error = str(error)
        status.transition(SourceState.FAILED)

    async def _wait(self, delay_seconds: float) -> None:
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=delay_seconds)
        except asyncio.TimeoutError:
            pass

    async def _close_adapters(self) -> None:
        for name, adapter in self._adapters.items():
            try:
                await adapter.close()
            except Exception as error:
                _LOGGER.warning("adapter_close_failed", source_name=name, error=str(error))
        self._adapters.clear()
