"""Live collection service.

Wires the store, the upload queue, the optional uploader and the scheduler
together, and turns SIGINT/SIGTERM into a cooperative shutdown followed by
a final upload round.
"""

from __future__ import annotations

import asyncio
import signal
from typing import Mapping

import aiohttp

from adapters.factory import AdapterFactory, create_adapter
from core.config import AppConfig, SourceConfig
from core.logging_config import get_logger
from core.types import SourceStatus
from ingest.scheduler import TaskScheduler
from store.measurement_store import MeasurementStore
from store.s3_client import create_s3_client
from store.uploader import PartitionUploader, PendingUploads

_LOGGER = get_logger(__name__)


async def run_service(
    config: AppConfig,
    adapter_factory: AdapterFactory | None = None,
    s3_client: object | None = None,
) -> Mapping[str, SourceStatus]:
    """Run the live service until a shutdown signal arrives.

    Args:
        config: Validated runtime configuration.
        adapter_factory: Optional adapter factory; defaults to HTTP adapters
            sharing one client session.
        s3_client: Optional preconstructed S3 client.

    Returns:
        Final status per source.
    """
    pending = PendingUploads()
    store = MeasurementStore.from_config(config, on_partition_written=pending.add)
    async with aiohttp.ClientSession() as session:
        factory = adapter_factory or _session_factory(session)
        scheduler = TaskScheduler(
            sources=list(config.sources.values()),
            store=store,
            pool_size=config.pool_size,
            adapter_factory=factory,
        )
        stop_event = asyncio.Event()
        uploader_task = None
        if config.s3 is not None:
            uploader = PartitionUploader(
                s3_client or create_s3_client(config.s3),
                config.s3,
                store.data_root,
                pending,
            )
            uploader_task = asyncio.create_task(
                uploader.run(stop_event, config.upload_interval_seconds)
            )
        else:
            _LOGGER.warning("uploads_disabled", reason="no s3 section configured")
        _install_signal_handlers(scheduler)
        _LOGGER.info("service_started", sources=len(config.sources), pool_size=config.pool_size)
        try:
            statuses = await scheduler.run()
        finally:
            _remove_signal_handlers()
            stop_event.set()
            if uploader_task is not None:
                await uploader_task
    _LOGGER.info("service_stopped", pending_uploads=len(pending))
    return statuses


def _session_factory(session: aiohttp.ClientSession) -> AdapterFactory:
    def build(source: SourceConfig):
        return create_adapter(source, session)

    return build


def _install_signal_handlers(scheduler: TaskScheduler) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, scheduler.request_shutdown)


def _remove_signal_handlers() -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.remove_signal_handler(signum)
