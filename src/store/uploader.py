"""Background upload of changed partitions to object storage.

The store reports every partition file that gained rows; the uploader
drains that set periodically and re-queues files whose upload failed.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from boto3.exceptions import Boto3Error
from botocore.exceptions import BotoCoreError, ClientError

from core.config import S3Settings
from core.errors import RemoteStorageError
from core.logging_config import get_logger
from store.partition_layout import object_key

_LOGGER = get_logger(__name__)


class PendingUploads:
    """Thread-safe set of partition files awaiting upload."""

    def __init__(self) -> None:
        self._files: set[Path] = set()
        self._lock = threading.Lock()

    def add(self, partition_file: Path) -> None:
        """Mark a partition file as changed."""
        with self._lock:
            self._files.add(partition_file)

    def drain(self) -> list[Path]:
        """Remove and return every pending file."""
        with self._lock:
            files = sorted(self._files)
            self._files.clear()
        return files

    def __len__(self) -> int:
        with self._lock:
            return len(self._files)


@dataclass(frozen=True)
class UploadSummary:
    """Outcome of one upload round."""

    uploaded: tuple[str, ...]
    failed: tuple[str, ...]


class PartitionUploader:
    """Upload pending partition files under ``<prefix><relative path>``."""

    def __init__(
        self,
        s3_client: Any,
        settings: S3Settings,
        data_root: Path,
        pending: PendingUploads,
    ) -> None:
        self._client = s3_client
        self._settings = settings
        self._data_root = data_root
        self._pending = pending

    async def run(self, stop_event: asyncio.Event, interval_seconds: float) -> None:
        """Upload every ``interval_seconds`` until stopped, then flush once more."""
        _LOGGER.info("uploader_started", bucket=self._settings.bucket)
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                await self.flush()
        await self.flush()
        _LOGGER.info("uploader_stopped", bucket=self._settings.bucket, pending=len(self._pending))

    async def flush(self) -> UploadSummary:
        """Upload every pending file once; failures go back into the queue."""
        files = self._pending.drain()
        if not files:
            return UploadSummary(uploaded=(), failed=())
        _LOGGER.info("upload_round_started", files=len(files))
        uploaded: list[str] = []
        failed: list[str] = []
        for partition_file in files:
            try:
                key = await asyncio.to_thread(self.upload_file, partition_file)
            except RemoteStorageError as error:
                _LOGGER.warning("upload_failed", path=str(partition_file), error=str(error))
                self._pending.add(partition_file)
                failed.append(str(partition_file))
                continue
            uploaded.append(key)
        return UploadSummary(uploaded=tuple(uploaded), failed=tuple(failed))

    def upload_file(self, partition_file: Path) -> str:
        """Upload one partition file and return its object key.

        Raises:
            RemoteStorageError: If the upload fails.
        """
        relative_path = partition_file.relative_to(self._data_root).as_posix()
        key = object_key(self._settings.prefix, relative_path)
        try:
            self._client.upload_file(str(partition_file), self._settings.bucket, key)
        except (Boto3Error, BotoCoreError, ClientError, OSError) as error:
            raise RemoteStorageError(
                f"Failed to upload {partition_file} to s3://{self._settings.bucket}/{key}: "
                f"{error}. It will be retried in the next upload round."
            ) from error
        _LOGGER.info("partition_uploaded", key=key)
        return key
