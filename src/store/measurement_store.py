"""Append-only, deduplicated measurement store.

This module persists samples per source into day partitions. A sample
whose identity ``(source, interval_start, interval_end)`` is already stored
is skipped, so repeated or overlapping deliveries never duplicate rows and
never overwrite the provenance of the first write.
"""

from __future__ import annotations

import fcntl
import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Iterable, Iterator, Mapping
from zoneinfo import ZoneInfo

from core.config import AppConfig
from core.constants import PARTITION_FILE_NAME, PARTITION_LOCK_FILE_NAME
from core.errors import DataIntegrityError
from core.logging_config import get_logger
from core.time_windows import partition_day, resolve_timezone
from core.types import Sample
from store.partition_io import latest_sample, read_partition, write_partition
from store.partition_layout import parse_partition_day, partition_path

_LOGGER = get_logger(__name__)

PartitionCallback = Callable[[Path], None]


class MeasurementStore:
    """Filesystem-backed store of samples, one Parquet file per source and day.

    Writers to the same partition are serialised by an in-process lock and
    an advisory file lock, which makes the identity check and the write
    atomic even when a backfill process runs next to the live service.
    """

    def __init__(
        self,
        data_root: Path,
        partition_timezone: ZoneInfo,
        folders: Mapping[str, str] | None = None,
        on_partition_written: PartitionCallback | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            data_root: Local root directory for partition files.
            partition_timezone: Timezone defining calendar days.
            folders: Optional source name to storage folder mapping.
            on_partition_written: Called with each partition file that gained rows.
        """
        self._data_root = data_root
        self._tz = partition_timezone
        self._folders = dict(folders or {})
        self._on_partition_written = on_partition_written
        self._locks: dict[Path, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._latest_end: dict[str, datetime | None] = {}
        self._data_root.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        on_partition_written: PartitionCallback | None = None,
    ) -> "MeasurementStore":
        """Build a store for every source in ``config``."""
        return cls(
            data_root=config.data_root,
            partition_timezone=resolve_timezone(config.partition_timezone),
            folders={name: source.folder for name, source in config.sources.items()},
            on_partition_written=on_partition_written,
        )

    @property
    def data_root(self) -> Path:
        """Local root directory for partition files."""
        return self._data_root

    def append(self, source_name: str, samples: Iterable[Sample]) -> int:
        """Persist samples whose identity is not stored yet.

        Samples need not be sorted. Malformed samples are logged and
        skipped without aborting the batch.

        Args:
            source_name: Configured source name.
            samples: Samples to persist.

        Returns:
            Number of new rows written.

        Raises:
            StoreError: If a partition cannot be read or written.
        """
        groups: dict[date, list[Sample]] = defaultdict(list)
        rejected = 0
        for sample in samples:
            try:
                validate_sample(sample)
            except DataIntegrityError as error:
                rejected += 1
                _LOGGER.warning("sample_rejected", source_name=source_name, reason=str(error))
                continue
            groups[partition_day(sample.interval_start, self._tz)].append(sample)
        written = 0
        for day in sorted(groups):
            written += self._append_partition(source_name, day, groups[day])
        if written:
            self._remember_latest_end(source_name, groups)
        _LOGGER.debug(
            "samples_appended",
            source_name=source_name,
            written=written,
            rejected=rejected,
            partitions=len(groups),
        )
        return written

    def read_samples(
        self,
        source_name: str,
        start_day: date | None = None,
        end_day: date | None = None,
    ) -> list[Sample]:
        """Return stored samples in chronological order.

        Args:
            source_name: Configured source name.
            start_day: Optional first partition day, inclusive.
            end_day: Optional last partition day, inclusive.
        """
        samples: list[Sample] = []
        for day, partition_file in self._partitions(source_name):
            if start_day is not None and day < start_day:
                continue
            if end_day is not None and day > end_day:
                continue
            samples.extend(read_partition(partition_file))
        return sorted(samples, key=lambda sample: sample.identity)

    def latest_interval_end(self, source_name: str) -> datetime | None:
        """Return the end of the most recent stored interval, if any."""
        if source_name not in self._latest_end:
            partitions = self._partitions(source_name)
            latest = latest_sample(partitions[-1][1]) if partitions else None
            self._latest_end[source_name] = None if latest is None else latest.interval_end
        return self._latest_end[source_name]

    def has_partition(self, source_name: str, day: date) -> bool:
        """Return whether a local partition exists for one day."""
        return self.partition_file(source_name, day).exists()

    def partition_file(self, source_name: str, day: date) -> Path:
        """Return the partition file path for one source and day."""
        return partition_path(self._data_root, self._folder(source_name), day)

    def _append_partition(self, source_name: str, day: date, samples: list[Sample]) -> int:
        partition_file = self.partition_file(source_name, day)
        with self._partition_lock(partition_file):
            existing = read_partition(partition_file) if partition_file.exists() else []
            seen = {sample.identity for sample in existing}
            new_samples: list[Sample] = []
            for sample in samples:
                if sample.identity in seen:
                    continue
                seen.add(sample.identity)
                new_samples.append(sample)
            if not new_samples:
                return 0
            write_partition(partition_file, existing + new_samples)
        if self._on_partition_written is not None:
            self._on_partition_written(partition_file)
        return len(new_samples)

    @contextmanager
    def _partition_lock(self, partition_file: Path) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(partition_file, threading.Lock())
        partition_file.parent.mkdir(parents=True, exist_ok=True)
        with lock:
            with open(partition_file.parent / PARTITION_LOCK_FILE_NAME, "a+b") as lock_handle:
                fcntl.flock(lock_handle.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(lock_handle.fileno(), fcntl.LOCK_UN)

    def _partitions(self, source_name: str) -> list[tuple[date, Path]]:
        source_root = self._data_root / self._folder(source_name)
        if not source_root.exists():
            return []
        partitions: list[tuple[date, Path]] = []
        for partition_file in source_root.glob(f"year=*/month=*/day=*/{PARTITION_FILE_NAME}"):
            day = parse_partition_day(partition_file)
            if day is not None:
                partitions.append((day, partition_file))
        return sorted(partitions)

    def _folder(self, source_name: str) -> str:
        return self._folders.get(source_name, source_name)

    def _remember_latest_end(self, source_name: str, groups: Mapping[date, list[Sample]]) -> None:
        batch_end = max(sample.interval_end for group in groups.values() for sample in group)
        current = self.latest_interval_end(source_name)
        if current is None or batch_end > current:
            self._latest_end[source_name] = batch_end


def validate_sample(sample: Sample) -> None:
    """Reject samples whose identity is malformed or ambiguous.

    Raises:
        DataIntegrityError: For naive timestamps or ``start >= end``.
    """
    for field_name in ("interval_start", "interval_end", "collected_at"):
        moment = getattr(sample, field_name)
        if moment is not None and moment.utcoffset() is None:
            raise DataIntegrityError(f"{field_name} {moment} has no timezone")
    if sample.interval_start >= sample.interval_end:
        raise DataIntegrityError(
            f"interval_start {sample.interval_start} is not before "
            f"interval_end {sample.interval_end}"
        )
