"""Parquet IO for one day partition.

This module isolates the pyarrow schema, legacy column normalisation
and the write-to-temp-then-rename step used for atomic partition updates.
"""

from __future__ import annotations

import os
import threading
from datetime import timezone
from pathlib import Path
from typing import Sequence

import pyarrow as pa
import pyarrow.parquet as pq

from core.errors import StoreError
from core.types import Sample

PARTITION_SCHEMA = pa.schema(
    [
        pa.field("interval_start", pa.timestamp("us", tz="UTC"), nullable=False),
        pa.field("interval_end", pa.timestamp("us", tz="UTC"), nullable=False),
        pa.field("value", pa.float64(), nullable=False),
        pa.field("collected_at", pa.timestamp("us", tz="UTC"), nullable=True),
    ]
)

_LEGACY_COLUMN_NAMES = {
    "start": "interval_start",
    "end": "interval_end",
    "scraped_at": "collected_at",
}


def read_partition(partition_file: Path) -> list[Sample]:
    """Read every row of a partition file in stored order.

    Files written before ``collected_at`` existed are read with a null
    column, i.e. as backfilled rows.

    Raises:
        StoreError: If the file cannot be decoded.
    """
    try:
        table = pq.read_table(partition_file)
    except (OSError, pa.ArrowException) as error:
        raise StoreError(
            f"Failed to read partition {partition_file}: {error}. "
            "Move the corrupt file aside and re-run backfill for that day."
        ) from error
    table = _normalize_table(partition_file, table)
    starts = table.column("interval_start").to_pylist()
    ends = table.column("interval_end").to_pylist()
    values = table.column("value").to_pylist()
    collected = table.column("collected_at").to_pylist()
    return [
        Sample(
            interval_start=start.astimezone(timezone.utc),
            interval_end=end.astimezone(timezone.utc),
            value=float(value),
            collected_at=None if collected_at is None else collected_at.astimezone(timezone.utc),
        )
        for start, end, value, collected_at in zip(starts, ends, values, collected)
    ]


def write_partition(partition_file: Path, samples: Sequence[Sample]) -> None:
    """Atomically replace a partition file with ``samples``.

    Raises:
        StoreError: If the file cannot be written.
    """
    partition_file.parent.mkdir(parents=True, exist_ok=True)
    table = pa.table(
        {
            "interval_start": [sample.interval_start for sample in samples],
            "interval_end": [sample.interval_end for sample in samples],
            "value": [sample.value for sample in samples],
            "collected_at": [sample.collected_at for sample in samples],
        },
        schema=PARTITION_SCHEMA,
    )
    tmp_file = partition_file.with_name(
        f"{partition_file.name}.{os.getpid()}.{threading.get_ident()}.tmp"
    )
    try:
        pq.write_table(table, tmp_file)
        os.replace(tmp_file, partition_file)
    except (OSError, pa.ArrowException) as error:
        tmp_file.unlink(missing_ok=True)
        raise StoreError(
            f"Failed to write partition {partition_file}: {error}. "
            "Check disk space and permissions; the batch can be re-driven safely."
        ) from error


def latest_sample(partition_file: Path) -> Sample | None:
    """Return the sample with the greatest ``interval_end`` in a partition."""
    samples = read_partition(partition_file)
    if not samples:
        return None
    return max(samples, key=lambda sample: sample.interval_end)


def _normalize_table(partition_file: Path, table: pa.Table) -> pa.Table:
    renamed = [_LEGACY_COLUMN_NAMES.get(name, name) for name in table.column_names]
    table = table.rename_columns(renamed)
    if "collected_at" not in table.column_names:
        nulls = pa.nulls(table.num_rows, type=pa.timestamp("us", tz="UTC"))
        table = table.append_column(PARTITION_SCHEMA.field("collected_at"), nulls)
    missing = [name for name in PARTITION_SCHEMA.names if name not in table.column_names]
    if missing:
        raise StoreError(
            f"Partition {partition_file} is missing columns {missing}. "
            "Move the file aside and re-run backfill for that day."
        )
    return table.select(PARTITION_SCHEMA.names)
