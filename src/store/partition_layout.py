"""Partition path and object key layout.

Local files and remote objects share one Hive-style layout per source:
``<folder>/year=YYYY/month=MM/day=DD/data.parquet``.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

from core.constants import PARTITION_FILE_NAME


def partition_relative_dir(folder: str, day: date) -> str:
    """Return the POSIX partition directory relative to the data root."""
    return f"{folder}/year={day.year}/month={day.month:02d}/day={day.day:02d}"


def partition_path(data_root: Path, folder: str, day: date) -> Path:
    """Return the local partition file for one source folder and day."""
    return data_root / partition_relative_dir(folder, day) / PARTITION_FILE_NAME


def object_key(prefix: str, relative_path: str) -> str:
    """Join a key prefix and a POSIX path relative to the data root."""
    return f"{prefix}{relative_path}"


def day_prefix(prefix: str, folder: str, day: date) -> str:
    """Return the object key prefix that holds one day's partition."""
    return object_key(prefix, partition_relative_dir(folder, day) + "/")


def parse_partition_day(partition_file: Path) -> date | None:
    """Recover the day from ``.../year=Y/month=M/day=D/data.parquet``.

    Returns:
        The partition day, or ``None`` for paths outside the layout.
    """
    day_dir = partition_file.parent
    parts = {
        "day": day_dir.name,
        "month": day_dir.parent.name,
        "year": day_dir.parent.parent.name,
    }
    values: dict[str, int] = {}
    for name, segment in parts.items():
        key, _, raw_value = segment.partition("=")
        if key != name or not raw_value.isdigit():
            return None
        values[name] = int(raw_value)
    try:
        return date(values["year"], values["month"], values["day"])
    except ValueError:
        return None
