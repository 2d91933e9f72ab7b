"""Reconciliation of expected days against durable remote storage.

A day counts as present only when object storage holds an artifact for
it. Local partitions are reported alongside but never prove durability.
Checks are produced one day at a time so an interrupted audit keeps the
results computed so far.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Iterable, Iterator

from botocore.exceptions import BotoCoreError, ClientError

from core.config import AppConfig, S3Settings, SourceConfig
from core.constants import ALL_SOURCES
from core.errors import ConfigError
from core.logging_config import get_logger
from core.time_windows import day_count, iter_days, validate_date_range
from core.types import AuditReport, DayCheck, SourceAuditResult
from store.measurement_store import MeasurementStore
from store.partition_layout import day_prefix

_LOGGER = get_logger(__name__)

ProgressCallback = Callable[[DayCheck], None]


class ReconciliationAuditor:
    """Compare calendar days per source against remote confirmation state."""

    def __init__(
        self,
        config: AppConfig,
        s3_client: Any,
        store: MeasurementStore | None = None,
    ) -> None:
        """Initialize the auditor.

        Args:
            config: Runtime configuration with S3 settings and sources.
            s3_client: Boto3-compatible client exposing ``list_objects_v2``.
            store: Optional local store used to annotate local presence.

        Raises:
            ConfigError: If no S3 bucket is configured.
        """
        if config.s3 is None:
            raise ConfigError("No S3 bucket configured. Add an 's3' section to verify uploads.")
        self._config = config
        self._settings: S3Settings = config.s3
        self._client = s3_client
        self._store = store

    def select_sources(self, source_filter: str) -> list[SourceConfig]:
        """Resolve ``all`` or one source name into source configs.

        Raises:
            ConfigError: If the name is not configured.
        """
        if source_filter == ALL_SOURCES:
            return list(self._config.sources.values())
        return [self._config.source(source_filter)]

    def iter_checks(
        self,
        source_filter: str,
        start_date: date,
        end_date: date,
    ) -> Iterator[DayCheck]:
        """Yield one check per source and day in ``[start_date, end_date]``.

        Raises:
            ConfigError: For unknown sources or an inverted date range.
        """
        validate_date_range(start_date, end_date)
        sources = self.select_sources(source_filter)
        _LOGGER.info(
            "audit_started",
            sources=[source.name for source in sources],
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
            days=day_count(start_date, end_date),
        )
        for source in sources:
            for day in iter_days(start_date, end_date):
                yield self.check_day(source, day)

    def check_day(self, source: SourceConfig, day: date) -> DayCheck:
        """Check one source-day with a single listing request."""
        prefix = day_prefix(self._settings.prefix, source.folder, day)
        local_present = self._store.has_partition(source.name, day) if self._store else None
        try:
            response = self._client.list_objects_v2(
                Bucket=self._settings.bucket,
                Prefix=prefix,
                MaxKeys=1,
            )
        except (BotoCoreError, ClientError) as error:
            _LOGGER.warning(
                "audit_day_unknown",
                source_name=source.name,
                day=day.isoformat(),
                error=str(error),
            )
            return DayCheck(source.name, day, "unknown", str(error), local_present)
        contents = response.get("Contents") or []
        if contents:
            return DayCheck(source.name, day, "present", str(contents[0]["Key"]), local_present)
        _LOGGER.info(
            "audit_day_missing", source_name=source.name, day=day.isoformat(), prefix=prefix
        )
        return DayCheck(source.name, day, "missing", prefix, local_present)

    def verify(
        self,
        source_filter: str,
        start_date: date,
        end_date: date,
        on_progress: ProgressCallback | None = None,
    ) -> AuditReport:
        """Run a complete audit and summarise missing and unknown days.

        Args:
            source_filter: A source name or ``all``.
            start_date: First day, inclusive.
            end_date: Last day, inclusive.
            on_progress: Optional callback invoked after every day check.

        Returns:
            Audit report keyed by source name.
        """
        sources = [source.name for source in self.select_sources(source_filter)]
        checks: list[DayCheck] = []
        for check in self.iter_checks(source_filter, start_date, end_date):
            checks.append(check)
            if on_progress is not None:
                on_progress(check)
        return build_audit_report(start_date, end_date, sources, checks)


def build_audit_report(
    start_date: date,
    end_date: date,
    source_names: Iterable[str],
    checks: Iterable[DayCheck],
) -> AuditReport:
    """Fold day checks, possibly a partial prefix, into a report."""
    missing: dict[str, list[date]] = {name: [] for name in source_names}
    unknown: dict[str, list[date]] = {name: [] for name in missing}
    checked: dict[str, int] = {name: 0 for name in missing}
    for check in checks:
        checked[check.source_name] = checked.get(check.source_name, 0) + 1
        if check.status == "missing":
            missing.setdefault(check.source_name, []).append(check.day)
        elif check.status == "unknown":
            unknown.setdefault(check.source_name, []).append(check.day)
    results = {
        name: SourceAuditResult(
            source_name=name,
            checked_days=checked[name],
            missing=tuple(missing.get(name, [])),
            unknown=tuple(unknown.get(name, [])),
        )
        for name in checked
    }
    return AuditReport(start_date=start_date, end_date=end_date, results=results)
