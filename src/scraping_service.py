"""Public SDK surface for the scraping service.

This module provides a stable import path for embedding users.
It re-exports configuration, the core components and typed results.
"""

from __future__ import annotations

from adapters.factory import create_adapter
from core.config import AppConfig, S3Settings, SourceConfig, load_app_config
from core.types import AuditReport, BackfillResult, DayCheck, Sample, SourceStatus, TimeWindow
from ingest.backfill import BackfillAbortedError, BackfillRunner
from ingest.scheduler import TaskScheduler
from ingest.service import run_service
from store.measurement_store import MeasurementStore
from store.reconciliation import ReconciliationAuditor
from store.uploader import PartitionUploader, PendingUploads

__all__ = [
    "AppConfig",
    "AuditReport",
    "BackfillAbortedError",
    "BackfillResult",
    "BackfillRunner",
    "DayCheck",
    "MeasurementStore",
    "PartitionUploader",
    "PendingUploads",
    "ReconciliationAuditor",
    "S3Settings",
    "Sample",
    "SourceConfig",
    "SourceStatus",
    "TaskScheduler",
    "TimeWindow",
    "create_adapter",
    "load_app_config",
    "run_service",
]
