"""Core constants used across scraping-service modules.

This module centralizes defaults, file names and exit codes.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_CONFIG_PATH = Path("config.yaml")
DEFAULT_DATA_ROOT = Path("data")
DEFAULT_PARTITION_TIMEZONE = "Europe/Vienna"
DEFAULT_CADENCE_MS = 60_000
DEFAULT_SOURCE_WORKERS = 1
DEFAULT_UPLOAD_INTERVAL_SECONDS = 60.0
DEFAULT_LOOKBACK_HOURS = 24.0
DEFAULT_LOOKAHEAD_HOURS = 0.0
DEFAULT_FETCH_TIMEOUT_SECONDS = 30.0
DEFAULT_LOG_LEVEL = "info"
PARTITION_FILE_NAME = "data.parquet"
PARTITION_LOCK_FILE_NAME = ".data.lock"
DATE_FORMAT = "%Y-%m-%d"
ALL_SOURCES = "all"
WINDOW_POLICY_SINCE_LAST_STORED = "since_last_stored"
WINDOW_POLICY_ROLLING = "rolling"
SUPPORTED_WINDOW_POLICIES = (WINDOW_POLICY_SINCE_LAST_STORED, WINDOW_POLICY_ROLLING)
ADAPTER_KIND_APG = "apg"
ADAPTER_KIND_ENTSOE = "entsoe"
SUPPORTED_ADAPTER_KINDS = (ADAPTER_KIND_APG, ADAPTER_KIND_ENTSOE)
EXIT_OK = 0
EXIT_INCOMPLETE = 1
EXIT_CONFIG_ERROR = 2
EXIT_PARTIAL = 3
EXIT_FAILURE = 4
EXIT_INTERRUPTED = 130
