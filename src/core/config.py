"""Runtime configuration model for scraping-service.

This module owns config-file loading, environment overrides and validation.
Other modules consume a typed config object instead of raw mappings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping, cast

import yaml

from core.constants import (
    DEFAULT_CADENCE_MS,
    DEFAULT_CONFIG_PATH,
    DEFAULT_DATA_ROOT,
    DEFAULT_LOOKAHEAD_HOURS,
    DEFAULT_LOOKBACK_HOURS,
    DEFAULT_PARTITION_TIMEZONE,
    DEFAULT_SOURCE_WORKERS,
    DEFAULT_UPLOAD_INTERVAL_SECONDS,
    SUPPORTED_ADAPTER_KINDS,
    SUPPORTED_WINDOW_POLICIES,
    WINDOW_POLICY_SINCE_LAST_STORED,
)
from core.errors import ConfigError
from core.time_windows import resolve_timezone


@dataclass(frozen=True)
class SourceConfig:
    """One configured provider instance.

    Attributes:
        name: Globally unique source name; join key across components.
        kind: Adapter variant, e.g. ``apg`` or ``entsoe``.
        cadence_ms: Fixed delay between the end of one cycle and the next.
        workers: Requested worker count; contributes to the default pool size.
        params: Provider-specific values, validated by the adapter.
        storage_folder: Folder name under the data root.
        window_policy: ``since_last_stored`` or ``rolling``.
        lookback_hours: Rolling window size and catch-up cap.
        lookahead_hours: How far past now each live window extends.
        config_error: Why the entry is unusable, or ``None`` when valid.
            Such a source is suspended when its adapter is built while
            the remaining sources keep running.
    """

    name: str
    kind: str
    cadence_ms: int = DEFAULT_CADENCE_MS
    workers: int = DEFAULT_SOURCE_WORKERS
    params: Mapping[str, Any] = field(default_factory=dict)
    storage_folder: str = ""
    window_policy: str = WINDOW_POLICY_SINCE_LAST_STORED
    lookback_hours: float = DEFAULT_LOOKBACK_HOURS
    lookahead_hours: float = DEFAULT_LOOKAHEAD_HOURS
    config_error: str | None = None

    @property
    def folder(self) -> str:
        """Storage folder, defaulting to the source name."""
        return self.storage_folder or self.name


@dataclass(frozen=True)
class S3Settings:
    """Object storage destination and session settings.

    Attributes:
        bucket: Destination bucket name.
        region: Optional region name.
        endpoint_url: Optional S3-compatible endpoint.
        prefix: Key prefix prepended to every partition path.
        profile: Optional AWS profile for boto3 session initialization.
    """

    bucket: str
    region: str | None = None
    endpoint_url: str | None = None
    prefix: str = ""
    profile: str | None = None


@dataclass(frozen=True)
class AppConfig:
    """Validated process configuration, constructed once at startup.

    Attributes:
        data_root: Local root directory for partition files.
        workers: Optional global pool size for concurrent cycles.
        partition_timezone: IANA timezone defining calendar days.
        upload_interval_seconds: Delay between upload rounds.
        s3: Optional object storage settings.
        sources: Configured sources keyed by name.
    """

    data_root: Path
    sources: Mapping[str, SourceConfig]
    workers: int | None = None
    partition_timezone: str = DEFAULT_PARTITION_TIMEZONE
    upload_interval_seconds: float = DEFAULT_UPLOAD_INTERVAL_SECONDS
    s3: S3Settings | None = None

    @property
    def pool_size(self) -> int:
        """Global bound on concurrently running source cycles."""
        if self.workers is not None:
            return self.workers
        return max((source.workers for source in self.sources.values()), default=1)

    def source(self, name: str) -> SourceConfig:
        """Look up one source by name.

        Raises:
            ConfigError: If the source is not configured.
        """
        try:
            return self.sources[name]
        except KeyError as error:
            known = ", ".join(sorted(self.sources)) or "none"
            raise ConfigError(
                f"Source '{name}' not found in configuration. Known sources: {known}."
            ) from error


def load_app_config(
    config_path: str | Path | None = None,
    data_root: str | Path | None = None,
) -> AppConfig:
    """Load and validate the configuration file.

    Args:
        config_path: Optional path; defaults to ``SCRAPER_CONFIG`` or config.yaml.
        data_root: Optional override; defaults to ``SCRAPER_DATA_ROOT``.

    Returns:
        A validated config object.

    Raises:
        ConfigError: If the file is missing, unparsable or invalid.
    """
    resolved_path = Path(
        config_path or os.getenv("SCRAPER_CONFIG", str(DEFAULT_CONFIG_PATH))
    ).expanduser()
    payload = _read_config_payload(resolved_path)
    config = parse_app_config(payload)
    data_root_override = data_root or os.getenv("SCRAPER_DATA_ROOT")
    if data_root_override:
        config = replace(config, data_root=Path(data_root_override).expanduser().resolve())
    return config


def parse_app_config(payload: object) -> AppConfig:
    """Build an :class:`AppConfig` from an already-parsed mapping."""
    root = _expect_mapping(payload, "config root")
    partition_timezone = _optional_str(root, "partition_timezone") or DEFAULT_PARTITION_TIMEZONE
    resolve_timezone(partition_timezone)
    workers = root.get("workers")
    return AppConfig(
        data_root=Path(_optional_str(root, "data_root") or str(DEFAULT_DATA_ROOT))
        .expanduser()
        .resolve(),
        sources=_parse_sources(root.get("sources")),
        workers=None if workers is None else _positive_int(workers, "workers"),
        partition_timezone=partition_timezone,
        upload_interval_seconds=_positive_float(
            root.get("upload_interval_seconds", DEFAULT_UPLOAD_INTERVAL_SECONDS),
            "upload_interval_seconds",
        ),
        s3=_parse_s3_settings(root),
    )


def _read_config_payload(config_path: Path) -> object:
    if not config_path.exists():
        raise ConfigError(
            f"Config file does not exist at {config_path}. "
            "Pass --config or set SCRAPER_CONFIG."
        )
    try:
        payload = cast(object, yaml.safe_load(config_path.read_text(encoding="utf-8")))
    except OSError as error:
        raise ConfigError(
            f"Failed to read config at {config_path}: {error}. Check file permissions."
        ) from error
    except yaml.YAMLError as error:
        raise ConfigError(
            f"Failed to parse config at {config_path}: {error}. Fix the syntax and retry."
        ) from error
    if payload is None:
        raise ConfigError(f"Config at {config_path} is empty. Define at least 'sources'.")
    return payload


def _parse_sources(raw_sources: object) -> dict[str, SourceConfig]:
    if raw_sources is None:
        raise ConfigError("Config field 'sources' is required. Define at least one source.")
    if isinstance(raw_sources, list):
        entries = [_expect_mapping(item, "source entry") for item in raw_sources]
        named: list[tuple[str, Mapping[str, object]]] = []
        for entry in entries:
            name = entry.get("name")
            if not isinstance(name, str) or not name:
                raise ConfigError("Every source list entry needs a non-empty 'name'.")
            named.append((name, entry))
    else:
        mapping = _expect_mapping(raw_sources, "sources")
        named = [
            (name, _expect_mapping(entry, f"source '{name}'"))
            for name, entry in mapping.items()
        ]
    sources: dict[str, SourceConfig] = {}
    for name, entry in named:
        if name in sources:
            raise ConfigError(f"Duplicate source name '{name}'. Source names must be unique.")
        sources[name] = _parse_source(name, entry)
    if not sources:
        raise ConfigError("Config field 'sources' is empty. Define at least one source.")
    return sources


def require_valid_source(source: SourceConfig) -> None:
    """Raise the load-time problem recorded for ``source``, if any.

    Raises:
        ConfigError: If the source entry failed validation.
    """
    if source.config_error is not None:
        raise ConfigError(source.config_error)


def _parse_source(name: str, entry: Mapping[str, object]) -> SourceConfig:
    try:
        return _parse_valid_source(name, entry)
    except ConfigError as error:
        folder = entry.get("sub_data_folder")
        return SourceConfig(
            name=name,
            kind="",
            storage_folder=folder if isinstance(folder, str) else "",
            config_error=str(error),
        )


def _parse_valid_source(name: str, entry: Mapping[str, object]) -> SourceConfig:
    raw_params = entry.get("values", entry.get("params", {}))
    params = _expect_mapping(raw_params, f"source '{name}' values")
    kind = _optional_str(entry, "kind") or _infer_kind(name, params)
    if kind not in SUPPORTED_ADAPTER_KINDS:
        raise ConfigError(
            f"Unsupported adapter kind '{kind}' for source '{name}'. "
            f"Supported kinds: {SUPPORTED_ADAPTER_KINDS}."
        )
    window_policy = _optional_str(entry, "window_policy") or WINDOW_POLICY_SINCE_LAST_STORED
    if window_policy not in SUPPORTED_WINDOW_POLICIES:
        raise ConfigError(
            f"Unsupported window_policy '{window_policy}' for source '{name}'. "
            f"Supported policies: {SUPPORTED_WINDOW_POLICIES}."
        )
    cadence = entry.get("task_generator_delay_ms", entry.get("cadence_ms", DEFAULT_CADENCE_MS))
    return SourceConfig(
        name=name,
        kind=kind,
        cadence_ms=_positive_int(cadence, f"{name}.task_generator_delay_ms"),
        workers=_positive_int(entry.get("workers", DEFAULT_SOURCE_WORKERS), f"{name}.workers"),
        params=dict(params),
        storage_folder=_optional_str(entry, "sub_data_folder") or "",
        window_policy=window_policy,
        lookback_hours=_positive_float(
            entry.get("lookback_hours", DEFAULT_LOOKBACK_HOURS), f"{name}.lookback_hours"
        ),
        lookahead_hours=_non_negative_float(
            entry.get("lookahead_hours", DEFAULT_LOOKAHEAD_HOURS), f"{name}.lookahead_hours"
        ),
    )


def _infer_kind(name: str, params: Mapping[str, object]) -> str:
    """Infer the adapter kind from the provider URL when not given."""
    url = params.get("url")
    if not isinstance(url, str):
        raise ConfigError(
            f"Source '{name}' has neither 'kind' nor a 'values.url' to infer it from."
        )
    lowered = url.lower()
    for kind in SUPPORTED_ADAPTER_KINDS:
        if kind in lowered:
            return kind
    raise ConfigError(f"Cannot infer adapter kind for source '{name}' from URL '{url}'.")


def _parse_s3_settings(root: Mapping[str, object]) -> S3Settings | None:
    raw_s3 = root.get("s3")
    if raw_s3 is None:
        bucket = _optional_str(root, "s3_bucket")
        if not bucket:
            return None
        raw_s3 = {
            "bucket": bucket,
            "region": root.get("s3_region"),
            "endpoint_url": root.get("s3_endpoint"),
            "prefix": root.get("s3_prefix"),
        }
    s3_mapping = _expect_mapping(raw_s3, "s3")
    bucket = _optional_str(s3_mapping, "bucket")
    if not bucket:
        raise ConfigError("Config field 's3.bucket' is required when 's3' is present.")
    return S3Settings(
        bucket=bucket,
        region=_optional_str(s3_mapping, "region"),
        endpoint_url=_optional_str(s3_mapping, "endpoint_url"),
        prefix=_optional_str(s3_mapping, "prefix") or "",
        profile=_optional_str(s3_mapping, "profile"),
    )


def _expect_mapping(value: object, context: str) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        for key in value:
            if not isinstance(key, str):
                raise ConfigError(
                    f"Invalid {context}: expected string keys, got {type(key).__name__}."
                )
        return cast(Mapping[str, object], value)
    raise ConfigError(f"Invalid {context}: expected mapping, got {type(value).__name__}.")


def _optional_str(mapping: Mapping[str, object], key: str) -> str | None:
    value = mapping.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"Config field '{key}' must be a string, got {type(value).__name__}.")
    return value


def _positive_int(value: object, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"Config field '{field_name}' must be a positive integer, got {value!r}.")
    return value


def _positive_float(value: object, field_name: str) -> float:
    number = _number(value, field_name)
    if number <= 0:
        raise ConfigError(f"Config field '{field_name}' must be positive, got {value!r}.")
    return number


def _non_negative_float(value: object, field_name: str) -> float:
    number = _number(value, field_name)
    if number < 0:
        raise ConfigError(f"Config field '{field_name}' must not be negative, got {value!r}.")
    return number


def _number(value: object, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"Config field '{field_name}' must be a number, got {value!r}.")
    return float(value)
