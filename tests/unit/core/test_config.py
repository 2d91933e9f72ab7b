"""Unit tests for core config parsing."""

from __future__ import annotations

import os

import pytest

from core.config import load_app_config, parse_app_config, require_valid_source
from core.errors import ConfigError


def _apg_entry(**overrides: object) -> dict[str, object]:
    entry: dict[str, object] = {
        "task_generator_delay_ms": 1000,
        "values": {"url": "https://transparency.apg.at/api/v1/AE", "column": "AE"},
    }
    entry.update(overrides)
    return entry


def test_parse_infers_kind_from_url() -> None:
    """Sources without kind should infer it from the provider URL."""
    config = parse_app_config({"sources": {"apg_imb_15min": _apg_entry()}})

    assert config.source("apg_imb_15min").kind == "apg"


def test_parse_accepts_source_list_with_names() -> None:
    """Sources may be given as a list of named entries."""
    config = parse_app_config({"sources": [{"name": "x", **_apg_entry(sub_data_folder="apg/x")}]})

    assert config.source("x").folder == "apg/x"


def test_parse_rejects_duplicate_names() -> None:
    """Duplicate source names must be rejected."""
    payload = {"sources": [{"name": "x", **_apg_entry()}, {"name": "x", **_apg_entry()}]}

    with pytest.raises(ConfigError):
        parse_app_config(payload)


def test_unknown_window_policy_marks_only_that_source_invalid() -> None:
    """A bad window policy should flag its own source and leave others usable."""
    config = parse_app_config(
        {"sources": {"x": _apg_entry(window_policy="sliding"), "y": _apg_entry()}}
    )

    assert "sliding" in (config.source("x").config_error or "")
    assert config.source("y").config_error is None
    with pytest.raises(ConfigError, match="sliding"):
        require_valid_source(config.source("x"))


def test_non_positive_cadence_marks_source_invalid() -> None:
    """Cadence must be a positive integer."""
    config = parse_app_config({"sources": {"x": _apg_entry(task_generator_delay_ms=0)}})

    with pytest.raises(ConfigError, match="task_generator_delay_ms"):
        require_valid_source(config.source("x"))


def test_uninferable_kind_keeps_other_sources_and_folder() -> None:
    """A URL matching no adapter kind should not block the rest of the config."""
    bad = {"values": {"url": "https://example.com/x"}, "sub_data_folder": "misc/x"}
    config = parse_app_config({"sources": {"good": _apg_entry(), "bad": bad}})

    assert config.source("good").kind == "apg"
    assert config.source("bad").folder == "misc/x"
    assert "Cannot infer adapter kind" in (config.source("bad").config_error or "")


def test_pool_size_defaults_to_largest_source_workers() -> None:
    """Without top-level workers the pool follows the largest source request."""
    config = parse_app_config(
        {"sources": {"a": _apg_entry(workers=2), "b": _apg_entry(workers=5)}}
    )

    assert config.pool_size == 5


def test_pool_size_prefers_top_level_workers() -> None:
    """Top-level workers should override per-source requests."""
    config = parse_app_config({"workers": 3, "sources": {"a": _apg_entry(workers=8)}})

    assert config.pool_size == 3


def test_legacy_s3_keys_are_accepted() -> None:
    """Flat s3_* keys should map onto S3 settings."""
    config = parse_app_config(
        {
            "s3_bucket": "market-data",
            "s3_region": "eu-central-1",
            "s3_endpoint": "https://minio.local",
            "s3_prefix": "raw/",
            "sources": {"a": _apg_entry()},
        }
    )

    assert config.s3 is not None and (config.s3.bucket, config.s3.prefix) == ("market-data", "raw/")


def test_unknown_source_lookup_raises() -> None:
    """Looking up an unknown source should raise a config error."""
    config = parse_app_config({"sources": {"a": _apg_entry()}})

    with pytest.raises(ConfigError, match="Known sources: a"):
        config.source("missing")


def test_load_reads_yaml_and_env_data_root(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Loading should read YAML and honor SCRAPER_DATA_ROOT."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "sources:\n"
        "  apg_imb_15min:\n"
        "    task_generator_delay_ms: 1000\n"
        "    values:\n"
        "      url: https://transparency.apg.at/api/v1/AE\n"
        "      column: AE\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("SCRAPER_DATA_ROOT", str(tmp_path / "store"))

    config = load_app_config(config_path)

    assert config.data_root == (tmp_path / "store").resolve()


def test_load_raises_for_missing_file(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    """A missing config file should raise an actionable config error."""
    monkeypatch.setenv("SCRAPER_CONFIG", str(tmp_path / "absent.yaml"))

    with pytest.raises(ConfigError, match="SCRAPER_CONFIG"):
        load_app_config()

    assert os.getenv("SCRAPER_CONFIG", "").endswith("absent.yaml")


def test_load_raises_for_invalid_yaml(tmp_path) -> None:
    """Unparsable YAML should raise a config error."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text("sources: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_app_config(config_path)
