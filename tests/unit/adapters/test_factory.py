"""Unit tests for adapter selection."""

from __future__ import annotations

from dataclasses import replace

import pytest

from adapters.apg import ApgAdapter
from adapters.factory import create_adapter
from core.errors import ConfigError
from scraper_fakes import make_source


def test_create_adapter_selects_variant_by_kind() -> None:
    """The configured kind should pick the adapter class."""
    adapter = create_adapter(make_source("x"))

    assert isinstance(adapter, ApgAdapter) and adapter.source_name == "x"


def test_create_adapter_rejects_unknown_kind() -> None:
    """Unknown kinds should raise a config error."""
    with pytest.raises(ConfigError):
        create_adapter(replace(make_source("x"), kind="nordpool"))


def test_create_adapter_rejects_invalid_timeout() -> None:
    """Provider parameters should be validated at construction."""
    source = make_source(
        "x",
        params={
            "url": "https://transparency.apg.at/api/v1/AE",
            "column": "AE",
            "timeout_seconds": 0,
        },
    )

    with pytest.raises(ConfigError):
        create_adapter(source)


def test_create_adapter_raises_recorded_config_error() -> None:
    """Entries that failed validation at load time should fail on construction."""
    source = replace(make_source("x"), kind="", config_error="Unsupported window_policy")

    with pytest.raises(ConfigError, match="Unsupported window_policy"):
        create_adapter(source)
