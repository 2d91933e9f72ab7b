"""Pytest configuration for repository test runs."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_SCRAPER_ENV_VARS = ("SCRAPER_CONFIG", "SCRAPER_DATA_ROOT", "S3_ACCESS_KEY", "S3_SECRET_KEY")


def pytest_sessionstart() -> None:
    """Add src and tests directories to sys.path for test imports."""
    tests_root = Path(__file__).resolve().parent
    for path in (tests_root.parent / "src", tests_root):
        if str(path) not in sys.path:
            sys.path.insert(0, str(path))


@pytest.fixture(autouse=True)
def _isolated_scraper_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host scraper settings from leaking into tests."""
    for name in _SCRAPER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
