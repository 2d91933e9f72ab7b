"""Scraping-service exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Retry policy upstream is driven by which subclass an adapter raises.
"""

from __future__ import annotations


class ScraperError(Exception):
    """Base exception for all scraping-service failures."""


class ConfigError(ScraperError):
    """Raised for invalid configuration, unknown sources or bad date ranges.

    Never retried: the affected source stays suspended until its
    configuration changes.
    """


class TransientError(ScraperError):
    """Raised for network failures, rate limits and timeouts.

    Retried on the next scheduled cycle.
    """


class DataIntegrityError(ScraperError):
    """Raised when a sample has a malformed or ambiguous identity."""


class StoreError(ScraperError):
    """Raised for local measurement store persistence failures."""


class RemoteStorageError(ScraperError):
    """Raised for object storage upload and listing failures."""
