"""Collection layer.

This module runs periodic per-source scrape cycles and historical backfills.
It hands fetched samples to the store layer for deduplicated persistence.
"""
