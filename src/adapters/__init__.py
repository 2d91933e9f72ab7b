"""Provider adapters.

This module exposes one adapter variant per supported provider.
Every variant implements ``fetch(window) -> list[Sample]``.
"""
