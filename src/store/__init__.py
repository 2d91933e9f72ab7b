"""Storage and durability layer.

This module persists samples into deduplicated day partitions.
It uploads changed partitions and audits the remote copy for gaps.
"""
