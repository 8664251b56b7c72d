"""Observability: structured records of what the block cache did."""

from blockreader.observability.cache_events import CacheEventLog

__all__ = ["CacheEventLog"]
