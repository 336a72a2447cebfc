"""Persistent cache of historical series.

- ``CacheStore``: Protocol every cache backend satisfies.
- ``SqliteCacheStore``: aiosqlite implementation with replace-on-write
  per period and a single ``lastHistoricalUpdate`` metadata row.
"""

from price_monitor.cache.store import (
    LAST_UPDATE_KEY,
    CacheStore,
    SqliteCacheStore,
    record_id,
)

__all__ = [
    "CacheStore",
    "SqliteCacheStore",
    "LAST_UPDATE_KEY",
    "record_id",
]
