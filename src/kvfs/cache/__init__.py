"""
Local cache package.

- base.py: CacheProtocol, the get/put interface shared by every backend
- kv_cache.py: InMemoryKVCache, SQLiteKVCache and the open_cache() factory
"""

from kvfs.cache.base import CacheProtocol
from kvfs.cache.kv_cache import (
    CacheBackend,
    InMemoryKVCache,
    SQLiteKVCache,
    open_cache,
)

__all__ = [
    "CacheBackend",
    "CacheProtocol",
    "InMemoryKVCache",
    "SQLiteKVCache",
    "open_cache",
]
