"""
Gateway caching package.

Provides the best-effort key/value stores and the cache manager that
stores shaped responses under deterministic keys. Entries expire on a TTL
and are never explicitly invalidated.
"""

from .cache_store import CacheStore, MemoryCacheStore, RedisCacheStore
from .cache_manager import CacheManager

__all__ = [
    "CacheStore",
    "MemoryCacheStore",
    "RedisCacheStore",
    "CacheManager",
]
