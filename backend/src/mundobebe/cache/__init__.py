"""Tag-invalidated caching of list and count reads."""

from mundobebe.cache.reads import cache_key, cached_read, invalidate_tags, with_cache
from mundobebe.cache.store import CacheStore, CacheStoreError, MemoryCacheStore, RedisCacheStore

__all__ = [
    "CacheStore",
    "CacheStoreError",
    "MemoryCacheStore",
    "RedisCacheStore",
    "cache_key",
    "cached_read",
    "invalidate_tags",
    "with_cache",
]
