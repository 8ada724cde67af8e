"""Storage layer for operation caching.

Barrel export for the cache and its backends.
"""

from .cache import (
    CacheEntry,
    MemoryCacheBackend,
    RedisCacheBackend,
    OperationCache,
    build_cache_backend,
)

__all__ = [
    "CacheEntry",
    "MemoryCacheBackend",
    "RedisCacheBackend",
    "OperationCache",
    "build_cache_backend",
]
