"""Content-addressed cache for gated model operations.

Key Format: <prefix><language_id>:<operation>:<sha256(canonical request)[:16]>
Value: JSON envelope {"insertedAt": <unix seconds>, "data": <payload>}
TTL: per operation (see ``default_cache_ttls``)

The language id segment lets every cached result of a language be dropped
with one prefix delete when the language changes.
"""

import hashlib
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import orjson
import redis.asyncio as aioredis
from pydantic import BaseModel

from lexiforge.config import DAY, Settings, default_cache_ttls
from lexiforge.core import OperationName
from lexiforge.core.contracts import ICacheBackend
from lexiforge.errors import ErrorCode, ServiceError
from lexiforge.observ import get_logger

logger = get_logger(__name__)

GLOBAL_NAMESPACE = "_"


@dataclass(frozen=True)
class CacheEntry:
    key: str
    data: Any
    inserted_at: float


# ═════════════════════════════════════════════════════════════════════════════
# Backends
# ═════════════════════════════════════════════════════════════════════════════

class MemoryCacheBackend:
    """In-process store; expired entries are evicted on their next access
    or swept on the next write."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._store: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    async def get(self, key: str) -> Optional[str]:
        with self._lock:
            item = self._store.get(key)
            if item is None:
                return None
            value, expires_at = item
            if self._clock() >= expires_at:
                del self._store[key]
                return None
            return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            now = self._clock()
            expired = [k for k, (_, expires_at) in self._store.items() if now >= expires_at]
            for stale in expired:
                del self._store[stale]
            self._store[key] = (value, now + ttl_seconds)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    async def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in self._store if k.startswith(prefix)]
            for key in doomed:
                del self._store[key]
            return len(doomed)

    def __len__(self) -> int:
        return len(self._store)


class RedisCacheBackend:
    """Redis store shared between processes; TTL enforced with SETEX."""

    def __init__(self, redis_url: str = "redis://localhost:6379"):
        self._redis_url = redis_url
        self._redis: Optional[aioredis.Redis] = None

    async def connect(self) -> None:
        """Initialize Redis connection."""
        self._redis = aioredis.from_url(
            self._redis_url,
            encoding="utf-8",
            decode_responses=True
        )
        await self._redis.ping()
        logger.info("operation_cache_connected", url=self._redis_url)

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("operation_cache_closed")

    def _client(self) -> aioredis.Redis:
        if self._redis is None:
            raise ServiceError("cache", "redis backend used before connect()", code=ErrorCode.CACHE_ERROR)
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        return await self._client().get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._client().setex(key, ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._client().delete(key)

    async def delete_prefix(self, prefix: str) -> int:
        redis = self._client()
        cursor = 0
        count = 0
        while True:
            cursor, keys = await redis.scan(cursor, match=f"{prefix}*", count=1000)
            if keys:
                await redis.delete(*keys)
                count += len(keys)
            if cursor == 0:
                break
        return count


# ═════════════════════════════════════════════════════════════════════════════
# Operation cache
# ═════════════════════════════════════════════════════════════════════════════

def canonical_request(request: Any) -> Any:
    """JSON-compatible form of a request; pydantic models dump by alias."""
    if isinstance(request, BaseModel):
        return request.model_dump(mode="json", by_alias=True)
    return request


def _language_namespace(payload: Any) -> str:
    if isinstance(payload, dict):
        value = payload.get("languageId") or payload.get("language_id")
        if value:
            return str(value)
    return GLOBAL_NAMESPACE


class OperationCache:
    """Operation-level cache over an interchangeable backend.

    Equivalent requests map to the same key regardless of dict ordering,
    because the request is serialized with sorted keys before hashing.
    """

    def __init__(
        self,
        backend: ICacheBackend,
        ttls: Optional[dict[str, int]] = None,
        key_prefix: str = "lexiforge:llm:",
        clock: Callable[[], float] = time.time
    ):
        self._backend = backend
        self._ttls = ttls if ttls is not None else default_cache_ttls()
        self._prefix = key_prefix
        self._clock = clock

        # Statistics
        self._hits = 0
        self._misses = 0
        self._writes = 0

    @classmethod
    def from_settings(cls, settings: Settings, backend: ICacheBackend) -> "OperationCache":
        return cls(backend, ttls=settings.cache_ttls, key_prefix=settings.cache_key_prefix)

    @property
    def backend(self) -> ICacheBackend:
        return self._backend

    def ttl_for(self, operation: OperationName) -> int:
        return self._ttls.get(operation.value, DAY)

    def build_key(self, operation: OperationName, request: Any) -> str:
        payload = canonical_request(request)
        digest = hashlib.sha256(orjson.dumps(payload, option=orjson.OPT_SORT_KEYS)).hexdigest()[:16]
        return f"{self._prefix}{_language_namespace(payload)}:{operation.value}:{digest}"

    async def get(self, operation: OperationName, request: Any) -> Optional[CacheEntry]:
        key = self.build_key(operation, request)
        raw = await self._backend.get(key)
        if raw is None:
            self._misses += 1
            return None

        try:
            envelope = orjson.loads(raw)
            entry = CacheEntry(key=key, data=envelope["data"], inserted_at=envelope["insertedAt"])
        except (orjson.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning("operation_cache_corrupt_entry", key=key, error=str(e))
            await self._backend.delete(key)
            self._misses += 1
            return None

        self._hits += 1
        logger.debug("operation_cache_hit", operation=operation.value, key=key)
        return entry

    async def set(self, operation: OperationName, request: Any, data: Any) -> str:
        key = self.build_key(operation, request)
        envelope = {"insertedAt": self._clock(), "data": data}
        await self._backend.set(key, orjson.dumps(envelope).decode(), self.ttl_for(operation))
        self._writes += 1
        logger.debug("operation_cache_write", operation=operation.value, key=key)
        return key

    async def invalidate(self, operation: OperationName, request: Any) -> None:
        await self._backend.delete(self.build_key(operation, request))

    async def invalidate_language(self, language_id: str) -> int:
        """Drop every cached result of one language, e.g. after a version bump."""
        count = await self._backend.delete_prefix(f"{self._prefix}{language_id}:")
        logger.info("operation_cache_language_invalidated", language_id=language_id, count=count)
        return count

    @property
    def stats(self) -> dict:
        """Get cache statistics."""
        total = self._hits + self._misses
        hit_rate = self._hits / total if total > 0 else 0.0

        return {
            "hits": self._hits,
            "misses": self._misses,
            "writes": self._writes,
            "hit_rate": hit_rate,
            "total_requests": total
        }


def build_cache_backend(settings: Settings) -> ICacheBackend:
    if settings.cache_backend == "redis":
        return RedisCacheBackend(settings.redis_url)
    return MemoryCacheBackend()
