"""Test suite for the operation cache and its memory backend."""

import pytest

from lexiforge.core import OperationName
from lexiforge.errors import ServiceError
from lexiforge.storage.cache import MemoryCacheBackend, OperationCache, RedisCacheBackend


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestMemoryCacheBackend:
    """Test lazy expiry and prefix deletes."""

    def setup_method(self):
        self.clock = FakeClock()
        self.backend = MemoryCacheBackend(clock=self.clock)

    async def test_get_before_and_after_expiry(self):
        await self.backend.set("k", "v", ttl_seconds=10)
        self.clock.now += 9
        assert await self.backend.get("k") == "v"
        self.clock.now += 1
        assert await self.backend.get("k") is None
        assert len(self.backend) == 0

    async def test_write_sweeps_expired_keys(self):
        await self.backend.set("old", "v", ttl_seconds=5)
        await self.backend.set("kept", "v", ttl_seconds=60)
        self.clock.now += 10
        await self.backend.set("new", "v", ttl_seconds=60)
        assert len(self.backend) == 2
        assert await self.backend.get("kept") == "v"

    async def test_delete_prefix(self):
        await self.backend.set("a:1", "x", 60)
        await self.backend.set("a:2", "x", 60)
        await self.backend.set("b:1", "x", 60)
        assert await self.backend.delete_prefix("a:") == 2
        assert len(self.backend) == 1


class TestOperationCache:
    """Test keys, envelopes and statistics."""

    def setup_method(self):
        self.backend = MemoryCacheBackend(clock=FakeClock())
        self.cache = OperationCache(self.backend, ttls={"generate_lexicon": 60}, clock=FakeClock(42.0))

    def test_key_ignores_dict_order(self):
        a = self.cache.build_key(OperationName.GENERATE_LEXICON, {"languageId": "l1", "x": 1, "y": [1, 2]})
        b = self.cache.build_key(OperationName.GENERATE_LEXICON, {"y": [1, 2], "x": 1, "languageId": "l1"})
        assert a == b
        assert a.startswith("lexiforge:llm:l1:generate_lexicon:")
        assert len(a.rsplit(":", 1)[1]) == 16

    def test_key_depends_on_operation_and_content(self):
        request = {"languageId": "l1", "x": 1}
        keys = {
            self.cache.build_key(OperationName.GENERATE_LEXICON, request),
            self.cache.build_key(OperationName.GENERATE_CORPUS, request),
            self.cache.build_key(OperationName.GENERATE_LEXICON, {**request, "x": 2}),
        }
        assert len(keys) == 3

    def test_requests_without_language_use_global_namespace(self):
        assert self.cache.build_key(OperationName.EXPLAIN_RULE, {"x": 1}).startswith("lexiforge:llm:_:")

    async def test_round_trip_and_stats(self):
        request = {"languageId": "l1", "x": 1}
        assert await self.cache.get(OperationName.GENERATE_LEXICON, request) is None

        key = await self.cache.set(OperationName.GENERATE_LEXICON, request, {"entries": []})
        entry = await self.cache.get(OperationName.GENERATE_LEXICON, request)
        assert entry.key == key
        assert entry.data == {"entries": []}
        assert entry.inserted_at == 42.0

        assert self.cache.stats == {
            "hits": 1, "misses": 1, "writes": 1, "hit_rate": 0.5, "total_requests": 2
        }

    async def test_corrupt_entry_is_dropped(self):
        request = {"languageId": "l1"}
        key = self.cache.build_key(OperationName.GENERATE_LEXICON, request)
        await self.backend.set(key, "{not json", 60)
        assert await self.cache.get(OperationName.GENERATE_LEXICON, request) is None
        assert await self.backend.get(key) is None
        assert self.cache.stats["misses"] == 1

    async def test_invalidate_language(self):
        await self.cache.set(OperationName.GENERATE_LEXICON, {"languageId": "l1", "x": 1}, {})
        await self.cache.set(OperationName.GENERATE_CORPUS, {"languageId": "l1", "x": 1}, {})
        await self.cache.set(OperationName.GENERATE_LEXICON, {"languageId": "l2", "x": 1}, {})

        assert await self.cache.invalidate_language("l1") == 2
        assert await self.cache.get(OperationName.GENERATE_LEXICON, {"languageId": "l2", "x": 1}) is not None

    def test_ttl_falls_back_to_a_day(self):
        assert self.cache.ttl_for(OperationName.GENERATE_LEXICON) == 60
        assert self.cache.ttl_for(OperationName.EXPLAIN_RULE) == 86400


class TestRedisCacheBackend:

    async def test_requires_connect(self):
        with pytest.raises(ServiceError):
            await RedisCacheBackend().get("k")
