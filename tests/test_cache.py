"""Tests for the LRU cache and the two-tier snapshot cache."""

import asyncio
import json

from iptv_catalog.models.catalog import CatalogSnapshot, Channel
from iptv_catalog.models.config import Settings
from iptv_catalog.services.cache_service import DATA_KEY_PREFIX, CacheService, LruCache, SharedStore
from helpers import FakeRedis


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def _snapshot():
    return CatalogSnapshot(
        channels=[Channel(id="iptv_1", name="BBC One", url="http://streams/bbc1", category="UK")],
        last_update=1000.0,
    )


class TestLruCache:

    def test_evicts_least_recently_used(self):
        cache = LruCache(max_entries=2, ttl=None)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert cache.keys() == ["a", "c"]

    def test_entries_expire(self):
        clock = FakeClock()
        cache = LruCache(max_entries=10, ttl=60, clock=clock)
        cache.set("a", 1)
        clock.now = 59
        assert cache.get("a") == 1
        clock.now = 61
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_delete_and_clear(self):
        cache = LruCache(max_entries=10, ttl=None)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.delete("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2
        cache.clear()
        assert len(cache) == 0


class TestCacheService:

    def test_round_trip_returns_copies(self, settings):
        async def run():
            cache = CacheService(settings)
            await cache.save_snapshot("k", _snapshot())
            first = await cache.load_snapshot("k")
            first.channels.clear()
            second = await cache.load_snapshot("k")
            return first, second

        first, second = asyncio.run(run())
        assert first.channels == []
        assert len(second.channels) == 1
        assert second.last_update == 1000.0

    def test_saved_snapshot_is_not_aliased(self, settings):
        async def run():
            cache = CacheService(settings)
            snapshot = _snapshot()
            await cache.save_snapshot("k", snapshot)
            snapshot.channels[0].name = "Changed"
            return await cache.load_snapshot("k")

        assert asyncio.run(run()).channels[0].name == "BBC One"

    def test_disabled_cache_stores_nothing(self):
        async def run():
            cache = CacheService(Settings(cache_enabled=False))
            await cache.save_snapshot("k", _snapshot())
            return await cache.load_snapshot("k")

        assert asyncio.run(run()) is None

    def test_miss(self, settings):
        assert asyncio.run(CacheService(settings).load_snapshot("missing")) is None

    def test_write_through_to_shared_store(self, settings):
        redis = FakeRedis()

        async def run():
            cache = CacheService(settings, shared_store=SharedStore(redis))
            await cache.save_snapshot("k", _snapshot())
            await cache.drain()

        asyncio.run(run())
        stored = json.loads(redis.data[DATA_KEY_PREFIX + "k"])
        assert stored["channels"][0]["name"] == "BBC One"

    def test_local_miss_falls_back_to_shared_store(self, settings):
        redis = FakeRedis()
        redis.data[DATA_KEY_PREFIX + "k"] = json.dumps(_snapshot().to_cache())

        async def run():
            cache = CacheService(settings, shared_store=SharedStore(redis))
            return await cache.load_snapshot("k")

        snapshot = asyncio.run(run())
        assert snapshot.channels[0].id == "iptv_1"

    def test_unavailable_shared_store_degrades_to_local(self, settings):
        async def run():
            cache = CacheService(settings, shared_store=SharedStore(FakeRedis(fail=True)))
            missing = await cache.load_snapshot("k")
            await cache.save_snapshot("k", _snapshot())
            await cache.drain()
            return missing, await cache.load_snapshot("k")

        missing, found = asyncio.run(run())
        assert missing is None
        assert found.channels[0].name == "BBC One"

    def test_unreadable_shared_entry_is_ignored(self, settings):
        redis = FakeRedis()
        redis.data[DATA_KEY_PREFIX + "k"] = "{not json"

        async def run():
            cache = CacheService(settings, shared_store=SharedStore(redis))
            return await cache.load_snapshot("k")

        assert asyncio.run(run()) is None

    def test_close_closes_shared_store(self, settings):
        redis = FakeRedis()
        asyncio.run(CacheService(settings, shared_store=SharedStore(redis)).close())
        assert redis.closed is True

    def test_status(self, settings):
        status = CacheService(settings).get_status()
        assert status["enabled"] is True
        assert status["shared_store"] is False
        assert status["local_entries"] == 0
