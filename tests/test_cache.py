"""
Tests for the TTL caches
"""

import asyncio

from blendrec.core.cache import MemoryTTLCache, RedisTTLCache, make_artist_cache_key

from doubles import FlakyRedisClient


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestMemoryTTLCache:

    def test_get_before_and_after_expiry(self):
        clock = FakeClock()
        cache = MemoryTTLCache(clock=clock)

        asyncio.run(cache.set("k", {"in_library": True}, 10))
        assert asyncio.run(cache.get("k")) == {"in_library": True}

        clock.now += 11
        assert asyncio.run(cache.get("k")) is None
        assert len(cache) == 0

    def test_false_is_a_hit(self):
        cache = MemoryTTLCache()

        asyncio.run(cache.set("k", False, 60))

        assert asyncio.run(cache.get("k")) is False

    def test_non_positive_ttl_not_stored(self):
        cache = MemoryTTLCache()

        asyncio.run(cache.set("k", 1, 0))

        assert asyncio.run(cache.get("k")) is None

    def test_clear(self):
        cache = MemoryTTLCache()
        asyncio.run(cache.set("a", 1, 60))
        asyncio.run(cache.set("b", 2, 60))

        asyncio.run(cache.clear())

        assert len(cache) == 0


class TestRedisTTLCache:

    def test_unreachable_redis_degrades_to_miss(self):
        async def scenario():
            cache = RedisTTLCache("redis://127.0.0.1:1/0")
            connected = await cache.connect()
            await cache.set("k", True, 60)
            value = await cache.get("k")
            await cache.close()
            return connected, value, cache.is_connected

        assert asyncio.run(scenario()) == (False, None, False)

    def test_reconnects_after_cooldown(self):
        client = FlakyRedisClient(failing_pings=1)
        clock = FakeClock(0.0)
        cache = RedisTTLCache("redis://cache.local/0", reconnect_cooldown_sec=30, client=client, clock=clock)

        async def scenario():
            first = await cache.connect()
            await cache.set("k", {"present": True}, 60)
            before_cooldown = await cache.get("k")
            clock.now = 31.0
            await cache.set("k", {"present": True}, 60)
            after_cooldown = await cache.get("k")
            return first, before_cooldown, after_cooldown

        first, before_cooldown, after_cooldown = asyncio.run(scenario())

        assert first is False
        assert before_cooldown is None
        assert after_cooldown == {"present": True}
        assert client.pings == 2
        assert cache.is_connected

    def test_command_failure_marks_disconnected(self):
        client = FlakyRedisClient(failing_pings=0)
        cache = RedisTTLCache("redis://cache.local/0", client=client, clock=lambda: 0.0)

        async def scenario():
            await cache.connect()
            client.down = True
            return await cache.get("k")

        assert asyncio.run(scenario()) is None
        assert not cache.is_connected


def test_artist_cache_key_is_normalized():
    assert make_artist_cache_key("  Massive Attack ") == "lib-artist:massive attack"
