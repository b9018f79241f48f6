"""
Blendrec TTL Cache
Short-lived, injectable caches (in-memory or Redis JSON)
"""

import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

import redis.asyncio as redis

logger = logging.getLogger(__name__)

RECONNECT_COOLDOWN_SEC = 30.0


class TTLCache(Protocol):
    """get/set cache with per-entry TTL"""

    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any, ttl_sec: int) -> None:
        ...

    async def clear(self) -> None:
        ...


def make_artist_cache_key(artist_name: str) -> str:
    """
    Library-artist cache key

    format: lib-artist:{lowercased name}
    """
    return f"lib-artist:{artist_name.strip().lower()}"


class MemoryTTLCache:
    """In-process cache; entries expire lazily on read"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: Any, ttl_sec: int) -> None:
        if ttl_sec <= 0:
            return
        self._entries[key] = (self._clock() + ttl_sec, value)

    async def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisTTLCache:
    """Redis-backed cache storing JSON values with SETEX"""

    def __init__(
        self,
        redis_url: str,
        prefix: str = "blendrec:",
        reconnect_cooldown_sec: float = RECONNECT_COOLDOWN_SEC,
        client: Optional[redis.Redis] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            redis_url: Redis connection URL (e.g. redis://localhost:6379/0)
            prefix: key namespace
            reconnect_cooldown_sec: wait after a failure before pinging again
            client: preconfigured client (built from redis_url if None)
            clock: monotonic clock for the cooldown
        """
        self.redis_url = redis_url
        self.prefix = prefix
        self.reconnect_cooldown_sec = reconnect_cooldown_sec
        self._client: redis.Redis = client or redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2
        )
        self._clock = clock
        self._connected: Optional[bool] = None
        self._failed_at = 0.0

    def _mark_failed(self) -> None:
        self._connected = False
        self._failed_at = self._clock()

    async def connect(self) -> bool:
        """Ping; on failure the cache degrades to always-miss until a retry succeeds"""
        try:
            await self._client.ping()
            self._connected = True
            logger.info(f"Redis connected: {self.redis_url}")
        except Exception as e:
            logger.warning(f"Redis connection failed (continuing without cache): {e}")
            self._mark_failed()
        return self._connected

    @property
    def is_connected(self) -> bool:
        return bool(self._connected)

    async def _ready(self) -> bool:
        if self._connected:
            return True
        if self._connected is None or self._clock() - self._failed_at >= self.reconnect_cooldown_sec:
            return await self.connect()
        return False

    async def get(self, key: str) -> Optional[Any]:
        if not await self._ready():
            return None
        try:
            data = await self._client.get(self.prefix + key)
            if data is not None:
                return json.loads(data)
        except redis.RedisError as e:
            logger.warning(f"Cache read failed: {e}")
            self._mark_failed()
        except ValueError as e:
            logger.warning(f"Cache entry unreadable: {e}")
        return None

    async def set(self, key: str, value: Any, ttl_sec: int) -> None:
        if ttl_sec <= 0 or not await self._ready():
            return
        try:
            await self._client.setex(self.prefix + key, ttl_sec, json.dumps(value, ensure_ascii=False))
        except redis.RedisError as e:
            logger.warning(f"Cache write failed: {e}")
            self._mark_failed()

    async def clear(self) -> None:
        if not await self._ready():
            return
        try:
            async for key in self._client.scan_iter(match=self.prefix + "*"):
                await self._client.delete(key)
        except redis.RedisError as e:
            logger.warning(f"Cache clear failed: {e}")
            self._mark_failed()

    async def close(self) -> None:
        await self._client.aclose()
