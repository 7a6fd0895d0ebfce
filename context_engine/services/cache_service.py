# context_engine/services/cache_service.py
import asyncio
import json
import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional

import redis.asyncio as redis

from context_engine.config.settings import settings
from context_engine.models.internal import CacheStats

logger = logging.getLogger(__name__)

KEY_PREFIX = "context_engine"


class CacheService:
    """
    In-memory TTL cache with least-recently-used eviction.

    Both get and set count as a use. When a new key arrives at capacity,
    expired entries are dropped first and then the least recently used
    entry is evicted. Expiry is checked lazily on every read and swept in
    the background once start() has been called. If REDIS_URL is set,
    writes are mirrored to Redis and memory misses fall back to it.
    """

    def __init__(
        self,
        max_items: Optional[int] = None,
        default_ttl: Optional[int] = None,
        check_period: Optional[int] = None,
        redis_url: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.max_items = max_items if max_items is not None else settings.MEMORY_CACHE_MAX_ITEMS
        if self.max_items < 1:
            raise ValueError("Cache capacity must be at least 1")
        self.default_ttl = default_ttl or settings.CACHE_TTL_SECONDS
        self.check_period = check_period or settings.CACHE_CHECK_PERIOD
        self.redis_url = settings.REDIS_URL if redis_url is None else redis_url
        self.redis_enabled = bool(self.redis_url)
        self.redis_client: Optional[redis.Redis] = None
        self.clock = clock

        self.memory_cache: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        self._lock = asyncio.Lock()
        self._sweeper: Optional[asyncio.Task] = None
        self._stats = CacheStats()

    async def _get_redis_client(self) -> Optional[redis.Redis]:
        if not self.redis_enabled:
            return None

        if self.redis_client is None:
            try:
                if self.redis_url.startswith(("redis://", "rediss://")):
                    self.redis_client = redis.from_url(
                        self.redis_url,
                        encoding="utf-8",
                        decode_responses=True,
                        socket_timeout=5,
                        socket_connect_timeout=5
                    )
                    await self.redis_client.ping()
                    logger.info("✅ Redis connection established")
                else:
                    logger.warning("⚠️ Invalid Redis URL, using memory cache only")
                    self.redis_enabled = False
                    return None
            except Exception as e:
                logger.warning(f"⚠️ Redis connection failed: {e}. Using memory cache only.")
                self.redis_enabled = False
                self.redis_client = None
                return None

        return self.redis_client

    def create_key(self, prefix: str, *parts: str) -> str:
        return f"{KEY_PREFIX}:{prefix}:{':'.join(parts)}"

    async def get(self, key: str) -> Optional[Any]:
        try:
            async with self._lock:
                value = self._memory_get(key)
                if value is None:
                    value = await self._redis_get(key)
                if value is None:
                    self._stats.misses += 1
                else:
                    self._stats.hits += 1
                self._update_hit_rate()
                return value
        except Exception as e:
            logger.error(f"Cache get error: {e}")
            self._stats.misses += 1
            self._update_hit_rate()
            return None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        ttl = ttl_seconds or self.default_ttl
        try:
            async with self._lock:
                self._memory_set(key, value, ttl)
                self._stats.sets += 1
                self._stats.size = len(self.memory_cache)

                redis_client = await self._get_redis_client()
                if redis_client:
                    try:
                        await redis_client.setex(key, int(max(ttl, 1)), json.dumps(value, default=str))
                    except Exception as e:
                        logger.warning(f"Redis set error: {e}")
            return True
        except Exception as e:
            logger.error(f"Cache set error: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            async with self._lock:
                deleted = self.memory_cache.pop(key, None) is not None

                redis_client = await self._get_redis_client()
                if redis_client:
                    try:
                        deleted = bool(await redis_client.delete(key)) or deleted
                    except Exception as e:
                        logger.warning(f"Redis delete error: {e}")

                if deleted:
                    self._stats.deletes += 1
                self._stats.size = len(self.memory_cache)
                return deleted
        except Exception as e:
            logger.error(f"Cache delete error: {e}")
            return False

    async def clear(self) -> bool:
        try:
            async with self._lock:
                self.memory_cache.clear()
                self._stats.size = 0

                redis_client = await self._get_redis_client()
                if redis_client:
                    try:
                        keys = [k async for k in redis_client.scan_iter(match=f"{KEY_PREFIX}:*")]
                        if keys:
                            await redis_client.delete(*keys)
                    except Exception as e:
                        logger.warning(f"Redis clear error: {e}")
            return True
        except Exception as e:
            logger.error(f"Cache clear error: {e}")
            return False

    async def exists(self, key: str) -> bool:
        try:
            async with self._lock:
                entry = self.memory_cache.get(key)
                if entry is not None:
                    if self._is_expired(entry):
                        del self.memory_cache[key]
                        self._stats.size = len(self.memory_cache)
                    else:
                        return True

                redis_client = await self._get_redis_client()
                if redis_client:
                    try:
                        return bool(await redis_client.exists(key))
                    except Exception as e:
                        logger.warning(f"Redis exists error: {e}")
                return False
        except Exception as e:
            logger.error(f"Cache exists error: {e}")
            return False

    def stats(self) -> CacheStats:
        return self._stats.model_copy()

    def reset_stats(self) -> None:
        self._stats = CacheStats(size=len(self.memory_cache))

    async def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were removed"""
        async with self._lock:
            expired = [k for k, entry in self.memory_cache.items() if self._is_expired(entry)]
            for k in expired:
                del self.memory_cache[k]
            self._stats.size = len(self.memory_cache)

        if expired:
            logger.debug(f"Cache sweep removed {len(expired)} expired entries")
        return len(expired)

    async def start(self) -> None:
        """Start the background expiry sweep"""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop())

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.check_period)
            try:
                await self.purge_expired()
            except Exception as e:
                logger.error(f"Cache sweep error: {e}")

    async def is_connected(self) -> Dict[str, bool]:
        return {
            "redis": await self._get_redis_client() is not None,
            "memory": True
        }

    async def health_check(self) -> str:
        try:
            test_key = self.create_key("health", "check")
            await self.set(test_key, "test", 5)
            value = await self._peek(test_key)
            await self.delete(test_key)
            if value == "test":
                return "healthy"
            return "unhealthy"
        except Exception as e:
            logger.error(f"Cache health check failed: {e}")
            return "unhealthy"

    async def close(self):
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None

        if self.redis_client:
            try:
                await self.redis_client.aclose()
            except Exception as e:
                logger.warning(f"Redis close error: {e}")
            self.redis_client = None

        self.memory_cache.clear()
        self._stats.size = 0

    async def _peek(self, key: str) -> Optional[Any]:
        """Read without touching hit/miss statistics"""
        async with self._lock:
            return self._memory_get(key)

    def _memory_get(self, key: str) -> Optional[Any]:
        entry = self.memory_cache.get(key)
        if entry is None:
            return None
        if self._is_expired(entry):
            del self.memory_cache[key]
            self._stats.size = len(self.memory_cache)
            return None
        self.memory_cache.move_to_end(key)
        return entry["value"]

    def _memory_set(self, key: str, value: Any, ttl: float) -> None:
        if key in self.memory_cache:
            self.memory_cache.move_to_end(key)
        else:
            self._make_room()

        now = self.clock()
        self.memory_cache[key] = {
            "key": key,
            "value": value,
            "created_at": now,
            "ttl_seconds": ttl,
            "expires": now + ttl
        }

    def _make_room(self) -> None:
        if len(self.memory_cache) < self.max_items:
            return

        for k in [k for k, entry in self.memory_cache.items() if self._is_expired(entry)]:
            del self.memory_cache[k]

        while len(self.memory_cache) >= self.max_items:
            evicted_key, _ = self.memory_cache.popitem(last=False)
            self._stats.evictions += 1
            logger.debug(f"Cache evicted least recently used key: {evicted_key}")

    async def _redis_get(self, key: str) -> Optional[Any]:
        redis_client = await self._get_redis_client()
        if not redis_client:
            return None

        try:
            raw = await redis_client.get(key)
            if not raw:
                return None
            value = json.loads(raw)
            remaining = await redis_client.ttl(key)
            if remaining and remaining > 0:
                self._memory_set(key, value, remaining)
                self._stats.size = len(self.memory_cache)
            return value
        except Exception as e:
            logger.warning(f"Redis get error: {e}")
            return None

    def _is_expired(self, entry: Dict[str, Any]) -> bool:
        return self.clock() >= entry["expires"]

    def _update_hit_rate(self) -> None:
        total = self._stats.hits + self._stats.misses
        self._stats.hit_rate = self._stats.hits / total if total else 0.0
