"""Page cache — extracted website text keyed by URL.

Redis primary with an in-memory cachetools.TTLCache fallback. Only
successful extractions are written, so a failed fetch is always retried
against the live site.
"""

import hashlib
import logging

from cachetools import TTLCache

from app.config import settings

logger = logging.getLogger(__name__)


class CacheService:
    """Async text cache with Redis primary and in-memory fallback."""

    def __init__(self):
        self._redis = None
        self._fallback = TTLCache(maxsize=256, ttl=settings.page_cache_ttl_seconds)
        self._available = False

    @property
    def available(self) -> bool:
        return self._available

    async def connect(self) -> bool:
        """Connect to Redis. Returns True on success."""
        try:
            import redis.asyncio as aioredis

            self._redis = aioredis.from_url(
                settings.redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
            )
            await self._redis.ping()
            self._available = True
            return True
        except Exception as e:
            logger.warning("Redis connection failed — using in-memory page cache: %s", str(e)[:100])
            self._redis = None
            self._available = False
            return False

    async def disconnect(self):
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            self._available = False

    def make_key(self, url: str) -> str:
        """Deterministic cache key for a normalized URL."""
        return f"sg:page:{hashlib.sha256(url.strip().encode()).hexdigest()[:32]}"

    async def get(self, key: str) -> str | None:
        """Read from cache. Returns None on miss."""
        if self._available and self._redis:
            try:
                text = await self._redis.get(key)
                if text:
                    logger.info("Cache HIT (Redis) | key=%s", key[:24])
                    return text
            except Exception as e:
                logger.debug("Redis GET error: %s", str(e)[:100])

        text = self._fallback.get(key)
        if text:
            logger.info("Cache HIT (memory) | key=%s", key[:24])
            return text

        return None

    async def set(self, key: str, text: str, ttl: int | None = None):
        """Write to cache with TTL."""
        ttl = ttl or settings.page_cache_ttl_seconds

        if self._available and self._redis:
            try:
                await self._redis.setex(key, ttl, text)
                logger.info("Cache SET (Redis) | key=%s | ttl=%ds", key[:24], ttl)
            except Exception as e:
                logger.debug("Redis SET error: %s", str(e)[:100])

        # Always write to in-memory fallback too
        self._fallback[key] = text


# Singleton instance
cache_service = CacheService()
