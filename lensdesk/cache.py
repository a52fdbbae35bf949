"""
Query cache for upstream API reads.

Entries are keyed by query-key tuples such as
("/api/appointments", timeMin, timeMax, userFilter) and namespaced per user.
Invalidating a key removes the key itself and every key that extends it, so
invalidate(["/api/repairs"]) also drops ("/api/repairs", repair_id).
"""
import json
import logging
import re
import time
from typing import Any, Awaitable, Callable, Optional, Sequence

import redis

from .config import QUERY_CACHE_TTL
from .redis_client import get_redis_client

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "|"
NAMESPACE = "query"
# Seconds to wait before retrying a Redis connection that failed
RECONNECT_INTERVAL = 30

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def build_query_key(user_id: Optional[str], parts: Sequence[Any]) -> str:
    """Build the Redis key for a query key tuple"""
    encoded = KEY_SEPARATOR.join("" if p is None else str(p) for p in parts)
    return f"{NAMESPACE}:{user_id or 'anonymous'}:{encoded}"


def _escape_glob(value: str) -> str:
    return _GLOB_SPECIAL.sub(r"\\\1", value)


class QueryCache:
    """Redis cache wrapper with JSON serialization and prefix invalidation"""

    def __init__(self, client_factory: Callable[[], redis.Redis] = get_redis_client, ttl: int = QUERY_CACHE_TTL):
        self.client_factory = client_factory
        self.ttl = ttl
        self.redis_client = None
        self._retry_after = 0.0

    def _get_client(self):
        """Lazy load Redis client, failing open while it is unreachable"""
        if self.redis_client is None:
            if time.monotonic() < self._retry_after:
                return None
            try:
                self.redis_client = self.client_factory()
            except Exception as e:
                logger.warning(f"⚠️ Query cache unavailable: {e}")
                self._retry_after = time.monotonic() + RECONNECT_INTERVAL
                return None
        return self.redis_client

    def get(self, user_id: Optional[str], parts: Sequence[Any]) -> Optional[Any]:
        """Get a cached query result"""
        client = self._get_client()
        if not client:
            return None

        key = build_query_key(user_id, parts)
        try:
            value = client.get(key)
        except redis.RedisError as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None
        if value is None:
            logger.debug(f"❌ Cache MISS: {key}")
            return None
        logger.debug(f"✅ Cache HIT: {key}")
        return json.loads(value)

    def set(self, user_id: Optional[str], parts: Sequence[Any], value: Any, ttl: Optional[int] = None) -> bool:
        """Cache a query result"""
        client = self._get_client()
        if not client:
            return False

        key = build_query_key(user_id, parts)
        try:
            client.setex(key, ttl or self.ttl, json.dumps(value))
        except (redis.RedisError, TypeError) as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False
        logger.debug(f"✅ Cache SET: {key}")
        return True

    def invalidate(self, user_id: Optional[str], parts: Sequence[Any]) -> int:
        """Drop a query key and every key that extends it"""
        client = self._get_client()
        if not client:
            return 0

        key = build_query_key(user_id, parts)
        try:
            keys = [key] + list(client.scan_iter(match=_escape_glob(key + KEY_SEPARATOR) + "*"))
            deleted = client.delete(*keys)
        except redis.RedisError as e:
            logger.error(f"❌ Cache invalidate error for {key}: {e}")
            return 0
        logger.debug(f"🧹 Cache INVALIDATE: {key} ({deleted} keys)")
        return deleted

    async def fetch(
        self,
        user_id: Optional[str],
        parts: Sequence[Any],
        loader: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> Any:
        """Return the cached result for a query key, loading it on a miss"""
        cached_value = self.get(user_id, parts)
        if cached_value is not None:
            return cached_value

        result = await loader()
        if result is not None:
            self.set(user_id, parts, result, ttl)
        return result


# Global cache instance
query_cache = QueryCache()


def get_query_cache() -> QueryCache:
    """FastAPI dependency for the shared query cache"""
    return query_cache
