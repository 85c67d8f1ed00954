"""
Redis caching utilities for booking list views, stats and availability.
Cached values are only ever a shortcut: when Redis is unreachable every read
is a miss and callers recompute from the database.
"""
import json
import logging
from typing import Any, Callable, Optional

from .rate_limiter import get_redis_client

logger = logging.getLogger(__name__)


class Cache:
    """Redis cache wrapper with automatic serialization"""

    def __init__(self, client_factory: Callable[[], Any] = get_redis_client):
        self.redis_client = None
        self._client_factory = client_factory

    def _get_client(self):
        """Lazy load Redis client"""
        if self.redis_client is None:
            try:
                self.redis_client = self._client_factory()
            except Exception as e:
                logger.warning(f"⚠️ Redis cache unavailable: {e}")
                return None
        return self.redis_client

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        client = self._get_client()
        if not client:
            return None

        try:
            value = client.get(key)
            if value:
                logger.debug(f"✅ Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"❌ Cache MISS: {key}")
            return None
        except Exception as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        """Set value in cache with TTL"""
        client = self._get_client()
        if not client:
            return False

        try:
            client.setex(key, ttl, json.dumps(value, default=str))
            logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False

    def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching pattern (e.g., 'bookings:provider:12:*')"""
        client = self._get_client()
        if not client:
            return 0

        try:
            keys = list(client.scan_iter(match=pattern))
            if keys:
                deleted = client.delete(*keys)
                logger.debug(f"✅ Cache DELETE pattern: {pattern} ({deleted} keys)")
                return deleted
            return 0
        except Exception as e:
            logger.error(f"❌ Cache delete pattern error for {pattern}: {e}")
            return 0

    def get_or_compute(self, key: str, compute: Callable[[], Any], ttl: int = 300) -> Any:
        """Return the cached value or compute, store and return it"""
        cached_value = self.get(key)
        if cached_value is not None:
            return cached_value

        value = compute()
        if value is not None:
            self.set(key, value, ttl)
        return value


# Global cache instance
cache = Cache()


# Cache key builders


def provider_bookings_key(provider_id: int, view: str) -> str:
    return f"bookings:provider:{provider_id}:{view}"


def requester_bookings_key(requester_id: int, view: str) -> str:
    return f"bookings:requester:{requester_id}:{view}"


def provider_stats_key(provider_id: int) -> str:
    return f"bookings:provider:{provider_id}:stats"


def availability_key(provider_id: int, start: str, days: int, service_id: Optional[int]) -> str:
    return f"availability:{provider_id}:{start}:{days}:{service_id or 'default'}"


def invalidate_booking_views(
    cache_backend: Cache, provider_id: Optional[int] = None, requester_id: Optional[int] = None
) -> int:
    """Drop every cached view a booking mutation can affect"""
    deleted = 0
    if provider_id is not None:
        deleted += cache_backend.delete_pattern(f"bookings:provider:{provider_id}:*")
        deleted += cache_backend.delete_pattern(f"availability:{provider_id}:*")
    if requester_id is not None:
        deleted += cache_backend.delete_pattern(f"bookings:requester:{requester_id}:*")
    return deleted
