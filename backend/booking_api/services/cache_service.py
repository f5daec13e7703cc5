"""
Redis caching service for event listings.

CACHING STRATEGY
================

What we cache:
  - Public event listing pages (JSON-serialized payloads)
  - Key pattern: "events:list:page={page}&limit={limit}&{sorted filters}"

Invalidation:
  - Any seat change (booking, cancellation, resize) and any event
    create/update/delete deletes every "events:list:*" key
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

Listings are display data only. The seat ledger always re-reads the event row
under lock, so a stale cached available_seats can never cause an oversell.

Redis is optional: when disabled or unreachable every call degrades to a
cache miss / no-op and the API keeps serving from the database.
"""

import json
from typing import Optional

import redis.asyncio as redis
from booking_api.core.config import get_settings
from booking_api.core.logging import get_logger
from booking_api.core.metrics import cache_operations, record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

EVENT_LIST_PREFIX = "events:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled or down."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
        except redis.RedisError as e:
            logger.error("redis_connection_failed", error=str(e))
            await client.aclose()
            return None
        logger.info("redis_connected", url=settings.REDIS_URL)
        _redis_client = client

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def make_event_list_key(page: int, limit: int, filters: str = "") -> str:
    key = f"{EVENT_LIST_PREFIX}page={page}&limit={limit}"
    return f"{key}&{filters}" if filters else key


async def get_cached_events(key: str) -> Optional[dict]:
    """Retrieve a cached event list payload."""
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(key)
    except redis.RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    if data:
        logger.debug("cache_hit", key=key)
        return json.loads(data)
    logger.debug("cache_miss", key=key)
    return None


async def set_cached_events(key: str, data: dict) -> None:
    """Cache an event list payload with TTL."""
    client = await get_redis()
    if not client:
        return

    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except redis.RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_event_cache() -> None:
    """
    Invalidate all cached event listings.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{EVENT_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        cache_operations.labels(operation="invalidate", result="ok").inc()
        logger.info("cache_invalidated", keys_deleted=deleted)
    except redis.RedisError as e:
        cache_operations.labels(operation="invalidate", result="error").inc()
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled" if not settings.REDIS_ENABLED else "unavailable"}

    try:
        info = await client.info("stats")
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
