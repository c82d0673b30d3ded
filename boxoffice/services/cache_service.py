"""
Redis cache for event seat maps.

CACHING STRATEGY
================

What we cache:
  - The seat map response of one event, with its per-status counts
  - Key: "seatmap:{event_id}", JSON, TTL REDIS_CACHE_TTL seconds

Why:
  - Every open checkout page polls the seat map
  - A hit skips loading and validating the whole seat array

Invalidation:
  - Every seat write (lock, release, sweep, sale, override, delete) drops the key
  - The TTL is a few seconds, so a missed invalidation heals quickly

The cache is display-only. Locks, releases and orders always decide on the
database row; a stale map can at worst show a free seat that then fails to
lock, and the lock path reports that as a conflict.

Redis is optional. When it is disabled or down every call is a no-op and the
seat map is served from the database. After a failed connect the next attempt
waits REDIS_RECONNECT_SECONDS, so an outage does not add a connect timeout to
every request.
"""

import json
import time
from typing import Optional

import redis.asyncio as redis

from boxoffice.core.config import get_settings
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

SEAT_MAP_PREFIX = "seatmap:"

_redis_client: Optional[redis.Redis] = None
_retry_after: float = 0.0


def seat_map_key(event_id: int) -> str:
    return f"{SEAT_MAP_PREFIX}{event_id}"


async def get_redis() -> Optional[redis.Redis]:
    """Shared client, or None when Redis is disabled or in reconnect backoff."""
    global _redis_client, _retry_after

    if not settings.REDIS_ENABLED:
        return None
    if _redis_client is not None:
        return _redis_client
    if time.monotonic() < _retry_after:
        return None

    client = redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
    )
    try:
        await client.ping()
    except redis.RedisError as e:
        _retry_after = time.monotonic() + settings.REDIS_RECONNECT_SECONDS
        logger.warning("redis_connection_failed", error=str(e), retry_in_seconds=settings.REDIS_RECONNECT_SECONDS)
        await client.aclose()
        return None

    _redis_client = client
    logger.info("redis_connected", url=settings.REDIS_URL)
    return _redis_client


async def _drop_client(error: Exception, key: str, operation: str) -> None:
    """A command failed: log it and reconnect lazily after the backoff."""
    global _redis_client, _retry_after

    logger.warning("seat_map_cache_error", key=key, operation=operation, error=str(error))
    if _redis_client is not None and isinstance(error, redis.ConnectionError):
        client, _redis_client = _redis_client, None
        _retry_after = time.monotonic() + settings.REDIS_RECONNECT_SECONDS
        await client.aclose()


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


async def get_cached_seat_map(event_id: int) -> Optional[dict]:
    client = await get_redis()
    if client is None:
        return None

    key = seat_map_key(event_id)
    try:
        raw = await client.get(key)
    except redis.RedisError as e:
        await _drop_client(e, key, "get")
        return None

    record_cache_operation("get", hit=raw is not None)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("seat_map_cache_corrupt", key=key)
        return None


async def set_cached_seat_map(event_id: int, seat_map: dict) -> None:
    client = await get_redis()
    if client is None:
        return

    key = seat_map_key(event_id)
    try:
        await client.set(key, json.dumps(seat_map, default=str), ex=settings.REDIS_CACHE_TTL)
    except redis.RedisError as e:
        await _drop_client(e, key, "set")


async def invalidate_seat_map(event_id: int) -> None:
    client = await get_redis()
    if client is None:
        return

    key = seat_map_key(event_id)
    try:
        await client.delete(key)
    except redis.RedisError as e:
        await _drop_client(e, key, "delete")


async def get_cache_stats() -> dict:
    """Cache status for /health."""
    if not settings.REDIS_ENABLED:
        return {"status": "disabled"}

    client = await get_redis()
    if client is None:
        return {"status": "unavailable"}

    try:
        info = await client.info("stats")
        cached_seat_maps = 0
        async for _ in client.scan_iter(match=f"{SEAT_MAP_PREFIX}*", count=500):
            cached_seat_maps += 1
    except redis.RedisError as e:
        await _drop_client(e, "*", "stats")
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "ttl_seconds": settings.REDIS_CACHE_TTL,
        "cached_seat_maps": cached_seat_maps,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
