"""
Redis client for the optional latest-uplink cache.

Provides helper functions for creating Redis connections, reading and
writing cached JSON documents, and invalidating device-specific entries.
Caching is disabled when REDIS_URL is unset. Every operation is
best-effort: connection failures are logged but do not propagate, so
ingestion and queries never depend on cache infrastructure.

CHANGELOG:
- 2026-10-15: Make the cache optional (no REDIS_URL, no cache)
- 2026-10-14: Initial creation
"""

import json
import logging
from typing import Any

import redis.asyncio as redis

from meterlink.config import get_settings

logger = logging.getLogger(__name__)


def last_uplink_key(dev_eui: str) -> str:
    """Return the cache key for a device's latest uplink."""
    return f"last-uplink:{dev_eui}"


def cache_enabled() -> bool:
    """Whether a Redis URL is configured."""
    return bool(get_settings().redis_url)


async def get_redis() -> redis.Redis:
    """Create and return an async Redis client from settings.

    Returns:
        redis.Redis: Async Redis client.

    Raises:
        RuntimeError: If REDIS_URL is not configured.
    """
    url = get_settings().redis_url
    if not url:
        raise RuntimeError("REDIS_URL is not configured")
    return redis.from_url(url)


async def get_cached_json(key: str) -> Any | None:
    """Return the decoded JSON stored under *key*, or ``None`` on miss/failure."""
    if not cache_enabled():
        return None
    try:
        client = await get_redis()
        try:
            cached = await client.get(key)
        finally:
            await client.aclose()
    except Exception:
        logger.warning("Redis read failed for key %s", key, exc_info=True)
        return None
    if cached is None:
        return None
    try:
        return json.loads(cached)
    except ValueError:
        logger.warning("Discarding undecodable cache entry %s", key)
        return None


async def set_cached_json(key: str, value: Any, ttl_s: int) -> None:
    """Store *value* as JSON under *key* with a TTL (best-effort)."""
    if not cache_enabled():
        return
    try:
        client = await get_redis()
        try:
            await client.set(key, json.dumps(value), ex=ttl_s)
        finally:
            await client.aclose()
    except Exception:
        logger.warning("Redis write failed for key %s", key, exc_info=True)


async def invalidate_device_cache(dev_eui: str) -> None:
    """Delete the latest-uplink cache entry for a device.

    Best-effort operation: if Redis is unavailable or the delete fails,
    the error is logged but not raised.

    Args:
        dev_eui: The device whose cache entry should be cleared.
    """
    if not cache_enabled():
        return
    try:
        client = await get_redis()
        try:
            await client.delete(last_uplink_key(dev_eui))
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Failed to invalidate cache for device %s",
            dev_eui,
            exc_info=True,
        )
