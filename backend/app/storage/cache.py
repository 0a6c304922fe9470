"""Redis cache layer for hot vault data.

Provides caching for:
- Committed vault states (packed account bytes)
- The set of known vault keys

Every operation degrades to a no-op when Redis is unavailable; the cache is
never the source of truth.
"""

from __future__ import annotations

import logging

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from app.config import get_settings

logger = logging.getLogger(__name__)

# Global connection pool
_pool: ConnectionPool | None = None
_client: redis.Redis | None = None


# =============================================================================
# Key prefixes for different data types
# =============================================================================

KEY_PREFIX_VAULT = "vault:"   # Packed vault account: vault:{key}
KEY_VAULT_INDEX = "vaults"    # Set of all cached vault keys


# =============================================================================
# Connection management
# =============================================================================

async def init_cache() -> None:
    """Initialize Redis connection pool."""
    global _pool, _client

    if _client is not None:
        return

    settings = get_settings()
    _pool = ConnectionPool.from_url(
        settings.redis_url,
        max_connections=10,
        decode_responses=False,  # Vault accounts are raw bytes
    )
    _client = redis.Redis(connection_pool=_pool)

    # Test connection
    try:
        await _client.ping()
        logger.info(f"Redis connected: {settings.redis_url}")
    except redis.ConnectionError as e:
        logger.warning(f"Redis connection failed: {e}. Cache will be disabled.")
        _client = None
        _pool = None


async def close_cache() -> None:
    """Close Redis connection pool."""
    global _pool, _client

    if _client is not None:
        await _client.close()
        _client = None

    if _pool is not None:
        await _pool.disconnect()
        _pool = None

    logger.info("Redis connection closed")


def is_cache_available() -> bool:
    """Check if cache is available."""
    return _client is not None


# =============================================================================
# Reads
# =============================================================================

async def get(key: str) -> bytes | None:
    """Get a value from cache, None if missing or cache unavailable."""
    if _client is None:
        return None

    try:
        return await _client.get(key)
    except redis.RedisError as e:
        logger.warning(f"Redis GET error: {e}")
        return None


async def mget(keys: list[str]) -> list[bytes | None]:
    """Get multiple values at once (None for missing keys)."""
    if _client is None or not keys:
        return [None] * len(keys)

    try:
        return await _client.mget(keys)
    except redis.RedisError as e:
        logger.warning(f"Redis MGET error: {e}")
        return [None] * len(keys)


# =============================================================================
# Indexed records (value + membership in an index set)
# =============================================================================

async def put_indexed(index: str, member: str, key: str, value: bytes) -> bool:
    """Write ``key`` and add ``member`` to ``index`` in one MULTI/EXEC."""
    if _client is None:
        return False

    try:
        async with _client.pipeline(transaction=True) as pipe:
            pipe.set(key, value)
            pipe.sadd(index, member)
            await pipe.execute()
        return True
    except redis.RedisError as e:
        logger.warning(f"Redis indexed write error for {key}: {e}")
        return False


async def drop_indexed(index: str, member: str, key: str) -> bool:
    """Delete ``key`` and remove ``member`` from ``index`` in one MULTI/EXEC."""
    if _client is None:
        return False

    try:
        async with _client.pipeline(transaction=True) as pipe:
            pipe.delete(key)
            pipe.srem(index, member)
            deleted, _ = await pipe.execute()
        return bool(deleted)
    except redis.RedisError as e:
        logger.warning(f"Redis indexed delete error for {key}: {e}")
        return False


async def smembers(key: str) -> set[str]:
    """Get all members of a set (empty if not found)."""
    if _client is None:
        return set()

    try:
        result = await _client.smembers(key)
        return {m.decode() if isinstance(m, bytes) else m for m in result}
    except redis.RedisError as e:
        logger.warning(f"Redis SMEMBERS error: {e}")
        return set()


# =============================================================================
# Health check
# =============================================================================

async def get_info() -> dict:
    """Get Redis server info, or a status-only dict if unavailable."""
    if _client is None:
        return {"status": "disconnected"}

    try:
        info = await _client.info()
        return {
            "status": "connected",
            "redis_version": info.get("redis_version"),
            "used_memory_human": info.get("used_memory_human"),
        }
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}
