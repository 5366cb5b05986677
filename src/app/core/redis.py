"""
Redis Configuration

Async Redis client shared by the rate limiter. Redis is optional: when it
is down, callers fall back to in-process state.
"""

import logging

from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from app.core.config import settings

logger = logging.getLogger(__name__)

redis_client: Redis | None = None


async def init_redis() -> Redis:
    """
    Connect to Redis and verify the connection.

    Call this on application startup.
    """
    global redis_client
    client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.store_timeout_seconds,
    )
    await client.ping()
    redis_client = client
    return redis_client


async def get_redis() -> Redis | None:
    """Shared client, or None if Redis was never reached."""
    return redis_client


async def ping_redis() -> str:
    """Connection state for the readiness probe."""
    if redis_client is None:
        return "not initialized"
    try:
        await redis_client.ping()
    except RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        return "unavailable"
    return "connected"


async def close_redis() -> None:
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
