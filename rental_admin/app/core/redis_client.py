"""
Redis client for the per-vehicle reservation lock.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError
from rental_admin.app.core.config import settings

logger = logging.getLogger("rental_admin.redis")

redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """FastAPI dependency returning the shared client."""
    return redis_client


async def ping_redis(client=None) -> bool:
    """
    Check the lock backend is reachable.

    Returns:
        True if Redis answered, False otherwise
    """
    client = client or redis_client
    try:
        return bool(await client.ping())
    except (RedisError, OSError) as exc:
        logger.warning("Redis ping failed: %s", exc)
        return False
