"""Redis connection configuration."""

import redis.asyncio as redis

from app.core.config import settings

redis_client = redis.from_url(
    settings.REDIS_URL,
    decode_responses=True,
    socket_timeout=settings.CACHE_OPERATION_TIMEOUT_SECONDS,
    socket_connect_timeout=settings.CACHE_OPERATION_TIMEOUT_SECONDS,
)


async def get_redis() -> redis.Redis:
    """Get Redis client instance."""
    return redis_client
