"""
Redis client initialization.

Redis holds optimizer runs between proposal and apply.
"""

import redis.asyncio as redis
from backend.app.core.config import settings


redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """FastAPI dependency returning the shared Redis client."""
    return redis_client


async def ping_redis() -> bool:
    """True when Redis answers a PING."""
    try:
        return await redis_client.ping()
    except redis.RedisError:
        return False
