import redis.asyncio as redis
from redis.asyncio import Redis

from backdrop.config import Settings


async def create_redis_client(settings: Settings) -> Redis:
    """Create the process-wide Redis client; its pool bounds concurrent connections."""
    return await redis.from_url(
        settings.redis_url,
        decode_responses=False,
        max_connections=settings.redis_max_connections,
    )
