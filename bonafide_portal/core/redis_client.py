"""
Bonafide Portal — Redis client singleton
"""
import redis.asyncio as aioredis
from bonafide_portal.core.config import get_settings

settings = get_settings()

_redis_client: aioredis.Redis | None = None


def get_redis() -> aioredis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=settings.KV_TIMEOUT_SECONDS,
            socket_timeout=settings.KV_TIMEOUT_SECONDS,
        )
    return _redis_client


async def close_redis():
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
