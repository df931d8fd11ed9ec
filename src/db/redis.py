from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from config.settings import settings

_redis_client: Redis | None = None


async def get_redis() -> Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = Redis.from_url(settings.redis_url, decode_responses=True)
    return _redis_client


async def ping_redis() -> bool:
    """True when the result-cache Redis answers PING."""
    try:
        client = await get_redis()
        return bool(await client.ping())
    except (RedisError, OSError) as e:
        logger.warning(f"[CACHE] Redis ping failed: {type(e).__name__}")
        return False


async def close_redis() -> None:
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
