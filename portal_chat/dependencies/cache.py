import redis.asyncio as aioredis

from portal_chat.config import config

redis_client = aioredis.from_url(
    config.redis_url,
    password=config.REDIS_PASSWORD,
    decode_responses=True,
)


async def get_redis():
    return redis_client
