from redis import asyncio as aioredis
from wxpush.core.config import settings


class RedisManager:
    def __init__(self):
        self.redis = None

    async def connect(self, url: str | None = None):
        """Connect to Redis (called on FastAPI startup when KV_PROVIDER=redis)."""
        if self.redis is None:
            self.redis = await aioredis.from_url(
                url or settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True
            )
        return self.redis

    async def close(self):
        """Close Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None

redis_manager = RedisManager()
