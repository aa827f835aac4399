"""
Redis connection management
Shared by the cache-oriented store and the event stream consumer
"""

import redis.asyncio as redis
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class RedisConnection:
    """Redis client holder"""

    def __init__(self, url: str, max_connections: int = 50, client: Optional[redis.Redis] = None):
        self.url = url
        self.max_connections = max_connections
        self.redis_client: Optional[redis.Redis] = client

    async def connect(self) -> redis.Redis:
        """Initialize Redis connection"""
        if self.redis_client is None:
            self.redis_client = redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=self.max_connections
            )
        await self.redis_client.ping()
        logger.info("Redis connection established")
        return self.redis_client

    @property
    def client(self) -> redis.Redis:
        if self.redis_client is None:
            raise RuntimeError("Redis connection is not initialized")
        return self.redis_client

    async def ping(self) -> bool:
        return await self.client.ping()

    async def disconnect(self) -> None:
        """Close Redis connection"""
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None
            logger.info("Redis connection closed")
