"""Rate limit backend that prefers Redis and falls back to process memory."""

import asyncio
import inspect

from loguru import logger
from ratelimit.backends import BaseBackend
from ratelimit.backends.redis import RedisBackend
from ratelimit.backends.simple import MemoryBackend
from ratelimit import Rule
from redis.asyncio import StrictRedis
from redis.exceptions import RedisError

from shorty.core.config import settings

# MemoryBackend names that differ from RedisBackend
MEMORY_METHODS = {"set_block_time": "set_blocked_user"}


class FallbackRateLimitBackend(BaseBackend):
    """Delegate to Redis while it answers, otherwise to an in-memory backend."""

    def __init__(self, redis_uri: str):
        self.redis_uri = redis_uri
        self.redis_client = None
        self.redis_backend = None
        self.memory_backend = MemoryBackend()
        self.using_redis = False
        self.last_redis_check = 0.0
        self.check_interval = settings.RATE_LIMIT_REDIS_CHECK_INTERVAL
        self._state_lock = asyncio.Lock()

    async def initialize(self) -> bool:
        """Connect to Redis; stay on memory if it is unreachable."""
        async with self._state_lock:
            try:
                self.redis_client = StrictRedis.from_url(self.redis_uri)
                await self.redis_client.ping()
                self.redis_backend = RedisBackend(self.redis_client)
                self.using_redis = True
                logger.info("Redis rate limiting backend initialized", uri=self.redis_uri)
            except RedisError as e:
                logger.warning("Redis unavailable, rate limiting in memory", error=str(e))
                self.using_redis = False
            return self.using_redis

    async def _refresh(self) -> None:
        now = asyncio.get_running_loop().time()
        if now - self.last_redis_check < self.check_interval:
            return
        self.last_redis_check = now

        if self.redis_client is None:
            await self.initialize()
            return

        try:
            await self.redis_client.ping()
            if not self.using_redis:
                logger.info("Redis reachable again, switching rate limiting back")
            self.using_redis = True
        except RedisError as e:
            if self.using_redis:
                logger.warning("Redis connection lost, rate limiting in memory", error=str(e))
            self.using_redis = False

    async def _call(self, method: str, *args):
        await self._refresh()
        if self.using_redis and self.redis_backend is not None:
            try:
                return await getattr(self.redis_backend, method)(*args)
            except RedisError as e:
                logger.warning("Redis rate limit call failed", method=method, error=str(e))
                self.using_redis = False
        # MemoryBackend mixes sync and async methods
        result = getattr(self.memory_backend, MEMORY_METHODS.get(method, method))(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def retry_after(self, path: str, user: str, rule: Rule) -> int:
        return await self._call("retry_after", path, user, rule)

    async def is_blocking(self, user: str) -> int:
        return await self._call("is_blocking", user)

    async def set_block_time(self, user: str, block_time: int) -> None:
        await self._call("set_block_time", user, block_time)

    async def close(self) -> None:
        if self.redis_client is not None:
            try:
                await self.redis_client.close()
                logger.info("Redis rate limiting connection closed")
            except RedisError as e:
                logger.error("Error closing Redis connection", error=str(e))
