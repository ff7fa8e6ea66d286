"""Redis implementation of the key-value store capability."""
import logging
from typing import List, Optional, Sequence

import redis.asyncio as redis
from redis.exceptions import RedisError

from .config import Settings
from .exceptions import StorageError

logger = logging.getLogger(__name__)


class RedisStore:
    """Async Redis client used for credentials and vote counters."""

    def __init__(self, settings: Settings):
        """Initialize Redis connection pool. No connection is opened until first use."""
        self.client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            socket_connect_timeout=settings.STORE_TIMEOUT,
            socket_timeout=settings.STORE_TIMEOUT,
            socket_keepalive=True,
            health_check_interval=30
        )

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.client.get(key)
        except (RedisError, OSError) as e:
            logger.error(f"Redis error reading {key}: {e}")
            raise StorageError(f"GET {key} failed: {e}") from e

    async def set(self, key: str, value: str) -> None:
        try:
            await self.client.set(key, value)
        except (RedisError, OSError) as e:
            logger.error(f"Redis error writing {key}: {e}")
            raise StorageError(f"SET {key} failed: {e}") from e

    async def set_if_absent(self, key: str, value: str) -> bool:
        """
        Set key only if it does not exist (SET NX).

        Returns:
            True if the key was set by this call, False if it already existed
        """
        try:
            result = await self.client.set(key, value, nx=True)
            return bool(result)
        except (RedisError, OSError) as e:
            logger.error(f"Redis error claiming {key}: {e}")
            raise StorageError(f"SET NX {key} failed: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except (RedisError, OSError) as e:
            logger.error(f"Redis error deleting {key}: {e}")
            raise StorageError(f"DEL {key} failed: {e}") from e

    async def incr(self, key: str) -> int:
        try:
            return await self.client.incr(key)
        except (RedisError, OSError) as e:
            logger.error(f"Redis error incrementing {key}: {e}")
            raise StorageError(f"INCR {key} failed: {e}") from e

    async def mget(self, keys: Sequence[str]) -> List[Optional[str]]:
        try:
            return await self.client.mget(list(keys))
        except (RedisError, OSError) as e:
            logger.error(f"Redis error reading {len(keys)} keys: {e}")
            raise StorageError(f"MGET failed: {e}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError) as e:
            logger.error(f"Redis ping failed: {e}")
            raise StorageError(f"PING failed: {e}") from e

    async def close(self) -> None:
        """Close Redis connection pool."""
        try:
            await self.client.aclose()
            logger.info("Redis connection pool closed")
        except (RedisError, OSError) as e:
            logger.error(f"Error closing Redis connection: {e}")
