"""Redis-backed cache store.

Provides a ``CacheStore`` over an async Redis client with connection pooling.
Prefix deletion walks the keyspace with SCAN rather than KEYS so large
keyspaces are never blocked.
"""

import re

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from permgraph.core.constants import CACHE_SCAN_COUNT


_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def escape_glob(value: str) -> str:
    """Escape Redis MATCH glob metacharacters in a literal string."""
    return _GLOB_SPECIAL.sub(r"\\\1", value)


class RedisCacheStore:
    """Redis implementation of ``CacheStore``.

    Usage:
        store = RedisCacheStore.from_url("redis://localhost:6379")
        await store.set("permgraph:user:42:posts.publish", "true", 300)
        await store.aclose()
    """

    def __init__(self, client: redis.Redis) -> None:  # type: ignore[type-arg]
        """Initialize the store.

        Args:
            client: Async Redis client created with ``decode_responses=True``
        """
        self.client = client

    @classmethod
    def from_url(cls, url: str, max_connections: int = 50) -> "RedisCacheStore":
        """Create a store with its own connection pool.

        Args:
            url: Redis connection URL
            max_connections: Pool size

        Returns:
            A store owning a new client
        """
        pool = ConnectionPool.from_url(
            url,
            max_connections=max_connections,
            decode_responses=True,
        )
        return cls(redis.Redis(connection_pool=pool))

    async def get(self, key: str) -> str | None:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        if ttl_seconds:
            await self.client.setex(key, ttl_seconds, value)
        else:
            await self.client.set(key, value)

    async def delete(self, key: str) -> bool:
        result = await self.client.delete(key)
        return result > 0

    async def delete_prefix(self, prefix: str) -> int:
        """Delete all keys under a prefix.

        Args:
            prefix: Literal key prefix; glob characters in it are escaped

        Returns:
            Number of keys deleted
        """
        pattern = f"{escape_glob(prefix)}*"
        deleted = 0
        cursor = 0
        while True:
            cursor, keys = await self.client.scan(
                cursor=cursor,
                match=pattern,
                count=CACHE_SCAN_COUNT,
            )
            if keys:
                deleted += await self.client.delete(*keys)
            if cursor == 0:
                break
        return deleted

    async def aclose(self) -> None:
        """Close the client and release its pool."""
        await self.client.aclose(close_connection_pool=True)
