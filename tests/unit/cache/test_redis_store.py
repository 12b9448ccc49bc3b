"""Tests for the Redis cache store."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from permgraph.core.cache.redis import RedisCacheStore, escape_glob
from permgraph.core.constants import CACHE_SCAN_COUNT


pytestmark = pytest.mark.unit


@pytest.fixture
def mock_redis() -> MagicMock:
    """Create a mock async Redis client."""
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock()
    client.setex = AsyncMock()
    client.delete = AsyncMock(return_value=1)
    client.scan = AsyncMock(return_value=(0, []))
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def redis_store(mock_redis: MagicMock) -> RedisCacheStore:
    """Create a store over the mock client."""
    return RedisCacheStore(mock_redis)


class TestEscapeGlob:
    """Tests for escape_glob()."""

    def test_plain_text_is_unchanged(self) -> None:
        assert escape_glob("permgraph:user:42:") == "permgraph:user:42:"

    def test_metacharacters_are_escaped(self) -> None:
        assert escape_glob("a*b?c[d]") == r"a\*b\?c\[d\]"

    def test_backslash_is_escaped(self) -> None:
        assert escape_glob("a\\b") == "a\\\\b"


class TestRedisCacheStore:
    """Tests for RedisCacheStore."""

    async def test_get(self, redis_store: RedisCacheStore, mock_redis: MagicMock) -> None:
        mock_redis.get.return_value = "true"

        assert await redis_store.get("k") == "true"
        mock_redis.get.assert_awaited_once_with("k")

    async def test_set_with_ttl_uses_setex(
        self, redis_store: RedisCacheStore, mock_redis: MagicMock
    ) -> None:
        await redis_store.set("k", "true", 300)

        mock_redis.setex.assert_awaited_once_with("k", 300, "true")
        mock_redis.set.assert_not_awaited()

    async def test_set_without_ttl(
        self, redis_store: RedisCacheStore, mock_redis: MagicMock
    ) -> None:
        await redis_store.set("k", "true")

        mock_redis.set.assert_awaited_once_with("k", "true")

    async def test_delete(self, redis_store: RedisCacheStore, mock_redis: MagicMock) -> None:
        assert await redis_store.delete("k") is True

        mock_redis.delete.return_value = 0
        assert await redis_store.delete("k") is False

    async def test_delete_prefix_walks_every_page(
        self, redis_store: RedisCacheStore, mock_redis: MagicMock
    ) -> None:
        mock_redis.scan.side_effect = [
            (17, ["p:user:1:a", "p:user:1:b"]),
            (0, ["p:user:1:c"]),
        ]
        mock_redis.delete.side_effect = [2, 1]

        deleted = await redis_store.delete_prefix("p:user:1:")

        assert deleted == 3
        assert mock_redis.scan.await_count == 2
        mock_redis.scan.assert_any_await(cursor=0, match="p:user:1:*", count=CACHE_SCAN_COUNT)
        mock_redis.scan.assert_any_await(cursor=17, match="p:user:1:*", count=CACHE_SCAN_COUNT)
        mock_redis.delete.assert_any_await("p:user:1:a", "p:user:1:b")

    async def test_delete_prefix_skips_empty_pages(
        self, redis_store: RedisCacheStore, mock_redis: MagicMock
    ) -> None:
        mock_redis.scan.side_effect = [(5, []), (0, [])]

        assert await redis_store.delete_prefix("p:") == 0
        mock_redis.delete.assert_not_awaited()

    async def test_delete_prefix_escapes_pattern(
        self, redis_store: RedisCacheStore, mock_redis: MagicMock
    ) -> None:
        await redis_store.delete_prefix("p:user:a*b:")

        mock_redis.scan.assert_awaited_once_with(
            cursor=0, match=r"p:user:a\*b:*", count=CACHE_SCAN_COUNT
        )

    async def test_aclose_releases_pool(
        self, redis_store: RedisCacheStore, mock_redis: MagicMock
    ) -> None:
        await redis_store.aclose()

        mock_redis.aclose.assert_awaited_once_with(close_connection_pool=True)

    def test_from_url_builds_pool(self) -> None:
        with (
            patch("permgraph.core.cache.redis.ConnectionPool") as mock_pool_cls,
            patch("permgraph.core.cache.redis.redis.Redis") as mock_redis_cls,
        ):
            store = RedisCacheStore.from_url("redis://localhost:6379/0", max_connections=7)

        mock_pool_cls.from_url.assert_called_once_with(
            "redis://localhost:6379/0",
            max_connections=7,
            decode_responses=True,
        )
        mock_redis_cls.assert_called_once_with(connection_pool=mock_pool_cls.from_url.return_value)
        assert store.client is mock_redis_cls.return_value
