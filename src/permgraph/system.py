"""Permission system factory.

Wires a directory, a cache store and settings into ready-to-use checker and
manager instances that share one cache and one logger.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

from structlog.typing import FilteringBoundLogger

from permgraph.config import Settings, get_settings
from permgraph.core.cache import CacheStore, MemoryCacheStore, PermissionCache, RedisCacheStore
from permgraph.core.logging import build_logger
from permgraph.core.permissions import (
    PermissionChecker,
    PermissionManager,
    RoleGraph,
    WildcardMatcher,
)


if TYPE_CHECKING:
    from permgraph.core.directory.base import Directory


@dataclass
class PermissionSystem:
    """A wired permission system.

    Usage:
        system = create_permission_system(InMemoryDirectory())
        editor = await system.manager.create_role("editor", priority=5)
        await system.manager.assign_permission("posts.publish", RoleTarget(editor.id))
        await system.manager.assign_role(editor.id, "user-1")
        assert await system.can("user-1", "posts.publish")
    """

    directory: "Directory"
    cache: PermissionCache
    graph: RoleGraph
    checker: PermissionChecker
    manager: PermissionManager
    logger: FilteringBoundLogger

    async def can(self, user_id: str, permission_key: str) -> bool:
        """Check a user permission."""
        return await self.checker.check_user_permission(user_id, permission_key)

    async def can_role(self, role_id: UUID, permission_key: str) -> bool:
        """Check a role permission."""
        return await self.checker.check_role_permission(role_id, permission_key)

    async def invalidate_user_cache(self, user_id: str) -> None:
        await self.cache.invalidate_user(user_id)

    async def invalidate_role_cache(self, role_id: UUID) -> None:
        await self.cache.invalidate_role(role_id)

    async def clear_cache(self) -> None:
        await self.cache.clear()


def build_cache_store(settings: Settings) -> CacheStore:
    """Build the configured cache store: Redis when a URL is set, else a bounded memory store."""
    if settings.redis_url is not None:
        return RedisCacheStore.from_url(
            str(settings.redis_url), max_connections=settings.redis_max_connections
        )
    return MemoryCacheStore(max_entries=settings.cache_max_entries)


def create_permission_system(
    directory: "Directory",
    store: CacheStore | None = None,
    settings: Settings | None = None,
    logger: FilteringBoundLogger | None = None,
) -> PermissionSystem:
    """Create a permission system instance.

    Args:
        directory: Storage collaborator
        store: Cache store; built from settings when omitted
        settings: Configuration; the cached environment settings when omitted
        logger: Logger for every component; built from settings when omitted

    Returns:
        The wired system
    """
    settings = settings or get_settings()
    logger = logger or build_logger(settings, component="permgraph")

    cache = PermissionCache(
        store if store is not None else build_cache_store(settings),
        ttl_seconds=settings.cache_ttl_seconds,
        prefix=settings.cache_prefix,
        enabled=settings.cache_enabled,
        logger=logger,
    )
    matcher = WildcardMatcher(settings.permission_separator)
    graph = RoleGraph(directory, logger=logger)
    checker = PermissionChecker(directory, cache, graph=graph, matcher=matcher, logger=logger)
    manager = PermissionManager(
        directory, checker, cache, graph=graph, matcher=matcher, logger=logger
    )

    logger.debug(
        "permission_system_created",
        directory=type(directory).__name__,
        cache_enabled=cache.is_enabled,
        cache_ttl_seconds=cache.ttl_seconds,
    )

    return PermissionSystem(
        directory=directory,
        cache=cache,
        graph=graph,
        checker=checker,
        manager=manager,
        logger=logger,
    )
