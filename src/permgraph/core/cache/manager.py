"""Result cache for permission decisions.

Decisions are memoized per subject under keys of the form
``{prefix}{scope}:{subject}:{permission key}``, where scope is "user" or
"role". The subject is escaped so it never contains ":", which makes the first
":" after the scope the subject boundary. Invalidating a subject deletes exactly
``{prefix}{scope}:{subject}:``.

The cache is best-effort: every store failure is logged and treated as a miss
or a no-op. Correctness depends only on the directory.
"""

import json
from typing import Any
from uuid import UUID

import structlog
from structlog.typing import FilteringBoundLogger

from permgraph.core.cache.base import CacheStore
from permgraph.core.constants import (
    DEFAULT_CACHE_PREFIX,
    DEFAULT_CACHE_TTL_SECONDS,
    ROLE_SCOPE,
    USER_SCOPE,
)


def escape_subject(subject: Any) -> str:
    """Percent-escape "%" and ":" in a subject id."""
    return str(subject).replace("%", "%25").replace(":", "%3A")


class PermissionCache:
    """Scoped, fail-silent cache of boolean decisions.

    Reads and writes happen only while the cache is enabled. Invalidation runs
    whenever a store is present, so toggling ``enabled`` never resurrects
    stale entries.
    """

    def __init__(
        self,
        store: CacheStore | None,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        prefix: str = DEFAULT_CACHE_PREFIX,
        enabled: bool = True,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            store: Backing key-value store, or None for a cache that never hits
            ttl_seconds: Default time-to-live for cached decisions
            prefix: Prefix for all keys (e.g., "permgraph:")
            enabled: Whether reads and writes go to the store
            logger: Logger for swallowed store errors
        """
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix
        self.enabled = enabled
        self.logger = logger or structlog.get_logger()

    @property
    def is_enabled(self) -> bool:
        """Check if caching is enabled and a store is available."""
        return self.enabled and self.store is not None

    def build_key(self, scope: str, subject: Any, *parts: Any) -> str:
        """Build a namespaced cache key.

        Args:
            scope: "user" or "role"
            subject: User or role id; escaped so it cannot contain ":"
            *parts: Trailing segments, normally the permission key

        Returns:
            Key like "permgraph:user:a%3Ab:posts.publish"
        """
        key = f"{self.prefix}{scope}:{escape_subject(subject)}"
        return ":".join([key, *(str(part) for part in parts)])

    async def get(self, scope: str, *parts: Any) -> bool | None:
        """Get a cached decision.

        Args:
            scope: "user" or "role"
            *parts: Subject id followed by the permission key

        Returns:
            The cached boolean, or None on a miss or any store error
        """
        if not self.is_enabled:
            return None

        key = self.build_key(scope, *parts)
        try:
            raw = await self.store.get(key)  # type: ignore[union-attr]
            if raw is None:
                return None
            value = json.loads(raw)
        except Exception as exc:
            self.logger.warning("permission_cache_get_failed", key=key, error=str(exc))
            return None

        if not isinstance(value, bool):
            self.logger.warning("permission_cache_value_invalid", key=key)
            return None
        return value

    async def set(
        self,
        scope: str,
        value: bool,
        *parts: Any,
        ttl_seconds: int | None = None,
    ) -> None:
        """Cache a decision.

        Args:
            scope: "user" or "role"
            value: Decision to cache
            *parts: Subject id followed by the permission key
            ttl_seconds: Override of the default TTL
        """
        if not self.is_enabled:
            return

        key = self.build_key(scope, *parts)
        try:
            await self.store.set(  # type: ignore[union-attr]
                key, json.dumps(value), ttl_seconds or self.ttl_seconds
            )
        except Exception as exc:
            self.logger.warning("permission_cache_set_failed", key=key, error=str(exc))

    async def delete(self, scope: str, *parts: Any) -> None:
        """Delete one cached decision."""
        if self.store is None:
            return

        key = self.build_key(scope, *parts)
        try:
            await self.store.delete(key)
        except Exception as exc:
            self.logger.warning("permission_cache_delete_failed", key=key, error=str(exc))

    async def delete_by_prefix(self, scope: str, *parts: Any) -> None:
        """Delete every cached decision nested under ``scope`` and ``parts``."""
        if self.store is None:
            return

        prefix = f"{self.build_key(scope, *parts)}:"
        await self._delete_prefix(prefix)

    async def invalidate_user(self, user_id: str) -> None:
        """Invalidate all cached decisions for a user."""
        await self.delete_by_prefix(USER_SCOPE, user_id)

    async def invalidate_role(self, role_id: UUID) -> None:
        """Invalidate all cached decisions for a role."""
        await self.delete_by_prefix(ROLE_SCOPE, role_id)

    async def clear(self) -> None:
        """Clear the entire permission cache."""
        if self.store is None:
            return
        await self._delete_prefix(self.prefix)

    async def _delete_prefix(self, prefix: str) -> None:
        try:
            deleted = await self.store.delete_prefix(prefix)  # type: ignore[union-attr]
        except Exception as exc:
            self.logger.warning(
                "permission_cache_invalidate_failed", prefix=prefix, error=str(exc)
            )
            return
        self.logger.debug("permission_cache_invalidated", prefix=prefix, deleted=deleted)
