"""Permission checking logic.

This module decides whether a user or a role holds a permission. A check
stops at the first stored grant it meets, in this order:

1. The principal's own grant on the exact key
2. The principal's own grants on wildcard patterns, most specific first
3. Users: each role in the user's role closure, highest priority first
   Roles: each ancestor in the role's inheritance chain, nearest first
   (exact key, then wildcard patterns, for every role)
4. Otherwise deny

A ban (``granted=False``) met earlier in that order wins over any allow that
would have been found later.
"""

from collections.abc import Iterable
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from structlog.typing import FilteringBoundLogger

from permgraph.core.cache.manager import PermissionCache
from permgraph.core.constants import ROLE_SCOPE, USER_SCOPE
from permgraph.core.permissions.graph import RoleGraph
from permgraph.core.permissions.schemas import RoleRecord
from permgraph.core.permissions.wildcard import WildcardMatcher


if TYPE_CHECKING:
    from permgraph.core.directory.base import Directory


class PermissionChecker:
    """Service for checking user and role permissions.

    Holds no state of its own beyond its collaborators, so one instance can
    serve concurrent checks.
    """

    def __init__(
        self,
        directory: "Directory",
        cache: PermissionCache,
        graph: RoleGraph | None = None,
        matcher: WildcardMatcher | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        self.directory = directory
        self.cache = cache
        self.logger = logger or structlog.get_logger()
        self.graph = graph or RoleGraph(directory, logger=self.logger)
        self.matcher = matcher or WildcardMatcher()

    async def check_user_permission(self, user_id: str, permission_key: str) -> bool:
        """Check if a user has a specific permission.

        Unknown users simply have no grants and are denied.

        Args:
            user_id: The user's identifier
            permission_key: The permission to check (e.g., "posts.publish")

        Returns:
            True if the user has the permission, False otherwise
        """
        cached = await self.cache.get(USER_SCOPE, user_id, permission_key)
        if cached is not None:
            self.logger.debug(
                "permission_cache_hit",
                user_id=user_id,
                permission_key=permission_key,
                granted=cached,
            )
            return cached

        result = await self._check_user_uncached(user_id, permission_key)
        await self.cache.set(USER_SCOPE, result, user_id, permission_key)
        return result

    async def check_role_permission(self, role_id: UUID, permission_key: str) -> bool:
        """Check if a role, directly or through inheritance, has a permission.

        Args:
            role_id: The role's UUID
            permission_key: The permission to check

        Returns:
            True if the role has the permission, False otherwise
        """
        cached = await self.cache.get(ROLE_SCOPE, role_id, permission_key)
        if cached is not None:
            return cached

        result = await self._check_role_uncached(role_id, permission_key)
        await self.cache.set(ROLE_SCOPE, result, role_id, permission_key)
        return result

    async def has_any_permission(self, user_id: str, permission_keys: Iterable[str]) -> bool:
        """Check if a user has any of the specified permissions.

        Args:
            user_id: The user's identifier
            permission_keys: Permissions to check

        Returns:
            True if the user has at least one permission
        """
        for key in permission_keys:
            if await self.check_user_permission(user_id, key):
                return True
        return False

    async def has_all_permissions(self, user_id: str, permission_keys: Iterable[str]) -> bool:
        """Check if a user has all of the specified permissions.

        Args:
            user_id: The user's identifier
            permission_keys: Permissions to check

        Returns:
            True if the user has every permission
        """
        for key in permission_keys:
            if not await self.check_user_permission(user_id, key):
                return False
        return True

    async def check_permissions(
        self, user_id: str, permission_keys: Iterable[str]
    ) -> dict[str, bool]:
        """Check several permissions for one user.

        Returns:
            Mapping of permission key to decision
        """
        return {key: await self.check_user_permission(user_id, key) for key in permission_keys}

    async def _check_user_uncached(self, user_id: str, permission_key: str) -> bool:
        patterns = self.matcher.ancestor_patterns(permission_key)

        # 1. User-specific grants outrank every role
        granted = await self.directory.get_user_grant(user_id, permission_key)
        if granted is not None:
            self.logger.debug(
                "user_direct_grant", user_id=user_id, permission_key=permission_key, granted=granted
            )
            return granted

        for pattern in patterns:
            granted = await self.directory.get_user_grant(user_id, pattern)
            if granted is not None:
                self.logger.debug(
                    "user_wildcard_grant", user_id=user_id, pattern=pattern, granted=granted
                )
                return granted

        # 2. Roles with inheritance, by priority
        direct_roles = await self.directory.get_roles_of(user_id)
        roles = await self.graph.expand_role_closure(role.id for role in direct_roles)
        self.logger.debug(
            "user_role_closure", user_id=user_id, roles=[role.name for role in roles]
        )

        granted = await self._first_role_grant(roles, permission_key, patterns)
        if granted is not None:
            return granted

        # 3. Default deny
        self.logger.debug("permission_default_deny", user_id=user_id, permission_key=permission_key)
        return False

    async def _check_role_uncached(self, role_id: UUID, permission_key: str) -> bool:
        patterns = self.matcher.ancestor_patterns(permission_key)

        granted = await self._role_grant(role_id, permission_key, patterns)
        if granted is not None:
            return granted

        ancestors = await self.graph.expand_inheritance_chain(role_id)
        granted = await self._first_role_grant(ancestors, permission_key, patterns)
        if granted is not None:
            return granted

        return False

    async def _first_role_grant(
        self,
        roles: list[RoleRecord],
        permission_key: str,
        patterns: list[str],
    ) -> bool | None:
        for role in roles:
            granted = await self._role_grant(role.id, permission_key, patterns)
            if granted is not None:
                self.logger.debug(
                    "role_grant", role=role.name, permission_key=permission_key, granted=granted
                )
                return granted
        return None

    async def _role_grant(
        self,
        role_id: UUID,
        permission_key: str,
        patterns: list[str],
    ) -> bool | None:
        """Exact grant first, then wildcard patterns from most specific."""
        granted = await self.directory.get_role_grant(role_id, permission_key)
        if granted is not None:
            return granted

        for pattern in patterns:
            granted = await self.directory.get_role_grant(role_id, pattern)
            if granted is not None:
                return granted

        return None
