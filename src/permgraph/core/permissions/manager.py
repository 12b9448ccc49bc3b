"""High-level API for managing permissions, roles, and users.

Every write is validated here, committed through the directory, and followed
by invalidation of the cache scopes whose decisions it can change. A check
running between the commit and the invalidation may still see the old cached
answer; that window is accepted.
"""

from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from structlog.typing import FilteringBoundLogger

from permgraph.core.cache.manager import PermissionCache
from permgraph.core.constants import MAX_USER_ID_LENGTH
from permgraph.core.errors import (
    CircularInheritanceError,
    InvalidArgumentError,
    PermissionAlreadyExistsError,
    RoleAlreadyAssignedError,
    RoleAlreadyExistsError,
    RoleNotFoundError,
)
from permgraph.core.permissions.checker import PermissionChecker
from permgraph.core.permissions.graph import RoleGraph
from permgraph.core.permissions.schemas import (
    GrantRecord,
    InheritanceRecord,
    PermissionRecord,
    PermissionUpdate,
    RolePermissionGroup,
    RoleRecord,
    RoleUpdate,
    UserPermissionSummary,
)
from permgraph.core.permissions.targets import RoleRef, RoleTarget, Target, UserTarget
from permgraph.core.permissions.wildcard import WildcardMatcher, validate_key


if TYPE_CHECKING:
    from permgraph.core.directory.base import Directory


class PermissionManager:
    """Write path and query API of the permission system."""

    def __init__(
        self,
        directory: "Directory",
        checker: PermissionChecker,
        cache: PermissionCache,
        graph: RoleGraph | None = None,
        matcher: WildcardMatcher | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        self.directory = directory
        self.checker = checker
        self.cache = cache
        self.logger = logger or structlog.get_logger()
        self.graph = graph or RoleGraph(directory, logger=self.logger)
        self.matcher = matcher or WildcardMatcher()

    # ==================== Permission Operations ====================

    async def create_permission(
        self,
        key: str,
        description: str | None = None,
        category: str | None = None,
    ) -> PermissionRecord:
        """Create a new permission.

        Args:
            key: Permission key (e.g., "endpoint.users.list" or "endpoint.*")
            description: Description of the permission
            category: Category for grouping

        Returns:
            The created permission

        Raises:
            InvalidArgumentError: If the key is malformed
            PermissionAlreadyExistsError: If the key is already defined
        """
        validate_key(key)
        self.logger.debug("create_permission", permission_key=key, category=category)

        if await self.directory.get_permission(key) is not None:
            raise PermissionAlreadyExistsError(key)
        return await self.directory.create_permission(key, description, category)

    async def get_permission(self, key: str) -> PermissionRecord | None:
        """Get a permission by key."""
        return await self.directory.get_permission(key)

    async def list_permissions(self, pattern: str | None = None) -> list[PermissionRecord]:
        """List permissions, optionally only those a pattern covers.

        Args:
            pattern: Wildcard pattern such as "endpoint.users.*"

        Returns:
            Permissions ordered by key
        """
        permissions = await self.directory.list_permissions()
        if pattern is None:
            return permissions
        return [p for p in permissions if self.matcher.matches(pattern, p.key)]

    async def update_permission(self, key: str, data: PermissionUpdate) -> PermissionRecord:
        """Update a permission's description or category.

        Raises:
            PermissionNotFoundError: If the key is not defined
        """
        self.logger.debug("update_permission", permission_key=key)
        return await self.directory.update_permission(key, data)

    async def delete_permission(self, key: str) -> bool:
        """Delete a permission and every grant referencing it.

        Any principal may have held the permission, so the whole cache is
        cleared afterwards.

        Returns:
            True if the permission existed
        """
        self.logger.debug("delete_permission", permission_key=key)
        deleted = await self.directory.delete_permission(key)
        if deleted:
            await self.cache.clear()
        return deleted

    # ==================== Role Operations ====================

    async def create_role(
        self,
        name: str,
        description: str | None = None,
        priority: int = 0,
        is_default: bool = False,
    ) -> RoleRecord:
        """Create a new role.

        Args:
            name: Unique role name
            description: Role description
            priority: Role priority (higher is consulted first)
            is_default: Whether the role is meant for new users

        Returns:
            The created role

        Raises:
            RoleAlreadyExistsError: If the name is taken
        """
        if not name or not name.strip():
            raise InvalidArgumentError("Role name must not be empty", details={"name": name})
        self.logger.debug("create_role", name=name, priority=priority, is_default=is_default)

        if await self.directory.get_role_by_name(name) is not None:
            raise RoleAlreadyExistsError(name)
        return await self.directory.create_role(name, description, priority, is_default)

    async def resolve_role(self, ref: RoleRef) -> RoleRecord | None:
        """Look a role up by id (``UUID``) or by name (``str``).

        The kind of lookup follows the type of ``ref``; a name is never
        retried as an id or the other way round.
        """
        if isinstance(ref, UUID):
            return await self.directory.get_role(ref)
        if isinstance(ref, str):
            return await self.directory.get_role_by_name(ref)
        raise InvalidArgumentError(
            f"Role reference must be a UUID or a name, got {type(ref).__name__}",
            details={"role": repr(ref)},
        )

    async def get_role(self, ref: RoleRef) -> RoleRecord | None:
        """Get a role by id or name."""
        return await self.resolve_role(ref)

    async def list_roles(self) -> list[RoleRecord]:
        """List all roles, highest priority first."""
        return await self.directory.list_roles()

    async def update_role(self, ref: RoleRef, data: RoleUpdate) -> RoleRecord:
        """Update a role's name, description, priority or default flag.

        Raises:
            RoleNotFoundError: If the role does not exist
            RoleAlreadyExistsError: If renaming onto a taken name
        """
        role = await self._require_role(ref)
        self.logger.debug(
            "update_role", role_id=str(role.id), changes=data.model_dump(exclude_unset=True)
        )

        updated = await self.directory.update_role(role.id, data)
        # Priority decides check order for every user holding the role
        await self._invalidate_role_dependents(role.id)
        return updated

    async def delete_role(self, ref: RoleRef) -> bool:
        """Delete a role with its grants, memberships and inheritance edges.

        Raises:
            RoleNotFoundError: If the role does not exist
        """
        role = await self._require_role(ref)
        self.logger.debug("delete_role", role_id=str(role.id), name=role.name)

        # Collect dependents while the edges still exist
        roles, users = await self._affected_by_role(role.id)
        deleted = await self.directory.delete_role(role.id)
        await self._invalidate(roles, users)
        return deleted

    # ==================== Assignment Operations ====================

    async def assign_permission(
        self,
        permission_key: str,
        target: Target,
        granted: bool = True,
    ) -> GrantRecord:
        """Assign (or with ``granted=False``, ban) a permission on a role or user.

        Repeated assignment updates the existing grant. The permission is
        defined on first use, wildcard patterns included.

        Args:
            permission_key: Permission key or wildcard pattern
            target: ``RoleTarget`` or ``UserTarget``
            granted: False stores an explicit ban

        Returns:
            The stored grant

        Raises:
            InvalidArgumentError: If the key or target is malformed
            RoleNotFoundError: If a role target does not exist
        """
        validate_key(permission_key)
        self.logger.debug(
            "assign_permission",
            permission_key=permission_key,
            target=repr(target),
            granted=granted,
        )

        if isinstance(target, RoleTarget):
            role = await self._require_role(target.role)
            grant = await self.directory.upsert_role_grant(role.id, permission_key, granted)
            await self._invalidate_role_dependents(role.id)
            return grant

        if isinstance(target, UserTarget):
            _require_user_id(target.user_id)
            grant = await self.directory.upsert_user_grant(target.user_id, permission_key, granted)
            await self.cache.invalidate_user(target.user_id)
            return grant

        raise self._invalid_target(target)

    async def ban_permission(self, permission_key: str, target: Target) -> GrantRecord:
        """Explicitly deny a permission (store ``granted=False``)."""
        return await self.assign_permission(permission_key, target, granted=False)

    async def remove_permission(self, permission_key: str, target: Target) -> bool:
        """Remove a grant or ban.

        Returns:
            True if a grant was removed, False if there was none

        Raises:
            RoleNotFoundError: If a role target does not exist
        """
        self.logger.debug("remove_permission", permission_key=permission_key, target=repr(target))

        if isinstance(target, RoleTarget):
            role = await self._require_role(target.role)
            removed = await self.directory.delete_role_grant(role.id, permission_key)
            if removed:
                await self._invalidate_role_dependents(role.id)
            return removed

        if isinstance(target, UserTarget):
            _require_user_id(target.user_id)
            removed = await self.directory.delete_user_grant(target.user_id, permission_key)
            if removed:
                await self.cache.invalidate_user(target.user_id)
            return removed

        raise self._invalid_target(target)

    async def assign_role(self, role_ref: RoleRef, user_id: str) -> RoleRecord:
        """Assign a role to a user.

        Raises:
            InvalidArgumentError: If the user id is empty or too long
            RoleNotFoundError: If the role does not exist
            RoleAlreadyAssignedError: If the user already holds the role
        """
        _require_user_id(user_id)
        role = await self._require_role(role_ref)
        self.logger.debug("assign_role", role_id=str(role.id), user_id=user_id)

        if await self.directory.has_role(user_id, role.id):
            raise RoleAlreadyAssignedError(user_id, role.id)
        await self.directory.add_user_role(user_id, role.id)
        await self.cache.invalidate_user(user_id)
        return role

    async def remove_role(self, role_ref: RoleRef, user_id: str) -> bool:
        """Remove a role from a user.

        Returns:
            True if the user held the role
        """
        _require_user_id(user_id)
        role = await self._require_role(role_ref)
        self.logger.debug("remove_role", role_id=str(role.id), user_id=user_id)

        removed = await self.directory.remove_user_role(user_id, role.id)
        if removed:
            await self.cache.invalidate_user(user_id)
        return removed

    async def set_role_inheritance(
        self,
        role_ref: RoleRef,
        inherits_from_ref: RoleRef,
        priority: int = 0,
    ) -> InheritanceRecord:
        """Make a role inherit the grants of another role.

        Args:
            role_ref: The inheriting role
            inherits_from_ref: The role whose grants are inherited
            priority: Edge priority; higher edges are walked first

        Returns:
            The stored edge

        Raises:
            RoleNotFoundError: If either role does not exist
            CircularInheritanceError: If the edge is a self-reference or
                would close a cycle
        """
        role = await self._require_role(role_ref)
        parent = await self._require_role(inherits_from_ref)
        self.logger.debug(
            "set_role_inheritance",
            role_id=str(role.id),
            inherits_from_id=str(parent.id),
            priority=priority,
        )

        if role.id == parent.id:
            raise CircularInheritanceError(role.id, parent.id)
        if await self.graph.would_create_cycle(role.id, parent.id):
            raise CircularInheritanceError(role.id, parent.id)

        edge = await self.directory.upsert_inheritance_edge(role.id, parent.id, priority)
        await self._invalidate_role_dependents(role.id)
        return edge

    async def remove_role_inheritance(self, role_ref: RoleRef, inherits_from_ref: RoleRef) -> bool:
        """Remove an inheritance edge.

        Returns:
            True if the edge existed
        """
        role = await self._require_role(role_ref)
        parent = await self._require_role(inherits_from_ref)
        self.logger.debug(
            "remove_role_inheritance", role_id=str(role.id), inherits_from_id=str(parent.id)
        )

        removed = await self.directory.delete_inheritance_edge(role.id, parent.id)
        if removed:
            await self._invalidate_role_dependents(role.id)
        return removed

    # ==================== Check Operations ====================

    async def check_permission(self, target: Target, permission_key: str) -> bool:
        """Check if a user or role has a permission.

        An unknown role name resolves to deny, like any unknown principal.
        """
        if isinstance(target, UserTarget):
            return await self.checker.check_user_permission(target.user_id, permission_key)

        if isinstance(target, RoleTarget):
            if isinstance(target.role, UUID):
                return await self.checker.check_role_permission(target.role, permission_key)
            role = await self.resolve_role(target.role)
            if role is None:
                return False
            return await self.checker.check_role_permission(role.id, permission_key)

        raise self._invalid_target(target)

    # ==================== Query Operations ====================

    async def get_user_roles(self, user_id: str) -> list[RoleRecord]:
        """Get the roles directly assigned to a user."""
        return await self.directory.get_roles_of(user_id)

    async def get_user_permissions(self, user_id: str) -> UserPermissionSummary:
        """Get a user's direct grants and the grants of each direct role."""
        direct = await self.directory.get_user_grants(user_id)
        from_roles = [
            RolePermissionGroup(
                role_id=role.id,
                role_name=role.name,
                permissions=await self.directory.get_role_grants(role.id),
            )
            for role in await self.directory.get_roles_of(user_id)
        ]
        return UserPermissionSummary(user_id=user_id, direct=direct, from_roles=from_roles)

    async def get_role_permissions(self, role_ref: RoleRef) -> list[GrantRecord]:
        """Get the grants stored directly on a role.

        Raises:
            RoleNotFoundError: If the role does not exist
        """
        role = await self._require_role(role_ref)
        return await self.directory.get_role_grants(role.id)

    async def get_role_inheritance(self, role_ref: RoleRef) -> list[InheritanceRecord]:
        """Get the edges a role inherits through, highest edge priority first.

        Raises:
            RoleNotFoundError: If the role does not exist
        """
        role = await self._require_role(role_ref)
        return await self.directory.get_inheritance_edges(role.id)

    # ==================== Cache Operations ====================

    async def invalidate_user_cache(self, user_id: str) -> None:
        """Invalidate cache for a specific user."""
        await self.cache.invalidate_user(user_id)

    async def invalidate_role_cache(self, role_id: UUID) -> None:
        """Invalidate cache for a specific role."""
        await self.cache.invalidate_role(role_id)

    async def clear_all_cache(self) -> None:
        """Clear entire cache."""
        await self.cache.clear()

    # ==================== Helper Methods ====================

    async def _require_role(self, ref: RoleRef) -> RoleRecord:
        role = await self.resolve_role(ref)
        if role is None:
            raise RoleNotFoundError(ref)
        return role

    async def _affected_by_role(self, role_id: UUID) -> tuple[set[UUID], set[str]]:
        """Roles inheriting from ``role_id`` (itself included) and their members."""
        roles = await self.graph.dependent_roles(role_id)
        users: set[str] = set()
        for rid in roles:
            users.update(await self.directory.get_role_members(rid))
        return roles, users

    async def _invalidate(self, roles: set[UUID], users: set[str]) -> None:
        for rid in roles:
            await self.cache.invalidate_role(rid)
        for user_id in users:
            await self.cache.invalidate_user(user_id)

    async def _invalidate_role_dependents(self, role_id: UUID) -> None:
        roles, users = await self._affected_by_role(role_id)
        await self._invalidate(roles, users)

    def _invalid_target(self, target: object) -> InvalidArgumentError:
        return InvalidArgumentError(
            "Target must be a RoleTarget or a UserTarget",
            details={"target": repr(target)},
        )


def _require_user_id(user_id: str) -> None:
    if not user_id or not user_id.strip():
        raise InvalidArgumentError("User id must not be empty", details={"user_id": user_id})
    if len(user_id) > MAX_USER_ID_LENGTH:
        raise InvalidArgumentError(
            "User id is too long",
            details={"user_id": user_id, "max_length": MAX_USER_ID_LENGTH},
        )
