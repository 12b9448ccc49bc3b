"""Directory protocol: the permission system's view of persistence.

The checker only calls the read methods. The manager calls both, and relies on
write primitives to raise the typed errors in ``permgraph.core.errors`` when
they detect a conflict themselves.
"""

from typing import Protocol, runtime_checkable
from uuid import UUID

from permgraph.core.permissions.schemas import (
    GrantRecord,
    InheritanceRecord,
    PermissionRecord,
    PermissionUpdate,
    RoleRecord,
    RoleUpdate,
)


@runtime_checkable
class Directory(Protocol):
    """Storage collaborator for permissions, roles, grants and memberships."""

    # ==================== Role Reads ====================

    async def get_role(self, role_id: UUID) -> RoleRecord | None: ...

    async def get_role_by_name(self, name: str) -> RoleRecord | None: ...

    async def list_roles(self) -> list[RoleRecord]: ...

    async def get_inheritance_edges(self, role_id: UUID) -> list[InheritanceRecord]:
        """Edges out of ``role_id``, highest edge priority first."""
        ...

    async def get_inheriting_roles(self, role_id: UUID) -> list[UUID]:
        """Ids of roles with an edge pointing at ``role_id``."""
        ...

    async def get_role_members(self, role_id: UUID) -> list[str]: ...

    # ==================== Permission Reads ====================

    async def get_permission(self, key: str) -> PermissionRecord | None: ...

    async def list_permissions(self) -> list[PermissionRecord]: ...

    # ==================== Grant Reads ====================

    async def get_role_grant(self, role_id: UUID, key: str) -> bool | None:
        """The ``granted`` flag stored for (role, key), or None if no grant."""
        ...

    async def get_user_grant(self, user_id: str, key: str) -> bool | None:
        """The ``granted`` flag stored for (user, key), or None if no grant."""
        ...

    async def get_role_grants(self, role_id: UUID) -> list[GrantRecord]: ...

    async def get_user_grants(self, user_id: str) -> list[GrantRecord]: ...

    # ==================== Membership Reads ====================

    async def get_roles_of(self, user_id: str) -> list[RoleRecord]:
        """Directly assigned roles only."""
        ...

    async def has_role(self, user_id: str, role_id: UUID) -> bool: ...

    # ==================== Writes ====================

    async def create_permission(
        self,
        key: str,
        description: str | None = None,
        category: str | None = None,
    ) -> PermissionRecord: ...

    async def update_permission(self, key: str, data: PermissionUpdate) -> PermissionRecord: ...

    async def delete_permission(self, key: str) -> bool: ...

    async def create_role(
        self,
        name: str,
        description: str | None = None,
        priority: int = 0,
        is_default: bool = False,
    ) -> RoleRecord: ...

    async def update_role(self, role_id: UUID, data: RoleUpdate) -> RoleRecord: ...

    async def delete_role(self, role_id: UUID) -> bool: ...

    async def upsert_role_grant(self, role_id: UUID, key: str, granted: bool) -> GrantRecord:
        """Create or update a role grant, defining the permission on first use."""
        ...

    async def delete_role_grant(self, role_id: UUID, key: str) -> bool: ...

    async def upsert_user_grant(self, user_id: str, key: str, granted: bool) -> GrantRecord:
        """Create or update a user grant, defining the permission on first use."""
        ...

    async def delete_user_grant(self, user_id: str, key: str) -> bool: ...

    async def add_user_role(self, user_id: str, role_id: UUID) -> None: ...

    async def remove_user_role(self, user_id: str, role_id: UUID) -> bool: ...

    async def upsert_inheritance_edge(
        self,
        role_id: UUID,
        inherits_from_id: UUID,
        priority: int = 0,
    ) -> InheritanceRecord: ...

    async def delete_inheritance_edge(self, role_id: UUID, inherits_from_id: UUID) -> bool: ...
