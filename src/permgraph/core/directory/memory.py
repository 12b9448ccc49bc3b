"""In-process directory backed by dictionaries.

Suitable for tests, single-process services and seeding a system before a
database is available. Writes are serialised with an ``asyncio.Lock`` so each
upsert and cascade is applied atomically with respect to other coroutines.
"""

import asyncio
from uuid import UUID, uuid4

import structlog

from permgraph.core.errors import (
    CircularInheritanceError,
    PermissionAlreadyExistsError,
    PermissionNotFoundError,
    RoleAlreadyAssignedError,
    RoleAlreadyExistsError,
    RoleNotFoundError,
)
from permgraph.core.permissions.schemas import (
    GrantRecord,
    InheritanceRecord,
    PermissionRecord,
    PermissionUpdate,
    RoleRecord,
    RoleUpdate,
)


logger = structlog.get_logger()


class InMemoryDirectory:
    """Dictionary-backed implementation of the ``Directory`` protocol."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._permissions: dict[str, PermissionRecord] = {}
        self._roles: dict[UUID, RoleRecord] = {}
        self._role_grants: dict[UUID, dict[str, bool]] = {}
        self._user_grants: dict[str, dict[str, bool]] = {}
        # user_id -> role ids in assignment order
        self._memberships: dict[str, list[UUID]] = {}
        # role_id -> {inherits_from_id: edge priority}
        self._edges: dict[UUID, dict[UUID, int]] = {}

    # ==================== Role Reads ====================

    async def get_role(self, role_id: UUID) -> RoleRecord | None:
        return self._roles.get(role_id)

    async def get_role_by_name(self, name: str) -> RoleRecord | None:
        for role in self._roles.values():
            if role.name == name:
                return role
        return None

    async def list_roles(self) -> list[RoleRecord]:
        return sorted(self._roles.values(), key=lambda r: r.priority, reverse=True)

    async def get_inheritance_edges(self, role_id: UUID) -> list[InheritanceRecord]:
        edges = [
            InheritanceRecord(role_id=role_id, inherits_from_id=parent_id, priority=priority)
            for parent_id, priority in self._edges.get(role_id, {}).items()
        ]
        return sorted(edges, key=lambda e: e.priority, reverse=True)

    async def get_inheriting_roles(self, role_id: UUID) -> list[UUID]:
        return [child_id for child_id, parents in self._edges.items() if role_id in parents]

    async def get_role_members(self, role_id: UUID) -> list[str]:
        return [user_id for user_id, roles in self._memberships.items() if role_id in roles]

    # ==================== Permission Reads ====================

    async def get_permission(self, key: str) -> PermissionRecord | None:
        return self._permissions.get(key)

    async def list_permissions(self) -> list[PermissionRecord]:
        return sorted(self._permissions.values(), key=lambda p: p.key)

    # ==================== Grant Reads ====================

    async def get_role_grant(self, role_id: UUID, key: str) -> bool | None:
        return self._role_grants.get(role_id, {}).get(key)

    async def get_user_grant(self, user_id: str, key: str) -> bool | None:
        return self._user_grants.get(user_id, {}).get(key)

    async def get_role_grants(self, role_id: UUID) -> list[GrantRecord]:
        grants = self._role_grants.get(role_id, {})
        return [GrantRecord(permission_key=k, granted=v) for k, v in sorted(grants.items())]

    async def get_user_grants(self, user_id: str) -> list[GrantRecord]:
        grants = self._user_grants.get(user_id, {})
        return [GrantRecord(permission_key=k, granted=v) for k, v in sorted(grants.items())]

    # ==================== Membership Reads ====================

    async def get_roles_of(self, user_id: str) -> list[RoleRecord]:
        return [
            self._roles[role_id]
            for role_id in self._memberships.get(user_id, [])
            if role_id in self._roles
        ]

    async def has_role(self, user_id: str, role_id: UUID) -> bool:
        return role_id in self._memberships.get(user_id, [])

    # ==================== Permission Writes ====================

    async def create_permission(
        self,
        key: str,
        description: str | None = None,
        category: str | None = None,
    ) -> PermissionRecord:
        async with self._lock:
            return self._create_permission(key, description, category)

    def _create_permission(
        self,
        key: str,
        description: str | None = None,
        category: str | None = None,
    ) -> PermissionRecord:
        if key in self._permissions:
            raise PermissionAlreadyExistsError(key)
        permission = PermissionRecord(
            id=uuid4(), key=key, description=description, category=category
        )
        self._permissions[key] = permission
        return permission

    async def update_permission(self, key: str, data: PermissionUpdate) -> PermissionRecord:
        async with self._lock:
            permission = self._permissions.get(key)
            if permission is None:
                raise PermissionNotFoundError(key)
            updated = permission.model_copy(update=data.model_dump(exclude_unset=True))
            self._permissions[key] = updated
            return updated

    async def delete_permission(self, key: str) -> bool:
        async with self._lock:
            if self._permissions.pop(key, None) is None:
                return False
            for grants in (*self._role_grants.values(), *self._user_grants.values()):
                grants.pop(key, None)
            return True

    # ==================== Role Writes ====================

    async def create_role(
        self,
        name: str,
        description: str | None = None,
        priority: int = 0,
        is_default: bool = False,
    ) -> RoleRecord:
        async with self._lock:
            if await self.get_role_by_name(name) is not None:
                raise RoleAlreadyExistsError(name)
            role = RoleRecord(
                id=uuid4(),
                name=name,
                description=description,
                priority=priority,
                is_default=is_default,
            )
            self._roles[role.id] = role
            return role

    async def update_role(self, role_id: UUID, data: RoleUpdate) -> RoleRecord:
        async with self._lock:
            role = self._roles.get(role_id)
            if role is None:
                raise RoleNotFoundError(role_id)
            changes = data.model_dump(exclude_unset=True)
            if "name" in changes and changes["name"] != role.name:
                if await self.get_role_by_name(changes["name"]) is not None:
                    raise RoleAlreadyExistsError(changes["name"])
            updated = role.model_copy(update=changes)
            self._roles[role_id] = updated
            return updated

    async def delete_role(self, role_id: UUID) -> bool:
        async with self._lock:
            if self._roles.pop(role_id, None) is None:
                return False
            self._role_grants.pop(role_id, None)
            self._edges.pop(role_id, None)
            for parents in self._edges.values():
                parents.pop(role_id, None)
            for roles in self._memberships.values():
                if role_id in roles:
                    roles.remove(role_id)
            logger.debug("role_deleted", role_id=str(role_id))
            return True

    # ==================== Grant Writes ====================

    async def upsert_role_grant(self, role_id: UUID, key: str, granted: bool) -> GrantRecord:
        async with self._lock:
            if role_id not in self._roles:
                raise RoleNotFoundError(role_id)
            if key not in self._permissions:
                self._create_permission(key)
            self._role_grants.setdefault(role_id, {})[key] = granted
            return GrantRecord(permission_key=key, granted=granted)

    async def delete_role_grant(self, role_id: UUID, key: str) -> bool:
        async with self._lock:
            return self._role_grants.get(role_id, {}).pop(key, None) is not None

    async def upsert_user_grant(self, user_id: str, key: str, granted: bool) -> GrantRecord:
        async with self._lock:
            if key not in self._permissions:
                self._create_permission(key)
            self._user_grants.setdefault(user_id, {})[key] = granted
            return GrantRecord(permission_key=key, granted=granted)

    async def delete_user_grant(self, user_id: str, key: str) -> bool:
        async with self._lock:
            return self._user_grants.get(user_id, {}).pop(key, None) is not None

    # ==================== Membership Writes ====================

    async def add_user_role(self, user_id: str, role_id: UUID) -> None:
        async with self._lock:
            if role_id not in self._roles:
                raise RoleNotFoundError(role_id)
            roles = self._memberships.setdefault(user_id, [])
            if role_id in roles:
                raise RoleAlreadyAssignedError(user_id, role_id)
            roles.append(role_id)

    async def remove_user_role(self, user_id: str, role_id: UUID) -> bool:
        async with self._lock:
            roles = self._memberships.get(user_id, [])
            if role_id not in roles:
                return False
            roles.remove(role_id)
            return True

    # ==================== Inheritance Writes ====================

    async def upsert_inheritance_edge(
        self,
        role_id: UUID,
        inherits_from_id: UUID,
        priority: int = 0,
    ) -> InheritanceRecord:
        async with self._lock:
            if role_id == inherits_from_id:
                raise CircularInheritanceError(role_id, inherits_from_id)
            for rid in (role_id, inherits_from_id):
                if rid not in self._roles:
                    raise RoleNotFoundError(rid)
            self._edges.setdefault(role_id, {})[inherits_from_id] = priority
            return InheritanceRecord(
                role_id=role_id, inherits_from_id=inherits_from_id, priority=priority
            )

    async def delete_inheritance_edge(self, role_id: UUID, inherits_from_id: UUID) -> bool:
        async with self._lock:
            return self._edges.get(role_id, {}).pop(inherits_from_id, None) is not None
