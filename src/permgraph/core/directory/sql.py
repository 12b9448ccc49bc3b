"""Directory backed by an async SQLAlchemy database.

Each operation opens its own session from the factory it was given. Mutations
run inside a single transaction, and cascades are performed explicitly so the
result does not depend on the database enforcing foreign keys.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

import structlog
from sqlalchemy import Insert, ScalarSelect, delete, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from permgraph.core.database.base import utcnow
from permgraph.core.errors import (
    CircularInheritanceError,
    PermissionAlreadyExistsError,
    PermissionNotFoundError,
    PermissionSystemError,
    RoleAlreadyAssignedError,
    RoleAlreadyExistsError,
    RoleNotFoundError,
)
from permgraph.core.permissions.models import (
    Permission,
    Role,
    RoleInheritance,
    RolePermission,
    UserPermission,
    UserRole,
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

_DIALECT_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


def _permission_id_for(key: str) -> ScalarSelect[UUID]:
    return select(Permission.id).where(Permission.key == key).scalar_subquery()


def _dialect_insert(session: AsyncSession, model: type) -> Insert:
    """Build an INSERT that supports ON CONFLICT for the bound dialect."""
    dialect = session.get_bind().dialect.name
    try:
        return _DIALECT_INSERTS[dialect](model)
    except KeyError:
        raise PermissionSystemError(
            f"Upserts are not supported on '{dialect}'",
            error_code="unsupported_dialect",
            details={"dialect": dialect},
        ) from None


class SqlAlchemyDirectory:
    """Repository-style implementation of the ``Directory`` protocol.

    Usage:
        engine = create_engine(settings)
        directory = SqlAlchemyDirectory(create_session_factory(engine))
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        """Open a session and commit on success, roll back on error."""
        async with self.session_factory() as session:
            async with session.begin():
                yield session

    # ==================== Role Reads ====================

    async def get_role(self, role_id: UUID) -> RoleRecord | None:
        async with self.session_factory() as session:
            role = await session.get(Role, role_id)
            return RoleRecord.model_validate(role) if role else None

    async def get_role_by_name(self, name: str) -> RoleRecord | None:
        async with self.session_factory() as session:
            role = await self._role_by_name(session, name)
            return RoleRecord.model_validate(role) if role else None

    async def list_roles(self) -> list[RoleRecord]:
        async with self.session_factory() as session:
            result = await session.execute(select(Role).order_by(Role.priority.desc()))
            return [RoleRecord.model_validate(role) for role in result.scalars().all()]

    async def get_inheritance_edges(self, role_id: UUID) -> list[InheritanceRecord]:
        stmt = (
            select(RoleInheritance)
            .where(RoleInheritance.role_id == role_id)
            .order_by(RoleInheritance.priority.desc())
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [InheritanceRecord.model_validate(edge) for edge in result.scalars().all()]

    async def get_inheriting_roles(self, role_id: UUID) -> list[UUID]:
        stmt = select(RoleInheritance.role_id).where(
            RoleInheritance.inherits_from_id == role_id
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_role_members(self, role_id: UUID) -> list[str]:
        stmt = select(UserRole.user_id).where(UserRole.role_id == role_id)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # ==================== Permission Reads ====================

    async def get_permission(self, key: str) -> PermissionRecord | None:
        async with self.session_factory() as session:
            permission = await self._permission_by_key(session, key)
            return PermissionRecord.model_validate(permission) if permission else None

    async def list_permissions(self) -> list[PermissionRecord]:
        async with self.session_factory() as session:
            result = await session.execute(select(Permission).order_by(Permission.key))
            return [PermissionRecord.model_validate(p) for p in result.scalars().all()]

    # ==================== Grant Reads ====================

    async def get_role_grant(self, role_id: UUID, key: str) -> bool | None:
        stmt = (
            select(RolePermission.granted)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(RolePermission.role_id == role_id, Permission.key == key)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def get_user_grant(self, user_id: str, key: str) -> bool | None:
        stmt = (
            select(UserPermission.granted)
            .join(Permission, Permission.id == UserPermission.permission_id)
            .where(UserPermission.user_id == user_id, Permission.key == key)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def get_role_grants(self, role_id: UUID) -> list[GrantRecord]:
        stmt = (
            select(Permission.key, RolePermission.granted)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(RolePermission.role_id == role_id)
            .order_by(Permission.key)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [GrantRecord(permission_key=k, granted=g) for k, g in result.all()]

    async def get_user_grants(self, user_id: str) -> list[GrantRecord]:
        stmt = (
            select(Permission.key, UserPermission.granted)
            .join(Permission, Permission.id == UserPermission.permission_id)
            .where(UserPermission.user_id == user_id)
            .order_by(Permission.key)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [GrantRecord(permission_key=k, granted=g) for k, g in result.all()]

    # ==================== Membership Reads ====================

    async def get_roles_of(self, user_id: str) -> list[RoleRecord]:
        stmt = (
            select(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(UserRole.user_id == user_id)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [RoleRecord.model_validate(role) for role in result.scalars().all()]

    async def has_role(self, user_id: str, role_id: UUID) -> bool:
        async with self.session_factory() as session:
            return await self._membership(session, user_id, role_id) is not None

    # ==================== Permission Writes ====================

    async def create_permission(
        self,
        key: str,
        description: str | None = None,
        category: str | None = None,
    ) -> PermissionRecord:
        try:
            async with self._transaction() as session:
                if await self._permission_by_key(session, key) is not None:
                    raise PermissionAlreadyExistsError(key)
                permission = Permission(key=key, description=description, category=category)
                session.add(permission)
                await session.flush()
                return PermissionRecord.model_validate(permission)
        except IntegrityError as exc:
            raise PermissionAlreadyExistsError(key) from exc

    async def update_permission(self, key: str, data: PermissionUpdate) -> PermissionRecord:
        async with self._transaction() as session:
            permission = await self._permission_by_key(session, key)
            if permission is None:
                raise PermissionNotFoundError(key)
            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(permission, field, value)
            await session.flush()
            return PermissionRecord.model_validate(permission)

    async def delete_permission(self, key: str) -> bool:
        async with self._transaction() as session:
            permission = await self._permission_by_key(session, key)
            if permission is None:
                return False
            await session.execute(
                delete(RolePermission).where(RolePermission.permission_id == permission.id)
            )
            await session.execute(
                delete(UserPermission).where(UserPermission.permission_id == permission.id)
            )
            await session.delete(permission)
            return True

    # ==================== Role Writes ====================

    async def create_role(
        self,
        name: str,
        description: str | None = None,
        priority: int = 0,
        is_default: bool = False,
    ) -> RoleRecord:
        try:
            async with self._transaction() as session:
                if await self._role_by_name(session, name) is not None:
                    raise RoleAlreadyExistsError(name)
                role = Role(
                    name=name,
                    description=description,
                    priority=priority,
                    is_default=is_default,
                )
                session.add(role)
                await session.flush()
                return RoleRecord.model_validate(role)
        except IntegrityError as exc:
            raise RoleAlreadyExistsError(name) from exc

    async def update_role(self, role_id: UUID, data: RoleUpdate) -> RoleRecord:
        changes = data.model_dump(exclude_unset=True)
        try:
            async with self._transaction() as session:
                role = await session.get(Role, role_id)
                if role is None:
                    raise RoleNotFoundError(role_id)
                if "name" in changes and changes["name"] != role.name:
                    if await self._role_by_name(session, changes["name"]) is not None:
                        raise RoleAlreadyExistsError(changes["name"])
                for field, value in changes.items():
                    setattr(role, field, value)
                await session.flush()
                return RoleRecord.model_validate(role)
        except IntegrityError as exc:
            raise RoleAlreadyExistsError(str(changes.get("name"))) from exc

    async def delete_role(self, role_id: UUID) -> bool:
        async with self._transaction() as session:
            role = await session.get(Role, role_id)
            if role is None:
                return False
            await session.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
            await session.execute(delete(UserRole).where(UserRole.role_id == role_id))
            await session.execute(
                delete(RoleInheritance).where(
                    or_(
                        RoleInheritance.role_id == role_id,
                        RoleInheritance.inherits_from_id == role_id,
                    )
                )
            )
            await session.delete(role)
            logger.debug("role_deleted", role_id=str(role_id))
            return True

    # ==================== Grant Writes ====================

    async def upsert_role_grant(self, role_id: UUID, key: str, granted: bool) -> GrantRecord:
        try:
            async with self._transaction() as session:
                if await session.get(Role, role_id) is None:
                    raise RoleNotFoundError(role_id)
                permission = await self._get_or_create_permission(session, key)
                stmt = _dialect_insert(session, RolePermission).values(
                    role_id=role_id, permission_id=permission.id, granted=granted
                )
                await session.execute(
                    stmt.on_conflict_do_update(
                        index_elements=["role_id", "permission_id"],
                        set_={"granted": stmt.excluded.granted, "updated_at": utcnow()},
                    )
                )
                return GrantRecord(permission_key=key, granted=granted)
        except IntegrityError as exc:
            # The role was deleted between the check and the insert.
            raise RoleNotFoundError(role_id) from exc

    async def delete_role_grant(self, role_id: UUID, key: str) -> bool:
        stmt = delete(RolePermission).where(
            RolePermission.role_id == role_id,
            RolePermission.permission_id == _permission_id_for(key),
        )
        async with self._transaction() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def upsert_user_grant(self, user_id: str, key: str, granted: bool) -> GrantRecord:
        async with self._transaction() as session:
            permission = await self._get_or_create_permission(session, key)
            stmt = _dialect_insert(session, UserPermission).values(
                user_id=user_id, permission_id=permission.id, granted=granted
            )
            await session.execute(
                stmt.on_conflict_do_update(
                    index_elements=["user_id", "permission_id"],
                    set_={"granted": stmt.excluded.granted, "updated_at": utcnow()},
                )
            )
            return GrantRecord(permission_key=key, granted=granted)

    async def delete_user_grant(self, user_id: str, key: str) -> bool:
        stmt = delete(UserPermission).where(
            UserPermission.user_id == user_id,
            UserPermission.permission_id == _permission_id_for(key),
        )
        async with self._transaction() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    # ==================== Membership Writes ====================

    async def add_user_role(self, user_id: str, role_id: UUID) -> None:
        try:
            async with self._transaction() as session:
                if await session.get(Role, role_id) is None:
                    raise RoleNotFoundError(role_id)
                if await self._membership(session, user_id, role_id) is not None:
                    raise RoleAlreadyAssignedError(user_id, role_id)
                session.add(UserRole(user_id=user_id, role_id=role_id))
        except IntegrityError as exc:
            raise RoleAlreadyAssignedError(user_id, role_id) from exc

    async def remove_user_role(self, user_id: str, role_id: UUID) -> bool:
        stmt = delete(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
        async with self._transaction() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    # ==================== Inheritance Writes ====================

    async def upsert_inheritance_edge(
        self,
        role_id: UUID,
        inherits_from_id: UUID,
        priority: int = 0,
    ) -> InheritanceRecord:
        if role_id == inherits_from_id:
            raise CircularInheritanceError(role_id, inherits_from_id)

        try:
            async with self._transaction() as session:
                for rid in (role_id, inherits_from_id):
                    if await session.get(Role, rid) is None:
                        raise RoleNotFoundError(rid)
                stmt = _dialect_insert(session, RoleInheritance).values(
                    role_id=role_id, inherits_from_id=inherits_from_id, priority=priority
                )
                await session.execute(
                    stmt.on_conflict_do_update(
                        index_elements=["role_id", "inherits_from_id"],
                        set_={"priority": stmt.excluded.priority, "updated_at": utcnow()},
                    )
                )
                return InheritanceRecord(
                    role_id=role_id, inherits_from_id=inherits_from_id, priority=priority
                )
        except IntegrityError as exc:
            raise RoleNotFoundError(role_id) from exc

    async def delete_inheritance_edge(self, role_id: UUID, inherits_from_id: UUID) -> bool:
        stmt = delete(RoleInheritance).where(
            RoleInheritance.role_id == role_id,
            RoleInheritance.inherits_from_id == inherits_from_id,
        )
        async with self._transaction() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    # ==================== Helpers ====================

    async def _role_by_name(self, session: AsyncSession, name: str) -> Role | None:
        result = await session.execute(select(Role).where(Role.name == name))
        return result.scalar_one_or_none()

    async def _permission_by_key(self, session: AsyncSession, key: str) -> Permission | None:
        result = await session.execute(select(Permission).where(Permission.key == key))
        return result.scalar_one_or_none()

    async def _membership(
        self, session: AsyncSession, user_id: str, role_id: UUID
    ) -> UserRole | None:
        result = await session.execute(
            select(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
        )
        return result.scalar_one_or_none()

    async def _get_or_create_permission(self, session: AsyncSession, key: str) -> Permission:
        """Define a permission on first use, inside the caller's transaction.

        A concurrent writer may define the same key first; the insert then
        does nothing and the row is read back.
        """
        permission = await self._permission_by_key(session, key)
        if permission is not None:
            return permission

        stmt = _dialect_insert(session, Permission).values(key=key)
        await session.execute(stmt.on_conflict_do_nothing(index_elements=["key"]))
        permission = await self._permission_by_key(session, key)
        if permission is None:
            raise PermissionNotFoundError(key)
        return permission
