"""Permission system database models.

This module defines the RBAC (Role-Based Access Control) tables:
- Permission: A unique, segmented permission key (may be a wildcard pattern)
- Role: A named, prioritised set of grants
- RoleInheritance: Directed edge meaning "role inherits from another role"
- RolePermission / UserPermission: Grants and bans on a role or a user
- UserRole: Junction table linking external user ids to roles

Users are not modelled here; ``user_id`` is an opaque identifier owned by
whatever system authenticates them.
"""

from uuid import UUID

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from permgraph.core.constants import (
    MAX_CATEGORY_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MAX_PERMISSION_KEY_LENGTH,
    MAX_ROLE_NAME_LENGTH,
    MAX_USER_ID_LENGTH,
)
from permgraph.core.database.base import Base, TimestampMixin, UUIDMixin


class Permission(Base, UUIDMixin, TimestampMixin):
    """Permission model keyed by a segmented string.

    Attributes:
        key: Unique key, e.g. "endpoint.users.delete" or "endpoint.*"
        description: Human-readable description of the permission
        category: Optional grouping label

    Examples:
        - key="posts.publish" -> Can publish posts
        - key="billing:*" -> Covers every billing permission
    """

    __tablename__ = "permissions"

    key: Mapped[str] = mapped_column(
        String(MAX_PERMISSION_KEY_LENGTH),
        unique=True,
        nullable=False,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(
        String(MAX_DESCRIPTION_LENGTH),
        nullable=True,
    )
    category: Mapped[str | None] = mapped_column(
        String(MAX_CATEGORY_LENGTH),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Permission({self.key})>"


class Role(Base, UUIDMixin, TimestampMixin):
    """Role model representing a named set of grants.

    Attributes:
        name: Unique role name (e.g., "admin", "editor", "viewer")
        description: Human-readable description of the role
        priority: Higher priority roles are consulted first during checks
        is_default: Whether this role is meant for new users (informational)
    """

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(
        String(MAX_ROLE_NAME_LENGTH),
        unique=True,
        nullable=False,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(
        String(MAX_DESCRIPTION_LENGTH),
        nullable=True,
    )
    priority: Mapped[int] = mapped_column(
        default=0,
        nullable=False,
    )
    is_default: Mapped[bool] = mapped_column(
        default=False,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name}, priority={self.priority})>"


class RoleInheritance(Base, TimestampMixin):
    """Inheritance edge: ``role_id`` gains the effective grants of ``inherits_from_id``."""

    __tablename__ = "role_inheritance"
    __table_args__ = (
        UniqueConstraint("role_id", "inherits_from_id", name="uq_role_inheritance"),
    )

    role_id: Mapped[UUID] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    inherits_from_id: Mapped[UUID] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    priority: Mapped[int] = mapped_column(
        default=0,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<RoleInheritance({self.role_id} -> {self.inherits_from_id})>"


class RolePermission(Base, TimestampMixin):
    """Grant (``granted=True``) or ban (``granted=False``) of a permission on a role."""

    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
    )

    role_id: Mapped[UUID] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    permission_id: Mapped[UUID] = mapped_column(
        ForeignKey("permissions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    granted: Mapped[bool] = mapped_column(
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<RolePermission(role_id={self.role_id}, granted={self.granted})>"


class UserPermission(Base, TimestampMixin):
    """Grant or ban of a permission directly on a user."""

    __tablename__ = "user_permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "permission_id", name="uq_user_permission"),
    )

    user_id: Mapped[str] = mapped_column(
        String(MAX_USER_ID_LENGTH),
        primary_key=True,
        index=True,
    )
    permission_id: Mapped[UUID] = mapped_column(
        ForeignKey("permissions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    granted: Mapped[bool] = mapped_column(
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<UserPermission(user_id={self.user_id}, granted={self.granted})>"


class UserRole(Base, TimestampMixin):
    """Junction table linking users to roles.

    A user can hold many roles; each (user, role) pair appears at most once.
    """

    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role_id", name="uq_user_role"),)

    user_id: Mapped[str] = mapped_column(
        String(MAX_USER_ID_LENGTH),
        primary_key=True,
        index=True,
    )
    role_id: Mapped[UUID] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<UserRole(user_id={self.user_id}, role_id={self.role_id})>"
