"""Pydantic schemas for permission system records.

These are the persistence-agnostic shapes every Directory returns. ORM rows
convert directly through ``model_validate`` thanks to ``from_attributes``.
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from permgraph.core.constants import MAX_DESCRIPTION_LENGTH, MAX_ROLE_NAME_LENGTH
from permgraph.core.permissions.wildcard import is_wildcard


# ============================================================
# Permission Schemas
# ============================================================


class PermissionRecord(BaseModel):
    """A defined permission key."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    key: str
    description: str | None = None
    category: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_wildcard(self) -> bool:
        """Whether this key is a wildcard pattern."""
        return is_wildcard(self.key)


class PermissionUpdate(BaseModel):
    """Mutable permission fields. The key itself never changes."""

    description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    category: str | None = None


class GrantRecord(BaseModel):
    """A stored grant or ban of one permission key on one subject."""

    model_config = ConfigDict(frozen=True)

    permission_key: str
    granted: bool


# ============================================================
# Role Schemas
# ============================================================


class RoleRecord(BaseModel):
    """A role as stored by the directory."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    name: str
    description: str | None = None
    priority: int = 0
    is_default: bool = False


class RoleUpdate(BaseModel):
    """Schema for updating a role. Unset fields are left untouched."""

    name: str | None = Field(default=None, min_length=1, max_length=MAX_ROLE_NAME_LENGTH)
    description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    priority: int | None = None
    is_default: bool | None = None


class InheritanceRecord(BaseModel):
    """Directed edge: ``role_id`` inherits the grants of ``inherits_from_id``."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    role_id: UUID
    inherits_from_id: UUID
    priority: int = 0


# ============================================================
# Query Results
# ============================================================


class RolePermissionGroup(BaseModel):
    """Grants held by one of a user's directly assigned roles."""

    role_id: UUID
    role_name: str
    permissions: list[GrantRecord]


class UserPermissionSummary(BaseModel):
    """A user's direct grants plus the grants of each directly held role."""

    user_id: str
    direct: list[GrantRecord]
    from_roles: list[RolePermissionGroup]
