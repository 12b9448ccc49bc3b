"""Targets of permission assignments and checks.

A target is either a role or a user, chosen by the caller's type rather than
by a string flag. Roles are referenced by ``RoleRef``: a ``UUID`` is a role id
and a ``str`` is a role name.
"""

from dataclasses import dataclass
from typing import TypeAlias
from uuid import UUID


RoleRef: TypeAlias = UUID | str


@dataclass(frozen=True)
class RoleTarget:
    """A role, by id or by name."""

    role: RoleRef


@dataclass(frozen=True)
class UserTarget:
    """A user, by external identifier."""

    user_id: str


Target: TypeAlias = RoleTarget | UserTarget
