"""Error taxonomy for the permission system."""

from permgraph.core.errors.exceptions import (
    AlreadyExistsError,
    CircularInheritanceError,
    InvalidArgumentError,
    NotFoundError,
    PermissionAlreadyExistsError,
    PermissionNotFoundError,
    PermissionSystemError,
    RoleAlreadyAssignedError,
    RoleAlreadyExistsError,
    RoleNotFoundError,
)


__all__ = [
    "AlreadyExistsError",
    "CircularInheritanceError",
    "InvalidArgumentError",
    "NotFoundError",
    "PermissionAlreadyExistsError",
    "PermissionNotFoundError",
    "PermissionSystemError",
    "RoleAlreadyAssignedError",
    "RoleAlreadyExistsError",
    "RoleNotFoundError",
]
