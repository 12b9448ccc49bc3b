"""Domain exceptions for the permission system.

Every mutation-path failure is raised as one of these classified errors.
Callers can branch on the class or on ``error_code`` and read the offending
identifiers from ``details``.
"""

from typing import Any


class PermissionSystemError(Exception):
    """Base exception for all permission system errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for callers
        details: Offending identifiers and other context
    """

    message: str = "An unexpected permission system error occurred"
    error_code: str = "permission_system_error"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(PermissionSystemError):
    """Raised when a referenced role or permission does not exist."""

    message = "Resource not found"
    error_code = "not_found"


class RoleNotFoundError(NotFoundError):
    """Raised when a role reference does not resolve.

    Example:
        raise RoleNotFoundError("editor")
    """

    error_code = "role_not_found"

    def __init__(self, role: Any, **kwargs: Any) -> None:
        super().__init__(
            message=f"Role not found: {role}",
            details={"role": str(role)},
            **kwargs,
        )


class PermissionNotFoundError(NotFoundError):
    """Raised when a permission key does not exist."""

    error_code = "permission_not_found"

    def __init__(self, permission_key: str, **kwargs: Any) -> None:
        super().__init__(
            message=f"Permission not found: {permission_key}",
            details={"permission_key": permission_key},
            **kwargs,
        )


class AlreadyExistsError(PermissionSystemError):
    """Raised when creating an entity whose unique key is taken."""

    message = "Resource already exists"
    error_code = "already_exists"


class RoleAlreadyExistsError(AlreadyExistsError):
    """Raised when a role name is already in use."""

    error_code = "role_exists"

    def __init__(self, role_name: str, **kwargs: Any) -> None:
        super().__init__(
            message=f"Role already exists: {role_name}",
            details={"role_name": role_name},
            **kwargs,
        )


class PermissionAlreadyExistsError(AlreadyExistsError):
    """Raised when a permission key is already defined."""

    error_code = "permission_exists"

    def __init__(self, permission_key: str, **kwargs: Any) -> None:
        super().__init__(
            message=f"Permission already exists: {permission_key}",
            details={"permission_key": permission_key},
            **kwargs,
        )


class RoleAlreadyAssignedError(PermissionSystemError):
    """Raised when a user already holds the role being assigned.

    Example:
        raise RoleAlreadyAssignedError(user_id, role.id)
    """

    message = "Role already assigned to user"
    error_code = "role_already_assigned"

    def __init__(self, user_id: str, role_id: Any, **kwargs: Any) -> None:
        super().__init__(
            details={"user_id": user_id, "role_id": str(role_id)},
            **kwargs,
        )


class CircularInheritanceError(PermissionSystemError):
    """Raised when an inheritance edge would reference itself or close a cycle."""

    message = "Circular inheritance detected"
    error_code = "circular_inheritance"

    def __init__(self, role_id: Any, inherits_from_id: Any, **kwargs: Any) -> None:
        super().__init__(
            details={
                "role_id": str(role_id),
                "inherits_from_id": str(inherits_from_id),
            },
            **kwargs,
        )


class InvalidArgumentError(PermissionSystemError):
    """Raised for malformed input such as a bad permission key or target.

    Example:
        raise InvalidArgumentError(
            "Permission key has an empty segment",
            details={"permission_key": "a..b"},
        )
    """

    message = "Invalid argument"
    error_code = "invalid_argument"
