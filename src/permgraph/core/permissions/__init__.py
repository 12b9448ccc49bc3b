"""Permission system for role-based access control (RBAC)."""

from permgraph.core.permissions.checker import PermissionChecker
from permgraph.core.permissions.graph import RoleGraph
from permgraph.core.permissions.manager import PermissionManager
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
from permgraph.core.permissions.wildcard import (
    WildcardMatcher,
    ancestor_patterns,
    detect_separator,
    matches,
    validate_key,
)


__all__ = [
    "GrantRecord",
    "InheritanceRecord",
    "PermissionChecker",
    "PermissionManager",
    "PermissionRecord",
    "PermissionUpdate",
    "RoleGraph",
    "RolePermissionGroup",
    "RoleRecord",
    "RoleRef",
    "RoleTarget",
    "RoleUpdate",
    "Target",
    "UserPermissionSummary",
    "UserTarget",
    "WildcardMatcher",
    "ancestor_patterns",
    "detect_separator",
    "matches",
    "validate_key",
]
