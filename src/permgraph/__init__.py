"""permgraph - role-based permission resolution with inheritance, wildcards and bans."""

from permgraph.config import Settings, get_settings
from permgraph.core.cache import MemoryCacheStore, PermissionCache, RedisCacheStore
from permgraph.core.directory import Directory, InMemoryDirectory, SqlAlchemyDirectory
from permgraph.core.errors import (
    CircularInheritanceError,
    InvalidArgumentError,
    PermissionAlreadyExistsError,
    PermissionNotFoundError,
    PermissionSystemError,
    RoleAlreadyAssignedError,
    RoleAlreadyExistsError,
    RoleNotFoundError,
)
from permgraph.core.permissions import (
    PermissionChecker,
    PermissionManager,
    RoleGraph,
    RoleTarget,
    UserTarget,
    ancestor_patterns,
    matches,
)
from permgraph.system import PermissionSystem, create_permission_system


__version__ = "0.1.0"

__all__ = [
    "CircularInheritanceError",
    "Directory",
    "InMemoryDirectory",
    "InvalidArgumentError",
    "MemoryCacheStore",
    "PermissionAlreadyExistsError",
    "PermissionCache",
    "PermissionChecker",
    "PermissionManager",
    "PermissionNotFoundError",
    "PermissionSystem",
    "PermissionSystemError",
    "RedisCacheStore",
    "RoleAlreadyAssignedError",
    "RoleAlreadyExistsError",
    "RoleGraph",
    "RoleNotFoundError",
    "RoleTarget",
    "Settings",
    "SqlAlchemyDirectory",
    "UserTarget",
    "__version__",
    "ancestor_patterns",
    "create_permission_system",
    "get_settings",
    "matches",
]
