"""Tests for the permission checker."""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from permgraph.core.cache import MemoryCacheStore, PermissionCache
from permgraph.core.directory import InMemoryDirectory
from permgraph.core.permissions import (
    PermissionChecker,
    PermissionManager,
    RoleTarget,
    UserTarget,
)


pytestmark = pytest.mark.unit


class TestDefaultDeny:
    """Unknown principals and unknown keys are denied."""

    async def test_unknown_user(self, checker: PermissionChecker) -> None:
        assert await checker.check_user_permission("nobody", "posts.publish") is False

    async def test_unknown_role(self, checker: PermissionChecker) -> None:
        assert await checker.check_role_permission(uuid4(), "posts.publish") is False

    async def test_role_without_matching_grant(
        self, manager: PermissionManager, checker: PermissionChecker
    ) -> None:
        role = await manager.create_role("viewer")
        await manager.assign_permission("posts.read", RoleTarget(role.id))
        await manager.assign_role(role.id, "user-1")

        assert await checker.check_user_permission("user-1", "posts.publish") is False


class TestUserGrants:
    """User-specific grants outrank every role."""

    async def test_direct_grant(
        self, manager: PermissionManager, checker: PermissionChecker
    ) -> None:
        await manager.assign_permission("posts.publish", UserTarget("user-1"))

        assert await checker.check_user_permission("user-1", "posts.publish") is True

    async def test_user_ban_overrides_role_grant(
        self, manager: PermissionManager, checker: PermissionChecker
    ) -> None:
        role = await manager.create_role("editor", priority=100)
        await manager.assign_permission("posts.publish", RoleTarget(role.id))
        await manager.assign_role(role.id, "user-1")
        await manager.ban_permission("posts.publish", UserTarget("user-1"))

        assert await checker.check_user_permission("user-1", "posts.publish") is False

    async def test_user_wildcard(
        self, manager: PermissionManager, checker: PermissionChecker
    ) -> None:
        await manager.assign_permission("posts.*", UserTarget("user-1"))

        assert await checker.check_user_permission("user-1", "posts.publish") is True
        assert await checker.check_user_permission("user-1", "comments.delete") is False

    async def test_most_specific_user_pattern_wins(
        self, manager: PermissionManager, checker: PermissionChecker
    ) -> None:
        await manager.assign_permission("a.*", UserTarget("user-1"))
        await manager.ban_permission("a.b.*", UserTarget("user-1"))

        assert await checker.check_user_permission("user-1", "a.b.c") is False
        assert await checker.check_user_permission("user-1", "a.c") is True

    async def test_universal_grant(
        self, manager: PermissionManager, checker: PermissionChecker
    ) -> None:
        await manager.assign_permission("*", UserTarget("root"))

        assert await checker.check_user_permission("root", "anything.at.all") is True


class TestRolePriority:
    """Roles are consulted highest priority first."""

    async def test_high_priority_ban_wins(
        self, manager: PermissionManager, checker: PermissionChecker
    ) -> None:
        restricted = await manager.create_role("restricted", priority=50)
        staff = await manager.create_role("staff", priority=10)
        await manager.ban_permission("reports.export", RoleTarget(restricted.id))
        await manager.assign_permission("reports.export", RoleTarget(staff.id))
        await manager.assign_role(restricted.id, "user-1")
        await manager.assign_role(staff.id, "user-1")

        assert await checker.check_user_permission("user-1", "reports.export") is False

    async def test_high_priority_grant_wins(
        self, manager: PermissionManager, checker: PermissionChecker
    ) -> None:
        restricted = await manager.create_role("restricted", priority=10)
        staff = await manager.create_role("staff", priority=50)
        await manager.ban_permission("reports.export", RoleTarget(restricted.id))
        await manager.assign_permission("reports.export", RoleTarget(staff.id))
        await manager.assign_role(restricted.id, "user-1")
        await manager.assign_role(staff.id, "user-1")

        assert await checker.check_user_permission("user-1", "reports.export") is True

    async def test_exact_ban_beats_wildcard_grant_on_same_role(
        self, manager: PermissionManager, checker: PermissionChecker
    ) -> None:
        role = await manager.create_role("operator")
        await manager.assign_permission("endpoint.*", RoleTarget(role.id))
        await manager.ban_permission("endpoint.users.delete", RoleTarget(role.id))
        await manager.assign_role(role.id, "user-1")

        assert await checker.check_user_permission("user-1", "endpoint.users.delete") is False
        assert await checker.check_user_permission("user-1", "endpoint.users.list") is True


class TestInheritance:
    """Inherited grants flow to users and roles."""

    async def test_user_inherits_through_role(
        self, manager: PermissionManager, checker: PermissionChecker
    ) -> None:
        admin = await manager.create_role("admin", priority=100)
        member = await manager.create_role("member", priority=10)
        await manager.assign_permission("profile.edit", RoleTarget(member.id))
        await manager.set_role_inheritance(admin.id, member.id)
        await manager.assign_role(admin.id, "user-1")

        assert await checker.check_user_permission("user-1", "profile.edit") is True

    async def test_role_check_walks_ancestors(
        self, manager: PermissionManager, checker: PermissionChecker
    ) -> None:
        child = await manager.create_role("child")
        parent = await manager.create_role("parent")
        await manager.assign_permission("docs.read", RoleTarget(parent.id))
        await manager.set_role_inheritance(child.id, parent.id)

        assert await checker.check_role_permission(child.id, "docs.read") is True
        assert await checker.check_role_permission(parent.id, "docs.write") is False

    async def test_nearest_ancestor_decides_role_check(
        self, manager: PermissionManager, checker: PermissionChecker
    ) -> None:
        child = await manager.create_role("child")
        parent = await manager.create_role("parent")
        grandparent = await manager.create_role("grandparent")
        await manager.ban_permission("docs.read", RoleTarget(parent.id))
        await manager.assign_permission("docs.read", RoleTarget(grandparent.id))
        await manager.set_role_inheritance(child.id, parent.id)
        await manager.set_role_inheritance(parent.id, grandparent.id)

        assert await checker.check_role_permission(child.id, "docs.read") is False

    async def test_own_grant_beats_inherited_ban(
        self, manager: PermissionManager, checker: PermissionChecker
    ) -> None:
        child = await manager.create_role("child")
        parent = await manager.create_role("parent")
        await manager.assign_permission("docs.read", RoleTarget(child.id))
        await manager.ban_permission("docs.*", RoleTarget(parent.id))
        await manager.set_role_inheritance(child.id, parent.id)

        assert await checker.check_role_permission(child.id, "docs.read") is True


class TestCaching:
    """Decisions are memoized until invalidated."""

    async def test_decision_is_cached(
        self,
        manager: PermissionManager,
        checker: PermissionChecker,
        store: MemoryCacheStore,
    ) -> None:
        await manager.assign_permission("posts.publish", UserTarget("user-1"))

        await checker.check_user_permission("user-1", "posts.publish")

        assert await store.get("permgraph:user:user-1:posts.publish") == "true"

    async def test_stale_until_invalidated(
        self,
        directory: InMemoryDirectory,
        manager: PermissionManager,
        checker: PermissionChecker,
    ) -> None:
        """Writes that bypass the manager are invisible until invalidation."""
        assert await checker.check_user_permission("user-1", "posts.publish") is False

        await directory.upsert_user_grant("user-1", "posts.publish", True)
        assert await checker.check_user_permission("user-1", "posts.publish") is False

        await manager.invalidate_user_cache("user-1")
        assert await checker.check_user_permission("user-1", "posts.publish") is True

    async def test_role_decision_is_cached(
        self,
        manager: PermissionManager,
        checker: PermissionChecker,
        store: MemoryCacheStore,
    ) -> None:
        role = await manager.create_role("editor")

        await checker.check_role_permission(role.id, "posts.publish")

        assert await store.get(f"permgraph:role:{role.id}:posts.publish") == "false"

    async def test_colon_user_ids_get_their_own_decisions(
        self, manager: PermissionManager, checker: PermissionChecker
    ) -> None:
        await manager.assign_permission("b:c", UserTarget("a"))

        assert await checker.check_user_permission("a", "b:c") is True
        assert await checker.check_user_permission("a:b", "c") is False

    async def test_failing_store_does_not_break_checks(self, directory: InMemoryDirectory) -> None:
        store = AsyncMock()
        store.get.side_effect = ConnectionError("down")
        store.set.side_effect = ConnectionError("down")
        checker = PermissionChecker(directory, PermissionCache(store))
        await directory.upsert_user_grant("user-1", "posts.publish", True)

        assert await checker.check_user_permission("user-1", "posts.publish") is True


class TestBulkChecks:
    """Tests for has_any_permission, has_all_permissions and check_permissions."""

    @pytest.fixture
    async def granted_user(self, manager: PermissionManager) -> str:
        """Create a user holding posts.read and posts.publish."""
        await manager.assign_permission("posts.read", UserTarget("user-1"))
        await manager.assign_permission("posts.publish", UserTarget("user-1"))
        return "user-1"

    async def test_has_any_permission(
        self, checker: PermissionChecker, granted_user: str
    ) -> None:
        assert await checker.has_any_permission(granted_user, ["posts.delete", "posts.read"])
        assert not await checker.has_any_permission(granted_user, ["posts.delete"])
        assert not await checker.has_any_permission(granted_user, [])

    async def test_has_all_permissions(
        self, checker: PermissionChecker, granted_user: str
    ) -> None:
        assert await checker.has_all_permissions(granted_user, ["posts.read", "posts.publish"])
        assert not await checker.has_all_permissions(granted_user, ["posts.read", "posts.delete"])
        assert await checker.has_all_permissions(granted_user, [])

    async def test_check_permissions(
        self, checker: PermissionChecker, granted_user: str
    ) -> None:
        result = await checker.check_permissions(granted_user, ["posts.read", "posts.delete"])

        assert result == {"posts.read": True, "posts.delete": False}
