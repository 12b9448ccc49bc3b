"""Tests for role graph traversal."""

from uuid import uuid4

import pytest

from permgraph.core.directory import InMemoryDirectory
from permgraph.core.permissions.graph import RoleGraph
from permgraph.core.permissions.schemas import RoleRecord


pytestmark = pytest.mark.unit


@pytest.fixture
def graph(directory: InMemoryDirectory) -> RoleGraph:
    """Create a graph over the shared in-memory directory."""
    return RoleGraph(directory)


async def make_role(directory: InMemoryDirectory, name: str, priority: int = 0) -> RoleRecord:
    return await directory.create_role(name, None, priority, False)


class TestExpandRoleClosure:
    """Tests for RoleGraph.expand_role_closure."""

    async def test_includes_roles_and_ancestors(
        self, directory: InMemoryDirectory, graph: RoleGraph
    ) -> None:
        admin = await make_role(directory, "admin", priority=10)
        member = await make_role(directory, "member", priority=1)
        guest = await make_role(directory, "guest", priority=0)
        await directory.upsert_inheritance_edge(admin.id, member.id, 0)
        await directory.upsert_inheritance_edge(member.id, guest.id, 0)

        closure = await graph.expand_role_closure([admin.id])

        assert [role.name for role in closure] == ["admin", "member", "guest"]

    async def test_sorted_by_priority_descending(
        self, directory: InMemoryDirectory, graph: RoleGraph
    ) -> None:
        low = await make_role(directory, "low", priority=1)
        high = await make_role(directory, "high", priority=50)
        mid = await make_role(directory, "mid", priority=20)
        await directory.upsert_inheritance_edge(low.id, high.id, 0)

        closure = await graph.expand_role_closure([low.id, mid.id])

        assert [role.priority for role in closure] == [50, 20, 1]

    async def test_diamond_is_deduplicated(
        self, directory: InMemoryDirectory, graph: RoleGraph
    ) -> None:
        top = await make_role(directory, "top", priority=4)
        left = await make_role(directory, "left", priority=3)
        right = await make_role(directory, "right", priority=2)
        base = await make_role(directory, "base", priority=1)
        await directory.upsert_inheritance_edge(top.id, left.id, 0)
        await directory.upsert_inheritance_edge(top.id, right.id, 0)
        await directory.upsert_inheritance_edge(left.id, base.id, 0)
        await directory.upsert_inheritance_edge(right.id, base.id, 0)

        closure = await graph.expand_role_closure([top.id, left.id])

        assert sorted(role.name for role in closure) == ["base", "left", "right", "top"]

    async def test_missing_roles_are_skipped(
        self, directory: InMemoryDirectory, graph: RoleGraph
    ) -> None:
        role = await make_role(directory, "only")

        closure = await graph.expand_role_closure([uuid4(), role.id])

        assert [r.id for r in closure] == [role.id]

    async def test_cyclic_data_terminates(
        self, directory: InMemoryDirectory, graph: RoleGraph
    ) -> None:
        """Cycles written around the manager must not hang the walk."""
        a = await make_role(directory, "a")
        b = await make_role(directory, "b")
        await directory.upsert_inheritance_edge(a.id, b.id, 0)
        await directory.upsert_inheritance_edge(b.id, a.id, 0)

        closure = await graph.expand_role_closure([a.id])

        assert {role.id for role in closure} == {a.id, b.id}

    async def test_empty_input(self, graph: RoleGraph) -> None:
        assert await graph.expand_role_closure([]) == []


class TestExpandInheritanceChain:
    """Tests for RoleGraph.expand_inheritance_chain."""

    async def test_nearest_ancestors_first(
        self, directory: InMemoryDirectory, graph: RoleGraph
    ) -> None:
        child = await make_role(directory, "child")
        parent = await make_role(directory, "parent")
        grandparent = await make_role(directory, "grandparent")
        await directory.upsert_inheritance_edge(child.id, parent.id, 0)
        await directory.upsert_inheritance_edge(parent.id, grandparent.id, 0)

        chain = await graph.expand_inheritance_chain(child.id)

        assert [role.name for role in chain] == ["parent", "grandparent"]

    async def test_siblings_follow_edge_priority(
        self, directory: InMemoryDirectory, graph: RoleGraph
    ) -> None:
        child = await make_role(directory, "child")
        first = await make_role(directory, "first")
        second = await make_role(directory, "second")
        await directory.upsert_inheritance_edge(child.id, second.id, 1)
        await directory.upsert_inheritance_edge(child.id, first.id, 9)

        chain = await graph.expand_inheritance_chain(child.id)

        assert [role.name for role in chain] == ["first", "second"]

    async def test_role_itself_is_excluded(
        self, directory: InMemoryDirectory, graph: RoleGraph
    ) -> None:
        role = await make_role(directory, "lonely")

        assert await graph.expand_inheritance_chain(role.id) == []


class TestWouldCreateCycle:
    """Tests for RoleGraph.would_create_cycle."""

    async def test_self_edge(self, graph: RoleGraph) -> None:
        role_id = uuid4()

        assert await graph.would_create_cycle(role_id, role_id) is True

    async def test_back_edge(self, directory: InMemoryDirectory, graph: RoleGraph) -> None:
        a = await make_role(directory, "a")
        b = await make_role(directory, "b")
        await directory.upsert_inheritance_edge(a.id, b.id, 0)

        assert await graph.would_create_cycle(b.id, a.id) is True

    async def test_transitive_back_edge(
        self, directory: InMemoryDirectory, graph: RoleGraph
    ) -> None:
        a = await make_role(directory, "a")
        b = await make_role(directory, "b")
        c = await make_role(directory, "c")
        await directory.upsert_inheritance_edge(a.id, b.id, 0)
        await directory.upsert_inheritance_edge(b.id, c.id, 0)

        assert await graph.would_create_cycle(c.id, a.id) is True

    async def test_unrelated_edge(self, directory: InMemoryDirectory, graph: RoleGraph) -> None:
        a = await make_role(directory, "a")
        b = await make_role(directory, "b")
        c = await make_role(directory, "c")
        await directory.upsert_inheritance_edge(a.id, b.id, 0)

        assert await graph.would_create_cycle(c.id, a.id) is False
        assert await graph.would_create_cycle(a.id, c.id) is False


class TestDependentRoles:
    """Tests for RoleGraph.dependent_roles."""

    async def test_collects_all_descendants(
        self, directory: InMemoryDirectory, graph: RoleGraph
    ) -> None:
        base = await make_role(directory, "base")
        mid = await make_role(directory, "mid")
        top = await make_role(directory, "top")
        other = await make_role(directory, "other")
        await directory.upsert_inheritance_edge(mid.id, base.id, 0)
        await directory.upsert_inheritance_edge(top.id, mid.id, 0)

        dependents = await graph.dependent_roles(base.id)

        assert dependents == {base.id, mid.id, top.id}
        assert other.id not in dependents
