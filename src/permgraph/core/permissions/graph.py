"""Role inheritance graph traversal.

All walks are iterative with a visited set keyed on role id. Inheritance is a
DAG when written through the manager, but data seeded some other way may
contain cycles; those are cut off at the first revisit instead of looping.
"""

from collections import deque
from collections.abc import Iterable
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from structlog.typing import FilteringBoundLogger

from permgraph.core.permissions.schemas import RoleRecord


if TYPE_CHECKING:
    from permgraph.core.directory.base import Directory


class RoleGraph:
    """Resolves role closures and inheritance chains from a directory."""

    def __init__(
        self,
        directory: "Directory",
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        self.directory = directory
        self.logger = logger or structlog.get_logger()

    async def expand_role_closure(self, role_ids: Iterable[UUID]) -> list[RoleRecord]:
        """Expand roles to themselves plus every role they inherit from.

        Args:
            role_ids: Directly assigned role ids

        Returns:
            Deduplicated roles, highest priority first. Roles with equal
            priority come back in no guaranteed order.
        """
        visited: set[UUID] = set()
        closure: list[RoleRecord] = []
        stack = list(role_ids)

        while stack:
            role_id = stack.pop()
            if role_id in visited:
                continue
            visited.add(role_id)

            role = await self.directory.get_role(role_id)
            if role is None:
                continue
            closure.append(role)

            for edge in await self.directory.get_inheritance_edges(role_id):
                if edge.inherits_from_id not in visited:
                    stack.append(edge.inherits_from_id)

        closure.sort(key=lambda r: r.priority, reverse=True)
        return closure

    async def expand_inheritance_chain(self, role_id: UUID) -> list[RoleRecord]:
        """List the ancestors of one role, nearest first.

        Parents come before grandparents; siblings at the same distance keep
        the directory's edge order (highest edge priority first). The role
        itself is not included.

        Args:
            role_id: Role whose ancestors to list

        Returns:
            Ancestor roles in check order
        """
        visited: set[UUID] = {role_id}
        chain: list[RoleRecord] = []
        queue: deque[UUID] = deque([role_id])

        while queue:
            current = queue.popleft()
            for edge in await self.directory.get_inheritance_edges(current):
                parent_id = edge.inherits_from_id
                if parent_id in visited:
                    continue
                visited.add(parent_id)

                parent = await self.directory.get_role(parent_id)
                if parent is None:
                    continue
                chain.append(parent)
                queue.append(parent_id)

        return chain

    async def would_create_cycle(self, role_id: UUID, inherits_from_id: UUID) -> bool:
        """Check whether adding ``role_id -> inherits_from_id`` would close a cycle.

        Walks outward from ``inherits_from_id``; if ``role_id`` is reachable
        the new edge would make the graph cyclic.
        """
        if role_id == inherits_from_id:
            return True

        visited: set[UUID] = set()
        stack = [inherits_from_id]

        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)

            for edge in await self.directory.get_inheritance_edges(current):
                if edge.inherits_from_id == role_id:
                    self.logger.debug(
                        "inheritance_cycle_detected",
                        role_id=str(role_id),
                        inherits_from_id=str(inherits_from_id),
                        via=str(current),
                    )
                    return True
                stack.append(edge.inherits_from_id)

        return False

    async def dependent_roles(self, role_id: UUID) -> set[UUID]:
        """Collect a role and every role that inherits from it, at any depth."""
        visited: set[UUID] = set()
        stack = [role_id]

        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            stack.extend(await self.directory.get_inheriting_roles(current))

        return visited
