"""Role hierarchy resolution.

The parent relation is walked one level per backend round trip. Callers are
expected to supply an acyclic graph; a walk that can only be explained by a
cycle raises RoleCycleError instead of looping forever.
"""
from __future__ import annotations

from typing import Iterable

from ..buckets import BucketNames
from ..contract import UserId
from ..domain.ports.backend import Backend
from ..errors import RoleCycleError


class HierarchyWalk:
    """Tracks a level-by-level walk up the parent graph.

    In an acyclic graph a non-empty level ``depth`` implies a chain of
    ``depth + 1`` distinct roles, all of them already seen. Reaching a level
    whose depth is at least the number of distinct roles seen is therefore
    only possible through a cycle.
    """

    def __init__(self, roles: Iterable[str]) -> None:
        self.depth = 0
        self.seen: set[str] = set(roles)

    def step(self, parents: set[str]) -> None:
        self.depth += 1
        self.seen |= parents
        if parents and self.depth >= len(self.seen):
            raise RoleCycleError(self.seen)


class RoleHierarchyResolver:
    def __init__(self, backend: Backend, buckets: BucketNames) -> None:
        self.backend = backend
        self.buckets = buckets

    async def parents_of(self, roles: Iterable[str]) -> set[str]:
        return await self.backend.union(self.buckets.parents, list(roles))

    async def closure(self, role_names: Iterable[str]) -> set[str]:
        """Return ``role_names`` plus every role reachable through parent edges."""
        level = set(role_names)
        result = set(level)
        walk = HierarchyWalk(level)
        while level:
            level = await self.parents_of(level)
            walk.step(level)
            result |= level
        return result

    async def direct_roles(self, user_id: UserId) -> set[str]:
        return await self.backend.get(self.buckets.users, user_id)

    async def user_closure(self, user_id: UserId) -> set[str]:
        roles = await self.direct_roles(user_id)
        if not roles:
            return set()
        return await self.closure(roles)
