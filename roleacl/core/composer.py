from __future__ import annotations

from typing import Iterable

from ..buckets import META_ROLES, BucketNames, allows_bucket
from ..domain.ports.backend import Backend
from .hierarchy import HierarchyWalk, RoleHierarchyResolver

WILDCARD = "*"


class PermissionComposer:
    """Composes direct and inherited permissions for a resource.

    Inherited permissions are never stored; every call walks the hierarchy
    again, one level per round trip.
    """

    def __init__(
        self,
        backend: Backend,
        buckets: BucketNames,
        resolver: RoleHierarchyResolver,
    ) -> None:
        self.backend = backend
        self.buckets = buckets
        self.resolver = resolver

    async def direct_permissions(self, roles: Iterable[str], resource: str) -> set[str]:
        return await self.backend.union(allows_bucket(resource), list(roles))

    async def resource_permissions(self, roles: Iterable[str], resource: str) -> set[str]:
        """Union of the permissions ``roles`` and their ancestors hold on ``resource``."""
        level = set(roles)
        if not level:
            return set()

        permissions: set[str] = set()
        walk = HierarchyWalk(level)
        while level:
            permissions |= await self.direct_permissions(level, resource)
            level = await self.resolver.parents_of(level)
            walk.step(level)
        return permissions

    async def check_permissions(
        self,
        roles: Iterable[str],
        resource: str,
        permissions: Iterable[str],
    ) -> bool:
        """Return True if ``roles`` cover every one of ``permissions`` on ``resource``.

        Roles missing from the known-roles set (never granted, or disabled)
        contribute nothing and are not followed to their parents. The walk
        stops as soon as a wildcard or full coverage is found.
        """
        level = set(roles)
        remaining = set(permissions)
        walk = HierarchyWalk(level)
        while True:
            known = await self.backend.get(self.buckets.meta, META_ROLES)
            active = [role for role in level if role in known]

            granted = await self.direct_permissions(active, resource)
            if WILDCARD in granted:
                return True

            remaining -= granted
            if not remaining:
                return True

            level = await self.resolver.parents_of(active)
            walk.step(level)
            if not level:
                return False
