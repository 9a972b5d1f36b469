"""
Graph mutations.

Every write to the ACL graph goes through this module so that paired buckets
stay in step:

- ``users[user]`` and ``roles[role]`` are reverse indices of each other and
  always change in the same transaction.
- ``meta.roles`` and ``meta.users`` register entities on first use.
- ``resources[role]`` follows the per-resource ``allows_*`` buckets.

Each operation commits one transaction. ``remove_permissions``,
``remove_role`` and ``remove_resource`` need a read before (or after) the
write and are therefore not atomic as a whole; concurrent writers can leave
``resources[role]`` briefly out of date until the next removal cleans it up.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..buckets import META_ROLES, META_USERS, BucketNames, allows_bucket
from ..contract import UserId
from ..domain.ports.backend import Backend


class GraphMutations:
    def __init__(self, backend: Backend, buckets: BucketNames, logger: logging.Logger) -> None:
        self.backend = backend
        self.buckets = buckets
        self.logger = logger

    # -- staging helpers -------------------------------------------------

    def _link_user_roles(self, tx: Any, user_id: UserId, roles: list[str]) -> None:
        self.backend.add(tx, self.buckets.meta, META_USERS, user_id)
        self.backend.add(tx, self.buckets.users, user_id, roles)
        for role in roles:
            self.backend.add(tx, self.buckets.roles, role, user_id)

    def _unlink_user_roles(self, tx: Any, user_id: UserId, roles: list[str]) -> None:
        self.backend.remove(tx, self.buckets.users, user_id, roles)
        for role in roles:
            self.backend.remove(tx, self.buckets.roles, role, user_id)

    def _register_roles(self, tx: Any, roles: list[str]) -> None:
        self.backend.add(tx, self.buckets.meta, META_ROLES, roles)

    def _unregister_roles(self, tx: Any, roles: list[str]) -> None:
        self.backend.remove(tx, self.buckets.meta, META_ROLES, roles)

    # -- operations ------------------------------------------------------

    async def add_user_roles(self, user_id: UserId, roles: list[str]) -> None:
        tx = self.backend.begin()
        self._link_user_roles(tx, user_id, roles)
        await self.backend.end(tx)
        self.logger.debug("add_user_roles user_id=%s roles=%s", user_id, roles)

    async def remove_user_roles(self, user_id: UserId, roles: list[str]) -> None:
        tx = self.backend.begin()
        self._unlink_user_roles(tx, user_id, roles)
        await self.backend.end(tx)
        self.logger.debug("remove_user_roles user_id=%s roles=%s", user_id, roles)

    async def add_role_parents(self, role: str, parents: list[str]) -> None:
        tx = self.backend.begin()
        self._register_roles(tx, [role])
        self.backend.add(tx, self.buckets.parents, role, parents)
        await self.backend.end(tx)
        self.logger.debug("add_role_parents role=%s parents=%s", role, parents)

    async def remove_role_parents(self, role: str, parents: list[str] | None) -> None:
        tx = self.backend.begin()
        if parents is not None:
            self.backend.remove(tx, self.buckets.parents, role, parents)
        else:
            self.backend.delete(tx, self.buckets.parents, role)
        await self.backend.end(tx)
        self.logger.debug(
            "remove_role_parents role=%s parents=%s",
            role,
            "*" if parents is None else parents,
        )

    async def allow(self, roles: list[str], resources: list[str], permissions: list[str]) -> None:
        tx = self.backend.begin()
        self._register_roles(tx, roles)
        for resource in resources:
            bucket = allows_bucket(resource)
            for role in roles:
                self.backend.add(tx, bucket, role, permissions)
        for role in roles:
            self.backend.add(tx, self.buckets.resources, role, resources)
        await self.backend.end(tx)
        self.logger.debug(
            "allow roles=%s resources=%s permissions=%s", roles, resources, permissions
        )

    async def remove_permissions(
        self,
        roles: list[str],
        resources: list[str],
        permissions: list[str] | None,
    ) -> None:
        """Remove ``permissions`` (or every permission) of ``roles`` on ``resources``.

        A second transaction then drops ``resources[role]`` entries whose
        permission set became empty. The two commits are not atomic.
        """
        tx = self.backend.begin()
        for role in roles:
            for resource in resources:
                bucket = allows_bucket(resource)
                if permissions is not None:
                    self.backend.remove(tx, bucket, role, permissions)
                else:
                    self.backend.delete(tx, bucket, role)
                    self.backend.remove(tx, self.buckets.resources, role, resource)
        await self.backend.end(tx)

        pairs = [(role, resource) for role in roles for resource in resources]
        remaining = await asyncio.gather(
            *(self.backend.get(allows_bucket(resource), role) for role, resource in pairs)
        )
        tx = self.backend.begin()
        for (role, resource), left in zip(pairs, remaining):
            if not left:
                self.backend.remove(tx, self.buckets.resources, role, resource)
        await self.backend.end(tx)
        self.logger.debug(
            "remove_permissions roles=%s resources=%s permissions=%s",
            roles,
            resources,
            "*" if permissions is None else permissions,
        )

    async def remove_role(self, role: str) -> None:
        # users[*] keeps the role: there is no index of which users reference it
        # besides roles[role], which is dropped here as well.
        resources = await self.backend.get(self.buckets.resources, role)
        tx = self.backend.begin()
        for resource in resources:
            self.backend.delete(tx, allows_bucket(resource), role)
        self.backend.delete(tx, self.buckets.resources, role)
        self.backend.delete(tx, self.buckets.parents, role)
        self.backend.delete(tx, self.buckets.roles, role)
        self._unregister_roles(tx, [role])
        await self.backend.end(tx)
        self.logger.debug("remove_role role=%s resources=%s", role, sorted(resources))

    async def remove_resource(self, resource: str) -> None:
        roles = await self.backend.get(self.buckets.meta, META_ROLES)
        tx = self.backend.begin()
        self.backend.delete(tx, allows_bucket(resource), list(roles))
        for role in roles:
            self.backend.remove(tx, self.buckets.resources, role, resource)
        await self.backend.end(tx)
        self.logger.debug("remove_resource resource=%s roles=%s", resource, sorted(roles))

    async def enable_role(self, roles: list[str], status: bool) -> None:
        tx = self.backend.begin()
        if status:
            self._register_roles(tx, roles)
        else:
            self._unregister_roles(tx, roles)
        await self.backend.end(tx)
        self.logger.debug("enable_role roles=%s status=%s", roles, status)
