"""Public entry point: role based access control over a pluggable backend."""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, Mapping

from . import contract
from .buckets import META_ROLES, BucketNames, allows_bucket, key_from_allows_bucket
from .core.composer import PermissionComposer
from .core.hierarchy import RoleHierarchyResolver
from .core.mutations import GraphMutations
from .domain.ports.backend import Backend, UnionsBackend
from .schemas import flatten_allow_records, parse_allow_records

if TYPE_CHECKING:
    from .schemas import AllowRecord

DEFAULT_LOGGER_NAME = "roleacl"


class Acl:
    """Role based access control.

    Users hold roles, roles inherit from parent roles, and roles are granted
    permissions on resources. Reads compose inherited permissions on every
    call; nothing derived is ever stored.

    Args:
        backend: Storage implementing the Backend protocol. If it also
            implements UnionsBackend, ``allowed_permissions`` answers in a
            single batched query.
        logger: Logger used for debug output. Defaults to ``roleacl``.
        buckets: Bucket name overrides (model or mapping).
    """

    def __init__(
        self,
        backend: Backend,
        logger: logging.Logger | None = None,
        buckets: BucketNames | Mapping[str, Any] | None = None,
    ) -> None:
        self.backend = backend
        self.logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
        self.buckets = BucketNames.coerce(buckets)
        self.supports_unions = isinstance(backend, UnionsBackend)

        self.resolver = RoleHierarchyResolver(backend, self.buckets)
        self.composer = PermissionComposer(backend, self.buckets, self.resolver)
        self.mutations = GraphMutations(backend, self.buckets, self.logger)

    # ------------------------------------------------------------------
    # Users and roles
    # ------------------------------------------------------------------

    async def add_user_roles(self, user_id: contract.UserId, roles: contract.Names) -> None:
        user_id = contract.validate_user_id(user_id)
        roles = contract.validate_names(roles, "roles")
        await self.mutations.add_user_roles(user_id, roles)

    async def remove_user_roles(self, user_id: contract.UserId, roles: contract.Names) -> None:
        user_id = contract.validate_user_id(user_id)
        roles = contract.validate_names(roles, "roles")
        await self.mutations.remove_user_roles(user_id, roles)

    async def user_roles(self, user_id: contract.UserId) -> set[str]:
        user_id = contract.validate_user_id(user_id)
        return await self.resolver.direct_roles(user_id)

    async def role_users(self, role: str) -> set[str]:
        role = contract.validate_name(role, "role")
        return await self.backend.get(self.buckets.roles, role)

    async def has_role(self, user_id: contract.UserId, role: str) -> bool:
        role = contract.validate_name(role, "role")
        return role in await self.user_roles(user_id)

    async def add_role_parents(self, role: str, parents: contract.Names) -> None:
        role = contract.validate_name(role, "role")
        parents = contract.validate_names(parents, "parents")
        await self.mutations.add_role_parents(role, parents)

    async def remove_role_parents(self, role: str, parents: contract.Names | None = None) -> None:
        """Remove the given parents from ``role``, or all of them when omitted."""
        role = contract.validate_name(role, "role")
        parents = contract.validate_optional_names(parents, "parents")
        await self.mutations.remove_role_parents(role, parents)

    async def remove_role(self, role: str) -> None:
        """Remove a role's grants and hierarchy links.

        Users that were assigned the role keep it in their role list.
        """
        role = contract.validate_name(role, "role")
        await self.mutations.remove_role(role)

    async def remove_resource(self, resource: str) -> None:
        resource = contract.validate_name(resource, "resource")
        await self.mutations.remove_resource(resource)

    async def enable_role(self, roles: contract.Names, status: bool = False) -> None:
        """Add roles to (``status=True``) or drop them from the known-roles set.

        Hierarchy and grants are kept, so a disabled role can be re-enabled
        without losing its configuration.
        """
        roles = contract.validate_names(roles, "roles")
        status = contract.validate_flag(status, "status")
        await self.mutations.enable_role(roles, status)

    async def check_role(self, roles: contract.Names) -> dict[str, bool]:
        roles = contract.validate_names(roles, "roles")
        known = await self.backend.get(self.buckets.meta, META_ROLES)
        return {role: role in known for role in roles}

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    async def allow(
        self,
        roles: contract.Names,
        resources: contract.Names,
        permissions: contract.Names,
    ) -> None:
        roles = contract.validate_names(roles, "roles")
        resources = contract.validate_names(resources, "resources")
        permissions = contract.validate_names(permissions, "permissions")
        await self.mutations.allow(roles, resources, permissions)

    async def allow_many(self, records: "list[AllowRecord | dict[str, Any]]") -> None:
        """Apply compact grant records.

        ``[{"roles": ..., "allows": [{"resources": ..., "permissions": ...}]}]``

        Every (record, entry) pair becomes one ``allow`` call. Calls run in
        order, each in its own transaction; a failure stops the sequence.
        """
        for call in flatten_allow_records(parse_allow_records(records)):
            await self.allow(call.roles, call.resources, call.permissions)

    async def remove_allow(
        self,
        roles: contract.Names,
        resources: contract.Names,
        permissions: contract.Names | None = None,
    ) -> None:
        """Revoke permissions; with no ``permissions``, revoke everything on the resources."""
        roles = contract.validate_names(roles, "roles")
        resources = contract.validate_names(resources, "resources")
        permissions = contract.validate_optional_names(permissions, "permissions")
        await self.remove_permissions(roles, resources, permissions)

    async def remove_allow_many(self, records: "list[AllowRecord | dict[str, Any]]") -> None:
        for call in flatten_allow_records(parse_allow_records(records)):
            await self.remove_allow(call.roles, call.resources, call.permissions)

    async def remove_permissions(
        self,
        roles: contract.Names,
        resources: contract.Names,
        permissions: contract.Names | None = None,
    ) -> None:
        roles = contract.validate_names(roles, "roles")
        resources = contract.validate_names(resources, "resources")
        permissions = contract.validate_optional_names(permissions, "permissions")
        await self.mutations.remove_permissions(roles, resources, permissions)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def is_allowed(
        self,
        user_id: contract.UserId,
        resource: str,
        permissions: contract.Names,
    ) -> bool:
        """Return True if the user holds every one of ``permissions`` on ``resource``."""
        user_id = contract.validate_user_id(user_id)
        resource = contract.validate_name(resource, "resource")
        permissions = contract.validate_names(permissions, "permissions")

        roles = await self.resolver.direct_roles(user_id)
        if not roles:
            return False
        return await self.are_any_roles_allowed(list(roles), resource, permissions)

    async def are_any_roles_allowed(
        self,
        roles: contract.Names,
        resource: str,
        permissions: contract.Names,
    ) -> bool:
        roles = contract.validate_names(roles, "roles")
        resource = contract.validate_name(resource, "resource")
        permissions = contract.validate_names(permissions, "permissions")
        if not roles:
            return False
        return await self.composer.check_permissions(roles, resource, permissions)

    async def allowed_permissions(
        self,
        user_id: contract.UserId | None,
        resources: contract.Names,
    ) -> dict[str, set[str]]:
        """Map each requested resource to the permissions the user holds on it.

        Every requested resource is present in the result, empty if nothing
        is granted.
        """
        if user_id is None or user_id == "":
            return {}
        if self.supports_unions:
            return await self.optimized_allowed_permissions(user_id, resources)

        user_id = contract.validate_user_id(user_id)
        resources = contract.validate_names(resources, "resources")

        roles = await self.resolver.direct_roles(user_id)
        permissions = await asyncio.gather(
            *(self.composer.resource_permissions(roles, resource) for resource in resources)
        )
        return dict(zip(resources, permissions))

    async def optimized_allowed_permissions(
        self,
        user_id: contract.UserId | None,
        resources: contract.Names,
    ) -> dict[str, set[str]]:
        """Same result as ``allowed_permissions`` using one batched ``unions`` query."""
        if user_id is None or user_id == "":
            return {}
        user_id = contract.validate_user_id(user_id)
        resources = contract.validate_names(resources, "resources")

        roles = await self.resolver.user_closure(user_id)
        buckets = [allows_bucket(resource) for resource in resources]
        if roles:
            response = await self.backend.unions(buckets, sorted(roles))  # type: ignore[attr-defined]
        else:
            response = {}

        result: dict[str, set[str]] = {resource: set() for resource in resources}
        for bucket, permissions in response.items():
            result[key_from_allows_bucket(bucket)] = set(permissions)
        return result

    async def what_resources(
        self,
        roles: contract.Names,
        permissions: contract.Names | None = None,
    ) -> dict[str, set[str]] | list[str]:
        """Resources reachable by ``roles``.

        Without ``permissions``: a mapping of resource to composed permissions.
        With ``permissions``: the resources where the roles hold at least one
        of them.
        """
        return await self.permitted_resources(roles, permissions)

    async def permitted_resources(
        self,
        roles: contract.Names,
        permissions: contract.Names | None = None,
    ) -> dict[str, set[str]] | list[str]:
        roles = contract.validate_names(roles, "roles")
        permissions = contract.validate_optional_names(permissions, "permissions")

        resources = sorted(await self._roles_resources(roles))
        composed = await asyncio.gather(
            *(self.composer.resource_permissions(roles, resource) for resource in resources)
        )
        if permissions is None:
            return dict(zip(resources, composed))

        wanted = set(permissions)
        return [
            resource
            for resource, granted in zip(resources, composed)
            if granted & wanted
        ]

    async def _roles_resources(self, roles: list[str]) -> set[str]:
        all_roles = await self.resolver.closure(roles)
        per_role = await asyncio.gather(
            *(self.backend.get(self.buckets.resources, role) for role in all_roles)
        )
        resources: set[str] = set()
        for found in per_role:
            resources |= found
        return resources

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def middleware(
        self,
        num_path_components: int | None = None,
        user_id: contract.UserId | Callable[..., Any] | None = None,
        actions: contract.Names | None = None,
    ) -> Callable[..., Any]:
        """FastAPI dependency guarding a route with ``is_allowed``.

        See ``roleacl.middleware.acl_dependency``.
        """
        from .middleware import acl_dependency

        return acl_dependency(self, num_path_components, user_id, actions)
