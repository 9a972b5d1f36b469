"""Bucket names for the ACL key space.

Six fixed buckets hold the role graph and the user index. Permissions are
stored in one extra bucket per resource, named ``allows_<resource>``.
"""
from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

ALLOWS_PREFIX = "allows_"

# Keys inside the meta bucket
META_ROLES = "roles"
META_USERS = "users"


class BucketNames(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    meta: str = Field(default="meta", min_length=1)
    parents: str = Field(default="parents", min_length=1)
    # Reserved name; per-resource buckets always use ALLOWS_PREFIX.
    permissions: str = Field(default="permissions", min_length=1)
    resources: str = Field(default="resources", min_length=1)
    roles: str = Field(default="roles", min_length=1)
    users: str = Field(default="users", min_length=1)

    @classmethod
    def coerce(cls, value: "BucketNames | Mapping[str, Any] | None") -> "BucketNames":
        """Accept a model, a partial mapping of overrides, or None for defaults."""
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        return cls.model_validate(dict(value))


def allows_bucket(resource: str) -> str:
    return f"{ALLOWS_PREFIX}{resource}"


def key_from_allows_bucket(bucket: str) -> str:
    if bucket.startswith(ALLOWS_PREFIX):
        return bucket[len(ALLOWS_PREFIX):]
    return bucket
