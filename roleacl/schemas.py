from __future__ import annotations

from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError, field_validator

from .errors import ArgumentError


def _as_list(value: Any) -> Any:
    if isinstance(value, str):
        return [value]
    return value


class AllowEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    resources: list[str]
    permissions: list[str] | None = None

    @field_validator("resources", "permissions", mode="before")
    @classmethod
    def _wrap_single(cls, value: Any) -> Any:
        return _as_list(value)


class AllowRecord(BaseModel):
    """Compact grant record: ``{"roles": ..., "allows": [{"resources": ..., "permissions": ...}]}``."""

    model_config = ConfigDict(extra="forbid")

    roles: list[str]
    allows: list[AllowEntry]

    @field_validator("roles", mode="before")
    @classmethod
    def _wrap_single(cls, value: Any) -> Any:
        return _as_list(value)


class AllowCall(BaseModel):
    roles: list[str]
    resources: list[str]
    permissions: list[str] | None = None


_records_adapter = TypeAdapter(list[AllowRecord])


def parse_allow_records(records: Iterable[AllowRecord | dict[str, Any]] | dict[str, Any]) -> list[AllowRecord]:
    """Validate compact records, accepting a single record or a list of them."""
    if isinstance(records, (dict, AllowRecord)):
        records = [records]
    try:
        return _records_adapter.validate_python(
            [r.model_dump() if isinstance(r, AllowRecord) else r for r in records]
        )
    except (TypeError, ValidationError) as exc:
        raise ArgumentError(f"Invalid allow records: {exc}") from exc


def flatten_allow_records(records: list[AllowRecord]) -> list[AllowCall]:
    """Expand records into single calls, preserving record and entry order."""
    return [
        AllowCall(roles=record.roles, resources=entry.resources, permissions=entry.permissions)
        for record in records
        for entry in record.allows
    ]
