"""
Argument contract for the public ACL operations.

Every public operation validates its inputs here, once, before touching the
backend. A violation raises ArgumentError so callers can tell a bad call
apart from a storage failure.

Accepted shapes:
- user ids: str or int (bool is rejected), normalized to str
- names (roles, resources, permissions): a single str, or a list/tuple/set of str
"""
from __future__ import annotations

from typing import Any, Iterable

from .errors import ArgumentError

UserId = str | int
Names = str | Iterable[str]


def validate_user_id(value: Any, field: str = "user_id") -> str:
    """
    Validate a user identifier.

    Integer ids are stored as their decimal string, so ``42`` and ``"42"``
    name the same user on every backend.

    Args:
        value: The identifier to validate
        field: Argument name used in the error message

    Returns:
        The identifier as a str

    Raises:
        ArgumentError: If the value is not a str or int
    """
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ArgumentError(
            f"Invalid {field} {value!r}: expected str or int, got {type(value).__name__}"
        )
    return str(value)


def validate_name(value: Any, field: str) -> str:
    """Validate a single role or resource name."""
    if not isinstance(value, str):
        raise ArgumentError(
            f"Invalid {field} {value!r}: expected str, got {type(value).__name__}"
        )
    return value


def validate_names(value: Any, field: str) -> list[str]:
    """
    Normalize a name or a collection of names into a list.

    Order is preserved and duplicates are kept; the backends store sets.

    Raises:
        ArgumentError: If the value is neither a str nor a list/tuple/set of str
    """
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise ArgumentError(
            f"Invalid {field} {value!r}: expected str or list of str, "
            f"got {type(value).__name__}"
        )
    names = list(value)
    for name in names:
        if not isinstance(name, str):
            raise ArgumentError(
                f"Invalid {field} entry {name!r}: expected str, got {type(name).__name__}"
            )
    return names


def validate_optional_names(value: Any, field: str) -> list[str] | None:
    if value is None:
        return None
    return validate_names(value, field)


def validate_flag(value: Any, field: str) -> bool:
    if not isinstance(value, bool):
        raise ArgumentError(
            f"Invalid {field} {value!r}: expected bool, got {type(value).__name__}"
        )
    return value


def validate_path_components(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ArgumentError(
            f"Invalid num_path_components {value!r}: expected a non-negative int"
        )
    return value
