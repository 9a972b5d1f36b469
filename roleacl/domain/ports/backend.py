from __future__ import annotations

from typing import Any, Iterable, Protocol, runtime_checkable

Value = str | int
Values = Value | Iterable[Value]
Keys = Value | Iterable[Value]


class Backend(Protocol):
    """Key to multi-value store partitioned into buckets.

    Staging calls only queue work on the transaction; ``end`` is the only
    call that performs I/O for writes.

    Keys and values may be str or int. Redis returns every member as str, so
    ``Acl`` passes user ids as str to keep results identical across backends.
    """

    def begin(self) -> Any:
        ...

    def add(self, transaction: Any, bucket: str, key: Value, values: Values) -> None:
        ...

    def remove(self, transaction: Any, bucket: str, key: Value, values: Values) -> None:
        ...

    def delete(self, transaction: Any, bucket: str, keys: Keys) -> None:
        ...

    async def end(self, transaction: Any) -> None:
        ...

    async def get(self, bucket: str, keys: Keys) -> set:
        ...

    async def union(self, bucket: str, keys: Iterable[Value]) -> set:
        ...

    async def clean(self) -> None:
        ...


@runtime_checkable
class UnionsBackend(Protocol):
    """Optional extension: union several buckets over the same keys in one round trip."""

    async def unions(self, buckets: Iterable[str], keys: Iterable[Value]) -> dict[str, set]:
        ...
