"""In-process backend.

Buckets live in a dict of dicts of sets. A transaction is a list of staged
operations applied in order by ``end``; since nothing awaits in between, a
commit is atomic with respect to other coroutines on the same loop.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Iterable

from ..domain.ports.backend import Keys, Value, Values

logger = logging.getLogger("roleacl.memory")

Operation = Callable[[], None]


def _as_list(value: Values | Keys) -> list[Value]:
    if isinstance(value, (str, int)):
        return [value]
    return list(value)


class MemoryTransaction(list[Operation]):
    """Ordered staged operations."""


class MemoryBackend:
    def __init__(self) -> None:
        self._buckets: defaultdict[str, dict[Value, set[Value]]] = defaultdict(dict)

    def begin(self) -> MemoryTransaction:
        return MemoryTransaction()

    async def end(self, transaction: MemoryTransaction) -> None:
        for operation in transaction:
            operation()
        logger.debug("Committed transaction operations=%d", len(transaction))

    async def clean(self) -> None:
        self._buckets.clear()

    async def get(self, bucket: str, keys: Keys) -> set:
        return self._union(bucket, _as_list(keys))

    async def union(self, bucket: str, keys: Iterable[Value]) -> set:
        return self._union(bucket, list(keys))

    def add(self, transaction: MemoryTransaction, bucket: str, key: Value, values: Values) -> None:
        values = _as_list(values)

        def operation() -> None:
            self._buckets[bucket].setdefault(key, set()).update(values)

        transaction.append(operation)

    def remove(self, transaction: MemoryTransaction, bucket: str, key: Value, values: Values) -> None:
        values = _as_list(values)

        def operation() -> None:
            stored = self._buckets[bucket].get(key)
            if stored is not None:
                stored.difference_update(values)

        transaction.append(operation)

    def delete(self, transaction: MemoryTransaction, bucket: str, keys: Keys) -> None:
        keys = _as_list(keys)

        def operation() -> None:
            stored = self._buckets[bucket]
            for key in keys:
                stored.pop(key, None)

        transaction.append(operation)

    def _union(self, bucket: str, keys: list[Value]) -> set:
        stored = self._buckets.get(bucket, {})
        result: set = set()
        for key in keys:
            result |= stored.get(key, set())
        return result
