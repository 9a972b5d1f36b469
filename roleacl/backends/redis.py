"""Redis backend.

Each (bucket, key) pair is stored as a Redis set under
``<prefix>_<bucket>@<key>``. Staged operations are replayed inside a
MULTI/EXEC pipeline on ``end``, so a commit is atomic across buckets.

Implements the optional ``unions`` extension: one pipelined round trip
answers SUNION for several buckets.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from redis.asyncio import Redis as AsyncRedis

from ..domain.ports.backend import Keys, Value, Values

logger = logging.getLogger("roleacl.redis")

DEFAULT_PREFIX = "acl"


def _as_list(value: Values | Keys) -> list[Value]:
    if isinstance(value, (str, int)):
        return [value]
    return list(value)


class RedisTransaction(list[tuple[str, tuple[Any, ...]]]):
    """Ordered ``(command, args)`` pairs replayed on commit."""


class RedisBackend:
    def __init__(self, redis: AsyncRedis, prefix: str = DEFAULT_PREFIX) -> None:
        """
        Args:
            redis: Async client, created with ``decode_responses=True``
            prefix: Namespace for every key written by this backend
        """
        self._redis = redis
        self._prefix = prefix

    def bucket_key(self, bucket: str, key: Value) -> str:
        return f"{self._prefix}_{bucket}@{key}"

    def begin(self) -> RedisTransaction:
        return RedisTransaction()

    async def end(self, transaction: RedisTransaction) -> None:
        """Commit staged operations in one MULTI/EXEC block.

        Raises:
            RedisError: Propagated unchanged; nothing is retried
        """
        if not transaction:
            return
        async with self._redis.pipeline(transaction=True) as pipe:
            for command, args in transaction:
                getattr(pipe, command)(*args)
            await pipe.execute()
        logger.debug("Committed transaction operations=%d", len(transaction))

    async def clean(self) -> None:
        """Delete every key under this backend's prefix."""
        keys = [key async for key in self._redis.scan_iter(match=f"{self._prefix}_*")]
        if keys:
            await self._redis.delete(*keys)
        logger.info("Cleaned redis keys prefix=%s count=%d", self._prefix, len(keys))

    async def get(self, bucket: str, keys: Keys) -> set:
        return await self.union(bucket, _as_list(keys))

    async def union(self, bucket: str, keys: Iterable[Value]) -> set:
        redis_keys = [self.bucket_key(bucket, key) for key in keys]
        if not redis_keys:
            return set()
        return set(await self._redis.sunion(redis_keys))

    async def unions(self, buckets: Iterable[str], keys: Iterable[Value]) -> dict[str, set]:
        buckets = list(buckets)
        keys = list(keys)
        if not keys:
            return {bucket: set() for bucket in buckets}

        async with self._redis.pipeline(transaction=False) as pipe:
            for bucket in buckets:
                pipe.sunion([self.bucket_key(bucket, key) for key in keys])
            results = await pipe.execute()
        return {bucket: set(members) for bucket, members in zip(buckets, results)}

    def add(self, transaction: RedisTransaction, bucket: str, key: Value, values: Values) -> None:
        values = _as_list(values)
        if values:
            transaction.append(("sadd", (self.bucket_key(bucket, key), *values)))

    def remove(self, transaction: RedisTransaction, bucket: str, key: Value, values: Values) -> None:
        values = _as_list(values)
        if values:
            transaction.append(("srem", (self.bucket_key(bucket, key), *values)))

    def delete(self, transaction: RedisTransaction, bucket: str, keys: Keys) -> None:
        redis_keys = [self.bucket_key(bucket, key) for key in _as_list(keys)]
        if redis_keys:
            transaction.append(("delete", tuple(redis_keys)))
