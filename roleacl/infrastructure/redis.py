"""Shared Redis connection for the Redis backend.

One async client per process, created at startup (not at import) and closed
at shutdown. Creating the client does not open a socket; redis-py connects
lazily on the first command.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum, auto

from redis.asyncio import Redis as AsyncRedis, from_url as async_from_url

logger = logging.getLogger("roleacl.redis")


class _RedisLifecycleState(Enum):
    """Lifecycle states for the shared client.

    State transitions:
    - UNINITIALIZED -> INITIALIZED (via init_redis)
    - INITIALIZED -> CLOSED (via close_redis)
    - CLOSED -> INITIALIZED (via init_redis - allows restart)

    Invariants:
    - init_redis() is idempotent while INITIALIZED
    - close_redis() is a no-op unless INITIALIZED
    - get_redis() raises RuntimeError unless INITIALIZED
    """
    UNINITIALIZED = auto()
    INITIALIZED = auto()
    CLOSED = auto()


_redis_client: AsyncRedis | None = None
_redis_state: _RedisLifecycleState = _RedisLifecycleState.UNINITIALIZED
_redis_lock: asyncio.Lock = asyncio.Lock()


async def init_redis(redis_url: str) -> AsyncRedis:
    """Create the shared client, or return it if it already exists.

    Args:
        redis_url: Redis connection URL (e.g., redis://localhost:6379/0)

    Returns:
        The shared async client
    """
    global _redis_client, _redis_state

    async with _redis_lock:
        if _redis_state == _RedisLifecycleState.INITIALIZED:
            assert _redis_client is not None
            logger.debug("Redis already initialized, returning existing client")
            return _redis_client

        logger.info("Initializing Redis client (current state: %s)", _redis_state.name)
        _redis_client = async_from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        _redis_state = _RedisLifecycleState.INITIALIZED
        return _redis_client


async def close_redis() -> None:
    """Close the shared client. Safe to call repeatedly."""
    global _redis_client, _redis_state

    async with _redis_lock:
        if _redis_state != _RedisLifecycleState.INITIALIZED:
            logger.debug("Redis not initialized (state: %s), nothing to close", _redis_state.name)
            return

        logger.info("Closing Redis client")
        if _redis_client is not None:
            await _redis_client.aclose()
            _redis_client = None
        _redis_state = _RedisLifecycleState.CLOSED


def get_redis() -> AsyncRedis:
    """Return the shared client.

    Raises:
        RuntimeError: If the client is not initialized
    """
    if _redis_state != _RedisLifecycleState.INITIALIZED or _redis_client is None:
        raise RuntimeError(
            f"Redis client not available (state: {_redis_state.name}). Call init_redis() first."
        )
    return _redis_client


def _reset_for_testing() -> None:
    global _redis_client, _redis_state, _redis_lock
    _redis_client = None
    _redis_state = _RedisLifecycleState.UNINITIALIZED
    _redis_lock = asyncio.Lock()
