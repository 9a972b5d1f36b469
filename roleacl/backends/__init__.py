from __future__ import annotations

from ..config import Settings
from ..domain.ports.backend import Backend
from ..infrastructure.redis import init_redis
from .memory import MemoryBackend
from .redis import RedisBackend

__all__ = ["MemoryBackend", "RedisBackend", "build_backend"]


async def build_backend(settings: Settings) -> Backend:
    """Create the backend selected by ``settings.backend``."""
    if settings.backend == "redis":
        client = await init_redis(settings.redis_url)
        return RedisBackend(client, prefix=settings.redis_prefix)
    return MemoryBackend()
