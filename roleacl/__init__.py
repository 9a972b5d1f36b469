"""Role based access control with role inheritance over pluggable storage."""
from .acl import Acl
from .backends import MemoryBackend, RedisBackend, build_backend
from .buckets import BucketNames
from .errors import ArgumentError, RoleCycleError

__all__ = [
    "Acl",
    "ArgumentError",
    "BucketNames",
    "MemoryBackend",
    "RedisBackend",
    "RoleCycleError",
    "build_backend",
]
