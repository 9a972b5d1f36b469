"""Shared test fixtures and configuration."""
import os

import pytest

# Keep a developer's .env from switching tests to a real Redis server
os.environ.setdefault("ACL_BACKEND", "memory")

from roleacl import Acl
from tests.acl_helpers import RecordingBackend, UnionsMemoryBackend


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def acl(backend: RecordingBackend) -> Acl:
    return Acl(backend)


@pytest.fixture
def unions_backend() -> UnionsMemoryBackend:
    return UnionsMemoryBackend()


@pytest.fixture
def batched_acl(unions_backend: UnionsMemoryBackend) -> Acl:
    return Acl(unions_backend)
