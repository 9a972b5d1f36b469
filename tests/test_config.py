import logging

import pytest

from roleacl import config
from roleacl.buckets import BucketNames
from roleacl.config import Settings
from roleacl.log import configure_logging

ENV_VARS = [
    "ACL_BACKEND",
    "REDIS_URL",
    "ACL_REDIS_PREFIX",
    "LOG_LEVEL",
    *(f"ACL_BUCKET_{name.upper()}" for name in BucketNames.model_fields),
]


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env: pytest.MonkeyPatch) -> None:
    settings = Settings.from_env()

    assert settings.backend == "memory"
    assert settings.redis_prefix == "acl"
    assert settings.buckets == BucketNames()
    assert settings.log_level == "INFO"


def test_redis_backend_settings(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("ACL_BACKEND", " Redis ")
    clean_env.setenv("REDIS_URL", "rediss://cache:6380/2")
    clean_env.setenv("ACL_REDIS_PREFIX", "svc")

    settings = Settings.from_env()

    assert settings.backend == "redis"
    assert settings.redis_url == "rediss://cache:6380/2"
    assert settings.redis_prefix == "svc"


def test_unknown_backend_is_rejected(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("ACL_BACKEND", "mongodb")

    with pytest.raises(ValueError, match="ACL_BACKEND"):
        Settings.from_env()


def test_redis_url_scheme_is_checked_for_redis_backend(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("ACL_BACKEND", "redis")
    clean_env.setenv("REDIS_URL", "http://cache:6379")

    with pytest.raises(ValueError, match="REDIS_URL"):
        Settings.from_env()


def test_redis_url_is_ignored_for_memory_backend(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("REDIS_URL", "not a url")

    assert Settings.from_env().backend == "memory"


def test_empty_prefix_is_rejected(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("ACL_REDIS_PREFIX", "  ")

    with pytest.raises(ValueError, match="ACL_REDIS_PREFIX"):
        Settings.from_env()


def test_bucket_overrides(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("ACL_BUCKET_META", "acl_meta")
    clean_env.setenv("ACL_BUCKET_USERS", "members")

    buckets = Settings.from_env().buckets

    assert buckets.meta == "acl_meta"
    assert buckets.users == "members"
    assert buckets.parents == "parents"


def test_empty_bucket_override_is_rejected(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("ACL_BUCKET_ROLES", "")

    with pytest.raises(ValueError, match="ACL_BUCKET_ROLES"):
        Settings.from_env()


def test_get_settings_caches_instance(
    clean_env: pytest.MonkeyPatch,
) -> None:
    clean_env.setattr(config, "_settings_instance", None)

    first = config.get_settings()
    clean_env.setenv("ACL_REDIS_PREFIX", "changed")

    assert config.get_settings() is first
    assert first.redis_prefix == "acl"


def test_bucket_names_accept_partial_mapping() -> None:
    buckets = BucketNames.coerce({"parents": "hierarchy"})

    assert buckets.parents == "hierarchy"
    assert buckets.meta == "meta"
    assert BucketNames.coerce(buckets) is buckets


def test_bucket_names_reject_unknown_keys() -> None:
    with pytest.raises(ValueError):
        BucketNames.coerce({"grants": "x"})


def test_configure_logging_sets_package_level() -> None:
    logger = configure_logging("debug")

    assert logger.name == "roleacl"
    assert logger.level == logging.DEBUG

    assert configure_logging("nonsense").level == logging.INFO
    logger.setLevel(logging.NOTSET)
