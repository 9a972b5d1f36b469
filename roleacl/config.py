import os
import threading
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .buckets import BucketNames


load_dotenv()

BACKEND_CHOICES = ("memory", "redis")


class Settings(BaseModel):
    backend: str = Field(default="memory")
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_prefix: str = Field(default="acl")
    buckets: BucketNames = Field(default_factory=BucketNames)
    log_level: str = Field(default="INFO")

    @classmethod
    def from_env(cls) -> "Settings":
        backend = os.getenv("ACL_BACKEND", cls.model_fields["backend"].default).strip().lower()
        if backend not in BACKEND_CHOICES:
            raise ValueError(
                f"ACL_BACKEND must be one of: {', '.join(BACKEND_CHOICES)}"
            )

        redis_url = os.getenv("REDIS_URL", cls.model_fields["redis_url"].default).strip()
        if backend == "redis":
            parsed = urlparse(redis_url)
            if parsed.scheme not in {"redis", "rediss", "unix"}:
                raise ValueError("REDIS_URL must start with 'redis://', 'rediss://' or 'unix://'")

        redis_prefix = os.getenv(
            "ACL_REDIS_PREFIX", cls.model_fields["redis_prefix"].default
        ).strip()
        if not redis_prefix:
            raise ValueError("ACL_REDIS_PREFIX must not be empty")

        # ACL_BUCKET_META, ACL_BUCKET_PARENTS, ... override single bucket names
        overrides: dict[str, str] = {}
        for name in BucketNames.model_fields:
            raw = os.getenv(f"ACL_BUCKET_{name.upper()}")
            if raw is None:
                continue
            if not raw.strip():
                raise ValueError(f"ACL_BUCKET_{name.upper()} must not be empty")
            overrides[name] = raw.strip()

        return cls(
            backend=backend,
            redis_url=redis_url,
            redis_prefix=redis_prefix,
            buckets=BucketNames(**overrides),
            log_level=os.getenv("LOG_LEVEL", cls.model_fields["log_level"].default).upper(),
        )


_settings_instance: Settings | None = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Get settings instance, creating it on first access.

    Uses double-checked locking so concurrent first callers build a single
    instance.

    Raises:
        ValueError: If environment variables are invalid
    """
    global _settings_instance

    if _settings_instance is not None:
        return _settings_instance

    with _settings_lock:
        if _settings_instance is None:
            _settings_instance = Settings.from_env()

    return _settings_instance
