"""
Seed an ACL backend from a JSON document.

The document has three optional sections:

    {
        "parents": {"editor": ["author"]},
        "allows": [
            {"roles": "author", "allows": [{"resources": "article", "permissions": ["read"]}]}
        ],
        "users": {"alice": ["editor"]}
    }

The backend is chosen by ACL_BACKEND / REDIS_URL (see roleacl.config).

Usage:
    python scripts/seed_acl.py seed.json [--reset]
"""
import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from roleacl import Acl, build_backend
from roleacl.config import get_settings
from roleacl.infrastructure.redis import close_redis
from roleacl.log import configure_logging

logger = logging.getLogger("roleacl.seed")


async def seed(acl: Acl, document: dict[str, Any]) -> None:
    for role, parents in document.get("parents", {}).items():
        await acl.add_role_parents(role, parents)
    await acl.allow_many(document.get("allows", []))
    for user_id, roles in document.get("users", {}).items():
        await acl.add_user_roles(user_id, roles)
    logger.info(
        "Seeded parents=%d allows=%d users=%d",
        len(document.get("parents", {})),
        len(document.get("allows", [])),
        len(document.get("users", {})),
    )


async def main(path: Path, reset: bool) -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    backend = await build_backend(settings)
    try:
        if reset:
            await backend.clean()
        acl = Acl(backend, buckets=settings.buckets)
        await seed(acl, json.loads(path.read_text(encoding="utf-8")))
    finally:
        await close_redis()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("path", type=Path)
    parser.add_argument("--reset", action="store_true", help="remove existing ACL keys first")
    args = parser.parse_args()
    asyncio.run(main(args.path, args.reset))
