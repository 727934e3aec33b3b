"""Create a user with an API token for development."""

from __future__ import annotations

import argparse
import asyncio
import secrets
import sys
import uuid
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from skill_registry.config.settings import Settings
from skill_registry.models.domain import User, UserRole
from skill_registry.ratelimit.http import hash_token
from skill_registry.storage.sqlite_registry_store import SQLiteRegistryStore


async def main(handle: str, admin: bool) -> None:
    settings = Settings()
    Path(settings.sqlite_db_path).parent.mkdir(parents=True, exist_ok=True)

    store = SQLiteRegistryStore(settings.sqlite_db_path)
    await store.initialize()

    user = User(
        user_id=str(uuid.uuid4()),
        handle=handle,
        role=UserRole.ADMIN if admin else UserRole.USER,
    )
    await store.save_user(user)
    token = secrets.token_urlsafe(32)
    await store.save_api_token(hash_token(token), user.user_id)

    print(f"user_id: {user.user_id}")
    print(f"handle:  {user.handle}")
    print(f"role:    {user.role.value}")
    print(f"token:   {token}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("handle")
    parser.add_argument("--admin", action="store_true")
    args = parser.parse_args()
    asyncio.run(main(args.handle, args.admin))
