"""Rate-limit counters with optimistic concurrency.

Every row carries a version number. Writers read a row, compute the new
count, and update it only if the version is unchanged; a lost race
surfaces as WriteConflictError so the caller can treat it as a denial.
"""

from __future__ import annotations

import aiosqlite

from skill_registry.exceptions import WriteConflictError
from skill_registry.models.domain import RateLimitRecord
from skill_registry.storage.migrations import initialize_rate_limit_db


class SQLiteRateLimitStore:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def initialize(self) -> None:
        await initialize_rate_limit_db(self._db_path)

    async def get(self, scope_key: str) -> RateLimitRecord | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM rate_limits WHERE scope_key = ?", (scope_key,)
            ) as cursor:
                row = await cursor.fetchone()
                if row is None:
                    return None
                return RateLimitRecord(
                    scope_key=row["scope_key"],
                    window_start=row["window_start"],
                    count=row["count"],
                    limit=row["limit_value"],
                    version=row["version"],
                )

    async def insert(self, record: RateLimitRecord) -> None:
        try:
            async with aiosqlite.connect(self._db_path) as db:
                await db.execute(
                    "INSERT INTO rate_limits (scope_key, window_start, count, limit_value, version) "
                    "VALUES (?, ?, ?, ?, 0)",
                    (record.scope_key, record.window_start, record.count, record.limit),
                )
                await db.commit()
        except aiosqlite.IntegrityError as e:
            raise WriteConflictError(f"Counter {record.scope_key} created concurrently") from e

    async def compare_and_set(self, record: RateLimitRecord) -> None:
        """Write the record if its stored version still equals record.version."""
        async with aiosqlite.connect(self._db_path) as db:
            cursor = await db.execute(
                "UPDATE rate_limits SET window_start = ?, count = ?, limit_value = ?, "
                "version = version + 1 WHERE scope_key = ? AND version = ?",
                (record.window_start, record.count, record.limit, record.scope_key, record.version),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise WriteConflictError(f"Counter {record.scope_key} changed concurrently")
