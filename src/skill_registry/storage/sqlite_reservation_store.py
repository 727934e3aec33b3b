"""SQLite-backed persistence for slug reservations."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite

from skill_registry.models.domain import ReservedSlug
from skill_registry.storage.serialization import from_iso, to_iso

_SELECT_ACTIVE = (
    "SELECT * FROM reserved_slugs WHERE slug = ? AND released_at IS NULL "
    "ORDER BY deleted_at DESC LIMIT ?"
)
_INSERT = (
    "INSERT INTO reserved_slugs (reservation_id, slug, original_owner_user_id, "
    "deleted_at, expires_at, released_at, reason) VALUES (?, ?, ?, ?, ?, ?, ?)"
)
_UPDATE = (
    "UPDATE reserved_slugs SET original_owner_user_id = ?, deleted_at = ?, "
    "expires_at = ?, released_at = ?, reason = ? WHERE reservation_id = ?"
)


def _insert_params(reservation: ReservedSlug) -> tuple:
    return (
        reservation.reservation_id,
        reservation.slug,
        reservation.original_owner_user_id,
        to_iso(reservation.deleted_at),
        to_iso(reservation.expires_at),
        to_iso(reservation.released_at),
        reservation.reason,
    )


def _update_params(reservation: ReservedSlug) -> tuple:
    return (
        reservation.original_owner_user_id,
        to_iso(reservation.deleted_at),
        to_iso(reservation.expires_at),
        to_iso(reservation.released_at),
        reservation.reason,
        reservation.reservation_id,
    )


def _row_to_reservation(row: aiosqlite.Row) -> ReservedSlug:
    return ReservedSlug(
        reservation_id=row["reservation_id"],
        slug=row["slug"],
        original_owner_user_id=row["original_owner_user_id"],
        deleted_at=from_iso(row["deleted_at"]),
        expires_at=from_iso(row["expires_at"]),
        released_at=from_iso(row["released_at"]),
        reason=row["reason"],
    )


class ReservationTransaction:
    """Reads and writes sharing one connection that holds the write lock."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def list_active(self, slug: str, limit: int = 25) -> list[ReservedSlug]:
        async with self._db.execute(_SELECT_ACTIVE, (slug, limit)) as cursor:
            rows = await cursor.fetchall()
            return [_row_to_reservation(row) for row in rows]

    async def insert(self, reservation: ReservedSlug) -> None:
        await self._db.execute(_INSERT, _insert_params(reservation))

    async def update(self, reservation: ReservedSlug) -> None:
        await self._db.execute(_UPDATE, _update_params(reservation))


class SQLiteReservationStore:
    def __init__(self, db_path: str, busy_timeout: float = 10.0) -> None:
        self._db_path = db_path
        self._busy_timeout = busy_timeout

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[ReservationTransaction]:
        """Serialize a read-modify-write sequence with BEGIN IMMEDIATE.

        Concurrent callers wait on the database write lock, so each one
        sees the rows committed by the previous one.
        """
        async with aiosqlite.connect(
            self._db_path, timeout=self._busy_timeout, isolation_level=None
        ) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("BEGIN IMMEDIATE")
            try:
                yield ReservationTransaction(db)
            except BaseException:
                await db.execute("ROLLBACK")
                raise
            await db.execute("COMMIT")

    async def list_active(self, slug: str, limit: int = 25) -> list[ReservedSlug]:
        """Unreleased reservations for a slug, most recent deletion first."""
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(_SELECT_ACTIVE, (slug, limit)) as cursor:
                rows = await cursor.fetchall()
                return [_row_to_reservation(row) for row in rows]

    async def insert(self, reservation: ReservedSlug) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(_INSERT, _insert_params(reservation))
            await db.commit()

    async def update(self, reservation: ReservedSlug) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(_UPDATE, _update_params(reservation))
            await db.commit()

    async def count_active(self, slug: str) -> int:
        async with aiosqlite.connect(self._db_path) as db:
            async with db.execute(
                "SELECT COUNT(*) FROM reserved_slugs WHERE slug = ? AND released_at IS NULL",
                (slug,),
            ) as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0
