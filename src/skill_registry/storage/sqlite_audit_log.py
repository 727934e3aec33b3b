"""Append-only audit log stored in SQLite."""

from __future__ import annotations

import json
import uuid

import aiosqlite

from skill_registry.models.domain import AuditEntry, utcnow
from skill_registry.storage.serialization import from_iso, to_iso


class SQLiteAuditLog:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def append(
        self,
        action: str,
        target_type: str,
        target_id: str,
        actor_user_id: str | None = None,
        metadata: dict | None = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            entry_id=str(uuid.uuid4()),
            actor_user_id=actor_user_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            metadata=metadata or {},
            created_at=utcnow(),
        )
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "INSERT INTO audit_logs (entry_id, actor_user_id, action, target_type, target_id, "
                "metadata, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    entry.entry_id,
                    entry.actor_user_id,
                    entry.action,
                    entry.target_type,
                    entry.target_id,
                    json.dumps(entry.metadata),
                    to_iso(entry.created_at),
                ),
            )
            await db.commit()
        return entry

    async def find_first(self, target_type: str, target_id: str, action: str) -> AuditEntry | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM audit_logs WHERE target_type = ? AND target_id = ? AND action = ? "
                "ORDER BY created_at LIMIT 1",
                (target_type, target_id, action),
            ) as cursor:
                row = await cursor.fetchone()
                return self._row_to_entry(row) if row else None

    async def list_for_target(self, target_type: str, target_id: str) -> list[AuditEntry]:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM audit_logs WHERE target_type = ? AND target_id = ? ORDER BY created_at",
                (target_type, target_id),
            ) as cursor:
                rows = await cursor.fetchall()
                return [self._row_to_entry(row) for row in rows]

    async def list_by_action(self, action: str) -> list[AuditEntry]:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM audit_logs WHERE action = ? ORDER BY created_at", (action,)
            ) as cursor:
                rows = await cursor.fetchall()
                return [self._row_to_entry(row) for row in rows]

    @staticmethod
    def _row_to_entry(row: aiosqlite.Row) -> AuditEntry:
        return AuditEntry(
            entry_id=row["entry_id"],
            actor_user_id=row["actor_user_id"],
            action=row["action"],
            target_type=row["target_type"],
            target_id=row["target_id"],
            metadata=json.loads(row["metadata"]),
            created_at=from_iso(row["created_at"]),
        )
