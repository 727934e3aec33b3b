"""SQLite-backed store for users, items, versions and embedding metadata."""

from __future__ import annotations

import json
from datetime import datetime

import aiosqlite

from skill_registry.exceptions import SlugTakenError, VersionExistsError
from skill_registry.models.domain import (
    Badge,
    CandidateEmbedding,
    Item,
    ItemVersion,
    ModerationFlag,
    ModerationStatus,
    Page,
    QualityAssessment,
    User,
    UserRole,
    VersionFile,
    Visibility,
    utcnow,
)
from skill_registry.storage.migrations import initialize_registry_db
from skill_registry.storage.serialization import from_iso, to_iso


class SQLiteRegistryStore:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def initialize(self) -> None:
        await initialize_registry_db(self._db_path)

    # Users

    async def save_user(self, user: User) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "INSERT OR REPLACE INTO users (user_id, handle, role, created_at, deleted_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    user.user_id,
                    user.handle,
                    user.role.value,
                    to_iso(user.created_at),
                    to_iso(user.deleted_at),
                ),
            )
            await db.commit()

    async def get_user(self, user_id: str) -> User | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute("SELECT * FROM users WHERE user_id = ?", (user_id,)) as cursor:
                row = await cursor.fetchone()
                return self._row_to_user(row) if row else None

    async def save_api_token(self, token_hash: str, user_id: str) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "INSERT OR REPLACE INTO api_tokens (token_hash, user_id, created_at) VALUES (?, ?, ?)",
                (token_hash, user_id, to_iso(utcnow())),
            )
            await db.commit()

    async def get_user_by_token_hash(self, token_hash: str) -> User | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT users.* FROM api_tokens JOIN users ON users.user_id = api_tokens.user_id "
                "WHERE api_tokens.token_hash = ? AND users.deleted_at IS NULL",
                (token_hash,),
            ) as cursor:
                row = await cursor.fetchone()
                return self._row_to_user(row) if row else None

    # Items

    async def insert_item(self, item: Item) -> None:
        try:
            async with aiosqlite.connect(self._db_path) as db:
                await db.execute(
                    "INSERT INTO items (item_id, slug, display_name, summary, owner_user_id, "
                    "latest_version_id, badges, moderation_status, moderation_reason, "
                    "moderation_notes, moderation_flags, quality, soft_deleted_at, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    self._item_params(item),
                )
                await db.commit()
        except aiosqlite.IntegrityError as e:
            raise SlugTakenError(f'Slug "{item.slug}" is already taken.') from e

    async def update_item(self, item: Item) -> None:
        item.updated_at = utcnow()
        params = self._item_params(item)
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "UPDATE items SET slug = ?, display_name = ?, summary = ?, owner_user_id = ?, "
                "latest_version_id = ?, badges = ?, moderation_status = ?, moderation_reason = ?, "
                "moderation_notes = ?, moderation_flags = ?, quality = ?, soft_deleted_at = ?, "
                "created_at = ?, updated_at = ? WHERE item_id = ?",
                (*params[1:], item.item_id),
            )
            await db.commit()

    async def get_item(self, item_id: str) -> Item | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute("SELECT * FROM items WHERE item_id = ?", (item_id,)) as cursor:
                row = await cursor.fetchone()
                return self._row_to_item(row) if row else None

    async def get_item_by_slug(self, slug: str) -> Item | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute("SELECT * FROM items WHERE slug = ?", (slug,)) as cursor:
                row = await cursor.fetchone()
                return self._row_to_item(row) if row else None

    async def get_items_by_ids(self, item_ids: list[str]) -> dict[str, Item]:
        if not item_ids:
            return {}
        placeholders = ",".join("?" for _ in item_ids)
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                f"SELECT * FROM items WHERE item_id IN ({placeholders})", item_ids
            ) as cursor:
                rows = await cursor.fetchall()
                return {row["item_id"]: self._row_to_item(row) for row in rows}

    async def list_items_page(self, cursor: str | None, batch_size: int) -> Page:
        """Page through all items in id order. The cursor is the last item id seen."""
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM items WHERE item_id > ? ORDER BY item_id LIMIT ?",
                (cursor or "", batch_size + 1),
            ) as result:
                rows = await result.fetchall()
        items = [self._row_to_item(row) for row in rows[:batch_size]]
        is_done = len(rows) <= batch_size
        next_cursor = items[-1].item_id if items and not is_done else None
        return Page(items=items, cursor=next_cursor, is_done=is_done)

    async def list_owner_items(
        self, owner_user_id: str, limit: int = 60, since: datetime | None = None
    ) -> list[Item]:
        query = "SELECT * FROM items WHERE owner_user_id = ?"
        params: list = [owner_user_id]
        if since is not None:
            query += " AND created_at >= ?"
            params.append(to_iso(since))
        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(query, params) as cursor:
                rows = await cursor.fetchall()
                return [self._row_to_item(row) for row in rows]

    async def delete_item_hard(self, item_id: str) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute("DELETE FROM embeddings WHERE item_id = ?", (item_id,))
            await db.execute("DELETE FROM item_versions WHERE item_id = ?", (item_id,))
            await db.execute("DELETE FROM items WHERE item_id = ?", (item_id,))
            await db.commit()

    async def count_items(self) -> int:
        async with aiosqlite.connect(self._db_path) as db:
            async with db.execute("SELECT COUNT(*) FROM items") as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0

    # Versions

    async def insert_version(self, version: ItemVersion) -> None:
        try:
            async with aiosqlite.connect(self._db_path) as db:
                await db.execute(
                    "INSERT INTO item_versions (version_id, item_id, version, changelog, files, "
                    "created_at, soft_deleted_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        version.version_id,
                        version.item_id,
                        version.version,
                        version.changelog,
                        json.dumps([f.__dict__ for f in version.files]),
                        to_iso(version.created_at),
                        to_iso(version.soft_deleted_at),
                    ),
                )
                await db.commit()
        except aiosqlite.IntegrityError as e:
            raise VersionExistsError(f"Version {version.version} already exists.") from e

    async def get_version(self, version_id: str) -> ItemVersion | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM item_versions WHERE version_id = ?", (version_id,)
            ) as cursor:
                row = await cursor.fetchone()
                return self._row_to_version(row) if row else None

    async def get_versions_by_ids(self, version_ids: list[str]) -> dict[str, ItemVersion]:
        if not version_ids:
            return {}
        placeholders = ",".join("?" for _ in version_ids)
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                f"SELECT * FROM item_versions WHERE version_id IN ({placeholders})", version_ids
            ) as cursor:
                rows = await cursor.fetchall()
                return {row["version_id"]: self._row_to_version(row) for row in rows}

    async def get_version_by_number(self, item_id: str, version: str) -> ItemVersion | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM item_versions WHERE item_id = ? AND version = ?",
                (item_id, version),
            ) as cursor:
                row = await cursor.fetchone()
                return self._row_to_version(row) if row else None

    # Embedding metadata

    async def insert_embedding(self, embedding: CandidateEmbedding) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "INSERT INTO embeddings (embedding_id, item_id, version_id, owner_user_id, visibility, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    embedding.embedding_id,
                    embedding.item_id,
                    embedding.version_id,
                    embedding.owner_user_id,
                    embedding.visibility.value,
                    to_iso(utcnow()),
                ),
            )
            await db.commit()

    async def get_embeddings_by_ids(self, embedding_ids: list[str]) -> dict[str, CandidateEmbedding]:
        if not embedding_ids:
            return {}
        placeholders = ",".join("?" for _ in embedding_ids)
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                f"SELECT * FROM embeddings WHERE embedding_id IN ({placeholders})", embedding_ids
            ) as cursor:
                rows = await cursor.fetchall()
                return {row["embedding_id"]: self._row_to_embedding(row) for row in rows}

    async def list_item_embeddings(self, item_id: str) -> list[CandidateEmbedding]:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM embeddings WHERE item_id = ? ORDER BY created_at", (item_id,)
            ) as cursor:
                rows = await cursor.fetchall()
                return [self._row_to_embedding(row) for row in rows]

    async def set_embedding_visibility(self, embedding_id: str, visibility: Visibility) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "UPDATE embeddings SET visibility = ? WHERE embedding_id = ?",
                (visibility.value, embedding_id),
            )
            await db.commit()

    async def set_embedding_owner(self, item_id: str, owner_user_id: str) -> int:
        async with aiosqlite.connect(self._db_path) as db:
            cursor = await db.execute(
                "UPDATE embeddings SET owner_user_id = ? WHERE item_id = ? AND owner_user_id != ?",
                (owner_user_id, item_id, owner_user_id),
            )
            await db.commit()
            return cursor.rowcount

    async def list_embeddings_page(self, cursor: str | None, batch_size: int) -> Page:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM embeddings WHERE embedding_id > ? ORDER BY embedding_id LIMIT ?",
                (cursor or "", batch_size + 1),
            ) as result:
                rows = await result.fetchall()
        embeddings = [self._row_to_embedding(row) for row in rows[:batch_size]]
        is_done = len(rows) <= batch_size
        next_cursor = embeddings[-1].embedding_id if embeddings and not is_done else None
        return Page(items=embeddings, cursor=next_cursor, is_done=is_done)

    @staticmethod
    def _item_params(item: Item) -> tuple:
        return (
            item.item_id,
            item.slug,
            item.display_name,
            item.summary,
            item.owner_user_id,
            item.latest_version_id,
            json.dumps(sorted(b.value for b in item.badges)),
            item.moderation_status.value,
            item.moderation_reason,
            item.moderation_notes,
            json.dumps(sorted(f.value for f in item.moderation_flags)),
            json.dumps(item.quality.to_dict()) if item.quality else None,
            to_iso(item.soft_deleted_at),
            to_iso(item.created_at),
            to_iso(item.updated_at),
        )

    @staticmethod
    def _row_to_user(row: aiosqlite.Row) -> User:
        return User(
            user_id=row["user_id"],
            handle=row["handle"],
            role=UserRole(row["role"]),
            created_at=from_iso(row["created_at"]),
            deleted_at=from_iso(row["deleted_at"]),
        )

    @staticmethod
    def _row_to_item(row: aiosqlite.Row) -> Item:
        return Item(
            item_id=row["item_id"],
            slug=row["slug"],
            display_name=row["display_name"],
            summary=row["summary"],
            owner_user_id=row["owner_user_id"],
            latest_version_id=row["latest_version_id"],
            badges={Badge(b) for b in json.loads(row["badges"])},
            moderation_status=ModerationStatus(row["moderation_status"]),
            moderation_reason=row["moderation_reason"],
            moderation_notes=row["moderation_notes"],
            moderation_flags={ModerationFlag(f) for f in json.loads(row["moderation_flags"])},
            quality=QualityAssessment.from_dict(json.loads(row["quality"])) if row["quality"] else None,
            soft_deleted_at=from_iso(row["soft_deleted_at"]),
            created_at=from_iso(row["created_at"]),
            updated_at=from_iso(row["updated_at"]),
        )

    @staticmethod
    def _row_to_version(row: aiosqlite.Row) -> ItemVersion:
        return ItemVersion(
            version_id=row["version_id"],
            item_id=row["item_id"],
            version=row["version"],
            changelog=row["changelog"],
            files=[VersionFile(**f) for f in json.loads(row["files"])],
            created_at=from_iso(row["created_at"]),
            soft_deleted_at=from_iso(row["soft_deleted_at"]),
        )

    @staticmethod
    def _row_to_embedding(row: aiosqlite.Row) -> CandidateEmbedding:
        return CandidateEmbedding(
            embedding_id=row["embedding_id"],
            item_id=row["item_id"],
            version_id=row["version_id"],
            owner_user_id=row["owner_user_id"],
            visibility=Visibility(row["visibility"]),
        )
