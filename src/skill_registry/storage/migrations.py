"""Idempotent database schema creation."""

from __future__ import annotations

import aiosqlite

USERS_TABLE = """
CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    handle TEXT NOT NULL UNIQUE,
    role TEXT NOT NULL DEFAULT 'user',
    created_at TEXT NOT NULL,
    deleted_at TEXT
)
"""

API_TOKENS_TABLE = """
CREATE TABLE IF NOT EXISTS api_tokens (
    token_hash TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY (user_id) REFERENCES users(user_id)
)
"""

ITEMS_TABLE = """
CREATE TABLE IF NOT EXISTS items (
    item_id TEXT PRIMARY KEY,
    slug TEXT NOT NULL UNIQUE,
    display_name TEXT NOT NULL,
    summary TEXT,
    owner_user_id TEXT NOT NULL,
    latest_version_id TEXT,
    badges TEXT NOT NULL DEFAULT '[]',
    moderation_status TEXT NOT NULL DEFAULT 'active',
    moderation_reason TEXT,
    moderation_notes TEXT,
    moderation_flags TEXT NOT NULL DEFAULT '[]',
    quality TEXT,
    soft_deleted_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""

ITEMS_OWNER_INDEX = """
CREATE INDEX IF NOT EXISTS idx_items_owner_created ON items(owner_user_id, created_at)
"""

VERSIONS_TABLE = """
CREATE TABLE IF NOT EXISTS item_versions (
    version_id TEXT PRIMARY KEY,
    item_id TEXT NOT NULL,
    version TEXT NOT NULL,
    changelog TEXT NOT NULL DEFAULT '',
    files TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL,
    soft_deleted_at TEXT,
    UNIQUE (item_id, version),
    FOREIGN KEY (item_id) REFERENCES items(item_id)
)
"""

EMBEDDINGS_TABLE = """
CREATE TABLE IF NOT EXISTS embeddings (
    embedding_id TEXT PRIMARY KEY,
    item_id TEXT NOT NULL,
    version_id TEXT NOT NULL,
    owner_user_id TEXT NOT NULL,
    visibility TEXT NOT NULL,
    created_at TEXT NOT NULL
)
"""

EMBEDDINGS_ITEM_INDEX = """
CREATE INDEX IF NOT EXISTS idx_embeddings_item ON embeddings(item_id)
"""

RESERVED_SLUGS_TABLE = """
CREATE TABLE IF NOT EXISTS reserved_slugs (
    reservation_id TEXT PRIMARY KEY,
    slug TEXT NOT NULL,
    original_owner_user_id TEXT NOT NULL,
    deleted_at TEXT NOT NULL,
    expires_at TEXT NOT NULL,
    released_at TEXT,
    reason TEXT
)
"""

RESERVED_SLUGS_ACTIVE_INDEX = """
CREATE INDEX IF NOT EXISTS idx_reserved_slugs_active
ON reserved_slugs(slug, released_at, deleted_at)
"""

AUDIT_LOGS_TABLE = """
CREATE TABLE IF NOT EXISTS audit_logs (
    entry_id TEXT PRIMARY KEY,
    actor_user_id TEXT,
    action TEXT NOT NULL,
    target_type TEXT NOT NULL,
    target_id TEXT NOT NULL,
    metadata TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL
)
"""

AUDIT_LOGS_TARGET_INDEX = """
CREATE INDEX IF NOT EXISTS idx_audit_logs_target ON audit_logs(target_type, target_id, action)
"""

RATE_LIMITS_TABLE = """
CREATE TABLE IF NOT EXISTS rate_limits (
    scope_key TEXT PRIMARY KEY,
    window_start INTEGER NOT NULL,
    count INTEGER NOT NULL,
    limit_value INTEGER NOT NULL,
    version INTEGER NOT NULL DEFAULT 0
)
"""


async def initialize_registry_db(db_path: str) -> None:
    async with aiosqlite.connect(db_path) as db:
        for statement in (
            USERS_TABLE,
            API_TOKENS_TABLE,
            ITEMS_TABLE,
            ITEMS_OWNER_INDEX,
            VERSIONS_TABLE,
            EMBEDDINGS_TABLE,
            EMBEDDINGS_ITEM_INDEX,
            RESERVED_SLUGS_TABLE,
            RESERVED_SLUGS_ACTIVE_INDEX,
            AUDIT_LOGS_TABLE,
            AUDIT_LOGS_TARGET_INDEX,
        ):
            await db.execute(statement)
        await db.commit()


async def initialize_rate_limit_db(db_path: str) -> None:
    async with aiosqlite.connect(db_path) as db:
        await db.execute(RATE_LIMITS_TABLE)
        await db.commit()
