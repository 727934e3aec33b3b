"""SQLite cache of embedding vectors keyed by model and input text."""

from __future__ import annotations

import hashlib
import json

import aiosqlite

CREATE_CACHE_TABLE = """
CREATE TABLE IF NOT EXISTS embedding_cache (
    cache_key TEXT PRIMARY KEY,
    model TEXT NOT NULL,
    vector TEXT NOT NULL
)
"""


class EmbeddingCache:
    def __init__(self, db_path: str, model: str) -> None:
        self._db_path = db_path
        self._model = model

    async def initialize(self) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(CREATE_CACHE_TABLE)
            await db.commit()

    async def lookup(self, texts: list[str]) -> dict[int, list[float]]:
        """Map input positions to cached vectors. Positions without a hit are absent."""
        if not texts:
            return {}
        keys = [self._key(t) for t in texts]
        positions: dict[str, list[int]] = {}
        for i, key in enumerate(keys):
            positions.setdefault(key, []).append(i)
        placeholders = ",".join("?" for _ in positions)

        hits: dict[int, list[float]] = {}
        async with aiosqlite.connect(self._db_path) as db:
            async with db.execute(
                f"SELECT cache_key, vector FROM embedding_cache WHERE cache_key IN ({placeholders})",
                list(positions),
            ) as cursor:
                async for row in cursor:
                    vector = json.loads(row[1])
                    for i in positions.get(row[0], []):
                        hits[i] = vector
        return hits

    async def store(self, texts: list[str], vectors: list[list[float]]) -> None:
        if not texts:
            return
        rows = [(self._key(t), self._model, json.dumps(v)) for t, v in zip(texts, vectors)]
        async with aiosqlite.connect(self._db_path) as db:
            await db.executemany(
                "INSERT OR REPLACE INTO embedding_cache (cache_key, model, vector) VALUES (?, ?, ?)",
                rows,
            )
            await db.commit()

    def _key(self, text: str) -> str:
        return hashlib.sha256(f"{self._model}\x00{text}".encode("utf-8")).hexdigest()
