"""FAISS embedding index with visibility filtering and on-disk persistence."""

from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Collection
from pathlib import Path

import faiss
import numpy as np

from skill_registry.models.domain import Visibility
from skill_registry.observability.logger import get_logger

logger = get_logger("faiss_store")

# Over-fetch factor applied before visibility filtering.
_FETCH_MULTIPLIER = 4


class FAISSEmbeddingStore:
    def __init__(self, dimensions: int, index_path: str | None = None) -> None:
        self._dimensions = dimensions
        self._index_path = index_path
        self._index = faiss.IndexIDMap(faiss.IndexFlatIP(dimensions))
        self._int_to_embedding: dict[int, str] = {}
        self._embedding_to_int: dict[str, int] = {}
        self._visibility: dict[str, Visibility] = {}
        self._next_id = 0
        self._lock = asyncio.Lock()

        if index_path:
            self._try_load(index_path)

    def _try_load(self, path: str) -> None:
        index_file = os.path.join(path, "index.faiss")
        mapping_file = os.path.join(path, "id_mapping.json")
        if not (os.path.exists(index_file) and os.path.exists(mapping_file)):
            return
        self._index = faiss.read_index(index_file)
        with open(mapping_file) as f:
            data = json.load(f)
        self._int_to_embedding = {int(k): v for k, v in data["int_to_embedding"].items()}
        self._embedding_to_int = {v: k for k, v in self._int_to_embedding.items()}
        self._visibility = {k: Visibility(v) for k, v in data["visibility"].items()}
        self._next_id = data["next_id"]
        logger.info("faiss_loaded", size=self._index.ntotal, path=path)

    @property
    def size(self) -> int:
        return self._index.ntotal

    def add(self, embedding_id: str, vector: list[float], visibility: Visibility) -> None:
        if embedding_id in self._embedding_to_int:
            self.remove([embedding_id])
        matrix = np.asarray([vector], dtype=np.float32)
        faiss.normalize_L2(matrix)
        int_id = self._next_id
        self._next_id += 1
        self._index.add_with_ids(matrix, np.array([int_id], dtype=np.int64))
        self._int_to_embedding[int_id] = embedding_id
        self._embedding_to_int[embedding_id] = int_id
        self._visibility[embedding_id] = visibility

    def set_visibility(self, embedding_id: str, visibility: Visibility) -> None:
        if embedding_id in self._embedding_to_int:
            self._visibility[embedding_id] = visibility

    def remove(self, embedding_ids: list[str]) -> None:
        int_ids = [self._embedding_to_int.pop(e) for e in embedding_ids if e in self._embedding_to_int]
        if not int_ids:
            return
        self._index.remove_ids(np.array(int_ids, dtype=np.int64))
        for int_id in int_ids:
            embedding_id = self._int_to_embedding.pop(int_id)
            self._visibility.pop(embedding_id, None)
        logger.info("faiss_removed", count=len(int_ids), total=self._index.ntotal)

    async def add_safe(self, embedding_id: str, vector: list[float], visibility: Visibility) -> None:
        async with self._lock:
            await asyncio.to_thread(self.add, embedding_id, vector, visibility)

    async def set_visibility_safe(self, embedding_id: str, visibility: Visibility) -> None:
        async with self._lock:
            self.set_visibility(embedding_id, visibility)

    async def remove_safe(self, embedding_ids: list[str]) -> None:
        async with self._lock:
            await asyncio.to_thread(self.remove, embedding_ids)

    def search_sync(
        self, vector: list[float], limit: int, visibilities: Collection[Visibility]
    ) -> list[tuple[str, float]]:
        """Nearest embeddings whose visibility is allowed, best first, at most `limit`."""
        total = self._index.ntotal
        if total == 0 or limit <= 0:
            return []
        query = np.asarray([vector], dtype=np.float32)
        faiss.normalize_L2(query)

        k = min(total, limit * _FETCH_MULTIPLIER)
        while True:
            scores, indices = self._index.search(query, k)
            results: list[tuple[str, float]] = []
            for idx, score in zip(indices[0], scores[0]):
                embedding_id = self._int_to_embedding.get(int(idx))
                if embedding_id is None:
                    continue
                if self._visibility.get(embedding_id) not in visibilities:
                    continue
                results.append((embedding_id, float(score)))
                if len(results) >= limit:
                    return results
            if k >= total:
                return results
            k = min(total, k * 2)

    async def search(
        self, vector: list[float], limit: int, visibilities: Collection[Visibility]
    ) -> list[tuple[str, float]]:
        # Writers mutate the index and id maps off the loop thread under the same lock.
        async with self._lock:
            return await asyncio.to_thread(self.search_sync, vector, limit, visibilities)

    def save(self, path: str | None = None) -> None:
        path = path or self._index_path
        if not path:
            return
        Path(path).mkdir(parents=True, exist_ok=True)
        faiss.write_index(self._index, os.path.join(path, "index.faiss"))
        with open(os.path.join(path, "id_mapping.json"), "w") as f:
            json.dump(
                {
                    "int_to_embedding": self._int_to_embedding,
                    "visibility": {k: v.value for k, v in self._visibility.items()},
                    "next_id": self._next_id,
                },
                f,
            )
        logger.info("faiss_saved", path=path, size=self._index.ntotal)
