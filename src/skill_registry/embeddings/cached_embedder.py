"""Embedder wrapper that consults EmbeddingCache before calling the provider."""

from __future__ import annotations

from skill_registry.embeddings.cache import EmbeddingCache
from skill_registry.observability.logger import get_logger
from skill_registry.protocols.embedder import Embedder

logger = get_logger("cached_embedder")


class CachedEmbedder:
    def __init__(self, delegate: Embedder, cache: EmbeddingCache) -> None:
        self._delegate = delegate
        self._cache = cache

    @property
    def dimensions(self) -> int:
        return self._delegate.dimensions

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        hits = await self._cache.lookup(texts)
        misses = [i for i in range(len(texts)) if i not in hits]
        if misses:
            fresh = await self._delegate.embed_texts([texts[i] for i in misses])
            await self._cache.store([texts[i] for i in misses], fresh)
            hits.update(zip(misses, fresh))

        logger.debug("embed_texts", total=len(texts), cache_hits=len(texts) - len(misses))
        return [hits[i] for i in range(len(texts))]

    async def embed_query(self, query: str) -> list[float]:
        hits = await self._cache.lookup([query])
        if 0 in hits:
            return hits[0]
        # Provider errors propagate unchanged; nothing is cached on failure.
        vector = await self._delegate.embed_query(query)
        await self._cache.store([query], [vector])
        return vector
