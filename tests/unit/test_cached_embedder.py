"""Tests for CachedEmbedder wrapper."""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from skill_registry.embeddings.cache import EmbeddingCache
from skill_registry.embeddings.cached_embedder import CachedEmbedder
from skill_registry.exceptions import EmbeddingTimeoutError


class FakeEmbedder:
    """Fake embedder that tracks call counts."""

    def __init__(self) -> None:
        self.embed_texts_calls = 0
        self.embed_query_calls = 0
        self.fail = False
        self._dimensions = 3

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        self.embed_texts_calls += 1
        return [[float(len(t))] * 3 for t in texts]

    async def embed_query(self, query: str) -> list[float]:
        self.embed_query_calls += 1
        if self.fail:
            raise EmbeddingTimeoutError("timed out")
        return [1.0, 2.0, 3.0]


@pytest.fixture
async def embedder_pair():
    tmp = tempfile.mkdtemp()
    cache = EmbeddingCache(str(Path(tmp) / "cache.db"), model="test-model")
    await cache.initialize()
    delegate = FakeEmbedder()
    embedder = CachedEmbedder(delegate=delegate, cache=cache)
    return embedder, delegate


async def test_embed_query_caches(embedder_pair):
    embedder, delegate = embedder_pair
    result1 = await embedder.embed_query("hello")
    result2 = await embedder.embed_query("hello")
    assert result1 == result2
    assert delegate.embed_query_calls == 1


async def test_embed_query_different_queries(embedder_pair):
    embedder, delegate = embedder_pair
    await embedder.embed_query("hello")
    await embedder.embed_query("world")
    assert delegate.embed_query_calls == 2


async def test_embed_query_failure_is_not_cached(embedder_pair):
    embedder, delegate = embedder_pair
    delegate.fail = True
    with pytest.raises(EmbeddingTimeoutError):
        await embedder.embed_query("hello")
    delegate.fail = False
    assert await embedder.embed_query("hello") == [1.0, 2.0, 3.0]
    assert delegate.embed_query_calls == 2


async def test_embed_texts_caches(embedder_pair):
    embedder, delegate = embedder_pair
    texts = ["a", "bb", "ccc"]
    result1 = await embedder.embed_texts(texts)
    result2 = await embedder.embed_texts(texts)
    assert result1 == result2
    assert delegate.embed_texts_calls == 1


async def test_embed_texts_partial_cache_keeps_order(embedder_pair):
    embedder, delegate = embedder_pair
    await embedder.embed_texts(["a", "bb"])
    result = await embedder.embed_texts(["ccc", "a", "bb", "a"])
    assert delegate.embed_texts_calls == 2
    assert result == [[3.0] * 3, [1.0] * 3, [2.0] * 3, [1.0] * 3]


async def test_embed_texts_empty(embedder_pair):
    embedder, delegate = embedder_pair
    result = await embedder.embed_texts([])
    assert result == []
    assert delegate.embed_texts_calls == 0


async def test_cache_is_scoped_by_model():
    db = str(Path(tempfile.mkdtemp()) / "cache.db")
    first = EmbeddingCache(db, model="model-a")
    await first.initialize()
    await first.store(["hello"], [[1.0, 1.0, 1.0]])

    second = EmbeddingCache(db, model="model-b")
    assert await second.lookup(["hello"]) == {}
    assert await first.lookup(["hello"]) == {0: [1.0, 1.0, 1.0]}


async def test_dimensions_passthrough(embedder_pair):
    embedder, delegate = embedder_pair
    assert embedder.dimensions == 3
