"""Tests for the OpenAI embedder's batching and call timeout."""

from __future__ import annotations

import asyncio
import time
from types import SimpleNamespace

import pytest

from skill_registry.embeddings.openai_embedder import OpenAIEmbedder
from skill_registry.exceptions import EmbeddingError, EmbeddingTimeoutError


class FakeEmbeddings:
    def __init__(self, delay: float = 0.0, error: Exception | None = None) -> None:
        self.delay = delay
        self.error = error
        self.batches: list[list[str]] = []

    async def create(self, input: list[str], model: str):
        self.batches.append(input)
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(data=[SimpleNamespace(embedding=[float(len(t))]) for t in input])


def make_embedder(embeddings: FakeEmbeddings, **kwargs) -> OpenAIEmbedder:
    embedder = OpenAIEmbedder(api_key="sk-test", **kwargs)
    embedder._client = SimpleNamespace(embeddings=embeddings)
    return embedder


async def test_hanging_call_times_out():
    embedder = make_embedder(FakeEmbeddings(delay=30), timeout_seconds=0.05)

    start = time.monotonic()
    with pytest.raises(EmbeddingTimeoutError):
        await embedder.embed_query("remind me")
    assert time.monotonic() - start < 5


async def test_timeout_is_an_embedding_error():
    embedder = make_embedder(FakeEmbeddings(delay=30), timeout_seconds=0.05)
    with pytest.raises(EmbeddingError):
        await embedder.embed_texts(["a"])


async def test_provider_failure_is_wrapped():
    embedder = make_embedder(FakeEmbeddings(error=RuntimeError("502 Bad Gateway")))
    with pytest.raises(EmbeddingError, match="502 Bad Gateway") as exc:
        await embedder.embed_texts(["a", "b"])
    assert not isinstance(exc.value, EmbeddingTimeoutError)


async def test_texts_are_batched_in_order():
    embeddings = FakeEmbeddings()
    embedder = make_embedder(embeddings, batch_size=2)

    vectors = await embedder.embed_texts(["a", "bb", "ccc"])

    assert vectors == [[1.0], [2.0], [3.0]]
    assert embeddings.batches == [["a", "bb"], ["ccc"]]
