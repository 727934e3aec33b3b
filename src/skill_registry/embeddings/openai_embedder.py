"""OpenAI embedding provider with a per-call time budget."""

from __future__ import annotations

import asyncio

from openai import AsyncOpenAI

from skill_registry.exceptions import EmbeddingError, EmbeddingTimeoutError
from skill_registry.observability.logger import get_logger

logger = get_logger("embeddings")


class OpenAIEmbedder:
    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        batch_size: int = 100,
        dimensions: int = 1536,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._client = AsyncOpenAI(api_key=api_key)
        self._model = model
        self._batch_size = batch_size
        self._dimensions = dimensions
        self._timeout = timeout_seconds

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def _create(self, batch: list[str]) -> list[list[float]]:
        try:
            response = await asyncio.wait_for(
                self._client.embeddings.create(input=batch, model=self._model),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise EmbeddingTimeoutError(
                f"Embedding call exceeded {self._timeout}s for {len(batch)} texts"
            ) from e
        except Exception as e:
            raise EmbeddingError(f"Failed to embed {len(batch)} texts: {e}") from e
        return [item.embedding for item in response.data]

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for i in range(0, len(texts), self._batch_size):
            vectors.extend(await self._create(texts[i : i + self._batch_size]))
        if texts:
            logger.info("embedded_texts", count=len(texts), model=self._model)
        return vectors

    async def embed_query(self, query: str) -> list[float]:
        return (await self._create([query]))[0]
