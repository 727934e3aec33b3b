"""Protocol for the vector similarity index over item embeddings."""

from __future__ import annotations

from collections.abc import Collection
from typing import Protocol

from skill_registry.models.domain import Visibility


class EmbeddingIndex(Protocol):
    async def add_safe(
        self, embedding_id: str, vector: list[float], visibility: Visibility
    ) -> None: ...

    async def set_visibility_safe(self, embedding_id: str, visibility: Visibility) -> None: ...

    async def remove_safe(self, embedding_ids: list[str]) -> None: ...

    async def search(
        self,
        vector: list[float],
        limit: int,
        visibilities: Collection[Visibility],
    ) -> list[tuple[str, float]]: ...
