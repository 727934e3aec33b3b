"""Semantic search with exact-token confirmation and adaptive candidate windows.

Vector similarity alone ranks loosely related skills above the one a user
named. The resolver asks the embedding index for a window of nearest
candidates, keeps only those whose display name, slug or summary contain
every query token, and doubles the window while too few candidates survive
and the index still has more to give.
"""

from __future__ import annotations

import time

from skill_registry.config.settings import Settings
from skill_registry.models.domain import (
    SEARCHABLE_VISIBILITIES,
    Badge,
    SearchResult,
    is_publicly_visible,
)
from skill_registry.observability.logger import get_logger
from skill_registry.observability.metrics import log_search_metrics
from skill_registry.protocols.embedder import Embedder
from skill_registry.protocols.embedding_index import EmbeddingIndex
from skill_registry.search.tokenizer import matches_exact_tokens, normalize_query, tokenize
from skill_registry.storage.sqlite_registry_store import SQLiteRegistryStore

logger = get_logger("search_resolver")


class SearchResolver:
    def __init__(
        self,
        embedder: Embedder,
        index: EmbeddingIndex,
        store: SQLiteRegistryStore,
        settings: Settings,
    ) -> None:
        self._embedder = embedder
        self._index = index
        self._store = store
        self._settings = settings

    def clamp_limit(self, limit: int | None) -> int:
        if limit is None:
            return self._settings.search_default_limit
        return max(1, min(limit, self._settings.search_max_limit))

    def window_bounds(self, limit: int) -> tuple[int, int]:
        """Initial candidate window and the cap it may grow to."""
        s = self._settings
        cap = min(max(limit * 10, s.search_window_floor_cap), s.search_max_window)
        initial = min(max(limit * 3, s.search_min_window), cap)
        return initial, cap

    async def search(
        self,
        query: str,
        limit: int | None = None,
        highlighted_only: bool = False,
    ) -> list[SearchResult]:
        start = time.monotonic()
        normalized = normalize_query(query)
        tokens = tokenize(normalized)
        if not tokens:
            return []

        limit = self.clamp_limit(limit)
        vector = await self._embedder.embed_query(normalized)
        window, cap = self.window_bounds(limit)

        # embedding_id -> hydrated result, or None when the candidate was rejected
        seen: dict[str, SearchResult | None] = {}
        rounds = 0
        hits: list[tuple[str, float]] = []
        while True:
            rounds += 1
            hits = await self._index.search(vector, window, SEARCHABLE_VISIBILITIES)
            await self._hydrate(hits, seen, tokens, highlighted_only)
            confirmed = sum(1 for r in seen.values() if r is not None)

            exhausted = len(hits) < window
            if confirmed >= limit or exhausted or window >= cap:
                break
            if rounds >= self._settings.search_max_rounds:
                logger.warning("search_round_cap_reached", rounds=rounds, window=window)
                break
            window = min(window * 2, cap)

        by_item: dict[str, SearchResult] = {}
        for result in seen.values():
            if result is None:
                continue
            current = by_item.get(result.item.item_id)
            if current is None or result.score > current.score:
                by_item[result.item.item_id] = result
        ranked = sorted(by_item.values(), key=lambda r: r.score, reverse=True)[:limit]

        log_search_metrics(
            query_tokens=len(tokens),
            rounds=rounds,
            final_window=window,
            candidates_seen=len(seen),
            confirmed=len(by_item),
            returned=len(ranked),
            duration_ms=(time.monotonic() - start) * 1000,
        )
        return ranked

    async def _hydrate(
        self,
        hits: list[tuple[str, float]],
        seen: dict[str, SearchResult | None],
        tokens: list[str],
        highlighted_only: bool,
    ) -> None:
        fresh = [(eid, score) for eid, score in hits if eid not in seen]
        if not fresh:
            return
        embeddings = await self._store.get_embeddings_by_ids([eid for eid, _ in fresh])
        items = await self._store.get_items_by_ids(
            list({e.item_id for e in embeddings.values()})
        )
        versions = await self._store.get_versions_by_ids(
            list({e.version_id for e in embeddings.values()})
        )

        for embedding_id, score in fresh:
            seen[embedding_id] = None
            embedding = embeddings.get(embedding_id)
            if embedding is None:
                continue
            item = items.get(embedding.item_id)
            if item is None or not is_publicly_visible(item):
                continue
            if highlighted_only and Badge.HIGHLIGHTED not in item.badges:
                continue
            if not matches_exact_tokens(tokens, item.display_name, item.slug, item.summary):
                continue
            seen[embedding_id] = SearchResult(
                item=item, version=versions.get(embedding.version_id), score=score
            )
