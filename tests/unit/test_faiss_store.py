"""Tests for the FAISS embedding index."""

import asyncio

from skill_registry.models.domain import SEARCHABLE_VISIBILITIES, Visibility
from skill_registry.vectorstore.faiss_store import FAISSEmbeddingStore


def _unit(i: int, dims: int = 8) -> list[float]:
    vector = [0.01] * dims
    vector[i % dims] = 1.0
    return vector


class TestFAISSEmbeddingStore:
    def test_search_skips_hidden_visibilities(self):
        index = FAISSEmbeddingStore(dimensions=8)
        index.add("old", _unit(0), Visibility.ARCHIVED)
        index.add("new", _unit(0), Visibility.LATEST)

        hits = index.search_sync(_unit(0), 5, SEARCHABLE_VISIBILITIES)
        assert [eid for eid, _ in hits] == ["new"]

    def test_remove_and_reload(self, tmp_path):
        index = FAISSEmbeddingStore(dimensions=8, index_path=str(tmp_path))
        index.add("a", _unit(0), Visibility.LATEST)
        index.add("b", _unit(1), Visibility.LATEST)
        index.remove(["a"])
        index.save()

        reloaded = FAISSEmbeddingStore(dimensions=8, index_path=str(tmp_path))
        assert reloaded.size == 1
        assert [eid for eid, _ in reloaded.search_sync(_unit(1), 5, SEARCHABLE_VISIBILITIES)] == ["b"]

    async def test_search_waits_for_pending_write(self):
        index = FAISSEmbeddingStore(dimensions=8)
        index.add("a", _unit(0), Visibility.LATEST)

        async with index._lock:
            pending = asyncio.create_task(index.search(_unit(0), 5, SEARCHABLE_VISIBILITIES))
            await asyncio.sleep(0.05)
            assert not pending.done()
        assert [eid for eid, _ in await pending] == ["a"]

    async def test_searches_during_writes_only_see_known_ids(self):
        index = FAISSEmbeddingStore(dimensions=8)

        async def write(n: int) -> None:
            await index.add_safe(f"e{n}", _unit(n), Visibility.LATEST)
            if n % 3 == 0:
                await index.remove_safe([f"e{n}"])

        async def read() -> list[tuple[str, float]]:
            return await index.search(_unit(0), 10, SEARCHABLE_VISIBILITIES)

        results = await asyncio.gather(*(write(n) for n in range(30)), *(read() for _ in range(30)))
        for hits in results[30:]:
            assert all(eid.startswith("e") for eid, _ in hits)
        assert index.size == 20
