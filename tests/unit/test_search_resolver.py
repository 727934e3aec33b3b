"""Tests for SearchResolver: token confirmation, widening and filtering."""

from __future__ import annotations

from uuid import uuid4

import pytest

from skill_registry.models.domain import (
    Badge,
    CandidateEmbedding,
    Item,
    ItemVersion,
    VersionFile,
    Visibility,
    utcnow,
)
from skill_registry.search.resolver import SearchResolver
from skill_registry.search.tokenizer import matches_exact_tokens, tokenize


class FakeIndex:
    """Returns a fixed ranking, truncated to the requested window."""

    def __init__(self, hits: list[tuple[str, float]]) -> None:
        self.hits = hits
        self.requests: list[int] = []

    async def search(self, vector, limit, visibilities):
        self.requests.append(limit)
        return self.hits[:limit]


async def seed(store, slug, display_name, summary=None, badges=(), deleted=False) -> str:
    item = Item(
        item_id=str(uuid4()),
        slug=slug,
        display_name=display_name,
        owner_user_id="owner",
        summary=summary,
        badges=set(badges),
        soft_deleted_at=utcnow() if deleted else None,
    )
    await store.insert_item(item)
    version = ItemVersion(
        version_id=str(uuid4()),
        item_id=item.item_id,
        version="1.0.0",
        changelog="",
        files=[VersionFile(path="SKILL.md", size=1, storage_id="x", sha256="x")],
    )
    await store.insert_version(version)
    item.latest_version_id = version.version_id
    await store.update_item(item)
    embedding_id = str(uuid4())
    await store.insert_embedding(
        CandidateEmbedding(
            embedding_id=embedding_id,
            item_id=item.item_id,
            version_id=version.version_id,
            owner_user_id="owner",
            visibility=Visibility.LATEST,
        )
    )
    return embedding_id


def filler(count: int, start: int = 0) -> list[tuple[str, float]]:
    return [(f"missing-{i}", 0.5) for i in range(start, start + count)]


@pytest.fixture
def make_resolver(store, embedder, settings):
    def _make(index):
        return SearchResolver(embedder, index, store, settings)

    return _make


async def test_token_exact_match_beats_higher_raw_score(store, make_resolver):
    remind_me = await seed(store, "remind-me", "Remind Me")
    reminder_tool = await seed(store, "reminder-tool", "Reminder Tool")
    index = FakeIndex([(reminder_tool, 0.97), (remind_me, 0.95)])

    results = await make_resolver(index).search("remind me", limit=10)

    assert [r.item.slug for r in results] == ["remind-me"]
    assert results[0].score == pytest.approx(0.95)
    assert results[0].version is not None


async def test_query_without_tokens_returns_empty_without_embedding(make_resolver, embedder):
    index = FakeIndex([])
    assert await make_resolver(index).search("  /// ") == []
    assert embedder.calls == 0
    assert index.requests == []


async def test_window_widens_when_unexhausted(store, make_resolver):
    target = await seed(store, "remind-me", "Remind Me")
    index = FakeIndex(filler(60) + [(target, 0.4)] + filler(100, start=60))

    results = await make_resolver(index).search("remind me", limit=1)

    assert [r.item.slug for r in results] == ["remind-me"]
    assert index.requests == [50, 100]


async def test_stops_when_index_exhausted(make_resolver):
    index = FakeIndex(filler(10))
    assert await make_resolver(index).search("remind me", limit=5) == []
    assert index.requests == [50]


async def test_round_cap_bounds_widening(make_resolver, settings):
    settings.search_max_rounds = 2
    index = FakeIndex(filler(1000))
    assert await make_resolver(index).search("remind me", limit=20) == []
    assert index.requests == [60, 120]


async def test_results_limited_sorted_and_confirmed(store, make_resolver):
    hits = []
    for i, score in enumerate([0.91, 0.83, 0.97, 0.88, 0.79]):
        eid = await seed(store, f"calendar-sync-{i}", f"Calendar Sync {i}", summary="Sync calendars")
        hits.append((eid, score))
    index = FakeIndex(sorted(hits, key=lambda h: h[1], reverse=True))

    results = await make_resolver(index).search("calendar sync", limit=3)

    assert len(results) == 3
    assert [r.score for r in results] == sorted((r.score for r in results), reverse=True)
    assert results[0].score == pytest.approx(0.97)
    for r in results:
        assert matches_exact_tokens(tokenize("calendar sync"), r.item.display_name, r.item.slug, r.item.summary)


async def test_highlighted_only_filters_before_confirmation(store, make_resolver):
    plain = await seed(store, "remind-me", "Remind Me")
    featured = await seed(store, "remind-me-pro", "Remind Me Pro", badges=[Badge.HIGHLIGHTED])
    index = FakeIndex([(plain, 0.99), (featured, 0.9)])

    results = await make_resolver(index).search("remind me", highlighted_only=True)

    assert [r.item.slug for r in results] == ["remind-me-pro"]


async def test_soft_deleted_items_are_skipped(store, make_resolver):
    deleted = await seed(store, "remind-me", "Remind Me", deleted=True)
    live = await seed(store, "remind-me-now", "Remind Me Now")
    index = FakeIndex([(deleted, 0.99), (live, 0.8)])

    results = await make_resolver(index).search("remind me")

    assert [r.item.slug for r in results] == ["remind-me-now"]


def test_window_bounds(make_resolver):
    resolver = make_resolver(FakeIndex([]))
    assert resolver.window_bounds(1) == (50, 200)
    assert resolver.window_bounds(10) == (50, 200)
    assert resolver.window_bounds(100) == (300, 1000)
    assert resolver.window_bounds(200) == (600, 1000)


def test_limit_is_clamped(make_resolver, settings):
    resolver = make_resolver(FakeIndex([]))
    assert resolver.clamp_limit(None) == settings.search_default_limit
    assert resolver.clamp_limit(0) == 1
    assert resolver.clamp_limit(10_000) == settings.search_max_limit
