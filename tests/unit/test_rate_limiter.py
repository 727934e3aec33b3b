"""Tests for the fixed-window RateLimiter over the SQLite counter store."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from conftest import MillisClock
from skill_registry.exceptions import WriteConflictError
from skill_registry.ratelimit.limiter import RateLimiter
from skill_registry.storage.sqlite_rate_limit_store import SQLiteRateLimitStore

WINDOW_MS = 60_000


@pytest.fixture
async def rate_store(tmp_dir):
    store = SQLiteRateLimitStore(str(Path(tmp_dir) / "rate_limits.db"))
    await store.initialize()
    return store


@pytest.fixture
def ms_clock():
    return MillisClock(1_000_000)


@pytest.fixture
def limiter(rate_store, ms_clock):
    return RateLimiter(rate_store, clock=ms_clock)


async def test_allows_limit_then_denies(limiter):
    results = [await limiter.check_and_consume("ip:1.2.3.4", 20, WINDOW_MS) for _ in range(21)]

    assert all(r.allowed for r in results[:20])
    assert [r.remaining for r in results[:3]] == [19, 18, 17]
    assert results[19].remaining == 0
    assert not results[20].allowed
    assert results[20].remaining == 0


async def test_reset_at_is_end_of_fixed_window(limiter):
    result = await limiter.check_and_consume("ip:1.2.3.4", 5, WINDOW_MS)
    # 1_000_000 falls in the window starting at 960_000
    assert result.reset_at == 1_020_000


async def test_new_window_resets_count(limiter, ms_clock):
    for _ in range(3):
        await limiter.check_and_consume("ip:1.2.3.4", 3, WINDOW_MS)
    assert not (await limiter.check_and_consume("ip:1.2.3.4", 3, WINDOW_MS)).allowed

    ms_clock.now_ms += WINDOW_MS
    result = await limiter.check_and_consume("ip:1.2.3.4", 3, WINDOW_MS)
    assert result.allowed
    assert result.remaining == 2


async def test_scopes_are_independent(limiter):
    await limiter.check_and_consume("ip:1.2.3.4", 1, WINDOW_MS)
    assert not (await limiter.check_and_consume("ip:1.2.3.4", 1, WINDOW_MS)).allowed
    assert (await limiter.check_and_consume("ip:5.6.7.8", 1, WINDOW_MS)).allowed


async def test_denied_probe_does_not_write(limiter, rate_store):
    await limiter.check_and_consume("key:abc", 1, WINDOW_MS)
    before = await rate_store.get("key:abc")
    await limiter.check_and_consume("key:abc", 1, WINDOW_MS)
    after = await rate_store.get("key:abc")
    assert before.version == after.version
    assert after.count == 1


async def test_concurrent_consumers_never_exceed_limit(limiter, rate_store):
    results = await asyncio.gather(
        *[limiter.check_and_consume("ip:9.9.9.9", 10, WINDOW_MS) for _ in range(30)]
    )
    allowed = [r for r in results if r.allowed]
    assert len(allowed) <= 10
    assert (await rate_store.get("ip:9.9.9.9")).count == len(allowed)
    for r in results:
        if not r.allowed:
            assert r.remaining == 0


class ConflictingStore:
    """Store whose compare-and-set always loses the race."""

    def __init__(self, inner: SQLiteRateLimitStore) -> None:
        self._inner = inner

    async def get(self, scope_key):
        return await self._inner.get(scope_key)

    async def insert(self, record):
        await self._inner.insert(record)

    async def compare_and_set(self, record):
        raise WriteConflictError("lost race")


async def test_write_conflict_is_a_denial(rate_store, ms_clock):
    limiter = RateLimiter(ConflictingStore(rate_store), clock=ms_clock)
    first = await limiter.check_and_consume("ip:1.1.1.1", 5, WINDOW_MS)
    assert first.allowed

    second = await limiter.check_and_consume("ip:1.1.1.1", 5, WINDOW_MS)
    assert not second.allowed
    assert second.remaining == 0
    assert second.reset_at == first.reset_at


async def test_store_compare_and_set_detects_stale_version(rate_store):
    from skill_registry.models.domain import RateLimitRecord

    await rate_store.insert(RateLimitRecord(scope_key="s", window_start=0, count=1, limit=5))
    record = await rate_store.get("s")
    record.count = 2
    await rate_store.compare_and_set(record)

    with pytest.raises(WriteConflictError):
        await rate_store.compare_and_set(record)
    with pytest.raises(WriteConflictError):
        await rate_store.insert(RateLimitRecord(scope_key="s", window_start=0, count=1, limit=5))
