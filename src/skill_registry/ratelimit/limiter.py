"""Fixed-window request counters with probe-then-consume semantics."""

from __future__ import annotations

import time
from collections.abc import Callable

from skill_registry.exceptions import WriteConflictError
from skill_registry.models.domain import RateLimitRecord, RateLimitResult
from skill_registry.observability.logger import get_logger
from skill_registry.storage.sqlite_rate_limit_store import SQLiteRateLimitStore

logger = get_logger("rate_limiter")


def epoch_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter:
    """Counts consumptions per scope key in fixed windows.

    A read-only status probe runs first so denied requests never write.
    Allowed requests then consume through a compare-and-set on the stored
    counter. Losing that race is reported as a denial with nothing
    remaining; the request is not retried.
    """

    def __init__(
        self, store: SQLiteRateLimitStore, clock: Callable[[], int] = epoch_ms
    ) -> None:
        self._store = store
        self._clock = clock

    def now_ms(self) -> int:
        return self._clock()

    @staticmethod
    def window_for(now_ms: int, window_ms: int) -> tuple[int, int]:
        window_start = (now_ms // window_ms) * window_ms
        return window_start, window_start + window_ms

    async def status(self, scope_key: str, limit: int, window_ms: int) -> RateLimitResult:
        window_start, reset_at = self.window_for(self.now_ms(), window_ms)
        record = await self._store.get(scope_key)
        if record is None or record.window_start != window_start:
            return RateLimitResult(allowed=limit > 0, remaining=limit, limit=limit, reset_at=reset_at)
        remaining = max(0, limit - record.count)
        return RateLimitResult(allowed=remaining > 0, remaining=remaining, limit=limit, reset_at=reset_at)

    async def consume(self, scope_key: str, limit: int, window_ms: int) -> RateLimitResult:
        window_start, reset_at = self.window_for(self.now_ms(), window_ms)
        denied = RateLimitResult(allowed=False, remaining=0, limit=limit, reset_at=reset_at)
        try:
            record = await self._store.get(scope_key)
            if record is None:
                if limit <= 0:
                    return denied
                await self._store.insert(
                    RateLimitRecord(scope_key=scope_key, window_start=window_start, count=1, limit=limit)
                )
                count = 1
            elif record.window_start != window_start:
                if limit <= 0:
                    return denied
                record.window_start = window_start
                record.count = 1
                record.limit = limit
                await self._store.compare_and_set(record)
                count = 1
            else:
                if record.count >= limit:
                    return denied
                record.count += 1
                record.limit = limit
                await self._store.compare_and_set(record)
                count = record.count
        except WriteConflictError:
            logger.info("rate_limit_write_conflict", scope_key=scope_key)
            return denied
        return RateLimitResult(allowed=True, remaining=max(0, limit - count), limit=limit, reset_at=reset_at)

    async def check_and_consume(self, scope_key: str, limit: int, window_ms: int) -> RateLimitResult:
        probe = await self.status(scope_key, limit, window_ms)
        if not probe.allowed:
            return probe
        return await self.consume(scope_key, limit, window_ms)
