"""Shared test fixtures."""

from __future__ import annotations

import hashlib
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from uuid import uuid4

import pytest

from skill_registry.config.settings import Settings
from skill_registry.models.domain import User, UserRole
from skill_registry.quality.evaluator import QualityEvaluator
from skill_registry.registry.service import PublishFile, PublishRequest, RegistryService
from skill_registry.search.tokenizer import tokenize
from skill_registry.slugs.ledger import SlugReservationLedger
from skill_registry.storage.blob_store import LocalBlobStore
from skill_registry.storage.sqlite_audit_log import SQLiteAuditLog
from skill_registry.storage.sqlite_registry_store import SQLiteRegistryStore
from skill_registry.storage.sqlite_reservation_store import SQLiteReservationStore
from skill_registry.vectorstore.faiss_store import FAISSEmbeddingStore

GOOD_README = """---
name: {slug}
---
# {title}

{title} schedules personal reminders from natural language requests such as
"remind me to call Dana tomorrow at noon" and stores them in a local calendar file.

## Usage

- Ask for a reminder with a time phrase like "in two hours" or "next Friday".
- List upcoming reminders with "show my reminders".
- Cancel one by quoting its title or numeric identifier.
- Snooze an alert for ten minutes when it fires.
- Export every pending entry as an iCalendar feed.
- Import existing events from a CSV spreadsheet.

## Configuration

Set REMIND_ME_TZ to your preferred timezone; otherwise the skill falls back to UTC.
Reminders persist under ~/.remind-me/reminders.json, which can be synced between machines.

## Limitations

Recurring rules support daily, weekly and monthly cadences only. Locations,
attachments and shared reminders are not handled yet, and parsing ambiguous dates
prefers the nearest future match.
"""

SPAM_README = "# Demo\n- Step-by-step tutorials\n- Tips and techniques\n- Project ideas"


def good_readme(slug: str, title: str | None = None) -> str:
    return GOOD_README.format(slug=slug, title=title or slug.replace("-", " ").title())


class HashingEmbedder:
    """Deterministic bag-of-tokens embedder; no network."""

    def __init__(self, dimensions: int = 32) -> None:
        self._dimensions = dimensions
        self.calls = 0

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self._dimensions
        vector[0] = 0.1
        for token in tokenize(text):
            bucket = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % self._dimensions
            vector[bucket] += 1.0
        return vector

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        return [self._vector(t) for t in texts]

    async def embed_query(self, query: str) -> list[float]:
        self.calls += 1
        return self._vector(query)


class MutableClock:
    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class MillisClock:
    def __init__(self, now_ms: int = 1_000_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


@pytest.fixture
def tmp_dir():
    """Create a temporary directory."""
    return tempfile.mkdtemp()


@pytest.fixture
def settings(tmp_dir):
    """Test settings with temp paths."""
    return Settings(
        openai_api_key="test-key",
        embedding_dimensions=32,
        sqlite_db_path=str(Path(tmp_dir) / "registry.db"),
        rate_limit_db_path=str(Path(tmp_dir) / "rate_limits.db"),
        embedding_cache_db_path=str(Path(tmp_dir) / "embedding_cache.db"),
        faiss_index_path=str(Path(tmp_dir) / "faiss_index"),
        blob_store_path=str(Path(tmp_dir) / "blobs"),
    )


@pytest.fixture
def embedder():
    return HashingEmbedder()


@pytest.fixture
def clock():
    return MutableClock()


@pytest.fixture
async def store(settings):
    store = SQLiteRegistryStore(settings.sqlite_db_path)
    await store.initialize()
    return store


@pytest.fixture
def make_user(store, clock):
    """Factory creating users; age is relative to the test clock."""

    async def _make(
        handle: str | None = None,
        age: timedelta = timedelta(days=365),
        role: UserRole = UserRole.USER,
    ) -> User:
        user = User(
            user_id=str(uuid4()),
            handle=handle or f"user-{uuid4().hex[:8]}",
            role=role,
            created_at=clock() - age,
        )
        await store.save_user(user)
        return user

    return _make


@pytest.fixture
def audit(store, settings):
    return SQLiteAuditLog(settings.sqlite_db_path)


@pytest.fixture
def blobs(settings):
    return LocalBlobStore(settings.blob_store_path)


@pytest.fixture
def index(settings):
    return FAISSEmbeddingStore(dimensions=settings.embedding_dimensions)


@pytest.fixture
def ledger(store, settings, clock):
    return SlugReservationLedger(
        SQLiteReservationStore(settings.sqlite_db_path),
        timedelta(days=settings.reserved_slug_cooldown_days),
        clock=clock,
    )


@pytest.fixture
def service(store, ledger, audit, blobs, embedder, index, settings, clock):
    return RegistryService(
        store=store,
        ledger=ledger,
        audit=audit,
        blobs=blobs,
        embedder=embedder,
        index=index,
        evaluator=QualityEvaluator(settings),
        settings=settings,
        clock=clock,
    )


def publish_request(
    slug: str,
    version: str = "1.0.0",
    readme: str | None = None,
    summary: str | None = "Schedules reminders from natural language time phrases.",
    display_name: str | None = None,
) -> PublishRequest:
    text = good_readme(slug) if readme is None else readme
    return PublishRequest(
        slug=slug,
        version=version,
        files=[PublishFile(path="SKILL.md", content=text.encode("utf-8"), content_type="text/markdown")],
        display_name=display_name,
        summary=summary,
    )
