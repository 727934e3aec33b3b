"""FastAPI application factory with lifespan management."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path

from fastapi import FastAPI

from skill_registry.api.middleware import RequestTimingMiddleware
from skill_registry.api.rate_limiter import RateLimitExceeded, rate_limit_exceeded_handler
from skill_registry.api.routes_admin import router as admin_router
from skill_registry.api.routes_health import router as health_router
from skill_registry.api.routes_search import router as search_router
from skill_registry.api.routes_skills import router as skills_router
from skill_registry.config.settings import Settings
from skill_registry.embeddings.cache import EmbeddingCache
from skill_registry.embeddings.cached_embedder import CachedEmbedder
from skill_registry.embeddings.openai_embedder import OpenAIEmbedder
from skill_registry.jobs.maintenance import MaintenanceJobs
from skill_registry.jobs.scheduler import AsyncioScheduler
from skill_registry.observability.logger import get_logger, setup_logging
from skill_registry.protocols.embedder import Embedder
from skill_registry.quality.evaluator import QualityEvaluator
from skill_registry.ratelimit.limiter import RateLimiter, epoch_ms
from skill_registry.registry.service import RegistryService
from skill_registry.search.resolver import SearchResolver
from skill_registry.slugs.ledger import SlugReservationLedger
from skill_registry.storage.blob_store import LocalBlobStore
from skill_registry.storage.sqlite_audit_log import SQLiteAuditLog
from skill_registry.storage.sqlite_rate_limit_store import SQLiteRateLimitStore
from skill_registry.storage.sqlite_registry_store import SQLiteRegistryStore
from skill_registry.storage.sqlite_reservation_store import SQLiteReservationStore
from skill_registry.vectorstore.faiss_store import FAISSEmbeddingStore

logger = get_logger("app")


async def build_embedder(settings: Settings) -> Embedder:
    raw_embedder = OpenAIEmbedder(
        api_key=settings.openai_api_key,
        model=settings.embedding_model,
        batch_size=settings.embedding_batch_size,
        dimensions=settings.embedding_dimensions,
        timeout_seconds=settings.embedding_timeout_seconds,
    )
    cache = EmbeddingCache(settings.embedding_cache_db_path, settings.embedding_model)
    await cache.initialize()
    return CachedEmbedder(delegate=raw_embedder, cache=cache)


def build_lifespan(
    settings: Settings | None,
    embedder: Embedder | None,
    clock_ms: Callable[[], int] | None,
):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = settings or Settings()
        setup_logging()

        for path in [cfg.sqlite_db_path, cfg.rate_limit_db_path, cfg.embedding_cache_db_path]:
            Path(path).parent.mkdir(parents=True, exist_ok=True)

        # Storage
        store = SQLiteRegistryStore(cfg.sqlite_db_path)
        await store.initialize()
        rate_limit_store = SQLiteRateLimitStore(cfg.rate_limit_db_path)
        await rate_limit_store.initialize()
        audit = SQLiteAuditLog(cfg.sqlite_db_path)
        blobs = LocalBlobStore(cfg.blob_store_path)

        # Embeddings and index
        active_embedder = embedder or await build_embedder(cfg)
        index = FAISSEmbeddingStore(
            dimensions=active_embedder.dimensions, index_path=cfg.faiss_index_path
        )

        # Core components
        ledger = SlugReservationLedger(
            SQLiteReservationStore(cfg.sqlite_db_path),
            cooldown=timedelta(days=cfg.reserved_slug_cooldown_days),
        )
        evaluator = QualityEvaluator(cfg)
        rate_limiter = RateLimiter(rate_limit_store, clock=clock_ms or epoch_ms)
        resolver = SearchResolver(active_embedder, index, store, cfg)
        service = RegistryService(
            store=store,
            ledger=ledger,
            audit=audit,
            blobs=blobs,
            embedder=active_embedder,
            index=index,
            evaluator=evaluator,
            settings=cfg,
        )
        scheduler = AsyncioScheduler()
        maintenance = MaintenanceJobs(store, audit, blobs, evaluator, scheduler, cfg)

        # Attach to app state
        app.state.settings = cfg
        app.state.store = store
        app.state.audit = audit
        app.state.index = index
        app.state.rate_limiter = rate_limiter
        app.state.resolver = resolver
        app.state.service = service
        app.state.scheduler = scheduler
        app.state.maintenance = maintenance

        logger.info("startup_complete", items=await store.count_items(), index_size=index.size)

        yield

        # Shutdown: finish in-flight batches, persist the index
        await scheduler.drain()
        index.save()
        logger.info("shutdown_complete")

    return lifespan


def create_app(
    settings: Settings | None = None,
    embedder: Embedder | None = None,
    clock_ms: Callable[[], int] | None = None,
) -> FastAPI:
    app = FastAPI(
        title="Skill Registry",
        version="1.0.0",
        description="Trust and discovery core for a skill registry",
        lifespan=build_lifespan(settings, embedder, clock_ms),
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.include_router(health_router, tags=["health"])
    app.include_router(search_router, tags=["search"])
    app.include_router(skills_router, tags=["skills"])
    app.include_router(admin_router, tags=["admin"])
    return app
