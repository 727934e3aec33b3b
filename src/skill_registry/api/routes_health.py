"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from skill_registry.api.dependencies import get_index, get_store
from skill_registry.models.schemas import HealthResponse
from skill_registry.storage.sqlite_registry_store import SQLiteRegistryStore
from skill_registry.vectorstore.faiss_store import FAISSEmbeddingStore

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(
    store: SQLiteRegistryStore = Depends(get_store),
    index: FAISSEmbeddingStore = Depends(get_index),
) -> HealthResponse:
    return HealthResponse(status="ok", item_count=await store.count_items(), index_size=index.size)
