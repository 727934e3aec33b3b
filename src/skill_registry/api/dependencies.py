"""FastAPI dependency injection helpers."""

from __future__ import annotations

from fastapi import Request

from skill_registry.jobs.maintenance import MaintenanceJobs
from skill_registry.registry.service import RegistryService
from skill_registry.search.resolver import SearchResolver
from skill_registry.storage.sqlite_registry_store import SQLiteRegistryStore
from skill_registry.vectorstore.faiss_store import FAISSEmbeddingStore


def get_resolver(request: Request) -> SearchResolver:
    return request.app.state.resolver


def get_service(request: Request) -> RegistryService:
    return request.app.state.service


def get_store(request: Request) -> SQLiteRegistryStore:
    return request.app.state.store


def get_index(request: Request) -> FAISSEmbeddingStore:
    return request.app.state.index


def get_maintenance(request: Request) -> MaintenanceJobs:
    return request.app.state.maintenance
