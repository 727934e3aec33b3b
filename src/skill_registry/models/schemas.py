"""Pydantic models for API request/response serialization."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from skill_registry.models.domain import Badge


class SearchHit(BaseModel):
    slug: str
    display_name: str
    summary: str | None = None
    version: str | None = None
    score: float
    badges: list[str] = Field(default_factory=list)


class SearchResponse(BaseModel):
    query: str
    results: list[SearchHit]


class PublishFileIn(BaseModel):
    path: str = Field(min_length=1, max_length=512)
    content: str
    encoding: Literal["utf-8", "base64"] = "utf-8"
    content_type: str | None = None


class PublishRequestIn(BaseModel):
    slug: str
    version: str
    display_name: str | None = None
    summary: str | None = None
    changelog: str = ""
    files: list[PublishFileIn] = Field(min_length=1)


class QualityOut(BaseModel):
    decision: str
    score: float
    reason: str
    trust_tier: str


class PublishResponse(BaseModel):
    item_id: str
    slug: str
    version: str
    version_id: str
    created: bool
    quality: QualityOut


class FileOut(BaseModel):
    path: str
    size: int
    sha256: str
    content_type: str | None = None


class ItemResponse(BaseModel):
    item_id: str
    slug: str
    display_name: str
    summary: str | None = None
    owner_user_id: str
    badges: list[str]
    latest_version: str | None = None
    files: list[FileOut] = Field(default_factory=list)


class DeleteResponse(BaseModel):
    ok: bool = True
    slug: str
    hard: bool
    reserved_until: str | None = None


class RestoreResponse(BaseModel):
    ok: bool = True
    slug: str


class ReclaimRequestIn(BaseModel):
    slug: str
    rightful_owner_user_id: str
    transfer_in_place: bool = False
    reason: str | None = None


class ReclaimResponse(BaseModel):
    ok: bool = True
    action: Literal["missing", "ownership_transferred", "already_owned", "reserved"]
    slug: str
    item_id: str | None = None
    previous_owner_user_id: str | None = None


class BadgesRequestIn(BaseModel):
    badges: list[Badge]


class BadgesResponse(BaseModel):
    slug: str
    badges: list[str]


class QualitySweepIn(BaseModel):
    dry_run: bool = True
    batch_size: int | None = None
    max_readme_bytes: int | None = None
    nomination_threshold: int | None = None


class NominationSweepIn(BaseModel):
    batch_size: int | None = None
    nomination_threshold: int | None = None


class BackfillIn(BaseModel):
    batch_size: int | None = None


class MaintenanceRunResponse(BaseModel):
    run_id: str
    task: str
    status: Literal["running", "done", "failed"]
    stats: dict[str, int]
    nominations: list[dict] = Field(default_factory=list)
    cursor: str | None = None
    error: str | None = None


class HealthResponse(BaseModel):
    status: str
    item_count: int
    index_size: int
