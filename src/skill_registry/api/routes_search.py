"""Skill search endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from skill_registry.api.dependencies import get_resolver
from skill_registry.api.errors import to_http_error
from skill_registry.api.rate_limiter import read_limit
from skill_registry.exceptions import RegistryError
from skill_registry.models.schemas import SearchHit, SearchResponse
from skill_registry.search.resolver import SearchResolver

router = APIRouter(prefix="/api/v1")


@router.get("/search", response_model=SearchResponse)
async def search(
    _limits: dict = Depends(read_limit),
    q: str = Query("", max_length=500),
    limit: int | None = Query(None),
    highlighted_only: bool = Query(False, alias="highlightedOnly"),
    resolver: SearchResolver = Depends(get_resolver),
) -> SearchResponse:
    try:
        results = await resolver.search(q, limit=limit, highlighted_only=highlighted_only)
    except RegistryError as e:
        raise to_http_error(e) from e

    return SearchResponse(
        query=q,
        results=[
            SearchHit(
                slug=r.item.slug,
                display_name=r.item.display_name,
                summary=r.item.summary,
                version=r.version.version if r.version else None,
                score=round(r.score, 6),
                badges=sorted(b.value for b in r.item.badges),
            )
            for r in results
        ],
    )
