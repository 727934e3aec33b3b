"""Skill publish, read, delete, restore and file download endpoints."""

from __future__ import annotations

import base64
import binascii

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from skill_registry.api.auth import require_user
from skill_registry.api.dependencies import get_service
from skill_registry.api.errors import to_http_error
from skill_registry.api.rate_limiter import download_limit, read_limit, write_limit
from skill_registry.exceptions import RegistryError
from skill_registry.models.domain import User
from skill_registry.models.schemas import (
    DeleteResponse,
    FileOut,
    ItemResponse,
    PublishFileIn,
    PublishRequestIn,
    PublishResponse,
    QualityOut,
    RestoreResponse,
)
from skill_registry.registry.service import PublishFile, PublishRequest, RegistryService

router = APIRouter(prefix="/api/v1/skills")


def _decode_file(upload: PublishFileIn) -> PublishFile:
    if upload.encoding == "base64":
        try:
            content = base64.b64decode(upload.content, validate=True)
        except binascii.Error:
            raise HTTPException(status_code=400, detail=f"File {upload.path} is not valid base64")
    else:
        content = upload.content.encode("utf-8")
    return PublishFile(path=upload.path, content=content, content_type=upload.content_type)


@router.post("", response_model=PublishResponse)
async def publish(
    body: PublishRequestIn,
    _limits: dict = Depends(write_limit),
    user: User = Depends(require_user),
    service: RegistryService = Depends(get_service),
) -> PublishResponse:
    request = PublishRequest(
        slug=body.slug,
        version=body.version,
        files=[_decode_file(f) for f in body.files],
        display_name=body.display_name,
        summary=body.summary,
        changelog=body.changelog,
    )
    try:
        outcome = await service.publish_version(user, request)
    except RegistryError as e:
        raise to_http_error(e) from e

    return PublishResponse(
        item_id=outcome.item.item_id,
        slug=outcome.item.slug,
        version=outcome.version.version,
        version_id=outcome.version.version_id,
        created=outcome.created,
        quality=QualityOut(
            decision=outcome.quality.decision.value,
            score=outcome.quality.score,
            reason=outcome.quality.reason,
            trust_tier=outcome.quality.trust_tier.value,
        ),
    )


@router.get("/{slug}", response_model=ItemResponse)
async def get_skill(
    slug: str,
    _limits: dict = Depends(read_limit),
    service: RegistryService = Depends(get_service),
) -> ItemResponse:
    try:
        item, version = await service.get_public_item(slug)
    except RegistryError as e:
        raise to_http_error(e) from e
    return ItemResponse(
        item_id=item.item_id,
        slug=item.slug,
        display_name=item.display_name,
        summary=item.summary,
        owner_user_id=item.owner_user_id,
        badges=sorted(b.value for b in item.badges),
        latest_version=version.version if version else None,
        files=[
            FileOut(path=f.path, size=f.size, sha256=f.sha256, content_type=f.content_type)
            for f in (version.files if version else [])
        ],
    )


@router.delete("/{slug}", response_model=DeleteResponse)
async def delete_skill(
    slug: str,
    hard: bool = Query(False),
    _limits: dict = Depends(write_limit),
    user: User = Depends(require_user),
    service: RegistryService = Depends(get_service),
) -> DeleteResponse:
    try:
        item = await service.delete_item(user, slug, hard=hard)
        reservation = await service.active_reservation(item.slug)
    except RegistryError as e:
        raise to_http_error(e) from e
    return DeleteResponse(
        slug=item.slug,
        hard=hard,
        reserved_until=reservation.expires_at.isoformat() if reservation else None,
    )


@router.post("/{slug}/undelete", response_model=RestoreResponse)
async def undelete_skill(
    slug: str,
    _limits: dict = Depends(write_limit),
    user: User = Depends(require_user),
    service: RegistryService = Depends(get_service),
) -> RestoreResponse:
    try:
        item = await service.restore_item(user, slug)
    except RegistryError as e:
        raise to_http_error(e) from e
    return RestoreResponse(slug=item.slug)


@router.get("/{slug}/file")
async def download_file(
    slug: str,
    path: str = Query(..., min_length=1),
    limits: dict = Depends(download_limit),
    service: RegistryService = Depends(get_service),
) -> Response:
    try:
        file, data = await service.read_file(slug, path)
    except RegistryError as e:
        raise to_http_error(e) from e
    return Response(
        content=data,
        media_type=file.content_type or "text/plain; charset=utf-8",
        headers={**limits, "ETag": f'"{file.sha256}"'},
    )
