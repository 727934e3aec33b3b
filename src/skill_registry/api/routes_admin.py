"""Admin endpoints: slug reclaim, badges and maintenance sweeps."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from skill_registry.api.auth import require_admin
from skill_registry.api.dependencies import get_maintenance, get_service
from skill_registry.api.errors import to_http_error
from skill_registry.api.rate_limiter import write_limit
from skill_registry.exceptions import RegistryError
from skill_registry.jobs.maintenance import MaintenanceJobs
from skill_registry.models.domain import User
from skill_registry.models.schemas import (
    BackfillIn,
    BadgesRequestIn,
    BadgesResponse,
    MaintenanceRunResponse,
    NominationSweepIn,
    QualitySweepIn,
    ReclaimRequestIn,
    ReclaimResponse,
)
from skill_registry.registry.service import RegistryService

router = APIRouter(prefix="/api/v1/admin", dependencies=[Depends(write_limit)])


def _run_response(maintenance: MaintenanceJobs, run_id: str) -> MaintenanceRunResponse:
    run = maintenance.runs.get(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail=f"Maintenance run {run_id} not found")
    return MaintenanceRunResponse(
        run_id=run["run_id"],
        task=run["task"],
        status=run["status"],
        stats=run["stats"],
        nominations=run["nominations"],
        cursor=run.get("cursor"),
        error=run.get("error"),
    )


@router.post("/reclaim", response_model=ReclaimResponse)
async def reclaim(
    body: ReclaimRequestIn,
    admin: User = Depends(require_admin),
    service: RegistryService = Depends(get_service),
) -> ReclaimResponse:
    try:
        outcome = await service.reclaim_slug(
            admin,
            body.slug,
            body.rightful_owner_user_id,
            transfer_in_place=body.transfer_in_place,
            reason=body.reason,
        )
    except RegistryError as e:
        raise to_http_error(e) from e
    return ReclaimResponse(
        action=outcome.action,
        slug=outcome.slug,
        item_id=outcome.item_id,
        previous_owner_user_id=outcome.previous_owner_user_id,
    )


@router.post("/skills/{slug}/badges", response_model=BadgesResponse)
async def set_badges(
    slug: str,
    body: BadgesRequestIn,
    admin: User = Depends(require_admin),
    service: RegistryService = Depends(get_service),
) -> BadgesResponse:
    try:
        item = await service.set_badges(admin, slug, set(body.badges))
    except RegistryError as e:
        raise to_http_error(e) from e
    return BadgesResponse(slug=item.slug, badges=sorted(b.value for b in item.badges))


@router.post("/maintenance/quality-sweep", response_model=MaintenanceRunResponse, status_code=202)
async def start_quality_sweep(
    body: QualitySweepIn,
    admin: User = Depends(require_admin),
    maintenance: MaintenanceJobs = Depends(get_maintenance),
) -> MaintenanceRunResponse:
    run_id = maintenance.start_quality_sweep(
        admin,
        dry_run=body.dry_run,
        batch_size=body.batch_size,
        max_readme_bytes=body.max_readme_bytes,
        nomination_threshold=body.nomination_threshold,
    )
    return _run_response(maintenance, run_id)


@router.post("/maintenance/nominations", response_model=MaintenanceRunResponse, status_code=202)
async def start_nomination_sweep(
    body: NominationSweepIn,
    admin: User = Depends(require_admin),
    maintenance: MaintenanceJobs = Depends(get_maintenance),
) -> MaintenanceRunResponse:
    run_id = maintenance.start_nomination_sweep(
        admin, batch_size=body.batch_size, nomination_threshold=body.nomination_threshold
    )
    return _run_response(maintenance, run_id)


@router.post("/maintenance/embedding-owners", response_model=MaintenanceRunResponse, status_code=202)
async def start_embedding_owner_backfill(
    body: BackfillIn,
    admin: User = Depends(require_admin),
    maintenance: MaintenanceJobs = Depends(get_maintenance),
) -> MaintenanceRunResponse:
    run_id = maintenance.start_embedding_owner_backfill(admin, batch_size=body.batch_size)
    return _run_response(maintenance, run_id)


@router.get("/maintenance/runs/{run_id}", response_model=MaintenanceRunResponse)
async def get_run(
    run_id: str,
    _admin: User = Depends(require_admin),
    maintenance: MaintenanceJobs = Depends(get_maintenance),
) -> MaintenanceRunResponse:
    return _run_response(maintenance, run_id)


@router.post(
    "/maintenance/runs/{run_id}/resume", response_model=MaintenanceRunResponse, status_code=202
)
async def resume_run(
    run_id: str,
    _admin: User = Depends(require_admin),
    maintenance: MaintenanceJobs = Depends(get_maintenance),
) -> MaintenanceRunResponse:
    try:
        maintenance.resume_run(run_id)
    except RegistryError as e:
        raise to_http_error(e) from e
    return _run_response(maintenance, run_id)
