"""Translation of domain exceptions into HTTP errors."""

from __future__ import annotations

from fastapi import HTTPException, status

from skill_registry.exceptions import (
    ConflictError,
    DependencyError,
    InputError,
    NotFoundError,
    PermissionDeniedError,
    PublishThrottledError,
    QualityRejectedError,
    RegistryError,
    WriteConflictError,
)


def to_http_error(error: RegistryError) -> HTTPException:
    if isinstance(error, InputError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, PermissionDeniedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(error))
    if isinstance(error, (ConflictError, WriteConflictError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, QualityRejectedError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Skill content did not pass quality review.", "reason": error.reason, "score": error.score},
        )
    if isinstance(error, PublishThrottledError):
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(error),
            headers={"Retry-After": "3600"},
        )
    if isinstance(error, DependencyError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(error),
            headers={"Retry-After": "1"},
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))
