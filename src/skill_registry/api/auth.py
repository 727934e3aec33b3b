"""Bearer token authentication: token hash to user lookup."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from skill_registry.models.domain import User
from skill_registry.observability.logger import get_logger
from skill_registry.ratelimit.http import hash_token

logger = get_logger("auth")

security = HTTPBearer(auto_error=False)


async def current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User | None:
    if credentials is None or not credentials.credentials:
        return None
    store = request.app.state.store
    return await store.get_user_by_token_hash(hash_token(credentials.credentials))


async def require_user(user: User | None = Depends(current_user)) -> User:
    """FastAPI dependency: the authenticated caller, or 401."""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Valid API token required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def require_admin(user: User = Depends(require_user)) -> User:
    if not user.is_admin:
        logger.warning("admin_required", user_id=user.user_id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return user
