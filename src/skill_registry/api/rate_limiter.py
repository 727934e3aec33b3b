"""Per-route rate limit enforcement over the shared fixed-window limiter."""

from __future__ import annotations

from fastapi import Request, Response
from fastapi.responses import PlainTextResponse

from skill_registry.ratelimit.http import RateLimitKind, apply_rate_limit


class RateLimitExceeded(Exception):
    def __init__(self, headers: dict[str, str]) -> None:
        super().__init__("Rate limit exceeded")
        self.headers = headers


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> PlainTextResponse:
    return PlainTextResponse(
        "Rate limit exceeded",
        status_code=429,
        headers={**exc.headers, "Cache-Control": "no-store"},
    )


def enforce_rate_limit(kind: RateLimitKind):
    """FastAPI dependency factory charging the caller's IP and token scopes.

    Returns the headers describing the remaining budget; they are also
    attached to the route's response.
    """

    async def dependency(request: Request, response: Response) -> dict[str, str]:
        result, headers = await apply_rate_limit(
            request.app.state.rate_limiter,
            request.app.state.settings,
            request.headers,
            kind,
        )
        if not result.allowed:
            raise RateLimitExceeded(headers)
        response.headers.update(headers)
        return headers

    return dependency


read_limit = enforce_rate_limit(RateLimitKind.READ)
write_limit = enforce_rate_limit(RateLimitKind.WRITE)
download_limit = enforce_rate_limit(RateLimitKind.DOWNLOAD)
