"""Request scoping and the HTTP header contract for rate limiting."""

from __future__ import annotations

import hashlib
import math
from collections.abc import Mapping
from enum import Enum

from skill_registry.config.settings import Settings
from skill_registry.models.domain import RateLimitResult
from skill_registry.observability.metrics import log_rate_limit_denied
from skill_registry.ratelimit.limiter import RateLimiter

FORWARDED_IP_HEADERS = ("x-real-ip", "x-forwarded-for", "fly-client-ip")
UNKNOWN_IP = "unknown"


class RateLimitKind(str, Enum):
    READ = "read"
    WRITE = "write"
    DOWNLOAD = "download"


def limits_for(kind: RateLimitKind, settings: Settings) -> tuple[int, int]:
    """(ip limit, key limit) for a request class."""
    return (
        getattr(settings, f"rate_limit_{kind.value}_ip"),
        getattr(settings, f"rate_limit_{kind.value}_key"),
    )


def _first_value(value: str | None) -> str | None:
    if not value:
        return None
    first = value.split(",")[0].strip()
    return first or None


def get_client_ip(headers: Mapping[str, str], trust_forwarded: bool) -> str:
    ip = _first_value(headers.get("cf-connecting-ip"))
    if ip:
        return ip
    if trust_forwarded:
        for name in FORWARDED_IP_HEADERS:
            ip = _first_value(headers.get(name))
            if ip:
                return ip
    return UNKNOWN_IP


def parse_bearer_token(headers: Mapping[str, str]) -> str | None:
    value = headers.get("authorization")
    if not value:
        return None
    scheme, _, token = value.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def pick_most_restrictive(
    primary: RateLimitResult, secondary: RateLimitResult | None
) -> RateLimitResult:
    if not primary.allowed:
        return primary
    if secondary is None:
        return primary
    if not secondary.allowed:
        return secondary
    return secondary if secondary.remaining < primary.remaining else primary


def retry_after_seconds(result: RateLimitResult, now_ms: int) -> int:
    return max(1, math.ceil((result.reset_at - now_ms) / 1000))


def rate_limit_headers(result: RateLimitResult, now_ms: int) -> dict[str, str]:
    delay = retry_after_seconds(result, now_ms)
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(math.ceil(result.reset_at / 1000)),
        "RateLimit-Limit": str(result.limit),
        "RateLimit-Remaining": str(result.remaining),
        "RateLimit-Reset": str(delay),
    }
    if not result.allowed:
        headers["Retry-After"] = str(delay)
    return headers


async def apply_rate_limit(
    limiter: RateLimiter,
    settings: Settings,
    headers: Mapping[str, str],
    kind: RateLimitKind,
) -> tuple[RateLimitResult, dict[str, str]]:
    """Charge the IP scope and, when a bearer token is present, the key scope.

    Returns the most restrictive outcome and the headers describing it.
    """
    ip_limit, key_limit = limits_for(kind, settings)
    window_ms = settings.rate_limit_window_ms
    ip = get_client_ip(headers, settings.trust_forwarded_ips)
    ip_result = await limiter.check_and_consume(f"ip:{ip}", ip_limit, window_ms)

    key_result = None
    token = parse_bearer_token(headers)
    if token:
        key_result = await limiter.check_and_consume(f"key:{hash_token(token)}", key_limit, window_ms)

    chosen = pick_most_restrictive(ip_result, key_result)
    if not chosen.allowed:
        scope = "ip" if chosen is ip_result else "key"
        log_rate_limit_denied(kind.value, scope, chosen.limit, chosen.reset_at)
    return chosen, rate_limit_headers(chosen, limiter.now_ms())
