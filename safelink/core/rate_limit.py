"""
Rate Limiting Configuration

This module derives the caller identity used for rate limiting and configures
the slowapi limiter guarding read endpoints.

Design Decisions:
- Identity precedence: first X-Forwarded-For hop, then the connection's IP,
  then the device_id cookie, then a shared "anonymous" bucket
- Submissions go through the RateGovernor (fixed window with retry hint)
- Redirect and stats endpoints keep coarse per-minute slowapi limits
- Same identity function for both, so a caller is one bucket everywhere
"""

from typing import Optional

from slowapi import Limiter
from starlette.requests import Request

from safelink.core.setting import settings

DEVICE_COOKIE_NAME = "device_id"


def get_rate_limit_identifier(
    client_host: Optional[str],
    forwarded_for: Optional[str] = None,
    device_id: Optional[str] = None,
) -> str:
    """
    Build the rate limit identity for a request.

    Args:
        client_host: IP of the direct connection, if known
        forwarded_for: Raw X-Forwarded-For header value
        device_id: Value of the device cookie

    Returns:
        "ip:<addr>", "device:<id>" or "anonymous"
    """
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return f"ip:{first_hop}"

    if client_host:
        return f"ip:{client_host}"

    if device_id:
        return f"device:{device_id}"

    return "anonymous"


def client_identity(request: Request) -> str:
    """Identity of the caller behind a Starlette request."""
    device_id = getattr(request.state, "device_id", None) or request.cookies.get(DEVICE_COOKIE_NAME)
    return get_rate_limit_identifier(
        request.client.host if request.client else None,
        request.headers.get("X-Forwarded-For"),
        device_id,
    )


limiter = Limiter(
    key_func=client_identity,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
)

RATE_LIMITS = {
    "redirect": settings.REDIRECT_RATE_LIMIT,
    "stats": settings.STATS_RATE_LIMIT,
}
