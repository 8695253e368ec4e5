"""
Device Identity Middleware

Issues a long-lived ``device_id`` cookie (random UUID) to callers that don't
present a valid one, and exposes the value as ``request.state.device_id``.
The rate limit identity falls back to it when no IP can be derived.
"""

import uuid
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from safelink.core.rate_limit import DEVICE_COOKIE_NAME

COOKIE_MAX_AGE = 60 * 60 * 24 * 365


def parse_device_id(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        return str(uuid.UUID(value))
    except ValueError:
        return None


class DeviceIdMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        device_id = parse_device_id(request.cookies.get(DEVICE_COOKIE_NAME))
        issued = device_id is None
        if issued:
            device_id = str(uuid.uuid4())
        request.state.device_id = device_id

        response = await call_next(request)

        if issued:
            response.set_cookie(
                DEVICE_COOKIE_NAME,
                device_id,
                max_age=COOKIE_MAX_AGE,
                path="/",
                httponly=True,
                samesite="lax",
                secure=request.url.scheme == "https",
            )
        return response
