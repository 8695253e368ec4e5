"""
Exception Handlers

Maps service-layer exceptions to HTTP responses:
- InvalidURLError (incl. UnsafeRedirectError) -> 400 with reason and rule
- Request body validation errors -> 400
- ShortCodeNotFoundError -> 404
- RateLimitExceededError -> 429 with Retry-After
- StorageError -> 500 with a generic body; the cause is only logged
"""

import logging
import math

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from safelink.core.exceptions import (
    InvalidURLError,
    RateLimitExceededError,
    ShortCodeNotFoundError,
    StorageError,
)

logger = logging.getLogger(__name__)

GENERIC_ERROR = "something went wrong"


async def invalid_url_handler(request: Request, exc: InvalidURLError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": exc.reason, "rule": exc.rule},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid request body")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": f"{location}: {message}" if location else message, "rule": "request"},
    )


async def not_found_handler(request: Request, exc: ShortCodeNotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": "not found"},
    )


async def rate_limited_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    retry_after = max(1, math.ceil(exc.retry_after))
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"detail": "rate limit exceeded"},
        headers={"Retry-After": str(retry_after)},
    )


async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "-")
    logger.error(
        f"[{request_id}] {request.method} {request.url.path} failed: {exc}",
        exc_info=exc.original_error or exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": GENERIC_ERROR},
    )


def add_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InvalidURLError, invalid_url_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ShortCodeNotFoundError, not_found_handler)
    app.add_exception_handler(RateLimitExceededError, rate_limited_handler)
    app.add_exception_handler(StorageError, storage_error_handler)
