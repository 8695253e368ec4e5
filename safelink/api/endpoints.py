"""
FastAPI Endpoints for SafeLink

This module defines all REST API endpoints with minimal logic.
Endpoints only handle:
- Request validation (Pydantic models)
- Rate limiting (RateGovernor for submissions, slowapi for reads)
- HTTP responses
- Delegating to the link service

Service exceptions are turned into status codes by safelink.api.errors.
"""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from safelink.api.schemas import ErrorResponse, ShortenRequest, ShortenResponse, StatsResponse
from safelink.core.exceptions import InvalidURLError, RateLimitExceededError
from safelink.core.rate_limit import RATE_LIMITS, client_identity, limiter
from safelink.core.resources import get_link_service, get_rate_governor, get_settings
from safelink.core.setting import Settings
from safelink.core.validators import validate_host_header
from safelink.services.link_service import LinkService
from safelink.services.rate_governor import RateGovernor

router = APIRouter()


async def enforce_submit_rate_limit(
    request: Request,
    governor: RateGovernor = Depends(get_rate_governor),
    settings: Settings = Depends(get_settings),
) -> str:
    """Admit the caller into the submission window or raise 429."""
    identity = client_identity(request)
    admission = await governor.admit(
        identity,
        settings.SUBMIT_RATE_WINDOW_SECONDS,
        settings.SUBMIT_RATE_LIMIT,
    )
    if not admission.allowed:
        raise RateLimitExceededError(identity, admission.retry_after)
    return identity


@router.post(
    "/shorten",
    response_model=ShortenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a short URL",
    description="Validates a long URL and returns a short code for it",
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    dependencies=[Depends(enforce_submit_rate_limit)],
)
async def create_short_url(
    body: ShortenRequest,
    service: LinkService = Depends(get_link_service),
) -> ShortenResponse:
    result = await service.submit(body.url)
    return ShortenResponse(
        short_code=result.short_code,
        short_url=result.short_url,
        original_url=result.original_url,
    )


@router.get(
    "/stats/{short_code}",
    response_model=StatsResponse,
    summary="Get URL statistics",
    description="Returns click count and timestamps for a live short URL",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
@limiter.limit(RATE_LIMITS["stats"])
async def get_url_stats(
    short_code: str,
    request: Request,  # Required for rate limiting
    service: LinkService = Depends(get_link_service),
) -> StatsResponse:
    stats = await service.stats(short_code)
    return StatsResponse(
        original_url=stats.original_url,
        short_code=stats.short_code,
        created_at=stats.created_at,
        expires_at=stats.expires_at,
        last_accessed_at=stats.last_accessed_at,
        click_count=stats.click_count,
    )


@router.get(
    "/{short_code}",
    status_code=status.HTTP_302_FOUND,
    summary="Redirect to original URL",
    description="Takes a short code and redirects to the original long URL",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
@limiter.limit(RATE_LIMITS["redirect"])
async def redirect_to_url(
    short_code: str,
    request: Request,
    service: LinkService = Depends(get_link_service),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    """
    Redirect to the original URL for a given short code.

    Raises:
        400: malformed code, unexpected Host header, or unsafe stored target
        404: code missing or expired
        429: slowapi limit exceeded
    """
    if settings.ENFORCE_HOST_HEADER and not validate_host_header(request.headers.get("host"), settings.own_domain):
        raise InvalidURLError(short_code, reason="invalid host header", rule="host")

    original_url = await service.resolve(short_code)

    return RedirectResponse(
        url=original_url,
        status_code=status.HTTP_302_FOUND
    )
