"""
FastAPI Application Entry Point

This module initializes the FastAPI application and configures:
- API routes
- Middleware (logging, device cookie, security headers, CORS)
- Exception handlers (service errors, slowapi limits)
- Application metadata

Design Decisions:
- Clean separation: Routes, middleware, and app config are separate
- Shared resources are built on startup and released on shutdown
"""

from fastapi import Depends, FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from safelink.api import endpoints
from safelink.api.errors import add_exception_handlers
from safelink.api.schemas import HealthResponse
from safelink.core.logging_config import setup_logging
from safelink.core.rate_limit import limiter
from safelink.core.resources import get_cache, get_link_store, initialize_resources, shutdown_resources
from safelink.core.setting import settings
from safelink.db.cache import KeyValueCache
from safelink.middleware.device import DeviceIdMiddleware
from safelink.middleware.headers import SecurityHeadersMiddleware
from safelink.middleware.logging import add_logging_middleware
from safelink.services.link_store import LinkStore

# Initialize FastAPI application
# Title and description are used in auto-generated API documentation
app = FastAPI(
    title="SafeLink URL Shortener",
    description="A URL shortening service that refuses unsafe redirect targets",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI documentation
    redoc_url="/redoc",  # ReDoc documentation
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
add_exception_handlers(app)

# Last added is outermost: CORS, then logging, then the device cookie and security headers
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(DeviceIdMiddleware)
add_logging_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# Health endpoints defined before router to match before catch-all route
@app.get("/", tags=["Health"])
async def root():
    """
    Root endpoint for health checks.

    Returns:
        Simple JSON response indicating service is running
    """
    return {
        "message": "SafeLink URL Shortener",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health", tags=["Health"], response_model=HealthResponse)
async def health_check(
    store: LinkStore = Depends(get_link_store),
    cache: KeyValueCache = Depends(get_cache),
):
    """
    Health check endpoint for monitoring.

    The database is required; a dead cache only degrades redirects, so it is
    reported without failing the check.
    """
    database_ok = await store.ping()
    cache_ok = await cache.ping()
    body = HealthResponse(
        status="healthy" if database_ok else "unhealthy",
        database=database_ok,
        cache=cache_ok,
    )
    code = status.HTTP_200_OK if database_ok else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=code, content=body.model_dump())


app.include_router(endpoints.router, tags=["URL Shortener"])


@app.on_event("startup")
async def startup_event():
    """Initialize logging and shared resources on startup."""
    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    await initialize_resources()


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    await shutdown_resources()
