"""
Process-wide Resources

This module manages the shared instances built once per application process:
- KeyValueCache (Redis or in-memory)
- LinkStore (database + cache)
- RateGovernor (submission windows)
- LinkService (submit/resolve flows)

Design:
- Initialized on application startup, released on shutdown
- Endpoints reach them through the get_* dependencies, which tests override
"""

import logging
from typing import Optional

from safelink.core.exceptions import StorageError
from safelink.core.setting import DEFAULT_SECRET, Settings, settings
from safelink.db.cache import KeyValueCache, build_cache
from safelink.db.session import async_session_maker, db_adapter, engine
from safelink.services.link_service import LinkService
from safelink.services.link_store import LinkStore, SQLLinkStore
from safelink.services.rate_governor import RateGovernor

logger = logging.getLogger(__name__)

_cache: Optional[KeyValueCache] = None
_store: Optional[LinkStore] = None
_governor: Optional[RateGovernor] = None
_service: Optional[LinkService] = None


async def initialize_resources() -> None:
    """Build cache, store, governor and service for this process."""
    global _cache, _store, _governor, _service

    if _service is not None:
        logger.warning("Resources already initialized")
        return

    if settings.SECRET == DEFAULT_SECRET and not settings.is_development:
        logger.warning("SECRET is the built-in default; short codes are predictable")

    _cache = build_cache(settings.REDIS_URL, timeout=settings.REDIS_TIMEOUT_SECONDS)
    if not await _cache.ping():
        logger.warning("Cache backend did not answer ping; redirects fall back to the database")

    _store = SQLLinkStore(
        session_maker=async_session_maker,
        cache=_cache,
        adapter=db_adapter,
        cache_ttl=settings.CACHE_TTL_SECONDS,
        timeout=settings.DB_TIMEOUT_SECONDS,
    )
    _governor = RateGovernor(_cache)
    _service = LinkService(_store, settings)

    logger.info(
        f"Resources initialized: dialect={db_adapter.get_dialect_name()}, "
        f"cache={type(_cache).__name__}, own_domain={settings.own_domain}"
    )


async def shutdown_resources() -> None:
    """Close the cache and dispose of the database engine."""
    global _cache, _store, _governor, _service

    if _cache is not None:
        try:
            await _cache.close()
        except StorageError as e:
            logger.warning(f"Failed to close cache cleanly: {e}")

    await engine.dispose()
    logger.info("Database engine disposed")

    _cache = _store = _governor = _service = None


def _require(resource, name: str):
    if resource is None:
        raise StorageError(f"{name} is not initialized")
    return resource


async def get_link_service() -> LinkService:
    return _require(_service, "link service")


async def get_rate_governor() -> RateGovernor:
    return _require(_governor, "rate governor")


async def get_cache() -> KeyValueCache:
    return _require(_cache, "cache")


async def get_link_store() -> LinkStore:
    return _require(_store, "link store")


def get_settings() -> Settings:
    return settings
