"""
Link Store

Owns the durable table of links and the cache of resolved redirects.

Store(original_url, expires_at, secret) -> short_code
- Reuses the newest live row for the same URL (best effort; concurrent
  submissions of one URL may create two rows, both valid)
- Otherwise inserts the row, derives the code from the generated id, writes
  it back and commits, all in one transaction

Resolve(short_code) -> original_url
- Cache-aside: cache hit skips the URL lookup, miss reads the live row
- Stored targets are re-checked (absolute http/https) before use
- Every resolution updates last_accessed_at and upserts the click counter,
  cache hits included
- Misses populate the cache for at most the remaining link lifetime

Failure kinds:
- ShortCodeNotFoundError: missing or expired (indistinguishable to callers)
- UnsafeRedirectError: stored target fails the re-check
- StorageError: database errors and timeouts, never swallowed
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import func, insert, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from safelink.core.exceptions import CacheError, ShortCodeNotFoundError, StorageError, UnsafeRedirectError
from safelink.core.validators import is_safe_redirect_target
from safelink.db.cache import KeyValueCache
from safelink.db.interface import DatabaseAdapter
from safelink.db.models import Link, LinkClick, utcnow
from safelink.services.shortcode import generate_short_code

logger = logging.getLogger(__name__)

T = TypeVar("T")

CACHE_KEY_PREFIX = "link:"


def cache_key(short_code: str) -> str:
    return f"{CACHE_KEY_PREFIX}{short_code}"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class LinkStats:
    short_code: str
    original_url: str
    created_at: datetime
    expires_at: Optional[datetime]
    last_accessed_at: Optional[datetime]
    click_count: int


class LinkStore(ABC):
    """Capability interface the link service depends on."""

    @abstractmethod
    async def store(self, original_url: str, expires_at: Optional[datetime], secret: str) -> str:
        """Persist a validated URL and return its short code."""
        pass

    @abstractmethod
    async def resolve(self, short_code: str) -> str:
        """Return the redirect target for a live code, recording the access."""
        pass

    @abstractmethod
    async def stats(self, short_code: str) -> LinkStats:
        pass

    async def ping(self) -> bool:
        return True


class SQLLinkStore(LinkStore):
    """
    Link store backed by the relational database and a key-value cache.

    Each call opens its own session and is bounded by ``timeout`` seconds;
    cancelling the calling task aborts the in-flight query.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker,
        cache: KeyValueCache,
        adapter: DatabaseAdapter,
        cache_ttl: float = 86400,
        timeout: float = 5.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_maker = session_maker
        self.cache = cache
        self.adapter = adapter
        self.cache_ttl = cache_ttl
        self.timeout = timeout
        self.clock = clock

    async def _bounded(self, operation: str, coro: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise StorageError(f"{operation} timed out after {self.timeout}s", original_error=e)
        except SQLAlchemyError as e:
            raise StorageError(f"{operation} failed", original_error=e)

    @staticmethod
    def _live(now: datetime):
        return or_(Link.expires_at.is_(None), Link.expires_at > now)

    async def store(self, original_url: str, expires_at: Optional[datetime], secret: str) -> str:
        return await self._bounded("store", self._store(original_url, expires_at, secret))

    async def _store(self, original_url: str, expires_at: Optional[datetime], secret: str) -> str:
        now = self.clock()
        async with self.session_maker() as session:
            try:
                statement = (
                    select(Link.short_code)
                    .where(
                        Link.original_url == original_url,
                        Link.short_code.is_not(None),
                        self._live(now),
                    )
                    .order_by(Link.created_at.desc(), Link.id.desc())
                    .limit(1)
                )
                existing = (await session.execute(statement)).scalar_one_or_none()
                if existing:
                    return existing

                result = await session.execute(
                    insert(Link)
                    .values(original_url=original_url, expires_at=expires_at, created_at=now)
                    .returning(Link.id)
                )
                link_id = result.scalar_one()
                short_code = generate_short_code(secret, link_id)

                await session.execute(
                    update(Link)
                    .where(Link.id == link_id)
                    .values(short_code=short_code)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        logger.info(f"Stored link id={link_id} code={short_code}")
        return short_code

    async def resolve(self, short_code: str) -> str:
        cached = await self._cached(short_code)
        if cached is not None and not is_safe_redirect_target(cached):
            await self._evict(short_code)
            raise UnsafeRedirectError(cached)

        target, expires_at = await self._bounded("resolve", self._resolve(short_code, cached))

        if cached is None:
            await self._populate(short_code, target, expires_at)
        return target

    async def _resolve(self, short_code: str, cached: Optional[str]) -> tuple[str, Optional[datetime]]:
        now = self.clock()
        async with self.session_maker() as session:
            try:
                if cached is not None:
                    target, expires_at = cached, None
                    result = await session.execute(
                        update(Link)
                        .where(Link.short_code == short_code, self._live(now))
                        .values(last_accessed_at=now)
                        .returning(Link.id)
                        .execution_options(synchronize_session=False)
                    )
                    link_id = result.scalar_one_or_none()
                    if link_id is None:
                        await self._evict(short_code)
                        raise ShortCodeNotFoundError(short_code)
                else:
                    result = await session.execute(
                        select(Link.id, Link.original_url, Link.expires_at)
                        .where(Link.short_code == short_code, self._live(now))
                    )
                    row = result.first()
                    if row is None:
                        raise ShortCodeNotFoundError(short_code)
                    link_id, target, expires_at = row
                    if not is_safe_redirect_target(target):
                        logger.warning(f"Stored target for {short_code} failed the redirect re-check")
                        raise UnsafeRedirectError(target)
                    await session.execute(
                        update(Link)
                        .where(Link.id == link_id)
                        .values(last_accessed_at=now)
                        .execution_options(synchronize_session=False)
                    )

                await session.execute(self.adapter.click_upsert(link_id))
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        return target, as_utc(expires_at)

    async def _cached(self, short_code: str) -> Optional[str]:
        try:
            return await self.cache.get(cache_key(short_code))
        except CacheError as e:
            logger.warning(f"Cache lookup for {short_code} failed, reading database: {e}")
            return None

    async def _evict(self, short_code: str) -> None:
        try:
            await self.cache.delete(cache_key(short_code))
        except CacheError as e:
            logger.warning(f"Cache eviction for {short_code} failed: {e}")

    async def _populate(self, short_code: str, target: str, expires_at: Optional[datetime]) -> None:
        ttl = float(self.cache_ttl)
        if expires_at is not None:
            ttl = min(ttl, (expires_at - self.clock()).total_seconds())
        if ttl <= 0:
            return
        try:
            await self.cache.set(cache_key(short_code), target, ttl)
        except CacheError as e:
            logger.warning(f"Caching {short_code} failed: {e}")

    async def stats(self, short_code: str) -> LinkStats:
        return await self._bounded("stats", self._stats(short_code))

    async def _stats(self, short_code: str) -> LinkStats:
        now = self.clock()
        async with self.session_maker() as session:
            statement = (
                select(
                    Link.short_code,
                    Link.original_url,
                    Link.created_at,
                    Link.expires_at,
                    Link.last_accessed_at,
                    func.coalesce(LinkClick.clicks, 0),
                )
                .outerjoin(LinkClick, LinkClick.link_id == Link.id)
                .where(Link.short_code == short_code, self._live(now))
            )
            row = (await session.execute(statement)).first()

        if row is None:
            raise ShortCodeNotFoundError(short_code)

        code, original_url, created_at, expires_at, last_accessed_at, clicks = row
        return LinkStats(
            short_code=code,
            original_url=original_url,
            created_at=as_utc(created_at),
            expires_at=as_utc(expires_at),
            last_accessed_at=as_utc(last_accessed_at),
            click_count=int(clicks),
        )

    async def ping(self) -> bool:
        try:
            async with self.session_maker() as session:
                await asyncio.wait_for(session.execute(select(1)), timeout=self.timeout)
            return True
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            logger.warning(f"Database ping failed: {e}")
            return False
