"""
Key-Value Cache Layer

Ephemeral storage shared by the redirect cache and the rate counters:
- Redirect cache entries live under ``link:<short_code>``
- Rate windows live under ``rate:<identity>``

Backends:
- RedisCache: redis.asyncio client, required when several instances must share
  counters and cached redirects
- MemoryCache: in-process dict with per-key deadlines, adequate for a single
  instance and for tests

Both backends expose the same atomic increment-with-expiry primitive, so callers
never know which one they are talking to.
"""

import asyncio
import logging
import time
from itertools import islice
from abc import ABC, abstractmethod
from typing import Callable, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from safelink.core.exceptions import CacheError

logger = logging.getLogger(__name__)


def _millis(ttl: float) -> int:
    return max(1, int(ttl * 1000))


class KeyValueCache(ABC):
    """Contract for the key-value store behind the redirect cache and rate windows."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: float) -> None:
        pass

    @abstractmethod
    async def set_if_absent(self, key: str, value: str, ttl: float) -> bool:
        """Create the key with a TTL only when it does not exist yet."""
        pass

    @abstractmethod
    async def incr(self, key: str) -> int:
        pass

    @abstractmethod
    async def incr_with_expiry(self, key: str, ttl: float) -> tuple[int, float]:
        """
        Create-if-absent a zero counter expiring after ``ttl``, then increment it.

        Returns:
            (post-increment value, seconds until the counter expires)
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

    @abstractmethod
    async def ping(self) -> bool:
        pass

    async def close(self) -> None:
        return None


class RedisCache(KeyValueCache):
    """Redis-backed cache. Every Redis failure surfaces as CacheError."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        timeout: float = 2.0,
        client: Optional[redis.Redis] = None,
    ):
        if client is None:
            if not redis_url:
                raise ValueError("redis_url is required when no client is given")
            client = redis.from_url(
                redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=timeout,
                socket_connect_timeout=timeout,
            )
        self.client = client

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.client.get(key)
        except RedisError as e:
            raise CacheError(f"get {key} failed", original_error=e)

    async def set(self, key: str, value: str, ttl: float) -> None:
        try:
            await self.client.set(key, value, px=_millis(ttl))
        except RedisError as e:
            raise CacheError(f"set {key} failed", original_error=e)

    async def set_if_absent(self, key: str, value: str, ttl: float) -> bool:
        try:
            return bool(await self.client.set(key, value, px=_millis(ttl), nx=True))
        except RedisError as e:
            raise CacheError(f"setnx {key} failed", original_error=e)

    async def incr(self, key: str) -> int:
        try:
            return int(await self.client.incr(key))
        except RedisError as e:
            raise CacheError(f"incr {key} failed", original_error=e)

    async def incr_with_expiry(self, key: str, ttl: float) -> tuple[int, float]:
        window_ms = _millis(ttl)
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.set(key, 0, px=window_ms, nx=True)
                pipe.incr(key)
                pipe.pttl(key)
                _, count, remaining_ms = await pipe.execute()
            if remaining_ms is None or remaining_ms < 0:
                # Counter lost its expiry (created outside this path); pin it to one window
                await self.client.pexpire(key, window_ms)
                remaining_ms = window_ms
        except RedisError as e:
            raise CacheError(f"incr_with_expiry {key} failed", original_error=e)
        return int(count), remaining_ms / 1000

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except RedisError as e:
            raise CacheError(f"delete {key} failed", original_error=e)

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("Redis cache connections closed")


class MemoryCache(KeyValueCache):
    """
    In-process cache with explicit per-key deadlines.

    A single asyncio lock serializes mutations, which makes incr_with_expiry
    atomic for every task on the event loop. Expired keys are dropped lazily on
    access and swept once the map holds ``max_entries`` keys; if none has expired,
    the oldest writes are evicted.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 100_000,
    ):
        self._entries: dict[str, tuple[str, Optional[float]]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self.max_entries = max_entries

    def _live(self, key: str, now: float) -> Optional[tuple[str, Optional[float]]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        deadline = entry[1]
        if deadline is not None and deadline <= now:
            del self._entries[key]
            return None
        return entry

    def _sweep(self, now: float) -> None:
        """Make room for one more key: drop expired entries, then the oldest writes."""
        if len(self._entries) < self.max_entries:
            return
        expired = [k for k, (_, deadline) in self._entries.items() if deadline is not None and deadline <= now]
        for key in expired:
            del self._entries[key]
        if len(self._entries) < self.max_entries:
            return
        # Evict down to 90% of the cap
        overflow = len(self._entries) - int(self.max_entries * 0.9)
        if overflow > 0:
            for key in list(islice(self._entries, overflow)):
                del self._entries[key]

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            entry = self._live(key, self._clock())
            return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl: float) -> None:
        async with self._lock:
            now = self._clock()
            self._entries.pop(key, None)
            self._sweep(now)
            self._entries[key] = (str(value), now + ttl)

    async def set_if_absent(self, key: str, value: str, ttl: float) -> bool:
        async with self._lock:
            now = self._clock()
            if self._live(key, now) is not None:
                return False
            self._sweep(now)
            self._entries[key] = (str(value), now + ttl)
            return True

    def _incr_locked(self, key: str, now: float) -> tuple[int, Optional[float]]:
        entry = self._live(key, now)
        value, deadline = entry if entry else ("0", None)
        try:
            count = int(value) + 1
        except ValueError as e:
            raise CacheError(f"value at {key} is not an integer", original_error=e)
        self._entries[key] = (str(count), deadline)
        return count, deadline

    async def incr(self, key: str) -> int:
        async with self._lock:
            count, _ = self._incr_locked(key, self._clock())
            return count

    async def incr_with_expiry(self, key: str, ttl: float) -> tuple[int, float]:
        async with self._lock:
            now = self._clock()
            if self._live(key, now) is None:
                self._sweep(now)
                self._entries[key] = ("0", now + ttl)
            count, deadline = self._incr_locked(key, now)
            if deadline is None:
                deadline = now + ttl
                self._entries[key] = (str(count), deadline)
            return count, max(0.0, deadline - now)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._entries.clear()


def build_cache(redis_url: Optional[str], timeout: float = 2.0) -> KeyValueCache:
    """Redis when a URL is configured, in-process memory otherwise."""
    if redis_url:
        logger.info("Using Redis cache")
        return RedisCache(redis_url, timeout=timeout)
    logger.info("Using in-memory cache (single instance only)")
    return MemoryCache()
