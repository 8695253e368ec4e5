"""
Rate Governor

Fixed window counter per caller identity, stored in the shared key-value cache:

1. Create-if-absent a zero counter expiring after the window
2. Increment it atomically
3. Deny when the post-increment value exceeds the limit, reporting the time
   left in the window as the retry hint

The window starts with the first request and is not smoothed, so a caller can
get ``limit`` requests through at the end of one window and ``limit`` more at
the start of the next. That is the price of O(1) state per identity.

With MemoryCache the windows are per process; with RedisCache they are
enforced service-wide.
"""

import logging
from dataclasses import dataclass

from safelink.db.cache import KeyValueCache

logger = logging.getLogger(__name__)

RATE_KEY_PREFIX = "rate:"


@dataclass(frozen=True)
class Admission:
    allowed: bool
    retry_after: float
    count: int


class RateGovernor:
    """Admission checks against fixed windows in a KeyValueCache."""

    def __init__(self, cache: KeyValueCache, prefix: str = RATE_KEY_PREFIX):
        self.cache = cache
        self.prefix = prefix

    async def admit(self, identity: str, window_seconds: float, limit: int) -> Admission:
        """
        Count one request for ``identity`` and decide whether it may proceed.

        Raises:
            CacheError: when the backing store is unreachable
        """
        count, remaining = await self.cache.incr_with_expiry(f"{self.prefix}{identity}", window_seconds)
        if count > limit:
            logger.info(f"Rate limit hit for {identity}: {count}/{limit}, retry in {remaining:.1f}s")
            return Admission(allowed=False, retry_after=remaining, count=count)
        return Admission(allowed=True, retry_after=0.0, count=count)
