"""
In-Memory Link Store

Dict-backed LinkStore with the same dedup, expiry and bookkeeping rules as
SQLLinkStore. Used as the test double behind the HTTP layer and for quick local
runs; it is not shared between processes.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from safelink.core.exceptions import ShortCodeNotFoundError, UnsafeRedirectError
from safelink.core.validators import is_safe_redirect_target
from safelink.db.models import utcnow
from safelink.services.link_store import LinkStats, LinkStore
from safelink.services.shortcode import generate_short_code


@dataclass
class _Row:
    id: int
    original_url: str
    short_code: str
    created_at: datetime
    expires_at: Optional[datetime]
    last_accessed_at: Optional[datetime] = None
    clicks: int = 0


class InMemoryLinkStore(LinkStore):

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock
        self._rows: dict[str, _Row] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    @staticmethod
    def _is_live(row: _Row, now: datetime) -> bool:
        return row.expires_at is None or row.expires_at > now

    def _live_row(self, short_code: str, now: datetime) -> _Row:
        row = self._rows.get(short_code)
        if row is None or not self._is_live(row, now):
            raise ShortCodeNotFoundError(short_code)
        return row

    async def store(self, original_url: str, expires_at: Optional[datetime], secret: str) -> str:
        async with self._lock:
            now = self.clock()
            candidates = [
                row for row in self._rows.values()
                if row.original_url == original_url and self._is_live(row, now)
            ]
            if candidates:
                return max(candidates, key=lambda row: (row.created_at, row.id)).short_code

            link_id = self._next_id
            self._next_id += 1
            short_code = generate_short_code(secret, link_id)
            self._rows[short_code] = _Row(
                id=link_id,
                original_url=original_url,
                short_code=short_code,
                created_at=now,
                expires_at=expires_at,
            )
            return short_code

    async def resolve(self, short_code: str) -> str:
        async with self._lock:
            now = self.clock()
            row = self._live_row(short_code, now)
            if not is_safe_redirect_target(row.original_url):
                raise UnsafeRedirectError(row.original_url)
            row.last_accessed_at = now
            row.clicks += 1
            return row.original_url

    async def stats(self, short_code: str) -> LinkStats:
        async with self._lock:
            row = self._live_row(short_code, self.clock())
            return LinkStats(
                short_code=row.short_code,
                original_url=row.original_url,
                created_at=row.created_at,
                expires_at=row.expires_at,
                last_accessed_at=row.last_accessed_at,
                click_count=row.clicks,
            )

    def __len__(self) -> int:
        return len(self._rows)
