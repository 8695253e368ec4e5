"""
Link Service

Sequences the submit and resolve flows over the validator, the link store and
the short code generator. Endpoints stay thin and translate the exceptions
raised here into HTTP responses.

Submit: validate -> compute expiry -> store (dedup or insert)
Resolve: sanitize code -> store.resolve (cache-aside + bookkeeping)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from safelink.core.exceptions import InvalidURLError
from safelink.core.setting import Settings
from safelink.core.validators import HostResolver, sanitize_short_code, validate_url
from safelink.db.models import utcnow
from safelink.services.link_store import LinkStats, LinkStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmitResult:
    short_code: str
    short_url: str
    original_url: str


class LinkService:
    """Submit and resolve flows on top of a LinkStore."""

    def __init__(
        self,
        store: LinkStore,
        settings: Settings,
        resolver: Optional[HostResolver] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.settings = settings
        self.resolver = resolver
        self.clock = clock

    def short_url(self, short_code: str) -> str:
        return f"{self.settings.BASE_URL.rstrip('/')}/{short_code}"

    def expiry(self) -> Optional[datetime]:
        if self.settings.LINK_EXPIRY_DAYS <= 0:
            return None
        return self.clock() + timedelta(days=self.settings.LINK_EXPIRY_DAYS)

    async def submit(self, raw_url: str) -> SubmitResult:
        """
        Validate and store a URL.

        Raises:
            InvalidURLError: URL rejected by the safety pipeline
            StorageError: database failure or timeout
        """
        try:
            safe_url = await validate_url(
                raw_url,
                self.settings.own_domain,
                resolver=self.resolver,
                dns_timeout=self.settings.DNS_TIMEOUT_SECONDS,
            )
        except InvalidURLError as e:
            logger.info(f"Rejected submission ({e.rule}): {e.reason}")
            raise

        short_code = await self.store.store(safe_url, self.expiry(), self.settings.SECRET)
        return SubmitResult(
            short_code=short_code,
            short_url=self.short_url(short_code),
            original_url=safe_url,
        )

    def _checked_code(self, short_code: str) -> str:
        sanitized = sanitize_short_code(short_code)
        if not sanitized:
            raise InvalidURLError(
                short_code,
                reason="Invalid short code format. Short codes contain only letters, digits, '-' and '_'.",
                rule="short_code",
            )
        return sanitized

    async def resolve(self, short_code: str) -> str:
        """
        Resolve a code to its redirect target.

        Raises:
            InvalidURLError: malformed code or unsafe stored target
            ShortCodeNotFoundError: missing or expired
            StorageError: database failure or timeout
        """
        return await self.store.resolve(self._checked_code(short_code))

    async def stats(self, short_code: str) -> LinkStats:
        return await self.store.stats(self._checked_code(short_code))
