"""
Tests for fixed-window admission and rate limit identities.
"""

import pytest

from safelink.services.rate_governor import RateGovernor
from safelink.core.rate_limit import get_rate_limit_identifier


class TestRateGovernor:

    @pytest.mark.asyncio
    async def test_admits_up_to_limit(self, cache):
        governor = RateGovernor(cache)
        for expected in range(1, 4):
            admission = await governor.admit("ip:1.2.3.4", window_seconds=10, limit=3)
            assert admission.allowed
            assert admission.count == expected

        denied = await governor.admit("ip:1.2.3.4", window_seconds=10, limit=3)
        assert not denied.allowed
        assert denied.retry_after == 10.0

    @pytest.mark.asyncio
    async def test_retry_hint_counts_down(self, cache, monotonic):
        governor = RateGovernor(cache)
        await governor.admit("ip:1.2.3.4", window_seconds=10, limit=1)
        monotonic.advance(7.5)
        denied = await governor.admit("ip:1.2.3.4", window_seconds=10, limit=1)
        assert not denied.allowed
        assert denied.retry_after == pytest.approx(2.5)

    @pytest.mark.asyncio
    async def test_new_window_resets_count(self, cache, monotonic):
        governor = RateGovernor(cache)
        for _ in range(3):
            await governor.admit("ip:1.2.3.4", window_seconds=10, limit=2)
        monotonic.advance(10)
        admission = await governor.admit("ip:1.2.3.4", window_seconds=10, limit=2)
        assert admission.allowed
        assert admission.count == 1

    @pytest.mark.asyncio
    async def test_identities_are_independent(self, cache):
        governor = RateGovernor(cache)
        await governor.admit("ip:1.1.1.1", window_seconds=10, limit=1)
        assert not (await governor.admit("ip:1.1.1.1", window_seconds=10, limit=1)).allowed
        assert (await governor.admit("ip:2.2.2.2", window_seconds=10, limit=1)).allowed

    @pytest.mark.asyncio
    async def test_counters_live_under_prefix(self, cache):
        await RateGovernor(cache).admit("device:abc", window_seconds=10, limit=5)
        assert await cache.get("rate:device:abc") == "1"


class TestRateLimitIdentifier:

    def test_forwarded_for_first_hop_wins(self):
        assert get_rate_limit_identifier("10.0.0.1", "203.0.113.9, 10.0.0.1") == "ip:203.0.113.9"

    def test_connection_address(self):
        assert get_rate_limit_identifier("198.51.100.7") == "ip:198.51.100.7"

    def test_device_cookie_fallback(self):
        assert get_rate_limit_identifier(None, None, "6f1c") == "device:6f1c"

    def test_anonymous(self):
        assert get_rate_limit_identifier(None, " ", None) == "anonymous"
