"""
Tests for the in-memory link store used behind the HTTP tests.
"""

from datetime import timedelta

import pytest

from safelink.core.exceptions import ShortCodeNotFoundError
from safelink.services.memory_store import InMemoryLinkStore
from safelink.services.shortcode import generate_short_code


@pytest.fixture
def memory_store(clock):
    return InMemoryLinkStore(clock=clock)


class TestInMemoryLinkStore:

    @pytest.mark.asyncio
    async def test_ids_start_at_one(self, memory_store):
        assert await memory_store.store("https://a.example/", None, "s") == generate_short_code("s", 1)
        assert await memory_store.store("https://b.example/", None, "s") == generate_short_code("s", 2)
        assert len(memory_store) == 2

    @pytest.mark.asyncio
    async def test_dedup_and_expiry(self, memory_store, clock):
        first = await memory_store.store("https://a.example/", clock() + timedelta(hours=1), "s")
        assert await memory_store.store("https://a.example/", None, "s") == first

        clock.advance(hours=1)
        with pytest.raises(ShortCodeNotFoundError):
            await memory_store.resolve(first)
        assert await memory_store.store("https://a.example/", None, "s") != first

    @pytest.mark.asyncio
    async def test_resolve_updates_stats(self, memory_store, clock):
        code = await memory_store.store("https://a.example/", None, "s")
        clock.advance(seconds=30)
        await memory_store.resolve(code)

        stats = await memory_store.stats(code)
        assert stats.click_count == 1
        assert stats.last_accessed_at == clock()
