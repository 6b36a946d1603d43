"""Tests for the page cache — in-memory fallback (no Redis required)."""

import pytest


class TestCacheKeyGeneration:
    def test_make_key_deterministic(self, cache):
        assert cache.make_key("https://example.com/jobs") == cache.make_key("https://example.com/jobs")

    def test_make_key_different_url(self, cache):
        assert cache.make_key("https://example.com/jobs/1") != cache.make_key("https://example.com/jobs/2")

    def test_make_key_ignores_surrounding_whitespace(self, cache):
        assert cache.make_key("  https://example.com ") == cache.make_key("https://example.com")

    def test_make_key_prefix(self, cache):
        assert cache.make_key("https://example.com").startswith("sg:page:")


class TestCacheInMemoryFallback:
    @pytest.mark.asyncio
    async def test_set_and_get(self, cache):
        key = cache.make_key("https://example.com/jobs")
        await cache.set(key, "Senior Java Developer")
        assert await cache.get(key) == "Senior Java Developer"

    @pytest.mark.asyncio
    async def test_miss(self, cache):
        assert await cache.get(cache.make_key("https://example.com/none")) is None

    def test_not_available_without_redis(self, cache):
        assert cache.available is False
