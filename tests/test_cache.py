"""Tests for the TTL response cache."""

from conftest import FakeClock

from portracker.core.cache import PORTS_CACHE_KEY, TTLCache, invalidate_ports_cache


class TestTTLCache:
    """Tests for TTLCache."""

    def test_value_available_before_expiry(self, response_cache: TTLCache, clock: FakeClock):
        response_cache.set("k", [1, 2], ttl_ms=3000)
        clock.advance(2.999)

        assert response_cache.get("k") == [1, 2]

    def test_value_expires_lazily(self, response_cache: TTLCache, clock: FakeClock):
        response_cache.set("k", "v", ttl_ms=3000)
        clock.advance(3.0)

        assert len(response_cache) == 1
        assert response_cache.get("k") is None
        assert len(response_cache) == 0

    def test_set_replaces_value_and_expiry(self, response_cache: TTLCache, clock: FakeClock):
        response_cache.set("k", "old", ttl_ms=1000)
        clock.advance(0.5)
        response_cache.set("k", "new", ttl_ms=1000)
        clock.advance(0.9)

        assert response_cache.get("k") == "new"

    def test_missing_key(self, response_cache: TTLCache):
        assert response_cache.get("missing") is None

    def test_delete(self, response_cache: TTLCache):
        response_cache.set("k", "v", ttl_ms=1000)

        assert response_cache.delete("k") is True
        assert response_cache.delete("k") is False
        assert response_cache.get("k") is None

    def test_clear(self, response_cache: TTLCache):
        response_cache.set("a", 1, ttl_ms=1000)
        response_cache.set("b", 2, ttl_ms=1000)
        response_cache.clear()

        assert len(response_cache) == 0

    def test_invalidate_ports_cache(self, response_cache: TTLCache):
        response_cache.set(PORTS_CACHE_KEY, [], ttl_ms=1000)
        response_cache.set("other", 1, ttl_ms=1000)

        invalidate_ports_cache(response_cache)

        assert response_cache.get(PORTS_CACHE_KEY) is None
        assert response_cache.get("other") == 1

    def test_invalidate_without_cache_is_noop(self):
        invalidate_ports_cache(None)
