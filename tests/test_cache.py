"""Tests for the result cache."""

from unittest.mock import MagicMock

import pytest

from proxy_rules.cache import ResultCache


class FakeTimer:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestResultCache:
    """Tests for ResultCache."""

    @pytest.fixture
    def timer(self):
        return FakeTimer()

    @pytest.fixture
    def cache(self, timer):
        return ResultCache(ttl_ms=60000, timer=timer)

    def test_get_miss(self, cache):
        """Test lookup of an unknown URL."""
        assert cache.get("https://example.com") is None

    def test_put_and_get(self, cache):
        """Test a fresh entry is returned."""
        result = MagicMock()
        cache.put("https://example.com", result)
        assert cache.get("https://example.com") is result
        assert "https://example.com" in cache

    def test_expired_entry_evicted(self, cache, timer):
        """Test entries older than the TTL are dropped on lookup."""
        cache.put("https://example.com", MagicMock())
        timer.now += 60.001
        assert cache.get("https://example.com") is None
        assert len(cache) == 0

    def test_entry_at_ttl_still_valid(self, cache, timer):
        """Test an entry exactly at the TTL is still served."""
        result = MagicMock()
        cache.put("https://example.com", result)
        timer.now += 60
        assert cache.get("https://example.com") is result

    def test_fifo_eviction(self, timer):
        """Test the oldest inserted entry is evicted past the size limit."""
        cache = ResultCache(ttl_ms=60000, max_entries=3, timer=timer)
        for i in range(4):
            cache.put(f"https://{i}.example.com", MagicMock())

        assert len(cache) == 3
        assert "https://0.example.com" not in cache
        assert "https://3.example.com" in cache

    def test_reinsert_moves_to_back(self, timer):
        """Test re-caching a URL refreshes its eviction position."""
        cache = ResultCache(ttl_ms=60000, max_entries=2, timer=timer)
        cache.put("a", MagicMock())
        cache.put("b", MagicMock())
        cache.put("a", MagicMock())
        cache.put("c", MagicMock())

        assert "a" in cache
        assert "b" not in cache

    def test_default_limit(self, cache):
        """Test the default size limit."""
        assert cache.max_entries == 1000

    def test_clear(self, cache):
        """Test clearing the cache."""
        cache.put("https://example.com", MagicMock())
        cache.clear()
        assert len(cache) == 0
        assert cache.get("https://example.com") is None
