"""
Test suite for the in-process answer cache.
"""

import pytest

from club_intelligence_layer.src.response_cache import ResponseCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestResponseCache:
    """Test class for ResponseCache."""

    def setup_method(self):
        """Set up test fixtures for each test method."""
        self.clock = FakeClock()
        self.cache = ResponseCache(capacity=3, ttl_seconds=600.0, clock=self.clock)

    def test_key_normalization(self):
        """Test keys ignore case and repeated whitespace."""
        key = ResponseCache.make_key("  How many  GOALS has Luke Bangs scored? ")

        assert key == "how many goals has luke bangs scored?|"
        assert ResponseCache.make_key("goals", "Luke Bangs") == "goals|Luke Bangs"

    def test_hit_and_miss(self):
        """Test basic get/set and the hit counters."""
        assert self.cache.get("a|") is None

        self.cache.set("a|", {"answer": "A"})

        assert self.cache.get("a|") == {"answer": "A"}
        stats = self.cache.get_cache_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_ratio"] == 0.5

    def test_expiry(self):
        """Test entries expire after the TTL."""
        self.cache.set("a|", "A")
        self.clock.now = 600.0
        assert self.cache.get("a|") == "A"

        self.clock.now = 600.5
        assert self.cache.get("a|") is None
        assert "a|" not in self.cache
        assert self.cache.get_cache_stats()["expired"] == 1

    def test_lru_eviction(self):
        """Test the least recently used entry goes first."""
        for key in ("a|", "b|", "c|"):
            self.cache.set(key, key)
        self.cache.get("a|")

        self.cache.set("d|", "d|")

        assert len(self.cache) == 3
        assert "b|" not in self.cache
        assert "a|" in self.cache
        assert self.cache.get_cache_stats()["evictions"] == 1

    def test_overwrite_refreshes_entry(self):
        """Test setting an existing key replaces the value."""
        self.cache.set("a|", "old")
        self.clock.now = 500.0
        self.cache.set("a|", "new")
        self.clock.now = 900.0

        assert self.cache.get("a|") == "new"
        assert len(self.cache) == 1

    def test_delete_and_clear(self):
        """Test explicit removal."""
        self.cache.set("goals|Luke Bangs", 1)
        self.cache.set("goals|Oli Goddard", 2)
        self.cache.set("assists|", 3)

        assert self.cache.delete("assists|")
        assert not self.cache.delete("assists|")
        assert self.cache.clear_by_prefix("goals|") == 2
        assert len(self.cache) == 0

    def test_invalid_capacity(self):
        """Test a zero capacity is rejected."""
        with pytest.raises(ValueError):
            ResponseCache(capacity=0)
