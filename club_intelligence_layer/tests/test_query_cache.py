"""
Test suite for the Redis row cache.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from club_intelligence_layer.src.query_cache import QueryCache, QueryCacheError, create_query_cache
from club_intelligence_layer.src.query_cache.query_cache import CURRENT_SEASON_TTL


class TestQueryCache:
    """Test class for QueryCache core functionality."""

    def setup_method(self):
        """Set up test fixtures for each test method."""
        self.mock_redis_client = AsyncMock()
        self.query_cache = QueryCache(self.mock_redis_client)
        self.query = "MATCH (p:Player {playerName: $playerName}) RETURN p.assists AS value"
        self.params = {"playerName": "Luke Bangs"}

    @pytest.mark.asyncio
    async def test_cache_miss(self):
        """Test cache miss scenario."""
        self.mock_redis_client.get.return_value = None

        result = await self.query_cache.get_cached_rows(self.query, self.params)

        assert result is None
        self.mock_redis_client.incr.assert_called_with("rows_cache_misses")

    @pytest.mark.asyncio
    async def test_cache_hit(self):
        """Test cached rows are decoded."""
        rows = [{"playerName": "Luke Bangs", "value": 12}]
        self.mock_redis_client.get.return_value = json.dumps(rows)

        result = await self.query_cache.get_cached_rows(self.query, self.params)

        assert result == rows
        self.mock_redis_client.incr.assert_called_with("rows_cache_hits")

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_deleted(self):
        """Test undecodable entries are removed and treated as misses."""
        self.mock_redis_client.get.return_value = "{not json"

        result = await self.query_cache.get_cached_rows(self.query, self.params)

        assert result is None
        self.mock_redis_client.delete.assert_called_once_with(
            self.query_cache.cache_key(self.query, self.params)
        )

    @pytest.mark.asyncio
    async def test_cache_rows_storage(self):
        """Test caching rows with an explicit TTL."""
        rows = [{"value": 3}]

        await self.query_cache.cache_rows(self.query, self.params, rows, ttl=300)

        self.mock_redis_client.setex.assert_called_once()
        call_args = self.mock_redis_client.setex.call_args
        assert call_args[0][0].startswith("rows:")
        assert call_args[0][1] == 300
        assert json.loads(call_args[0][2]) == rows

    def test_key_depends_on_params(self):
        """Test the same query with different params gets a different key."""
        key_a = self.query_cache.cache_key(self.query, {"playerName": "Luke Bangs"})
        key_b = self.query_cache.cache_key(self.query, {"playerName": "Oli Goddard"})

        assert key_a != key_b
        assert key_a == self.query_cache.cache_key(self.query, {"playerName": "Luke Bangs"})

    def test_ttl_determination(self):
        """Test TTL determination logic."""
        assert self.query_cache._determine_ttl("MATCH (sd:SiteDetail) RETURN sd.currentSeason", {}) == 60
        assert self.query_cache._determine_ttl(self.query, self.params) == 3600

        self.query_cache.current_season = "2024/25"
        assert self.query_cache._determine_ttl(self.query, {"season": "2024/25"}) == CURRENT_SEASON_TTL
        assert self.query_cache._determine_ttl(self.query, {"season": "2017/18"}) == 3600

    @pytest.mark.asyncio
    async def test_pattern_invalidation(self):
        """Test pattern-based cache invalidation."""
        self.mock_redis_client.keys.return_value = ["rows:key1", "rows:key2"]
        self.mock_redis_client.delete.return_value = 2

        deleted_count = await self.query_cache.invalidate("rows:*")

        assert deleted_count == 2
        self.mock_redis_client.keys.assert_called_with("rows:*")
        self.mock_redis_client.delete.assert_called_with("rows:key1", "rows:key2")

    @pytest.mark.asyncio
    async def test_clear(self):
        """Test clearing drops all row keys and the counters."""
        self.mock_redis_client.keys.return_value = ["rows:key1"]

        assert await self.query_cache.clear() is True

        self.mock_redis_client.keys.assert_called_with("rows:*")
        self.mock_redis_client.delete.assert_called_with("rows_cache_hits", "rows_cache_misses")

    @pytest.mark.asyncio
    async def test_error_handling(self):
        """Test Redis errors never escape."""
        self.mock_redis_client.get.side_effect = Exception("Redis connection error")
        assert await self.query_cache.get_cached_rows(self.query, self.params) is None

        self.mock_redis_client.setex.side_effect = Exception("Redis storage error")
        await self.query_cache.cache_rows(self.query, self.params, [{"value": 1}])

    @pytest.mark.asyncio
    async def test_cache_stats(self):
        """Test hit ratio calculation."""
        self.mock_redis_client.get.side_effect = ["3", "1"]

        stats = await self.query_cache.get_cache_stats()

        assert stats["hits"] == 3
        assert stats["misses"] == 1
        assert stats["hit_ratio"] == 0.75

    @pytest.mark.asyncio
    async def test_health_check(self):
        """Test ping results map to health."""
        self.mock_redis_client.ping.return_value = True
        assert await self.query_cache.health_check() is True

        self.mock_redis_client.ping.side_effect = Exception("down")
        assert await self.query_cache.health_check() is False

    @pytest.mark.asyncio
    async def test_close(self):
        """Test closing uses the asyncio client's aclose."""
        await self.query_cache.close()

        self.mock_redis_client.aclose.assert_awaited_once()


class TestCreateQueryCache:
    """Test class for the cache factory."""

    def test_create_from_url(self):
        """Test the factory builds a client from a URL."""
        with patch("club_intelligence_layer.src.query_cache.query_cache.redis_async.from_url") as from_url:
            cache = create_query_cache("redis://localhost:6379/0", default_ttl=120)

        assert isinstance(cache, QueryCache)
        assert cache.default_ttl == 120
        from_url.assert_called_once()
        assert from_url.call_args[0][0] == "redis://localhost:6379/0"

    def test_invalid_url(self):
        """Test an unusable URL raises QueryCacheError."""
        with patch(
            "club_intelligence_layer.src.query_cache.query_cache.redis_async.from_url",
            side_effect=ValueError("bad scheme"),
        ):
            with pytest.raises(QueryCacheError):
                create_query_cache("nonsense://")
