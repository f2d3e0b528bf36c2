"""
Query Result Cache for the Club Intelligence Layer.

Caches raw graph rows in Redis, keyed by a hash of the Cypher text and its
parameters, with a TTL chosen from the query shape.
"""

import hashlib
import json
import logging
from typing import Any, Dict, List, Optional

import redis.asyncio as redis_async

logger = logging.getLogger(__name__)

CURRENT_SEASON_TTL = 60
KEY_PREFIX = "rows:"


class QueryCacheError(Exception):
    """Raised when the row cache cannot be set up."""

    pass


class QueryCache:
    """
    Redis-based cache of query rows.

    Features:
    - Cache key generation from query text + parameters
    - Short TTL for queries that touch the current season
    - Hit/miss counters
    - Errors are logged and treated as cache misses
    """

    def __init__(self, redis_client: Any, default_ttl: int = 3600):
        """
        Args:
            redis_client: redis.asyncio client with decode_responses=True
            default_ttl: TTL in seconds for historical rows
        """
        self.redis = redis_client
        self.default_ttl = default_ttl
        self.cache_hit_counter = "rows_cache_hits"
        self.cache_miss_counter = "rows_cache_misses"
        self.current_season: Optional[str] = None

    def cache_key(self, query: str, params: Dict[str, Any]) -> str:
        """``rows:`` plus the SHA256 of the query and its sorted JSON parameters."""
        payload = f"{query}:{json.dumps(params, sort_keys=True, default=str)}"
        return f"{KEY_PREFIX}{hashlib.sha256(payload.encode()).hexdigest()}"

    async def get_cached_rows(
        self, query: str, params: Dict[str, Any],
    ) -> Optional[List[Dict[str, Any]]]:
        """
        Return cached rows or None on a miss.

        Corrupt entries are deleted and counted as misses.
        """
        key = self.cache_key(query, params)

        try:
            payload = await self.redis.get(key)
            if payload is None:
                await self.redis.incr(self.cache_miss_counter)
                return None

            try:
                rows = json.loads(payload)
            except (json.JSONDecodeError, TypeError) as e:
                logger.warning(f"Dropping unreadable cached rows {key[:17]}...: {e}")
                await self.redis.delete(key)
                await self.redis.incr(self.cache_miss_counter)
                return None

            await self.redis.incr(self.cache_hit_counter)
            logger.debug(f"Row cache HIT: {key[:17]}...")
            return rows

        except Exception as e:
            logger.warning(f"Row cache lookup failed, querying the graph instead: {e}")
            return None

    async def cache_rows(
        self,
        query: str,
        params: Dict[str, Any],
        rows: List[Dict[str, Any]],
        ttl: Optional[int] = None,
    ) -> None:
        """
        Store rows with an explicit or shape-derived TTL.

        Args:
            query: Cypher text
            params: Query parameters
            rows: Rows returned by the graph
            ttl: Seconds to keep the rows; derived from the query when None
        """
        key = self.cache_key(query, params)
        ttl = ttl or self._determine_ttl(query, params)

        try:
            await self.redis.setex(key, ttl, json.dumps(rows, default=str))
            logger.debug(f"Cached {len(rows)} rows with TTL {ttl}s: {key[:17]}...")
        except Exception as e:
            logger.error(f"Could not store rows in Redis: {e}")

    def _determine_ttl(self, query: str, params: Dict[str, Any]) -> int:
        """
        Current-season data changes weekly during the season, so it gets a
        short TTL. Everything else is historical.
        """
        if "currentSeason" in query:
            return CURRENT_SEASON_TTL
        if self.current_season and self.current_season in params.values():
            return CURRENT_SEASON_TTL
        return self.default_ttl

    async def invalidate(self, pattern: str = f"{KEY_PREFIX}*") -> int:
        """Delete cached rows whose keys match ``pattern``; returns how many went."""
        try:
            matching = await self.redis.keys(pattern)
            if not matching:
                return 0
            removed = await self.redis.delete(*matching)
            logger.info(f"Removed {removed} cached row sets for {pattern}")
            return removed

        except Exception as e:
            logger.error(f"Could not invalidate cached rows for {pattern}: {e}")
            return 0

    async def get_cache_stats(self) -> Dict[str, Any]:
        """Hit and miss counters kept in Redis."""
        try:
            hits = int(await self.redis.get(self.cache_hit_counter) or 0)
            misses = int(await self.redis.get(self.cache_miss_counter) or 0)
        except Exception as e:
            logger.error(f"Could not read row cache counters: {e}")
            return {"hits": 0, "misses": 0, "lookups": 0, "hit_ratio": 0, "error": str(e)}

        lookups = hits + misses
        return {
            "hits": hits,
            "misses": misses,
            "lookups": lookups,
            "hit_ratio": hits / lookups if lookups else 0,
        }

    async def clear(self) -> bool:
        """Drop every cached row set and reset the counters."""
        try:
            await self.invalidate()
            await self.redis.delete(self.cache_hit_counter, self.cache_miss_counter)
            logger.info("Row cache cleared")
            return True

        except Exception as e:
            logger.error(f"Could not clear the row cache: {e}")
            return False

    async def health_check(self) -> bool:
        """True if Redis answers a ping."""
        try:
            return await self.redis.ping() is True
        except Exception as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        try:
            await self.redis.aclose()
        except Exception as e:
            logger.error(f"Could not close the Redis client: {e}")


def create_query_cache(
    redis_url: str,
    default_ttl: int = 3600,
    pool_size: int = 10,
) -> QueryCache:
    """
    Create a QueryCache connected to ``redis_url``.

    Raises:
        QueryCacheError: if the URL cannot be used to build a client
    """
    try:
        client = redis_async.from_url(
            redis_url,
            decode_responses=True,
            max_connections=pool_size,
            health_check_interval=30,
        )
    except ValueError as e:
        raise QueryCacheError(f"Invalid Redis URL '{redis_url}': {e}") from e

    logger.info(f"✅ Row cache ready (pool_size={pool_size}, default TTL {default_ttl}s)")
    return QueryCache(client, default_ttl)
