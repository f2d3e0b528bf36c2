"""Graph Database Interface (async Neo4j).

- Runs parameterized Cypher with a per-query timeout
- Optional Redis row cache in front of the driver
- Lists known entity names for the fuzzy resolver
- Reads the current season from the SiteDetail node
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from neo4j import AsyncGraphDatabase
from neo4j.exceptions import DriverError, Neo4jError

from .date_utils import normalize_season
from .query_cache import QueryCache

logger = logging.getLogger(__name__)


class GraphDatabaseError(Exception):
    """Base exception for graph database operations."""

    pass


class QueryExecutionError(GraphDatabaseError):
    """A query failed or exceeded its timeout."""

    pass


KNOWN_VALUE_QUERIES: Dict[str, str] = {
    "player": (
        "MATCH (p:Player {graphLabel: $graphLabel})\n"
        "WHERE p.playerName IS NOT NULL\n"
        "RETURN DISTINCT p.playerName AS value"
    ),
    "team": (
        "MATCH (f:Fixture {graphLabel: $graphLabel})\n"
        "WHERE f.team IS NOT NULL\n"
        "RETURN DISTINCT f.team AS value"
    ),
    "opposition": (
        "MATCH (f:Fixture {graphLabel: $graphLabel})\n"
        "WHERE f.opposition IS NOT NULL\n"
        "RETURN DISTINCT f.opposition AS value"
    ),
    "league": (
        "MATCH (lt:LeagueTable {graphLabel: $graphLabel})\n"
        "WHERE lt.division IS NOT NULL\n"
        "RETURN DISTINCT lt.division AS value"
    ),
}

CURRENT_SEASON_QUERY = (
    "MATCH (sd:SiteDetail {graphLabel: $graphLabel})\n"
    "RETURN sd.currentSeason AS currentSeason\n"
    "LIMIT 1"
)


class GraphDatabase:
    """High-level async interface to the club graph."""

    def __init__(
        self,
        uri: str,
        user: str,
        password: str,
        database: str = "neo4j",
        graph_label: str = "dorkiniansWebsite",
        query_timeout: float = 10.0,
        slow_query_ms: float = 1000.0,
        query_cache: Optional[QueryCache] = None,
        driver: Optional[Any] = None,
    ):
        """Create the driver; ``driver`` may be injected for tests."""
        self.driver = driver or AsyncGraphDatabase.driver(uri, auth=(user, password))
        self.database = database
        self.graph_label = graph_label
        self.query_timeout = query_timeout
        self.slow_query_ms = slow_query_ms
        self.query_cache = query_cache
        self._stats = {"queries": 0, "cache_hits": 0, "slow_queries": 0, "errors": 0, "total_ms": 0.0}

    async def __aenter__(self) -> "GraphDatabase":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.driver.close()
        if self.query_cache is not None:
            await self.query_cache.close()

    # ---------- execution ----------

    async def _execute(self, query: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        async with self.driver.session(database=self.database) as session:
            result = await session.run(query, params)
            return await result.data()

    async def run(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Execute a parameterized query and return its rows as dicts.

        Raises:
            QueryExecutionError: on driver errors or when the timeout expires
        """
        params = params or {}

        if self.query_cache is not None:
            cached = await self.query_cache.get_cached_rows(query, params)
            if cached is not None:
                self._stats["cache_hits"] += 1
                return cached

        start = time.perf_counter()
        try:
            rows = await asyncio.wait_for(self._execute(query, params), timeout=self.query_timeout)
        except asyncio.TimeoutError as e:
            self._stats["errors"] += 1
            raise QueryExecutionError(f"Query timed out after {self.query_timeout}s") from e
        except (Neo4jError, DriverError) as e:
            self._stats["errors"] += 1
            raise QueryExecutionError(f"Query failed: {e}") from e

        elapsed_ms = (time.perf_counter() - start) * 1000
        self._stats["queries"] += 1
        self._stats["total_ms"] += elapsed_ms
        if elapsed_ms > self.slow_query_ms:
            self._stats["slow_queries"] += 1
            logger.warning(f"Slow query ({elapsed_ms:.0f} ms): {query.splitlines()[0]}")
        logger.debug(f"Query returned {len(rows)} rows in {elapsed_ms:.1f} ms")

        if self.query_cache is not None:
            await self.query_cache.cache_rows(query, params, rows)
        return rows

    # ---------- lookups ----------

    async def list_known_values(self, category: str) -> List[str]:
        """Distinct names for a resolver category (player, team, opposition, league)."""
        query = KNOWN_VALUE_QUERIES.get(category)
        if query is None:
            raise ValueError(f"Unknown entity category: {category}")
        rows = await self.run(query, {"graphLabel": self.graph_label})
        return [row["value"] for row in rows if row.get("value")]

    async def get_current_season(self) -> Optional[str]:
        rows = await self.run(CURRENT_SEASON_QUERY, {"graphLabel": self.graph_label})
        if not rows or not rows[0].get("currentSeason"):
            logger.warning("No current season found on SiteDetail")
            return None
        raw = str(rows[0]["currentSeason"])
        return normalize_season(raw) or raw

    def get_performance_stats(self) -> Dict[str, Any]:
        stats = dict(self._stats)
        stats["avg_ms"] = stats["total_ms"] / stats["queries"] if stats["queries"] else 0.0
        return stats
