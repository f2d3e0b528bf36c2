"""
Test suite for the async Neo4j wrapper.
The driver is replaced with mocks; no database is needed.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from neo4j.exceptions import ServiceUnavailable

from club_intelligence_layer.src.database import (
    CURRENT_SEASON_QUERY,
    GraphDatabase,
    QueryExecutionError,
)


def make_driver(rows=None, run_side_effect=None):
    """A driver whose session yields ``rows`` from ``result.data()``."""
    result = AsyncMock()
    result.data.return_value = rows or []

    session = AsyncMock()
    session.run.return_value = result
    if run_side_effect is not None:
        session.run.side_effect = run_side_effect

    session_cm = MagicMock()
    session_cm.__aenter__ = AsyncMock(return_value=session)
    session_cm.__aexit__ = AsyncMock(return_value=False)

    driver = MagicMock()
    driver.session.return_value = session_cm
    driver.close = AsyncMock()
    return driver, session


class TestGraphDatabase:
    """Test class for GraphDatabase."""

    def make_database(self, **kwargs):
        return GraphDatabase("bolt://localhost:7687", "neo4j", "test", driver=self.driver, **kwargs)

    def setup_method(self):
        """Set up test fixtures for each test method."""
        self.driver, self.session = make_driver([{"playerName": "Luke Bangs", "value": 42}])

    @pytest.mark.asyncio
    async def test_run_returns_rows(self):
        """Test rows come back as dicts and params are passed through."""
        database = self.make_database()
        params = {"graphLabel": "dorkiniansWebsite", "playerName": "Luke Bangs"}

        rows = await database.run("MATCH (p:Player) RETURN p", params)

        assert rows == [{"playerName": "Luke Bangs", "value": 42}]
        self.session.run.assert_called_once_with("MATCH (p:Player) RETURN p", params)
        self.driver.session.assert_called_once_with(database="neo4j")
        assert database.get_performance_stats()["queries"] == 1

    @pytest.mark.asyncio
    async def test_driver_error(self):
        """Test driver failures surface as QueryExecutionError."""
        self.driver, self.session = make_driver(run_side_effect=ServiceUnavailable("no route"))
        database = self.make_database()

        with pytest.raises(QueryExecutionError, match="Query failed"):
            await database.run("MATCH (n) RETURN n")
        assert database.get_performance_stats()["errors"] == 1

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test slow queries are cancelled after the timeout."""
        async def hang(*args, **kwargs):
            await asyncio.sleep(1)

        self.driver, self.session = make_driver(run_side_effect=hang)
        database = self.make_database(query_timeout=0.01)

        with pytest.raises(QueryExecutionError, match="timed out"):
            await database.run("MATCH (n) RETURN n")

    @pytest.mark.asyncio
    async def test_row_cache_short_circuits(self):
        """Test cached rows skip the driver entirely."""
        query_cache = AsyncMock()
        query_cache.get_cached_rows.return_value = [{"value": 7}]
        database = self.make_database(query_cache=query_cache)

        rows = await database.run("MATCH (n) RETURN n", {})

        assert rows == [{"value": 7}]
        self.session.run.assert_not_called()
        assert database.get_performance_stats()["cache_hits"] == 1

    @pytest.mark.asyncio
    async def test_rows_are_cached_after_miss(self):
        """Test fresh rows are written to the row cache."""
        query_cache = AsyncMock()
        query_cache.get_cached_rows.return_value = None
        database = self.make_database(query_cache=query_cache)

        await database.run("MATCH (n) RETURN n", {"a": 1})

        query_cache.cache_rows.assert_called_once_with(
            "MATCH (n) RETURN n", {"a": 1}, [{"playerName": "Luke Bangs", "value": 42}]
        )

    @pytest.mark.asyncio
    async def test_list_known_values(self):
        """Test known values drop empty names."""
        self.driver, self.session = make_driver([{"value": "Luke Bangs"}, {"value": None}, {"value": "Oli Goddard"}])
        database = self.make_database()

        values = await database.list_known_values("player")

        assert values == ["Luke Bangs", "Oli Goddard"]
        assert self.session.run.call_args[0][1] == {"graphLabel": "dorkiniansWebsite"}

        with pytest.raises(ValueError):
            await database.list_known_values("referee")

    @pytest.mark.asyncio
    async def test_current_season(self):
        """Test the current season is read and normalized."""
        self.driver, self.session = make_driver([{"currentSeason": "2024-25"}])
        database = self.make_database()

        assert await database.get_current_season() == "2024/25"
        assert self.session.run.call_args[0][0] == CURRENT_SEASON_QUERY

    @pytest.mark.asyncio
    async def test_missing_current_season(self):
        """Test a missing SiteDetail node gives None."""
        self.driver, self.session = make_driver([])
        database = self.make_database()

        assert await database.get_current_season() is None

    @pytest.mark.asyncio
    async def test_async_context_manager_closes(self):
        """Test leaving the context closes the driver and row cache."""
        query_cache = AsyncMock()

        async with self.make_database(query_cache=query_cache):
            pass

        self.driver.close.assert_called_once()
        query_cache.close.assert_called_once()
