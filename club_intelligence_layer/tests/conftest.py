"""Shared fixtures for the Club Intelligence Layer tests."""

from unittest.mock import AsyncMock

import pytest

from club_intelligence_layer.config.settings import Settings
from club_intelligence_layer.src.entity_extractor import EntityExtractor
from club_intelligence_layer.src.question_analyzer import QuestionAnalyzer

KNOWN_PLAYERS = ["Luke Bangs", "Oli Goddard", "Kieran Mackrill", "Sam Smith"]
KNOWN_OPPOSITION = ["Old Wimbledonians", "Old Hamptonians", "Trinity"]


@pytest.fixture(scope="session")
def extractor():
    return EntityExtractor()


@pytest.fixture
def settings():
    return Settings(neo4j_uri="bolt://localhost:7687", neo4j_user="neo4j", neo4j_password="test")


@pytest.fixture
def analyze(extractor):
    """Extract and analyze a question in one call."""
    analyzer = QuestionAnalyzer()

    def _analyze(question, user_context=None, current_season=None):
        analysis = analyzer.analyze(question, extractor.extract(question), user_context)
        analysis.current_season = current_season
        return analysis

    return _analyze


@pytest.fixture
def mock_database():
    """Stand-in for GraphDatabase with canned known values."""
    known = {"player": KNOWN_PLAYERS, "opposition": KNOWN_OPPOSITION, "team": [], "league": []}

    async def list_known_values(category):
        return known[category]

    database = AsyncMock()
    database.list_known_values.side_effect = list_known_values
    database.get_current_season.return_value = "2024/25"
    database.run.return_value = []
    return database
