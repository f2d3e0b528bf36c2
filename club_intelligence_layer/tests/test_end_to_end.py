"""
End-to-end tests for ClubIntelligenceLayer.
The graph database is mocked; everything else runs for real.
"""

import pytest

from club_intelligence_layer.main import EMPTY_QUESTION_MESSAGE, ClubIntelligenceLayer
from club_intelligence_layer.src.database import QueryExecutionError
from club_intelligence_layer.src.response_formatter import NO_ANSWER


class TestClubIntelligenceLayer:
    """Test class for the full question pipeline."""

    @pytest.fixture(autouse=True)
    def _layer(self, settings, mock_database):
        self.database = mock_database
        self.layer = ClubIntelligenceLayer(settings=settings, database=mock_database)

    @pytest.mark.asyncio
    async def test_player_goals(self):
        """Test scenario A: a player's career goal total."""
        self.database.run.return_value = [{"playerName": "Luke Bangs", "value": 42}]

        result = await self.layer.answer_question("How many goals has Luke Bangs scored?")

        assert result["answer"] == "Luke Bangs has 42 goals (including penalties)."
        assert result["answerValue"] == 42
        query, params = self.database.run.call_args[0]
        assert params["playerName"] == "Luke Bangs"
        assert "Luke Bangs" not in query
        assert "'Luke Bangs'" in result["cypherQuery"]
        details = result["debug"]["processingDetails"]
        assert details["queryBreakdown"]["shape"] == "summary"
        assert details["error"] is None

    @pytest.mark.asyncio
    async def test_misspelled_player_is_resolved(self):
        """Test a typo in a player name resolves to the known player."""
        self.database.run.return_value = [{"playerName": "Luke Bangs", "value": 42}]

        result = await self.layer.answer_question("How many goals has Luke Bnags scored?")

        assert self.database.run.call_args[0][1]["playerName"] == "Luke Bangs"
        assert result["answer"].startswith("Luke Bangs has 42 goals")

    @pytest.mark.asyncio
    async def test_team_season_goals(self):
        """Test scenario B: a team's goals in one season."""
        self.database.run.return_value = [{"value": 61, "goals": 61, "conceded": 30, "games": 22}]

        result = await self.layer.answer_question("How many goals did the 2nd team score in 2017/18?")

        params = self.database.run.call_args[0][1]
        assert params["teams"] == ["2nd XI"]
        assert params["season"] == "2017/18"
        assert result["answer"] == "The 2nd XI scored 61 goals and conceded 30 in 22 games in 2017/18."

    @pytest.mark.asyncio
    async def test_record_against_opposition(self):
        """Test 'record' is understood as a stat and answered head to head."""
        self.database.run.return_value = [
            {"value": 6, "wins": 3, "draws": 1, "losses": 2, "goalsFor": 14, "goalsAgainst": 9, "games": 6}
        ]

        result = await self.layer.answer_question("What is our record against Old Wimbledonians?")

        assert self.database.run.call_args[0][1]["opposition"] == "Old Wimbledonians"
        assert result["answer"] == (
            "Against Old Wimbledonians, Dorkinians have played 6: won 3, drawn 1 and lost 2, "
            "scoring 14 and conceding 9."
        )

    @pytest.mark.asyncio
    async def test_two_player_comparison(self):
        """Test both named players reach the query and the answer."""
        self.database.run.return_value = [
            {"playerName": "Luke Bangs", "value": 42},
            {"playerName": "Oli Goddard", "value": 30},
        ]

        result = await self.layer.answer_question("Who has scored more goals, Luke Bangs or Oli Goddard?")

        params = self.database.run.call_args[0][1]
        assert params["playerNames"] == ["Luke Bangs", "Oli Goddard"]
        assert result["answer"] == "Luke Bangs has 42 goals and Oli Goddard has 30 goals."

    @pytest.mark.asyncio
    async def test_missing_entity(self):
        """Test scenario C: a bare stat asks for clarification without querying."""
        result = await self.layer.answer_question("goals")

        assert "which player, team, or other entity" in result["answer"]
        assert result["cypherQuery"] is None
        assert result["suggestions"][0] == "Who has scored the most goals for the club?"
        self.database.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_question(self):
        """Test an empty question gets a friendly prompt."""
        result = await self.layer.answer_question("   ")

        assert result["answer"] == EMPTY_QUESTION_MESSAGE
        self.database.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_repeat_question_is_cached(self):
        """Test the second identical question is served from the response cache."""
        self.database.run.return_value = [{"playerName": "Luke Bangs", "value": 42}]

        first = await self.layer.answer_question("How many goals has Luke Bangs scored?")
        second = await self.layer.answer_question("  How many goals has Luke Bangs scored? ")

        assert second["answer"] == first["answer"]
        assert self.database.run.call_count == 1
        assert self.layer.response_cache.get_cache_stats()["hits"] == 1

    @pytest.mark.asyncio
    async def test_follow_up_question(self):
        """Test a follow-up borrows the player and stat from history."""
        self.database.run.return_value = [{"playerName": "Luke Bangs", "value": 9}]
        history = [{
            "question": "How many goals has Luke Bangs scored?",
            "entities": ["Luke Bangs"],
            "metrics": ["G"],
            "timestamp": "2024-09-01T10:00:00+00:00",
        }]

        result = await self.layer.answer_question("And in 2019/20?", conversation_history=history)

        query = self.database.run.call_args[0][0]
        assert "goals201920" in query
        assert result["answer"] == "Luke Bangs has 9 goals in 2019/20 (including penalties)."
        assert "Merged conversation context" in result["debug"]["processingDetails"]["processingSteps"]

    @pytest.mark.asyncio
    async def test_query_failure(self):
        """Test a database error becomes the standard no-answer reply."""
        self.database.run.side_effect = QueryExecutionError("Query failed: connection reset")

        result = await self.layer.answer_question("How many goals has Luke Bangs scored?")

        assert result["answer"] == NO_ANSWER
        assert "connection reset" in result["debug"]["processingDetails"]["error"]
        assert result["suggestions"][0] == "How many goals has Luke Bangs scored?"

    @pytest.mark.asyncio
    async def test_unsupported_metric(self):
        """Test award questions report that they are not supported."""
        result = await self.layer.answer_question("How many player of the month awards has Luke Bangs won?")

        assert result["answer"] == NO_ANSWER
        assert "not supported" in result["debug"]["processingDetails"]["error"]
        self.database.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_answer_many(self):
        """Test several questions are answered in order."""
        self.database.run.return_value = [{"playerName": "Luke Bangs", "value": 42}]

        results = await self.layer.answer_many(["How many goals has Luke Bangs scored?", "goals"])

        assert len(results) == 2
        assert results[0]["answer"] == "Luke Bangs has 42 goals (including penalties)."
        assert "which player" in results[1]["answer"]
