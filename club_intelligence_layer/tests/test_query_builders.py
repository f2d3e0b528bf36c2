"""
Test suite for Cypher query construction.
Checks route selection, parameter binding and WHERE ordering.
"""

import re

import pytest

from club_intelligence_layer.src.query_builders import (
    QueryBuilders,
    optimize_where_order,
    select_domain,
)
from club_intelligence_layer.src.query_builders.fixture import FIXTURE_ROUTES
from club_intelligence_layer.src.query_builders.player import PLAYER_ROUTES
from club_intelligence_layer.src.query_builders.team import TEAM_ROUTES
from club_intelligence_layer.src.query_plan import NotFound, QueryPlan

_CLAUSE_END = re.compile(r"\b(?:WHERE|MATCH|OPTIONAL|RETURN|ORDER|LIMIT|UNWIND)\b")
_PATTERN = re.compile(r"\bMATCH\b(.*?)(?=\bWHERE\b|\bMATCH\b|\bOPTIONAL\b|\bRETURN\b|$)")
_NODE_VAR = re.compile(r"\((\w+)")
_PROPERTY_REF = re.compile(r"(?<![\w$.'])([A-Za-z_]\w*)\.(?=[A-Za-z_])")
_LOCALS = re.compile(r"reduce\(\s*(\w+)\s*=|\b(\w+)\s+IN\s+\w+\s*\|")
_ALIAS = re.compile(r"\bAS\s+(\w+)\s*$")


def _split_items(projection):
    items, depth, current = [], 0, ""
    for char in projection:
        if char in "([{":
            depth += 1
        elif char in ")]}":
            depth -= 1
        if char == "," and depth == 0:
            items.append(current.strip())
            current = ""
        else:
            current += char
    items.append(current.strip())
    return items


def _projected(projection):
    names = set()
    for item in _split_items(projection):
        alias = _ALIAS.search(item)
        if alias:
            names.add(alias.group(1))
        elif re.fullmatch(r"\w+", item):
            names.add(item)
    return names


def unbound_variables(query):
    """Variables read after a WITH that the WITH did not carry forward."""
    text = " ".join(query.split())
    local = {name for pair in _LOCALS.findall(text) for name in pair if name}
    scope, missing = set(), []

    def check(fragment):
        for name in _PROPERTY_REF.findall(fragment):
            if name not in scope and name not in local:
                missing.append(name)

    for index, segment in enumerate(re.split(r"\bWITH\b", text)):
        rest = segment
        if index:
            end = _CLAUSE_END.search(segment)
            projection = segment[:end.start()] if end else segment
            rest = segment[len(projection):]
            check(projection)
            scope = _projected(projection)
        for pattern in _PATTERN.findall(rest):
            scope.update(_NODE_VAR.findall(pattern))
        check(rest)
    return missing


def assert_well_formed(plan):
    assert unbound_variables(plan.query) == []
    for name in re.findall(r"\$(\w+)", plan.query):
        assert name in plan.params, name


class TestPlayerQueries:
    """Test class for player-domain plans."""

    @pytest.fixture(autouse=True)
    def _builders(self, settings):
        self.builders = QueryBuilders(settings)

    def test_summary_query(self, analyze):
        """Test a career total reads the Player summary node."""
        plan = self.builders.build(analyze("How many goals has Luke Bangs scored?"))

        assert isinstance(plan, QueryPlan)
        assert plan.domain == "player"
        assert plan.shape == "summary"
        assert "allGoalsScored" in plan.query
        assert "MatchDetail" not in plan.query
        assert plan.params == {"graphLabel": "dorkiniansWebsite", "playerName": "Luke Bangs"}

    def test_user_values_never_in_query_text(self, analyze):
        """Test names and seasons are bound as parameters only."""
        plan = self.builders.build(analyze("How many assists has Luke Bangs got against Old Wimbledonians?"))

        assert "Luke Bangs" not in plan.query
        assert "Old Wimbledonians" not in plan.query
        assert "$playerName" in plan.query
        assert plan.params["opposition"] == "Old Wimbledonians"

    def test_render_for_display(self, analyze):
        """Test the display copy substitutes literals."""
        plan = self.builders.build(analyze("How many goals has Luke Bangs scored?"))
        display = plan.render_for_display()

        assert "playerName: 'Luke Bangs'" in display
        assert "graphLabel: 'dorkiniansWebsite'" in display
        assert "$" not in display

    def test_seasonal_summary_property(self, analyze):
        """Test a single season uses the per-season summary property."""
        plan = self.builders.build(analyze("How many goals has Luke Bangs scored in 2017/18?"))

        assert plan.shape == "summary"
        assert "goals201718" in plan.query

    def test_filters_use_match_details(self, analyze):
        """Test match-level filters aggregate MatchDetail rows."""
        plan = self.builders.build(analyze("How many goals has Luke Bangs scored away from home?"))

        assert plan.shape == "aggregate"
        assert "MatchDetail" in plan.query
        assert "f.homeOrAway = $homeOrAway" in plan.query
        assert plan.params["homeOrAway"] == "Away"

    def test_since_year_starts_next_january(self, analyze):
        """Test 'since 2019' filters from 1 January 2020."""
        plan = self.builders.build(analyze("How many goals has Luke Bangs scored since 2019?"))

        assert "md.date >= $sinceDate" in plan.query
        assert plan.params["sinceDate"] == "2020-01-01"

    def test_ratio_query(self, analyze):
        """Test per-appearance metrics divide in the query."""
        plan = self.builders.build(analyze("How many yellow cards per game has Luke Bangs received?"))

        assert plan.shape == "ratio"
        assert plan.metric == "YPERAPP"
        assert "denominator > 0" in plan.query

    def test_leaderboard(self, analyze):
        """Test ranking questions order players by value."""
        plan = self.builders.build(analyze("Who has the most assists?", user_context="Luke Bangs"))

        assert plan.shape == "leaderboard"
        assert "ORDER BY value DESC" in plan.query
        assert "LIMIT $limit" in plan.query
        assert plan.params["limit"] == 10
        assert "playerName" not in plan.params

    def test_leaderboard_ascending(self, analyze):
        """Test 'fewest' reverses the ranking."""
        plan = self.builders.build(analyze("Who has the fewest yellow cards?", user_context="Luke Bangs"))

        assert plan.shape == "leaderboard"
        assert "ORDER BY value ASC" in plan.query

    def test_win_percentage(self, analyze):
        """Test win percentage binds the result code."""
        plan = self.builders.build(analyze("What is Luke Bangs's win percentage in games played?"))

        assert plan.shape == "percentage"
        assert plan.metric == "WIN_PERCENTAGE"
        assert plan.params["result"] == "W"

    def test_no_player(self, analyze):
        """Test a player route with nobody to look up reports NotFound."""
        analysis = analyze("How many goals has Luke Bangs scored?")
        analysis.player_entities = []

        result = self.builders.player.build(analysis.entities, analysis.metrics, analysis)

        assert isinstance(result, NotFound)
        assert result.domain == "player"

    def test_appearance_streak_season_reads_fixture(self, analyze):
        """Test an appearance streak filters the season on the Fixture after the WITH."""
        plan = self.builders.build(
            analyze("What is my longest streak of consecutive appearances in 2017/18?", user_context="Luke Bangs")
        )

        assert plan.shape == "streak"
        assert plan.params["season"] == "2017/18"
        assert "f.season = $season" in plan.query
        assert "md.season" not in plan.query.split("WITH p, collect", 1)[1]
        assert_well_formed(plan)

    def test_most_goals_for_team(self, analyze):
        """Test 'which team ... most goals for' ranks teams by goals, not appearances."""
        plan = self.builders.build(analyze("Which team has Luke Bangs scored the most goals for?"))

        assert plan.shape == "most_scored_for_team"
        assert plan.metric == "G"
        assert "statValue" in plan.query
        assert_well_formed(plan)

    def test_most_played_for_team(self, analyze):
        """Test 'which team ... played for the most' still ranks by appearances."""
        plan = self.builders.build(analyze("Which team has Luke Bangs played for the most?"))

        assert plan.shape == "most_played_for_team"
        assert "count(md) AS appearances" in plan.query

    def test_leaderboard_most_goals_for_club(self, analyze):
        """Test 'most goals for the club' ranks players by goals."""
        plan = self.builders.build(analyze("Who has scored the most goals for the club?", user_context="Luke Bangs"))

        assert plan.shape == "leaderboard"
        assert plan.metric == "G"
        assert "allGoalsScored" in plan.query

    def test_player_comparison(self, analyze):
        """Test two named players are both looked up in one query."""
        plan = self.builders.build(analyze("Who has scored more goals, Luke Bangs or Oli Goddard?"))

        assert plan.shape == "player_comparison"
        assert plan.params["playerNames"] == ["Luke Bangs", "Oli Goddard"]
        assert "playerName" not in plan.params
        assert "p.playerName IN $playerNames" in plan.query
        assert "allGoalsScored" in plan.query
        assert_well_formed(plan)

    def test_player_comparison_with_season(self, analyze):
        """Test a filtered comparison aggregates match details per player."""
        plan = self.builders.build(analyze("How many goals have Luke Bangs and Oli Goddard scored in 2017/18?"))

        assert plan.shape == "player_comparison"
        assert plan.params["playerNames"] == ["Luke Bangs", "Oli Goddard"]
        assert plan.params["season"] == "2017/18"
        assert "md.season = $season" in plan.query
        assert "p.playerName IN $playerNames" in plan.query
        assert_well_formed(plan)

    def test_games_together(self, analyze):
        """Test 'played with' a named player counts shared fixtures."""
        plan = self.builders.build(
            analyze("How many times have I played with Oli Goddard?", user_context="Luke Bangs")
        )

        assert plan.shape == "games_together"
        assert plan.params["playerName"] == "Luke Bangs"
        assert plan.params["otherPlayer"] == "Oli Goddard"
        assert "count(DISTINCT f) AS value" in plan.query
        assert_well_formed(plan)

    def test_most_played_with(self, analyze):
        """Test 'played with the most' ranks team-mates by shared fixtures."""
        plan = self.builders.build(analyze("Who have I played with the most?", user_context="Luke Bangs"))

        assert plan.shape == "most_played_with"
        assert plan.params["playerName"] == "Luke Bangs"
        assert "other.playerName <> p.playerName" in plan.query
        assert "ORDER BY gamesTogether DESC" in plan.query
        assert_well_formed(plan)

    def test_opponents_against_opposition(self, analyze):
        """Test 'played against' an opposition groups that player's fixtures by opponent."""
        plan = self.builders.build(
            analyze("How many times have I played against Old Wimbledonians?", user_context="Luke Bangs")
        )

        assert plan.shape == "opponents"
        assert plan.params["opposition"] == "Old Wimbledonians"
        assert plan.params["limit"] == 10
        assert_well_formed(plan)

    def test_opponent_count(self, analyze):
        """Test 'how many opponents' counts distinct oppositions."""
        plan = self.builders.build(analyze("How many opponents has Luke Bangs faced?"))

        assert plan.shape == "opponent_count"
        assert "count(DISTINCT f.opposition) AS value" in plan.query
        assert_well_formed(plan)

    def test_player_record(self, analyze):
        """Test a player's record reads results of the games they played."""
        plan = self.builders.build(analyze("What is Luke Bangs's record against Trinity?"))

        assert plan.shape == "percentage"
        assert plan.metric == "WIN_PERCENTAGE"
        assert plan.params["opposition"] == "Trinity"
        assert_well_formed(plan)


class TestTeamQueries:
    """Test class for team-domain plans."""

    @pytest.fixture(autouse=True)
    def _builders(self, settings):
        self.builders = QueryBuilders(settings)

    def test_season_goals(self, analyze):
        """Test a team season total reads Fixture scores."""
        plan = self.builders.build(analyze("How many goals did the 2nd team score in 2017/18?"))

        assert plan.domain == "team"
        assert plan.shape == "season_goals"
        assert "f.season = $season" in plan.query
        assert "f.team IN $teams" in plan.query
        assert "Player" not in plan.query
        assert plan.params["season"] == "2017/18"
        assert plan.params["teams"] == ["2nd XI"]
        assert plan.params["excludedStatuses"] == ["void", "postponed", "abandoned"]

    def test_league_position_last_season(self, analyze):
        """Test 'last season' resolves against the current season."""
        plan = self.builders.build(
            analyze("Where did the 1s finish in the league last season?", current_season="2024/25")
        )

        assert plan.shape == "league_position"
        assert plan.params["team"] == "1st XI"
        assert plan.params["season"] == "2023/24"
        assert "LeagueTable" in plan.query

    def test_win_rate(self, analyze):
        """Test a team win rate is answered from Fixture results."""
        plan = self.builders.build(analyze("What is the 1s win rate in 2019/20?"))

        assert plan.domain == "team"
        assert plan.shape == "record"
        assert plan.metric == "WIN_RATE"
        assert plan.params["teams"] == ["1st XI"]
        assert plan.params["season"] == "2019/20"
        assert "f.season = $season" in plan.query
        assert_well_formed(plan)


class TestFixtureQueries:
    """Test class for fixture-domain plans."""

    @pytest.fixture(autouse=True)
    def _builders(self, settings):
        self.builders = QueryBuilders(settings)

    def test_head_to_head(self, analyze):
        """Test an opposition with no player builds a head-to-head record."""
        analysis = analyze("How many goals have we scored against Old Wimbledonians?")

        plan = self.builders.build(analysis)

        assert select_domain(analysis) == "fixture"
        assert plan.shape == "record"
        assert plan.params["opposition"] == "Old Wimbledonians"
        assert "toLower(f.opposition) CONTAINS toLower($opposition)" in plan.query

    def test_player_scored_games(self, analyze):
        """Test 'games when X scored' switches a named player to fixtures."""
        analysis = analyze("What is the record in games when Luke Bangs scored a goal?")

        assert select_domain(analysis) == "fixture"
        plan = self.builders.build(analysis)
        assert plan.shape == "record"
        assert plan.params["playerName"] == "Luke Bangs"

    def test_record_against_opposition(self, analyze):
        """Test 'our record against' builds a head-to-head record."""
        analysis = analyze("What is our record against Old Wimbledonians?")

        plan = self.builders.build(analysis)

        assert not analysis.requires_clarification
        assert analysis.metrics == ["RECORD"]
        assert plan.domain == "fixture"
        assert plan.shape == "record"
        assert plan.params["opposition"] == "Old Wimbledonians"

    def test_biggest_win(self, analyze):
        """Test 'biggest win' keeps only wins and orders by margin."""
        plan = self.builders.build(analyze("What was our biggest win against Old Wimbledonians?"))

        assert plan.shape == "fixture_record"
        assert plan.params["result"] == "W"
        assert "ORDER BY margin DESC" in plan.query
        assert_well_formed(plan)


# (question, user context, domain, shape, expected params)
ROUTE_CASES = [
    ("What is Luke Bangs's longest scoring streak?", None, "player", "streak", {"playerName": "Luke Bangs"}),
    ("How many double game weeks has Luke Bangs played?", None, "player", "double_game", {"playerName": "Luke Bangs"}),
    ("How many goals has Luke Bangs scored each season?", None, "player", "per_season", {"playerName": "Luke Bangs"}),
    ("What is Luke Bangs's most common position?", None, "player", "most_common_position", {"playerName": "Luke Bangs"}),
    ("What was Luke Bangs's most prolific season?", None, "player", "most_prolific_season", {"playerName": "Luke Bangs"}),
    ("Which team has Luke Bangs played for the most?", None, "player", "most_played_for_team", {"playerName": "Luke Bangs"}),
    ("Which team has Luke Bangs scored the most goals for?", None, "player", "most_scored_for_team", {"playerName": "Luke Bangs"}),
    ("How many teams has Luke Bangs played for?", None, "player", "team_count", {"playerName": "Luke Bangs"}),
    ("Which teams has Luke Bangs played for?", None, "player", "teams_played_for", {"playerName": "Luke Bangs"}),
    ("How many seasons played does Luke Bangs have?", None, "player", "seasons_played_for", {"playerName": "Luke Bangs"}),
    ("How many times have I played with Oli Goddard?", "Luke Bangs", "player", "games_together", {"otherPlayer": "Oli Goddard"}),
    ("Who have I played with the most?", "Luke Bangs", "player", "most_played_with", {"playerName": "Luke Bangs"}),
    ("How many opponents has Luke Bangs faced?", None, "player", "opponent_count", {"playerName": "Luke Bangs"}),
    ("What is the 1s win rate in 2019/20?", None, "team", "record", {"teams": ["1st XI"], "season": "2019/20"}),
    ("How many home games have the 2s played this season?", None, "team", "count", {"teams": ["2nd XI"], "homeOrAway": "Home", "season": "2024/25"}),
    ("How many yellow cards have the 3s received this season?", None, "team", "aggregate", {"teams": ["3rd XI"], "season": "2024/25"}),
    ("How many goals have the 1s scored?", None, "team", "goals_summary", {"teams": ["1st XI"]}),
    ("Which opponents did the 1s play in 2019/20?", None, "fixture", "fixture_list", {"teams": ["1st XI"], "season": "2019/20"}),
    ("Who scored the most goals in a single game?", "Luke Bangs", "fixture", "fixture_record", {}),
    ("What was the highest scoring game?", "Luke Bangs", "fixture", "fixture_record", {}),
    ("How many hat-tricks have been scored against Trinity?", None, "fixture", "count", {"opposition": "Trinity"}),
    ("How many opposition own goals have there been?", "Luke Bangs", "fixture", "count", {}),
    ("What was our biggest win against Old Wimbledonians?", None, "fixture", "fixture_record", {"result": "W"}),
    ("What is the longest unbeaten run?", "Luke Bangs", "fixture", "streak", {}),
    ("Which opponents did we play in the Premier in 2019/20?", None, "fixture", "fixture_list", {"competition": "Premier", "season": "2019/20"}),
    ("What were the latest results?", "Luke Bangs", "fixture", "fixture_list", {}),
]


class TestRouteCoverage:
    """Test class for one representative question per route."""

    @pytest.fixture(autouse=True)
    def _builders(self, settings):
        self.builders = QueryBuilders(settings)

    @pytest.mark.parametrize("question,user_context,domain,shape,params", ROUTE_CASES)
    def test_route(self, analyze, question, user_context, domain, shape, params):
        """Test each route builds its shape with every variable bound and in scope."""
        analysis = analyze(question, user_context=user_context, current_season="2024/25")

        plan = self.builders.build(analysis)

        assert isinstance(plan, QueryPlan), plan
        assert (plan.domain, plan.shape) == (domain, shape)
        for key, value in params.items():
            assert plan.params[key] == value
        assert_well_formed(plan)

    def test_scope_check_catches_dropped_variable(self):
        """Test the scope check flags a variable the WITH did not carry."""
        query = "\n".join([
            "MATCH (p:Player)-[:PLAYED_IN]->(md:MatchDetail)",
            "WITH p, collect(DISTINCT md.team) AS teams",
            "MATCH (f:Fixture) WHERE f.team IN teams AND md.season = $season",
            "RETURN count(f) AS value",
        ])

        assert unbound_variables(query) == ["md"]


class TestRouting:
    """Test class for routing tables and WHERE ordering."""

    def test_route_order(self):
        """Test the most specific routes are tried first."""
        player_routes = PLAYER_ROUTES.route_names()
        assert player_routes[0] == "no_player"
        assert player_routes[-1] == "summary"
        assert player_routes.index("leaderboard") < player_routes.index("streak")
        assert player_routes.index("seasonal_summary") < player_routes.index("match_detail_aggregate")
        assert player_routes.index("games_together") < player_routes.index("most_played_with")
        assert player_routes.index("player_comparison") < player_routes.index("leaderboard")
        assert player_routes.index("most_played_for_team") < player_routes.index("most_scored_for_team")

        assert TEAM_ROUTES.route_names()[0] == "no_team"
        assert TEAM_ROUTES.route_names().index("win_rate") < TEAM_ROUTES.route_names().index("games_played")
        assert FIXTURE_ROUTES.route_names()[-1] == "recent_fixtures"

    def test_optimize_where_order(self):
        """Test equality filters come before dates, membership and the rest."""
        conditions = [
            "f.result = $result",
            "md.team IN $teams",
            "md.date >= $sinceDate",
            "toLower(f.opposition) CONTAINS toLower($opposition)",
        ]

        assert optimize_where_order(conditions) == [
            "toLower(f.opposition) CONTAINS toLower($opposition)",
            "md.date >= $sinceDate",
            "md.team IN $teams",
            "f.result = $result",
        ]
