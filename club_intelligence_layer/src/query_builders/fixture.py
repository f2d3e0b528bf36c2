"""Fixture-domain query construction."""

from typing import Any, Dict, List
import logging

from ..query_plan import BuildResult, QueryPlan
from .base import (
    BuildContext,
    DomainQueryBuilder,
    Route,
    RoutingTable,
    WhereBuilder,
    phrase,
)

logger = logging.getLogger(__name__)

DOMAIN = "fixture"

FIXTURE_MATCH = "MATCH (f:Fixture {graphLabel: $graphLabel})"
DETAIL_JOIN = (
    "MATCH (p:Player {graphLabel: $graphLabel})-[:PLAYED_IN]->(md:MatchDetail)"
    "<-[:HAS_MATCH_DETAILS]-(f:Fixture)"
)
_GOALS_IN_MATCH = "coalesce(md.goals, 0) + coalesce(md.penaltiesScored, 0)"
_MARGIN = "coalesce(f.dorkiniansGoals, 0) - coalesce(f.conceded, 0)"
_TOTAL = "coalesce(f.dorkiniansGoals, 0) + coalesce(f.conceded, 0)"
_FIXTURE_COLUMNS = (
    "f.date AS date, f.team AS team, f.opposition AS opposition, f.homeOrAway AS homeOrAway, "
    "f.result AS result, f.dorkiniansGoals AS goalsFor, f.conceded AS goalsAgainst, "
    "f.competition AS competition"
)

PLAYER_GOALS_IN_GAME_WORDS = phrase(
    "most goals in a game", "most goals in a single game", "most goals in one game",
    "most goals in a match", "most goals scored in a game", "most goals by a player",
    "most goals has a player scored",
)
HIGHEST_SCORING_WORDS = phrase(
    "highest scoring game", "highest scoring match", "highest-scoring game",
    "highest-scoring match", "most goals in a fixture",
)
HAT_TRICK_WORDS = phrase("hat-trick", "hat-tricks", "hat trick", "hat tricks", "hattrick", "hattricks")
OPPONENT_OWN_GOAL_WORDS = phrase(
    "opposition own goals", "opponent own goals", "own goals by the opposition",
    "own goals by opponents", "own goals scored by opponents", "own goals scored by the opposition",
)
BIGGEST_WIN_WORDS = phrase(
    "biggest win", "largest win", "biggest victory", "heaviest win", "record win",
    "biggest defeat", "heaviest defeat", "biggest loss", "worst defeat",
)
DEFEAT_WORDS = phrase("defeat", "loss")
RUN_WORDS = phrase(
    "unbeaten run", "winning run", "losing run", "winning streak", "losing streak",
    "unbeaten streak", "in a row", "consecutive",
)
WINNING_RUN_WORDS = phrase("winning run", "winning streak", "wins in a row", "consecutive wins", "won in a row")
LOSING_RUN_WORDS = phrase("losing run", "losing streak", "defeats in a row", "consecutive defeats", "lost in a row")
OPPOSITION_LIST_WORDS = phrase(
    "who did", "who have", "who has", "which teams did", "which teams have", "opponents",
    "opposition", "who did we play", "teams played",
)


def _params(ctx: BuildContext) -> Dict[str, Any]:
    params: Dict[str, Any] = {"graphLabel": ctx.graph_label}
    if ctx.player:
        params["playerName"] = ctx.player
    return params


def _fixture_where(ctx: BuildContext, params: Dict[str, Any]) -> WhereBuilder:
    return WhereBuilder(ctx, params, date_field="f.date", season_field="f.season").fixture_filters().playable()


def _detail_where(ctx: BuildContext, params: Dict[str, Any]) -> WhereBuilder:
    return WhereBuilder(ctx, params, date_field="f.date", season_field="f.season").match_filters().playable()


def _plan(ctx: BuildContext, lines: List[str], params: Dict[str, Any], shape: str, description: str, metric=None) -> QueryPlan:
    return QueryPlan(
        query="\n".join(line for line in lines if line),
        params=params,
        domain=DOMAIN,
        shape=shape,
        metric=metric or ctx.metric,
        description=description,
    )


# ---------- builders ----------

def build_highest_player_goals_in_game(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _detail_where(ctx, params)
    lines = [
        DETAIL_JOIN,
        where.clause(),
        f"WITH p, f, {_GOALS_IN_MATCH} AS goals",
        "ORDER BY goals DESC, f.date ASC",
        "LIMIT 1",
        f"RETURN p.playerName AS playerName, goals AS value, {_FIXTURE_COLUMNS}",
    ]
    return _plan(ctx, lines, params, "fixture_record", "Most goals by a player in one game", metric="G")


def build_highest_scoring_game(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _fixture_where(ctx, params)
    lines = [
        FIXTURE_MATCH,
        where.clause(),
        f"WITH f, {_TOTAL} AS totalGoals",
        "ORDER BY totalGoals DESC, f.date ASC",
        "LIMIT 1",
        f"RETURN totalGoals AS value, {_FIXTURE_COLUMNS}",
    ]
    return _plan(ctx, lines, params, "fixture_record", "Highest scoring game", metric="G")


def build_hat_tricks(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _detail_where(ctx, params)
    where.conditions.append(f"{_GOALS_IN_MATCH} >= 3")
    lines = [
        DETAIL_JOIN,
        where.clause(),
        "WITH p, f ORDER BY f.date ASC",
        "RETURN count(f) AS value, collect(p.playerName + ' v ' + f.opposition)[..10] AS examples",
    ]
    return _plan(ctx, lines, params, "count", "Hat-tricks scored", metric="HAT_TRICKS")


def build_opponent_own_goals(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _fixture_where(ctx, params)
    lines = [
        FIXTURE_MATCH,
        where.clause(),
        "RETURN sum(coalesce(f.oppoOwnGoals, 0)) AS value, count(f) AS games",
    ]
    return _plan(ctx, lines, params, "count", "Own goals scored by opponents", metric="OG")


def build_biggest_win(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    defeat = ctx.has(DEFEAT_WORDS)
    where = _fixture_where(ctx, params)
    where.add("f.result = $result", result="L" if defeat else "W")
    order = "ASC" if defeat else "DESC"
    lines = [
        FIXTURE_MATCH,
        where.clause(),
        f"WITH f, {_MARGIN} AS margin",
        f"ORDER BY margin {order}, f.date ASC",
        "LIMIT 1",
        f"RETURN margin AS value, {_FIXTURE_COLUMNS}",
    ]
    return _plan(ctx, lines, params, "fixture_record", "Biggest defeat" if defeat else "Biggest win", metric="MARGIN")


def build_longest_run(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    if ctx.has(WINNING_RUN_WORDS):
        condition, description = "f.result = 'W'", "Longest winning run"
    elif ctx.has(LOSING_RUN_WORDS):
        condition, description = "f.result = 'L'", "Longest losing run"
    else:
        condition, description = "f.result <> 'L'", "Longest unbeaten run"
    logger.debug(f"Fixture run query: {description}")
    where = _fixture_where(ctx, params)
    where.conditions.append("f.result IS NOT NULL")
    lines = [
        FIXTURE_MATCH,
        where.clause(),
        "WITH f ORDER BY f.date ASC",
        f"WITH collect({condition}) AS results, count(f) AS games",
        "RETURN reduce(s = {cur: 0, best: 0}, r IN results | "
        "CASE WHEN r THEN {cur: s.cur + 1, best: CASE WHEN s.cur + 1 > s.best THEN s.cur + 1 ELSE s.best END} "
        "ELSE {cur: 0, best: s.best} END).best AS value, games",
    ]
    return _plan(ctx, lines, params, "streak", description, metric="RUN")


def build_player_scored_games(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _detail_where(ctx, params)
    where.conditions.append(f"{_GOALS_IN_MATCH} > 0")
    lines = [
        "MATCH (p:Player {graphLabel: $graphLabel, playerName: $playerName})-[:PLAYED_IN]->(md:MatchDetail)",
        "MATCH (f:Fixture)-[:HAS_MATCH_DETAILS]->(md)",
        where.clause(),
        "WITH count(DISTINCT f) AS games,",
        "  count(DISTINCT CASE WHEN f.result = 'W' THEN f END) AS wins,",
        "  count(DISTINCT CASE WHEN f.result = 'D' THEN f END) AS draws,",
        "  count(DISTINCT CASE WHEN f.result = 'L' THEN f END) AS losses",
        "RETURN games AS value, wins, draws, losses, games",
    ]
    return _plan(ctx, lines, params, "record", "Results of games the player scored in", metric="GAMES")


def build_head_to_head(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _fixture_where(ctx, params)
    lines = [
        FIXTURE_MATCH,
        where.clause(),
        "WITH count(f) AS games,",
        "  sum(CASE WHEN f.result = 'W' THEN 1 ELSE 0 END) AS wins,",
        "  sum(CASE WHEN f.result = 'D' THEN 1 ELSE 0 END) AS draws,",
        "  sum(CASE WHEN f.result = 'L' THEN 1 ELSE 0 END) AS losses,",
        "  sum(coalesce(f.dorkiniansGoals, 0)) AS goalsFor,",
        "  sum(coalesce(f.conceded, 0)) AS goalsAgainst",
        "RETURN games AS value, wins, draws, losses, goalsFor, goalsAgainst, games",
    ]
    return _plan(ctx, lines, params, "record", f"Record against {ctx.opposition}", metric="GAMES")


def build_opposition_list(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _fixture_where(ctx, params)
    lines = [
        FIXTURE_MATCH,
        where.clause(),
        f"RETURN {_FIXTURE_COLUMNS}",
        "ORDER BY f.date ASC",
        "LIMIT 50",
    ]
    return _plan(ctx, lines, params, "fixture_list", "Fixtures in period", metric="FIXTURES")


def build_recent_fixtures(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _fixture_where(ctx, params)
    lines = [
        FIXTURE_MATCH,
        where.clause(),
        f"RETURN {_FIXTURE_COLUMNS}",
        "ORDER BY f.date DESC",
        "LIMIT 10",
    ]
    return _plan(ctx, lines, params, "fixture_list", "Recent fixtures", metric="FIXTURES")


FIXTURE_ROUTES = RoutingTable(
    DOMAIN,
    [
        Route(
            "highest_player_goals_in_game",
            lambda ctx: ctx.has(PLAYER_GOALS_IN_GAME_WORDS),
            build_highest_player_goals_in_game,
        ),
        Route("highest_scoring_game", lambda ctx: ctx.has(HIGHEST_SCORING_WORDS), build_highest_scoring_game),
        Route(
            "hat_tricks",
            lambda ctx: ctx.metric == "HAT_TRICKS" or ctx.has(HAT_TRICK_WORDS),
            build_hat_tricks,
        ),
        Route(
            "opponent_own_goals",
            lambda ctx: ctx.has(OPPONENT_OWN_GOAL_WORDS) or (ctx.metric == "OG" and not ctx.analysis.has_named_player),
            build_opponent_own_goals,
        ),
        Route("biggest_win", lambda ctx: ctx.has(BIGGEST_WIN_WORDS), build_biggest_win),
        Route("longest_unbeaten_run", lambda ctx: ctx.has(RUN_WORDS), build_longest_run),
        Route(
            "player_scored_games",
            lambda ctx: ctx.analysis.has_named_player,
            build_player_scored_games,
        ),
        Route("head_to_head", lambda ctx: ctx.opposition is not None, build_head_to_head),
        Route(
            "opposition_list",
            lambda ctx: ctx.has(OPPOSITION_LIST_WORDS) and bool(ctx.analysis.concrete_time_frames()),
            build_opposition_list,
        ),
        Route("recent_fixtures", lambda ctx: True, build_recent_fixtures),
    ],
)


class FixtureQueryBuilder(DomainQueryBuilder):
    """Build fixture-domain Cypher plans."""

    routes = FIXTURE_ROUTES
