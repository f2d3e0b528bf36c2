"""Team- and club-domain query construction.

Team questions read Fixture nodes (results, goals for and against) or the
LeagueTable; per-player totals for a team aggregate MatchDetail rows. Club
questions use the same routes without a team filter.
"""

from typing import Any, Dict, List
import logging

from ..question_analyzer import QuestionType
from ..query_plan import BuildResult, NotFound, QueryPlan
from .base import (
    BuildContext,
    DomainQueryBuilder,
    Route,
    RoutingTable,
    WhereBuilder,
    phrase,
)
from .fixture import build_opposition_list
from .player import aggregate_expression

logger = logging.getLogger(__name__)

DOMAIN = "team"

FIXTURE_MATCH = "MATCH (f:Fixture {graphLabel: $graphLabel})"

LEAGUE_POSITION_WORDS = phrase(
    "finish", "finished", "league position", "position", "table", "where did", "points",
)
WIN_RATE_WORDS = phrase("win rate", "win percentage", "winning percentage", "record", "win ratio")
GAMES_WORDS = phrase("games", "matches", "fixtures", "played", "won", "lost", "drawn", "drew", "wins", "losses", "draws")
# Goal metrics answered from Fixture scores, not player MatchDetails.
FIXTURE_GOAL_METRICS = ("G", "C", "OPENPLAYGOALS")


def _params(ctx: BuildContext) -> Dict[str, Any]:
    return {"graphLabel": ctx.graph_label}


def _fixture_where(ctx: BuildContext, params: Dict[str, Any]) -> WhereBuilder:
    return WhereBuilder(ctx, params, date_field="f.date", season_field="f.season").fixture_filters().playable()


def _plan(ctx: BuildContext, lines: List[str], params: Dict[str, Any], shape: str, description: str, metric=None) -> QueryPlan:
    return QueryPlan(
        query="\n".join(lines),
        params=params,
        domain=DOMAIN,
        shape=shape,
        metric=metric or ctx.metric,
        description=description,
    )


# ---------- builders ----------

def build_no_team(ctx: BuildContext) -> BuildResult:
    return NotFound(DOMAIN, "Could not identify team from question")


def build_league_position(ctx: BuildContext) -> BuildResult:
    teams = ctx.teams()
    if not teams:
        return NotFound(DOMAIN, "Could not identify team from question")
    params = _params(ctx)
    params["team"] = teams[0]
    season = ctx.season or ctx.analysis.current_season
    lines = ["MATCH (lt:LeagueTable {graphLabel: $graphLabel, team: $team})"]
    if season:
        params["season"] = season
        lines.append("WHERE lt.season = $season")
    else:
        logger.debug("No season known, using the latest league table row")
    lines += [
        "RETURN lt.teamName AS teamName, lt.position AS value, lt.points AS points,",
        "  lt.played AS played, lt.won AS won, lt.drawn AS drawn, lt.lost AS lost,",
        "  lt.goalsFor AS goalsFor, lt.goalsAgainst AS goalsAgainst,",
        "  lt.division AS division, lt.season AS season",
        "ORDER BY lt.season DESC",
        "LIMIT 1",
    ]
    return _plan(ctx, lines, params, "league_position", "League table position", metric="POSITION")


def build_win_rate(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _fixture_where(ctx, params)
    lines = [FIXTURE_MATCH, where.clause()]
    lines += [
        "WITH count(f) AS games,",
        "  sum(CASE WHEN f.result = 'W' THEN 1 ELSE 0 END) AS wins,",
        "  sum(CASE WHEN f.result = 'D' THEN 1 ELSE 0 END) AS draws,",
        "  sum(CASE WHEN f.result = 'L' THEN 1 ELSE 0 END) AS losses",
        "RETURN CASE WHEN games > 0 THEN round(1000.0 * wins / games) / 10 ELSE 0.0 END AS value,",
        "  wins, draws, losses, games",
    ]
    return _plan(ctx, lines, params, "record", "Win rate", metric="WIN_RATE")


def build_games_played(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _fixture_where(ctx, params).result()
    lines = [FIXTURE_MATCH, where.clause(), "RETURN count(f) AS value"]
    return _plan(ctx, lines, params, "count", "Number of games", metric="GAMES")


def build_team_metric(ctx: BuildContext) -> BuildResult:
    metric = ctx.metric
    params = _params(ctx)
    where = WhereBuilder(ctx, params, date_field="f.date").match_filters().playable()
    lines = [
        "MATCH (f:Fixture {graphLabel: $graphLabel})-[:HAS_MATCH_DETAILS]->(md:MatchDetail)",
        where.clause(),
        f"RETURN {aggregate_expression(metric)} AS value",
    ]
    return _plan(ctx, lines, params, "aggregate", f"Team total of {metric}")


def build_season_goals(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _fixture_where(ctx, params)
    value = "conceded" if ctx.metric == "C" else "goals"
    lines = [
        FIXTURE_MATCH,
        where.clause(),
        "WITH sum(coalesce(f.dorkiniansGoals, 0)) AS goals, sum(coalesce(f.conceded, 0)) AS conceded, count(f) AS games",
        f"RETURN {value} AS value, goals, conceded, games",
    ]
    return _plan(ctx, lines, params, "season_goals", f"Team {value} in {ctx.season}")


def build_goals_summary(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _fixture_where(ctx, params)
    value = "conceded" if ctx.metric == "C" else "goals"
    lines = [
        FIXTURE_MATCH,
        where.clause(),
        "WITH sum(coalesce(f.dorkiniansGoals, 0)) AS goals, sum(coalesce(f.conceded, 0)) AS conceded, count(f) AS games",
        f"RETURN {value} AS value, goals, conceded, games",
    ]
    return _plan(ctx, lines, params, "goals_summary", "Team goals summary", metric=ctx.metric or "G")


def _is_team_metric(ctx: BuildContext) -> bool:
    return ctx.metric not in FIXTURE_GOAL_METRICS and aggregate_expression(ctx.metric) is not None


TEAM_ROUTES = RoutingTable(
    DOMAIN,
    [
        Route(
            "no_team",
            lambda ctx: ctx.analysis.type == QuestionType.TEAM and not ctx.teams(),
            build_no_team,
        ),
        Route(
            "league_position",
            lambda ctx: bool(ctx.teams()) and ctx.has(LEAGUE_POSITION_WORDS),
            build_league_position,
        ),
        Route("win_rate", lambda ctx: ctx.has(WIN_RATE_WORDS) or ctx.metric == "RECORD", build_win_rate),
        Route("opposition_list", lambda ctx: ctx.metric == "OPPONENTS", build_opposition_list),
        Route(
            "games_played",
            lambda ctx: (ctx.metric in (None, "APP") and ctx.has(GAMES_WORDS)) or ctx.metric in ("HOME", "AWAY"),
            build_games_played,
        ),
        Route("team_metric", _is_team_metric, build_team_metric),
        Route(
            "season_goals",
            lambda ctx: ctx.metric in FIXTURE_GOAL_METRICS and ctx.season is not None,
            build_season_goals,
        ),
        Route("goals_summary", lambda ctx: True, build_goals_summary),
    ],
)


class TeamQueryBuilder(DomainQueryBuilder):
    """Build team- and club-domain Cypher plans."""

    routes = TEAM_ROUTES
