"""Player-domain query construction."""

from typing import Any, Dict, List, Optional
import logging
import re

from ...config.metrics import (
    MATCH_DETAIL_AGGREGATES,
    METRIC_NEEDS_MATCH_DETAIL,
    PLAYER_SUMMARY_FIELDS,
    RATIO_METRICS,
    UNSUPPORTED_METRICS,
    get_metric_config,
    seasonal_summary_field,
)
from ..question_analyzer import QuestionType
from ..query_plan import BuildResult, NotFound, QueryPlan
from .base import (
    BuildContext,
    DomainQueryBuilder,
    Route,
    RoutingTable,
    WhereBuilder,
    count_filters,
    phrase,
    result_applies,
)

logger = logging.getLogger(__name__)

DOMAIN = "player"

PLAYER_MATCH = "MATCH (p:Player {graphLabel: $graphLabel, playerName: $playerName})"
DETAIL_MATCH = PLAYER_MATCH + "-[:PLAYED_IN]->(md:MatchDetail)"
FIXTURE_JOIN = "MATCH (f:Fixture)-[:HAS_MATCH_DETAILS]->(md)"

_GOALS_IN_MATCH = "coalesce(md.goals, 0) + coalesce(md.penaltiesScored, 0)"

# Aggregations that are not a plain sum of one MatchDetail field.
SPECIAL_AGGREGATES: Dict[str, str] = {
    "HAT_TRICKS": f"sum(CASE WHEN {_GOALS_IN_MATCH} >= 3 THEN 1 ELSE 0 END)",
    "DGW": "sum(CASE WHEN md.doubleGameWeek = true THEN 1 ELSE 0 END)",
}

STREAK_CONDITIONS: Dict[str, str] = {
    "G": f"{_GOALS_IN_MATCH} > 0",
    "A": "coalesce(md.assists, 0) > 0",
    "CLS": "coalesce(md.cleanSheets, 0) > 0",
    "MOM": "coalesce(md.mom, 0) > 0",
    "Y": "coalesce(md.yellowCards, 0) > 0",
}

_FIXTURE_REF = re.compile(r"\bf\.")

STREAK_WORDS = phrase(
    "streak", "consecutive", "in a row", "unbeaten run", "winning run", "scoring run", "run of"
)
PER_SEASON_WORDS = phrase("each season", "per season", "every season", "by season", "season by season")
ASCENDING_WORDS = phrase("lowest", "least", "fewest")
MOST_COMMON_POSITION_WORDS = phrase("most common position", "what position", "which position", "usual position")
MOST_PLAYED_FOR_WORDS = phrase(
    "most appearances for", "played most for", "played the most for", "most games for",
    "played for most", "played most games for",
)
MOST_SCORED_FOR_WORDS = phrase(
    "most goals for", "scored most for", "scored the most for", "scored most goals for",
    "most assists for",
)
WHICH_TEAM_WORDS = phrase("which team", "what team")
SCORING_WORDS = phrase("scored", "score", "scoring", "goals", "goal", "assists", "assist", "assisted")
ASSIST_WORDS = phrase("assists", "assist", "assisted")
TEAM_COUNT_WORDS = phrase("how many teams", "how many different teams", "number of teams")
TEAMS_PLAYED_FOR_WORDS = phrase("teams played for", "which teams", "what teams", "played for which")
SEASONS_WORDS = phrase("how many seasons", "seasons played", "seasons has", "seasons have", "number of seasons")
WIN_PERCENTAGE_WORDS = phrase(
    "win percentage", "win rate", "percentage of games", "% of games", "what percentage",
    "games won percentage", "winning percentage",
)
HOW_MANY_WORDS = phrase("how many", "number of")
LOST_WORDS = phrase("lost", "lose", "losses", "defeats")
DRAWN_WORDS = phrase("drawn", "drew", "draws", "draw")


def aggregate_expression(metric: Optional[str]) -> Optional[str]:
    if metric is None:
        return None
    if metric in SPECIAL_AGGREGATES:
        return SPECIAL_AGGREGATES[metric]
    return MATCH_DETAIL_AGGREGATES.get(metric)


def ratio_expression(metric: str, numerator: str = "numerator", denominator: str = "denominator") -> str:
    ratio = RATIO_METRICS[metric]
    factor = "100.0" if ratio.percentage else "1.0"
    return (
        f"CASE WHEN {denominator} > 0 "
        f"THEN round({ratio.scale} * {factor} * {numerator} / {denominator}) / {ratio.scale} "
        f"ELSE 0.0 END"
    )


def _params(ctx: BuildContext) -> Dict[str, Any]:
    params: Dict[str, Any] = {"graphLabel": ctx.graph_label}
    if ctx.player:
        params["playerName"] = ctx.player
    return params


def _detail_where(ctx: BuildContext, params: Dict[str, Any], with_result: bool = True) -> WhereBuilder:
    where = WhereBuilder(ctx, params, date_field="md.date").match_filters()
    if with_result and result_applies(ctx):
        where.result()
    return where


def _detail_lines(where: WhereBuilder, match: str = DETAIL_MATCH, extra: Optional[List[str]] = None) -> List[str]:
    lines = [match]
    conditions = list(where.conditions) + list(extra or [])
    if any(_FIXTURE_REF.search(c) for c in conditions):
        lines.append(FIXTURE_JOIN)
    where.conditions.extend(extra or [])
    clause = where.clause()
    if clause:
        lines.append(clause)
    return lines


def _plan(ctx: BuildContext, lines: List[str], params: Dict[str, Any], shape: str, description: str, metric=None) -> QueryPlan:
    return QueryPlan(
        query="\n".join(lines),
        params=params,
        domain=DOMAIN,
        shape=shape,
        metric=metric or ctx.metric,
        description=description,
    )


def _extra_metrics(ctx: BuildContext, available) -> List[str]:
    return [m for m in ctx.metrics[1:] if m in available]


def _scoring_metric(ctx: BuildContext) -> str:
    """First countable metric asked for; goals unless assists are mentioned."""
    for metric in ctx.metrics:
        if metric != "APP" and aggregate_expression(metric) is not None:
            return metric
    return "A" if ctx.has(ASSIST_WORDS) else "G"


def _is_comparable(metric: Optional[str]) -> bool:
    return metric in RATIO_METRICS or aggregate_expression(metric) is not None


# ---------- predicates ----------

def _needs_player(ctx: BuildContext) -> bool:
    return ctx.player is None and ctx.analysis.type != QuestionType.COMPARISON


def _is_leaderboard(ctx: BuildContext) -> bool:
    if ctx.analysis.type != QuestionType.COMPARISON:
        return False
    if ctx.has(WHICH_TEAM_WORDS) or ctx.metric in ("MOST_PROLIFIC_SEASON", "MOST_COMMON_POSITION"):
        return False
    return ctx.player is None or ctx.analysis.player_from_context


def _is_per_season(ctx: BuildContext) -> bool:
    return ctx.has(PER_SEASON_WORDS)


def _is_most_played_for(ctx: BuildContext) -> bool:
    if ctx.has(MOST_PLAYED_FOR_WORDS):
        return True
    # "most goals for" is also a team-analysis phrase; scoring words win.
    if ctx.has(SCORING_WORDS):
        return False
    return ctx.has(WHICH_TEAM_WORDS) and ctx.metric in (None, "APP", "TEAM_ANALYSIS")


def _is_most_scored_for(ctx: BuildContext) -> bool:
    if ctx.has(MOST_SCORED_FOR_WORDS):
        return True
    if not ctx.has(WHICH_TEAM_WORDS):
        return False
    return ctx.has(SCORING_WORDS) or aggregate_expression(ctx.metric) is not None


def _is_games_together(ctx: BuildContext) -> bool:
    return ctx.metric == "CO_PLAYERS" and len(ctx.analysis.player_entities) >= 2


def _is_player_comparison(ctx: BuildContext) -> bool:
    return len(ctx.analysis.player_entities) >= 2 and _is_comparable(ctx.metric)


def _is_teams_played_for(ctx: BuildContext) -> bool:
    return ctx.has(TEAM_COUNT_WORDS) or ctx.has(TEAMS_PLAYED_FOR_WORDS) or ctx.metric == "TEAM_ANALYSIS"


def _is_seasonal_summary(ctx: BuildContext) -> bool:
    frames = ctx.analysis.concrete_time_frames()
    if len(frames) != 1 or frames[0].type != "season":
        return False
    if seasonal_summary_field(ctx.metric, ctx.season) is None:
        return False
    # The season is the only filter the summary property can express.
    return count_filters(ctx) == 1


def _is_match_detail_aggregate(ctx: BuildContext) -> bool:
    metric = ctx.metric
    return (
        count_filters(ctx) > 0
        or metric in METRIC_NEEDS_MATCH_DETAIL
        or metric not in PLAYER_SUMMARY_FIELDS
    )


# ---------- builders ----------

def build_no_player(ctx: BuildContext) -> BuildResult:
    return NotFound(DOMAIN, "Could not identify player from question")


def build_unsupported_award(ctx: BuildContext) -> BuildResult:
    name = get_metric_config(ctx.metric).display_name
    return NotFound(DOMAIN, f"Questions about {name} are not supported yet")


def _shared_fixture_where(ctx: BuildContext, params: Dict[str, Any]) -> WhereBuilder:
    return WhereBuilder(ctx, params, date_field="f.date", season_field="f.season").match_filters()


def build_games_together(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    params["otherPlayer"] = ctx.analysis.player_entities[1]
    where = _shared_fixture_where(ctx, params)
    lines = [
        DETAIL_MATCH,
        FIXTURE_JOIN,
        "MATCH (f)-[:HAS_MATCH_DETAILS]->(omd:MatchDetail)"
        "<-[:PLAYED_IN]-(other:Player {graphLabel: $graphLabel, playerName: $otherPlayer})",
    ]
    clause = where.clause()
    if clause:
        lines.append(clause)
    lines.append("RETURN count(DISTINCT f) AS value")
    return _plan(ctx, lines, params, "games_together", "Games played together")


def build_most_played_with(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _shared_fixture_where(ctx, params).add("other.playerName <> p.playerName")
    lines = [
        DETAIL_MATCH,
        FIXTURE_JOIN,
        "MATCH (f)-[:HAS_MATCH_DETAILS]->(omd:MatchDetail)<-[:PLAYED_IN]-(other:Player {graphLabel: $graphLabel})",
        where.clause(),
        "WITH p, other.playerName AS teammate, count(DISTINCT f) AS gamesTogether",
        "ORDER BY gamesTogether DESC, teammate ASC",
        "LIMIT 3",
        "RETURN p.playerName AS playerName, teammate AS value, gamesTogether",
    ]
    return _plan(ctx, lines, params, "most_played_with", "Team-mates played with most")


def build_opponents(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _shared_fixture_where(ctx, params).add("f.opposition IS NOT NULL")
    lines = [DETAIL_MATCH, FIXTURE_JOIN, where.clause()]
    if ctx.opposition is None and ctx.has(HOW_MANY_WORDS):
        lines.append("RETURN p.playerName AS playerName, count(DISTINCT f.opposition) AS value")
        return _plan(ctx, lines, params, "opponent_count", "Number of different opponents")
    params["limit"] = ctx.settings.leaderboard_limit
    lines += [
        f"WITH p, f.opposition AS opponent, count(md) AS gamesPlayed, {MATCH_DETAIL_AGGREGATES['G']} AS goals,",
        "  sum(coalesce(md.assists, 0)) AS assists, max(f.date) AS lastPlayed",
        "ORDER BY gamesPlayed DESC, goals DESC, opponent ASC",
        "LIMIT $limit",
        "RETURN p.playerName AS playerName, opponent AS value, gamesPlayed, goals, assists, lastPlayed",
    ]
    return _plan(ctx, lines, params, "opponents", "Opponents played against")


def build_player_comparison(ctx: BuildContext) -> BuildResult:
    """One row per named player for the same metric and filters."""
    metric = ctx.metric
    params: Dict[str, Any] = {"graphLabel": ctx.graph_label, "playerNames": list(ctx.analysis.player_entities)}
    where = WhereBuilder(ctx, params, date_field="md.date").match_filters()
    if result_applies(ctx):
        where.result()
    logger.debug(f"Comparing {len(params['playerNames'])} players on {metric}")

    if not where.has_conditions and metric in PLAYER_SUMMARY_FIELDS and metric not in METRIC_NEEDS_MATCH_DETAIL:
        field_name = PLAYER_SUMMARY_FIELDS[metric]
        lines = [
            "MATCH (p:Player {graphLabel: $graphLabel})",
            "WHERE p.playerName IN $playerNames",
            f"RETURN p.playerName AS playerName, coalesce(p.{field_name}, 0) AS value",
            "ORDER BY value DESC, playerName ASC",
        ]
        return _plan(ctx, lines, params, "player_comparison", f"{metric} for each player")

    match = "MATCH (p:Player {graphLabel: $graphLabel})-[:PLAYED_IN]->(md:MatchDetail)"
    lines = _detail_lines(where, match=match, extra=["p.playerName IN $playerNames"])
    if metric in RATIO_METRICS:
        ratio = RATIO_METRICS[metric]
        lines += [
            f"WITH p, {ratio.numerator} AS numerator, {ratio.denominator} AS denominator",
            f"WITH p, {ratio_expression(metric)} AS value",
        ]
    else:
        lines.append(f"WITH p, {aggregate_expression(metric)} AS value")
    lines += [
        "RETURN p.playerName AS playerName, value",
        "ORDER BY value DESC, playerName ASC",
    ]
    return _plan(ctx, lines, params, "player_comparison", f"{metric} for each player")


def build_leaderboard(ctx: BuildContext) -> BuildResult:
    metric = _scoring_metric(ctx) if ctx.metric == "TEAM_ANALYSIS" else ctx.metric
    params: Dict[str, Any] = {"graphLabel": ctx.graph_label, "limit": ctx.settings.leaderboard_limit}
    order = "ASC" if ctx.has(ASCENDING_WORDS) else "DESC"
    logger.debug(f"Leaderboard for {metric} ordered {order}")
    where = WhereBuilder(ctx, params, date_field="md.date").match_filters()
    if result_applies(ctx):
        where.result()

    if not where.has_conditions and metric in PLAYER_SUMMARY_FIELDS and metric not in METRIC_NEEDS_MATCH_DETAIL:
        lines = [
            "MATCH (p:Player {graphLabel: $graphLabel})",
            f"WHERE p.{PLAYER_SUMMARY_FIELDS[metric]} IS NOT NULL",
            f"RETURN p.playerName AS playerName, coalesce(p.{PLAYER_SUMMARY_FIELDS[metric]}, 0) AS value",
            f"ORDER BY value {order}, playerName ASC",
            "LIMIT $limit",
        ]
        return _plan(ctx, lines, params, "leaderboard", f"Top players by {metric}", metric=metric)

    match = "MATCH (p:Player {graphLabel: $graphLabel})-[:PLAYED_IN]->(md:MatchDetail)"
    lines = _detail_lines(where, match=match)
    if metric in RATIO_METRICS:
        ratio = RATIO_METRICS[metric]
        lines += [
            f"WITH p, {ratio.numerator} AS numerator, {ratio.denominator} AS denominator",
            "WHERE denominator > 0",
            f"WITH p, {ratio_expression(metric)} AS value",
        ]
    else:
        expression = aggregate_expression(metric)
        if expression is None:
            return NotFound(DOMAIN, f"Cannot rank players by {get_metric_config(metric or '').display_name}")
        lines.append(f"WITH p, {expression} AS value")
    lines += [
        "RETURN p.playerName AS playerName, value",
        f"ORDER BY value {order}, playerName ASC",
        "LIMIT $limit",
    ]
    return _plan(ctx, lines, params, "leaderboard", f"Top players by {metric}", metric=metric)


def build_streak(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    reducer = (
        "reduce(s = {cur: 0, best: 0}, r IN results | "
        "CASE WHEN r THEN {cur: s.cur + 1, best: CASE WHEN s.cur + 1 > s.best THEN s.cur + 1 ELSE s.best END} "
        "ELSE {cur: 0, best: s.best} END).best"
    )
    metric = ctx.metric if ctx.metric in STREAK_CONDITIONS or ctx.metric == "APP" else "G"

    if metric == "APP":
        # Only p and teams survive the WITH, so filters read Fixture fields.
        where = WhereBuilder(ctx, params, date_field="f.date", season_field="f.season")
        where.team_filter("f.team").opposition().competition_type().time()
        lines = [
            DETAIL_MATCH,
            "WITH p, collect(DISTINCT md.team) AS teams",
            "MATCH (f:Fixture {graphLabel: $graphLabel})",
            where.clause("WHERE f.team IN teams AND") if where.has_conditions else "WHERE f.team IN teams",
            "OPTIONAL MATCH (f)-[:HAS_MATCH_DETAILS]->(pmd:MatchDetail)<-[:PLAYED_IN]-(p)",
            "WITH p, f, count(pmd) > 0 AS played",
            "ORDER BY f.date ASC",
            "WITH p, collect(played) AS results",
            f"RETURN p.playerName AS playerName, {reducer} AS value",
        ]
        return _plan(ctx, lines, params, "streak", "Longest run of consecutive appearances")

    where = _detail_where(ctx, params, with_result=False)
    lines = _detail_lines(where)
    lines += [
        "WITH p, md",
        "ORDER BY md.date ASC",
        f"WITH p, collect({STREAK_CONDITIONS[metric]}) AS results",
        f"RETURN p.playerName AS playerName, {reducer} AS value",
    ]
    return _plan(ctx, lines, params, "streak", f"Longest consecutive run for {metric}")


def build_double_game(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _detail_where(ctx, params, with_result=False)
    lines = _detail_lines(where, extra=["md.doubleGameWeek = true"])
    lines += [
        "RETURN p.playerName AS playerName, count(md) AS value,",
        f"  sum({_GOALS_IN_MATCH}) AS goals, sum(coalesce(md.assists, 0)) AS assists",
    ]
    return _plan(ctx, lines, params, "double_game", "Double game week appearances")


def build_per_season(ctx: BuildContext) -> BuildResult:
    metric = ctx.metric or "G"
    params = _params(ctx)
    where = _detail_where(ctx, params)
    lines = _detail_lines(where, extra=["md.season IS NOT NULL"])
    if metric in RATIO_METRICS:
        ratio = RATIO_METRICS[metric]
        lines += [
            f"WITH p, md.season AS season, {ratio.numerator} AS numerator, {ratio.denominator} AS denominator",
            f"WITH p, season, {ratio_expression(metric)} AS value",
        ]
    else:
        expression = aggregate_expression(metric)
        if expression is None:
            return NotFound(DOMAIN, f"Cannot break down {get_metric_config(metric).display_name} by season")
        lines.append(f"WITH p, md.season AS season, {expression} AS value")
    lines += [
        "RETURN p.playerName AS playerName, season, value",
        "ORDER BY season ASC",
    ]
    return _plan(ctx, lines, params, "per_season", f"{metric} per season")


def build_most_common_position(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _detail_where(ctx, params, with_result=False)
    lines = _detail_lines(where, extra=["md.class IS NOT NULL"])
    lines += [
        "WITH p, md.class AS position, count(md) AS appearances",
        "ORDER BY appearances DESC, position ASC",
        "LIMIT 1",
        "RETURN p.playerName AS playerName, position AS value, appearances",
    ]
    return _plan(ctx, lines, params, "most_common_position", "Most common position")


def build_most_prolific_season(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _detail_where(ctx, params, with_result=False)
    lines = _detail_lines(where, extra=["md.season IS NOT NULL"])
    lines += [
        f"WITH p, md.season AS season, {MATCH_DETAIL_AGGREGATES['G']} AS goals",
        "ORDER BY goals DESC, season ASC",
        "LIMIT 1",
        "RETURN p.playerName AS playerName, season AS value, goals",
    ]
    return _plan(ctx, lines, params, "most_prolific_season", "Season with most goals")


_TEAM_ORDER = (
    "CASE team WHEN '1st XI' THEN 1 WHEN '2nd XI' THEN 2 WHEN '3rd XI' THEN 3 "
    "WHEN '4th XI' THEN 4 WHEN '5th XI' THEN 5 WHEN '6th XI' THEN 6 "
    "WHEN '7th XI' THEN 7 WHEN '8th XI' THEN 8 ELSE 9 END"
)


def build_most_played_for_team(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _detail_where(ctx, params, with_result=False)
    lines = _detail_lines(where, extra=["md.team IS NOT NULL"])
    lines += [
        "WITH p, md.team AS team, count(md) AS appearances",
        f"WITH p, team, appearances, {_TEAM_ORDER} AS teamOrder",
        "ORDER BY appearances DESC, teamOrder ASC",
        "LIMIT 1",
        "RETURN p.playerName AS playerName, team AS value, appearances",
    ]
    return _plan(ctx, lines, params, "most_played_for_team", "Team with most appearances")


def build_most_scored_for_team(ctx: BuildContext) -> BuildResult:
    metric = _scoring_metric(ctx)
    params = _params(ctx)
    where = _detail_where(ctx, params, with_result=False)
    lines = _detail_lines(where, extra=["md.team IS NOT NULL"])
    lines += [
        f"WITH p, md.team AS team, {aggregate_expression(metric)} AS statValue",
        f"WITH p, team, statValue, {_TEAM_ORDER} AS teamOrder",
        "ORDER BY statValue DESC, teamOrder ASC",
        "LIMIT 1",
        "RETURN p.playerName AS playerName, team AS value, statValue",
    ]
    return _plan(ctx, lines, params, "most_scored_for_team", f"Team with most {metric}", metric=metric)


def build_teams_played_for(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _detail_where(ctx, params, with_result=False)
    lines = _detail_lines(where, extra=["md.team IS NOT NULL"])
    if ctx.has(TEAM_COUNT_WORDS):
        lines += [
            "WITH p, collect(DISTINCT md.team) AS teams",
            "RETURN p.playerName AS playerName, size(teams) AS value, teams",
        ]
        return _plan(ctx, lines, params, "team_count", "Number of teams played for")
    lines += [
        "WITH p, md.team AS team, count(md) AS appearances",
        f"WITH p, team, appearances, {_TEAM_ORDER} AS teamOrder",
        "ORDER BY appearances DESC, teamOrder ASC",
        "RETURN p.playerName AS playerName, team AS value, appearances",
    ]
    return _plan(ctx, lines, params, "teams_played_for", "Teams played for")


def build_seasons_played_for(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    where = _detail_where(ctx, params, with_result=False)
    lines = _detail_lines(where, extra=["md.season IS NOT NULL"])
    lines += [
        "WITH p, collect(DISTINCT md.season) AS seasons",
        "RETURN p.playerName AS playerName, size(seasons) AS value,",
        "  reduce(first = null, s IN seasons | CASE WHEN first IS NULL OR s < first THEN s ELSE first END) AS firstSeason",
    ]
    return _plan(ctx, lines, params, "seasons_played_for", "Seasons played")


def build_win_percentage(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    if ctx.has(LOST_WORDS):
        params["result"] = "L"
    elif ctx.has(DRAWN_WORDS):
        params["result"] = "D"
    else:
        params["result"] = "W"
    where = _detail_where(ctx, params, with_result=False)
    lines = [DETAIL_MATCH, FIXTURE_JOIN]
    clause = where.clause()
    if clause:
        lines.append(clause)
    lines += [
        "WITH p, count(md) AS games, sum(CASE WHEN f.result = $result THEN 1 ELSE 0 END) AS matching",
        "RETURN p.playerName AS playerName,",
        "  CASE WHEN games > 0 THEN round(1000.0 * matching / games) / 10 ELSE 0.0 END AS value,",
        "  games AS totalGames",
    ]
    return _plan(
        ctx, lines, params, "percentage",
        f"Percentage of games with result {params['result']}", metric="WIN_PERCENTAGE",
    )


def build_ratio(ctx: BuildContext) -> BuildResult:
    metric = ctx.metric
    ratio = RATIO_METRICS[metric]
    params = _params(ctx)
    where = _detail_where(ctx, params)
    lines = _detail_lines(where)
    lines += [
        f"WITH p, {ratio.numerator} AS numerator, {ratio.denominator} AS denominator",
        f"RETURN p.playerName AS playerName, {ratio_expression(metric)} AS value, numerator, denominator",
    ]
    shape = "percentage" if ratio.percentage else "ratio"
    return _plan(ctx, lines, params, shape, f"{metric} ratio")


def build_seasonal_summary(ctx: BuildContext) -> BuildResult:
    params = _params(ctx)
    field_name = seasonal_summary_field(ctx.metric, ctx.season)
    lines = [
        PLAYER_MATCH,
        f"RETURN p.playerName AS playerName, coalesce(p.{field_name}, 0) AS value",
    ]
    return _plan(ctx, lines, params, "summary", f"{ctx.metric} in {ctx.season}")


def build_match_detail_aggregate(ctx: BuildContext) -> BuildResult:
    metric = ctx.metric
    expression = aggregate_expression(metric)
    if expression is None:
        return NotFound(DOMAIN, f"Cannot answer {get_metric_config(metric or '').display_name} questions yet")
    params = _params(ctx)
    where = _detail_where(ctx, params)
    lines = _detail_lines(where)
    extra = [
        f"{aggregate_expression(m)} AS {m}"
        for m in ctx.metrics[1:]
        if aggregate_expression(m) is not None
    ]
    returns = ", ".join([f"{expression} AS value", *extra])
    lines.append(f"RETURN p.playerName AS playerName, {returns}")
    return _plan(ctx, lines, params, "aggregate", f"{metric} from match details")


def build_summary(ctx: BuildContext) -> BuildResult:
    metric = ctx.metric
    if metric not in PLAYER_SUMMARY_FIELDS:
        return NotFound(DOMAIN, "Could not determine which statistic to look up")
    params = _params(ctx)
    columns = [f"coalesce(p.{PLAYER_SUMMARY_FIELDS[metric]}, 0) AS value"]
    columns += [
        f"coalesce(p.{PLAYER_SUMMARY_FIELDS[m]}, 0) AS {m}"
        for m in _extra_metrics(ctx, PLAYER_SUMMARY_FIELDS)
    ]
    lines = [PLAYER_MATCH, "RETURN p.playerName AS playerName, " + ", ".join(columns)]
    return _plan(ctx, lines, params, "summary", f"{metric} for player")


PLAYER_ROUTES = RoutingTable(
    DOMAIN,
    [
        Route("no_player", _needs_player, build_no_player),
        Route("unsupported_award", lambda ctx: ctx.metric in UNSUPPORTED_METRICS, build_unsupported_award),
        Route("games_together", _is_games_together, build_games_together),
        Route("most_played_with", lambda ctx: ctx.metric == "CO_PLAYERS", build_most_played_with),
        Route("opponents", lambda ctx: ctx.metric == "OPPONENTS", build_opponents),
        Route("player_comparison", _is_player_comparison, build_player_comparison),
        Route("leaderboard", _is_leaderboard, build_leaderboard),
        Route(
            "streak",
            lambda ctx: ctx.analysis.type == QuestionType.STREAK or ctx.has(STREAK_WORDS),
            build_streak,
        ),
        Route(
            "double_game",
            lambda ctx: ctx.analysis.type == QuestionType.DOUBLE_GAME or ctx.metric == "DGW",
            build_double_game,
        ),
        Route("per_season", _is_per_season, build_per_season),
        Route(
            "most_common_position",
            lambda ctx: ctx.metric == "MOST_COMMON_POSITION" or ctx.has(MOST_COMMON_POSITION_WORDS),
            build_most_common_position,
        ),
        Route(
            "most_prolific_season",
            lambda ctx: ctx.metric == "MOST_PROLIFIC_SEASON",
            build_most_prolific_season,
        ),
        Route("most_played_for_team", _is_most_played_for, build_most_played_for_team),
        Route("most_scored_for_team", _is_most_scored_for, build_most_scored_for_team),
        Route("teams_played_for", _is_teams_played_for, build_teams_played_for),
        Route(
            "seasons_played_for",
            lambda ctx: ctx.metric == "SEASON_ANALYSIS" or ctx.has(SEASONS_WORDS),
            build_seasons_played_for,
        ),
        Route(
            "win_percentage",
            lambda ctx: ctx.has(WIN_PERCENTAGE_WORDS) or ctx.metric == "RECORD",
            build_win_percentage,
        ),
        Route("ratio", lambda ctx: ctx.metric in RATIO_METRICS, build_ratio),
        Route("seasonal_summary", _is_seasonal_summary, build_seasonal_summary),
        Route("match_detail_aggregate", _is_match_detail_aggregate, build_match_detail_aggregate),
        Route("summary", lambda ctx: True, build_summary),
    ],
)


class PlayerQueryBuilder(DomainQueryBuilder):
    """Build player-domain Cypher plans."""

    routes = PLAYER_ROUTES
