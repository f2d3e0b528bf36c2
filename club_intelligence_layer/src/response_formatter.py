"""
Response formatting for the Club Intelligence Layer.

Turns query rows into a natural-language answer, a single answer value and a
visualization payload (NumberCard, Table or Record), keyed by the result
shape of the executed ``QueryPlan``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from ..config.metrics import POSITION_NAMES, RATIO_METRICS, get_metric_config
from .date_utils import format_date
from .question_analyzer import QuestionAnalysis
from .query_plan import NotFound, QueryError, QueryPlan
from .team_mapping import map_team_name, ordinal

logger = logging.getLogger(__name__)

NO_ANSWER = "I couldn't find relevant information for your question."

# Metric -> "<player> <phrase>." when the value is zero
ZERO_STAT_PHRASES: Dict[str, str] = {
    "APP": "has not made an appearance yet",
    "G": "has not scored a goal",
    "OPENPLAYGOALS": "has not scored an open play goal",
    "A": "has not recorded an assist",
    "GI": "has not been involved in a goal",
    "MOM": "has not received a man of the match award",
    "Y": "has not received a yellow card",
    "R": "has not received a red card",
    "OG": "has not scored an own goal",
    "CLS": "has not kept a clean sheet",
    "SAVES": "has not made a save",
    "PSC": "has not scored a penalty",
    "PSV": "has not saved a penalty",
    "PM": "has not missed a penalty",
    "PCO": "has not conceded a penalty",
    "C": "has not conceded a goal",
    "CPERAPP": "has not conceded a goal",
    "MIN": "has not played any minutes yet",
    "FTP": "has not recorded any fantasy points",
    "HOME": "has not played a home game",
    "AWAY": "has not played an away game",
    "HAT_TRICKS": "has not scored a hat-trick",
    "DGW": "has not played in a double game week",
}

STREAK_PHRASES: Dict[str, str] = {
    "G": "consecutive games scored in",
    "A": "consecutive games with an assist",
    "CLS": "consecutive clean sheets",
    "MOM": "consecutive man of the match awards",
    "Y": "consecutive games with a yellow card",
    "APP": "consecutive appearances",
}

RESULT_VERBS = {"W": "won", "D": "drawn", "L": "lost"}

SUGGESTION_TEMPLATES: Dict[str, List[str]] = {
    "player": [
        "How many goals has {entity} scored?",
        "How many appearances has {entity} made?",
        "Which team has {entity} played for the most?",
    ],
    "team": [
        "How many goals did the {entity} score this season?",
        "Where did the {entity} finish in the league last season?",
        "What is the {entity}'s win rate?",
    ],
    "fixture": [
        "What is our record against {entity}?",
        "What was our biggest win against {entity}?",
        "How many goals have we scored against {entity}?",
    ],
    "general": [
        "Who has scored the most goals for the club?",
        "Where did the 1s finish in the league last season?",
        "What is the club's longest unbeaten run?",
    ],
}


@dataclass
class FormattedAnswer:
    answer: str
    answer_value: Any = None
    visualization: Optional[Dict[str, Any]] = None
    sources: List[str] = field(default_factory=lambda: ["Neo4j Database"])


def _number(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _decimals(metric: Optional[str]) -> int:
    ratio = RATIO_METRICS.get(metric or "")
    if ratio is None:
        return 0
    if ratio.percentage:
        return 1
    return max(len(str(ratio.scale)) - 1, 0)


def format_value(value: Any, metric: Optional[str] = None, percentage: bool = False) -> str:
    """Integer-like values without decimals, ratios to their scale, percentages with %."""
    number = _number(value)
    if number is None:
        return str(value)
    if percentage:
        text = f"{number:.1f}".rstrip("0").rstrip(".")
        return f"{text}%"
    decimals = _decimals(metric)
    if decimals == 0:
        return f"{int(round(number)):,}"
    return f"{number:.{decimals}f}"


def _label(metric: Optional[str], value: Any) -> str:
    return get_metric_config(metric or "G").label(value)


def _is_zero(value: Any) -> bool:
    number = _number(value)
    return number is not None and abs(number) < 0.001


def _number_card(value: Any, label: str) -> Dict[str, Any]:
    return {"type": "NumberCard", "data": [{"name": label, "value": value}]}


def _table(columns: List[str], rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"type": "Table", "data": {"columns": columns, "rows": rows}}


def _record(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "Record",
        "data": {
            "played": row.get("games", 0),
            "won": row.get("wins", 0),
            "drawn": row.get("draws", 0),
            "lost": row.get("losses", 0),
        },
    }


def _sentence(text: str) -> str:
    return text[:1].upper() + text[1:]


def _possessive(name: str) -> str:
    return f"{name}'" if name.endswith("s") else f"{name}'s"


def _score(row: Dict[str, Any]) -> str:
    return f"{row.get('goalsFor', 0)}-{row.get('goalsAgainst', 0)}"


class ResponseFormatter:
    """Format rows per result shape."""

    def __init__(self, club_name: str = "Dorkinians"):
        self.club_name = club_name
        self._shapes: Dict[str, Callable[[QueryPlan, List[Dict[str, Any]], QuestionAnalysis], FormattedAnswer]] = {
            "summary": self._format_player_value,
            "aggregate": self._format_aggregate,
            "ratio": self._format_ratio,
            "percentage": self._format_percentage,
            "leaderboard": self._format_leaderboard,
            "streak": self._format_streak,
            "double_game": self._format_double_game,
            "per_season": self._format_per_season,
            "most_common_position": self._format_most_common_position,
            "most_prolific_season": self._format_most_prolific_season,
            "most_played_for_team": self._format_most_played_for_team,
            "most_scored_for_team": self._format_most_scored_for_team,
            "team_count": self._format_team_count,
            "teams_played_for": self._format_teams_played_for,
            "seasons_played_for": self._format_seasons_played_for,
            "player_comparison": self._format_player_comparison,
            "games_together": self._format_games_together,
            "most_played_with": self._format_most_played_with,
            "opponents": self._format_opponents,
            "opponent_count": self._format_opponent_count,
            "league_position": self._format_league_position,
            "record": self._format_record,
            "count": self._format_count,
            "season_goals": self._format_team_goals,
            "goals_summary": self._format_team_goals,
            "fixture_record": self._format_fixture_record,
            "fixture_list": self._format_fixture_list,
        }

    # ---------- entry points ----------

    def format(self, plan: QueryPlan, rows: List[Dict[str, Any]], analysis: QuestionAnalysis) -> FormattedAnswer:
        if not rows:
            logger.info(f"No rows for {plan.domain}/{plan.shape}")
            return self.no_answer(analysis)
        handler = self._shapes.get(plan.shape)
        if handler is None:
            logger.warning(f"No formatter for result shape '{plan.shape}'")
            return self.no_answer(analysis)
        formatted = handler(plan, rows, analysis)
        formatted.sources = self.sources(analysis, rows)
        return formatted

    def no_answer(self, analysis: Optional[QuestionAnalysis] = None,
                  result: Optional[Union[NotFound, QueryError]] = None) -> FormattedAnswer:
        if result is not None:
            logger.debug(f"No answer ({result.domain}): {getattr(result, 'reason', None) or getattr(result, 'message', '')}")
        return FormattedAnswer(answer=NO_ANSWER)

    def clarification(self, analysis: QuestionAnalysis) -> FormattedAnswer:
        message = analysis.clarification_message or "Could you rephrase your question?"
        return FormattedAnswer(answer=message)

    def suggestions(self, analysis: Optional[QuestionAnalysis], domain: Optional[str] = None) -> List[str]:
        """Fixed templates seeded with the first resolved entity."""
        if analysis is None or not analysis.entities:
            return list(SUGGESTION_TEMPLATES["general"])
        if analysis.player_entities:
            key, entity = "player", analysis.player_entities[0]
        elif analysis.opposition_entities:
            key, entity = "fixture", analysis.opposition_entities[0]
        elif analysis.team_entities:
            key = "team"
            entity = map_team_name(analysis.team_entities[0]) or analysis.team_entities[0]
        else:
            key, entity = domain if domain in SUGGESTION_TEMPLATES else "general", analysis.entities[0]
        return [template.format(entity=entity) for template in SUGGESTION_TEMPLATES[key]]

    def sources(self, analysis: QuestionAnalysis, rows: List[Dict[str, Any]]) -> List[str]:
        sources = ["Neo4j Database"]
        first = rows[0] if rows else {}
        if first.get("season") and isinstance(first["season"], str):
            sources.append(f"Season: {first['season']}")
        if analysis.time_range:
            sources.append(f"Time Period: {analysis.time_range}")
        teams = [map_team_name(t) or t for t in analysis.team_entities]
        if teams:
            sources.append(f"Team: {', '.join(teams)}")
        if analysis.locations:
            sources.append(f"Location: {', '.join(loc.title() for loc in analysis.locations)}")
        return sources

    # ---------- helpers ----------

    def _subject(self, analysis: QuestionAnalysis) -> str:
        teams = [map_team_name(t) or t for t in analysis.team_entities]
        if teams:
            return "the " + " and ".join(teams)
        return self.club_name

    @staticmethod
    def _period(analysis: QuestionAnalysis) -> str:
        frames = analysis.concrete_time_frames()
        if not frames:
            return ""
        frame = frames[0]
        if frame.type == "season":
            return f" in {frame.value}"
        if frame.type == "this_season":
            return " this season"
        if frame.type == "last_season":
            return " last season"
        if frame.type == "range":
            start, _, end = frame.value.partition(" to ")
            return f" between {start} and {end}" if start != end else f" in {start}"
        if frame.type == "since":
            return f" since {frame.value}"
        if frame.type == "before":
            return f" before {frame.value}"
        return f" on {frame.value}"

    def _zero_answer(self, player: str, metric: Optional[str], analysis: QuestionAnalysis) -> Optional[str]:
        phrase = ZERO_STAT_PHRASES.get(metric or "")
        if phrase is None:
            return None
        return f"{player} {phrase}{self._period(analysis)}."

    # ---------- player shapes ----------

    def _format_player_value(self, plan, rows, analysis) -> FormattedAnswer:
        row = rows[0]
        player = row.get("playerName") or (analysis.player_entities[:1] or ["The player"])[0]
        metric = plan.metric
        value = row.get("value", 0) or 0

        if _is_zero(value):
            zero = self._zero_answer(player, metric, analysis)
            if zero:
                return FormattedAnswer(zero, 0, _number_card(0, _label(metric, 0)))

        label = _label(metric, value)
        parts = [f"{format_value(value, metric)} {label}"]
        for extra in plan_extras(row):
            extra_value = row[extra] or 0
            parts.append(f"{format_value(extra_value, extra)} {_label(extra, extra_value)}")
        joined = parts[0] if len(parts) == 1 else ", ".join(parts[:-1]) + " and " + parts[-1]
        answer = f"{player} has {joined}{self._period(analysis)}."
        if metric == "G":
            answer = answer[:-1] + " (including penalties)."
        return FormattedAnswer(answer, value, _number_card(value, label))

    def _format_aggregate(self, plan, rows, analysis) -> FormattedAnswer:
        if "playerName" in rows[0]:
            return self._format_player_value(plan, rows, analysis)
        value = rows[0].get("value", 0) or 0
        label = _label(plan.metric, value)
        subject = self._subject(analysis)
        answer = f"{subject} players have recorded {format_value(value, plan.metric)} {label}{self._period(analysis)}."
        return FormattedAnswer(_sentence(answer), value, _number_card(value, label))

    def _format_ratio(self, plan, rows, analysis) -> FormattedAnswer:
        row = rows[0]
        player = row.get("playerName", "The player")
        metric = plan.metric
        value = row.get("value")
        if value is None:
            return FormattedAnswer(f"{player} has no {get_metric_config(metric).display_name} to report yet.", None)
        if _is_zero(value):
            zero = self._zero_answer(player, metric, analysis)
            if zero:
                return FormattedAnswer(zero, 0, _number_card(0, get_metric_config(metric).display_name))
        text = format_value(value, metric)
        name = get_metric_config(metric).display_name
        return FormattedAnswer(f"{player} averages {text} {name}{self._period(analysis)}.", value, _number_card(value, name))

    def _format_percentage(self, plan, rows, analysis) -> FormattedAnswer:
        row = rows[0]
        player = row.get("playerName", "The player")
        value = row.get("value")
        if value is None:
            return self.no_answer(analysis)
        text = format_value(value, percentage=True)
        if plan.metric == "WIN_PERCENTAGE":
            verb = RESULT_VERBS.get(plan.params.get("result", "W"), "won")
            games = row.get("totalGames", 0)
            answer = f"{player} has {verb} {text} of the {games} games they have played{self._period(analysis)}."
            label = f"games {verb}"
        else:
            label = get_metric_config(plan.metric).display_name
            answer = f"{player} has a {label} of {text}{self._period(analysis)}."
        return FormattedAnswer(answer, value, _number_card(text, label))

    def _format_leaderboard(self, plan, rows, analysis) -> FormattedAnswer:
        metric = plan.metric
        top = rows[0]
        ascending = "ORDER BY value ASC" in plan.query
        name = get_metric_config(metric or "G").plural
        value_text = format_value(top.get("value"), metric)
        if metric in RATIO_METRICS:
            answer = f"{top['playerName']} has the {'lowest' if ascending else 'highest'} {name} with {value_text}."
        else:
            answer = f"{top['playerName']} has the {'fewest' if ascending else 'most'} {name} with {value_text}."
        table_rows = [
            {"rank": i, "playerName": row["playerName"], "value": row.get("value")}
            for i, row in enumerate(rows, start=1)
        ]
        return FormattedAnswer(answer, top.get("value"), _table(["Rank", "Player", name.title()], table_rows))

    def _format_streak(self, plan, rows, analysis) -> FormattedAnswer:
        row = rows[0]
        value = row.get("value", 0) or 0
        if plan.domain == "fixture":
            run = plan.description.lower()
            answer = f"{_possessive(self._subject(analysis))} {run} is {value} {'game' if value == 1 else 'games'}{self._period(analysis)}."
            return FormattedAnswer(_sentence(answer), value, _number_card(value, plan.description))
        player = row.get("playerName", "The player")
        phrase = STREAK_PHRASES.get(plan.metric or "G", STREAK_PHRASES["G"])
        answer = f"{player}'s longest run is {value} {phrase}{self._period(analysis)}."
        return FormattedAnswer(answer, value, _number_card(value, phrase))

    def _format_double_game(self, plan, rows, analysis) -> FormattedAnswer:
        row = rows[0]
        player = row.get("playerName", "The player")
        value = row.get("value", 0) or 0
        if _is_zero(value):
            return FormattedAnswer(f"{player} {ZERO_STAT_PHRASES['DGW']}.", 0, _number_card(0, "double game weeks"))
        goals = row.get("goals", 0) or 0
        assists = row.get("assists", 0) or 0
        answer = (
            f"{player} has made {value} double game week {'appearance' if value == 1 else 'appearances'}, "
            f"with {goals} {_label('G', goals)} and {assists} {_label('A', assists)}."
        )
        return FormattedAnswer(answer, value, _number_card(value, _label("DGW", value)))

    def _format_per_season(self, plan, rows, analysis) -> FormattedAnswer:
        player = rows[0].get("playerName", "The player")
        metric = plan.metric
        name = get_metric_config(metric or "G").display_name
        breakdown = ", ".join(f"{row['season']}: {format_value(row.get('value', 0), metric)}" for row in rows)
        best = max(rows, key=lambda r: _number(r.get("value")) or 0)
        answer = f"{player}'s {name} by season: {breakdown}."
        table_rows = [{"season": row["season"], "value": row.get("value")} for row in rows]
        return FormattedAnswer(answer, best.get("value"), _table(["Season", name.title()], table_rows))

    def _format_most_common_position(self, plan, rows, analysis) -> FormattedAnswer:
        row = rows[0]
        position = POSITION_NAMES.get(row.get("value"), str(row.get("value")).lower())
        apps = row.get("appearances", 0)
        answer = f"{row.get('playerName')}'s most common position is {position} ({apps} {_label('APP', apps)})."
        return FormattedAnswer(answer, position, _number_card(position, "position"))

    def _format_most_prolific_season(self, plan, rows, analysis) -> FormattedAnswer:
        row = rows[0]
        goals = row.get("goals", 0) or 0
        if _is_zero(goals):
            return FormattedAnswer(f"{row.get('playerName')} {ZERO_STAT_PHRASES['G']}.", None)
        answer = f"{row.get('playerName')}'s most prolific season was {row['value']} with {goals} {_label('G', goals)}."
        return FormattedAnswer(answer, row["value"], _number_card(row["value"], "season"))

    def _format_most_played_for_team(self, plan, rows, analysis) -> FormattedAnswer:
        row = rows[0]
        apps = row.get("appearances", 0)
        answer = f"{row.get('playerName')} has made the most appearances for the {row['value']} ({apps} {_label('APP', apps)})."
        return FormattedAnswer(answer, row["value"], _number_card(row["value"], "team"))

    def _format_most_scored_for_team(self, plan, rows, analysis) -> FormattedAnswer:
        row = rows[0]
        stat = row.get("statValue", 0) or 0
        player = row.get("playerName")
        if _is_zero(stat):
            zero = self._zero_answer(player, plan.metric, analysis)
            if zero:
                return FormattedAnswer(zero, None)
        answer = (
            f"{player} has recorded the most {get_metric_config(plan.metric).plural} for the "
            f"{row['value']} ({format_value(stat, plan.metric)})."
        )
        return FormattedAnswer(answer, row["value"], _number_card(row["value"], "team"))

    def _format_team_count(self, plan, rows, analysis) -> FormattedAnswer:
        row = rows[0]
        value = row.get("value", 0) or 0
        player = row.get("playerName")
        if _is_zero(value):
            return FormattedAnswer(f"{player} has not played for any of the club's teams yet.", 0)
        teams = ", ".join(row.get("teams") or [])
        answer = f"{player} has played for {value} of the club's {'team' if value == 1 else 'teams'} ({teams})."
        return FormattedAnswer(answer, value, _number_card(value, "teams"))

    def _format_teams_played_for(self, plan, rows, analysis) -> FormattedAnswer:
        player = rows[0].get("playerName")
        listing = ", ".join(f"the {row['value']} ({row.get('appearances', 0)})" for row in rows)
        answer = f"{player} has played for {listing}."
        table_rows = [{"team": row["value"], "appearances": row.get("appearances", 0)} for row in rows]
        return FormattedAnswer(answer, len(rows), _table(["Team", "Appearances"], table_rows))

    def _format_seasons_played_for(self, plan, rows, analysis) -> FormattedAnswer:
        row = rows[0]
        value = row.get("value", 0) or 0
        if _is_zero(value):
            return FormattedAnswer(f"{row.get('playerName')} {ZERO_STAT_PHRASES['APP']}.", 0)
        answer = f"{row.get('playerName')} has played in {value} {'season' if value == 1 else 'seasons'}"
        if row.get("firstSeason"):
            answer += f", starting in {row['firstSeason']}"
        return FormattedAnswer(answer + ".", value, _number_card(value, "seasons"))

    def _format_player_comparison(self, plan, rows, analysis) -> FormattedAnswer:
        metric = plan.metric
        ratio = RATIO_METRICS.get(metric or "")
        values = {row["playerName"]: row.get("value") or 0 for row in rows}
        # Players with no matching rows still get a zero.
        names = plan.params.get("playerNames") or list(values)
        parts = []
        for name in names:
            value = values.get(name, 0)
            if ratio is not None and ratio.percentage:
                parts.append(f"{name} has a {get_metric_config(metric).display_name} of {format_value(value, percentage=True)}")
            else:
                parts.append(f"{name} has {format_value(value, metric)} {_label(metric, value)}")
        joined = ", ".join(parts[:-1]) + " and " + parts[-1] if len(parts) > 1 else parts[0]
        answer = f"{joined}{self._period(analysis)}."
        best = max(names, key=lambda n: _number(values.get(n, 0)) or 0)
        table_rows = [{"playerName": name, "value": values.get(name, 0)} for name in names]
        return FormattedAnswer(
            answer, values.get(best, 0),
            _table(["Player", get_metric_config(metric or "G").display_name.title()], table_rows),
        )

    def _format_games_together(self, plan, rows, analysis) -> FormattedAnswer:
        value = rows[0].get("value", 0) or 0
        pair = f"{plan.params.get('playerName')} and {plan.params.get('otherPlayer')}"
        if _is_zero(value):
            return FormattedAnswer(f"{pair} have not played together{self._period(analysis)}.", 0, _number_card(0, "games together"))
        answer = f"{pair} have played {value} {'game' if value == 1 else 'games'} together{self._period(analysis)}."
        return FormattedAnswer(answer, value, _number_card(value, "games together"))

    def _format_most_played_with(self, plan, rows, analysis) -> FormattedAnswer:
        player = rows[0].get("playerName") or plan.params.get("playerName")
        top = rows[0]
        answer = f"{player} has played most often with {top['value']} ({top.get('gamesTogether', 0)} games"
        if len(rows) > 1:
            others = ", ".join(f"{row['value']} ({row.get('gamesTogether', 0)})" for row in rows[1:])
            answer += f"), followed by {others}{self._period(analysis)}."
        else:
            answer += f"){self._period(analysis)}."
        table_rows = [
            {"rank": i, "playerName": row["value"], "games": row.get("gamesTogether", 0)}
            for i, row in enumerate(rows, start=1)
        ]
        return FormattedAnswer(answer, top["value"], _table(["Rank", "Player", "Games Together"], table_rows))

    def _format_opponents(self, plan, rows, analysis) -> FormattedAnswer:
        player = rows[0].get("playerName") or plan.params.get("playerName")
        top = rows[0]
        games = top.get("gamesPlayed", 0) or 0
        goals = top.get("goals", 0) or 0
        if "opposition" in plan.params:
            answer = (
                f"{player} has played {top['value']} {games} {'time' if games == 1 else 'times'}"
                f"{self._period(analysis)}, with {goals} {_label('G', goals)}"
                f" and {top.get('assists', 0)} {_label('A', top.get('assists', 0))}."
            )
            value: Any = games
        else:
            answer = f"{player} has played {top['value']} most often ({games} games){self._period(analysis)}."
            value = top["value"]
        table_rows = [
            {
                "opponent": row["value"],
                "games": row.get("gamesPlayed", 0),
                "goals": row.get("goals", 0),
                "assists": row.get("assists", 0),
                "lastPlayed": row.get("lastPlayed"),
            }
            for row in rows
        ]
        return FormattedAnswer(answer, value, _table(["Opponent", "Games", "Goals", "Assists", "Last Played"], table_rows))

    def _format_opponent_count(self, plan, rows, analysis) -> FormattedAnswer:
        row = rows[0]
        value = row.get("value", 0) or 0
        player = row.get("playerName") or plan.params.get("playerName")
        if _is_zero(value):
            return FormattedAnswer(f"{player} {ZERO_STAT_PHRASES['APP']}{self._period(analysis)}.", 0)
        answer = f"{player} has faced {value} different {'opponent' if value == 1 else 'opponents'}{self._period(analysis)}."
        return FormattedAnswer(answer, value, _number_card(value, "opponents"))

    # ---------- team shapes ----------

    def _format_league_position(self, plan, rows, analysis) -> FormattedAnswer:
        row = rows[0]
        team = plan.params.get("team") or row.get("teamName")
        position = row.get("value")
        if position is None:
            return self.no_answer(analysis)
        answer = f"The {team} finished {ordinal(int(position))}"
        if row.get("division"):
            answer += f" in {row['division']}"
        if row.get("season"):
            answer += f" in {row['season']}"
        answer += f" with {row.get('points', 0)} points."
        return FormattedAnswer(answer, position, _record({
            "games": row.get("played", 0),
            "wins": row.get("won", 0),
            "draws": row.get("drawn", 0),
            "losses": row.get("lost", 0),
        }))

    def _format_record(self, plan, rows, analysis) -> FormattedAnswer:
        row = rows[0]
        games = row.get("games", 0) or 0
        wins, draws, losses = row.get("wins", 0), row.get("draws", 0), row.get("losses", 0)
        tally = f"won {wins}, drawn {draws} and lost {losses}"
        if plan.metric == "WIN_RATE":
            rate = format_value(row.get("value", 0), percentage=True)
            answer = f"{self._subject(analysis)} have a win rate of {rate}{self._period(analysis)} ({tally} of {games})."
            value: Any = row.get("value", 0)
        elif plan.params.get("playerName") and "opposition" not in plan.params:
            player = plan.params["playerName"]
            if games == 0:
                return FormattedAnswer(f"{player} {ZERO_STAT_PHRASES['G']}{self._period(analysis)}.", 0, _record(row))
            answer = f"In the {games} games {player} has scored in, the team {tally}."
            value = games
        else:
            opposition = plan.params.get("opposition", "them")
            if games == 0:
                return FormattedAnswer(f"{self.club_name} have not played {opposition}{self._period(analysis)}.", 0, _record(row))
            answer = f"Against {opposition}, {self._subject(analysis)} have played {games}: {tally}"
            if "goalsFor" in row:
                answer += f", scoring {row['goalsFor']} and conceding {row['goalsAgainst']}"
            answer += "."
            value = games
        return FormattedAnswer(_sentence(answer), value, _record(row))

    def _format_count(self, plan, rows, analysis) -> FormattedAnswer:
        row = rows[0]
        value = row.get("value", 0) or 0
        subject = self._subject(analysis)
        if plan.metric == "GAMES":
            verb = RESULT_VERBS.get(plan.params.get("result"), "played")
            answer = f"{subject} have {verb} {value} {'game' if value == 1 else 'games'}{self._period(analysis)}."
        elif plan.metric == "HAT_TRICKS":
            answer = f"{value} {_label('HAT_TRICKS', value)} {'has' if value == 1 else 'have'} been scored{self._period(analysis)}."
            if row.get("examples"):
                answer = answer[:-1] + f", including {', '.join(row['examples'][:3])}."
        elif plan.metric == "OG":
            answer = f"Opponents have scored {value} {_label('OG', value)} against {subject}{self._period(analysis)}."
        else:
            answer = f"{subject} have {format_value(value, plan.metric)} {_label(plan.metric, value)}{self._period(analysis)}."
        return FormattedAnswer(_sentence(answer), value, _number_card(value, plan.description))

    def _format_team_goals(self, plan, rows, analysis) -> FormattedAnswer:
        row = rows[0]
        goals = row.get("goals", 0) or 0
        conceded = row.get("conceded", 0) or 0
        games = row.get("games", 0) or 0
        subject = self._subject(analysis)
        period = self._period(analysis)
        if games == 0:
            return FormattedAnswer(_sentence(f"{subject} have no recorded games{period}."), 0)
        if plan.metric == "C":
            answer = f"{subject} conceded {conceded} {_label('G', conceded)} in {games} games{period}."
            value = conceded
        else:
            answer = f"{subject} scored {goals} {_label('G', goals)} and conceded {conceded} in {games} games{period}."
            value = goals
        return FormattedAnswer(_sentence(answer), value, _number_card(value, _label(plan.metric or "G", value)))

    # ---------- fixture shapes ----------

    def _format_fixture_record(self, plan, rows, analysis) -> FormattedAnswer:
        row = rows[0]
        value = row.get("value", 0) or 0
        date = format_date(row["date"]) if row.get("date") else "an unknown date"
        fixture = f"the {row.get('team')} {_score(row)} against {row.get('opposition')} on {date}"
        if "playerName" in row:
            answer = f"{row['playerName']} scored {value} {_label('G', value)} in a single game, for {fixture}."
        elif plan.metric == "MARGIN":
            answer = f"{plan.description} was {fixture}."
        else:
            answer = f"The highest scoring game was {fixture} ({value} goals)."
        return FormattedAnswer(_sentence(answer), value, _table(
            ["Date", "Team", "Opposition", "Result", "Score"],
            [{"date": row.get("date"), "team": row.get("team"), "opposition": row.get("opposition"),
              "result": row.get("result"), "score": _score(row)}],
        ))

    def _format_fixture_list(self, plan, rows, analysis) -> FormattedAnswer:
        table_rows = [
            {
                "date": row.get("date"),
                "team": row.get("team"),
                "opposition": row.get("opposition"),
                "homeOrAway": row.get("homeOrAway"),
                "result": row.get("result"),
                "score": _score(row),
            }
            for row in rows
        ]
        opponents: List[str] = []
        for row in rows:
            if row.get("opposition") and row["opposition"] not in opponents:
                opponents.append(row["opposition"])
        answer = f"{len(rows)} {'fixture' if len(rows) == 1 else 'fixtures'}{self._period(analysis)}"
        if opponents:
            answer += f", against {', '.join(opponents[:10])}"
        return FormattedAnswer(answer + ".", len(rows), _table(
            ["Date", "Team", "Opposition", "Venue", "Result", "Score"], table_rows
        ))


def plan_extras(row: Dict[str, Any]) -> List[str]:
    """Extra metric columns returned beside ``value`` (upper-case metric keys)."""
    return [key for key in row if key.isupper() and key != "value"]
