"""Routing tables and WHERE clause assembly shared by the domain builders."""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import logging
import re

from ...config.metrics import POSITION_CODES
from ...config.settings import Settings
from ..date_utils import (
    convert_date_format,
    normalize_season,
    parse_range,
    previous_season,
    season_start_date,
    since_year_to_date,
    year_start,
)
from ..question_analyzer import QuestionAnalysis
from ..query_plan import BuildResult, NotFound
from ..team_mapping import map_team_name

logger = logging.getLogger(__name__)

_EXCLUSION_BEFORE = re.compile(
    r"(?:\bnot|\bexcluding|\bexcept|\bapart from|\bother than|\boutside(?: of)?|\bwithout)"
    r"\s+(?:for\s+)?(?:the\s+)?$",
    re.IGNORECASE,
)
_YEAR = re.compile(r"^\d{4}$")

EXCLUDED_FIXTURE_STATUSES = ("void", "postponed", "abandoned")


def phrase(*phrases: str) -> re.Pattern:
    return re.compile(r"\b(?:" + "|".join(re.escape(p) for p in phrases) + r")\b", re.IGNORECASE)


@dataclass
class BuildContext:
    """Everything a route predicate or build function may look at."""
    question: str
    analysis: QuestionAnalysis
    entities: List[str]
    metrics: List[str]
    settings: Settings

    @property
    def graph_label(self) -> str:
        return self.settings.graph_label

    @property
    def metric(self) -> Optional[str]:
        return self.metrics[0] if self.metrics else None

    @property
    def player(self) -> Optional[str]:
        players = self.analysis.player_entities
        return players[0] if players else None

    @property
    def opposition(self) -> Optional[str]:
        opposition = self.analysis.opposition_entities
        return opposition[0] if opposition else None

    @property
    def season(self) -> Optional[str]:
        """The single season named or implied by the question, if any."""
        for frame in self.analysis.time_frames:
            if frame.type == "season":
                return normalize_season(frame.value)
            if frame.type == "this_season":
                return self.analysis.current_season
            if frame.type == "last_season" and self.analysis.current_season:
                return previous_season(self.analysis.current_season)
        return None

    def has(self, pattern: re.Pattern) -> bool:
        return bool(pattern.search(self.question))

    def excluded_teams(self) -> List[str]:
        """Teams preceded by a negation ('not the 1s', 'excluding the 2nd XI')."""
        extraction = self.analysis.extraction
        if extraction is None:
            return []
        original = self.analysis.question
        excluded = []
        for span in extraction.entities_of("team"):
            if _EXCLUSION_BEFORE.search(original[:span.position]):
                name = map_team_name(span.value)
                if name and name not in excluded:
                    excluded.append(name)
        return excluded

    def teams(self) -> List[str]:
        """Stored team names the question is scoped to, minus exclusions."""
        excluded = self.excluded_teams()
        teams = []
        for value in self.analysis.team_entities:
            name = map_team_name(value)
            if name and name not in excluded and name not in teams:
                teams.append(name)
        return teams


@dataclass(frozen=True)
class Route:
    name: str
    predicate: Callable[[BuildContext], bool]
    build: Callable[[BuildContext], BuildResult]


class RoutingTable:
    """Ordered routes; the first route whose predicate holds builds the plan."""

    def __init__(self, domain: str, routes: Iterable[Route]):
        self.domain = domain
        self.routes: Tuple[Route, ...] = tuple(routes)

    def route_names(self) -> List[str]:
        return [route.name for route in self.routes]

    def select(self, ctx: BuildContext) -> Optional[Route]:
        for route in self.routes:
            if route.predicate(ctx):
                return route
        return None

    def build(self, ctx: BuildContext) -> BuildResult:
        route = self.select(ctx)
        if route is None:
            return NotFound(self.domain, "No query matched the question")
        logger.debug(f"{self.domain} route selected: {route.name}")
        return route.build(ctx)


def _where_group(fragment: str) -> int:
    if (
        "playerName" in fragment
        or "md.team =" in fragment
        or "f.opposition" in fragment
        or "f.team =" in fragment
    ):
        return 0
    if ".date" in fragment and any(op in fragment for op in (">=", "<=", " < ", " > ")):
        return 1
    if " IN " in fragment:
        return 2
    return 3


def optimize_where_order(conditions: List[str]) -> List[str]:
    """Indexed equality first, then dates, then IN membership, then the rest."""
    return sorted(conditions, key=_where_group)


_COMP_TYPES = [
    ("League", phrase("league games", "league matches", "league fixtures", "in the league", "league goals")),
    ("Cup", phrase("cup", "cup games", "cup matches", "cup ties")),
    ("Friendly", phrase("friendly", "friendlies")),
]
_RESULTS = [
    ("W", phrase("won", "wins", "win", "victories", "winning")),
    ("D", phrase("drawn", "draws", "drew", "draw")),
    ("L", phrase("lost", "losses", "defeats", "lose", "losing")),
]


class WhereBuilder:
    """Collect parameterized WHERE fragments.

    Every value goes into ``params`` under a generated name; fragments only
    reference ``$name`` placeholders.
    """

    def __init__(
        self,
        ctx: BuildContext,
        params: Optional[Dict[str, Any]] = None,
        date_field: str = "f.date",
        season_field: str = "md.season",
    ):
        self.ctx = ctx
        self.params: Dict[str, Any] = params if params is not None else {}
        self.conditions: List[str] = []
        self.date_field = date_field
        self.season_field = season_field

    def add(self, condition: str, **params: Any) -> "WhereBuilder":
        self.conditions.append(condition)
        self.params.update(params)
        return self

    def _param(self, base: str, value: Any) -> str:
        name = base
        counter = 1
        while name in self.params and self.params[name] != value:
            counter += 1
            name = f"{base}{counter}"
        self.params[name] = value
        return name

    # ---------- individual filters ----------

    def team_filter(self, field_name: str = "md.team") -> "WhereBuilder":
        teams = self.ctx.teams()
        if teams:
            name = self._param("teams", teams)
            self.conditions.append(f"{field_name} IN ${name}")
        return self

    def team_exclusions(self, field_name: str = "md.team") -> "WhereBuilder":
        for index, team in enumerate(self.ctx.excluded_teams(), start=1):
            name = self._param(f"excludedTeam{index}", team)
            self.conditions.append(f"{field_name} <> ${name}")
        return self

    def opposition(self) -> "WhereBuilder":
        opposition = self.ctx.opposition
        if opposition:
            name = self._param("opposition", opposition)
            self.conditions.append(f"toLower(f.opposition) CONTAINS toLower(${name})")
        return self

    def competition_type(self) -> "WhereBuilder":
        for comp_type, pattern in _COMP_TYPES:
            if self.ctx.has(pattern):
                name = self._param("compType", comp_type)
                self.conditions.append(f"f.compType = ${name}")
                break
        return self

    def competition(self) -> "WhereBuilder":
        leagues = self.ctx.analysis.league_entities
        if leagues:
            name = self._param("competition", leagues[0])
            self.conditions.append(f"f.competition = ${name}")
        return self

    def result(self) -> "WhereBuilder":
        for result, pattern in _RESULTS:
            if self.ctx.has(pattern):
                name = self._param("result", result)
                self.conditions.append(f"f.result = ${name}")
                break
        return self

    def location(self) -> "WhereBuilder":
        locations = self.ctx.analysis.locations
        if "away" in locations:
            value = "Away"
        elif "home" in locations or "Pixham" in locations:
            value = "Home"
        elif "AWAY" in self.ctx.analysis.metrics:
            value = "Away"
        elif "HOME" in self.ctx.analysis.metrics:
            value = "Home"
        else:
            return self
        name = self._param("homeOrAway", value)
        self.conditions.append(f"f.homeOrAway = ${name}")
        return self

    def position(self, field_name: str = "md.class") -> "WhereBuilder":
        for word, code in POSITION_CODES.items():
            if re.search(rf"\b{word}s?\b", self.ctx.question):
                name = self._param("position", code)
                self.conditions.append(f"{field_name} = ${name}")
                break
        return self

    def time(self) -> "WhereBuilder":
        for frame in self.ctx.analysis.concrete_time_frames():
            self._time_frame(frame.type, frame.value)
        return self

    def _time_frame(self, frame_type: str, value: str) -> None:
        date_field = self.date_field
        if frame_type == "since":
            start = since_year_to_date(value) if _YEAR.match(value) else season_start_date(value)
            if start:
                name = self._param("sinceDate", start)
                self.conditions.append(f"{date_field} >= ${name}")
                return
        elif frame_type == "before":
            end = year_start(value) if _YEAR.match(value) else season_start_date(value)
            if end:
                name = self._param("beforeDate", end)
                self.conditions.append(f"{date_field} < ${name}")
                return
        elif frame_type == "range":
            bounds = parse_range(value)
            if bounds:
                start_name = self._param("startDate", bounds[0])
                end_name = self._param("endDate", bounds[1])
                self.conditions.append(f"{date_field} >= ${start_name}")
                self.conditions.append(f"{date_field} <= ${end_name}")
                return
        elif frame_type == "date":
            date = convert_date_format(value)
            if date:
                name = self._param("date", date)
                self.conditions.append(f"{date_field} >= ${name}")
                return
        elif frame_type == "season":
            season = normalize_season(value)
            if season:
                name = self._param("season", season)
                self.conditions.append(f"{self.season_field} = ${name}")
                return
        elif frame_type in ("this_season", "last_season"):
            current = self.ctx.analysis.current_season
            season = current if frame_type == "this_season" else (previous_season(current) if current else None)
            if season:
                name = self._param("season", season)
                self.conditions.append(f"{self.season_field} = ${name}")
                return
        logger.debug(f"Skipping unparseable time frame {frame_type}: '{value}'")

    # ---------- output ----------

    def match_filters(self) -> "WhereBuilder":
        """Every filter that applies to a Fixture/MatchDetail join."""
        return (
            self.team_filter()
            .team_exclusions()
            .opposition()
            .competition_type()
            .competition()
            .location()
            .position()
            .time()
        )

    def fixture_filters(self) -> "WhereBuilder":
        """Filters for queries over Fixture nodes alone."""
        return (
            self.team_filter("f.team")
            .team_exclusions("f.team")
            .opposition()
            .competition_type()
            .competition()
            .location()
            .time()
        )

    def playable(self) -> "WhereBuilder":
        """Drop void, postponed and abandoned fixtures."""
        name = self._param("excludedStatuses", list(EXCLUDED_FIXTURE_STATUSES))
        self.conditions.append(f"NOT toLower(coalesce(f.status, '')) IN ${name}")
        return self

    @property
    def has_conditions(self) -> bool:
        return bool(self.conditions)

    def clause(self, prefix: str = "WHERE") -> str:
        if not self.conditions:
            return ""
        return f"{prefix} " + " AND ".join(optimize_where_order(self.conditions))


def result_applies(ctx: BuildContext) -> bool:
    """Result words only filter when counting games ('games won')."""
    return ctx.metric in (None, "APP")


def count_filters(ctx: BuildContext) -> int:
    """How many match-level filters the question carries."""
    where = WhereBuilder(ctx).match_filters()
    if result_applies(ctx):
        where.result()
    return len(where.conditions)


class DomainQueryBuilder:
    """Common ``build(entities, metrics, analysis)`` entry point."""

    routes: RoutingTable

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def domain(self) -> str:
        return self.routes.domain

    def context(self, entities: List[str], metrics: List[str], analysis: QuestionAnalysis) -> BuildContext:
        return BuildContext(
            question=analysis.question.lower(),
            analysis=analysis,
            entities=list(entities),
            metrics=list(metrics),
            settings=self.settings,
        )

    def build(self, entities: List[str], metrics: List[str], analysis: QuestionAnalysis) -> BuildResult:
        ctx = self.context(entities, metrics, analysis)
        result = self.routes.build(ctx)
        if isinstance(result, NotFound):
            logger.warning(f"{self.domain} query not built: {result.reason}")
        return result
