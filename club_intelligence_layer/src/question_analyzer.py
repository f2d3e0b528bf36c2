"""Question classification and complexity assessment.

The analyzer turns an ``ExtractionResult`` into a ``QuestionAnalysis``:
entity and metric lists, a time range, a complexity grade, an optional
clarification message and a domain type chosen by ``CLASSIFICATION_ORDER``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging
import re

from ..config.metrics import (
    LOCATION_METRICS,
    PER_APPEARANCE_METRICS,
    RATIO_METRICS,
    STAT_TYPE_TO_METRIC,
)
from .entity_extractor import ExtractedSpan, ExtractionResult

logger = logging.getLogger(__name__)


class QuestionType(Enum):
    PLAYER = "player"
    TEAM = "team"
    CLUB = "club"
    FIXTURE = "fixture"
    COMPARISON = "comparison"
    STREAK = "streak"
    DOUBLE_GAME = "double_game"
    TEMPORAL = "temporal"
    GENERAL = "general"
    CLARIFICATION_NEEDED = "clarification_needed"


class Complexity(Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


MAX_ENTITIES = 3
MAX_STAT_TYPES = 3

CLARIFICATION_MESSAGES = {
    "too_many_entities": (
        "I can handle questions about up to 3 entities at once. Please simplify your "
        "question to focus on fewer players, teams, or other entities."
    ),
    "too_many_stats": (
        "I can handle questions about up to 3 different statistics at once. Please "
        "simplify your question to focus on fewer stat types."
    ),
    "missing_entity": (
        "I need to know which player, team, or other entity you're asking about. "
        "Please specify who or what you want to know about."
    ),
    "missing_stat": (
        "I need to know what statistic you're asking about. Please specify what "
        "information you want (goals, appearances, etc.)."
    ),
    "complex": (
        "This question is quite complex. I'll try to answer it, but you might get "
        "better results by breaking it down into simpler questions."
    ),
    "generic": "Please clarify your question so I can provide a better answer.",
}

# Time frames that carry an actual date filter.
CONCRETE_TIME_FRAMES = frozenset(
    ["season", "date", "range", "since", "before", "last_season", "this_season"]
)


def _words(*phrases: str) -> re.Pattern:
    return re.compile(r"\b(?:" + "|".join(re.escape(p) for p in phrases) + r")\b", re.IGNORECASE)


TEMPORAL_WORDS = _words("since", "before", "between", "during", "until", "after")
STREAK_WORDS = _words("streak", "consecutive", "in a row", "unbeaten run", "winning run", "losing run", "scoring run")
DOUBLE_GAME_WORDS = _words("double game", "double game week", "double game weeks", "dgw")
COMPARISON_WORDS = _words(
    "most", "least", "highest", "lowest", "best", "worst", "top", "fewest",
    "who has", "which", "penalty record", "conversion rate", "biggest", "largest",
)
LEAGUE_POSITION_WORDS = _words("finish", "finished", "league position", "position", "table", "win rate", "win percentage")
CLUB_WORDS = _words("club", "captain", "captains", "award", "awards")
FIXTURE_WORDS = _words(
    "fixture", "fixtures", "match", "matches", "game", "games", "win", "wins",
    "won", "defeat", "defeats", "result", "results", "hat-trick", "hat-tricks",
    "hat trick", "hat tricks", "hattrick", "hattricks", "opposition", "opponent",
    "opponents", "play", "played",
)
PLAYER_WORDS = _words(
    "scored", "goals", "goal", "assists", "appearances", "apps", "minutes",
    "man of the match", "yellow", "red", "saves", "own goals", "conceded",
    "clean sheets", "penalties", "fantasy", "away games", "home games",
    "most prolific season", "most common position", "played", "won", "received",
    "kept", "missed",
)
FIXTURE_RECORD_WORDS = _words(
    "in a game", "in a single game", "in one game", "in a match", "highest scoring",
    "highest-scoring", "biggest win", "biggest defeat", "biggest victory", "heaviest",
    "unbeaten", "record win",
)
PLAYER_SCORED_GAMES = re.compile(
    r"\bwhen\b[^?]*\bscor(?:ed|es)\b|\b(?:games|matches) (?:in which|where)\b[^?]*\bscor",
    re.IGNORECASE,
)
RANKING_WORDS = _words(
    "who has", "who scored", "who got", "who made", "who kept", "who is", "which player",
    "top scorer", "top scorers",
)
PER_APPEARANCE_WORDS = _words(
    "per game", "per appearance", "per app", "per match", "on average", "average",
)


@dataclass
class QuestionAnalysis:
    question: str
    type: QuestionType
    entities: List[str]
    metrics: List[str]
    complexity: Complexity
    requires_clarification: bool
    clarification_message: Optional[str] = None
    time_range: Optional[str] = None
    team_entities: List[str] = field(default_factory=list)
    opposition_entities: List[str] = field(default_factory=list)
    player_entities: List[str] = field(default_factory=list)
    league_entities: List[str] = field(default_factory=list)
    time_frames: List[ExtractedSpan] = field(default_factory=list)
    locations: List[str] = field(default_factory=list)
    stat_indicators: List[str] = field(default_factory=list)
    negative_clauses: List[ExtractedSpan] = field(default_factory=list)
    stat_type_count: int = 0
    player_from_context: bool = False
    user_context: Optional[str] = None
    current_season: Optional[str] = None
    extraction: Optional[ExtractionResult] = None

    @property
    def primary_metric(self) -> Optional[str]:
        return self.metrics[0] if self.metrics else None

    @property
    def has_player_subject(self) -> bool:
        return bool(self.player_entities)

    @property
    def has_named_player(self) -> bool:
        return bool(self.player_entities) and not self.player_from_context

    def concrete_time_frames(self) -> List[ExtractedSpan]:
        return [t for t in self.time_frames if t.type in CONCRETE_TIME_FRAMES]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "type": self.type.value,
            "entities": list(self.entities),
            "metrics": list(self.metrics),
            "timeRange": self.time_range,
            "teamEntities": list(self.team_entities),
            "oppositionEntities": list(self.opposition_entities),
            "playerEntities": list(self.player_entities),
            "leagueEntities": list(self.league_entities),
            "timeFrames": [{"value": t.value, "type": t.type} for t in self.time_frames],
            "locations": list(self.locations),
            "statIndicators": list(self.stat_indicators),
            "complexity": self.complexity.value,
            "requiresClarification": self.requires_clarification,
            "clarificationMessage": self.clarification_message,
            "currentSeason": self.current_season,
        }


Predicate = Callable[[QuestionAnalysis, str], bool]


def _team_scoped(analysis: QuestionAnalysis, text: str) -> bool:
    if not analysis.team_entities:
        return False
    if LEAGUE_POSITION_WORDS.search(text):
        return True
    if RANKING_WORDS.search(text) or STREAK_WORDS.search(text) or FIXTURE_RECORD_WORDS.search(text):
        return False
    return not analysis.has_named_player


def _temporal(analysis: QuestionAnalysis, text: str) -> bool:
    return bool(analysis.concrete_time_frames()) or bool(TEMPORAL_WORDS.search(text))


def _fixture(analysis: QuestionAnalysis, text: str) -> bool:
    if analysis.has_named_player:
        return False
    return bool(analysis.opposition_entities) or bool(FIXTURE_WORDS.search(text))


def _player(analysis: QuestionAnalysis, text: str) -> bool:
    return analysis.has_player_subject or bool(PLAYER_WORDS.search(text))


# Explicit priority list; the first matching predicate decides the type.
CLASSIFICATION_ORDER: Tuple[Tuple[QuestionType, Predicate], ...] = (
    (QuestionType.CLARIFICATION_NEEDED, lambda a, text: a.requires_clarification),
    (QuestionType.TEAM, _team_scoped),
    (QuestionType.TEMPORAL, _temporal),
    (QuestionType.STREAK, lambda a, text: bool(STREAK_WORDS.search(text))),
    (QuestionType.DOUBLE_GAME, lambda a, text: bool(DOUBLE_GAME_WORDS.search(text)) or "DGW" in a.metrics),
    (QuestionType.COMPARISON, lambda a, text: bool(COMPARISON_WORDS.search(text))),
    (QuestionType.CLUB, lambda a, text: not a.has_named_player and bool(CLUB_WORDS.search(text))),
    (QuestionType.FIXTURE, _fixture),
    (QuestionType.PLAYER, _player),
    (QuestionType.GENERAL, lambda a, text: True),
)


def classify(analysis: QuestionAnalysis) -> QuestionType:
    text = analysis.question.lower()
    for question_type, predicate in CLASSIFICATION_ORDER:
        if predicate(analysis, text):
            return question_type
    return QuestionType.GENERAL


class QuestionAnalyzer:
    """Build a ``QuestionAnalysis`` from an extraction result."""

    def analyze(
        self,
        question: str,
        extraction: ExtractionResult,
        user_context: Optional[str] = None,
    ) -> QuestionAnalysis:
        player_entities = self._player_entities(extraction, user_context)
        entities = self._entities(extraction, user_context)
        metrics, stat_type_count = self._metrics(question, extraction)
        # A question naming nobody is about the selected player.
        player_from_context = not extraction.entities and bool(user_context)
        if player_from_context:
            player_entities = [user_context]

        analysis = QuestionAnalysis(
            question=question,
            type=QuestionType.GENERAL,
            entities=entities,
            metrics=metrics,
            complexity=Complexity.SIMPLE,
            requires_clarification=False,
            time_range=self._time_range(extraction),
            team_entities=self._values(extraction.entities_of("team")),
            opposition_entities=self._values(extraction.entities_of("opposition")),
            player_entities=player_entities,
            league_entities=self._values(extraction.entities_of("league")),
            time_frames=list(extraction.time_frames),
            locations=self._values(extraction.locations),
            stat_indicators=self._values(extraction.stat_indicators),
            negative_clauses=list(extraction.negative_clauses),
            stat_type_count=stat_type_count,
            player_from_context=player_from_context,
            user_context=user_context,
            extraction=extraction,
        )
        self.reassess(analysis)
        logger.info(
            f"Analyzed question type={analysis.type.value} entities={analysis.entities} "
            f"metrics={analysis.metrics} complexity={analysis.complexity.value}"
        )
        return analysis

    def reassess(self, analysis: QuestionAnalysis) -> QuestionAnalysis:
        """Recompute complexity, clarification and type from current lists."""
        analysis.complexity = self.assess_complexity(analysis)
        reason = self.clarification_reason(analysis)
        analysis.requires_clarification = reason is not None
        analysis.clarification_message = CLARIFICATION_MESSAGES[reason] if reason else None
        analysis.type = classify(analysis)
        return analysis

    def assess_complexity(self, analysis: QuestionAnalysis) -> Complexity:
        entity_count = len(analysis.entities)
        stat_count = analysis.stat_type_count
        if entity_count > MAX_ENTITIES or stat_count > MAX_STAT_TYPES:
            return Complexity.COMPLEX
        if (
            entity_count > 1
            or stat_count > 1
            or len(analysis.time_frames) > 1
            or analysis.negative_clauses
            or len(analysis.locations) > 1
        ):
            return Complexity.MODERATE
        return Complexity.SIMPLE

    def clarification_reason(self, analysis: QuestionAnalysis) -> Optional[str]:
        if len(analysis.entities) > MAX_ENTITIES:
            return "too_many_entities"
        if analysis.stat_type_count > MAX_STAT_TYPES:
            return "too_many_stats"
        if not analysis.entities:
            return "missing_entity"
        if analysis.stat_type_count == 0:
            return "missing_stat"
        if analysis.complexity == Complexity.COMPLEX:
            return "complex"
        return None

    # ---------- helpers ----------

    @staticmethod
    def _values(spans) -> List[str]:
        values: List[str] = []
        for span in spans:
            if span.value.lower() not in (v.lower() for v in values):
                values.append(span.value)
        return values

    def _player_entities(self, extraction: ExtractionResult, user_context: Optional[str]) -> List[str]:
        players: List[str] = []
        for span in extraction.entities_of("player"):
            value = span.value
            if value == "I":
                if not user_context:
                    continue
                value = user_context
            if value.lower() not in (p.lower() for p in players):
                players.append(value)
        return players

    def _entities(self, extraction: ExtractionResult, user_context: Optional[str]) -> List[str]:
        entities: List[str] = []
        for span in extraction.entities:
            value = span.value
            if span.type == "player" and value == "I":
                if not user_context:
                    continue
                value = user_context
            if value.lower() not in (e.lower() for e in entities):
                entities.append(value)
        if not entities and user_context:
            entities.append(user_context)
        return entities

    def _metrics(self, question: str, extraction: ExtractionResult) -> Tuple[List[str], int]:
        metrics: List[str] = []
        for stat_type in extraction.distinct_stat_types():
            key = STAT_TYPE_TO_METRIC.get(stat_type, stat_type)
            if key not in metrics:
                metrics.append(key)
        stat_type_count = len(metrics)

        if len(metrics) > 1 and any(m not in LOCATION_METRICS for m in metrics):
            metrics = [m for m in metrics if m not in LOCATION_METRICS]

        if PER_APPEARANCE_WORDS.search(question):
            converted = []
            for m in metrics:
                key = PER_APPEARANCE_METRICS.get(m, m) if m not in RATIO_METRICS else m
                if key not in converted:
                    converted.append(key)
            metrics = converted
        return metrics, stat_type_count

    @staticmethod
    def _time_range(extraction: ExtractionResult) -> Optional[str]:
        concrete = [t for t in extraction.time_frames if t.type in CONCRETE_TIME_FRAMES]
        frames = concrete or list(extraction.time_frames)
        return frames[0].value if frames else None
