"""Domain query builders and the question-type dispatch table."""

from typing import Dict, Optional
import logging

from ...config.settings import Settings
from ..question_analyzer import (
    FIXTURE_RECORD_WORDS,
    FIXTURE_WORDS,
    PLAYER_SCORED_GAMES,
    QuestionAnalysis,
    QuestionType,
)
from ..query_plan import BuildResult, NotFound
from .base import (  # noqa: F401
    BuildContext,
    DomainQueryBuilder,
    Route,
    RoutingTable,
    WhereBuilder,
    optimize_where_order,
)
from .fixture import FixtureQueryBuilder
from .player import PlayerQueryBuilder
from .team import TeamQueryBuilder

logger = logging.getLogger(__name__)

PLAYER = "player"
TEAM = "team"
FIXTURE = "fixture"

# Question type -> builder domain; None means no query is built.
DISPATCH_TABLE: Dict[QuestionType, Optional[str]] = {
    QuestionType.PLAYER: PLAYER,
    QuestionType.TEMPORAL: PLAYER,
    QuestionType.STREAK: PLAYER,
    QuestionType.DOUBLE_GAME: PLAYER,
    QuestionType.COMPARISON: PLAYER,
    QuestionType.TEAM: TEAM,
    QuestionType.CLUB: TEAM,
    QuestionType.FIXTURE: FIXTURE,
    QuestionType.GENERAL: None,
    QuestionType.CLARIFICATION_NEEDED: None,
}


def select_domain(analysis: QuestionAnalysis) -> Optional[str]:
    """Pick the builder domain for an analysed question."""
    domain = DISPATCH_TABLE.get(analysis.type)
    if domain != PLAYER:
        return domain

    text = analysis.question
    if analysis.has_named_player:
        if PLAYER_SCORED_GAMES.search(text):
            return FIXTURE
        return PLAYER

    if analysis.type == QuestionType.STREAK:
        return FIXTURE
    if analysis.type == QuestionType.COMPARISON:
        return FIXTURE if FIXTURE_RECORD_WORDS.search(text) else PLAYER
    if not analysis.has_player_subject and (
        analysis.opposition_entities or analysis.team_entities or FIXTURE_WORDS.search(text)
    ):
        return FIXTURE
    return PLAYER


class QueryBuilders:
    """Owns one builder per domain and routes analyses to them."""

    def __init__(self, settings: Settings):
        self.player = PlayerQueryBuilder(settings)
        self.team = TeamQueryBuilder(settings)
        self.fixture = FixtureQueryBuilder(settings)
        self._builders: Dict[str, DomainQueryBuilder] = {
            PLAYER: self.player,
            TEAM: self.team,
            FIXTURE: self.fixture,
        }

    def builder_for(self, analysis: QuestionAnalysis) -> Optional[DomainQueryBuilder]:
        domain = select_domain(analysis)
        return self._builders.get(domain) if domain else None

    def build(self, analysis: QuestionAnalysis) -> BuildResult:
        builder = self.builder_for(analysis)
        if builder is None:
            logger.info(f"No builder for question type {analysis.type.value}")
            return NotFound("general", "I couldn't work out what to look up for that question")
        return builder.build(analysis.entities, analysis.metrics, analysis)


__all__ = [
    "BuildContext",
    "DISPATCH_TABLE",
    "DomainQueryBuilder",
    "FixtureQueryBuilder",
    "PlayerQueryBuilder",
    "QueryBuilders",
    "Route",
    "RoutingTable",
    "TeamQueryBuilder",
    "WhereBuilder",
    "optimize_where_order",
    "select_domain",
]
