"""Follow-up question handling.

A short question such as "how many in 2019/20?" or "what about those?" borrows
whatever it is missing from the previous turns of the conversation.
"""

from typing import Any, Dict, List, Optional, Sequence
import logging
import re

from .date_utils import normalize_season
from .entity_extractor import ExtractedSpan
from .question_analyzer import QuestionAnalysis, QuestionAnalyzer, QuestionType

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 3

PRONOUNS = re.compile(r"\b(?:those|that|them|it|this|these)\b", re.IGNORECASE)
TEMPORAL_REFERENCE = re.compile(
    r"\b(?:in|during|for)\s+((?:19|20)\d{2}(?:\s*[/-]\s*(?:20)?\d{2})?)\b", re.IGNORECASE
)
QUANTITY = re.compile(r"\bhow\s+(?:many|much)\b", re.IGNORECASE)


class ConversationContext:
    """Merge an analysis with recent conversation history.

    History items are dicts with ``question``, ``entities``, ``metrics`` and
    ``timestamp``; ``playerEntities`` is honoured when present.
    """

    def __init__(self, analyzer: Optional[QuestionAnalyzer] = None, window: int = HISTORY_WINDOW):
        self.analyzer = analyzer or QuestionAnalyzer()
        self.window = window

    @staticmethod
    def is_follow_up(question: str) -> bool:
        return bool(
            PRONOUNS.search(question)
            or TEMPORAL_REFERENCE.search(question)
            or QUANTITY.search(question)
        )

    def recent(self, history: Optional[Sequence[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        """The last ``window`` items, most recent first."""
        if not history:
            return []
        return list(history)[-self.window:][::-1]

    def merge(
        self,
        analysis: QuestionAnalysis,
        history: Optional[Sequence[Dict[str, Any]]],
    ) -> QuestionAnalysis:
        items = self.recent(history)
        if not items or not self.is_follow_up(analysis.question):
            return analysis

        was_clarification = analysis.type == QuestionType.CLARIFICATION_NEEDED
        changed = False

        # A player filled in from the user's selection does not count as named.
        if not analysis.entities or analysis.player_from_context:
            item = next((i for i in items if i.get("entities")), None)
            if item is not None:
                entities = list(item["entities"])
                players = list(item.get("playerEntities") or entities)
                analysis.entities = entities
                analysis.player_entities = [p for p in players if p in entities] or entities[:1]
                analysis.player_from_context = False
                changed = True
                logger.debug(f"Borrowed entities {entities} from history")

        if not analysis.metrics:
            item = next((i for i in items if i.get("metrics")), None)
            if item is not None:
                analysis.metrics = list(item["metrics"])
                analysis.stat_type_count = len(analysis.metrics)
                changed = True
                logger.debug(f"Borrowed metrics {analysis.metrics} from history")

        reference = TEMPORAL_REFERENCE.search(analysis.question)
        if reference and not analysis.concrete_time_frames():
            frame = self._time_frame(reference)
            analysis.time_frames.append(frame)
            analysis.time_range = frame.value
            changed = True

        if changed and (was_clarification or analysis.type == QuestionType.GENERAL):
            self.analyzer.reassess(analysis)
            logger.info(f"Follow-up re-classified as {analysis.type.value}")
        return analysis

    @staticmethod
    def _time_frame(match: re.Match) -> ExtractedSpan:
        raw = re.sub(r"\s+", "", match.group(1))
        if re.fullmatch(r"\d{4}", raw):
            return ExtractedSpan(f"{raw} to {raw}", "range", match.group(0), match.start())
        return ExtractedSpan(normalize_season(raw) or raw, "season", match.group(0), match.start())
