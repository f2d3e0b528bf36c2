"""
Main entry point for the Club Intelligence Layer.
Demonstrates the complete end-to-end flow: Question → Extract → Analyze → Cypher → Answer
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from .config.pseudonyms import load_pseudonym_tables
from .config.settings import Settings, load_settings
from .src.conversation import ConversationContext
from .src.database import GraphDatabase
from .src.entity_extractor import EntityExtractor
from .src.fuzzy_resolver import FuzzyResolver
from .src.query_builders import QueryBuilders
from .src.query_cache import QueryCacheError, create_query_cache
from .src.query_plan import NotFound, QueryError, QueryPlan
from .src.question_analyzer import QuestionAnalysis, QuestionAnalyzer
from .src.response_cache import ResponseCache
from .src.response_formatter import NO_ANSWER, FormattedAnswer, ResponseFormatter

logger = logging.getLogger(__name__)

EMPTY_QUESTION_MESSAGE = "Please ask a question about the club's players, teams or fixtures."


class ClubIntelligenceLayer:
    """
    Main class that orchestrates the complete end-to-end flow:
    Question → Extract → Resolve → Analyze → Build → Execute → Format
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        database: Optional[Any] = None,
        query_cache: Optional[Any] = None,
    ):
        """
        Initialize the Club Intelligence Layer.

        Args:
            settings: Settings; read from the environment when omitted
            database: object with ``run``, ``list_known_values`` and
                ``get_current_season``; a Neo4j GraphDatabase is created when omitted
            query_cache: optional QueryCache for raw rows
        """
        self.settings = settings or load_settings()

        if database is None:
            if not (self.settings.neo4j_uri and self.settings.neo4j_user and self.settings.neo4j_password):
                raise ValueError(
                    "Neo4j credentials not found. Please set NEO4J_URI, NEO4J_USER and "
                    "NEO4J_PASSWORD environment variables or pass a database directly."
                )
            if query_cache is None and self.settings.redis_url:
                try:
                    query_cache = create_query_cache(self.settings.redis_url, self.settings.result_cache_ttl)
                except QueryCacheError as e:
                    logger.warning(f"Row cache disabled: {e}")
            database = GraphDatabase(
                self.settings.neo4j_uri,
                self.settings.neo4j_user,
                self.settings.neo4j_password,
                database=self.settings.neo4j_database,
                graph_label=self.settings.graph_label,
                query_timeout=self.settings.query_timeout_seconds,
                slow_query_ms=self.settings.slow_query_ms,
                query_cache=query_cache,
            )

        # Initialize components
        self.database = database
        self.query_cache = query_cache
        tables = load_pseudonym_tables(self.settings.pseudonyms_path)
        self.extractor = EntityExtractor(tables, fuzzy_threshold=self.settings.fuzzy_threshold)
        self.resolver = FuzzyResolver(
            source=self.database,
            threshold=self.settings.fuzzy_threshold,
            index_ttl=self.settings.entity_index_ttl_seconds,
            stat_pseudonyms=tables["stat_types"],
        )
        self.analyzer = QuestionAnalyzer()
        self.conversation = ConversationContext(self.analyzer)
        self.builders = QueryBuilders(self.settings)
        self.formatter = ResponseFormatter(self.settings.club_name)
        self.response_cache = ResponseCache(self.settings.cache_capacity, self.settings.cache_ttl_seconds)
        self._current_season: Optional[str] = None

    def answer_question_sync(
        self,
        question: str,
        user_context: Optional[str] = None,
        conversation_history: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """Sync wrapper for the async answer_question method."""
        return asyncio.run(self.answer_question(question, user_context, conversation_history))

    async def answer_question(
        self,
        question: str,
        user_context: Optional[str] = None,
        conversation_history: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Answer a natural language question about the club.

        Args:
            question: Free text (e.g., "How many goals has Luke Bangs scored?")
            user_context: Name of the currently selected player, if any
            conversation_history: Previous turns, oldest first

        Returns:
            Dictionary with answer, answerValue, visualization, cypherQuery,
            suggestions, sources and debug details
        """
        start_time = time.time()
        steps: List[str] = []
        analysis: Optional[QuestionAnalysis] = None
        plan: Optional[QueryPlan] = None

        try:
            # Step 1: Extract
            try:
                extraction = self.extractor.extract(question)
            except ValueError:
                logger.info("Empty question received")
                return self._response(
                    question, user_context, FormattedAnswer(EMPTY_QUESTION_MESSAGE),
                    suggestions=self.formatter.suggestions(None), steps=["Empty question"],
                )
            steps.append(f"Extracted {len(extraction.all_spans())} spans")

            # Step 2: Analyze and merge follow-up context
            analysis = self.analyzer.analyze(question, extraction, user_context)
            follow_up = bool(conversation_history) and self.conversation.is_follow_up(question)
            if follow_up:
                analysis = self.conversation.merge(analysis, conversation_history)
                steps.append("Merged conversation context")
            steps.append(f"Classified as {analysis.type.value} ({analysis.complexity.value})")

            if analysis.requires_clarification:
                logger.info(f"Clarification needed: {analysis.clarification_message}")
                return self._response(
                    question, user_context, self.formatter.clarification(analysis),
                    analysis=analysis, suggestions=self.formatter.suggestions(analysis), steps=steps,
                )

            # Step 3: Response cache; follow-ups are never cached
            cache_key = ResponseCache.make_key(question, user_context)
            if not follow_up:
                cached = self.response_cache.get(cache_key)
                if cached is not None:
                    return cached

            # Step 4: Resolve entity names against the graph
            await self._resolve_entities(analysis)
            analysis.current_season = await self._get_current_season()
            steps.append(f"Resolved entities: {analysis.entities}")

            # Step 5: Build the query
            result = self.builders.build(analysis)
            if isinstance(result, NotFound):
                steps.append(f"No query: {result.reason}")
                return self._response(
                    question, user_context, self.formatter.no_answer(analysis, result),
                    analysis=analysis, suggestions=self._suggestions(analysis, result.domain),
                    steps=steps, error=result.reason,
                )
            plan = result
            display_query = plan.render_for_display()
            logger.info(f"Executing {plan.domain}/{plan.shape} query:\n{display_query}")
            steps.append(f"Built {plan.domain} query ({plan.shape})")

            # Step 6: Execute
            try:
                rows = await self.database.run(plan.query, dict(plan.params))
            except Exception as e:
                error = QueryError(plan.domain, str(e), display_query)
                logger.error(f"❌ Query execution failed ({error.domain}): {error.message}")
                steps.append("Query execution failed")
                return self._response(
                    question, user_context, self.formatter.no_answer(analysis, error),
                    analysis=analysis, plan=plan, suggestions=self._suggestions(analysis, plan.domain),
                    steps=steps, error=error.message,
                )
            steps.append(f"Query returned {len(rows)} rows")

            # Step 7: Format and cache
            formatted = self.formatter.format(plan, rows, analysis)
            suggestions = self._suggestions(analysis, plan.domain) if formatted.answer == NO_ANSWER else []
            response = self._response(
                question, user_context, formatted, analysis=analysis, plan=plan,
                suggestions=suggestions, steps=steps,
            )
            if rows and not follow_up:
                self.response_cache.set(cache_key, response)

            processing_time = (time.time() - start_time) * 1000
            logger.debug(f"Answered in {processing_time:.1f}ms")
            return response

        except Exception as e:
            logger.exception(f"Error answering question '{question}': {e}")
            return self._response(
                question, user_context, FormattedAnswer(NO_ANSWER),
                analysis=analysis, plan=plan, suggestions=self.formatter.suggestions(analysis),
                steps=steps, error=str(e),
            )

    async def answer_many(
        self,
        questions: List[str],
        user_context: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Answer multiple questions concurrently."""
        tasks = [self.answer_question(question, user_context) for question in questions]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        processed_results = []
        for question, result in zip(questions, results):
            if isinstance(result, Exception):
                processed_results.append(self._response(
                    question, user_context, FormattedAnswer(NO_ANSWER), error=str(result),
                ))
            else:
                processed_results.append(result)
        return processed_results

    # ---------- pipeline helpers ----------

    async def _resolve_entities(self, analysis: QuestionAnalysis) -> None:
        """Replace extracted names with their canonical graph values."""
        renamed: Dict[str, str] = {}
        for category, values in (
            ("player", analysis.player_entities),
            ("opposition", analysis.opposition_entities),
            ("league", analysis.league_entities),
        ):
            for index, value in enumerate(values):
                resolved = await self.resolver.resolve_async(value, category)
                if resolved is None:
                    logger.warning(f"Could not resolve {category} '{value}'")
                    continue
                if resolved != value:
                    logger.debug(f"Resolved {category} '{value}' -> '{resolved}'")
                    values[index] = resolved
                    renamed[value] = resolved
        if renamed:
            analysis.entities = [renamed.get(entity, entity) for entity in analysis.entities]

    async def _get_current_season(self) -> Optional[str]:
        if self._current_season is None:
            try:
                self._current_season = await self.database.get_current_season()
            except Exception as e:
                logger.warning(f"Could not load current season: {e}")
                return None
            if self.query_cache is not None:
                self.query_cache.current_season = self._current_season
        return self._current_season

    def _suggestions(self, analysis: QuestionAnalysis, domain: Optional[str] = None) -> List[str]:
        suggestions: List[str] = []
        for value in analysis.player_entities[:1]:
            for name in self.resolver.suggestions(value.split()[0], "player"):
                if name != value:
                    suggestions.append(f"Did you mean {name}?")
        return suggestions + self.formatter.suggestions(analysis, domain)

    def _response(
        self,
        question: str,
        user_context: Optional[str],
        formatted: FormattedAnswer,
        analysis: Optional[QuestionAnalysis] = None,
        plan: Optional[QueryPlan] = None,
        suggestions: Optional[List[str]] = None,
        steps: Optional[List[str]] = None,
        error: Optional[str] = None,
    ) -> Dict[str, Any]:
        display_query = plan.render_for_display() if plan else None
        return {
            "answer": formatted.answer,
            "answerValue": formatted.answer_value,
            "visualization": formatted.visualization,
            "cypherQuery": display_query,
            "suggestions": suggestions or [],
            "sources": formatted.sources,
            "debug": {
                "question": question,
                "userContext": user_context,
                "timestamp": self._get_timestamp(),
                "processingDetails": {
                    "questionAnalysis": analysis.to_dict() if analysis else None,
                    "cypherQueries": [display_query] if display_query else [],
                    "processingSteps": steps or [],
                    "queryBreakdown": plan.to_dict() if plan else None,
                    "error": error,
                },
            },
        }

    def _get_timestamp(self) -> str:
        """Get current timestamp in ISO format."""
        return datetime.now(timezone.utc).isoformat()

    # ---------- maintenance ----------

    async def get_cache_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {"responses": self.response_cache.get_cache_stats()}
        if self.query_cache is not None:
            stats["rows"] = await self.query_cache.get_cache_stats()
        stats["entityIndex"] = self.resolver.stats()
        return stats

    def clear_cache(self) -> None:
        """Clear answer and entity-index caches."""
        self.response_cache.clear()
        self.resolver.clear_cache()
        self._current_season = None

    async def close(self) -> None:
        close = getattr(self.database, "close", None)
        if close is not None:
            await close()


def print_answer(question: str, result: Dict[str, Any], number: Optional[int] = None) -> None:
    """Print an answer in a clean format."""
    header = f"Question {number}: " if number else "Question: "
    print(f"\n{header}{question}")
    print("-" * 80)
    error = result["debug"]["processingDetails"]["error"]
    print(f"{'❌' if error else '✅'} {result['answer']}")
    if result.get("cypherQuery"):
        print(result["cypherQuery"])
    for suggestion in result.get("suggestions", []):
        print(f"💡 {suggestion}")


async def _demo() -> None:
    layer = ClubIntelligenceLayer()
    questions = [
        "How many goals has Luke Bangs scored?",
        "How many goals did the 3s score in 2017/18?",
        "Where did the 1s finish last season?",
        "Who has the most assists?",
        "What is our record against Old Wimbledonians?",
    ]
    try:
        for i, question in enumerate(questions, 1):
            print_answer(question, await layer.answer_question(question), i)
        print(f"\n📊 Cache statistics: {await layer.get_cache_stats()}")
    finally:
        await layer.close()


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(name)s: %(message)s")
    print("🚀 Club Intelligence Layer")
    print("=" * 80)
    try:
        asyncio.run(_demo())
    except ValueError as e:
        print(f"❌ Failed to initialize: {e}")


if __name__ == "__main__":
    main()
