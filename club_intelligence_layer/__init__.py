"""Club Intelligence Layer package.

Expose the primary public APIs at the top-level so downstream code and tests
can simply do::

    from club_intelligence_layer import ClubIntelligenceLayer, EntityExtractor
"""

from .src.entity_extractor import (  # noqa: F401
    EntityExtractor,
    ExtractedSpan,
    ExtractionResult,
)
from .src.fuzzy_resolver import FuzzyResolver  # noqa: F401
from .src.question_analyzer import (  # noqa: F401
    Complexity,
    QuestionAnalysis,
    QuestionAnalyzer,
    QuestionType,
)
from .src.query_builders import QueryBuilders  # noqa: F401
from .src.query_plan import NotFound, QueryError, QueryPlan  # noqa: F401
from .src.response_cache import ResponseCache  # noqa: F401
from .src.database import GraphDatabase, GraphDatabaseError, QueryExecutionError  # noqa: F401
from .config.settings import Settings, load_settings  # noqa: F401
from .main import ClubIntelligenceLayer  # noqa: F401

__all__ = [
    "ClubIntelligenceLayer",
    "EntityExtractor",
    "ExtractedSpan",
    "ExtractionResult",
    "FuzzyResolver",
    "Complexity",
    "QuestionAnalysis",
    "QuestionAnalyzer",
    "QuestionType",
    "QueryBuilders",
    "QueryPlan",
    "NotFound",
    "QueryError",
    "ResponseCache",
    "GraphDatabase",
    "GraphDatabaseError",
    "QueryExecutionError",
    "Settings",
    "load_settings",
]

__version__ = "0.1.0"
