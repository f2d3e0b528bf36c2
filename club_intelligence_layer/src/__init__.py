"""Source package for the Club Intelligence Layer.

Expose commonly used classes at module level so imports are concise:

    from club_intelligence_layer.src import EntityExtractor, QuestionAnalyzer
"""

from .entity_extractor import EntityExtractor, ExtractedSpan, ExtractionResult  # noqa: F401
from .fuzzy_resolver import FuzzyResolver  # noqa: F401
from .question_analyzer import QuestionAnalysis, QuestionAnalyzer, QuestionType  # noqa: F401
from .conversation import ConversationContext  # noqa: F401
from .response_formatter import ResponseFormatter  # noqa: F401

__all__ = [
    "EntityExtractor",
    "ExtractedSpan",
    "ExtractionResult",
    "FuzzyResolver",
    "QuestionAnalysis",
    "QuestionAnalyzer",
    "QuestionType",
    "ConversationContext",
    "ResponseFormatter",
]
