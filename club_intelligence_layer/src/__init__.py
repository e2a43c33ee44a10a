"""Source package for Club Intelligence Layer.

Expose commonly used classes at module level so imports are concise:

    from club_intelligence_layer.src import EntityExtractor, QuestionAnalyzer
"""

from .entity_extractor import EntityExtractor, ExtractionResult, EntityCategory, TimeFrameType  # noqa: F401
from .alias_resolver import AliasResolver, EntityNameResolver  # noqa: F401
from .question_analyzer import QuestionAnalyzer, QuestionAnalysis, QuestionIntent, QueryContext  # noqa: F401
from .query_builder import QueryBuilder, SynthesizedQuery, UnsupportedMetricError  # noqa: F401
from .ranking_builder import RankingBuilder, RankingPlan  # noqa: F401
from .graph_database import ClubGraphDatabase, GraphDatabaseError  # noqa: F401
from .result_normalizer import ResponseType, normalize_rows, build_response  # noqa: F401

__all__ = [
    "EntityExtractor",
    "ExtractionResult",
    "EntityCategory",
    "TimeFrameType",
    "AliasResolver",
    "EntityNameResolver",
    "QuestionAnalyzer",
    "QuestionAnalysis",
    "QuestionIntent",
    "QueryContext",
    "QueryBuilder",
    "SynthesizedQuery",
    "UnsupportedMetricError",
    "RankingBuilder",
    "RankingPlan",
    "ClubGraphDatabase",
    "GraphDatabaseError",
    "ResponseType",
    "normalize_rows",
    "build_response",
]
