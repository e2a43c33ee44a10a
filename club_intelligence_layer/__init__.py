"""Club Intelligence Layer package.

Expose the primary public APIs at the top-level so downstream code and tests
can simply do::

    from club_intelligence_layer import ClubIntelligenceLayer, QuestionAnalyzer

This avoids fragile relative imports from test modules and makes direct
invocation via `python -m` or pytest discovery more robust.
"""

from .config.club_vocabulary import (  # noqa: F401
    MetricKey,
    MetricKind,
    MetricConfig,
    VocabularyError,
    VocabularyRegistry,
    get_vocabulary_registry,
)

from .src.question_analyzer import (  # noqa: F401
    QuestionAnalyzer,
    QuestionAnalysis,
    QuestionIntent,
    QueryContext,
)
from .src.query_builder import QueryBuilder, SynthesizedQuery, UnsupportedMetricError  # noqa: F401
from .src.ranking_builder import RankingBuilder, RankingPlan  # noqa: F401
from .src.graph_database import ClubGraphDatabase, GraphDatabaseError  # noqa: F401
from .src.result_normalizer import ResponseType  # noqa: F401

from .main import ClubIntelligenceLayer  # noqa: F401

__all__ = [
    "MetricKey",
    "MetricKind",
    "MetricConfig",
    "VocabularyError",
    "VocabularyRegistry",
    "get_vocabulary_registry",
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
    "ClubIntelligenceLayer",
]

__version__ = "0.1.0"
