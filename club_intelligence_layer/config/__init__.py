"""Configuration subpackage for Club Intelligence Layer.

Expose the vocabulary registry and its tables.
"""

from .club_vocabulary import (  # noqa: F401
    MetricKey,
    MetricKind,
    MetricConfig,
    METRIC_CONFIGS,
    TEAM_NAMES,
    VocabularyError,
    VocabularyRegistry,
    build_vocabulary_registry,
    get_vocabulary_registry,
)

__all__ = [
    "MetricKey",
    "MetricKind",
    "MetricConfig",
    "METRIC_CONFIGS",
    "TEAM_NAMES",
    "VocabularyError",
    "VocabularyRegistry",
    "build_vocabulary_registry",
    "get_vocabulary_registry",
]
