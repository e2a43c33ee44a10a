"""Ranking queries ("who has the most ...", "which team ...").

Three shapes share one ordering rule: the computed value first (descending,
or ascending for "worst"/"least" questions), then appearances descending so
the larger sample wins ties.

- standard: summed or counted metric, rows with ``value > 0``;
- conversion rate: ``scored / (scored + missed)``, ``NULL`` without attempts,
  rows with ``value IS NOT NULL`` (0% is kept);
- per appearance: two ``WITH`` stages, the ratio guarded to ``0.0`` and the
  minimum-appearances threshold applied after the ratio is computed.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..config.club_vocabulary import MetricKey, MetricKind, VocabularyRegistry, get_vocabulary_registry
from .question_analyzer import QuestionAnalysis, ResultQuantity
from .query_builder import (
    AGGREGATIONS,
    TEAM_UNSUPPORTED,
    SynthesizedQuery,
    UnsupportedMetricError,
    aggregation_expression,
    coalesced_sum,
    compose_filters,
    fixture_match,
    where_clause,
    join_lines,
)
from .result_normalizer import ResponseType

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5
DEFAULT_EXPANDED_LIMIT = 10
RATE_LIMIT = 5

_RANKABLE_KINDS = {MetricKind.COUNT, MetricKind.SUM, MetricKind.BOOLEAN_COUNT,
                   MetricKind.CONVERSION_RATE, MetricKind.PER_APPEARANCE}


@dataclass
class RankingPlan:
    query: SynthesizedQuery
    metric: MetricKey
    requested_limit: int
    expandable_limit: int
    subject: str
    worst: bool = False


def ranking_limits(analysis: QuestionAnalysis, metric_kind: MetricKind) -> tuple:
    """(shown, fetched) row counts for a ranking."""
    if metric_kind in (MetricKind.CONVERSION_RATE, MetricKind.PER_APPEARANCE):
        requested = RATE_LIMIT
    elif analysis.top_n:
        requested = analysis.top_n
    elif analysis.quantity is ResultQuantity.SINGULAR:
        requested = 1
    else:
        requested = DEFAULT_LIMIT
    expandable = DEFAULT_EXPANDED_LIMIT if requested == DEFAULT_LIMIT else requested
    return requested, expandable


class RankingBuilder:
    def __init__(self, graph_label: str, registry: Optional[VocabularyRegistry] = None):
        self.graph_label = graph_label
        self.registry = registry or get_vocabulary_registry()

    def build(self, analysis: QuestionAnalysis) -> RankingPlan:
        metric = analysis.metric
        if metric is None:
            raise UnsupportedMetricError(None, "No metrics specified for ranking", ResponseType.UNKNOWN_METRIC)
        config = self.registry.metric(metric)
        rate = config.kind in (MetricKind.CONVERSION_RATE, MetricKind.PER_APPEARANCE)
        if config.kind not in _RANKABLE_KINDS or (not rate and metric not in AGGREGATIONS):
            raise UnsupportedMetricError(metric, f"Ranking not supported for metric: {metric.value}")

        subject = "team" if analysis.subject_is_team else "player"
        if subject == "team" and (metric in TEAM_UNSUPPORTED or config.base in TEAM_UNSUPPORTED):
            raise UnsupportedMetricError(metric, f"Team ranking not supported for metric: {metric.value}")
        requested, expandable = ranking_limits(analysis, config.kind)
        filters = compose_filters(analysis)
        params = {"graphLabel": self.graph_label, "limit": expandable, **filters.params}

        if subject == "team":
            head = join_lines(
                "MATCH (md:MatchDetail {graphLabel: $graphLabel})",
                fixture_match(),
            )
            conditions = ["md.team IS NOT NULL"] + filters.conditions
            group = "md.team as teamName"
            name_column = "teamName"
        else:
            head = join_lines(
                "MATCH (p:Player {graphLabel: $graphLabel})-[:PLAYED_IN]->(md:MatchDetail {graphLabel: $graphLabel})",
                fixture_match(),
            )
            conditions = ["p.allowOnSite = true"] + filters.conditions
            group = "p.playerName as playerName"
            name_column = "playerName"

        direction = "ASC" if analysis.worst else "DESC"
        order = f"ORDER BY value {direction}, appearances DESC, {name_column} ASC"
        appearances = "count(DISTINCT f)" if subject == "team" else "count(md)"

        if config.kind is MetricKind.CONVERSION_RATE:
            text = join_lines(
                head, where_clause(conditions),
                f"WITH {group}, {coalesced_sum('penaltiesScored')} as scored,",
                f"     {coalesced_sum('penaltiesMissed')} as missed, {appearances} as appearances",
                f"WITH {name_column}, scored, missed, appearances,",
                "     CASE WHEN scored + missed > 0 THEN toFloat(scored) / (scored + missed) ELSE NULL END as value",
                "WHERE value IS NOT NULL",
                f"RETURN {name_column}, value, scored, missed, appearances",
                order,
                "LIMIT $limit",
            )
            query = SynthesizedQuery(text, params, "ranking_conversion_rate", metric, ("value",))
        elif config.kind is MetricKind.PER_APPEARANCE:
            numerator = aggregation_expression(AGGREGATIONS[config.base])
            outer = ["value > 0"]
            if analysis.min_appearances is not None:
                params["minAppearances"] = analysis.min_appearances
                outer.append("appearances > $minAppearances")
            text = join_lines(
                head, where_clause(conditions),
                f"WITH {group}, {numerator} as total, {appearances} as appearances",
                f"WITH {name_column}, total, appearances,",
                "     CASE WHEN appearances > 0 THEN toFloat(total) / appearances ELSE 0.0 END as value",
                where_clause(outer),
                f"RETURN {name_column}, value, total, appearances",
                order,
                "LIMIT $limit",
            )
            query = SynthesizedQuery(text, params, "ranking_per_appearance", metric)
        else:
            shape = AGGREGATIONS[metric]
            value = aggregation_expression(shape, distinct_fixtures=subject == "team")
            if metric in (MetricKey.HOME, MetricKey.AWAY) and analysis.location is None:
                conditions.append(f"f.homeOrAway = '{metric.value.title()}'")
            outer = ["value > 0"]
            if analysis.min_appearances is not None:
                params["minAppearances"] = analysis.min_appearances
                outer.append("appearances > $minAppearances")
            text = join_lines(
                head, where_clause(conditions),
                f"WITH {group}, {value} as value, {appearances} as appearances",
                where_clause(outer),
                f"RETURN {name_column}, value, appearances",
                order,
                "LIMIT $limit",
            )
            query = SynthesizedQuery(text, params, "ranking_standard", metric)

        logger.info(f"🏆 Ranking {metric.value} by {subject}: show {requested}, fetch {expandable}")
        return RankingPlan(query, metric, requested, expandable, subject, analysis.worst)
