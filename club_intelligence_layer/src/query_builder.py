"""Cypher synthesis for specific, relationship, award and listing questions.

Every user-derived value travels as a named parameter; the query text only
ever contains constants chosen here. ``$graphLabel`` scopes every node.
Rankings live in ``ranking_builder``.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config.club_vocabulary import MetricKey, MetricKind, VocabularyRegistry, get_vocabulary_registry, team_display_name
from .question_analyzer import QuestionAnalysis
from .result_normalizer import ResponseType

logger = logging.getLogger(__name__)

NO_CONTEXT_LIMIT = 50
MOST_PLAYED_WITH_LIMIT = 3
OPPONENTS_LIMIT = 10


@dataclass
class SynthesizedQuery:
    text: str
    params: Dict[str, Any]
    shape: str
    metric: Optional[MetricKey] = None
    nullable_fields: Tuple[str, ...] = ()

    def pretty(self) -> str:
        """Query text followed by its parameters, never substituted into the text."""
        lines = [line.rstrip() for line in self.text.strip().splitlines() if line.strip()]
        lines.append("-- parameters:")
        for name in sorted(self.params):
            lines.append(f"--   ${name} = {self.params[name]!r}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shape": self.shape,
            "metric": self.metric.value if self.metric else None,
            "query": self.text.strip(),
            "params": dict(self.params),
        }


class UnsupportedMetricError(Exception):
    """Raised when a metric has no query shape for the requested intent."""

    def __init__(self, metric: Optional[MetricKey], message: str,
                 response_type: ResponseType = ResponseType.UNSUPPORTED_METRIC):
        super().__init__(message)
        self.metric = metric
        self.response_type = response_type


# ---------- Aggregation table ----------

COUNT_ROWS = "count_rows"
SUM = "sum"
BOOLEAN_COUNT = "boolean_count"


@dataclass(frozen=True)
class AggregationShape:
    kind: str
    fields: Tuple[str, ...] = ()


AGGREGATIONS: Dict[MetricKey, AggregationShape] = {
    MetricKey.APP: AggregationShape(COUNT_ROWS),
    MetricKey.HOME: AggregationShape(COUNT_ROWS),
    MetricKey.AWAY: AggregationShape(COUNT_ROWS),
    MetricKey.MIN: AggregationShape(SUM, ("minutes",)),
    MetricKey.MOM: AggregationShape(BOOLEAN_COUNT, ("mom",)),
    MetricKey.G: AggregationShape(SUM, ("goals", "penaltiesScored")),
    MetricKey.OPEN_PLAY_GOALS: AggregationShape(SUM, ("goals",)),
    MetricKey.A: AggregationShape(SUM, ("assists",)),
    MetricKey.Y: AggregationShape(SUM, ("yellowCards",)),
    MetricKey.R: AggregationShape(SUM, ("redCards",)),
    MetricKey.SAVES: AggregationShape(SUM, ("saves",)),
    MetricKey.OG: AggregationShape(SUM, ("ownGoals",)),
    MetricKey.C: AggregationShape(SUM, ("conceded",)),
    MetricKey.CLS: AggregationShape(SUM, ("cleanSheets",)),
    MetricKey.PSC: AggregationShape(SUM, ("penaltiesScored",)),
    MetricKey.PM: AggregationShape(SUM, ("penaltiesMissed",)),
    MetricKey.PCO: AggregationShape(SUM, ("penaltiesConceded",)),
    MetricKey.PSV: AggregationShape(SUM, ("penaltiesSaved",)),
    MetricKey.FTP: AggregationShape(SUM, ("fantasyPoints",)),
    MetricKey.GI: AggregationShape(SUM, ("goals", "assists")),
}

# Player-level stats that double count when summed across a whole team.
TEAM_UNSUPPORTED = {MetricKey.C, MetricKey.CLS, MetricKey.SAVES, MetricKey.PSV}

_LOCATIONS = {"home": "Home", "away": "Away"}
_COMPETITION_TYPES = {"league": "League", "cup": "Cup", "friendly": "Friendly"}
_RESULTS = {"win": "W", "draw": "D", "loss": "L"}


def coalesced_sum(field_name: str, alias: str = "md") -> str:
    column = f"{alias}.{field_name}"
    return f'coalesce(sum(CASE WHEN {column} IS NULL OR {column} = "" THEN 0 ELSE {column} END), 0)'


def aggregation_expression(shape: AggregationShape, alias: str = "md", distinct_fixtures: bool = False) -> str:
    if shape.kind == COUNT_ROWS:
        return "count(DISTINCT f)" if distinct_fixtures else f"count({alias})"
    if shape.kind == BOOLEAN_COUNT:
        column = f"{alias}.{shape.fields[0]}"
        return f"sum(CASE WHEN {column} = true OR {column} = 1 THEN 1 ELSE 0 END)"
    return " + ".join(coalesced_sum(name, alias) for name in shape.fields)


def aggregation_for(metric: MetricKey) -> AggregationShape:
    shape = AGGREGATIONS.get(metric)
    if shape is None:
        raise UnsupportedMetricError(metric, f"No aggregation for metric: {metric.value}")
    return shape


# ---------- Filters ----------

@dataclass
class FilterSet:
    conditions: List[str] = field(default_factory=list)
    params: Dict[str, Any] = field(default_factory=dict)
    needs_fixture: bool = False
    needs_match_detail: bool = False


def compose_filters(analysis: QuestionAnalysis, md_aliases: Sequence[str] = ("md",),
                    include_team: bool = True, include_time: bool = True) -> FilterSet:
    """AND-composable conditions for every optional filter in the analysis.

    Fixture conditions reference ``f``; match-detail conditions are repeated
    for each alias in ``md_aliases``.
    """
    filters = FilterSet()

    if include_team and analysis.team:
        filters.params["teamName"] = team_display_name(analysis.team)
        filters.conditions.extend(f"{alias}.team = $teamName" for alias in md_aliases)
        filters.needs_match_detail = True
    if analysis.position:
        filters.params["position"] = analysis.position
        filters.conditions.extend(f"{alias}.class = $position" for alias in md_aliases)
        filters.needs_match_detail = True

    fixture_conditions: List[str] = []
    time_range = analysis.time_range
    if include_time and time_range.season:
        filters.params["season"] = time_range.season
        fixture_conditions.append("f.season = $season")
    if include_time and time_range.start_date:
        filters.params["startDate"] = time_range.start_date
        fixture_conditions.append("f.date >= $startDate")
    if include_time and time_range.end_date:
        filters.params["endDate"] = time_range.end_date
        fixture_conditions.append("f.date <= $endDate")
    if analysis.location in _LOCATIONS:
        fixture_conditions.append(f"f.homeOrAway = '{_LOCATIONS[analysis.location]}'")
    comp_types = [_COMPETITION_TYPES[c] for c in analysis.competition_types if c in _COMPETITION_TYPES]
    if comp_types:
        fixture_conditions.append("(" + " OR ".join(f"f.compType = '{c}'" for c in comp_types) + ")")
    competition = analysis.competition or (analysis.leagues[0] if analysis.leagues else None)
    if competition:
        filters.params["competition"] = competition
        fixture_conditions.append("toLower(f.competition) CONTAINS toLower($competition)")
    if analysis.opposition:
        filters.params["opposition"] = analysis.opposition
        fixture_conditions.append("toLower(f.opposition) CONTAINS toLower($opposition)")
    results = [_RESULTS[r] for r in analysis.results if r in _RESULTS]
    if results:
        filters.params["results"] = results
        fixture_conditions.append("f.result IN $results")
    if analysis.opponent_own_goals:
        fixture_conditions.append("f.oppoOwnGoals > 0")

    if fixture_conditions:
        filters.needs_fixture = True
        filters.conditions.extend(fixture_conditions)
    return filters


def where_clause(conditions: Sequence[str]) -> str:
    return f"WHERE {' AND '.join(conditions)}" if conditions else ""


def fixture_match(md_alias: str = "md") -> str:
    return f"MATCH (f:Fixture {{graphLabel: $graphLabel}})-[:HAS_MATCH_DETAILS]->({md_alias})"


def join_lines(*parts: str) -> str:
    return "\n".join(part for part in parts if part)


_COUNT_QUESTION = re.compile(r"\bhow\s+many\b|\bnumber\s+of\b|\bcount\b|\btimes\b", re.IGNORECASE)


class QueryBuilder:
    """Build one ``SynthesizedQuery`` per question shape."""

    def __init__(self, graph_label: str, registry: Optional[VocabularyRegistry] = None):
        self.graph_label = graph_label
        self.registry = registry or get_vocabulary_registry()

    def _params(self, **params: Any) -> Dict[str, Any]:
        return {"graphLabel": self.graph_label, **params}

    # ---------- Specific player ----------

    def build_specific_player(self, analysis: QuestionAnalysis, player_name: str,
                              metric: MetricKey) -> SynthesizedQuery:
        config = self.registry.metric(metric)
        filters = compose_filters(analysis)
        params = self._params(playerName=player_name, **filters.params)
        player_match = ("MATCH (p:Player {graphLabel: $graphLabel, playerName: $playerName})"
                        "-[:PLAYED_IN]->(md:MatchDetail {graphLabel: $graphLabel})")
        fixture = fixture_match() if filters.needs_fixture else ""
        where = where_clause(filters.conditions)

        if metric is MetricKey.PENALTY_RECORD:
            text = join_lines(
                player_match, fixture, where,
                f"WITH p, {coalesced_sum('penaltiesScored')} as scored, {coalesced_sum('penaltiesMissed')} as missed",
                "RETURN p.playerName as playerName, scored, missed,",
                "       CASE WHEN scored + missed > 0 THEN toFloat(scored) / (scored + missed) ELSE NULL END as value",
            )
            return SynthesizedQuery(text, params, "player_penalty_record", metric, ("value",))

        if config.kind is MetricKind.PER_APPEARANCE:
            numerator = aggregation_expression(aggregation_for(config.base))
            text = join_lines(
                player_match, fixture, where,
                f"WITH p, {numerator} as total, count(md) as appearances",
                "RETURN p.playerName as playerName, appearances,",
                "       CASE WHEN appearances > 0 THEN toFloat(total) / appearances ELSE 0.0 END as value",
            )
            return SynthesizedQuery(text, params, "player_per_appearance", metric)

        if metric is MetricKey.MPERG:
            goals = aggregation_expression(AGGREGATIONS[MetricKey.G])
            text = join_lines(
                player_match, fixture, where,
                f"WITH p, {coalesced_sum('minutes')} as minutes, {goals} as goals",
                "RETURN p.playerName as playerName, minutes, goals,",
                "       CASE WHEN goals > 0 THEN toFloat(minutes) / goals ELSE NULL END as value",
            )
            return SynthesizedQuery(text, params, "player_minutes_per_goal", metric, ("value",))

        if metric is MetricKey.SEASON_ANALYSIS:
            text = join_lines(
                player_match, fixture, where,
                "WITH p, collect(DISTINCT md.season) as seasons",
                "RETURN p.playerName as playerName, size(seasons) as value, seasons",
            )
            return SynthesizedQuery(text, params, "player_seasons_played", metric)

        if metric is MetricKey.MOST_PROLIFIC_SEASON:
            goals = aggregation_expression(AGGREGATIONS[MetricKey.G])
            text = join_lines(
                player_match, fixture,
                where_clause(filters.conditions + ["md.season IS NOT NULL"]),
                f"WITH p, md.season as season, {goals} as value",
                "RETURN p.playerName as playerName, season, value",
                "ORDER BY value DESC, season ASC",
                "LIMIT 1",
            )
            return SynthesizedQuery(text, params, "player_most_prolific_season", metric)

        shape = AGGREGATIONS.get(metric)
        if shape is None:
            raise UnsupportedMetricError(metric, f"Metric {metric.value} is not supported for a single player")
        if metric in (MetricKey.HOME, MetricKey.AWAY) and analysis.location is None:
            fixture = fixture_match()
            where = where_clause(filters.conditions + [f"f.homeOrAway = '{metric.value.title()}'"])
        text = join_lines(
            player_match, fixture, where,
            f"RETURN p.playerName as playerName, {aggregation_expression(shape)} as value",
        )
        return SynthesizedQuery(text, params, "player_aggregate", metric)

    # ---------- Specific team ----------

    def build_specific_team(self, analysis: QuestionAnalysis, metric: MetricKey) -> SynthesizedQuery:
        if not analysis.team:
            raise UnsupportedMetricError(metric, "No team specified")
        shape = AGGREGATIONS.get(metric)
        if shape is None or metric in TEAM_UNSUPPORTED:
            raise UnsupportedMetricError(metric, f"Metric {metric.value} is not supported for a team")
        filters = compose_filters(analysis)
        conditions = list(filters.conditions)
        if metric in (MetricKey.HOME, MetricKey.AWAY) and analysis.location is None:
            conditions.append(f"f.homeOrAway = '{metric.value.title()}'")
        text = join_lines(
            "MATCH (md:MatchDetail {graphLabel: $graphLabel})",
            fixture_match(),
            where_clause(conditions),
            f"RETURN $teamName as teamName, {aggregation_expression(shape, distinct_fixtures=True)} as value",
        )
        return SynthesizedQuery(text, self._params(**filters.params), "team_aggregate", metric)

    # ---------- Relationships ----------

    def build_games_played_together(self, analysis: QuestionAnalysis, player_one: str,
                                    player_two: str) -> SynthesizedQuery:
        filters = compose_filters(analysis, md_aliases=("md1", "md2"))
        text = join_lines(
            "MATCH (p1:Player {graphLabel: $graphLabel, playerName: $playerName1})"
            "-[:PLAYED_IN]->(md1:MatchDetail {graphLabel: $graphLabel})",
            "MATCH (p2:Player {graphLabel: $graphLabel, playerName: $playerName2})"
            "-[:PLAYED_IN]->(md2:MatchDetail {graphLabel: $graphLabel})",
            fixture_match("md1"),
            "MATCH (f)-[:HAS_MATCH_DETAILS]->(md2)",
            where_clause(["p1 <> p2"] + filters.conditions),
            "RETURN count(DISTINCT f) as gamesTogether",
        )
        params = self._params(playerName1=player_one, playerName2=player_two, **filters.params)
        return SynthesizedQuery(text, params, "games_played_together")

    def build_most_played_with(self, analysis: QuestionAnalysis, player_name: str,
                               limit: int = MOST_PLAYED_WITH_LIMIT) -> SynthesizedQuery:
        filters = compose_filters(analysis)
        text = join_lines(
            "MATCH (p:Player {graphLabel: $graphLabel, playerName: $playerName})"
            "-[:PLAYED_IN]->(md:MatchDetail {graphLabel: $graphLabel})",
            fixture_match(),
            "MATCH (f)-[:HAS_MATCH_DETAILS]->(md2:MatchDetail {graphLabel: $graphLabel})"
            "<-[:PLAYED_IN]-(other:Player {graphLabel: $graphLabel})",
            where_clause(["other <> p", "other.allowOnSite = true"] + filters.conditions),
            "RETURN other.playerName as teammateName, count(DISTINCT f) as gamesTogether",
            "ORDER BY gamesTogether DESC, teammateName ASC",
            "LIMIT $limit",
        )
        params = self._params(playerName=player_name, limit=limit, **filters.params)
        return SynthesizedQuery(text, params, "most_played_with", MetricKey.CO_PLAYERS)

    def build_opponents(self, analysis: QuestionAnalysis, player_name: Optional[str] = None,
                        limit: int = OPPONENTS_LIMIT) -> SynthesizedQuery:
        if player_name:
            text = join_lines(
                "MATCH (p:Player {graphLabel: $graphLabel, playerName: $playerName})"
                "-[r:PLAYED_AGAINST_OPPONENT]->(od:OppositionDetails {graphLabel: $graphLabel})",
                "WHERE r.timesPlayed > 0",
                "RETURN od.opposition as opposition, r.timesPlayed as gamesPlayed,",
                "       r.goalsScored as goalsScored, r.assists as assists",
                "ORDER BY gamesPlayed DESC, goalsScored DESC, assists DESC, opposition ASC",
                "LIMIT $limit",
            )
            return SynthesizedQuery(text, self._params(playerName=player_name, limit=limit),
                                    "player_opponents", MetricKey.OPPONENTS)

        filters = compose_filters(analysis)
        match_detail = "MATCH (f)-[:HAS_MATCH_DETAILS]->(md:MatchDetail {graphLabel: $graphLabel})" \
            if filters.needs_match_detail else ""
        text = join_lines(
            "MATCH (f:Fixture {graphLabel: $graphLabel})",
            match_detail,
            where_clause(["f.opposition IS NOT NULL"] + filters.conditions),
            "RETURN f.opposition as opposition, count(DISTINCT f) as gamesPlayed",
            "ORDER BY gamesPlayed DESC, opposition ASC",
            "LIMIT $limit",
        )
        return SynthesizedQuery(text, self._params(limit=limit, **filters.params),
                                "club_opponents", MetricKey.OPPONENTS)

    # ---------- Awards ----------

    def build_award(self, analysis: QuestionAnalysis, player_name: str, metric: MetricKey) -> SynthesizedQuery:
        """Count of an award when the question asks "how many", its history otherwise."""
        counting = bool(_COUNT_QUESTION.search(analysis.question))
        params = self._params(playerName=player_name)

        if metric in (MetricKey.TOTW, MetricKey.SEASON_TOTW):
            if metric is MetricKey.TOTW:
                pattern = ("MATCH (p:Player {graphLabel: $graphLabel, playerName: $playerName})"
                           "-[r:IN_WEEKLY_TOTW]->(totw:WeeklyTOTW {graphLabel: $graphLabel})")
            else:
                pattern = ("MATCH (p:Player {graphLabel: $graphLabel, playerName: $playerName})"
                           "-[r:IN_SEASON_TOTW]->(totw:SeasonTOTW {graphLabel: $graphLabel})")
            season = analysis.time_range.season
            where = ""
            if season:
                params["season"] = season
                where = "WHERE totw.season = $season"
            if counting:
                text = join_lines(pattern, where, "RETURN count(r) as value")
                return SynthesizedQuery(text, params, "award_count", metric)
            text = join_lines(
                pattern, where,
                "RETURN p.playerName as playerName, totw.week as week, totw.season as season, totw.date as date",
                "ORDER BY totw.date DESC",
            )
            return SynthesizedQuery(text, params, "award_history", metric)

        if metric is MetricKey.POTM:
            pattern = ("MATCH (p:Player {graphLabel: $graphLabel, playerName: $playerName})"
                       "-[r:PLAYER_OF_THE_MONTH]->(potm {graphLabel: $graphLabel})")
            if counting:
                return SynthesizedQuery(join_lines(pattern, "RETURN count(r) as value"), params, "award_count", metric)
            text = join_lines(
                pattern,
                "RETURN p.playerName as playerName, potm.month as month, potm.year as year, potm.season as season",
                "ORDER BY potm.year DESC, potm.month DESC",
            )
            return SynthesizedQuery(text, params, "award_history", metric)

        if metric in (MetricKey.CAPTAIN, MetricKey.AWARDS):
            pattern = ("MATCH (p:Player {graphLabel: $graphLabel, playerName: $playerName})"
                       "-[r:HAS_CAPTAIN_AWARDS]->(ca:CaptainsAndAwards {graphLabel: $graphLabel})")
            if metric is MetricKey.CAPTAIN:
                where = 'WHERE ca.itemName CONTAINS "Captain"'
            else:
                where = 'WHERE NOT (ca.itemName CONTAINS "Captain")'
            if counting:
                return SynthesizedQuery(join_lines(pattern, where, "RETURN count(r) as value"),
                                        params, "award_count", metric)
            text = join_lines(
                pattern, where,
                "RETURN p.playerName as playerName, ca.season as season, ca.itemName as itemName,",
                "       r.awardType as awardType",
                "ORDER BY ca.season DESC, r.awardType",
            )
            return SynthesizedQuery(text, params, "award_history", metric)

        raise UnsupportedMetricError(metric, f"Metric {metric.value} is not an award")

    # ---------- Listings ----------

    def build_no_context(self, limit: int = NO_CONTEXT_LIMIT) -> SynthesizedQuery:
        text = join_lines(
            "MATCH (p:Player {graphLabel: $graphLabel})",
            "WHERE p.playerName IS NOT NULL AND p.allowOnSite = true",
            "RETURN p.playerName as name",
            "ORDER BY name ASC",
            "LIMIT $limit",
        )
        return SynthesizedQuery(text, self._params(limit=limit), "no_context_listing")

    def build_catalogue_query(self, category: str) -> SynthesizedQuery:
        """Distinct names for one entity category, for the name resolver."""
        queries = {
            "player": join_lines(
                "MATCH (p:Player {graphLabel: $graphLabel})",
                "WHERE p.playerName IS NOT NULL AND p.allowOnSite = true",
                "RETURN DISTINCT p.playerName as name",
            ),
            "team": join_lines(
                "MATCH (md:MatchDetail {graphLabel: $graphLabel})",
                "WHERE md.team IS NOT NULL",
                "RETURN DISTINCT md.team as name",
            ),
            "opposition": join_lines(
                "MATCH (f:Fixture {graphLabel: $graphLabel})",
                "WHERE f.opposition IS NOT NULL",
                "RETURN DISTINCT f.opposition as name",
            ),
            "league": join_lines(
                "MATCH (f:Fixture {graphLabel: $graphLabel})",
                "WHERE f.competition IS NOT NULL AND f.compType = 'League'",
                "RETURN DISTINCT f.competition as name",
            ),
        }
        if category not in queries:
            raise ValueError(f"Unknown entity category: {category}")
        return SynthesizedQuery(queries[category], self._params(), f"catalogue_{category}")
