from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional
from enum import Enum
from datetime import date
import re
import logging

from ..config.club_vocabulary import (
    MetricKey,
    MetricKind,
    VocabularyRegistry,
    get_vocabulary_registry,
    team_shorthand,
)
from .entity_extractor import (
    EntityExtractor,
    EntityCategory,
    ExtractionResult,
    TimeFrameType,
    SELF_REFERENCE,
)
from .alias_resolver import AliasResolver, EntityNameResolver, has_explicit_location_phrase

class QuestionIntent(Enum):
    """Question intents, listed in evaluation priority."""
    PAIRWISE_RELATIONSHIP = "pairwise_relationship"
    RELATIONSHIP = "relationship"
    OPPOSITION_AGGREGATE = "opposition_aggregate"
    HISTORICAL_AWARD = "historical_award"
    RANKING = "ranking"
    SPECIFIC_ENTITY = "specific_entity"
    NO_CONTEXT = "no_context"

class ResultQuantity(Enum):
    SINGULAR = "singular"
    PLURAL = "plural"

@dataclass
class QueryContext:
    """Filters selected outside the question text (e.g. in a UI)."""
    player_name: Optional[str] = None
    team: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    competition_types: List[str] = field(default_factory=list)
    position: Optional[str] = None

@dataclass
class TimeRange:
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    season: Optional[str] = None
    description: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.start_date or self.end_date or self.season)

@dataclass
class QuestionAnalysis:
    question: str
    intent: QuestionIntent
    extraction: ExtractionResult
    players: List[str] = field(default_factory=list)
    teams: List[str] = field(default_factory=list)
    oppositions: List[str] = field(default_factory=list)
    leagues: List[str] = field(default_factory=list)
    metrics: List[MetricKey] = field(default_factory=list)
    team: Optional[str] = None
    opposition: Optional[str] = None
    time_range: TimeRange = field(default_factory=TimeRange)
    location: Optional[str] = None
    competition_types: List[str] = field(default_factory=list)
    competition: Optional[str] = None
    results: List[str] = field(default_factory=list)
    opponent_own_goals: bool = False
    position: Optional[str] = None
    quantity: ResultQuantity = ResultQuantity.PLURAL
    top_n: Optional[int] = None
    min_appearances: Optional[int] = None
    worst: bool = False
    streak: bool = False
    subject_is_team: bool = False
    self_reference: bool = False
    missing_player_context: bool = False
    unresolved_names: List[str] = field(default_factory=list)

    @property
    def metric(self) -> Optional[MetricKey]:
        return self.metrics[0] if self.metrics else None

    @property
    def player(self) -> Optional[str]:
        return self.players[0] if self.players else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent": self.intent.value,
            "players": list(self.players),
            "teams": list(self.teams),
            "oppositions": list(self.oppositions),
            "leagues": list(self.leagues),
            "metrics": [m.value for m in self.metrics],
            "team": self.team,
            "opposition": self.opposition,
            "time_range": {
                "start_date": self.time_range.start_date,
                "end_date": self.time_range.end_date,
                "season": self.time_range.season,
                "description": self.time_range.description,
            },
            "location": self.location,
            "competition_types": list(self.competition_types),
            "competition": self.competition,
            "results": list(self.results),
            "opponent_own_goals": self.opponent_own_goals,
            "position": self.position,
            "quantity": self.quantity.value,
            "top_n": self.top_n,
            "min_appearances": self.min_appearances,
            "worst": self.worst,
            "streak": self.streak,
            "subject_is_team": self.subject_is_team,
            "unresolved_names": list(self.unresolved_names),
        }


_NUMBER_WORDS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
}
_NUMBER = r"(\d+|" + "|".join(_NUMBER_WORDS) + r")"
_GAME_NOUN = r"(?:games|matches|appearances|apps)"

_TOP_N = re.compile(rf"\btop\s+{_NUMBER}\b", re.IGNORECASE)
_MIN_STRICT = re.compile(rf"\b(?:more\s+than|over)\s+{_NUMBER}\s+{_GAME_NOUN}\b", re.IGNORECASE)
_MIN_INCLUSIVE = re.compile(
    rf"\b(?:at\s+least|a\s+minimum\s+of|minimum\s+of|min(?:imum)?)\s+{_NUMBER}\s+{_GAME_NOUN}\b"
    rf"|\b{_NUMBER}\s+or\s+more\s+{_GAME_NOUN}\b",
    re.IGNORECASE,
)

_PAIRWISE = re.compile(r"\b(?:with|together|alongside)\b", re.IGNORECASE)
_COUNT_WORDS = re.compile(r"\bhow\s+(?:many|often)\b|\bnumber\s+of\b|\bcount\b", re.IGNORECASE)
_TEAMMATES = re.compile(r"\bplayed\s+(?:with|alongside)\b|\bteam\s*-?\s*mates?\b", re.IGNORECASE)
_MOST_OR_WHO = re.compile(r"\b(?:most|who)\b", re.IGNORECASE)
_OPPOSITION_WORDS = re.compile(r"\b(?:opposition|opponents?|played\s+against|faced)\b", re.IGNORECASE)
_MOST = re.compile(r"\bmost\b", re.IGNORECASE)
_PLAYER_LANGUAGE = re.compile(r"\b(?:players?|who|whose|whom)\b", re.IGNORECASE)
_TEAM_LANGUAGE = re.compile(r"\bteams?\b", re.IGNORECASE)
_WORST = re.compile(r"\b(?:worst|lowest|fewest|poorest)\b|(?<!\bat )\bleast\b", re.IGNORECASE)
_SINGULAR = re.compile(
    r"\bwhich\s+(?:player|team)\s+(?:has|had|is|was|scored|got|made|kept|received)\b"
    r"|\bwho\s+(?:is|was)\s+the\b",
    re.IGNORECASE,
)
_SUPERLATIVE_INDICATORS = {"highest", "lowest", "most", "least", "longest", "shortest"}
_POSITIONS = {"gk", "def", "mid", "fwd"}


def _to_int(text: str) -> int:
    return int(text) if text.isdigit() else _NUMBER_WORDS[text.lower()]


class QuestionAnalyzer:
    """Turn a question into a ``QuestionAnalysis`` with one intent."""

    def __init__(self, registry: Optional[VocabularyRegistry] = None,
                 name_resolver: Optional[EntityNameResolver] = None,
                 today: Optional[date] = None):
        self.logger = logging.getLogger(__name__)
        self.registry = registry or get_vocabulary_registry()
        self.extractor = EntityExtractor(self.registry, today=today)
        self.alias_resolver = AliasResolver(self.registry)
        self.name_resolver = name_resolver or EntityNameResolver()

    def analyze(self, question: str, context: Optional[QueryContext] = None) -> QuestionAnalysis:
        context = context or QueryContext()
        extraction = self.extractor.extract(question)
        analysis = QuestionAnalysis(question=question, intent=QuestionIntent.NO_CONTEXT,
                                    extraction=extraction)

        self._resolve_entities(analysis, context)
        analysis.metrics = self._resolve_metrics(question, extraction)
        self._apply_filters(analysis, context)
        self._apply_ranking_hints(analysis)
        analysis.intent = self._classify(analysis)

        self.logger.info(
            f"🧭 Intent {analysis.intent.value}: players={analysis.players} team={analysis.team} "
            f"metrics={[m.value for m in analysis.metrics]} unresolved={analysis.unresolved_names}"
        )
        return analysis

    # ---------- Entities ----------

    def _resolve_entities(self, analysis: QuestionAnalysis, context: QueryContext) -> None:
        extraction = analysis.extraction
        for entity in extraction.entities:
            if entity.category is EntityCategory.PLAYER:
                if entity.value == SELF_REFERENCE:
                    analysis.self_reference = True
                    if context.player_name:
                        self._add_unique(analysis.players, context.player_name)
                    else:
                        analysis.missing_player_context = True
                    continue
                resolved = self.name_resolver.best_match(entity.value, "player")
                if resolved is None:
                    self._add_unique(analysis.unresolved_names, entity.value)
                else:
                    self._add_unique(analysis.players, resolved)
            elif entity.category is EntityCategory.TEAM:
                self._add_unique(analysis.teams, entity.value)
            elif entity.category is EntityCategory.OPPOSITION:
                resolved = self.name_resolver.best_match(entity.value, "opposition") or entity.value
                self._add_unique(analysis.oppositions, resolved)
            elif entity.category is EntityCategory.LEAGUE:
                resolved = self.name_resolver.best_match(entity.value, "league") or entity.value
                self._add_unique(analysis.leagues, resolved)

    @staticmethod
    def _add_unique(values: List[str], value: str) -> None:
        if value not in values:
            values.append(value)

    # ---------- Metrics ----------

    def _resolve_metrics(self, question: str, extraction: ExtractionResult) -> List[MetricKey]:
        player_words = extraction.player_words()
        metrics: List[MetricKey] = []
        for token in extraction.stat_types:
            key = self.alias_resolver.resolve_metric(token.original_text, question, player_words)
            if key is not None and key not in metrics:
                metrics.append(key)

        if extraction.goal_involvements:
            metrics = [MetricKey.GI] + [m for m in metrics if m not in (MetricKey.G, MetricKey.A, MetricKey.GI)]

        # Drop components of derived metrics.
        keys = set(metrics)
        dropped = set()
        for key in keys:
            config = self.registry.metric(key)
            if config.kind is MetricKind.PER_APPEARANCE:
                dropped.update({config.base, MetricKey.APP})
        if MetricKey.PENALTY_RECORD in keys:
            dropped.update({MetricKey.PSC, MetricKey.PM})
        if MetricKey.MPERG in keys:
            dropped.update({MetricKey.MIN, MetricKey.G})
        if MetricKey.MOST_PROLIFIC_SEASON in keys:
            dropped.add(MetricKey.G)
        if MetricKey.SEASON_TOTW in keys:
            dropped.add(MetricKey.TOTW)
        metrics = [m for m in metrics if m not in dropped]

        # Home/away only stand as a metric on their own; otherwise they are a location filter.
        if len(metrics) > 1:
            metrics = [m for m in metrics if m not in (MetricKey.HOME, MetricKey.AWAY)] or metrics
        return metrics

    # ---------- Filters ----------

    def _apply_filters(self, analysis: QuestionAnalysis, context: QueryContext) -> None:
        extraction = analysis.extraction
        question = analysis.question

        if analysis.teams:
            analysis.team = analysis.teams[0]
        elif context.team:
            analysis.team = team_shorthand(context.team) or context.team
        if analysis.oppositions:
            analysis.opposition = analysis.oppositions[0]

        analysis.time_range = self._time_range(extraction, context)

        for location in extraction.locations:
            explicit = len(location.original_text.split()) > 1 or has_explicit_location_phrase(question)
            if location.value == "ground":
                analysis.location = "home"
                break
            if explicit:
                analysis.location = location.value
                break
        if analysis.location is None and analysis.metrics in ([MetricKey.HOME], [MetricKey.AWAY]):
            analysis.location = analysis.metrics[0].value.lower()

        for comp_type in [c.value for c in extraction.competition_types] + list(context.competition_types):
            comp_type = comp_type.lower()
            if comp_type in ("league", "cup", "friendly"):
                self._add_unique(analysis.competition_types, comp_type)
        if extraction.competitions:
            analysis.competition = extraction.competitions[0].value

        for result in extraction.results:
            self._add_unique(analysis.results, result.value)
        analysis.opponent_own_goals = extraction.opponent_own_goals

        if context.position and context.position.lower() in _POSITIONS:
            analysis.position = context.position.upper()

    @staticmethod
    def _time_range(extraction: ExtractionResult, context: QueryContext) -> TimeRange:
        """Intersect every dated time frame with the context date range."""
        starts = [context.start_date] if context.start_date else []
        ends = [context.end_date] if context.end_date else []
        season = None
        descriptions = []
        for frame in extraction.time_frames:
            if frame.type is TimeFrameType.SEASON:
                season = season or frame.season
                descriptions.append(frame.original_text)
                continue
            if frame.start_date:
                starts.append(frame.start_date)
            if frame.end_date:
                ends.append(frame.end_date)
            if frame.start_date or frame.end_date:
                descriptions.append(frame.original_text)
        return TimeRange(
            start_date=max(starts) if starts else None,
            end_date=min(ends) if ends else None,
            season=season,
            description=", ".join(descriptions),
        )

    # ---------- Ranking hints ----------

    def _apply_ranking_hints(self, analysis: QuestionAnalysis) -> None:
        question = analysis.question
        top = _TOP_N.search(question)
        if top:
            analysis.top_n = _to_int(top.group(1))

        strict = _MIN_STRICT.search(question)
        inclusive = _MIN_INCLUSIVE.search(question)
        if strict:
            analysis.min_appearances = _to_int(strict.group(1))
        elif inclusive:
            number = next(g for g in inclusive.groups() if g)
            analysis.min_appearances = max(_to_int(number) - 1, 0)

        analysis.worst = bool(_WORST.search(question)) and not _MOST.search(question)
        analysis.streak = any(frame.type is TimeFrameType.CONSECUTIVE for frame in analysis.extraction.time_frames)
        analysis.subject_is_team = not _PLAYER_LANGUAGE.search(question) and bool(_TEAM_LANGUAGE.search(question))

        if _SINGULAR.search(question) and not _MOST.search(question):
            analysis.quantity = ResultQuantity.SINGULAR

    # ---------- Intent ----------

    def _classify(self, analysis: QuestionAnalysis) -> QuestionIntent:
        question = analysis.question
        named_players = len(analysis.players) + len(analysis.unresolved_names) \
            + (1 if analysis.missing_player_context else 0)
        keys = set(analysis.metrics)

        if named_players >= 2 and _PAIRWISE.search(question) and _COUNT_WORDS.search(question):
            return QuestionIntent.PAIRWISE_RELATIONSHIP

        if named_players == 1 and (_TEAMMATES.search(question) or MetricKey.CO_PLAYERS in keys) \
                and _MOST_OR_WHO.search(question):
            return QuestionIntent.RELATIONSHIP

        if _OPPOSITION_WORDS.search(question) and _MOST.search(question):
            return QuestionIntent.OPPOSITION_AGGREGATE

        award = [k for k in analysis.metrics if self.registry.metric(k).kind is MetricKind.AWARD]
        if award and named_players >= 1:
            return QuestionIntent.HISTORICAL_AWARD

        if named_players == 0 and self._is_ranking(analysis):
            return QuestionIntent.RANKING

        if named_players >= 1 or analysis.team:
            return QuestionIntent.SPECIFIC_ENTITY

        return QuestionIntent.NO_CONTEXT

    def _is_ranking(self, analysis: QuestionAnalysis) -> bool:
        question = analysis.question
        indicators = {i.value for i in analysis.extraction.stat_indicators}
        ranked = bool(indicators & _SUPERLATIVE_INDICATORS) \
            or analysis.top_n is not None \
            or analysis.min_appearances is not None \
            or MetricKey.PENALTY_RECORD in analysis.metrics
        subject_language = _PLAYER_LANGUAGE.search(question) or _TEAM_LANGUAGE.search(question)
        return ranked and bool(subject_language)
