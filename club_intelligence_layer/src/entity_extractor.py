from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from enum import Enum
from datetime import date, timedelta
import re
import logging

from ..config.club_vocabulary import (
    VocabularyRegistry,
    get_vocabulary_registry,
    ORDINAL_WORDS,
    STOP_WORDS,
    VERB_BOUNDARY_WORDS,
    NAME_PARTICLES,
    LEAGUE_KEYWORDS,
    COMPETITION_KEYWORDS,
    team_shorthand,
)
from .phrase_matcher import PhraseMatcher, Span, overlaps

SELF_REFERENCE = "I"

class EntityCategory(Enum):
    PLAYER = "player"
    TEAM = "team"
    OPPOSITION = "opposition"
    LEAGUE = "league"

class TimeFrameType(Enum):
    DATE = "date"
    SEASON = "season"
    RANGE = "range"
    SINCE = "since"
    BEFORE = "before"
    ORDINAL_WEEKEND = "ordinal_weekend"
    PERIOD = "period"
    CONSECUTIVE = "consecutive"

@dataclass
class EntityMatch:
    value: str
    category: EntityCategory
    original_text: str
    position: int

    @property
    def span(self) -> Span:
        return (self.position, self.position + len(self.original_text))

@dataclass
class TokenMatch:
    value: str
    original_text: str
    position: int

    @property
    def span(self) -> Span:
        return (self.position, self.position + len(self.original_text))

@dataclass
class TimeFrameMatch:
    value: str
    type: TimeFrameType
    original_text: str
    position: int
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    season: Optional[str] = None

@dataclass
class ExtractionResult:
    entities: List[EntityMatch] = field(default_factory=list)
    stat_types: List[TokenMatch] = field(default_factory=list)
    stat_indicators: List[TokenMatch] = field(default_factory=list)
    question_types: List[TokenMatch] = field(default_factory=list)
    negative_clauses: List[TokenMatch] = field(default_factory=list)
    locations: List[TokenMatch] = field(default_factory=list)
    time_frames: List[TimeFrameMatch] = field(default_factory=list)
    competition_types: List[TokenMatch] = field(default_factory=list)
    competitions: List[TokenMatch] = field(default_factory=list)
    results: List[TokenMatch] = field(default_factory=list)
    opponent_own_goals: bool = False
    goal_involvements: bool = False

    def of_category(self, category: EntityCategory) -> List[EntityMatch]:
        return [e for e in self.entities if e.category is category]

    @property
    def players(self) -> List[EntityMatch]:
        return self.of_category(EntityCategory.PLAYER)

    @property
    def teams(self) -> List[EntityMatch]:
        return self.of_category(EntityCategory.TEAM)

    @property
    def has_self_reference(self) -> bool:
        return any(e.value == SELF_REFERENCE for e in self.players)

    def player_words(self) -> List[str]:
        """Lower-cased words of every named player, for metric suppression."""
        words: List[str] = []
        for player in self.players:
            if player.value != SELF_REFERENCE:
                words.extend(w.lower() for w in player.value.split())
        return words


_SELF_REFERENCE_REGEX = re.compile(r"\b(?:i[’']ve|i[’']m|myself|my|me|i)\b", re.IGNORECASE)

_ORDINAL_WORD_ALT = "|".join(ORDINAL_WORDS)
_TEAM_CODE_PATTERNS = [
    re.compile(r"\b([1-8])s\b", re.IGNORECASE),
    re.compile(r"\b([1-8](?:st|nd|rd|th))\s+(?:team|xi)\b", re.IGNORECASE),
    re.compile(rf"\b((?:{_ORDINAL_WORD_ALT}))\s+(?:team|xi)\b", re.IGNORECASE),
    re.compile(
        rf"\bfor\s+the\s+([1-8](?:st|nd|rd|th)|(?:{_ORDINAL_WORD_ALT}))\b"
        r"(?!\s+(?:week|weekend|game|games|season|team|xi)\b)",
        re.IGNORECASE,
    ),
]

_WORD_TOKEN = re.compile(r"[^\W_][\w’'\-]*")
_POSSESSIVE = re.compile(r"(?:[’']s|[’'])$", re.IGNORECASE)
_OPPOSITION_CUE = re.compile(
    r"(?:\bagainst|\bvs\.?|\bversus|\bv|\bfaced|\bfacing|\bbeat|\bbeating|\blost\s+to|\bdrew\s+with"
    r"|\bplay(?:ed|ing)?)\s+(?:the\s+)?$",
    re.IGNORECASE,
)
_LEAGUE_TAIL_WORDS = {"one", "two", "three", "four", "five", "six", "a", "b"}

_SEASON = r"((?:19|20)\d{2})\s*[/\-]\s*(\d{4}|\d{2})"
_DATE = r"(\d{1,2})/(\d{1,2})/(\d{4}|\d{2})"
_YEAR = r"((?:19|20)\d{2})"

_BEFORE_SEASON = re.compile(rf"\bbefore\s+(?:the\s+)?{_SEASON}(?:\s+season)?", re.IGNORECASE)
_BEFORE_YEAR = re.compile(rf"\bbefore\s+{_YEAR}\b(?!\s*[/\-]\s*\d)", re.IGNORECASE)
_SINCE_SEASON = re.compile(rf"\bsince\s+(?:the\s+)?{_SEASON}(?:\s+season)?", re.IGNORECASE)
_SINCE_YEAR = re.compile(rf"\bsince\s+{_YEAR}\b(?!\s*[/\-]\s*\d)", re.IGNORECASE)
_BETWEEN_DATES = re.compile(rf"\bbetween\s+{_DATE}\s+and\s+{_DATE}", re.IGNORECASE)
_BETWEEN_YEARS = re.compile(rf"\bbetween\s+{_YEAR}\s+and\s+{_YEAR}\b", re.IGNORECASE)
_ORDINAL_WEEKEND = re.compile(
    rf"\b(?:the\s+)?(\d{{1,2}}(?:st|nd|rd|th)?|{_ORDINAL_WORD_ALT})\s+weekend\s+(?:of|in)\s+{_YEAR}\b",
    re.IGNORECASE,
)
_RELATIVE_SEASON = re.compile(r"\b(this|current|last|previous)\s+season\b", re.IGNORECASE)
_EXPLICIT_SEASON = re.compile(rf"\b{_SEASON}\b", re.IGNORECASE)
_SINGLE_DATE = re.compile(rf"\b{_DATE}\b")
_IN_YEAR = re.compile(rf"\b(?:in|during)\s+{_YEAR}\b(?!\s*[/\-]\s*\d)", re.IGNORECASE)

_OPPONENT_OWN_GOALS = re.compile(
    r"\bown\s+goals?\b.*\b(?:opposition|opponents?)\b|\b(?:opposition|opponents?)(?:[’']s?)?\s+own\s+goals?\b",
    re.IGNORECASE,
)
_GOAL_INVOLVEMENTS = re.compile(r"\bgoal\s+involvements?\b|\bgoals\s+and\s+assists\b", re.IGNORECASE)


def season_label(start_year: int) -> str:
    """Season label in the stored form, e.g. 2019 -> "2019/20"."""
    return f"{start_year}/{(start_year + 1) % 100:02d}"


def season_start_year(today: date) -> int:
    """Seasons start on 1 September."""
    return today.year if today.month >= 9 else today.year - 1


def parse_uk_date(day: str, month: str, year: str) -> Optional[str]:
    """DD/MM/YYYY (or DD/MM/YY) to ISO YYYY-MM-DD; None for impossible dates."""
    full_year = int(year) if len(year) == 4 else 2000 + int(year)
    try:
        return date(full_year, int(month), int(day)).isoformat()
    except ValueError:
        return None


def weekend_dates(year: int, ordinal: int) -> Tuple[str, str]:
    """Saturday and Sunday of the n-th weekend of a year."""
    first_day = date(year, 1, 1)
    first_saturday = first_day + timedelta(days=(5 - first_day.weekday()) % 7)
    saturday = first_saturday + timedelta(days=7 * (ordinal - 1))
    return saturday.isoformat(), (saturday + timedelta(days=1)).isoformat()


def _season_start(match: re.Match, year_group: int = 1) -> int:
    return int(match.group(year_group))


class EntityExtractor:
    """Tag every entity, stat and qualifier in a question with its original span."""

    def __init__(self, registry: Optional[VocabularyRegistry] = None, today: Optional[date] = None):
        self.logger = logging.getLogger(__name__)
        self.registry = registry or get_vocabulary_registry()
        self._today = today

        self.metric_matcher = PhraseMatcher(self.registry.metric_phrases())
        self.table_matchers = {
            name: PhraseMatcher(self.registry.table(name))
            for name in ("stat_indicators", "question_types", "negative_clauses", "locations",
                         "time_frames", "competition_types", "results", "leagues")
        }
        self.logger.debug(
            f"Compiled matchers: {self.metric_matcher.phrase_count} metric phrases, "
            f"{sum(m.phrase_count for m in self.table_matchers.values())} table phrases"
        )

    @property
    def today(self) -> date:
        return self._today or date.today()

    def extract(self, question: str) -> ExtractionResult:
        """Extract every match from a question. Never raises for odd input."""
        result = ExtractionResult()
        if not question or not question.strip():
            return result

        self_reference = self._extract_self_reference(question)
        if self_reference:
            result.entities.append(self_reference)

        teams = self._extract_team_codes(question)
        result.entities.extend(teams)
        team_spans = [t.span for t in teams]

        allow_players = self_reference is not None or not teams
        reserved = team_spans + ([self_reference.span] if self_reference else [])
        entities, competitions = self._extract_capitalized_runs(question, reserved, allow_players)
        result.entities.extend(entities)
        result.competitions.extend(competitions)

        claimed = [e.span for e in result.entities] + [c.span for c in result.competitions]
        for match in self.table_matchers["leagues"].find_all(question, claimed):
            result.entities.append(EntityMatch(match.canonical, EntityCategory.LEAGUE, match.text, match.start))

        entity_spans = [e.span for e in result.entities] + [c.span for c in result.competitions]
        result.stat_types = self._scan(self.metric_matcher, question, entity_spans)

        result.stat_indicators = self._scan(self.table_matchers["stat_indicators"], question, entity_spans)
        result.question_types = self._scan(self.table_matchers["question_types"], question, entity_spans)
        result.negative_clauses = self._scan(self.table_matchers["negative_clauses"], question, entity_spans)
        result.locations = self._scan(self.table_matchers["locations"], question, entity_spans)
        result.competition_types = self._scan(self.table_matchers["competition_types"], question, entity_spans)
        result.results = self._scan(self.table_matchers["results"], question, entity_spans)

        result.time_frames = self._extract_time_frames(question, entity_spans)

        result.opponent_own_goals = bool(_OPPONENT_OWN_GOALS.search(question))
        result.goal_involvements = bool(_GOAL_INVOLVEMENTS.search(question))

        result.entities.sort(key=lambda e: e.position)
        self.logger.info(
            f"🔎 Extracted {len(result.entities)} entities "
            f"{[(e.value, e.category.value) for e in result.entities]}, "
            f"stats {[s.value for s in result.stat_types]}"
        )
        return result

    # ---------- Entities ----------

    def _extract_self_reference(self, question: str) -> Optional[EntityMatch]:
        match = _SELF_REFERENCE_REGEX.search(question)
        if not match:
            return None
        return EntityMatch(SELF_REFERENCE, EntityCategory.PLAYER, match.group(0), match.start())

    def _extract_team_codes(self, question: str) -> List[EntityMatch]:
        teams: List[EntityMatch] = []
        taken: List[Span] = []
        for pattern in _TEAM_CODE_PATTERNS:
            for match in pattern.finditer(question):
                span = match.span(0)
                if overlaps(span, taken):
                    continue
                shorthand = team_shorthand(match.group(1))
                if shorthand is None:
                    continue
                taken.append(span)
                teams.append(EntityMatch(shorthand, EntityCategory.TEAM, match.group(0), span[0]))
        teams.sort(key=lambda t: t.position)
        return teams

    def _is_name_token(self, word: str) -> bool:
        bare = _POSSESSIVE.sub("", word)
        return bool(bare) and bare[0].isupper() and bare.lower().replace("’", "'") not in STOP_WORDS

    def _extract_capitalized_runs(self, question: str, reserved: List[Span],
                                  allow_players: bool) -> Tuple[List[EntityMatch], List[TokenMatch]]:
        tokens = [m for m in _WORD_TOKEN.finditer(question) if not overlaps(m.span(), reserved)]
        runs: List[List[re.Match]] = []
        current: List[re.Match] = []
        index = 0
        while index < len(tokens):
            token = tokens[index]
            word = token.group(0)
            if self._is_name_token(word) and word.lower() not in VERB_BOUNDARY_WORDS:
                if current and self._joins(question, current[-1], token):
                    current.append(token)
                else:
                    if current:
                        runs.append(current)
                    current = [token]
                index += 1
                continue
            # A single lower-case particle may sit inside a name ("Kevin de Bruyne").
            if (current and word.lower() in NAME_PARTICLES and index + 1 < len(tokens)
                    and self._joins(question, current[-1], token)
                    and self._joins(question, token, tokens[index + 1])
                    and self._is_name_token(tokens[index + 1].group(0))):
                current.append(token)
                index += 1
                continue
            if current:
                runs.append(current)
                current = []
            index += 1
        if current:
            runs.append(current)

        entities: List[EntityMatch] = []
        competitions: List[TokenMatch] = []
        for run in runs:
            run = self._widen_league(question, run, tokens)
            words = [_POSSESSIVE.sub("", t.group(0)) for t in run]
            lowered = [w.lower() for w in words]
            if all(w in STOP_WORDS or w in self.registry.vocabulary_words for w in lowered):
                self.logger.debug(f"   Dropped vocabulary-only run: {words}")
                continue

            start = run[0].start()
            end = run[-1].start() + len(words[-1])
            original = question[start:end]
            value = " ".join(words)

            if any(w in LEAGUE_KEYWORDS for w in lowered):
                entities.append(EntityMatch(value, EntityCategory.LEAGUE, original, start))
            elif len(run) > 1 and lowered[-1] in COMPETITION_KEYWORDS:
                competitions.append(TokenMatch(value, original, start))
            elif _OPPOSITION_CUE.search(question[:start]):
                entities.append(EntityMatch(value, EntityCategory.OPPOSITION, original, start))
            elif allow_players:
                entities.append(EntityMatch(value, EntityCategory.PLAYER, original, start))
            else:
                entities.append(EntityMatch(value, EntityCategory.OPPOSITION, original, start))
        return entities, competitions

    @staticmethod
    def _joins(question: str, left: re.Match, right: re.Match) -> bool:
        gap = question[left.end():right.start()]
        return gap != "" and gap.isspace()

    def _widen_league(self, question: str, run: List[re.Match], tokens: List[re.Match]) -> List[re.Match]:
        """Extend a league run over a trailing division number or letter ("Division 2")."""
        if not any(_POSSESSIVE.sub("", t.group(0)).lower() in LEAGUE_KEYWORDS for t in run):
            return run
        widened = list(run)
        position = tokens.index(run[-1]) + 1
        while position < len(tokens) and self._joins(question, widened[-1], tokens[position]):
            word = tokens[position].group(0)
            if word.isdigit() or word.lower() in _LEAGUE_TAIL_WORDS:
                widened.append(tokens[position])
                position += 1
            else:
                break
        return widened

    # ---------- Vocabulary scans ----------

    @staticmethod
    def _scan(matcher: PhraseMatcher, question: str, excluded: List[Span]) -> List[TokenMatch]:
        return [TokenMatch(m.canonical, m.text, m.start) for m in matcher.find_all(question, excluded)]

    # ---------- Time frames ----------

    def _extract_time_frames(self, question: str, excluded: List[Span]) -> List[TimeFrameMatch]:
        frames: List[TimeFrameMatch] = []
        consumed: List[Span] = list(excluded)

        def add(match: re.Match, frame_type: TimeFrameType, start_date=None, end_date=None, season=None):
            consumed.append(match.span(0))
            frames.append(TimeFrameMatch(
                value=re.sub(r"\s+", " ", match.group(0).strip().lower()),
                type=frame_type,
                original_text=match.group(0),
                position=match.start(),
                start_date=start_date,
                end_date=end_date,
                season=season,
            ))

        def free(pattern: re.Pattern):
            for match in pattern.finditer(question):
                if not overlaps(match.span(0), consumed):
                    yield match

        # "before <season>" first so the season inside it is not read as a season filter.
        for match in free(_BEFORE_SEASON):
            year = _season_start(match)
            add(match, TimeFrameType.BEFORE, end_date=f"{year}-08-31")
        for match in free(_BEFORE_YEAR):
            add(match, TimeFrameType.BEFORE, end_date=f"{int(match.group(1)) - 1}-12-31")

        for match in free(_SINCE_SEASON):
            year = _season_start(match)
            add(match, TimeFrameType.SINCE, start_date=f"{year}-09-01")
        for match in free(_SINCE_YEAR):
            add(match, TimeFrameType.SINCE, start_date=f"{int(match.group(1)) + 1}-01-01")

        for match in free(_BETWEEN_DATES):
            start = parse_uk_date(*match.group(1, 2, 3))
            end = parse_uk_date(*match.group(4, 5, 6))
            if start and end:
                add(match, TimeFrameType.RANGE, start_date=start, end_date=end)
        for match in free(_BETWEEN_YEARS):
            first, last = sorted((int(match.group(1)), int(match.group(2))))
            add(match, TimeFrameType.RANGE, start_date=f"{first}-01-01", end_date=f"{last}-12-31")

        for match in free(_ORDINAL_WEEKEND):
            ordinal_text = match.group(1).lower()
            digits = re.match(r"\d+", ordinal_text)
            ordinal = int(digits.group(0)) if digits else ORDINAL_WORDS[ordinal_text]
            if 1 <= ordinal <= 53:
                start, end = weekend_dates(int(match.group(2)), ordinal)
                add(match, TimeFrameType.ORDINAL_WEEKEND, start_date=start, end_date=end)

        for match in free(_RELATIVE_SEASON):
            year = season_start_year(self.today)
            if match.group(1).lower() in ("last", "previous"):
                year -= 1
            add(match, TimeFrameType.SEASON, f"{year}-09-01", f"{year + 1}-08-31", season_label(year))

        for match in free(_EXPLICIT_SEASON):
            year = _season_start(match)
            add(match, TimeFrameType.SEASON, f"{year}-09-01", f"{year + 1}-08-31", season_label(year))

        for match in free(_SINGLE_DATE):
            iso = parse_uk_date(*match.group(1, 2, 3))
            if iso:
                add(match, TimeFrameType.DATE, start_date=iso, end_date=iso)

        for match in free(_IN_YEAR):
            year = int(match.group(1))
            add(match, TimeFrameType.PERIOD, start_date=f"{year}-01-01", end_date=f"{year}-12-31")

        for match in self.table_matchers["time_frames"].find_all(question, consumed):
            frame_type = TimeFrameType.CONSECUTIVE if match.canonical == "consecutive" else TimeFrameType.PERIOD
            frames.append(TimeFrameMatch(match.canonical, frame_type, match.text, match.start))

        frames.sort(key=lambda f: f.position)
        return frames
