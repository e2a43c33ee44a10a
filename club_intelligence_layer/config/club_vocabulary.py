"""Club Vocabulary Definitions and Registry.

This module holds the canonical vocabulary of the club intelligence layer: the
closed set of metric keys with their display forms and aliases, and the
pseudonym tables used to recognise indicators, question types, negative
clauses, locations, time frames, competition types, results, leagues and
team shorthands in free-text questions.

The registry is built once per process (see ``get_vocabulary_registry``) and is
read-only afterwards.
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


class VocabularyError(Exception):
    """Raised when a vocabulary table is malformed at start-up."""

    pass


class MetricKey(Enum):
    """Canonical metric identifiers."""
    APP = "APP"
    MIN = "MIN"
    MOM = "MOM"
    G = "G"
    OPEN_PLAY_GOALS = "OPENPLAYGOALS"
    A = "A"
    Y = "Y"
    R = "R"
    SAVES = "SAVES"
    OG = "OG"
    C = "C"
    CLS = "CLS"
    PSC = "PSC"
    PM = "PM"
    PCO = "PCO"
    PSV = "PSV"
    FTP = "FTP"
    GI = "GI"
    PENALTY_RECORD = "PENALTY_RECORD"
    GPERAPP = "GPERAPP"
    APERAPP = "APERAPP"
    CPERAPP = "CPERAPP"
    MOMPERAPP = "MOMPERAPP"
    YPERAPP = "YPERAPP"
    RPERAPP = "RPERAPP"
    SAVESPERAPP = "SAVESPERAPP"
    FTPPERAPP = "FTPPERAPP"
    MINPERAPP = "MINPERAPP"
    MPERG = "MPERG"
    HOME = "HOME"
    AWAY = "AWAY"
    TOTW = "TOTW"
    SEASON_TOTW = "SEASON_TOTW"
    POTM = "POTM"
    CAPTAIN = "CAPTAIN"
    AWARDS = "AWARDS"
    CO_PLAYERS = "CO_PLAYERS"
    OPPONENTS = "OPPONENTS"
    MOST_PROLIFIC_SEASON = "MOST_PROLIFIC_SEASON"
    SEASON_ANALYSIS = "SEASON_ANALYSIS"


class MetricKind(Enum):
    """How a metric is computed from match records."""
    COUNT = "count"
    SUM = "sum"
    BOOLEAN_COUNT = "boolean_count"
    CONVERSION_RATE = "conversion_rate"
    PER_APPEARANCE = "per_appearance"
    RATIO = "ratio"
    AWARD = "award"
    RELATIONSHIP = "relationship"
    SPECIAL = "special"


@dataclass(frozen=True)
class MetricConfig:
    """Canonical registry entry for one metric."""
    key: MetricKey
    display_name: str
    singular: str
    plural: str
    aliases: Tuple[str, ...]
    description: str
    kind: MetricKind = MetricKind.SUM
    base: Optional[MetricKey] = None

    def display_forms(self) -> List[str]:
        """Display name plus singular and plural forms, de-duplicated."""
        forms: List[str] = []
        for form in (self.display_name, self.singular, self.plural):
            if form and form not in forms:
                forms.append(form)
        return forms

    def scan_phrases(self) -> List[str]:
        """Every phrase that may match this metric inside question text."""
        phrases: List[str] = []
        for phrase in [*self.display_forms(), *self.aliases]:
            lowered = phrase.lower().strip()
            if lowered and lowered not in phrases:
                phrases.append(lowered)
        return phrases

    def display_for(self, value: float) -> str:
        """Singular form for a value of exactly one, plural otherwise."""
        return self.singular if value == 1 else self.plural


METRIC_CONFIGS: List[MetricConfig] = [
    MetricConfig(
        MetricKey.APP, "appearances", "appearance", "appearances",
        ("apps", "app", "games played", "matches played", "games", "matches", "caps"),
        "Number of games played", MetricKind.COUNT,
    ),
    MetricConfig(
        MetricKey.MIN, "minutes", "minute played", "minutes played",
        ("minute", "mins", "time played", "playing time", "minutes of football"),
        "Total minutes played",
    ),
    MetricConfig(
        MetricKey.MOM, "man of the match", "man of the match award", "man of the match awards",
        ("mom", "moms", "motm", "man of match", "player of the match", "star man"),
        "Man of the match awards", MetricKind.BOOLEAN_COUNT,
    ),
    MetricConfig(
        MetricKey.G, "goals", "goal", "goals",
        ("goals scored", "scored", "scoring", "scorer", "top scorer", "goalscorer",
         "strikes", "netted", "finishes"),
        "Goals scored, including penalties",
    ),
    MetricConfig(
        MetricKey.OPEN_PLAY_GOALS, "open play goals", "open play goal", "open play goals",
        ("goals from open play", "goals in open play", "scored from open play",
         "scored in open play", "non-penalty goals", "non penalty goals"),
        "Goals scored from open play",
    ),
    MetricConfig(
        MetricKey.A, "assists", "assist", "assists",
        ("assists made", "assists provided", "assisting", "assisted", "set up", "setups"),
        "Assists provided",
    ),
    MetricConfig(
        MetricKey.Y, "yellow cards", "yellow card", "yellow cards",
        ("yellows", "yellow", "bookings", "booking", "booked", "cautions", "caution"),
        "Yellow cards received",
    ),
    MetricConfig(
        MetricKey.R, "red cards", "red card", "red cards",
        ("reds", "red", "dismissals", "dismissal", "sendings off", "sending off", "sent off"),
        "Red cards received",
    ),
    MetricConfig(
        MetricKey.SAVES, "saves", "save", "saves",
        ("saves made", "goalkeeper saves", "saved"),
        "Saves made (goalkeeper)",
    ),
    MetricConfig(
        MetricKey.OG, "own goals", "own goal", "own goals",
        ("own goals scored", "own goal scored", "og", "ogs"),
        "Own goals scored",
    ),
    MetricConfig(
        MetricKey.C, "goals conceded", "goal conceded", "goals conceded",
        ("conceded", "conceded goals", "goals against", "conceding", "let in"),
        "Goals conceded",
    ),
    MetricConfig(
        MetricKey.CLS, "clean sheets", "clean sheet", "clean sheets",
        ("clean sheets kept", "shutouts", "shutout"),
        "Clean sheets kept",
    ),
    MetricConfig(
        MetricKey.PSC, "penalties scored", "penalty scored", "penalties scored",
        ("penalty goals", "penalty goal", "pens scored", "pen scored",
         "penalties have scored", "penalties has scored"),
        "Penalties successfully converted",
    ),
    MetricConfig(
        MetricKey.PM, "penalties missed", "penalty missed", "penalties missed",
        ("missed penalties", "missed penalty", "pens missed", "pen missed",
         "penalties have missed", "penalties has missed"),
        "Penalties missed",
    ),
    MetricConfig(
        MetricKey.PCO, "penalties conceded", "penalty conceded", "penalties conceded",
        ("conceded penalties", "pens conceded", "gave away penalties", "gave away a penalty"),
        "Penalties conceded to the opposition",
    ),
    MetricConfig(
        MetricKey.PSV, "penalties saved", "penalty saved", "penalties saved",
        ("saved penalties", "pens saved", "pen saved", "penalty saves"),
        "Penalties saved (goalkeeper)",
    ),
    MetricConfig(
        MetricKey.FTP, "fantasy points", "fantasy point", "fantasy points",
        ("fantasy score", "ftp", "fp", "fantasy football points", "points"),
        "Fantasy points earned",
    ),
    MetricConfig(
        MetricKey.GI, "goal involvements", "goal involvement", "goal involvements",
        ("goals and assists", "goal contributions", "contributions"),
        "Goals plus assists",
    ),
    MetricConfig(
        MetricKey.PENALTY_RECORD, "penalty record", "penalty record", "penalty records",
        ("penalty conversion rate", "penalty conversion", "pen conversion",
         "spot kick record", "conversion rate"),
        "Penalties scored as a share of penalties taken", MetricKind.CONVERSION_RATE,
    ),
    MetricConfig(
        MetricKey.GPERAPP, "goals per appearance", "goal per appearance", "goals per appearance",
        ("goals per app", "goals per game", "goal per game", "goals per match",
         "goal-per-game", "goals on average", "average goals", "goals a game", "goal ratio"),
        "Goals scored per appearance", MetricKind.PER_APPEARANCE, MetricKey.G,
    ),
    MetricConfig(
        MetricKey.APERAPP, "assists per appearance", "assist per appearance", "assists per appearance",
        ("assists per game", "assists per app", "assists per match", "average assists"),
        "Assists per appearance", MetricKind.PER_APPEARANCE, MetricKey.A,
    ),
    MetricConfig(
        MetricKey.CPERAPP, "conceded per appearance", "conceded per appearance", "conceded per appearance",
        ("conceded per game", "conceded per app", "conceded per match",
         "goals conceded per game", "average conceded"),
        "Goals conceded per appearance", MetricKind.PER_APPEARANCE, MetricKey.C,
    ),
    MetricConfig(
        MetricKey.MOMPERAPP, "man of the match awards per appearance",
        "man of the match award per appearance", "man of the match awards per appearance",
        ("mom per game", "moms per game", "man of the match per game"),
        "Man of the match awards per appearance", MetricKind.PER_APPEARANCE, MetricKey.MOM,
    ),
    MetricConfig(
        MetricKey.YPERAPP, "yellow cards per appearance", "yellow card per appearance",
        "yellow cards per appearance",
        ("yellows per game", "yellow cards per game", "bookings per game"),
        "Yellow cards per appearance", MetricKind.PER_APPEARANCE, MetricKey.Y,
    ),
    MetricConfig(
        MetricKey.RPERAPP, "red cards per appearance", "red card per appearance", "red cards per appearance",
        ("reds per game", "red cards per game"),
        "Red cards per appearance", MetricKind.PER_APPEARANCE, MetricKey.R,
    ),
    MetricConfig(
        MetricKey.SAVESPERAPP, "saves per appearance", "save per appearance", "saves per appearance",
        ("saves per game", "saves per match"),
        "Saves per appearance", MetricKind.PER_APPEARANCE, MetricKey.SAVES,
    ),
    MetricConfig(
        MetricKey.FTPPERAPP, "fantasy points per appearance", "fantasy point per appearance",
        "fantasy points per appearance",
        ("fantasy points per game", "points per game"),
        "Fantasy points per appearance", MetricKind.PER_APPEARANCE, MetricKey.FTP,
    ),
    MetricConfig(
        MetricKey.MINPERAPP, "minutes per appearance", "minute per appearance", "minutes per appearance",
        ("minutes per game", "minutes per match", "average minutes"),
        "Minutes played per appearance", MetricKind.PER_APPEARANCE, MetricKey.MIN,
    ),
    MetricConfig(
        MetricKey.MPERG, "minutes per goal", "minute per goal", "minutes per goal",
        ("mins per goal", "time per goal", "minutes does it take"),
        "Minutes played for every goal scored", MetricKind.RATIO,
    ),
    MetricConfig(
        MetricKey.HOME, "home games", "home game", "home games",
        ("home matches", "home appearances", "games at home", "home"),
        "Appearances in home fixtures", MetricKind.COUNT,
    ),
    MetricConfig(
        MetricKey.AWAY, "away games", "away game", "away games",
        ("away matches", "away appearances", "games away", "away"),
        "Appearances in away fixtures", MetricKind.COUNT,
    ),
    MetricConfig(
        MetricKey.TOTW, "team of the week", "team of the week selection", "team of the week selections",
        ("totw", "weekly totw", "weekly selection", "weekly team"),
        "Weekly team of the week selections", MetricKind.AWARD,
    ),
    MetricConfig(
        MetricKey.SEASON_TOTW, "season team of the week", "season team of the week selection",
        "season team of the week selections",
        ("season totw", "seasonal selection", "team of the season"),
        "Season team of the week selections", MetricKind.AWARD,
    ),
    MetricConfig(
        MetricKey.POTM, "player of the month", "player of the month award", "player of the month awards",
        ("potm", "monthly award"),
        "Player of the month awards", MetricKind.AWARD,
    ),
    MetricConfig(
        MetricKey.CAPTAIN, "captaincy", "captaincy", "captaincies",
        ("captain", "captains", "captained", "captain awards", "captain honours", "skipper"),
        "Seasons as captain", MetricKind.AWARD,
    ),
    MetricConfig(
        MetricKey.AWARDS, "awards", "award", "awards",
        ("prizes", "honours", "honors", "end of season awards"),
        "Club awards won, excluding captaincy", MetricKind.AWARD,
    ),
    MetricConfig(
        MetricKey.CO_PLAYERS, "teammates", "teammate", "teammates",
        ("team mates", "co players", "played with", "played alongside"),
        "Players most often in the same fixture", MetricKind.RELATIONSHIP,
    ),
    MetricConfig(
        MetricKey.OPPONENTS, "opponents", "opponent", "opponents",
        ("played against", "faced", "opposition teams", "oppositions"),
        "Opposition teams faced", MetricKind.RELATIONSHIP,
    ),
    MetricConfig(
        MetricKey.MOST_PROLIFIC_SEASON, "most prolific season", "most prolific season",
        "most prolific seasons",
        ("best season", "highest scoring season", "top scoring season"),
        "Season with the most goals", MetricKind.SPECIAL,
    ),
    MetricConfig(
        MetricKey.SEASON_ANALYSIS, "seasons played", "season played", "seasons played",
        ("seasons", "years played", "seasons played in"),
        "Number of distinct seasons played", MetricKind.SPECIAL,
    ),
]

STAT_INDICATOR_PSEUDONYMS: Dict[str, List[str]] = {
    "highest": ["highest", "maximum", "top", "best", "greatest", "peak", "biggest"],
    "lowest": ["lowest", "minimum", "bottom", "worst", "smallest", "fewest"],
    "most": ["most"],
    "least": ["least"],
    "longest": ["longest"],
    "shortest": ["shortest", "briefest"],
    "average": ["average", "mean", "typical", "on average"],
}

QUESTION_TYPE_PSEUDONYMS: Dict[str, List[str]] = {
    "how": ["how", "how do", "how does", "how can"],
    "how_many": ["how many", "how much", "how often"],
    "where": ["where", "where do", "where does"],
    "where_did": ["where did", "where have", "where has"],
    "what": ["what", "what do", "what does", "what did", "what have", "what has"],
    "whats": ["what's", "what is", "what are", "what was", "what were"],
    "who": ["who", "who do", "who does", "who is", "who was"],
    "who_did": ["who did", "who have", "who has", "who made"],
    "which": ["which", "which do", "which does", "which did", "which have", "which has"],
}

NEGATIVE_CLAUSE_PSEUDONYMS: Dict[str, List[str]] = {
    "not": ["not", "no", "never", "none", "nobody", "nothing"],
    "excluding": ["excluding", "except", "apart from", "other than", "besides"],
    "without": ["without", "lacking", "devoid of"],
}

LOCATION_PSEUDONYMS: Dict[str, List[str]] = {
    "home": ["home", "at home", "home games", "home matches", "home ground", "our ground"],
    "away": ["away", "away from home", "on the road", "away games", "away matches",
             "away ground", "their ground"],
    "ground": ["pixham", "the ground"],
}

TIME_FRAME_PSEUDONYMS: Dict[str, List[str]] = {
    "week": ["week", "weekly", "a week"],
    "month": ["month", "monthly", "a month"],
    "weekend": ["weekend", "a weekend", "weekends"],
    "season": ["season", "a season", "yearly", "annual"],
    "consecutive": ["consecutive", "in a row", "on the bounce"],
    "first_week": ["first week", "opening week", "week one"],
    "second_week": ["second week", "week two"],
}

COMPETITION_TYPE_PSEUDONYMS: Dict[str, List[str]] = {
    "league": ["league", "league games", "league matches", "league fixtures", "in the league"],
    "cup": ["cup", "cup games", "cup matches", "cup ties", "in cups", "cup competitions"],
    "friendly": ["friendly", "friendlies", "friendly games", "friendly matches"],
}

RESULT_PSEUDONYMS: Dict[str, List[str]] = {
    "win": ["wins", "victories", "victory", "games won", "matches won", "won games",
            "in wins", r"(?:games|matches)\s+(?:have|has|did)\s+\w+\s+won"],
    "draw": ["draws", "drawn games", "games drawn", "matches drawn",
             r"(?:games|matches)\s+(?:have|has|did)\s+\w+\s+drawn?"],
    "loss": ["losses", "defeats", "games lost", "matches lost", "lost games", "in defeats",
             r"(?:games|matches)\s+(?:have|has|did)\s+\w+\s+lost"],
}

LEAGUE_PSEUDONYMS: Dict[str, List[str]] = {
    "Premier": ["premier", "premier league", "prem"],
    "Intermediate South": ["intermediate", "intermediate south"],
    "League One": ["league one", "league 1"],
    "League Two": ["league two", "league 2"],
    "Conference": ["conference"],
    "National League": ["national league"],
}

TEAM_NAMES: Dict[str, str] = {
    "1s": "1st XI",
    "2s": "2nd XI",
    "3s": "3rd XI",
    "4s": "4th XI",
    "5s": "5th XI",
    "6s": "6th XI",
    "7s": "7th XI",
    "8s": "8th XI",
}

ORDINAL_WORDS: Dict[str, int] = {
    "first": 1, "second": 2, "third": 3, "fourth": 4,
    "fifth": 5, "sixth": 6, "seventh": 7, "eighth": 8,
    "ninth": 9, "tenth": 10, "eleventh": 11, "twelfth": 12,
}

# Words that never start or extend a proper-noun run.
STOP_WORDS: FrozenSet[str] = frozenset({
    "i", "me", "my", "mine", "myself", "we", "us", "our", "you", "your", "he", "she",
    "him", "her", "his", "they", "them", "their", "it", "its",
    "how", "many", "much", "what", "what's", "whats", "who", "whom", "whose", "which",
    "where", "when", "why", "is", "are", "was", "were", "be", "been", "has", "have",
    "had", "do", "does", "did", "can", "could", "would", "should", "will", "shall",
    "the", "a", "an", "in", "on", "at", "for", "of", "to", "with", "from", "by",
    "and", "or", "but", "if", "than", "then", "since", "before", "after", "between",
    "during", "against", "vs", "versus", "v", "this", "that", "these", "those",
    "show", "tell", "give", "list", "find", "please", "hi", "hello", "thanks",
    "most", "least", "top", "best", "worst", "highest", "lowest", "total", "overall",
    "number", "ever", "all", "time", "career", "player", "players", "team", "teams",
    "club", "season", "seasons", "game", "games", "match", "matches", "week", "weekend",
    "month", "year", "xi", "man", "captain", "opposition", "opponent", "opponents",
    "home", "away", "i've", "i'm", "got", "scored", "compare", "dorkinians", "dorks",
    "january", "february", "march", "april", "may", "june", "july", "august",
    "september", "october", "november", "december",
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
})

# Words that end a name run even when only one word separates two capitalized runs.
VERB_BOUNDARY_WORDS: FrozenSet[str] = frozenset({
    "got", "get", "gets", "scored", "score", "scores", "whilst", "while", "and", "or",
    "with", "has", "have", "had", "did", "does", "made", "make", "played", "play",
    "plays", "kept", "keep", "won", "lost", "drew", "assisted", "received", "for",
    "against", "than", "versus", "vs",
})

# Lower-case particles allowed inside a full name ("Kevin de Bruyne").
NAME_PARTICLES: FrozenSet[str] = frozenset({
    "de", "da", "del", "della", "di", "du", "van", "von", "der", "den", "le", "la", "st",
})

LEAGUE_KEYWORDS: FrozenSet[str] = frozenset({
    "division", "league", "premier", "intermediate", "senior", "junior", "conference",
    "combination", "championship",
})

COMPETITION_KEYWORDS: FrozenSet[str] = frozenset({
    "cup", "trophy", "shield", "vase", "plate", "bowl",
})

TABLE_NAMES = (
    "stat_indicators",
    "question_types",
    "negative_clauses",
    "locations",
    "time_frames",
    "competition_types",
    "results",
    "leagues",
)


def _normalize_form(text: str) -> str:
    return re.sub(r"\s+", " ", text.strip().lower())


class VocabularyRegistry:
    """Process-wide, read-only lookup over every vocabulary table."""

    def __init__(self, metrics: Sequence[MetricConfig], tables: Mapping[str, Mapping[str, Sequence[str]]]):
        self._metrics: Dict[MetricKey, MetricConfig] = {}
        for config in metrics:
            if config.key in self._metrics:
                raise VocabularyError(f"Duplicate metric key: {config.key.value}")
            if not config.aliases or not all(a and a.strip() for a in config.aliases):
                raise VocabularyError(f"Metric {config.key.value} must have non-empty aliases")
            self._metrics[config.key] = config

        self._lookup = self._build_metric_lookup(self._metrics.values())

        self._tables: Dict[str, Dict[str, Tuple[str, ...]]] = {}
        for name in TABLE_NAMES:
            table = tables.get(name, {})
            self._validate_table(name, table)
            self._tables[name] = {canonical: tuple(_normalize_form(p) for p in phrases)
                                  for canonical, phrases in table.items()}

        self._vocabulary_words = self._collect_vocabulary_words()
        logger.info(
            f"📚 Vocabulary registry ready: {len(self._metrics)} metrics, "
            f"{len(self._lookup)} metric forms, {len(self._tables)} pseudonym tables"
        )

    @staticmethod
    def _build_metric_lookup(metrics: Iterable[MetricConfig]) -> Dict[str, MetricKey]:
        lookup: Dict[str, MetricKey] = {}
        for config in metrics:
            forms = [config.key.value, *config.display_forms(), *config.aliases]
            for form in forms:
                normalized = _normalize_form(form)
                existing = lookup.get(normalized)
                if existing is not None and existing is not config.key:
                    raise VocabularyError(
                        f"Alias '{form}' is registered for both {existing.value} and {config.key.value}"
                    )
                lookup[normalized] = config.key
        return lookup

    @staticmethod
    def _validate_table(name: str, table: Mapping[str, Sequence[str]]) -> None:
        seen: Dict[str, str] = {}
        for canonical, phrases in table.items():
            if not phrases:
                raise VocabularyError(f"Table '{name}' entry '{canonical}' has no pseudonyms")
            for phrase in phrases:
                normalized = _normalize_form(phrase)
                if not normalized:
                    raise VocabularyError(f"Table '{name}' entry '{canonical}' has an empty pseudonym")
                owner = seen.get(normalized)
                if owner is not None and owner != canonical:
                    raise VocabularyError(
                        f"Pseudonym '{phrase}' in table '{name}' maps to both '{owner}' and '{canonical}'"
                    )
                seen[normalized] = canonical

    def _collect_vocabulary_words(self) -> FrozenSet[str]:
        words = set()
        phrases: List[str] = []
        for config in self._metrics.values():
            phrases.extend(config.scan_phrases())
        for name in ("stat_indicators", "question_types", "negative_clauses", "locations",
                     "time_frames", "results"):
            for table_phrases in self._tables[name].values():
                phrases.extend(table_phrases)
        for phrase in phrases:
            if "\\" in phrase:
                continue
            words.update(re.findall(r"[a-z][a-z'\-]*", phrase))
        return frozenset(words)

    # ---------- Metric lookups ----------

    def metrics(self) -> List[MetricConfig]:
        return list(self._metrics.values())

    def metric(self, key: MetricKey) -> MetricConfig:
        return self._metrics[key]

    def find_metric(self, text: str) -> Optional[MetricKey]:
        """Exact, case-insensitive lookup by alias, display form or key."""
        if not text:
            return None
        return self._lookup.get(_normalize_form(text))

    def metric_forms(self) -> Dict[str, MetricKey]:
        return dict(self._lookup)

    def metric_phrases(self) -> Dict[str, List[str]]:
        """Scan phrases per metric key value, for the phrase matcher."""
        return {config.key.value: config.scan_phrases() for config in self._metrics.values()}

    def per_appearance_metrics(self) -> List[MetricConfig]:
        return [c for c in self._metrics.values() if c.kind is MetricKind.PER_APPEARANCE and c.base]

    def display_name(self, key: MetricKey, value: float) -> str:
        return self._metrics[key].display_for(value)

    # ---------- Pseudonym tables ----------

    def table(self, name: str) -> Dict[str, Tuple[str, ...]]:
        return dict(self._tables[name])

    @property
    def vocabulary_words(self) -> FrozenSet[str]:
        return self._vocabulary_words


def _load_dict_if_exists(path: Path, default: Dict[str, List[str]]) -> Dict[str, List[str]]:
    try:
        if path.exists():
            logger.info(f"Loading external dictionary: {path}")
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            normalized: Dict[str, List[str]] = {}
            for key, aliases in data.items():
                if isinstance(key, str) and isinstance(aliases, list):
                    normalized[key] = [a for a in aliases if isinstance(a, str)]
            return normalized or default
        logger.debug(f"External dictionary not found: {path}, using defaults")
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to load external dictionary: {path} ({e}), using defaults")
    return default


def _apply_alias_overrides(metrics: Sequence[MetricConfig],
                           overrides: Mapping[str, Sequence[str]]) -> List[MetricConfig]:
    """Append extra aliases from an override file to the matching metrics."""
    known = {config.key.value: config for config in metrics}
    unknown = sorted(set(overrides) - set(known))
    if unknown:
        raise VocabularyError(f"Alias overrides reference unknown metric keys: {unknown}")
    merged = []
    for config in metrics:
        extra = tuple(a for a in overrides.get(config.key.value, ()) if a not in config.aliases)
        if extra:
            config = MetricConfig(config.key, config.display_name, config.singular, config.plural,
                                  config.aliases + extra, config.description, config.kind, config.base)
        merged.append(config)
    return merged


def build_vocabulary_registry(data_dir: Path = DATA_DIR) -> VocabularyRegistry:
    """Build a registry from the built-in tables plus optional JSON alias overrides."""
    overrides = _load_dict_if_exists(data_dir / "metric_aliases.json", default={})
    metrics = _apply_alias_overrides(METRIC_CONFIGS, overrides) if overrides else METRIC_CONFIGS
    tables = {
        "stat_indicators": STAT_INDICATOR_PSEUDONYMS,
        "question_types": QUESTION_TYPE_PSEUDONYMS,
        "negative_clauses": NEGATIVE_CLAUSE_PSEUDONYMS,
        "locations": LOCATION_PSEUDONYMS,
        "time_frames": TIME_FRAME_PSEUDONYMS,
        "competition_types": COMPETITION_TYPE_PSEUDONYMS,
        "results": RESULT_PSEUDONYMS,
        "leagues": LEAGUE_PSEUDONYMS,
    }
    return VocabularyRegistry(metrics, tables)


@lru_cache(maxsize=1)
def get_vocabulary_registry() -> VocabularyRegistry:
    """Shared registry, built on first use."""
    return build_vocabulary_registry()


def team_display_name(team: str) -> str:
    """Map a team shorthand ("2s") to its stored name ("2nd XI")."""
    return TEAM_NAMES.get(team.strip().lower(), team)


def team_shorthand(team: str) -> Optional[str]:
    """Map any supported team reference ("2nd XI", "2nd", "second", "2s") to "2s"."""
    lowered = _normalize_form(team)
    if lowered in TEAM_NAMES:
        return lowered
    for shorthand, name in TEAM_NAMES.items():
        if lowered == name.lower():
            return shorthand
    match = re.fullmatch(r"([1-8])(?:st|nd|rd|th)?(?:\s+(?:xi|team))?", lowered)
    if match:
        return f"{match.group(1)}s"
    match = re.fullmatch(r"(\w+)(?:\s+(?:xi|team))?", lowered)
    if match and ORDINAL_WORDS.get(match.group(1), 99) <= 8:
        return f"{ORDINAL_WORDS[match.group(1)]}s"
    return None
