"""Resolve extracted tokens to canonical metric keys and catalogue names.

Exact matches win outright. Otherwise every candidate is scored with a
Levenshtein similarity, ``(len(longer) - distance) / len(longer)``, and the
best candidate is accepted only when it clears ``SIMILARITY_THRESHOLD``.
A miss returns ``None``; it is never an error.
"""

import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import Levenshtein

from ..config.club_vocabulary import (
    MetricKey,
    VocabularyRegistry,
    get_vocabulary_registry,
    TEAM_NAMES,
    LEAGUE_PSEUDONYMS,
)

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.7
MAX_SUGGESTIONS = 3

_EXPLICIT_LOCATION = re.compile(
    r"\b(?:at\s+home|home\s+(?:games?|matches|fixtures|ground)|away\s+from\s+home"
    r"|away\s+(?:games?|matches|fixtures|ground)|on\s+the\s+road|(?:played|playing|play)\s+(?:at\s+)?(?:home|away)"
    r"|(?:home|away)\s+(?:appearances|record))\b",
    re.IGNORECASE,
)
_APPEARANCE_TOKEN = re.compile(r"^(?:appearance|app)$", re.IGNORECASE)
_TEAM_APPEARANCE_QUESTION = re.compile(
    r"\b(?:[1-8](?:st|nd|rd|th)|[1-8]s|first|second|third|fourth|fifth|sixth|seventh|eighth)\b"
    r".*\b(?:appearances?|apps|games)\b|\bappearances?\s+for\s+the\b",
    re.IGNORECASE,
)


def normalize_term(text: str) -> str:
    """Lower-case, strip punctuation and squash whitespace."""
    text = re.sub(r"[^\w\s]", " ", text.lower())
    return re.sub(r"\s+", " ", text).strip()


def similarity(a: str, b: str) -> float:
    """Levenshtein similarity in [0, 1]; identical strings score 1."""
    a, b = normalize_term(a), normalize_term(b)
    longer = max(len(a), len(b))
    if longer == 0:
        return 1.0
    return (longer - Levenshtein.distance(a, b)) / longer


def best_fuzzy_match(term: str, candidates: Iterable[str],
                     threshold: float = SIMILARITY_THRESHOLD) -> Optional[Tuple[str, float]]:
    best: Optional[Tuple[str, float]] = None
    for candidate in candidates:
        score = similarity(term, candidate)
        if best is None or score > best[1]:
            best = (candidate, score)
    if best is not None and best[1] > threshold:
        return best
    return None


def has_explicit_location_phrase(question: str) -> bool:
    return bool(_EXPLICIT_LOCATION.search(question or ""))


class AliasResolver:
    """Map a stat token from a question to one canonical metric key."""

    def __init__(self, registry: Optional[VocabularyRegistry] = None):
        self.registry = registry or get_vocabulary_registry()
        self._forms: Dict[str, MetricKey] = {normalize_term(form): key
                                             for form, key in self.registry.metric_forms().items()}

    def resolve_metric(self, token: str, question: str = "",
                       player_words: Sequence[str] = ()) -> Optional[MetricKey]:
        if not token or not token.strip():
            return None
        normalized = normalize_term(token)

        if normalized and all(word in player_words for word in normalized.split()):
            logger.debug(f"   '{token}' is part of a player name, not a metric")
            return None

        if _APPEARANCE_TOKEN.match(normalized):
            per_appearance = self._per_appearance_metric(question)
            if per_appearance is not None:
                return per_appearance

        key = self._forms.get(normalized)
        if key is not None:
            if key in (MetricKey.HOME, MetricKey.AWAY) and normalized in ("home", "away") \
                    and not has_explicit_location_phrase(question):
                logger.debug(f"   Bare '{token}' without a location phrase is not a metric")
                return None
            return key

        match = best_fuzzy_match(normalized, self._forms)
        if match is None:
            logger.debug(f"   No metric for '{token}'")
            return None
        form, score = match
        key = self._forms[form]
        if key in (MetricKey.HOME, MetricKey.AWAY) and not has_explicit_location_phrase(question):
            return None
        logger.debug(f"   Fuzzy metric '{token}' -> {key.value} via '{form}' ({score:.2f})")
        return key

    def _per_appearance_metric(self, question: str) -> Optional[MetricKey]:
        """Per-appearance counterpart of another stat in the question, if any.

        Only applies when the question is not a count of appearances for a
        specific team and names a stat that has a per-appearance form.
        """
        if not question or _TEAM_APPEARANCE_QUESTION.search(question):
            return None
        lowered = normalize_term(question)
        for config in self.registry.per_appearance_metrics():
            base = self.registry.metric(config.base)
            for phrase in base.scan_phrases():
                if re.search(rf"\b{re.escape(normalize_term(phrase))}\b", lowered):
                    return config.key
        return None


def _default_catalogue() -> Dict[str, List[str]]:
    return {
        "player": [],
        "team": sorted(set(TEAM_NAMES) | set(TEAM_NAMES.values())),
        "opposition": [],
        "league": sorted(LEAGUE_PSEUDONYMS),
    }


class EntityNameResolver:
    """Resolve names against a read-only catalogue of known players, teams,
    oppositions and leagues."""

    def __init__(self, catalogue: Optional[Mapping[str, Sequence[str]]] = None):
        self._catalogue: Dict[str, List[str]] = _default_catalogue()
        self._loaded = False
        if catalogue:
            self.load_catalogue(catalogue)

    def load_catalogue(self, catalogue: Mapping[str, Sequence[str]]) -> None:
        for category, names in catalogue.items():
            cleaned = sorted({n.strip() for n in names if isinstance(n, str) and n.strip()})
            if cleaned:
                self._catalogue[category] = cleaned
        self._loaded = True
        logger.info(
            "📇 Entity catalogue loaded: "
            + ", ".join(f"{category}={len(names)}" for category, names in self._catalogue.items())
        )

    @property
    def has_catalogue(self) -> bool:
        return self._loaded

    def names(self, category: str) -> List[str]:
        return list(self._catalogue.get(category, []))

    def best_match(self, term: str, category: str) -> Optional[str]:
        """Canonical name for a term, or None when nothing is close enough.

        An empty catalogue for the category passes the term through unchanged.
        """
        if not term:
            return None
        candidates = self._catalogue.get(category, [])
        if not candidates:
            return term
        normalized = normalize_term(term)
        for candidate in candidates:
            if normalize_term(candidate) == normalized:
                return candidate
        match = best_fuzzy_match(term, candidates)
        return match[0] if match else None

    def suggestions(self, term: str, category: str, limit: int = MAX_SUGGESTIONS) -> List[str]:
        """Closest catalogue names, best first, regardless of the threshold."""
        candidates = self._catalogue.get(category, [])
        scored = sorted(candidates, key=lambda c: (-similarity(term, c), c))
        return [c for c in scored[:limit] if similarity(term, c) > 0.3]
