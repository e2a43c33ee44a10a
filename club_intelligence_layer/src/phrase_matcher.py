"""Longest-match-first phrase scanning over a pseudonym table.

A ``PhraseMatcher`` compiles every phrase of one table into a single regular
expression at start-up. Each position of the text is probed through a
lookahead, so all candidate matches are seen, and candidates are then
accepted greedily by length (longest first) and offset, dropping anything
that overlaps an accepted match.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

Span = Tuple[int, int]

# Phrases containing one of these are hand-written patterns and stay raw.
_PATTERN_MARKERS = ("\\d", "\\w", "\\s", ".*")

_NEVER_MATCHES = re.compile(r"a^")


@dataclass(frozen=True)
class PhraseMatch:
    """One accepted match: the canonical entry and where it was found."""
    canonical: str
    text: str
    start: int
    end: int

    @property
    def span(self) -> Span:
        return (self.start, self.end)


def is_pattern(phrase: str) -> bool:
    return any(marker in phrase for marker in _PATTERN_MARKERS)


def phrase_to_regex(phrase: str) -> str:
    """Regex source for one phrase.

    Patterns stay raw, everything else is escaped. Word boundaries are added
    on the edges of the phrase that are word characters, and inner
    whitespace matches any run of whitespace.
    """
    if is_pattern(phrase):
        return phrase
    words = phrase.split()
    body = r"\s+".join(re.escape(word) for word in words)
    prefix = r"\b" if words and re.match(r"\w", words[0]) else ""
    suffix = r"\b" if words and re.search(r"\w$", words[-1]) else ""
    return f"{prefix}{body}{suffix}"


def overlaps(span: Span, spans: Iterable[Span]) -> bool:
    start, end = span
    return any(start < other_end and other_start < end for other_start, other_end in spans)


class PhraseMatcher:
    """Matcher over a ``canonical -> phrases`` table."""

    def __init__(self, table: Mapping[str, Sequence[str]]):
        self._canonical_by_group: Dict[str, str] = {}
        entries: List[Tuple[str, str]] = []
        seen = set()
        for canonical, phrases in table.items():
            for phrase in phrases:
                phrase = phrase.strip().lower()
                if phrase and phrase not in seen:
                    seen.add(phrase)
                    entries.append((phrase, canonical))

        # Longest first so the alternation prefers the longer phrase at any position.
        entries.sort(key=lambda entry: (-len(entry[0]), entry[0]))

        alternatives = []
        for index, (phrase, canonical) in enumerate(entries):
            group = f"p{index}"
            self._canonical_by_group[group] = canonical
            alternatives.append(f"(?P<{group}>{phrase_to_regex(phrase)})")

        if alternatives:
            self._regex = re.compile(f"(?=(?:{'|'.join(alternatives)}))", re.IGNORECASE)
        else:
            self._regex = _NEVER_MATCHES
        self.phrase_count = len(entries)

    def candidates(self, text: str) -> List[PhraseMatch]:
        """Every match starting at every position, before overlap resolution."""
        found = []
        for match in self._regex.finditer(text):
            group = match.lastgroup
            if group is None:
                continue
            start, end = match.span(group)
            if end > start:
                found.append(PhraseMatch(self._canonical_by_group[group], text[start:end], start, end))
        return found

    def find_all(self, text: str, excluded_spans: Sequence[Span] = ()) -> List[PhraseMatch]:
        """Non-overlapping matches ordered by offset.

        Candidates touching any of ``excluded_spans`` are discarded.
        """
        if not text:
            return []
        candidates = [c for c in self.candidates(text) if not overlaps(c.span, excluded_spans)]
        candidates.sort(key=lambda c: (-(c.end - c.start), c.start))

        accepted: List[PhraseMatch] = []
        for candidate in candidates:
            if not overlaps(candidate.span, [a.span for a in accepted]):
                accepted.append(candidate)
        accepted.sort(key=lambda c: c.start)
        return accepted
