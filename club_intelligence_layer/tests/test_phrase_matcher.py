"""Tests for longest-match-first phrase scanning."""

from club_intelligence_layer.src.phrase_matcher import PhraseMatcher, overlaps, phrase_to_regex


def test_longest_phrase_wins():
    matcher = PhraseMatcher({"G": ["goals"], "GPERAPP": ["goals per game"]})
    matches = matcher.find_all("Goals per game for everyone")
    assert [(m.canonical, m.text) for m in matches] == [("GPERAPP", "Goals per game")]


def test_overlap_is_resolved_by_length():
    matcher = PhraseMatcher({"card": ["red card"], "holder": ["card holder"]})
    matches = matcher.find_all("the red card holder")
    assert [m.canonical for m in matches] == ["holder"]


def test_non_overlapping_matches_are_ordered_by_offset():
    matcher = PhraseMatcher({"A": ["assists"], "G": ["goals"]})
    matches = matcher.find_all("assists and goals")
    assert [m.canonical for m in matches] == ["A", "G"]
    assert matches[1].start == 12
    assert matches[1].span == (12, 17)


def test_word_boundaries():
    matcher = PhraseMatcher({"APP": ["app"]})
    assert matcher.find_all("happy apps") == []
    assert [m.text for m in matcher.find_all("per app")] == ["app"]


def test_excluded_spans_are_skipped():
    matcher = PhraseMatcher({"R": ["red"], "G": ["scored"]})
    question = "Jack Red scored"
    matches = matcher.find_all(question, excluded_spans=[(0, 8)])
    assert [m.canonical for m in matches] == ["G"]


def test_patterns_stay_raw():
    matcher = PhraseMatcher({"win": [r"(?:games|matches)\s+(?:have|has|did)\s+\w+\s+won"]})
    matches = matcher.find_all("How many games have we won?")
    assert len(matches) == 1
    assert matches[0].canonical == "win"
    assert matches[0].text == "games have we won"


def test_inner_whitespace_is_flexible():
    matcher = PhraseMatcher({"CLS": ["clean sheets"]})
    assert [m.text for m in matcher.find_all("CLEAN   sheets")] == ["CLEAN   sheets"]


def test_empty_table_and_text():
    assert PhraseMatcher({}).find_all("anything") == []
    assert PhraseMatcher({"G": ["goals"]}).find_all("") == []


def test_phrase_to_regex_escapes_literals():
    assert phrase_to_regex("what's") == r"\bwhat's\b"
    assert phrase_to_regex("a.b") == r"\ba\.b\b"


def test_overlaps():
    assert overlaps((0, 5), [(4, 8)])
    assert not overlaps((0, 5), [(5, 8)])
