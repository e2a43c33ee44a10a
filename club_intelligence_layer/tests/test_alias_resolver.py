"""Tests for metric alias resolution and catalogue name matching."""

import pytest

from club_intelligence_layer.config.club_vocabulary import MetricKey, get_vocabulary_registry
from club_intelligence_layer.src.alias_resolver import (
    AliasResolver,
    EntityNameResolver,
    best_fuzzy_match,
    has_explicit_location_phrase,
    normalize_term,
    similarity,
)


@pytest.fixture
def resolver():
    """Alias resolver over the shared registry."""
    return AliasResolver()


@pytest.fixture
def names():
    """Name resolver with a small player catalogue."""
    return EntityNameResolver({"player": ["Luke Bangs", "Kieran Mackrell"]})


def test_similarity():
    assert similarity("goals", "GOALS") == 1.0
    assert similarity("", "") == 1.0
    assert similarity("assists", "asists") == pytest.approx(6 / 7)


def test_best_fuzzy_match_threshold_is_strict():
    assert best_fuzzy_match("abc", ["abd"], threshold=2 / 3) is None
    assert best_fuzzy_match("abcd", ["abce"], threshold=0.7) == ("abce", 0.75)


def test_normalize_term():
    assert normalize_term("  Goals-per  GAME? ") == "goals per game"


def test_every_alias_resolves(resolver):
    """Each alias, in any case, resolves to the key it is registered under."""
    for config in get_vocabulary_registry().metrics():
        if config.key in (MetricKey.HOME, MetricKey.AWAY):
            continue
        for alias in config.aliases:
            assert resolver.resolve_metric(alias.upper(), alias) is config.key


def test_exact_key_and_display_form_are_reflexive(resolver):
    question = "home games and away games"
    for config in get_vocabulary_registry().metrics():
        assert resolver.resolve_metric(config.key.value, question) is config.key
        assert resolver.resolve_metric(config.display_name, question) is config.key


def test_fuzzy_resolution(resolver):
    assert resolver.resolve_metric("asists") is MetricKey.A
    assert resolver.resolve_metric("yelow cards") is MetricKey.Y


def test_unknown_term_is_none(resolver):
    assert resolver.resolve_metric("flibbertigibbet") is None
    assert resolver.resolve_metric("") is None


def test_bare_home_needs_location_phrase(resolver):
    assert resolver.resolve_metric("home", "How many games has Luke Bangs played at home?") is MetricKey.HOME
    assert resolver.resolve_metric("home", "Who is the home captain?") is None


def test_player_name_words_are_not_metrics(resolver):
    assert resolver.resolve_metric("Red", "How many goals has Jack Red scored?", ["jack", "red"]) is None


def test_appearance_becomes_per_appearance_metric(resolver):
    question = "How many goals does Luke Bangs score each appearance?"
    assert resolver.resolve_metric("appearance", question) is MetricKey.GPERAPP


def test_team_appearance_question_keeps_appearances(resolver):
    question = "How many appearance for the 2s has Luke Bangs made with goals?"
    assert resolver.resolve_metric("appearance", question) is MetricKey.APP


def test_explicit_location_phrases():
    assert has_explicit_location_phrase("goals at home")
    assert has_explicit_location_phrase("away games")
    assert not has_explicit_location_phrase("home captain")


class TestEntityNameResolver:
    """Test class for catalogue name matching."""

    def setup_method(self):
        """Set up a resolver with a small catalogue."""
        self.resolver = EntityNameResolver({"player": ["Luke Bangs", "Kieran Mackrell"]})

    def test_exact_match_is_case_insensitive(self):
        assert self.resolver.best_match("luke bangs", "player") == "Luke Bangs"

    def test_fuzzy_match(self):
        assert self.resolver.best_match("Luke Bang", "player") == "Luke Bangs"

    def test_no_match(self):
        assert self.resolver.best_match("Zed Quorn", "player") is None

    def test_empty_category_passes_through(self):
        assert self.resolver.best_match("Old Boys", "opposition") == "Old Boys"

    def test_suggestions(self):
        assert self.resolver.suggestions("Luke Bang", "player")[0] == "Luke Bangs"

    def test_catalogue_flag(self):
        assert self.resolver.has_catalogue
        assert not EntityNameResolver().has_catalogue


def test_default_catalogue_has_teams(names):
    assert "2nd XI" in names.names("team")
    assert names.names("opposition") == []
