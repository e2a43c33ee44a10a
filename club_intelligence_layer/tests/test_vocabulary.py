"""Tests for the club vocabulary registry."""

import json

import pytest

from club_intelligence_layer.config.club_vocabulary import (
    MetricConfig,
    MetricKey,
    MetricKind,
    VocabularyError,
    VocabularyRegistry,
    build_vocabulary_registry,
    get_vocabulary_registry,
    team_display_name,
    team_shorthand,
)


@pytest.fixture
def registry():
    """Shared vocabulary registry."""
    return get_vocabulary_registry()


def test_every_alias_resolves_to_its_key(registry):
    """Every registered alias resolves, case-insensitively, to its own key."""
    for config in registry.metrics():
        for alias in config.aliases:
            assert registry.find_metric(alias) is config.key
            assert registry.find_metric(alias.upper()) is config.key


def test_key_and_display_forms_resolve(registry):
    """Keys and display forms are lookups too."""
    for config in registry.metrics():
        assert registry.find_metric(config.key.value) is config.key
        for form in config.display_forms():
            assert registry.find_metric(form) is config.key


def test_unknown_form_is_none(registry):
    assert registry.find_metric("flibbertigibbet") is None
    assert registry.find_metric("") is None


def test_display_for_uses_singular_for_one(registry):
    goals = registry.metric(MetricKey.G)
    assert goals.display_for(1) == "goal"
    assert goals.display_for(0) == "goals"
    assert registry.display_name(MetricKey.G, 7) == "goals"


def test_per_appearance_metrics_have_bases(registry):
    per_app = registry.per_appearance_metrics()
    assert MetricKey.GPERAPP in {c.key for c in per_app}
    for config in per_app:
        assert config.base is not None
        assert registry.metric(config.base).kind is not MetricKind.PER_APPEARANCE


def test_collision_across_keys_is_rejected():
    """An alias registered under two keys fails at start-up."""
    metrics = [
        MetricConfig(MetricKey.G, "goals", "goal", "goals", ("netted",), "Goals"),
        MetricConfig(MetricKey.A, "assists", "assist", "assists", ("netted",), "Assists"),
    ]
    with pytest.raises(VocabularyError):
        VocabularyRegistry(metrics, {})


def test_empty_alias_is_rejected():
    metrics = [MetricConfig(MetricKey.G, "goals", "goal", "goals", ("",), "Goals")]
    with pytest.raises(VocabularyError):
        VocabularyRegistry(metrics, {})


def test_pseudonym_table_collision_is_rejected():
    metrics = [MetricConfig(MetricKey.G, "goals", "goal", "goals", ("netted",), "Goals")]
    tables = {"locations": {"home": ["at home"], "away": ["at home"]}}
    with pytest.raises(VocabularyError):
        VocabularyRegistry(metrics, tables)


def test_alias_overrides_are_merged(tmp_path):
    """Extra aliases from metric_aliases.json are added to built-in metrics."""
    (tmp_path / "metric_aliases.json").write_text(json.dumps({"G": ["bangers"]}), encoding="utf-8")
    registry = build_vocabulary_registry(tmp_path)
    assert registry.find_metric("bangers") is MetricKey.G
    assert registry.find_metric("goals") is MetricKey.G


def test_alias_overrides_reject_unknown_keys(tmp_path):
    (tmp_path / "metric_aliases.json").write_text(json.dumps({"NOPE": ["x"]}), encoding="utf-8")
    with pytest.raises(VocabularyError):
        build_vocabulary_registry(tmp_path)


def test_malformed_override_file_falls_back_to_defaults(tmp_path):
    (tmp_path / "metric_aliases.json").write_text("{not json", encoding="utf-8")
    registry = build_vocabulary_registry(tmp_path)
    assert registry.find_metric("bangers") is None
    assert registry.find_metric("assists") is MetricKey.A


@pytest.mark.parametrize("reference, expected", [
    ("2s", "2s"),
    ("2nd XI", "2s"),
    ("2nd", "2s"),
    ("second", "2s"),
    ("3rd team", "3s"),
    ("7", "7s"),
    ("9th", None),
    ("Reserves", None),
])
def test_team_shorthand(reference, expected):
    assert team_shorthand(reference) == expected


def test_team_display_name():
    assert team_display_name("2s") == "2nd XI"
    assert team_display_name("Vets") == "Vets"
