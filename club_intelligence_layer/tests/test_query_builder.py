"""Tests for parameterized Cypher synthesis."""

from datetime import date

import pytest

from club_intelligence_layer.config.club_vocabulary import MetricKey
from club_intelligence_layer.src.entity_extractor import ExtractionResult
from club_intelligence_layer.src.question_analyzer import (
    QuestionAnalysis,
    QuestionAnalyzer,
    QuestionIntent,
    QueryContext,
)
from club_intelligence_layer.src.query_builder import (
    QueryBuilder,
    UnsupportedMetricError,
    compose_filters,
)

GRAPH_LABEL = "testGraph"


@pytest.fixture
def analyzer():
    return QuestionAnalyzer(today=date(2024, 10, 1))


@pytest.fixture
def builder():
    return QueryBuilder(GRAPH_LABEL)


def blank_analysis(question="", **fields):
    return QuestionAnalysis(question=question, intent=QuestionIntent.SPECIFIC_ENTITY,
                            extraction=ExtractionResult(), **fields)


def test_player_goals_sum_goals_and_penalties(analyzer, builder):
    analysis = analyzer.analyze("How many goals has Luke Bangs scored?")
    query = builder.build_specific_player(analysis, analysis.player, MetricKey.G)

    assert query.shape == "player_aggregate"
    assert query.params == {"graphLabel": GRAPH_LABEL, "playerName": "Luke Bangs"}
    assert "md.goals" in query.text
    assert "md.penaltiesScored" in query.text
    assert "Luke Bangs" not in query.text
    assert "HAS_MATCH_DETAILS" not in query.text


def test_user_values_never_reach_query_text(builder):
    name = "x' OR 1=1 //"
    query = builder.build_specific_player(blank_analysis(), name, MetricKey.A)
    assert name not in query.text
    assert query.params["playerName"] == name


def test_season_filter_joins_fixture(analyzer, builder):
    analysis = analyzer.analyze("How many assists has Luke Bangs got this season?")
    query = builder.build_specific_player(analysis, analysis.player, MetricKey.A)

    assert "MATCH (f:Fixture {graphLabel: $graphLabel})-[:HAS_MATCH_DETAILS]->(md)" in query.text
    assert "f.season = $season" in query.text
    assert query.params["season"] == "2024/25"


def test_man_of_the_match_counts_true_flags(builder):
    query = builder.build_specific_player(blank_analysis(), "Luke Bangs", MetricKey.MOM)
    assert "md.mom = true OR md.mom = 1" in query.text


def test_penalty_record_is_nullable(builder):
    query = builder.build_specific_player(blank_analysis(), "Luke Bangs", MetricKey.PENALTY_RECORD)

    assert query.shape == "player_penalty_record"
    assert query.nullable_fields == ("value",)
    assert "CASE WHEN scored + missed > 0" in query.text
    assert "ELSE NULL" in query.text


def test_per_appearance_guards_division(builder):
    query = builder.build_specific_player(blank_analysis(), "Luke Bangs", MetricKey.GPERAPP)
    assert query.shape == "player_per_appearance"
    assert "CASE WHEN appearances > 0" in query.text


def test_home_games_force_venue(builder):
    query = builder.build_specific_player(blank_analysis(), "Luke Bangs", MetricKey.HOME)
    assert "f.homeOrAway = 'Home'" in query.text
    assert "count(md)" in query.text


def test_award_metric_has_no_aggregate(builder):
    with pytest.raises(UnsupportedMetricError) as excinfo:
        builder.build_specific_player(blank_analysis(), "Luke Bangs", MetricKey.TOTW)
    assert excinfo.value.metric is MetricKey.TOTW


def test_team_aggregate(analyzer, builder):
    analysis = analyzer.analyze("How many goals have the 3s scored?")
    query = builder.build_specific_team(analysis, MetricKey.G)

    assert query.shape == "team_aggregate"
    assert query.params["teamName"] == "3rd XI"
    assert "md.team = $teamName" in query.text


def test_team_appearances_count_fixtures(builder):
    query = builder.build_specific_team(blank_analysis(team="2s"), MetricKey.APP)
    assert "count(DISTINCT f)" in query.text


def test_team_clean_sheets_are_unsupported(builder):
    with pytest.raises(UnsupportedMetricError):
        builder.build_specific_team(blank_analysis(team="3s"), MetricKey.CLS)


def test_games_played_together(builder):
    query = builder.build_games_played_together(blank_analysis(), "Kieran Mackrell", "Luke Bangs")

    assert query.params["playerName1"] == "Kieran Mackrell"
    assert query.params["playerName2"] == "Luke Bangs"
    assert "p1 <> p2" in query.text
    assert "count(DISTINCT f) as gamesTogether" in query.text


def test_games_played_together_filters_both_players(builder):
    query = builder.build_games_played_together(blank_analysis(team="2s"), "A", "B")
    assert "md1.team = $teamName" in query.text
    assert "md2.team = $teamName" in query.text


def test_most_played_with(builder):
    query = builder.build_most_played_with(blank_analysis(), "Luke Bangs")
    assert query.params["limit"] == 3
    assert "ORDER BY gamesTogether DESC, teammateName ASC" in query.text


def test_opponents_for_player_and_club(builder):
    player_query = builder.build_opponents(blank_analysis(), "Luke Bangs")
    assert player_query.shape == "player_opponents"
    assert "PLAYED_AGAINST_OPPONENT" in player_query.text

    club_query = builder.build_opponents(blank_analysis())
    assert club_query.shape == "club_opponents"
    assert club_query.params["limit"] == 10


def test_award_count_and_history(builder):
    counted = builder.build_award(blank_analysis("How many times has Luke Bangs been captain?"),
                                  "Luke Bangs", MetricKey.CAPTAIN)
    assert counted.shape == "award_count"
    assert 'ca.itemName CONTAINS "Captain"' in counted.text

    history = builder.build_award(blank_analysis("What awards has Luke Bangs won?"),
                                  "Luke Bangs", MetricKey.AWARDS)
    assert history.shape == "award_history"
    assert 'NOT (ca.itemName CONTAINS "Captain")' in history.text


def test_totw_season_filter_is_a_parameter(builder):
    analysis = blank_analysis("Which weeks was Luke Bangs in team of the week?")
    analysis.time_range.season = "2022/23"
    query = builder.build_award(analysis, "Luke Bangs", MetricKey.TOTW)
    assert "totw.season = $season" in query.text
    assert query.params["season"] == "2022/23"


def test_no_context_listing(builder):
    query = builder.build_no_context()
    assert query.params["limit"] == 50
    assert "RETURN p.playerName as name" in query.text


def test_catalogue_queries(builder):
    assert builder.build_catalogue_query("player").shape == "catalogue_player"
    with pytest.raises(ValueError):
        builder.build_catalogue_query("referee")


def test_compose_filters_maps_results_and_competition_types():
    analysis = blank_analysis(results=["win", "draw"], competition_types=["league", "cup"],
                              opponent_own_goals=True)
    filters = compose_filters(analysis)

    assert filters.params["results"] == ["W", "D"]
    assert "f.result IN $results" in filters.conditions
    assert "(f.compType = 'League' OR f.compType = 'Cup')" in filters.conditions
    assert "f.oppoOwnGoals > 0" in filters.conditions
    assert filters.needs_fixture


def test_compose_filters_with_context_position(analyzer):
    analysis = analyzer.analyze("How many goals has Luke Bangs scored?", QueryContext(position="gk"))
    filters = compose_filters(analysis)
    assert filters.params["position"] == "GK"
    assert "md.class = $position" in filters.conditions


def test_pretty_lists_parameters_separately(builder):
    query = builder.build_specific_player(blank_analysis(), "Luke Bangs", MetricKey.G)
    pretty = query.pretty()

    assert "-- parameters:" in pretty
    assert "--   $playerName = 'Luke Bangs'" in pretty
    assert pretty.splitlines()[0].startswith("MATCH")
    assert query.to_dict()["params"]["playerName"] == "Luke Bangs"
