"""
Test suite for the Club Intelligence Layer end-to-end functionality.
Tests the complete pipeline: Question → Analysis → Cypher → Results,
with the graph executor replaced by a mock.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from neo4j.exceptions import ServiceUnavailable

from club_intelligence_layer.main import (
    ClubIntelligenceLayer,
    STORE_ERROR_MESSAGE,
    NO_PLAYER_CONTEXT_MESSAGE,
    CLARIFY_METRIC_MESSAGE,
    STREAK_MESSAGE,
)
from club_intelligence_layer.src.alias_resolver import EntityNameResolver
from club_intelligence_layer.src.graph_database import ClubGraphDatabase, GraphDatabaseError
from club_intelligence_layer.src.question_analyzer import QueryContext


def make_database(rows=None, side_effect=None):
    database = MagicMock()
    database.graph_label = "testGraph"
    database.execute = AsyncMock(return_value=rows if rows is not None else [], side_effect=side_effect)
    database.close = AsyncMock()
    return database


def make_layer(database, name_resolver=None):
    return ClubIntelligenceLayer(database=database, name_resolver=name_resolver or EntityNameResolver(),
                                 load_catalogue=False)


@pytest.fixture
def me():
    return QueryContext(player_name="Kieran Mackrell")


class TestScenarios:
    """Test class for the main question scenarios."""

    @pytest.mark.asyncio
    async def test_self_reference_goals(self):
        """Test "I" is answered for the caller with a summed goals query."""
        database = make_database([{"playerName": "Luke Bangs", "value": 12}])
        result = await make_layer(database).process_query_async(
            "How many goals has I scored?", QueryContext(player_name="Luke Bangs"))

        assert result["type"] == "specific_entity"
        assert result["data"][0]["value"] == 12
        assert result["data"][0]["metric"] == "G"
        assert result["data"][0]["displayName"] == "goals"
        query_text, params = database.execute.call_args.args
        assert params["playerName"] == "Luke Bangs"
        assert "md.goals" in query_text

    @pytest.mark.asyncio
    async def test_most_goals_ranking(self):
        rows = [{"playerName": f"Player {i}", "value": 20 - i, "appearances": 10} for i in range(7)]
        result = await make_layer(make_database(rows)).process_query_async("Who has scored the most goals?")

        assert result["type"] == "ranking"
        assert len(result["data"]) == 5
        assert len(result["fullData"]) == 7
        assert result["requestedLimit"] == 5
        assert result["expandableLimit"] == 10
        assert result["metric"] == "G"

    @pytest.mark.asyncio
    async def test_worst_penalty_record_keeps_zero_percent(self):
        rows = [{"playerName": "A", "value": 0.0, "scored": 0, "missed": 2, "appearances": 5}]
        database = make_database(rows)
        result = await make_layer(database).process_query_async("Who has the worst penalty record?")

        assert result["type"] == "ranking"
        assert result["data"][0]["value"] == 0
        assert "ORDER BY value ASC" in database.execute.call_args.args[0]

    @pytest.mark.asyncio
    async def test_games_played_together(self, me):
        database = make_database([{"gamesTogether": {"low": 42, "high": 0}}])
        result = await make_layer(database).process_query_async(
            "How many games have I played with Luke Bangs?", me)

        assert result["type"] == "relationship"
        assert result["data"] == [{
            "playerName1": "Kieran Mackrell",
            "playerName2": "Luke Bangs",
            "gamesTogether": 42,
        }]

    @pytest.mark.asyncio
    async def test_per_appearance_threshold(self):
        database = make_database([{"playerName": "A", "value": 1.5, "total": 9, "appearances": 6}])
        result = await make_layer(database).process_query_async(
            "Goals per game for players with more than 5 games")

        assert result["type"] == "ranking"
        assert result["metric"] == "GPERAPP"
        assert database.execute.call_args.args[1]["minAppearances"] == 5

    @pytest.mark.asyncio
    async def test_unrecognized_question_falls_back_to_no_context(self):
        database = make_database([{"name": "Luke Bangs"}])
        result = await make_layer(database).process_query_async("What about the flibbertigibbet?")

        assert result["type"] == "no_context"
        assert result["data"] == [{"name": "Luke Bangs"}]
        assert database.execute.call_args.args[1]["limit"] == 50


class TestErrorResults:
    """Test class for typed error results."""

    @pytest.mark.asyncio
    async def test_store_failure_hides_cause(self):
        database = make_database(side_effect=GraphDatabaseError("Query timed out after 10s"))
        result = await make_layer(database).process_query_async("Who has scored the most goals?")

        assert result["type"] == "error"
        assert result["message"] == STORE_ERROR_MESSAGE
        assert "timed out" not in result["message"]

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_an_error_envelope(self):
        database = make_database(side_effect=RuntimeError("boom"))
        result = await make_layer(database).process_query_async("Who has scored the most goals?")

        assert result["type"] == "error"
        assert "boom" not in result["message"]

    @pytest.mark.asyncio
    async def test_player_not_found(self):
        database = make_database()
        resolver = EntityNameResolver({"player": ["Luke Bangs", "Kieran Mackrell"]})
        result = await make_layer(database, resolver).process_query_async("How many goals has Luke Bang scored?")
        assert result["analysis"]["players"] == ["Luke Bangs"]
        assert result["type"] == "no_data"

        result = await make_layer(database, resolver).process_query_async("How many goals has Zed Quorn scored?")
        assert result["type"] == "player_not_found"
        assert '"Zed Quorn"' in result["message"]

    @pytest.mark.asyncio
    async def test_missing_player_context(self):
        database = make_database()
        result = await make_layer(database).process_query_async("How many goals have I scored?")

        assert result["type"] == "no_context"
        assert result["message"] == NO_PLAYER_CONTEXT_MESSAGE
        database.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_metric_asks_for_clarification(self):
        result = await make_layer(make_database()).process_query_async("What about Luke Bangs?")
        assert result["type"] == "unknown_metric"
        assert result["message"] == CLARIFY_METRIC_MESSAGE

    @pytest.mark.asyncio
    async def test_unsupported_team_metric(self):
        database = make_database()
        result = await make_layer(database).process_query_async("How many clean sheets have the 3s kept?")

        assert result["type"] == "unsupported_metric"
        assert result["metric"] == "CLS"
        database.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_streak_question_is_unsupported(self):
        """Test a consecutive-games question is refused instead of answered as a total."""
        database = make_database()
        result = await make_layer(database).process_query_async("Who has scored in the most consecutive games?")

        assert result["type"] == "unsupported_metric"
        assert result["message"] == STREAK_MESSAGE
        assert result["analysis"]["streak"] is True
        database.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_team_clean_sheet_ranking_is_unsupported(self):
        database = make_database()
        result = await make_layer(database).process_query_async("Which team has kept the most clean sheets?")

        assert result["type"] == "unsupported_metric"
        assert result["metric"] == "CLS"
        database.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_ranking_is_no_data(self):
        result = await make_layer(make_database([])).process_query_async("Who has scored the most goals?")
        assert result["type"] == "no_data"


class TestPipeline:
    """Test class for pipeline plumbing."""

    @pytest.mark.asyncio
    async def test_envelope_carries_trace_and_timing(self):
        result = await make_layer(make_database([{"name": "A"}])).process_query_async("Hello there")

        assert result["question"] == "Hello there"
        assert result["analysis"]["intent"] == "no_context"
        assert result["trace"]["queries"][0]["shape"] == "no_context_listing"
        assert result["trace"]["queries"][0]["rows"] == 1
        assert result["processing_time_ms"] >= 0
        assert "timestamp" in result

    @pytest.mark.asyncio
    async def test_multiple_questions(self):
        layer = make_layer(make_database([{"name": "A"}]))
        results = await layer.process_multiple_queries_async(["Hello", "What about the weather?"])
        assert [r["type"] for r in results] == ["no_context", "no_context"]

    @pytest.mark.asyncio
    async def test_catalogue_is_loaded_once(self):
        database = make_database([{"name": "Luke Bangs"}])
        layer = ClubIntelligenceLayer(database=database, name_resolver=EntityNameResolver())

        await layer.process_query_async("Hello")
        await layer.process_query_async("Hello")

        assert layer.name_resolver.has_catalogue
        # Four catalogue queries, then one listing query per question.
        assert database.execute.await_count == 6

    @pytest.mark.asyncio
    async def test_concurrent_questions_load_catalogue_once(self):
        database = make_database([{"name": "Luke Bangs"}])
        layer = ClubIntelligenceLayer(database=database, name_resolver=EntityNameResolver())

        results = await layer.process_multiple_queries_async(["Hello", "Hello", "Hello"])

        assert [r["type"] for r in results] == ["no_context"] * 3
        # Four catalogue queries, then one listing query per question.
        assert database.execute.await_count == 7
        assert not layer.load_catalogue

    @pytest.mark.asyncio
    async def test_catalogue_failure_does_not_block_answers(self):
        database = make_database(side_effect=GraphDatabaseError("down"))
        layer = ClubIntelligenceLayer(database=database, name_resolver=EntityNameResolver())
        result = await layer.process_query_async("Hello")

        assert result["type"] == "error"
        assert not layer.name_resolver.has_catalogue

    def test_sync_wrapper(self):
        result = make_layer(make_database([{"name": "A"}])).process_query("Hello")
        assert result["type"] == "no_context"

    @pytest.mark.asyncio
    async def test_close(self):
        database = make_database()
        await make_layer(database).close()
        database.close.assert_awaited_once()

    def test_missing_credentials(self, monkeypatch):
        for name in ("NEO4J_URI", "NEO4J_USER", "NEO4J_PASSWORD"):
            monkeypatch.delenv(name, raising=False)
        with pytest.raises(ValueError):
            ClubIntelligenceLayer()


class TestGraphDatabase:
    """Test class for the Neo4j executor wrapper."""

    def test_requires_credentials(self):
        with pytest.raises(ValueError):
            ClubGraphDatabase()

    @pytest.mark.asyncio
    async def test_timeout_is_a_typed_error(self):
        async def slow(query_text, params):
            await asyncio.sleep(1)

        database = ClubGraphDatabase(driver=MagicMock(), timeout_seconds=0.01)
        database._run = slow
        with pytest.raises(GraphDatabaseError):
            await database.execute("RETURN 1")

    @pytest.mark.asyncio
    async def test_driver_errors_are_typed(self):
        database = ClubGraphDatabase(driver=MagicMock())
        database._run = AsyncMock(side_effect=ServiceUnavailable("unreachable"))
        with pytest.raises(GraphDatabaseError):
            await database.execute("RETURN 1", {"graphLabel": "x"})

    @pytest.mark.asyncio
    async def test_rows_are_returned(self):
        database = ClubGraphDatabase(driver=MagicMock(), graph_label="testGraph")
        database._run = AsyncMock(return_value=[{"name": "A"}])
        assert await database.execute("RETURN 1") == [{"name": "A"}]
        assert database.graph_label == "testGraph"
