"""
Main entry point for the Club Intelligence Layer.
Demonstrates the complete end-to-end flow: Question → Analysis → Cypher → Results
Questions are answered through the async pipeline; several can run concurrently.
"""

import os
import sys
import json
import logging
import time
import asyncio
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List

from dotenv import load_dotenv

from .config.club_vocabulary import MetricKey, MetricKind, get_vocabulary_registry
from .src.alias_resolver import EntityNameResolver
from .src.graph_database import ClubGraphDatabase, GraphDatabaseError, DEFAULT_GRAPH_LABEL, DEFAULT_TIMEOUT_SECONDS
from .src.question_analyzer import QuestionAnalyzer, QuestionAnalysis, QuestionIntent, QueryContext
from .src.query_builder import QueryBuilder, SynthesizedQuery, UnsupportedMetricError
from .src.ranking_builder import RankingBuilder
from .src.request_trace import RequestTrace
from .src.result_normalizer import ResponseType, build_response, normalize_rows

logger = logging.getLogger(__name__)

STORE_ERROR_MESSAGE = "Sorry, I couldn't retrieve that data right now. Please try again later."
UNEXPECTED_ERROR_MESSAGE = "Sorry, something went wrong while answering that question."
NO_PLAYER_CONTEXT_MESSAGE = "No player context provided"
CLARIFY_METRIC_MESSAGE = (
    "I need to know what statistic you're asking about. "
    "Please specify what information you want (goals, appearances, etc.)."
)
NO_CONTEXT_MESSAGE = "I couldn't tell which player, team or statistic you mean. Here are some players you can ask about."
STREAK_MESSAGE = "Sorry, I can't answer questions about consecutive-game streaks yet. Try asking for a total instead."

_PLAYER_INTENTS = {
    QuestionIntent.PAIRWISE_RELATIONSHIP,
    QuestionIntent.RELATIONSHIP,
    QuestionIntent.HISTORICAL_AWARD,
    QuestionIntent.SPECIFIC_ENTITY,
}


class ClubIntelligenceLayer:
    """
    Main class that orchestrates the complete end-to-end flow:
    Question → Analysis → Cypher → Results
    """

    def __init__(self, neo4j_uri: Optional[str] = None, neo4j_user: Optional[str] = None,
                 neo4j_password: Optional[str] = None, graph_label: Optional[str] = None,
                 timeout_seconds: Optional[float] = None, database=None,
                 name_resolver: Optional[EntityNameResolver] = None,
                 load_catalogue: bool = True):
        """
        Initialize the Club Intelligence Layer.

        Args:
            neo4j_uri: Bolt/Neo4j URI of the club graph
            neo4j_user: Neo4j user name
            neo4j_password: Neo4j password
            graph_label: graphLabel value scoping every node
            timeout_seconds: Upper bound for one store round trip
            database: Pre-built executor (anything with ``execute`` and ``graph_label``)
            name_resolver: Pre-loaded entity name resolver
            load_catalogue: Load known names from the graph before the first question
        """
        # Load environment variables
        load_dotenv()

        self.graph_label = graph_label or os.getenv('GRAPH_LABEL', DEFAULT_GRAPH_LABEL)
        self.timeout_seconds = timeout_seconds or float(os.getenv('QUERY_TIMEOUT_SECONDS', DEFAULT_TIMEOUT_SECONDS))

        if database is None:
            self.neo4j_uri = neo4j_uri or os.getenv('NEO4J_URI')
            self.neo4j_user = neo4j_user or os.getenv('NEO4J_USER')
            self.neo4j_password = neo4j_password or os.getenv('NEO4J_PASSWORD')

            if not self.neo4j_uri or not self.neo4j_user or not self.neo4j_password:
                raise ValueError(
                    "Neo4j credentials not found. Please set NEO4J_URI, NEO4J_USER and "
                    "NEO4J_PASSWORD environment variables or pass them directly."
                )
            database = ClubGraphDatabase(
                self.neo4j_uri, self.neo4j_user, self.neo4j_password,
                graph_label=self.graph_label,
                timeout_seconds=self.timeout_seconds,
                database=os.getenv('NEO4J_DATABASE') or None,
            )
        else:
            self.graph_label = getattr(database, 'graph_label', self.graph_label)

        # Initialize components
        self.database = database
        self.registry = get_vocabulary_registry()
        self.name_resolver = name_resolver or EntityNameResolver()
        self.analyzer = QuestionAnalyzer(self.registry, name_resolver=self.name_resolver)
        self.query_builder = QueryBuilder(self.graph_label, self.registry)
        self.ranking_builder = RankingBuilder(self.graph_label, self.registry)
        self.load_catalogue = load_catalogue and not self.name_resolver.has_catalogue

    def process_query(self, question: str, context: Optional[QueryContext] = None) -> Dict[str, Any]:
        """
        Sync wrapper for the async process_query_async method.

        Args:
            question: Natural language question
            context: Optional filters selected outside the question

        Returns:
            Response envelope with the answer, trace and timing
        """
        return asyncio.run(self.process_query_async(question, context))

    async def process_query_async(self, question: str, context: Optional[QueryContext] = None) -> Dict[str, Any]:
        """
        Answer one question through the complete async pipeline.

        Args:
            question: Natural language question (e.g., "How many goals have I scored this season?")
            context: Optional filters selected outside the question

        Returns:
            Response envelope with the answer, trace and timing
        """
        start_time = time.time()
        trace = RequestTrace(question)
        analysis: Optional[QuestionAnalysis] = None

        try:
            if self.load_catalogue:
                await self.load_entity_catalogue()

            # Step 1: Analyze the question
            analysis = self.analyzer.analyze(question, context)
            trace.record("analysis", intent=analysis.intent.value,
                         metrics=[m.value for m in analysis.metrics])

            # Step 2: Build and execute the query
            response = await self._answer(analysis, trace)

        except GraphDatabaseError as e:
            logger.error(f"❌ Store failure for '{question}': {e}")
            response = build_response(ResponseType.ERROR, message=STORE_ERROR_MESSAGE)
        except Exception:
            logger.exception(f"❌ Unexpected failure for '{question}'")
            response = build_response(ResponseType.ERROR, message=UNEXPECTED_ERROR_MESSAGE)

        processing_time = (time.time() - start_time) * 1000
        trace.record("done", type=response["type"])
        response.update({
            "question": question,
            "analysis": analysis.to_dict() if analysis else None,
            "trace": trace.to_dict(),
            "timestamp": self._get_timestamp(),
            "processing_time_ms": processing_time,
        })
        return response

    async def process_multiple_queries_async(self, questions: List[str],
                                             context: Optional[QueryContext] = None) -> List[Dict[str, Any]]:
        """Answer several questions concurrently."""
        if self.load_catalogue:
            await self.load_entity_catalogue()
        tasks = [self.process_query_async(question, context) for question in questions]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        processed_results = []
        for i, result in enumerate(results):
            if isinstance(result, Exception):
                logger.error(f"❌ Question {i} failed: {result}")
                envelope = build_response(ResponseType.ERROR, message=UNEXPECTED_ERROR_MESSAGE)
                envelope.update({"question": questions[i], "timestamp": self._get_timestamp(),
                                 "processing_time_ms": 0})
                processed_results.append(envelope)
            else:
                processed_results.append(result)
        return processed_results

    async def load_entity_catalogue(self) -> None:
        """Load known player, team, opposition and league names from the graph."""
        catalogue: Dict[str, List[str]] = {}
        try:
            for category in ("player", "team", "opposition", "league"):
                query = self.query_builder.build_catalogue_query(category)
                rows = await self.database.execute(query.text, query.params)
                catalogue[category] = [row["name"] for row in rows if isinstance(row.get("name"), str)]
        except GraphDatabaseError as e:
            logger.warning(f"⚠️ Entity catalogue unavailable, names will not be validated: {e}")
            return
        self.name_resolver.load_catalogue(catalogue)
        self.load_catalogue = False

    async def close(self) -> None:
        """Close the underlying graph connection."""
        close = getattr(self.database, 'close', None)
        if close is not None:
            await close()

    def _get_timestamp(self) -> str:
        """Get current timestamp in ISO format."""
        return datetime.now(timezone.utc).isoformat()

    # ---------- Dispatch ----------

    async def _execute(self, query: SynthesizedQuery, trace: RequestTrace) -> List[Dict[str, Any]]:
        rows = await self.database.execute(query.text, query.params)
        normalized = normalize_rows(rows, query.nullable_fields)
        trace.record_query(query, len(normalized))
        return normalized

    async def _answer(self, analysis: QuestionAnalysis, trace: RequestTrace) -> Dict[str, Any]:
        if analysis.unresolved_names:
            name = analysis.unresolved_names[0]
            return build_response(
                ResponseType.PLAYER_NOT_FOUND,
                message=(f'I couldn\'t find a player named "{name}" in the database. '
                         "Please check the spelling or try a different player name."),
                playerName=name,
                suggestions=self.name_resolver.suggestions(name, "player"),
            )
        if analysis.missing_player_context and analysis.intent in _PLAYER_INTENTS:
            return build_response(ResponseType.NO_CONTEXT, message=NO_PLAYER_CONTEXT_MESSAGE)
        if analysis.streak:
            return build_response(ResponseType.UNSUPPORTED_METRIC, message=STREAK_MESSAGE,
                                  metric=analysis.metric.value if analysis.metric else None)

        try:
            if analysis.intent is QuestionIntent.PAIRWISE_RELATIONSHIP:
                return await self._answer_pairwise(analysis, trace)
            if analysis.intent is QuestionIntent.RELATIONSHIP:
                return await self._answer_most_played_with(analysis, analysis.player, trace)
            if analysis.intent is QuestionIntent.OPPOSITION_AGGREGATE:
                return await self._answer_opponents(analysis, analysis.player, trace)
            if analysis.intent is QuestionIntent.HISTORICAL_AWARD:
                return await self._answer_award(analysis, trace)
            if analysis.intent is QuestionIntent.RANKING:
                return await self._answer_ranking(analysis, trace)
            if analysis.intent is QuestionIntent.SPECIFIC_ENTITY:
                return await self._answer_specific(analysis, trace)
            return await self._answer_no_context(trace)
        except UnsupportedMetricError as e:
            logger.info(f"Unsupported metric {e.metric.value if e.metric else None}: {e}")
            return build_response(e.response_type, message=str(e),
                                  metric=e.metric.value if e.metric else None)

    async def _answer_pairwise(self, analysis: QuestionAnalysis, trace: RequestTrace) -> Dict[str, Any]:
        player_one, player_two = analysis.players[0], analysis.players[1]
        query = self.query_builder.build_games_played_together(analysis, player_one, player_two)
        rows = await self._execute(query, trace)
        games = rows[0]["gamesTogether"] if rows else 0
        return build_response(ResponseType.RELATIONSHIP, data=[{
            "playerName1": player_one,
            "playerName2": player_two,
            "gamesTogether": games,
        }])

    async def _answer_most_played_with(self, analysis: QuestionAnalysis, player_name: str,
                                       trace: RequestTrace) -> Dict[str, Any]:
        query = self.query_builder.build_most_played_with(analysis, player_name)
        rows = await self._execute(query, trace)
        if not rows:
            return build_response(ResponseType.NO_DATA, message=f"No teammates found for {player_name}.")
        return build_response(ResponseType.RELATIONSHIP, data=rows, playerName=player_name)

    async def _answer_opponents(self, analysis: QuestionAnalysis, player_name: Optional[str],
                                trace: RequestTrace) -> Dict[str, Any]:
        query = self.query_builder.build_opponents(analysis, player_name)
        rows = await self._execute(query, trace)
        if not rows:
            return build_response(ResponseType.NO_DATA, message="No opposition data found.")
        return build_response(ResponseType.OPPOSITION_AGGREGATE, data=rows, playerName=player_name)

    async def _answer_award(self, analysis: QuestionAnalysis, trace: RequestTrace) -> Dict[str, Any]:
        metric = next(m for m in analysis.metrics if self.registry.metric(m).kind is MetricKind.AWARD)
        query = self.query_builder.build_award(analysis, analysis.player, metric)
        rows = await self._execute(query, trace)
        return build_response(ResponseType.HISTORICAL_AWARD, data=rows, metric=metric.value,
                              playerName=analysis.player, shape=query.shape)

    async def _answer_ranking(self, analysis: QuestionAnalysis, trace: RequestTrace) -> Dict[str, Any]:
        plan = self.ranking_builder.build(analysis)
        rows = await self._execute(plan.query, trace)
        if not rows:
            return build_response(ResponseType.NO_DATA, message="No data found for that ranking.",
                                  metric=plan.metric.value)
        return build_response(
            ResponseType.RANKING,
            data=rows[:plan.requested_limit],
            fullData=rows,
            metric=plan.metric.value,
            requestedLimit=plan.requested_limit,
            expandableLimit=plan.expandable_limit,
        )

    async def _answer_specific(self, analysis: QuestionAnalysis, trace: RequestTrace) -> Dict[str, Any]:
        if not analysis.metrics:
            return build_response(ResponseType.UNKNOWN_METRIC, message=CLARIFY_METRIC_MESSAGE)

        player = analysis.player
        if player:
            metric = analysis.metric
            if metric is MetricKey.CO_PLAYERS:
                return await self._answer_most_played_with(analysis, player, trace)
            if metric is MetricKey.OPPONENTS:
                return await self._answer_opponents(analysis, player, trace)
            if self.registry.metric(metric).kind is MetricKind.AWARD:
                return await self._answer_award(analysis, trace)

        data = []
        for metric in analysis.metrics:
            if player:
                query = self.query_builder.build_specific_player(analysis, player, metric)
            else:
                query = self.query_builder.build_specific_team(analysis, metric)
            rows = await self._execute(query, trace)
            for row in rows:
                value = row.get("value")
                config = self.registry.metric(metric)
                data.append({
                    "metric": metric.value,
                    "displayName": (self.registry.display_name(metric, value)
                                    if isinstance(value, (int, float)) else config.display_name),
                    **row,
                })

        if not data:
            subject = player or analysis.team
            return build_response(ResponseType.NO_DATA, message=f"No data found for {subject}.")
        return build_response(ResponseType.SPECIFIC_ENTITY, data=data,
                              playerName=player, teamName=None if player else analysis.team)

    async def _answer_no_context(self, trace: RequestTrace) -> Dict[str, Any]:
        query = self.query_builder.build_no_context()
        rows = await self._execute(query, trace)
        return build_response(ResponseType.NO_CONTEXT, data=rows, message=NO_CONTEXT_MESSAGE)


def print_query_result(question: str, result: Dict[str, Any], query_num: int = None):
    """Print a response envelope in a clean format."""
    header = f"Question {query_num}: " if query_num else "Question: "
    print(f"\n{header}{question}")
    print("-" * 80)

    response_type = result.get('type')
    processing_time = result.get('processing_time_ms', 0)

    if response_type == ResponseType.ERROR.value:
        print(f"❌ Error: {result.get('message', 'Unknown error')}")
        return
    if response_type in (ResponseType.PLAYER_NOT_FOUND.value, ResponseType.UNKNOWN_METRIC.value,
                         ResponseType.UNSUPPORTED_METRIC.value, ResponseType.NO_DATA.value):
        print(f"❓ {result.get('message')}")
        suggestions = result.get('suggestions')
        if suggestions:
            print(f"💡 Did you mean: {', '.join(suggestions)}?")
        return

    print(f"✅ {response_type} ({processing_time:.1f}ms)")
    if response_type == ResponseType.RANKING.value:
        print(f"🏆 {result.get('metric')} (showing {result.get('requestedLimit')} of "
              f"up to {result.get('expandableLimit')})")
        for i, row in enumerate(result.get('data', []), 1):
            name = row.get('playerName') or row.get('teamName')
            print(f"   {i}. {name}: {row.get('value')}")
    elif result.get('message'):
        print(f"ℹ️  {result['message']}")
        print(f"   {json.dumps(result.get('data', [])[:10], default=str)}")
    else:
        for row in result.get('data', []):
            print(f"📊 {json.dumps(row, default=str)}")


def main():
    """
    Main function - answers questions given on the command line, or a demo set.
    """
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler('club_intelligence.log', mode='w')  # Only log to file
        ]
    )

    print("🚀 Club Intelligence Layer")
    print("=" * 80)

    try:
        print("⚙️  Initializing...")
        cil = ClubIntelligenceLayer()
        print("✅ Ready!")
    except ValueError as e:
        print(f"❌ Failed to initialize: {e}")
        return 1

    questions = sys.argv[1:] or [
        "Who has scored the most goals?",
        "Who has the worst penalty record?",
        "Goals per game for players with more than 5 games",
        "Which team has scored the most goals?",
        "How many appearances have the 2s made this season?",
        "Who are the top 3 assist providers for the 3s?",
    ]

    context = QueryContext(player_name=os.getenv('CLUB_PLAYER') or None)
    results = asyncio.run(cil.process_multiple_queries_async(questions, context))
    for i, (question, result) in enumerate(zip(questions, results), 1):
        print_query_result(question, result, i)

    print("\n" + "=" * 80)
    print("🎯 All questions completed!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
