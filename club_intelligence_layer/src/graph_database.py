"""Club Graph Database Interface (async version).

- Uses the async Neo4j driver (AsyncGraphDatabase)
- One round trip per query, bounded by a timeout
- A driver belongs to the event loop that created it; a new loop gets a new driver
- Driver, network and timeout failures surface as GraphDatabaseError
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from neo4j import AsyncGraphDatabase, AsyncDriver
from neo4j.exceptions import DriverError, Neo4jError

logger = logging.getLogger(__name__)

DEFAULT_GRAPH_LABEL = "dorkiniansWebsite"
DEFAULT_TIMEOUT_SECONDS = 10.0


class GraphDatabaseError(Exception):
    """Base exception for graph store operations."""

    pass


class ClubGraphDatabase:
    """Executor for parameterized Cypher against the club graph."""

    def __init__(self, uri: Optional[str] = None, user: Optional[str] = None, password: Optional[str] = None,
                 graph_label: str = DEFAULT_GRAPH_LABEL, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
                 database: Optional[str] = None, driver: Optional[AsyncDriver] = None):
        if driver is None and not (uri and user and password):
            raise ValueError("Neo4j URI, user and password are required")
        self._uri = uri
        self._auth = (user, password)
        self._driver = driver
        self._driver_loop = None
        self._owns_driver = driver is None
        self._graph_label = graph_label
        self.timeout_seconds = timeout_seconds
        self.database = database

    @property
    def graph_label(self) -> str:
        return self._graph_label

    def _get_driver(self) -> AsyncDriver:
        if not self._owns_driver:
            return self._driver
        loop = asyncio.get_running_loop()
        if self._driver is None or self._driver_loop is not loop:
            logger.info(f"🔌 Opening Neo4j driver for {self._uri}")
            self._driver = AsyncGraphDatabase.driver(self._uri, auth=self._auth)
            self._driver_loop = loop
        return self._driver

    async def _run(self, query_text: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        async with self._get_driver().session(database=self.database) as session:
            result = await session.run(query_text, params)
            return await result.data()

    async def execute(self, query_text: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run one query and return its rows as dicts."""
        params = params or {}
        logger.debug(f"Executing query with params {sorted(params)}")
        try:
            rows = await asyncio.wait_for(self._run(query_text, params), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.error(f"⏱️ Query timed out after {self.timeout_seconds}s")
            raise GraphDatabaseError(f"Query timed out after {self.timeout_seconds}s") from e
        except (Neo4jError, DriverError, OSError) as e:
            logger.error(f"❌ Query failed: {e}")
            raise GraphDatabaseError(f"Query failed: {e}") from e
        logger.debug(f"Query returned {len(rows)} rows")
        return rows

    async def close(self) -> None:
        if self._driver is not None:
            await self._driver.close()
            if self._owns_driver:
                self._driver = None
                self._driver_loop = None
