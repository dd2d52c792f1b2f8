"""Execution collaborator for built queries.

The query builder only produces ``(text, params)`` pairs; this module opens
the driver, sends them to the server and streams rows back. Driver
exceptions are logged with their error context and re-raised unchanged.
"""

from collections.abc import AsyncGenerator, AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any, Generic, LiteralString, TypeVar, cast

from neo4j import AsyncDriver, AsyncGraphDatabase, AsyncResult

from neoquery.core import ErrorLevel
from neoquery.core.config import settings
from neoquery.core.decorators import with_error_handling
from neoquery.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Transformer = Callable[[Any], T]


def _loggable_params(params: dict[str, Any] | None) -> dict[str, Any] | list[str]:
    if settings.log_query_params:
        return params or {}
    return sorted(params or {})


def _leading_clause(query: str) -> str:
    words = query.split(maxsplit=1)
    return words[0].upper() if words else ""


async def create_neo4j_driver(
    max_connection_pool_size: int | None = None,
    max_connection_lifetime: int | None = None,
) -> AsyncGenerator[AsyncDriver, None]:
    """Open a driver from ``settings`` and close it when the generator is finalized.

    Args:
        max_connection_pool_size: Overrides ``settings.neo4j_max_connection_pool_size``
        max_connection_lifetime: Overrides ``settings.neo4j_max_connection_lifetime`` (seconds)

    Yields:
        AsyncDriver: Driver whose connectivity has been verified
    """
    options = {
        "max_connection_pool_size": max_connection_pool_size or settings.neo4j_max_connection_pool_size,
        "max_connection_lifetime": max_connection_lifetime or settings.neo4j_max_connection_lifetime,
    }
    logger.info("Creating Neo4j driver", extra={"uri": settings.neo4j_uri, **options})

    driver = AsyncGraphDatabase.driver(
        settings.neo4j_uri,
        auth=(settings.neo4j_user, settings.neo4j_password.get_secret_value()),
        **options,
    )
    try:
        await driver.verify_connectivity()
        logger.info("Neo4j connection established")
        yield driver
    finally:
        await driver.close()
        logger.info("Neo4j driver closed")


class Neo4jQuery(Generic[T]):
    """Runs built queries on one driver, optionally against a named database."""

    def __init__(self, driver: AsyncDriver, database: str | None = None) -> None:
        self.driver: AsyncDriver = driver
        self.database = database or settings.neo4j_database

    @asynccontextmanager
    async def _result(self, query: LiteralString, params: dict[str, Any] | None) -> AsyncIterator[AsyncResult]:
        logger.debug(
            "Executing Neo4j query",
            extra={
                "query_type": _leading_clause(query),
                "database": self.database,
                "params": _loggable_params(params),
            },
        )
        session = self.driver.session(database=self.database) if self.database else self.driver.session()
        async with session:
            yield await session.run(query, parameters=params or {})

    @staticmethod
    def _transform(record: Any, result_transformer: Transformer[T] | None) -> T:
        return result_transformer(record) if result_transformer else cast("T", record)

    @with_error_handling(error_level=ErrorLevel.ERROR)
    async def execute_list(
        self,
        query: LiteralString,
        params: dict[str, Any] | None = None,
        result_transformer: Transformer[T] | None = None,
    ) -> list[T]:
        """Return every row, in server order.

        Args:
            query: Cypher text, as produced by ``QueryBuilder.build``
            params: Query parameters
            result_transformer: Optional per-record mapping

        Returns:
            Records, transformed if a transformer was given
        """
        async with self._result(query, params) as result:
            rows = [self._transform(record, result_transformer) async for record in result]

        logger.debug("Query returned rows", extra={"row_count": len(rows)})
        return rows

    @with_error_handling(error_level=ErrorLevel.ERROR)
    async def execute_single(
        self,
        query: LiteralString,
        params: dict[str, Any] | None = None,
        result_transformer: Transformer[T] | None = None,
    ) -> T | None:
        """Return the first row, or None when the query matched nothing."""
        async with self._result(query, params) as result:
            record = await result.single(strict=False)
        if not record:
            return None
        return self._transform(record, result_transformer)


def create_neo4j_query(driver: AsyncDriver, database: str | None = None) -> Neo4jQuery[Any]:
    return Neo4jQuery(driver, database)
