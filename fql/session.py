"""
FQL Session

The public entry point. A session ties together the query parser, the
current-project provider, the connection pool, the reference builder and
the executor.

Usage:
    session = Session(parser=parse, project_provider=lambda: "my-project")

    # one-shot
    result = await session.query("users/abc")

    # live, callback style
    subscription = await session.query("users", on_change=listener)
    ...
    subscription.cancel()

    # live, stream style
    async with await session.watch("users") as updates:
        async for result in updates:
            ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple, Union, overload

from fql.builder import ReferenceBuilder
from fql.config import FQLConfig
from fql.connections import ConnectionFactory, ConnectionPool
from fql.executor.engine import OnUpdate, QueryExecutor, Subscription, SubscriptionStream
from fql.executor.result import QueryResult
from fql.ir.classify import classify
from fql.ir.model import Component, ProjectionSpec, QueryType
from fql.ir.serialize import from_dict
from fql.store.base import Connection, StoreReference

logger = logging.getLogger(__name__)

Parser = Callable[[str], Sequence[Union[Component, Mapping[str, Any]]]]
ProjectProvider = Callable[[], str]


@dataclass(frozen=True)
class PreparedQuery:
    """A parsed, classified and built query, ready to execute."""

    query_string: str
    project: str
    components: Tuple[Component, ...]
    query_type: QueryType
    reference: StoreReference
    projection: ProjectionSpec


def firestore_factory(config: Optional[FQLConfig] = None) -> ConnectionFactory:
    """Connection factory creating one firebase app per project."""

    def factory(project: str) -> Connection:
        from fql.store.firestore import connect_firestore

        return connect_firestore(project, config)

    return factory


class Session:
    """
    Runs FQL query strings as one-shot reads or live subscriptions.

    Parse errors from the parser propagate unchanged. strict=True makes a
    collection expression on a non-collection reference an error instead of
    a logged no-op.
    """

    def __init__(
        self,
        parser: Parser,
        project_provider: ProjectProvider,
        pool: Optional[ConnectionPool] = None,
        connection_factory: Optional[ConnectionFactory] = None,
        executor: Optional[QueryExecutor] = None,
        strict: bool = False,
    ) -> None:
        self._parser = parser
        self._project_provider = project_provider
        self._pool = pool or ConnectionPool(connection_factory or firestore_factory())
        self._executor = executor or QueryExecutor()
        self._strict = strict

    @classmethod
    def from_config(cls, parser: Parser, config: Optional[FQLConfig] = None, **kwargs: Any) -> "Session":
        """A Firestore-backed session using FQL_* configuration."""
        config = config or FQLConfig.from_env()
        return cls(
            parser=parser,
            project_provider=config.project_provider(),
            connection_factory=firestore_factory(config),
            **kwargs,
        )

    @property
    def pool(self) -> ConnectionPool:
        return self._pool

    async def prepare(self, query_string: str) -> PreparedQuery:
        """
        Parse, classify and build a query without executing it.

        Raises:
            ParseError: If the query string is malformed
            StoreConnectionError: If the project's connection cannot be made
            StoreError: If the store rejects a navigation or refinement
        """
        components = tuple(from_dict(self._parser(query_string)))
        query_type = classify(components)
        project = self._project_provider()
        connection = await self._pool.get(project)
        built = ReferenceBuilder(connection, strict=self._strict).build(components)
        logger.debug(
            "Prepared %s query on %s for project %s",
            query_type.value,
            built.reference.path,
            project,
        )
        return PreparedQuery(
            query_string=query_string,
            project=project,
            components=components,
            query_type=query_type,
            reference=built.reference,
            projection=built.projection,
        )

    @overload
    async def query(self, query_string: str) -> QueryResult: ...

    @overload
    async def query(self, query_string: str, on_change: OnUpdate) -> Subscription: ...

    async def query(
        self, query_string: str, on_change: Optional[OnUpdate] = None
    ) -> Union[QueryResult, Subscription]:
        """
        Run a query.

        Without on_change, fetch once and return a QueryResult. With it,
        install a live subscription and return its handle; on_change is
        called as (result, None) or (None, error) on every update. A failure
        before the subscription is installed is passed to on_change and
        then raised.
        """
        if on_change is None:
            prepared = await self.prepare(query_string)
            return await self._executor.execute_once(
                prepared.query_type, prepared.reference, prepared.projection
            )

        try:
            prepared = await self.prepare(query_string)
            return self._executor.subscribe(
                prepared.query_type, prepared.reference, prepared.projection, on_change
            )
        except Exception as e:
            on_change(None, e)
            raise

    async def watch(self, query_string: str) -> SubscriptionStream:
        """Run a query live and read its updates as an async iterator."""
        prepared = await self.prepare(query_string)
        return self._executor.stream(
            prepared.query_type, prepared.reference, prepared.projection
        )

    def close(self) -> None:
        """Close every pooled connection."""
        self._pool.close()
