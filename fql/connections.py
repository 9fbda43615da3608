"""
Connection pool keyed by project identity.

One store connection per project, created on first use and reused for
every later query against that project. Concurrent first use of the same
project creates the connection once: creation is memoized as a future
under a lock. A failed creation is not memoized, so the next call retries.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Union

from fql.errors import FQLError, StoreConnectionError
from fql.store.base import Connection

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[str], Union[Connection, Awaitable[Connection]]]


class ConnectionPool:
    """
    Maps project identities to store connections.

    Usage:
        pool = ConnectionPool(lambda project: connect_firestore(project, config))
        connection = await pool.get("my-project")
    """

    def __init__(self, factory: ConnectionFactory) -> None:
        self._factory = factory
        self._connections: Dict[str, "asyncio.Future[Connection]"] = {}
        self._lock: Optional[asyncio.Lock] = None

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def get(self, project: str) -> Connection:
        """
        Return the connection for a project, creating it once.

        Raises:
            StoreConnectionError: If the factory fails
        """
        async with self._get_lock():
            future = self._connections.get(project)
            if future is None:
                future = asyncio.get_running_loop().create_future()
                self._connections[project] = future
                creator = True
            else:
                creator = False

        if not creator:
            return await asyncio.shield(future)

        try:
            connection = await self._create(project)
        except BaseException as e:
            async with self._get_lock():
                self._connections.pop(project, None)
            if isinstance(e, asyncio.CancelledError):
                future.cancel()
            else:
                future.set_exception(e)
                # Mark retrieved so an unawaited failure is not reported as lost
                future.exception()
            raise

        future.set_result(connection)
        logger.info("Connected to project %s", project)
        return connection

    async def _create(self, project: str) -> Connection:
        try:
            connection = self._factory(project)
            if inspect.isawaitable(connection):
                connection = await connection
        except FQLError:
            raise
        except Exception as e:
            raise StoreConnectionError(project, str(e), e) from e
        return connection

    def __contains__(self, project: str) -> bool:
        future = self._connections.get(project)
        return future is not None and future.done() and not future.cancelled()

    @property
    def projects(self) -> List[str]:
        """Projects with an established connection."""
        return [p for p in self._connections if p in self]

    def close(self) -> None:
        """Close every established connection and forget them."""
        for project, future in list(self._connections.items()):
            if future.done() and not future.cancelled() and future.exception() is None:
                future.result().close()
                logger.info("Closed connection to project %s", project)
        self._connections.clear()
