"""
FQL Query Executor

Runs a built reference in one of two modes:

- one-shot: execute_once() fetches once and returns a QueryResult
- live: subscribe() installs a standing listener and calls
  on_update(result, error) on every store notification; stream() offers
  the same deliveries as an async iterator

Every live query gets its own Subscription handle. Nothing is released
automatically: a subscription keeps firing until cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Tuple

from fql.errors import NotFoundError, StoreError
from fql.ir.model import ProjectionSpec, QueryType
from fql.store.base import (
    DocumentSnapshot,
    QuerySnapshot,
    Snapshot,
    StoreReference,
    Unsubscribe,
)

from .result import Document, QueryResult, document_from_snapshot

logger = logging.getLogger(__name__)

OnUpdate = Callable[[Optional[QueryResult], Optional[BaseException]], None]


class Subscription:
    """
    Handle for one live query.

    cancel() releases the underlying store listener. It is idempotent, and
    the handle works as a context manager that cancels on exit.
    """

    def __init__(self, query_type: QueryType, path: str) -> None:
        self.query_type = query_type
        self.path = path
        self.updates = 0
        self._unsubscribe: Optional[Unsubscribe] = None
        self._cancelled = False

    def __repr__(self) -> str:
        state = "active" if self.active else "cancelled"
        return f"Subscription({self.query_type.value}, {self.path!r}, {state})"

    @property
    def active(self) -> bool:
        """Whether the subscription still delivers updates."""
        return not self._cancelled

    def _attach(self, unsubscribe: Unsubscribe) -> None:
        self._unsubscribe = unsubscribe
        if self._cancelled:
            self._release()

    def _release(self) -> None:
        if self._unsubscribe is not None:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            unsubscribe()

    def cancel(self) -> None:
        """Release the store listener."""
        if self._cancelled:
            return
        self._cancelled = True
        self._release()
        logger.info("Cancelled subscription on %s", self.path)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.cancel()


_CLOSED = object()


class SubscriptionStream:
    """
    Live query deliveries as an async iterator.

    Each update yields a QueryResult; an error delivery is raised from the
    iteration. aclose() releases the store listener and ends iteration.

    Usage:
        async with executor.stream(query_type, reference, projection) as updates:
            async for result in updates:
                ...
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._subscription: Optional[Subscription] = None
        self._closed = False

    @property
    def subscription(self) -> Optional[Subscription]:
        """The underlying subscription handle."""
        return self._subscription

    @property
    def closed(self) -> bool:
        return self._closed

    def _attach(self, subscription: Subscription) -> None:
        self._subscription = subscription

    def _push(self, result: Optional[QueryResult], error: Optional[BaseException]) -> None:
        if not self._closed:
            self._queue.put_nowait((result, error))

    def __aiter__(self) -> "SubscriptionStream":
        return self

    async def __anext__(self) -> QueryResult:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        result, error = item
        if error is not None:
            raise error
        return result

    def cancel(self) -> None:
        """Release the store listener and end iteration."""
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self._subscription.cancel()
        self._queue.put_nowait(_CLOSED)

    async def aclose(self) -> None:
        self.cancel()

    async def __aenter__(self) -> "SubscriptionStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.cancel()


class QueryExecutor:
    """
    Executes built references and normalizes snapshots into QueryResults.

    The executor raises exactly one error of its own: NotFoundError for a
    DOCUMENT query on a missing document. Store failures pass through.
    """

    # ========== One-shot ==========

    async def execute_once(
        self,
        query_type: QueryType,
        reference: StoreReference,
        projection: ProjectionSpec,
    ) -> QueryResult:
        """
        Fetch once.

        Raises:
            NotFoundError: DOCUMENT query on a missing document
            StoreError: If the store fails the fetch
        """
        snapshot = await reference.get()
        logger.debug("Fetched %s %s", query_type.value, reference.path)

        if query_type == QueryType.DOCUMENT:
            document = self._document(snapshot, reference.path, projection)
            if document is None:
                raise NotFoundError(reference.path)
            documents = [document]
        else:
            documents = self._collection(snapshot, reference.path, projection)

        return QueryResult(documents=documents, projected=projection.active)

    # ========== Live ==========

    def subscribe(
        self,
        query_type: QueryType,
        reference: StoreReference,
        projection: ProjectionSpec,
        on_update: OnUpdate,
    ) -> Subscription:
        """
        Install a standing listener on a reference.

        Each notification calls on_update(result, None), or on_update(None,
        error) for a missing document or a store failure. No retry is made.
        """
        subscription = Subscription(query_type, reference.path)

        def deliver(result: Optional[QueryResult], error: Optional[BaseException]) -> None:
            if not subscription.active:
                return
            subscription.updates += 1
            try:
                on_update(result, error)
            except Exception:
                logger.exception("Listener for %s raised", reference.path)

        def on_snapshot(snapshot: Snapshot) -> None:
            try:
                result = self._live_result(query_type, snapshot, reference.path, projection)
            except (NotFoundError, StoreError) as e:
                deliver(None, e)
                return
            deliver(result, None)

        def on_error(error: BaseException) -> None:
            logger.warning("Store error on %s: %s", reference.path, error)
            deliver(None, error)

        subscription._attach(reference.subscribe(on_snapshot, on_error))
        logger.info("Subscribed to %s %s", query_type.value, reference.path)
        return subscription

    def stream(
        self,
        query_type: QueryType,
        reference: StoreReference,
        projection: ProjectionSpec,
    ) -> SubscriptionStream:
        """Install a standing listener whose deliveries are read as an async iterator."""
        stream = SubscriptionStream()
        stream._attach(self.subscribe(query_type, reference, projection, stream._push))
        return stream

    # ========== Normalization ==========

    def _live_result(
        self,
        query_type: QueryType,
        snapshot: Snapshot,
        path: str,
        projection: ProjectionSpec,
    ) -> QueryResult:
        if query_type == QueryType.DOCUMENT:
            document = self._document(snapshot, path, projection)
            if document is None:
                raise NotFoundError(path)
            return QueryResult(documents=[document], projected=projection.active)
        return QueryResult(
            documents=self._collection(snapshot, path, projection),
            projected=projection.active,
        )

    @staticmethod
    def _fields(projection: ProjectionSpec) -> Tuple[str, ...]:
        return projection.fields if projection.active else ()

    def _document(
        self, snapshot: Snapshot, path: str, projection: ProjectionSpec
    ) -> Optional[Document]:
        if not isinstance(snapshot, DocumentSnapshot):
            raise StoreError("Expected a document snapshot", path=path)
        if not snapshot.exists:
            return None
        return document_from_snapshot(snapshot, self._fields(projection))

    def _collection(
        self, snapshot: Snapshot, path: str, projection: ProjectionSpec
    ) -> List[Document]:
        if not isinstance(snapshot, QuerySnapshot):
            raise StoreError("Expected a collection snapshot", path=path)
        fields = self._fields(projection)
        return [document_from_snapshot(s, fields) for s in snapshot if s.exists]
