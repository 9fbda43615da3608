"""
In-memory document store.

Implements the store capability set in process so the engine can run
locally and in tests. Semantics follow the hosted store the engine was
built against:

- collections and documents alternate along a slash-separated path
- documents missing a filtered or ordered field are excluded
- default order is by document id
- listeners receive the current snapshot on registration and a full
  snapshot after every write that affects them

Listener delivery is synchronous with the write.
"""

from __future__ import annotations

import copy
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from fql.errors import StoreError
from fql.ir.model import Direction

from .base import (
    MISSING,
    DocumentSnapshot,
    ErrorCallback,
    QuerySnapshot,
    Snapshot,
    SnapshotCallback,
    Unsubscribe,
    resolve_field,
)

logger = logging.getLogger(__name__)

Segments = Tuple[str, ...]


def _array_contains(actual: Any, expected: Any) -> bool:
    return isinstance(actual, list) and expected in actual


def _array_contains_any(actual: Any, expected: Any) -> bool:
    return isinstance(actual, list) and any(e in actual for e in expected)


OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
    "in": lambda a, b: a in b,
    "not-in": lambda a, b: a not in b,
    "array-contains": _array_contains,
    "array-contains-any": _array_contains_any,
}

_LIST_OPERATORS = ("in", "not-in", "array-contains-any")


def split_path(path: str) -> Segments:
    """Split a slash-separated path into segments, ignoring empty ones."""
    return tuple(part for part in path.split("/") if part)


def _check_name(name: str) -> None:
    if not isinstance(name, str) or not name or "/" in name:
        raise StoreError(f"Invalid path segment: {name!r}")


@dataclass(frozen=True)
class _Filter:
    field: str
    operator: str
    value: Any

    def matches(self, data: Dict[str, Any]) -> bool:
        actual = resolve_field(data, self.field)
        if actual is MISSING:
            return False
        try:
            return bool(OPERATORS[self.operator](actual, self.value))
        except TypeError:
            # Values of incomparable types never match
            return False


class InMemoryReference:
    """A location in an InMemoryStore, optionally refined."""

    def __init__(
        self,
        store: "InMemoryStore",
        segments: Segments,
        filters: Tuple[_Filter, ...] = (),
        orders: Tuple[Tuple[str, Direction], ...] = (),
        limit_count: Optional[int] = None,
    ) -> None:
        self._store = store
        self.segments = segments
        self.filters = filters
        self.orders = orders
        self.limit_count = limit_count

    def __repr__(self) -> str:
        return f"InMemoryReference({self.path!r})"

    @property
    def path(self) -> str:
        return "/".join(self.segments)

    @property
    def is_refined(self) -> bool:
        """Whether any filter, sort key or limit has been applied."""
        return bool(self.filters or self.orders or self.limit_count is not None)

    def is_collection(self) -> bool:
        return len(self.segments) % 2 == 1

    def is_document(self) -> bool:
        return bool(self.segments) and len(self.segments) % 2 == 0

    # ========== Navigation ==========

    def collection(self, name: str) -> "InMemoryReference":
        _check_name(name)
        if self.is_collection():
            raise StoreError(
                f"Cannot open collection '{name}' inside collection", path=self.path
            )
        return InMemoryReference(self._store, self.segments + (name,))

    def document(self, name: str) -> "InMemoryReference":
        _check_name(name)
        if not self.is_collection() or self.is_refined:
            raise StoreError(
                f"Cannot open document '{name}' outside a plain collection", path=self.path
            )
        return InMemoryReference(self._store, self.segments + (name,))

    # ========== Refinement ==========

    def _refined(self, **changes: Any) -> "InMemoryReference":
        state = {
            "filters": self.filters,
            "orders": self.orders,
            "limit_count": self.limit_count,
        }
        state.update(changes)
        return InMemoryReference(self._store, self.segments, **state)

    def _require_collection(self, operation: str) -> None:
        if not self.is_collection():
            raise StoreError(f"'{operation}' requires a collection reference", path=self.path)

    def where(self, field: str, operator: str, value: Any) -> "InMemoryReference":
        self._require_collection("where")
        if operator not in OPERATORS:
            raise StoreError(f"Unsupported filter operator: {operator!r}", path=self.path)
        if operator in _LIST_OPERATORS and not isinstance(value, (list, tuple)):
            raise StoreError(f"Operator '{operator}' requires a list value", path=self.path)
        return self._refined(filters=self.filters + (_Filter(field, operator, value),))

    def order_by(self, field: str, direction: Direction = Direction.ASCENDING) -> "InMemoryReference":
        self._require_collection("order_by")
        return self._refined(orders=self.orders + ((field, Direction(direction)),))

    def limit(self, count: int) -> "InMemoryReference":
        self._require_collection("limit")
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise StoreError(f"Limit must be a positive integer, got {count!r}", path=self.path)
        return self._refined(limit_count=count)

    # ========== Reads ==========

    async def get(self) -> Snapshot:
        return self._store.snapshot(self)

    def subscribe(self, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Unsubscribe:
        return self._store.add_listener(self, on_snapshot, on_error)


@dataclass
class _Listener:
    reference: InMemoryReference
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback

    def covers(self, segments: Segments) -> bool:
        ref = self.reference
        if ref.is_document():
            return ref.segments == segments
        if ref.is_collection():
            return ref.segments == segments[:-1]
        return False


class InMemoryStore:
    """
    In-process document store implementing the Connection protocol.

    Usage:
        store = InMemoryStore({"users/abc": {"name": "A"}})
        ref = store.root().collection("users").document("abc")
    """

    def __init__(self, documents: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self._documents: Dict[Segments, Dict[str, Any]] = {}
        self._listeners: Dict[int, _Listener] = {}
        self._ids = itertools.count()
        self.closed = False
        for path, data in (documents or {}).items():
            self._documents[self._document_segments(path)] = copy.deepcopy(dict(data))

    # ========== Connection protocol ==========

    def root(self) -> InMemoryReference:
        return InMemoryReference(self, ())

    def close(self) -> None:
        """Drop every listener and mark the store closed."""
        self._listeners.clear()
        self.closed = True

    # ========== Writes ==========

    @staticmethod
    def _document_segments(path: str) -> Segments:
        segments = split_path(path)
        if not segments or len(segments) % 2:
            raise StoreError(f"Not a document path: {path!r}", path=path)
        return segments

    def set(self, path: str, data: Mapping[str, Any]) -> None:
        """Create or replace the document at path."""
        segments = self._document_segments(path)
        self._documents[segments] = copy.deepcopy(dict(data))
        self._notify(segments)

    def delete(self, path: str) -> None:
        """Remove the document at path. Missing documents are ignored."""
        segments = self._document_segments(path)
        if self._documents.pop(segments, None) is None:
            return
        self._notify(segments)

    def fail(self, path: str, error: BaseException) -> None:
        """Deliver a transport error to every listener on path."""
        segments = split_path(path)
        for listener in list(self._listeners.values()):
            if listener.reference.segments == segments:
                listener.on_error(error)

    # ========== Reads ==========

    @property
    def listener_count(self) -> int:
        """Number of active listeners."""
        return len(self._listeners)

    def paths(self) -> List[str]:
        """Every stored document path, sorted."""
        return sorted("/".join(s) for s in self._documents)

    def snapshot(self, reference: InMemoryReference) -> Snapshot:
        """Current state of a reference."""
        if reference.is_document():
            data = self._documents.get(reference.segments)
            return DocumentSnapshot(
                path=reference.path,
                data=copy.deepcopy(data) if data is not None else None,
                exists=data is not None,
            )
        if reference.is_collection():
            return QuerySnapshot(documents=tuple(self._run_query(reference)))
        raise StoreError("Cannot read the store root", path=reference.path)

    def _run_query(self, reference: InMemoryReference) -> List[DocumentSnapshot]:
        depth = len(reference.segments)
        rows = [
            (segments, data)
            for segments, data in self._documents.items()
            if len(segments) == depth + 1 and segments[:depth] == reference.segments
        ]
        rows.sort(key=lambda row: row[0][-1])

        rows = [row for row in rows if all(f.matches(row[1]) for f in reference.filters)]

        # Stable sorts applied last key first leave the first key primary
        for field, direction in reversed(reference.orders):
            rows = [row for row in rows if resolve_field(row[1], field) is not MISSING]
            try:
                rows.sort(
                    key=lambda row: resolve_field(row[1], field),
                    reverse=direction == Direction.DESCENDING,
                )
            except TypeError as e:
                raise StoreError(
                    f"Cannot order by '{field}': incomparable values",
                    path=reference.path,
                    original_error=e,
                ) from e

        if reference.limit_count is not None:
            rows = rows[: reference.limit_count]

        return [
            DocumentSnapshot(path="/".join(segments), data=copy.deepcopy(data))
            for segments, data in rows
        ]

    # ========== Listeners ==========

    def add_listener(
        self,
        reference: InMemoryReference,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        """Register a listener, deliver the current snapshot, return its unsubscribe."""
        if self.closed:
            raise StoreError("Store is closed", path=reference.path)
        snapshot = self.snapshot(reference)

        listener_id = next(self._ids)
        self._listeners[listener_id] = _Listener(reference, on_snapshot, on_error)
        logger.debug("Listener %d registered on %s", listener_id, reference.path)

        def unsubscribe() -> None:
            if self._listeners.pop(listener_id, None) is not None:
                logger.debug("Listener %d removed from %s", listener_id, reference.path)

        on_snapshot(snapshot)
        return unsubscribe

    def _matching(self, segments: Segments) -> Iterable[_Listener]:
        # Listeners removed by an earlier callback in the same pass are skipped
        for listener_id, listener in list(self._listeners.items()):
            if listener_id in self._listeners and listener.covers(segments):
                yield listener

    def _notify(self, segments: Segments) -> None:
        for listener in self._matching(segments):
            try:
                snapshot = self.snapshot(listener.reference)
            except StoreError as e:
                listener.on_error(e)
                continue
            listener.on_snapshot(snapshot)
