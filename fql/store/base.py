"""
Document store capability set.

The engine never talks to a concrete store client directly. It navigates
and refines StoreReference values and reads DocumentSnapshot/QuerySnapshot
values back. Adapters (in-memory, Firestore) implement these protocols.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, Optional, Protocol, Sequence, Union

from fql.ir.model import Direction


@dataclass(frozen=True)
class DocumentSnapshot:
    """Point-in-time state of a single document."""

    path: str
    data: Optional[Dict[str, Any]] = None
    exists: bool = True

    @property
    def id(self) -> str:
        """Last path segment."""
        return self.path.rsplit("/", 1)[-1]

    def to_dict(self) -> Dict[str, Any]:
        """Document fields, empty for a missing document."""
        return dict(self.data or {})


@dataclass(frozen=True)
class QuerySnapshot:
    """Point-in-time state of a collection query, in store order."""

    documents: Sequence[DocumentSnapshot] = field(default_factory=tuple)

    def __iter__(self) -> Iterator[DocumentSnapshot]:
        return iter(self.documents)

    def __len__(self) -> int:
        return len(self.documents)


Snapshot = Union[DocumentSnapshot, QuerySnapshot]
SnapshotCallback = Callable[[Snapshot], None]
ErrorCallback = Callable[[BaseException], None]
Unsubscribe = Callable[[], None]


class StoreReference(Protocol):
    """A navigable, refinable handle to a location in the store."""

    @property
    def path(self) -> str:
        """Slash-separated location, empty for the root."""
        ...

    def is_collection(self) -> bool:
        """True for collections and filtered/sorted/limited collection queries."""
        ...

    def is_document(self) -> bool:
        """True for document references."""
        ...

    def collection(self, name: str) -> "StoreReference":
        """Navigate into a child collection."""
        ...

    def document(self, name: str) -> "StoreReference":
        """Navigate into a child document."""
        ...

    def where(self, field: str, operator: str, value: Any) -> "StoreReference":
        """Add a filter predicate."""
        ...

    def order_by(self, field: str, direction: Direction) -> "StoreReference":
        """Add a sort key."""
        ...

    def limit(self, count: int) -> "StoreReference":
        """Cap the result count."""
        ...

    async def get(self) -> Snapshot:
        """Fetch once."""
        ...

    def subscribe(self, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Unsubscribe:
        """Install a standing listener and return its unsubscribe callable."""
        ...


class Connection(Protocol):
    """A connection to one project's document store."""

    def root(self) -> StoreReference:
        """Reference to the store root."""
        ...

    def close(self) -> None:
        """Release the connection."""
        ...


class _Missing:
    """Sentinel for an absent field."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


def resolve_field(data: Dict[str, Any], field_path: str) -> Any:
    """
    Look up a possibly dotted field path in a document's data.

    Returns MISSING when any segment is absent or not a mapping.
    """
    current: Any = data
    for part in field_path.split("."):
        if not isinstance(current, dict) or part not in current:
            return MISSING
        current = current[part]
    return current
