"""
FQL Component Model

A parsed FQL query is an ordered sequence of components. The order of the
sequence is the path traversal order and the refinement application order;
nothing downstream reorders or deduplicates it.

Variants:
- Literal: a path segment (collection and document names alternate)
- All: wildcard forcing the next segment to be read as a collection
- CollectionExpression: where/limit/order refinements for a collection
- DocumentExpression: a field projection list
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence, Tuple, Union


# ---------- Enums (closed-world) ----------


class ComponentKind(str, Enum):
    """Tag carried by every component variant."""

    LITERAL = "literal"
    ALL = "all"
    COLLECTION_EXPRESSION = "collectionExpression"
    DOCUMENT_EXPRESSION = "documentExpression"


class RefinementKind(str, Enum):
    """Tag carried by every collection expression entry."""

    WHERE = "where"
    LIMIT = "limit"
    ORDER = "order"


class Direction(str, Enum):
    """Sort direction for an order refinement."""

    ASCENDING = "asc"
    DESCENDING = "desc"

    @staticmethod
    def from_parser(value: Any) -> "Direction":
        """
        Decode the parser's direction encoding.

        1 means ascending and any other value, a missing one included,
        means descending.
        """
        if isinstance(value, Direction):
            return value
        return Direction.ASCENDING if value == 1 else Direction.DESCENDING


class QueryType(str, Enum):
    """
    What an FQL query resolves to.

    DOCUMENT: the path ends on a document segment
    COLLECTION: the path ends on a collection segment
    """

    DOCUMENT = "DOCUMENT"
    COLLECTION = "COLLECTION"


# ---------- Collection expression entries ----------


@dataclass(frozen=True)
class Where:
    """A single filter predicate."""

    field: str
    operator: str  # "==", "<", "array-contains", ... passed to the store as-is
    value: Any
    kind: RefinementKind = field(default=RefinementKind.WHERE, init=False)


@dataclass(frozen=True)
class Limit:
    """A cap on the number of returned documents."""

    limit: int
    kind: RefinementKind = field(default=RefinementKind.LIMIT, init=False)


@dataclass(frozen=True)
class Order:
    """A sort key."""

    field: str
    direction: Direction = Direction.ASCENDING
    kind: RefinementKind = field(default=RefinementKind.ORDER, init=False)


Refinement = Union[Where, Limit, Order]


# ---------- Components ----------


@dataclass(frozen=True)
class Literal:
    """A collection or document name."""

    value: str
    kind: ComponentKind = field(default=ComponentKind.LITERAL, init=False)


@dataclass(frozen=True)
class All:
    """Re-enter collection mode without navigating."""

    kind: ComponentKind = field(default=ComponentKind.ALL, init=False)


@dataclass(frozen=True)
class CollectionExpression:
    """Refinements applied, in order, to the current collection reference."""

    components: Tuple[Refinement, ...] = ()
    kind: ComponentKind = field(default=ComponentKind.COLLECTION_EXPRESSION, init=False)


@dataclass(frozen=True)
class DocumentExpression:
    """Restricts which fields are materialized into results."""

    components: Tuple[str, ...] = ()
    kind: ComponentKind = field(default=ComponentKind.DOCUMENT_EXPRESSION, init=False)


Component = Union[Literal, All, CollectionExpression, DocumentExpression]


# ---------- Projection ----------


@dataclass(frozen=True)
class ProjectionSpec:
    """
    Field projection for a query.

    active=False materializes every field. When active, only the listed
    fields are copied; presence governs inclusion, order is kept for display.
    Dotted names address nested map values.
    """

    fields: Tuple[str, ...] = ()
    active: bool = False

    @staticmethod
    def of(fields: Sequence[str]) -> "ProjectionSpec":
        """Create an active projection over the given fields."""
        return ProjectionSpec(fields=tuple(fields), active=True)
