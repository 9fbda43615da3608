"""FQL component model: the typed form of a parsed query."""

from .model import (
    All,
    CollectionExpression,
    Component,
    ComponentKind,
    Direction,
    DocumentExpression,
    Limit,
    Literal,
    Order,
    ProjectionSpec,
    QueryType,
    Refinement,
    RefinementKind,
    Where,
)
from .classify import classify, count_literals
from .serialize import (
    to_json,
    to_dict,
    from_json,
    from_dict,
)

__all__ = [
    "All",
    "CollectionExpression",
    "Component",
    "ComponentKind",
    "Direction",
    "DocumentExpression",
    "Limit",
    "Literal",
    "Order",
    "ProjectionSpec",
    "QueryType",
    "Refinement",
    "RefinementKind",
    "Where",
    "classify",
    "count_literals",
    # Serialization
    "to_json",
    "to_dict",
    "from_json",
    "from_dict",
]
