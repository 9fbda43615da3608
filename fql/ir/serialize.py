"""
FQL Component Serialization

The parser emits components as plain dictionaries keyed by "type". This
module converts between that raw form and the typed component model.

Raw form examples:
    {"type": "literal", "value": "users"}
    {"type": "all"}
    {"type": "collectionExpression", "components": [
        {"type": "where", "field": "age", "operator": ">", "value": 3},
        {"type": "limit", "limit": 5},
        {"type": "order", "field": "age", "direction": 1},
    ]}
    {"type": "documentExpression", "components": ["name", "age"]}
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, List, Mapping, Sequence, Union

from fql.errors import ParseError

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
    Refinement,
    RefinementKind,
    Where,
)


class FQLEncoder(json.JSONEncoder):
    """JSON encoder for FQL component types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, tuple):
            return list(obj)
        return super().default(obj)


# ---------- Typed → raw ----------


def refinement_to_dict(refinement: Refinement) -> Dict[str, Any]:
    """Convert a collection expression entry to its raw form."""
    if isinstance(refinement, Where):
        return {
            "type": RefinementKind.WHERE.value,
            "field": refinement.field,
            "operator": refinement.operator,
            "value": refinement.value,
        }
    if isinstance(refinement, Limit):
        return {"type": RefinementKind.LIMIT.value, "limit": refinement.limit}
    return {
        "type": RefinementKind.ORDER.value,
        "field": refinement.field,
        "direction": 1 if refinement.direction == Direction.ASCENDING else -1,
    }


def component_to_dict(component: Component) -> Dict[str, Any]:
    """Convert a single component to its raw form."""
    if isinstance(component, Literal):
        return {"type": component.kind.value, "value": component.value}
    if isinstance(component, All):
        return {"type": component.kind.value}
    if isinstance(component, CollectionExpression):
        return {
            "type": component.kind.value,
            "components": [refinement_to_dict(r) for r in component.components],
        }
    return {"type": component.kind.value, "components": list(component.components)}


def to_dict(components: Sequence[Component]) -> List[Dict[str, Any]]:
    """Convert a component sequence to the parser's raw form."""
    return [component_to_dict(c) for c in components]


def to_json(components: Sequence[Component], indent: int = 2) -> str:
    """Serialize a component sequence to JSON."""
    return json.dumps(to_dict(components), cls=FQLEncoder, indent=indent)


# ---------- Raw → typed ----------


def refinement_from_dict(data: Mapping[str, Any]) -> Refinement:
    """
    Reconstruct a collection expression entry.

    Raises:
        ParseError: If the entry type is unknown or a key is missing
    """
    try:
        kind = RefinementKind(data["type"])
        if kind == RefinementKind.WHERE:
            return Where(
                field=data["field"],
                operator=data["operator"],
                value=data.get("value"),
            )
        if kind == RefinementKind.LIMIT:
            return Limit(limit=data["limit"])
        return Order(
            field=data["field"],
            direction=Direction.from_parser(data.get("direction")),
        )
    except KeyError as e:
        raise ParseError(f"Collection expression entry is missing field: {e}") from e
    except ValueError as e:
        raise ParseError(f"Unknown collection expression entry: {data.get('type')!r}") from e


def component_from_dict(data: Union[Component, Mapping[str, Any]]) -> Component:
    """
    Reconstruct a single component. Typed components pass through.

    Raises:
        ParseError: If the component type is unknown or a key is missing
    """
    if isinstance(data, (Literal, All, CollectionExpression, DocumentExpression)):
        return data
    if not isinstance(data, Mapping):
        raise ParseError(f"Component must be a mapping, got {type(data).__name__}")

    try:
        kind = ComponentKind(data["type"])
    except KeyError as e:
        raise ParseError("Component is missing field: 'type'") from e
    except ValueError as e:
        raise ParseError(f"Unknown component type: {data['type']!r}") from e

    try:
        if kind == ComponentKind.LITERAL:
            return Literal(value=str(data["value"]))
        if kind == ComponentKind.ALL:
            return All()
        if kind == ComponentKind.COLLECTION_EXPRESSION:
            return CollectionExpression(
                components=tuple(refinement_from_dict(r) for r in data["components"])
            )
        return DocumentExpression(components=tuple(str(f) for f in data["components"]))
    except KeyError as e:
        raise ParseError(f"Component '{kind.value}' is missing field: {e}") from e


def from_dict(data: Sequence[Union[Component, Mapping[str, Any]]]) -> List[Component]:
    """
    Convert the parser's raw output into typed components.

    Accepts a mix of raw dictionaries and already-typed components.

    Raises:
        ParseError: If any entry is malformed
    """
    if isinstance(data, (str, bytes, Mapping)):
        raise ParseError("Parsed query must be a sequence of components")
    return [component_from_dict(c) for c in data]


def from_json(json_str: str) -> List[Component]:
    """
    Deserialize a component sequence from JSON.

    Raises:
        ParseError: If the JSON is invalid or any component is malformed
    """
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid component JSON: {e}") from e
    return from_dict(data)
