"""
FQL Reference Builder

Walks a component sequence into a navigated store reference.

The builder keeps a cursor (starting at the store root) and a flag saying
whether the next literal names a collection. Literals alternate the flag,
All forces it back to collection mode, collection expressions refine the
cursor and document expressions set the field projection.

Usage:
    built = ReferenceBuilder(connection).build(components)
    built.reference   # navigated, refined StoreReference
    built.projection  # ProjectionSpec
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from fql.errors import InvalidRefinementError
from fql.ir.model import (
    All,
    CollectionExpression,
    Component,
    DocumentExpression,
    Limit,
    Literal,
    Order,
    ProjectionSpec,
    Where,
)
from fql.store.base import Connection, StoreReference

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuiltReference:
    """The output of a build: where to read, and which fields to keep."""

    reference: StoreReference
    projection: ProjectionSpec = field(default_factory=ProjectionSpec)


@dataclass
class _BuilderState:
    """Internal state for one build."""

    cursor: StoreReference
    expecting_collection: bool = True
    projection: ProjectionSpec = field(default_factory=ProjectionSpec)


class ReferenceBuilder:
    """
    Builds store references from FQL components.

    A collection expression on a cursor that is not a collection is
    ignored with a warning, or rejected when strict=True.
    """

    def __init__(self, connection: Connection, strict: bool = False) -> None:
        self._connection = connection
        self._strict = strict

    def build(self, components: Sequence[Component]) -> BuiltReference:
        """
        Build the reference and projection for a component sequence.

        Raises:
            InvalidRefinementError: In strict mode, for a misplaced collection expression
            StoreError: If the store rejects a navigation or refinement
        """
        state = _BuilderState(cursor=self._connection.root())

        for component in components:
            if isinstance(component, Literal):
                self._literal(state, component)
            elif isinstance(component, All):
                state.expecting_collection = True
            elif isinstance(component, CollectionExpression):
                self._collection_expression(state, component)
            elif isinstance(component, DocumentExpression):
                state.projection = ProjectionSpec.of(component.components)
            else:
                raise TypeError(f"Not an FQL component: {component!r}")

        return BuiltReference(reference=state.cursor, projection=state.projection)

    # ========== Steps ==========

    def _literal(self, state: _BuilderState, component: Literal) -> None:
        if state.expecting_collection:
            state.cursor = state.cursor.collection(component.value)
        else:
            state.cursor = state.cursor.document(component.value)
        state.expecting_collection = not state.expecting_collection
        logger.debug("Navigated to %s", state.cursor.path)

    def _collection_expression(
        self, state: _BuilderState, component: CollectionExpression
    ) -> None:
        if not state.cursor.is_collection():
            if self._strict:
                raise InvalidRefinementError(state.cursor.path)
            logger.warning(
                "Ignoring collection expression on non-collection reference %r",
                state.cursor.path,
            )
            return

        cursor = state.cursor
        for refinement in component.components:
            if isinstance(refinement, Where):
                cursor = cursor.where(refinement.field, refinement.operator, refinement.value)
            elif isinstance(refinement, Limit):
                cursor = cursor.limit(refinement.limit)
            elif isinstance(refinement, Order):
                cursor = cursor.order_by(refinement.field, refinement.direction)
        state.cursor = cursor


def build_reference(
    components: Sequence[Component],
    connection: Connection,
    strict: bool = False,
) -> BuiltReference:
    """Build a reference with a one-off ReferenceBuilder."""
    return ReferenceBuilder(connection, strict=strict).build(components)
