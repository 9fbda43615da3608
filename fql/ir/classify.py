"""
Component classification.

Literal segments alternate collection → document → collection, starting
with a collection at depth 0. An odd number of literals therefore ends on a
collection and an even number (including zero) ends on a document.
"""

from __future__ import annotations

from typing import Sequence

from .model import Component, ComponentKind, QueryType


def count_literals(components: Sequence[Component]) -> int:
    """Number of Literal components in the sequence."""
    return sum(1 for c in components if c.kind == ComponentKind.LITERAL)


def classify(components: Sequence[Component]) -> QueryType:
    """Decide whether a component sequence denotes a document or a collection."""
    if count_literals(components) % 2:
        return QueryType.COLLECTION
    return QueryType.DOCUMENT
