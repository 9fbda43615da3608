"""Document store capability set and adapters."""

from .base import (
    Connection,
    DocumentSnapshot,
    QuerySnapshot,
    Snapshot,
    StoreReference,
)
from .memory import InMemoryReference, InMemoryStore

__all__ = [
    "Connection",
    "DocumentSnapshot",
    "QuerySnapshot",
    "Snapshot",
    "StoreReference",
    "InMemoryReference",
    "InMemoryStore",
]
