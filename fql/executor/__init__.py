"""FQL Query Execution Layer."""

from .engine import OnUpdate, QueryExecutor, Subscription, SubscriptionStream
from .result import Document, DocumentMetadata, QueryResult, document_from_snapshot

__all__ = [
    "Document",
    "DocumentMetadata",
    "OnUpdate",
    "QueryExecutor",
    "QueryResult",
    "Subscription",
    "SubscriptionStream",
    "document_from_snapshot",
]
