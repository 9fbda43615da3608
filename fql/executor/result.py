"""
FQL Result Model

Every execution (one-shot) or snapshot event (live) produces a fresh
QueryResult. Documents are located first and populated second, so the
one-shot and live paths build identical document shells.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence

from fql.store.base import MISSING, DocumentSnapshot, resolve_field


@dataclass(frozen=True)
class DocumentMetadata:
    """Store-level facts about a document."""

    exists: bool = False


@dataclass
class Document:
    """A single document in a query result."""

    location: str
    data: Dict[str, Any] = field(default_factory=dict)
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)

    @staticmethod
    def from_reference(location: str) -> "Document":
        """Create a document bound to a store location, without data."""
        return Document(location=location)

    @property
    def id(self) -> str:
        """Last segment of the location."""
        return self.location.rsplit("/", 1)[-1]

    def set_data(
        self,
        snapshot: DocumentSnapshot,
        projection_fields: Optional[Sequence[str]] = None,
    ) -> None:
        """
        Populate data from a snapshot.

        With projection fields, only those fields are copied, in the listed
        order; fields absent from the snapshot are left out. Without, every
        field is copied.
        """
        source = snapshot.to_dict()
        if projection_fields:
            data: Dict[str, Any] = {}
            for name in projection_fields:
                value = resolve_field(source, name)
                if value is not MISSING:
                    data[name] = value
            self.data = data
        else:
            self.data = source
        self.metadata = DocumentMetadata(exists=snapshot.exists)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value from the data dict."""
        return self.data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        """Allow dict-like access to data."""
        return self.data[key]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary with metadata."""
        return {
            "location": self.location,
            "data": self.data,
            "metadata": {"exists": self.metadata.exists},
        }


def document_from_snapshot(
    snapshot: DocumentSnapshot, projection_fields: Optional[Sequence[str]] = None
) -> Document:
    """Locate, then populate, a document from a snapshot."""
    document = Document.from_reference(snapshot.path)
    document.set_data(snapshot, projection_fields)
    return document


@dataclass(frozen=True)
class QueryResult:
    """
    The complete result of an FQL query.

    documents keeps store order. projected is True when a field projection
    restricted the materialized fields.
    """

    documents: Sequence[Document] = field(default_factory=tuple)
    projected: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "documents", tuple(self.documents))

    def __iter__(self) -> Iterator[Document]:
        return iter(self.documents)

    def __len__(self) -> int:
        return len(self.documents)

    @property
    def count(self) -> int:
        """Number of documents."""
        return len(self.documents)

    def first(self) -> Optional[Document]:
        """The first document, or None for an empty result."""
        return self.documents[0] if self.documents else None

    def locations(self) -> List[str]:
        """Document locations, in result order."""
        return [d.location for d in self.documents]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary."""
        return {
            "documents": [d.to_dict() for d in self.documents],
            "projected": self.projected,
            "count": self.count,
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)
