"""
FQL error taxonomy.

The engine performs no local recovery or retry. Collaborator failures are
propagated as-is; the only error the engine raises on its own account is
NotFoundError.
"""

from __future__ import annotations

from typing import Optional


class FQLError(Exception):
    """Base class for all FQL errors."""

    pass


class ParseError(FQLError):
    """Raised when a query string or raw component list is malformed."""

    pass


class NotFoundError(FQLError):
    """Raised when a DOCUMENT query resolves to a non-existent document."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No such document: {path}")


class StoreError(FQLError):
    """Raised when the document store rejects or fails an operation."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        self.path = path
        self.original_error = original_error
        super().__init__(message)


class StoreConnectionError(FQLError):
    """Raised when a store connection cannot be established for a project."""

    def __init__(self, project: str, reason: str, original_error: Optional[BaseException] = None):
        self.project = project
        self.reason = reason
        self.original_error = original_error
        super().__init__(f"Cannot connect to project '{project}': {reason}")


class InvalidRefinementError(FQLError):
    """Raised in strict mode when a collection expression targets a non-collection."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Collection expression cannot be applied to non-collection reference: {path or '/'}"
        )
