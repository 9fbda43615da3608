"""
Firestore adapter for the store capability set.

Wraps the firebase-admin client. Blocking fetches run in a worker thread;
snapshot listeners fire on the client's watch thread and are marshalled
onto the event loop that installed them.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1 import Query
from google.cloud.firestore_v1.base_query import FieldFilter

from fql.config import FQLConfig
from fql.errors import StoreConnectionError, StoreError
from fql.ir.model import Direction

from .base import (
    DocumentSnapshot,
    ErrorCallback,
    QuerySnapshot,
    Snapshot,
    SnapshotCallback,
    Unsubscribe,
)

logger = logging.getLogger(__name__)


class RefKind(str, Enum):
    """What a native Firestore handle points at."""

    ROOT = "root"
    COLLECTION = "collection"
    QUERY = "query"
    DOCUMENT = "document"


def _to_snapshot(native: Any) -> DocumentSnapshot:
    exists = bool(native.exists)
    return DocumentSnapshot(
        path=native.reference.path,
        data=native.to_dict() if exists else None,
        exists=exists,
    )


class FirestoreReference:
    """A StoreReference over a native Firestore client, collection, query or document."""

    def __init__(self, native: Any, kind: RefKind, path: str = "") -> None:
        self.native = native
        self.kind = kind
        self._path = path

    def __repr__(self) -> str:
        return f"FirestoreReference({self.kind.value}, {self._path!r})"

    @property
    def path(self) -> str:
        return self._path

    def is_collection(self) -> bool:
        return self.kind in (RefKind.COLLECTION, RefKind.QUERY)

    def is_document(self) -> bool:
        return self.kind == RefKind.DOCUMENT

    def _child_path(self, name: str) -> str:
        return f"{self._path}/{name}" if self._path else name

    def _call(self, operation: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except (ValueError, TypeError, google_exceptions.GoogleAPICallError) as e:
            raise StoreError(f"{operation} failed: {e}", path=self._path, original_error=e) from e

    # ========== Navigation ==========

    def collection(self, name: str) -> "FirestoreReference":
        if self.kind not in (RefKind.ROOT, RefKind.DOCUMENT):
            raise StoreError(f"Cannot open collection '{name}' here", path=self._path)
        native = self._call("collection", lambda: self.native.collection(name))
        return FirestoreReference(native, RefKind.COLLECTION, self._child_path(name))

    def document(self, name: str) -> "FirestoreReference":
        if self.kind != RefKind.COLLECTION:
            raise StoreError(f"Cannot open document '{name}' here", path=self._path)
        native = self._call("document", lambda: self.native.document(name))
        return FirestoreReference(native, RefKind.DOCUMENT, self._child_path(name))

    # ========== Refinement ==========

    def _require_collection(self, operation: str) -> None:
        if not self.is_collection():
            raise StoreError(f"'{operation}' requires a collection reference", path=self._path)

    def where(self, field: str, operator: str, value: Any) -> "FirestoreReference":
        self._require_collection("where")
        native = self._call(
            "where",
            lambda: self.native.where(filter=FieldFilter(field, operator, value)),
        )
        return FirestoreReference(native, RefKind.QUERY, self._path)

    def order_by(self, field: str, direction: Direction = Direction.ASCENDING) -> "FirestoreReference":
        self._require_collection("order_by")
        native_direction = Query.ASCENDING if direction == Direction.ASCENDING else Query.DESCENDING
        native = self._call(
            "order_by", lambda: self.native.order_by(field, direction=native_direction)
        )
        return FirestoreReference(native, RefKind.QUERY, self._path)

    def limit(self, count: int) -> "FirestoreReference":
        self._require_collection("limit")
        native = self._call("limit", lambda: self.native.limit(count))
        return FirestoreReference(native, RefKind.QUERY, self._path)

    # ========== Reads ==========

    async def get(self) -> Snapshot:
        if self.kind == RefKind.ROOT:
            raise StoreError("Cannot read the store root")
        try:
            result = await asyncio.to_thread(self.native.get)
        except google_exceptions.GoogleAPICallError as e:
            raise StoreError(f"get failed: {e}", path=self._path, original_error=e) from e

        if self.kind == RefKind.DOCUMENT:
            return _to_snapshot(result)
        return QuerySnapshot(documents=tuple(_to_snapshot(s) for s in result))

    def _convert(self, docs: Any) -> Snapshot:
        if self.kind == RefKind.DOCUMENT:
            if not docs:
                return DocumentSnapshot(path=self._path, data=None, exists=False)
            return _to_snapshot(docs[0])
        return QuerySnapshot(documents=tuple(_to_snapshot(d) for d in docs if d.exists))

    def subscribe(self, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Unsubscribe:
        """
        Start a watch on this reference.

        Deliveries are marshalled onto the running event loop, if any.
        on_error only receives snapshot conversion failures: the client
        library does not report a watch stream that dies, so a stopped
        watch goes silent and the listener is not told.
        """
        if self.kind == RefKind.ROOT:
            raise StoreError("Cannot listen to the store root")
        try:
            loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        def dispatch(fn: Callable[..., None], *args: Any) -> None:
            if loop is None:
                fn(*args)
            else:
                loop.call_soon_threadsafe(fn, *args)

        def callback(docs: Any, changes: Any, read_time: Any) -> None:
            try:
                snapshot = self._convert(docs)
            except Exception as e:
                dispatch(on_error, StoreError(f"Bad snapshot: {e}", path=self._path, original_error=e))
                return
            dispatch(on_snapshot, snapshot)

        watch = self._call("on_snapshot", lambda: self.native.on_snapshot(callback))
        logger.debug("Watching %s", self._path)
        return watch.unsubscribe


class FirestoreConnection:
    """A Connection backed by one firebase app."""

    def __init__(self, client: Any, app: Optional[Any] = None) -> None:
        self.client = client
        self.app = app

    def root(self) -> FirestoreReference:
        return FirestoreReference(self.client, RefKind.ROOT)

    def close(self) -> None:
        if self.app is not None:
            firebase_admin.delete_app(self.app)
            self.app = None


def connect_firestore(project: str, config: Optional[FQLConfig] = None) -> FirestoreConnection:
    """
    Initialize a named firebase app for a project and return its connection.

    Raises:
        StoreConnectionError: If credentials are missing or rejected
    """
    config = config or FQLConfig.from_env()
    service_account = config.load_credentials(project)

    options = {}
    if service_account.get("databaseURL"):
        options["databaseURL"] = service_account["databaseURL"]

    try:
        app = firebase_admin.initialize_app(
            credentials.Certificate(service_account), options, name=project
        )
        client = firestore.client(app)
    except (ValueError, google_exceptions.GoogleAPICallError) as e:
        raise StoreConnectionError(project, str(e), e) from e

    logger.info("Initialized firebase app for project %s", project)
    return FirestoreConnection(client, app)
