"""
Tests for the in-memory document store.

The store backs local runs and the executor tests, so its query and
listener semantics are pinned down here.
"""

import pytest

from fql.errors import StoreError
from fql.ir import Direction
from fql.store import DocumentSnapshot, InMemoryStore, QuerySnapshot


def ids(snapshot):
    return [s.id for s in snapshot]


class TestReads:
    """One-shot reads."""

    @pytest.mark.asyncio
    async def test_document_get(self, store):
        snap = await store.root().collection("users").document("alice").get()

        assert isinstance(snap, DocumentSnapshot)
        assert snap.exists
        assert snap.path == "users/alice"
        assert snap.to_dict()["name"] == "Alice"

    @pytest.mark.asyncio
    async def test_missing_document(self, store):
        snap = await store.root().collection("users").document("nobody").get()

        assert not snap.exists
        assert snap.to_dict() == {}

    @pytest.mark.asyncio
    async def test_collection_default_order_is_id(self, store):
        snap = await store.root().collection("users").get()

        assert isinstance(snap, QuerySnapshot)
        assert ids(snap) == ["alice", "bob", "carol"]

    @pytest.mark.asyncio
    async def test_subcollection_only_direct_children(self, store):
        snap = await store.root().collection("users").document("alice").collection("posts").get()
        assert ids(snap) == ["p1", "p2"]

    @pytest.mark.asyncio
    async def test_snapshots_are_copies(self, store):
        ref = store.root().collection("users").document("alice")
        snap = await ref.get()
        snap.data["name"] = "Mallory"

        assert (await ref.get()).to_dict()["name"] == "Alice"

    @pytest.mark.asyncio
    async def test_root_cannot_be_read(self, store):
        with pytest.raises(StoreError):
            await store.root().get()


class TestRefinement:
    """Filters, ordering and limits."""

    @pytest.mark.asyncio
    async def test_where(self, store):
        snap = await store.root().collection("users").where("age", ">=", 31).get()
        assert ids(snap) == ["alice", "carol"]

    @pytest.mark.asyncio
    async def test_array_contains(self, store):
        snap = await store.root().collection("users").where("tags", "array-contains", "ops").get()
        assert ids(snap) == ["carol"]

    @pytest.mark.asyncio
    async def test_in(self, store):
        snap = await store.root().collection("users").where("name", "in", ["Bob", "Carol"]).get()
        assert ids(snap) == ["bob", "carol"]

    @pytest.mark.asyncio
    async def test_missing_field_excluded(self, store):
        store.set("users/dave", {"name": "Dave"})
        snap = await store.root().collection("users").where("age", "!=", 0).get()
        assert "dave" not in ids(snap)

    @pytest.mark.asyncio
    async def test_order_and_limit(self, store):
        ref = (
            store.root()
            .collection("users")
            .order_by("age", Direction.DESCENDING)
            .limit(2)
        )
        assert ids(await ref.get()) == ["carol", "alice"]

    @pytest.mark.asyncio
    async def test_first_order_key_is_primary(self, store):
        store.set("users/dave", {"name": "Dave", "age": 31})
        ref = (
            store.root()
            .collection("users")
            .order_by("age", Direction.ASCENDING)
            .order_by("name", Direction.DESCENDING)
        )
        assert ids(await ref.get()) == ["bob", "dave", "alice", "carol"]

    @pytest.mark.asyncio
    async def test_nested_field(self):
        store = InMemoryStore(
            {"cities/a": {"geo": {"country": "FR"}}, "cities/b": {"geo": {"country": "DE"}}}
        )
        snap = await store.root().collection("cities").where("geo.country", "==", "DE").get()
        assert ids(snap) == ["b"]

    def test_unknown_operator(self, store):
        with pytest.raises(StoreError, match="Unsupported filter operator"):
            store.root().collection("users").where("age", "like", 1)

    def test_list_operator_needs_list(self, store):
        with pytest.raises(StoreError):
            store.root().collection("users").where("age", "in", 3)

    @pytest.mark.parametrize("count", [0, -1, 1.5, True, "3"])
    def test_invalid_limit(self, store, count):
        with pytest.raises(StoreError):
            store.root().collection("users").limit(count)

    def test_refinement_on_document(self, store):
        with pytest.raises(StoreError):
            store.root().collection("users").document("alice").limit(1)

    def test_document_of_refined_query(self, store):
        with pytest.raises(StoreError):
            store.root().collection("users").limit(1).document("alice")

    def test_refinement_returns_new_reference(self, store):
        users = store.root().collection("users")
        limited = users.limit(1)
        assert users.limit_count is None
        assert limited.limit_count == 1


class TestWrites:
    """Document writes."""

    def test_set_requires_document_path(self, store):
        with pytest.raises(StoreError):
            store.set("users", {"name": "x"})

    def test_seed_and_paths(self, store):
        assert "users/alice/posts/p1" in store.paths()

    def test_delete_missing_is_noop(self, store):
        received = []
        store.root().collection("users").subscribe(received.append, pytest.fail)

        store.delete("users/nobody")

        assert len(store.paths()) == 5
        assert len(received) == 1


class TestListeners:
    """Standing listeners."""

    def test_initial_snapshot(self, store):
        received = []
        store.root().collection("users").subscribe(received.append, pytest.fail)

        assert len(received) == 1
        assert ids(received[0]) == ["alice", "bob", "carol"]

    def test_collection_listener_sees_writes(self, store):
        received = []
        store.root().collection("users").subscribe(received.append, pytest.fail)
        store.set("users/dave", {"name": "Dave"})
        store.delete("users/bob")

        assert [ids(s) for s in received[1:]] == [
            ["alice", "bob", "carol", "dave"],
            ["alice", "carol", "dave"],
        ]

    def test_unrelated_writes_not_delivered(self, store):
        received = []
        store.root().collection("users").document("bob").subscribe(received.append, pytest.fail)
        store.set("users/alice", {"name": "A"})
        store.set("users/alice/posts/p3", {"title": "x"})

        assert len(received) == 1

    def test_unsubscribe(self, store):
        received = []
        unsubscribe = store.root().collection("users").subscribe(received.append, pytest.fail)
        assert store.listener_count == 1

        unsubscribe()
        store.set("users/dave", {"name": "Dave"})

        assert store.listener_count == 0
        assert len(received) == 1

    def test_fail_delivers_error(self, store):
        errors = []
        store.root().collection("users").subscribe(lambda s: None, errors.append)
        boom = RuntimeError("transport down")
        store.fail("users", boom)

        assert errors == [boom]

    def test_closed_store_rejects_listeners(self, store):
        store.close()
        with pytest.raises(StoreError):
            store.root().collection("users").subscribe(lambda s: None, lambda e: None)
