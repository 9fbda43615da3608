"""
Integration Tests for FQL

These tests run the full flow:
query string → parser → classifier and builder → executor → QueryResult
"""

import pytest

from fql.connections import ConnectionPool
from fql.errors import InvalidRefinementError, NotFoundError, ParseError, StoreError
from fql.executor import Subscription, SubscriptionStream
from fql.ir import QueryType
from fql.session import Session

from .parsers import TableParser, path_parser


ADULTS = [
    {"type": "literal", "value": "users"},
    {
        "type": "collectionExpression",
        "components": [
            {"type": "where", "field": "age", "operator": ">", "value": 30},
            {"type": "order", "field": "age", "direction": 1},
        ],
    },
    {"type": "documentExpression", "components": ["name"]},
]


def make_session(store, parser=None, strict=False):
    return Session(
        parser=parser or TableParser({"adults": ADULTS}),
        project_provider=lambda: "alpha",
        connection_factory=lambda project: store,
        strict=strict,
    )


class Recorder:
    def __init__(self):
        self.calls = []

    def __call__(self, result, error):
        self.calls.append((result, error))


class TestOneShot:
    """query() without a listener."""

    @pytest.mark.asyncio
    async def test_document_query(self, store):
        result = await make_session(store).query("users/alice")

        assert result.count == 1
        assert result.first()["email"] == "alice@example.com"

    @pytest.mark.asyncio
    async def test_collection_query(self, store):
        result = await make_session(store).query("users/alice/posts")
        assert result.locations() == ["users/alice/posts/p1", "users/alice/posts/p2"]

    @pytest.mark.asyncio
    async def test_refined_projected_query(self, store):
        result = await make_session(store).query("adults")

        assert result.projected
        assert [d.data for d in result] == [{"name": "Alice"}, {"name": "Carol"}]

    @pytest.mark.asyncio
    async def test_not_found(self, store):
        with pytest.raises(NotFoundError):
            await make_session(store).query("users/nobody")

    @pytest.mark.asyncio
    async def test_parse_error_propagates(self, store):
        def parser(query_string):
            raise ParseError(f"unexpected token in {query_string!r}")

        with pytest.raises(ParseError, match="unexpected token"):
            await make_session(store, parser=parser).query("users/[")

    @pytest.mark.asyncio
    async def test_malformed_parser_output(self, store):
        session = make_session(store, parser=lambda q: [{"type": "mystery"}])
        with pytest.raises(ParseError):
            await session.query("anything")

    @pytest.mark.asyncio
    async def test_store_error_propagates(self, store):
        session = make_session(store, parser=lambda q: path_parser("users/*/posts"))
        with pytest.raises(StoreError):
            await session.query("users/*/posts")


class TestPrepare:
    """prepare() classifies and builds without executing."""

    @pytest.mark.asyncio
    async def test_prepare(self, store):
        prepared = await make_session(store).prepare("adults")

        assert prepared.project == "alpha"
        assert prepared.query_type == QueryType.COLLECTION
        assert prepared.reference.path == "users"
        assert prepared.projection.fields == ("name",)
        assert len(prepared.components) == 3

    @pytest.mark.asyncio
    async def test_connection_reused(self, store):
        calls = []

        def factory(project):
            calls.append(project)
            return store

        session = Session(
            parser=path_parser,
            project_provider=lambda: "alpha",
            pool=ConnectionPool(factory),
        )
        await session.query("users/alice")
        await session.query("users")

        assert calls == ["alpha"]


class TestLive:
    """query() with a listener, and watch()."""

    @pytest.mark.asyncio
    async def test_subscription(self, store):
        recorder = Recorder()
        subscription = await make_session(store).query("users", recorder)

        assert isinstance(subscription, Subscription)
        store.set("users/dave", {"name": "Dave"})

        assert [r.count for r, _ in recorder.calls] == [3, 4]
        subscription.cancel()

    @pytest.mark.asyncio
    async def test_two_live_queries_are_independent(self, store):
        session = make_session(store)
        users, alice = Recorder(), Recorder()
        sub_users = await session.query("users", users)
        sub_alice = await session.query("users/alice", alice)

        sub_users.cancel()
        store.set("users/alice", {"name": "Alicia"})

        assert len(users.calls) == 1
        assert alice.calls[-1][0].first()["name"] == "Alicia"
        assert sub_alice.active

    @pytest.mark.asyncio
    async def test_failure_before_subscribe_goes_to_listener(self, store):
        recorder = Recorder()
        session = make_session(store, parser=lambda q: [{"type": "mystery"}])

        with pytest.raises(ParseError):
            await session.query("anything", recorder)

        assert len(recorder.calls) == 1
        result, error = recorder.calls[0]
        assert result is None
        assert isinstance(error, ParseError)

    @pytest.mark.asyncio
    async def test_watch(self, store):
        session = make_session(store)
        stream = await session.watch("users/bob")
        assert isinstance(stream, SubscriptionStream)

        async with stream as updates:
            first = await updates.__anext__()
            store.set("users/bob", {"name": "Robert"})
            second = await updates.__anext__()

        assert first.first()["name"] == "Bob"
        assert second.first()["name"] == "Robert"
        assert store.listener_count == 0

    @pytest.mark.asyncio
    async def test_close(self, store):
        session = make_session(store)
        await session.query("users", Recorder())

        session.close()

        assert store.closed
        assert store.listener_count == 0


class TestStrictSession:
    """strict=True turns a misplaced collection expression into an error."""

    @pytest.mark.asyncio
    async def test_strict(self, store):
        raw = path_parser("users/alice") + [
            {"type": "collectionExpression", "components": [{"type": "limit", "limit": 1}]}
        ]
        session = make_session(store, parser=lambda q: raw, strict=True)
        with pytest.raises(InvalidRefinementError):
            await session.query("users/alice[limit 1]")

    @pytest.mark.asyncio
    async def test_permissive(self, store):
        raw = path_parser("users/alice") + [
            {"type": "collectionExpression", "components": [{"type": "limit", "limit": 1}]}
        ]
        result = await make_session(store, parser=lambda q: raw).query("users/alice[limit 1]")
        assert result.first()["name"] == "Alice"
