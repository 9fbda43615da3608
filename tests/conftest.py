"""Shared fixtures for FQL tests."""

import pytest

from fql.store.memory import InMemoryStore


SEED = {
    "users/alice": {"name": "Alice", "age": 31, "email": "alice@example.com", "tags": ["admin"]},
    "users/bob": {"name": "Bob", "age": 25, "email": "bob@example.com", "tags": []},
    "users/carol": {"name": "Carol", "age": 42, "email": "carol@example.com", "tags": ["ops"]},
    "users/alice/posts/p1": {"title": "Hello", "likes": 3},
    "users/alice/posts/p2": {"title": "Again", "likes": 10},
}


@pytest.fixture
def store():
    """A store seeded with three users and two posts."""
    return InMemoryStore(SEED)
