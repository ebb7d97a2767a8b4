# tests/test_leaderboard.py
import pytest

from errors import InvalidRequest, NotFound
from leaderboard import leaderboard
from local_storage import LocalDocumentStore


@pytest.fixture
def store():
    store = LocalDocumentStore(None)
    store.create_user("u1", {"username": "alice", "friends": ["u2", "u3", "gone"], "totalCurrencyEarned": 50})
    store.create_user("u2", {"username": "bob", "friends": ["u1"], "totalCurrencyEarned": 120})
    store.create_user("u3", {"username": "cara", "friends": ["u1"]})
    store.create_user("u4", {"username": "dan", "totalCurrencyEarned": 999})
    return store


def test_ranks_user_and_friends(store):
    ranking = leaderboard(store, "u1", "totalCurrencyEarned")
    assert [(r["rank"], r["username"], r["value"]) for r in ranking] == [
        (1, "bob", 120),
        (2, "alice", 50),
        (3, "cara", 0),
    ]
    assert [r["isCurrentUser"] for r in ranking] == [False, True, False]


def test_unknown_stat(store):
    with pytest.raises(InvalidRequest):
        leaderboard(store, "u1", "currency")


def test_unknown_user(store):
    with pytest.raises(NotFound):
        leaderboard(store, "ghost")
