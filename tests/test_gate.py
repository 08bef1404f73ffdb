import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest
from bson import ObjectId

from errors import NotFound, ValidationFailure
from gate import AccessGate


@pytest.fixture
def poem(poems, alice):
    return poems.create(alice, "Ode", "abcd", content="hello", author="Rumi", category="love")["poem"]


def stored(database, poem_id):
    return database["poem"].find_one({"_id": ObjectId(poem_id)})


def test_unlock_returns_viewer_view_only(gate, poem):
    view = gate.unlock("abcd", "Sam", "10.0.0.1")
    assert view == {
        "id": poem["id"],
        "title": "Ode",
        "content": "hello",
        "pdf_url": None,
        "author": "Rumi",
        "category": "love",
    }


def test_unlock_counts_and_logs(gate, poem, database):
    gate.unlock("abcd", "  Sam  ", "10.0.0.1")
    gate.unlock("abcd", "Kim", None)

    doc = stored(database, poem["id"])
    assert doc["view_count"] == 2
    assert [e["viewer_name"] for e in doc["access_log"]] == ["Sam", "Kim"]
    assert doc["access_log"][0]["ip_address"] == "10.0.0.1"
    assert doc["access_log"][0]["viewed_at"] is not None


def test_wrong_passcode_leaves_poem_untouched(gate, poem, database):
    with pytest.raises(NotFound):
        gate.unlock("wrong", "Sam", "10.0.0.1")
    doc = stored(database, poem["id"])
    assert doc["view_count"] == 0
    assert doc["access_log"] == []


def test_inactive_poem_fails_like_a_wrong_passcode(gate, poems, alice, poem, database):
    poems.update(alice, poem["id"], "Ode", "abcd", is_active=False)

    with pytest.raises(NotFound) as inactive:
        gate.unlock("abcd", "Sam")
    with pytest.raises(NotFound) as missing:
        gate.unlock("zzzz", "Sam")

    assert inactive.value.message == missing.value.message
    assert stored(database, poem["id"])["view_count"] == 0


def test_unlock_by_share_link_id(gate, poems, alice, poem):
    other = poems.create(alice, "Twin", "abcd", content="twin")["poem"]

    assert gate.unlock("abcd", "Sam", poem_id=poem["id"])["title"] == "Ode"
    assert gate.unlock("abcd", "Sam", poem_id=other["id"])["title"] == "Twin"
    with pytest.raises(NotFound):
        gate.unlock("abcd", "Sam", poem_id=str(ObjectId()))
    with pytest.raises(NotFound):
        gate.unlock("abcd", "Sam", poem_id="nope")


def test_shared_passcode_without_id_unlocks_newest(gate, poems, alice, poem):
    poems.create(alice, "Newer", "abcd", content="newer")
    assert gate.unlock("abcd", "Sam")["title"] == "Newer"


def test_validation(gate):
    with pytest.raises(ValidationFailure) as exc:
        gate.unlock("", "")
    assert {e["field"] for e in exc.value.errors} == {"passcode", "viewer_name"}


@pytest.mark.parametrize("passcode", [{"$ne": "x"}, {"$exists": True}, ["abcd"], 1234])
def test_non_string_passcode_is_rejected_before_lookup(gate, poem, database, passcode):
    with pytest.raises(ValidationFailure) as exc:
        gate.unlock(passcode, "Sam")
    assert [e["field"] for e in exc.value.errors] == ["passcode"]
    assert stored(database, poem["id"])["view_count"] == 0


def test_unlock_is_one_atomic_update():
    collection = MagicMock()
    collection.find_one_and_update.return_value = {"_id": ObjectId(), "title": "Ode"}
    gate = AccessGate({"poem": collection})

    gate.unlock("abcd", "Sam", "10.0.0.1")

    assert collection.method_calls[0][0] == "find_one_and_update"
    assert len(collection.method_calls) == 1
    query, update = collection.find_one_and_update.call_args.args
    assert query == {"passcode": "abcd", "is_active": True}
    assert update["$inc"] == {"view_count": 1}
    assert update["$push"]["access_log"]["viewer_name"] == "Sam"


class SerializedCollection:
    """Applies each collection operation under a lock, as the server does per document."""

    def __init__(self, inner):
        self.inner = inner
        self.lock = threading.Lock()

    def find_one_and_update(self, *args, **kwargs):
        with self.lock:
            return self.inner.find_one_and_update(*args, **kwargs)


def test_parallel_unlocks_lose_nothing(poem, database):
    gate = AccessGate(database)
    gate.poems = SerializedCollection(database["poem"])

    with ThreadPoolExecutor(max_workers=10) as pool:
        results = list(pool.map(lambda i: gate.unlock("abcd", f"viewer-{i}"), range(50)))

    doc = stored(database, poem["id"])
    assert len(results) == 50
    assert doc["view_count"] == 50
    assert len(doc["access_log"]) == 50
    assert {e["viewer_name"] for e in doc["access_log"]} == {f"viewer-{i}" for i in range(50)}
