import pytest
from bson import ObjectId

from conftest import FakeNotifier
from errors import Forbidden, NotFound, ValidationFailure
from feedback import FeedbackStore


@pytest.fixture
def poem_id(poems, alice):
    return poems.create(alice, "Ode", "1234", content="hello")["poem"]["id"]


class TestSubmit:
    def test_stores_unread_feedback_and_notifies_owner(self, feedback_store, poem_id, notifier):
        item = feedback_store.submit(poem_id, " Sam ", True, message="lovely", rating=5, source_address="10.0.0.9")

        assert item["poem_id"] == poem_id
        assert item["viewer_name"] == "Sam"
        assert item["is_read"] is False
        assert item["ip_address"] == "10.0.0.9"
        assert notifier.sent == [
            ("a@x.com", {"poem_title": "Ode", "viewer_name": "Sam", "liked": True, "message": "lovely", "rating": 5})
        ]

    def test_rating_is_omitted_when_absent(self, feedback_store, poem_id, database):
        feedback_store.submit(poem_id, "Sam", False)
        assert "rating" not in database["feedback"].find_one({})

    def test_unknown_poem(self, feedback_store):
        with pytest.raises(NotFound):
            feedback_store.submit(str(ObjectId()), "Sam", True)

    def test_validation_lists_every_field(self, feedback_store, database):
        with pytest.raises(ValidationFailure) as exc:
            feedback_store.submit("bad-id", "", "yes", message="m" * 501, rating=6)
        fields = {e["field"] for e in exc.value.errors}
        assert fields == {"poem_id", "viewer_name", "liked", "message", "rating"}
        assert database["feedback"].count_documents({}) == 0

    def test_notification_failure_does_not_fail_submit(self, database, poem_id):
        store = FeedbackStore(database, FakeNotifier(fail=True))
        item = store.submit(poem_id, "Sam", True)
        assert database["feedback"].count_documents({"_id": ObjectId(item["id"])}) == 1

    def test_notification_is_handed_to_scheduler(self, feedback_store, poem_id, notifier):
        scheduled = []
        feedback_store.submit(poem_id, "Sam", True, schedule=lambda fn, *args: scheduled.append((fn, args)))

        assert notifier.sent == []
        fn, args = scheduled[0]
        fn(*args)
        assert notifier.sent[0][0] == "a@x.com"


class TestOwnerInbox:
    def test_list_scoped_to_owner_with_titles(self, feedback_store, poems, alice, bob, poem_id):
        bob_poem = poems.create(bob, "Bob's", "9999", content="b")["poem"]["id"]
        feedback_store.submit(poem_id, "one", True)
        feedback_store.submit(poem_id, "two", False)
        feedback_store.submit(bob_poem, "bob-fan", True)

        result = feedback_store.list(alice)
        assert [f["viewer_name"] for f in result["feedback"]] == ["two", "one"]
        assert result["feedback"][0]["poem"] == {"id": poem_id, "title": "Ode"}
        assert result["pagination"]["total"] == 2

    def test_list_by_poem(self, feedback_store, poems, alice, poem_id):
        other = poems.create(alice, "Other", "4321", content="o")["poem"]["id"]
        feedback_store.submit(poem_id, "one", True)
        feedback_store.submit(other, "two", True)

        result = feedback_store.list(alice, poem_id=other)
        assert [f["viewer_name"] for f in result["feedback"]] == ["two"]

    def test_empty_poem_filter_lists_everything(self, feedback_store, poems, alice, poem_id):
        other = poems.create(alice, "Other", "4321", content="o")["poem"]["id"]
        feedback_store.submit(poem_id, "one", True)
        feedback_store.submit(other, "two", True)

        result = feedback_store.list(alice, poem_id="")
        assert [f["viewer_name"] for f in result["feedback"]] == ["two", "one"]

    def test_list_by_foreign_poem_is_not_found(self, feedback_store, bob, poem_id):
        with pytest.raises(NotFound):
            feedback_store.list(bob, poem_id=poem_id)

    def test_list_pagination(self, feedback_store, alice, poem_id):
        for i in range(7):
            feedback_store.submit(poem_id, f"v{i}", True)
        page = feedback_store.list(alice, page=2, limit=3)
        assert [f["viewer_name"] for f in page["feedback"]] == ["v3", "v2", "v1"]
        assert page["pagination"]["has_next"] is True
        assert page["pagination"]["has_prev"] is True

    def test_mark_read(self, feedback_store, alice, poem_id):
        item = feedback_store.submit(poem_id, "Sam", True)
        assert feedback_store.mark_read(alice, item["id"])["is_read"] is True

    def test_mark_read_by_non_owner_is_forbidden(self, feedback_store, bob, poem_id, database):
        item = feedback_store.submit(poem_id, "Sam", True)
        with pytest.raises(Forbidden):
            feedback_store.mark_read(bob, item["id"])
        assert database["feedback"].find_one({})["is_read"] is False

    def test_delete(self, feedback_store, alice, poem_id, database):
        item = feedback_store.submit(poem_id, "Sam", True)
        feedback_store.delete(alice, item["id"])
        assert database["feedback"].count_documents({}) == 0

    def test_delete_by_non_owner_is_forbidden(self, feedback_store, bob, poem_id, database):
        item = feedback_store.submit(poem_id, "Sam", True)
        with pytest.raises(Forbidden):
            feedback_store.delete(bob, item["id"])
        assert database["feedback"].count_documents({}) == 1

    @pytest.mark.parametrize("feedback_id", ["nope", str(ObjectId())])
    def test_unknown_feedback(self, feedback_store, alice, feedback_id):
        with pytest.raises(NotFound):
            feedback_store.mark_read(alice, feedback_id)
        with pytest.raises(NotFound):
            feedback_store.delete(alice, feedback_id)


class TestStats:
    def test_empty(self, feedback_store, alice):
        assert feedback_store.stats(alice) == {
            "total_feedback": 0,
            "positive_feedback": 0,
            "negative_feedback": 0,
            "unread_feedback": 0,
            "average_rating": 0,
            "recent_feedback": [],
        }

    def test_average_ignores_unrated(self, feedback_store, alice, poem_id):
        feedback_store.submit(poem_id, "a", True, rating=5)
        feedback_store.submit(poem_id, "b", False, rating=2)
        feedback_store.submit(poem_id, "c", False)
        read = feedback_store.submit(poem_id, "d", True)
        feedback_store.mark_read(alice, read["id"])

        stats = feedback_store.stats(alice)
        assert stats["total_feedback"] == 4
        assert stats["positive_feedback"] == 2
        assert stats["negative_feedback"] == 2
        assert stats["unread_feedback"] == 3
        assert stats["average_rating"] == pytest.approx(3.5)

    def test_zero_when_nothing_rated(self, feedback_store, alice, poem_id):
        feedback_store.submit(poem_id, "a", True)
        assert feedback_store.stats(alice)["average_rating"] == 0

    def test_recent_is_five_newest_with_titles(self, feedback_store, alice, bob, poems, poem_id):
        for i in range(7):
            feedback_store.submit(poem_id, f"v{i}", True)
        bob_poem = poems.create(bob, "Bob's", "9999", content="b")["poem"]["id"]
        feedback_store.submit(bob_poem, "elsewhere", True, rating=1)

        stats = feedback_store.stats(alice)
        assert [f["viewer_name"] for f in stats["recent_feedback"]] == ["v6", "v5", "v4", "v3", "v2"]
        assert all(f["poem"] == {"id": poem_id, "title": "Ode"} for f in stats["recent_feedback"])
        assert stats["total_feedback"] == 7


def test_purge_orphans(feedback_store, poem_id, database):
    feedback_store.submit(poem_id, "kept", True)
    database["feedback"].insert_one({"poem_id": ObjectId(), "viewer_name": "ghost", "liked": True})

    assert feedback_store.purge_orphans() == 1
    assert feedback_store.purge_orphans() == 0
    assert [f["viewer_name"] for f in database["feedback"].find({})] == ["kept"]
