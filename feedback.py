"""
FeedbackStore: viewer feedback on poems and the owner's inbox over it.

Anyone holding a poem id may submit feedback. Reading, marking and deleting
feedback is limited to the admin who owns the poem it refers to.
"""

import logging
from typing import Callable, Dict, Optional

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from database import create_document, paginate, parse_id, serialize, utcnow
from errors import Forbidden, NotFound
from schemas import Feedback
from validation import check, validate_feedback, validate_pagination

logger = logging.getLogger(__name__)

RECENT_LIMIT = 5


def _run_now(func: Callable, *args) -> None:
    func(*args)


class FeedbackStore:
    def __init__(self, database: Database, notifier):
        self.feedback = database["feedback"]
        self.poems = database["poem"]
        self.admins = database["admin"]
        self.database = database
        self.notifier = notifier

    # ---------- helpers ----------

    def _owned_titles(self, owner_id: ObjectId) -> Dict[ObjectId, str]:
        return {p["_id"]: p["title"] for p in self.poems.find({"created_by": owner_id}, {"title": 1})}

    @staticmethod
    def _with_poem(item: dict, titles: Dict[ObjectId, str]) -> dict:
        out = serialize(item)
        out["poem"] = {"id": str(item["poem_id"]), "title": titles.get(item["poem_id"])}
        return out

    def _owned_feedback(self, owner_id: ObjectId, feedback_id) -> dict:
        fid = parse_id(feedback_id)
        item = self.feedback.find_one({"_id": fid}) if fid else None
        if not item:
            raise NotFound("Feedback not found")
        if not self.poems.find_one({"_id": item["poem_id"], "created_by": owner_id}, {"_id": 1}):
            raise Forbidden("Not authorized to manage this feedback")
        return item

    def _notify(self, owner_id: ObjectId, summary: dict) -> None:
        """Email the poem owner. Runs after the write; failures only reach the log."""
        try:
            admin = self.admins.find_one({"_id": owner_id}, {"email": 1})
            if not admin:
                logger.warning("No admin %s to notify about feedback", owner_id)
                return
            self.notifier.send_feedback_notification(admin["email"], summary)
        except Exception:
            logger.exception("Email notification error for poem %r", summary.get("poem_title"))

    # ---------- operations ----------

    def submit(self, poem_id, viewer_name: Optional[str], liked, message: Optional[str] = None,
               rating=None, source_address: Optional[str] = None,
               schedule: Callable = _run_now) -> dict:
        """Store feedback and hand the owner notification to `schedule`.

        `schedule(func, *args)` decides when the email goes out; the HTTP layer
        passes BackgroundTasks.add_task so the response never waits on SMTP.
        """
        check(validate_feedback(poem_id, viewer_name, liked, message, rating))
        poem = self.poems.find_one({"_id": parse_id(poem_id)})
        if not poem:
            raise NotFound("Poem not found")

        item = Feedback(
            poem_id=poem["_id"],
            viewer_name=viewer_name.strip(),
            liked=liked,
            message=(message or "").strip() or None,
            rating=rating,
            ip_address=source_address,
        ).model_dump()
        if item["rating"] is None:
            del item["rating"]
        doc = create_document(self.database, "feedback", item)

        summary = {
            "poem_title": poem["title"],
            "viewer_name": doc["viewer_name"],
            "liked": liked,
            "message": doc["message"],
            "rating": rating,
        }
        schedule(self._notify, poem["created_by"], summary)
        return serialize(doc)

    def list(self, owner_id: ObjectId, poem_id=None, page: int = 1, limit: int = 10) -> dict:
        check(validate_pagination(page, limit))
        if poem_id:
            pid = parse_id(poem_id)
            poem = self.poems.find_one({"_id": pid, "created_by": owner_id}, {"title": 1}) if pid else None
            if not poem:
                raise NotFound("Poem not found")
            titles = {poem["_id"]: poem["title"]}
            query = {"poem_id": poem["_id"]}
        else:
            titles = self._owned_titles(owner_id)
            query = {"poem_id": {"$in": list(titles)}}

        items, meta = paginate(self.feedback, query, page, limit)
        return {"feedback": [self._with_poem(i, titles) for i in items], "pagination": meta}

    def mark_read(self, owner_id: ObjectId, feedback_id) -> dict:
        item = self._owned_feedback(owner_id, feedback_id)
        updated = self.feedback.find_one_and_update(
            {"_id": item["_id"]},
            {"$set": {"is_read": True, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            raise NotFound("Feedback not found")
        return serialize(updated)

    def delete(self, owner_id: ObjectId, feedback_id) -> None:
        item = self._owned_feedback(owner_id, feedback_id)
        self.feedback.delete_one({"_id": item["_id"]})

    def stats(self, owner_id: ObjectId) -> dict:
        titles = self._owned_titles(owner_id)
        match = {"poem_id": {"$in": list(titles)}}

        total = self.feedback.count_documents(match)
        positive = self.feedback.count_documents({**match, "liked": True})
        unread = self.feedback.count_documents({**match, "is_read": False})

        averaged = list(self.feedback.aggregate([
            {"$match": {**match, "rating": {"$exists": True}}},
            {"$group": {"_id": None, "avg_rating": {"$avg": "$rating"}}},
        ]))
        average = averaged[0]["avg_rating"] if averaged else 0

        recent = self.feedback.find(match).sort([("created_at", DESCENDING), ("_id", DESCENDING)]).limit(RECENT_LIMIT)
        return {
            "total_feedback": total,
            "positive_feedback": positive,
            "negative_feedback": total - positive,
            "unread_feedback": unread,
            "average_rating": average or 0,
            "recent_feedback": [self._with_poem(i, titles) for i in recent],
        }

    def purge_orphans(self) -> int:
        """Delete feedback whose poem is gone. Safe to run any number of times."""
        poem_ids = self.poems.distinct("_id")
        removed = self.feedback.delete_many({"poem_id": {"$nin": poem_ids}}).deleted_count
        if removed:
            logger.info("Purged %d orphaned feedback records", removed)
        return removed
