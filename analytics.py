"""AnalyticsAggregator: per-admin rollups over poems and feedback, computed on each call."""

from bson import ObjectId
from pymongo import DESCENDING
from pymongo.database import Database

from database import serialize
from schemas import CATEGORIES

RECENT_LIMIT = 5


class AnalyticsAggregator:
    def __init__(self, database: Database):
        self.poems = database["poem"]
        self.feedback = database["feedback"]

    def summary(self, owner_id: ObjectId) -> dict:
        owned = {"created_by": owner_id}

        counts = {c: 0 for c in CATEGORIES}
        total_poems = total_views = 0
        for row in self.poems.aggregate([
            {"$match": owned},
            {"$group": {"_id": "$category", "count": {"$sum": 1}, "views": {"$sum": "$view_count"}}},
        ]):
            counts[row["_id"]] = row["count"]
            total_poems += row["count"]
            total_views += row["views"]

        poem_ids = self.poems.distinct("_id", owned)
        recent = (
            self.poems.find(owned, {"title": 1, "view_count": 1, "updated_at": 1})
            .sort([("updated_at", DESCENDING), ("_id", DESCENDING)])
            .limit(RECENT_LIMIT)
        )
        return {
            "total_poems": total_poems,
            "total_views": total_views,
            "feedback_count": self.feedback.count_documents({"poem_id": {"$in": poem_ids}}),
            "category_stats": [{"category": c, "count": n} for c, n in counts.items()],
            "recent_activity": [
                {"title": p["title"], "view_count": p.get("view_count", 0), "updated_at": serialize(p["updated_at"])}
                for p in recent
            ],
        }
