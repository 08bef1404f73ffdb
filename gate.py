"""
AccessGate: unlock a poem with its passcode.

The match, the view counter bump and the access-log append happen in one
`find_one_and_update`, so parallel unlocks never lose an increment or a log
record. Wrong passcode, inactive poem and unknown poem id all come back as
the same NotFound.
"""

import logging
from typing import Optional

from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from database import parse_id, utcnow
from errors import NotFound
from schemas import AccessLogEntry
from validation import check, validate_unlock

logger = logging.getLogger(__name__)

VIEWER_FIELDS = ("title", "content", "pdf_url", "author", "category")


def viewer_view(poem: dict) -> dict:
    """What an anonymous viewer may see of an unlocked poem."""
    view = {"id": str(poem["_id"])}
    for field in VIEWER_FIELDS:
        view[field] = poem.get(field)
    return view


class AccessGate:
    def __init__(self, database: Database):
        self.poems = database["poem"]

    def unlock(self, passcode: Optional[str], viewer_name: Optional[str],
               source_address: Optional[str] = None, poem_id=None) -> dict:
        check(validate_unlock(passcode, viewer_name))

        query = {"passcode": passcode, "is_active": True}
        if poem_id is not None:
            pid = parse_id(poem_id)
            if pid is None:
                raise NotFound("Poem not found or inactive")
            query["_id"] = pid

        now = utcnow()
        entry = AccessLogEntry(viewer_name=viewer_name.strip(), viewed_at=now, ip_address=source_address)
        poem = self.poems.find_one_and_update(
            query,
            {
                "$inc": {"view_count": 1},
                "$push": {"access_log": entry.model_dump()},
                "$set": {"updated_at": now},
            },
            sort=[("created_at", DESCENDING), ("_id", DESCENDING)],
            return_document=ReturnDocument.AFTER,
        )
        if not poem:
            logger.debug("Unlock miss from %s", source_address)
            raise NotFound("Poem not found or inactive")
        return viewer_view(poem)
