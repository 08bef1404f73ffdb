"""
VaultEntryStore: an admin's passcode-locked poems.

Every lookup is filtered on `created_by`, so a poem owned by someone else is
reported exactly like a poem that does not exist.
"""

import logging
from typing import NamedTuple, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

import qr
from database import create_document, paginate, parse_id, serialize, utcnow
from errors import NotFound
from schemas import DEFAULT_AUTHOR, DEFAULT_CATEGORY, Poem
from settings import Settings
from storage import CloudinaryStore
from validation import check, validate_pagination, validate_pdf, validate_poem

logger = logging.getLogger(__name__)


class Attachment(NamedTuple):
    data: bytes
    filename: str
    content_type: Optional[str]


class VaultEntryStore:
    def __init__(self, database: Database, settings: Settings, object_store=None):
        self.database = database
        self.poems = database["poem"]
        self.feedback = database["feedback"]
        self.settings = settings
        self.object_store = object_store or CloudinaryStore(settings)

    def share_url(self, poem_id) -> str:
        return f"{self.settings.frontend_url.rstrip('/')}/unlock/{poem_id}"

    def _owned(self, owner_id: ObjectId, poem_id) -> dict:
        pid = parse_id(poem_id)
        poem = self.poems.find_one({"_id": pid, "created_by": owner_id}) if pid else None
        if not poem:
            raise NotFound("Poem not found")
        return poem

    def _attachment_errors(self, attachment: Optional[Attachment]):
        if attachment is None:
            return []
        return validate_pdf(attachment.content_type, len(attachment.data), self.settings.max_pdf_bytes)

    def _upload(self, attachment: Attachment) -> str:
        return self.object_store.store(attachment.data, attachment.filename)

    # ---------- operations ----------

    def create(self, owner_id: ObjectId, title: Optional[str], passcode: Optional[str],
               content: Optional[str] = None, author: Optional[str] = None,
               category: Optional[str] = None, attachment: Optional[Attachment] = None) -> dict:
        errors = validate_poem(title, content, attachment is not None, passcode, category)
        errors += self._attachment_errors(attachment)
        check(errors)

        pdf_url = self._upload(attachment) if attachment else None
        poem = Poem(
            title=title.strip(),
            content=content or None,
            pdf_url=pdf_url,
            passcode=passcode,
            author=(author or "").strip() or DEFAULT_AUTHOR,
            category=category or DEFAULT_CATEGORY,
            created_by=owner_id,
        )
        doc = create_document(self.database, "poem", poem)
        logger.info("Admin %s created poem %s", owner_id, doc["_id"])

        url = self.share_url(doc["_id"])
        return {"poem": serialize(doc), "share_url": url, "qr_code": qr.qr_data_url(url)}

    def list(self, owner_id: ObjectId, page: int = 1, limit: int = 10) -> dict:
        check(validate_pagination(page, limit))
        items, meta = paginate(self.poems, {"created_by": owner_id}, page, limit)
        return {"poems": serialize(items), "pagination": meta}

    def get(self, owner_id: ObjectId, poem_id) -> dict:
        return serialize(self._owned(owner_id, poem_id))

    def update(self, owner_id: ObjectId, poem_id, title: Optional[str], passcode: Optional[str],
               content: Optional[str] = None, author: Optional[str] = None,
               category: Optional[str] = None, is_active: Optional[bool] = None,
               attachment: Optional[Attachment] = None) -> dict:
        """Replace the mutable fields of an owned poem.

        Title and passcode are always required. Fields passed as None keep
        their stored value; the PDF is replaced only when a new one is given.
        """
        current = self._owned(owner_id, poem_id)

        merged_content = content if content is not None else current.get("content")
        has_pdf = attachment is not None or bool(current.get("pdf_url"))
        errors = validate_poem(title, merged_content, has_pdf, passcode, category)
        errors += self._attachment_errors(attachment)
        check(errors)

        updates = {"title": title.strip(), "passcode": passcode, "updated_at": utcnow()}
        if content is not None:
            updates["content"] = content or None
        if author is not None:
            updates["author"] = author.strip() or DEFAULT_AUTHOR
        if category is not None:
            updates["category"] = category
        if is_active is not None:
            updates["is_active"] = is_active
        if attachment is not None:
            updates["pdf_url"] = self._upload(attachment)

        poem = self.poems.find_one_and_update(
            {"_id": current["_id"], "created_by": owner_id},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
        if not poem:
            raise NotFound("Poem not found")
        return serialize(poem)

    def delete(self, owner_id: ObjectId, poem_id) -> dict:
        """Delete an owned poem, then its feedback.

        The two deletes are sequential, not transactional. Feedback orphaned
        by a crash in between is collected by FeedbackStore.purge_orphans.
        """
        pid = parse_id(poem_id)
        poem = self.poems.find_one_and_delete({"_id": pid, "created_by": owner_id}) if pid else None
        if not poem:
            raise NotFound("Poem not found")

        removed = self.feedback.delete_many({"poem_id": poem["_id"]}).deleted_count
        logger.info("Admin %s deleted poem %s and %d feedback", owner_id, poem["_id"], removed)
        return {"deleted_feedback": removed}

    def qr_png(self, owner_id: ObjectId, poem_id) -> bytes:
        poem = self._owned(owner_id, poem_id)
        return qr.qr_png(self.share_url(poem["_id"]))
