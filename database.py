"""
Database helpers for Poetic Vault

The module-level `db` is the process-wide MongoDB handle built from Settings.
It stays None when no database is configured; the API then answers with
"Database not available" instead of failing at import time.
"""

import math
from datetime import datetime, timezone
from typing import List, Optional, Tuple, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from settings import get_settings

_settings = get_settings()

client: Optional[MongoClient] = None
db: Optional[Database] = None

if _settings.database_url and _settings.database_name:
    client = MongoClient(_settings.database_url)
    db = client[_settings.database_name]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> dict:
    """Insert one document, stamping created_at/updated_at. Returns it with `_id`."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    stamp = utcnow()
    doc["created_at"] = stamp
    doc["updated_at"] = stamp
    res = database[collection_name].insert_one(doc)
    doc["_id"] = res.inserted_id
    return doc


def parse_id(value) -> Optional[ObjectId]:
    """ObjectId for `value`, or None when it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, (str, bytes)):
        # ObjectId(None) would mint a fresh id
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def serialize(doc):
    """JSON-friendly copy of a document: `_id` -> `id`, ObjectId -> str, datetime -> isoformat."""
    if isinstance(doc, dict):
        d = {}
        for k, v in doc.items():
            if k == "_id":
                d["id"] = serialize(v)
            else:
                d[k] = serialize(v)
        return d
    if isinstance(doc, list):
        return [serialize(v) for v in doc]
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, datetime):
        return doc.isoformat()
    return doc


def page_meta(page: int, limit: int, total: int) -> dict:
    return {
        "current": page,
        "pages": math.ceil(total / limit),
        "total": total,
        "has_next": page * limit < total,
        "has_prev": page > 1,
    }


def paginate(collection: Collection, query: dict, page: int, limit: int,
             sort_field: str = "created_at") -> Tuple[List[dict], dict]:
    """Newest-first page of `query` plus pagination metadata."""
    skip = (page - 1) * limit
    items = list(
        collection.find(query)
        .sort([(sort_field, DESCENDING), ("_id", DESCENDING)])
        .skip(skip)
        .limit(limit)
    )
    total = collection.count_documents(query)
    return items, page_meta(page, limit, total)


def ensure_indexes(database: Database) -> None:
    database["admin"].create_index([("email", ASCENDING)], unique=True)
    database["admin"].create_index([("username", ASCENDING)], unique=True)
    database["poem"].create_index([("passcode", ASCENDING)])
    database["poem"].create_index([("created_by", ASCENDING)])
    database["feedback"].create_index([("poem_id", ASCENDING)])
    database["feedback"].create_index([("created_at", DESCENDING)])
