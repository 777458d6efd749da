"""
MongoDB access for the Evento API.

The client and the GridFS bucket are built once in the app lifespan and handed
to routes through the ``get_db`` / ``get_media_storage`` dependencies.
Collection names are the lowercase of the schema class name (see schemas.py).
"""
import logging
import re
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException, Request
from gridfs import GridFSBucket
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_NAME = "evento"
MEDIA_BUCKET_NAME = "media"


def connect(uri: str, name: Optional[str] = None):
    client = MongoClient(uri)
    if name:
        db = client[name]
    else:
        db = client.get_default_database(default=DEFAULT_DATABASE_NAME)
    logger.info("Connected to MongoDB database %s", db.name)
    return client, db


def create_media_storage(db) -> GridFSBucket:
    bucket = GridFSBucket(db, bucket_name=MEDIA_BUCKET_NAME)
    logger.info("GridFS bucket '%s' initialized", MEDIA_BUCKET_NAME)
    return bucket


def ensure_indexes(db) -> None:
    db["adminuser"].create_index("email", unique=True)
    db["template"].create_index("slug", unique=True)
    db["template"].create_index([("status", ASCENDING), ("category", ASCENDING)])
    db["templateversion"].create_index([("template_id", ASCENDING), ("version", ASCENDING)], unique=True)
    db["templatesection"].create_index([("version_id", ASCENDING), ("section_id", ASCENDING)], unique=True)
    db["templatesection"].create_index([("version_id", ASCENDING), ("order", ASCENDING)])
    db["microsite"].create_index("slug", unique=True)
    db["microsite"].create_index([("user_id", ASCENDING), ("updated_at", DESCENDING)])
    db["micrositesection"].create_index([("microsite_id", ASCENDING), ("section_id", ASCENDING)], unique=True)
    db["micrositesection"].create_index([("microsite_id", ASCENDING), ("order", ASCENDING)])
    db["site"].create_index("slug", unique=True)
    db["site"].create_index("user_id")
    # one RSVP per email per site; guests without an email are not constrained
    db["guest"].create_index(
        [("site_id", ASCENDING), ("email", ASCENDING)],
        unique=True,
        partialFilterExpression={"email": {"$type": "string"}},
    )
    db["guest"].create_index([("site_id", ASCENDING), ("status", ASCENDING)])
    db["wish"].create_index([("site_id", ASCENDING), ("status", ASCENDING)])
    db["wish"].create_index([("site_id", ASCENDING), ("is_highlighted", ASCENDING)])
    db["media"].create_index("filename", unique=True)
    logger.info("MongoDB indexes ensured")


# ---------- FastAPI dependencies ----------

def get_db(request: Request):
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def get_media_storage(request: Request) -> GridFSBucket:
    storage = getattr(request.app.state, "media_storage", None)
    if storage is None:
        raise HTTPException(status_code=500, detail="Media storage not configured")
    return storage


# ---------- Document helpers ----------

def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # pymongo hands back naive datetimes that are already UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def create_document(db, collection_name: str, data) -> str:
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    data_dict["created_at"] = now_utc()
    data_dict["updated_at"] = now_utc()
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def create_documents(db, collection_name: str, docs: list, created: Optional[list] = None) -> list:
    """Insert many documents; their ids are recorded in ``created`` before the write."""
    ids = []
    stamped = []
    for doc in docs:
        doc = dict(doc)
        doc["_id"] = ObjectId()
        doc["created_at"] = now_utc()
        doc["updated_at"] = now_utc()
        ids.append(doc["_id"])
        stamped.append(doc)
        if created is not None:
            created.append((collection_name, doc["_id"]))
    if stamped:
        db[collection_name].insert_many(stamped)
    return ids


def discard_documents(db, created: list) -> None:
    """Compensating cleanup for a multi-document write that failed partway."""
    for collection_name, doc_id in reversed(created):
        db[collection_name].delete_one({"_id": doc_id})
    logger.warning("Discarded %d partially created documents", len(created))


def contains(text: str) -> dict:
    """Case-insensitive substring match on the literal text."""
    return {"$regex": re.escape(text), "$options": "i"}


def parse_object_id(value: str) -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(400, "Invalid id")


def oid(obj):
    if isinstance(obj, ObjectId):
        return str(obj)
    return obj


def serialize(doc):
    if not doc:
        return doc
    d = {k: oid(v) for k, v in doc.items()}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def serialize_many(docs):
    return [serialize(d) for d in docs]
