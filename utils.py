import re
import unicodedata
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi.responses import JSONResponse
from pymongo.collection import Collection


def slugify(text: str) -> str:
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = text.lower().strip()
    text = re.sub(r"[^a-z0-9\s-]", "", text)
    text = re.sub(r"[\s-]+", "-", text)
    return text.strip("-")


def unique_slug(collection: Collection, text: str, exclude_id: Optional[ObjectId] = None) -> str:
    """
    Slug for ``text`` that no other document in ``collection`` uses.
    Tries ``base``, then ``base-1``, ``base-2``... A concurrent insert can
    still win the race; the unique index on slug rejects the loser.
    """
    base = slugify(text)[:120].strip("-") or "untitled"
    slug = base
    counter = 1
    while True:
        query = {"slug": slug}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        if collection.find_one(query, {"_id": 1}) is None:
            return slug
        slug = f"{base}-{counter}"
        counter += 1


def parse_object_id(value) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # pymongo hands back naive datetimes that are UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def serialize_doc(doc):
    """Make a Mongo document JSON friendly: _id -> id, ObjectId -> str, datetimes -> ISO."""
    if isinstance(doc, list):
        return [serialize_doc(d) for d in doc]
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, datetime):
        return as_utc(doc).isoformat()
    if not isinstance(doc, dict):
        return doc
    d = {}
    for k, v in doc.items():
        if k == "_id":
            d["id"] = str(v)
        else:
            d[k] = serialize_doc(v)
    return d


def action_error(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def validation_message(exc) -> str:
    """First error of a pydantic or request validation failure, as ``field: msg``."""
    err = exc.errors()[0]
    field = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
    return f"{field}: {err.get('msg')}" if field else str(err.get("msg"))
