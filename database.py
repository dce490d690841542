"""
Database access

A single pymongo client is created at import time with the connection pool
settings the storefront uses. When DATABASE_URL is not configured, ``db`` is
None and request handlers answer 503 through ``get_db``.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Optional, Union

from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "vibecart")

client: Optional[MongoClient] = None
db: Optional[Database] = None

if DATABASE_URL:
    client = MongoClient(
        DATABASE_URL,
        maxPoolSize=10,
        minPoolSize=5,
        maxIdleTimeMS=30000,
        serverSelectionTimeoutMS=5000,
        socketTimeoutMS=45000,
    )
    db = client[DATABASE_NAME]
    logger.info("MongoDB client configured for database %s", DATABASE_NAME)
else:
    logger.warning("DATABASE_URL is not set; database features are disabled")


def get_db() -> Database:
    """FastAPI dependency returning the configured database."""
    if db is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return db


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with createdAt/updatedAt and return its id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(exclude_none=True)
    else:
        data_dict = dict(data)
    now = _now()
    data_dict.setdefault("createdAt", now)
    data_dict["updatedAt"] = now
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(database: Database, collection_name: str, filter_dict: Optional[dict] = None,
                  limit: Optional[int] = None, sort: Optional[list] = None) -> list:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_indexes(database: Database) -> None:
    database["vendors"].create_index([("email", ASCENDING)], unique=True)
    database["blogs"].create_index([("slug", ASCENDING)], unique=True)
    database["blogs"].create_index([("author", ASCENDING), ("publishedAt", DESCENDING)])
    database["blogs"].create_index([("status", ASCENDING), ("publishedAt", DESCENDING)])
    database["products"].create_index([("slug", ASCENDING)], unique=True)
    database["products"].create_index([("vendor._id", ASCENDING), ("createdAt", DESCENDING)])
    database["subcategories"].create_index([("parent", ASCENDING)])
