"""
MongoDB connection and generic document helpers.

`db` is None when DATABASE_URL / DATABASE_NAME are not configured; callers
check for that before touching the store.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

from config import settings

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db: Optional[Database] = None

if settings.DATABASE_URL and settings.DATABASE_NAME:
    # MongoClient connects lazily, on the first operation
    client = MongoClient(settings.DATABASE_URL, tz_aware=True)
    db = client[settings.DATABASE_NAME]
    logger.info(f"MongoDB configured: database '{settings.DATABASE_NAME}'")


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _require(database: Optional[Database]) -> Database:
    database = database if database is not None else db
    if database is None:
        raise RuntimeError("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    return database


def create_document(
    collection_name: str,
    data: Union[BaseModel, Dict[str, Any]],
    database: Optional[Database] = None,
    session=None,
) -> str:
    """Insert a document, stamping created_at, and return its id as a string."""
    database = _require(database)
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(exclude={"id"})
    else:
        data_dict = dict(data)
    data_dict["created_at"] = now_utc()
    result = database[collection_name].insert_one(data_dict, session=session)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    database: Optional[Database] = None,
) -> List[Dict[str, Any]]:
    """Scan a collection in insertion order, optionally filtered by equality."""
    database = _require(database)
    cursor = database[collection_name].find(filter_dict or {}).sort("_id", 1)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
