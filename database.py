"""
Database helpers

MongoDB connection shared by the routes. `db` is None when DATABASE_URL or
DATABASE_NAME is not set; routes then answer 500 "Database not configured".
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

from config import settings
from logging_config import get_logger

logger = get_logger(__name__)

_client: Optional[MongoClient] = None
db: Optional[Database] = None

if settings.DATABASE_URL and settings.DATABASE_NAME:
    _client = MongoClient(settings.DATABASE_URL, tz_aware=True)
    db = _client[settings.DATABASE_NAME]
    logger.info("mongodb_client_created", database=settings.DATABASE_NAME)
else:
    logger.warning("mongodb_not_configured")


def get_db() -> Database:
    """FastAPI dependency returning the configured database."""
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]], database: Optional[Database] = None) -> str:
    """Insert a document with created_at/updated_at stamps and return its id as a string."""
    target = database if database is not None else db
    if target is None:
        raise HTTPException(status_code=500, detail="Database not configured")

    data_dict = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = datetime.now(timezone.utc)
    data_dict.setdefault("created_at", now)
    data_dict["updated_at"] = now

    result = target[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None, database: Optional[Database] = None) -> List[Dict[str, Any]]:
    """Return documents from a collection, newest first."""
    target = database if database is not None else db
    if target is None:
        raise HTTPException(status_code=500, detail="Database not configured")

    cursor = target[collection_name].find(filter_dict or {}).sort("created_at", -1)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def close_client() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("mongodb_client_closed")
