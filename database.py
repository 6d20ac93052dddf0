"""
MongoDB connection handling.

A single MongoClient is shared by every request. It is opened once when the
application starts (see the lifespan in main.py) and closed on shutdown.
Route handlers receive the database through the ``get_db`` dependency so
tests can swap in a different store.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pymongo import MongoClient
from pymongo.database import Database

from config import DATABASE_URL, DATABASE_NAME

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db: Optional[Database] = None


def connect() -> Database:
    global client, db
    if db is None:
        client = MongoClient(DATABASE_URL)
        db = client[DATABASE_NAME]
        logger.info("Connected to MongoDB database %s", DATABASE_NAME)
    return db


def close() -> None:
    global client, db
    if client is not None:
        client.close()
        logger.info("MongoDB connection closed")
    client = None
    db = None


def get_db() -> Database:
    if db is None:
        raise RuntimeError("Database not initialized")
    return db


def create_document(database: Database, collection_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Insert ``data`` stamped with ``created_at`` and return the stored document."""
    doc = dict(data)
    doc.setdefault("created_at", datetime.now(timezone.utc))
    res = database[collection_name].insert_one(doc)
    doc["_id"] = res.inserted_id
    return doc

