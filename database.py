"""
MongoDB access for KrishiLink.

A single ``MongoClient`` is created by ``connect`` when the app starts
and shared by every request until ``close`` runs on shutdown. Handlers
reach the database through ``get_db``.

Collections:
- "crops": crop listings with embedded interests
- "users": user records keyed by email
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from pymongo import MongoClient
from pymongo.database import Database

from config import settings

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None
db: Optional[Database] = None


def connect(client: Optional[MongoClient] = None) -> Database:
    """Open the shared client and select the configured database.

    A ready-made ``client`` may be passed in (tests use mongomock).
    """
    global _client, db
    if client is None:
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is not set")
        client = MongoClient(settings.database_url)
        # Fail at startup rather than on the first request
        client.admin.command("ping")
    _client = client
    db = client[settings.database_name]
    logger.info("Connected to MongoDB database %s", settings.database_name)
    return db


def close() -> None:
    global _client, db
    if _client is not None:
        _client.close()
        logger.info("MongoDB connection closed")
    _client = None
    db = None


def get_db() -> Database:
    if db is None:
        raise RuntimeError("Database not available. Call connect() first.")
    return db


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List[Tuple[str, int]]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    cursor = get_db()[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
