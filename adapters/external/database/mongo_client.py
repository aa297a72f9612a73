# adapters/external/database/mongo_client.py

from __future__ import annotations

from typing import Optional

from pymongo import MongoClient
from pymongo.database import Database

from config import get_settings

_client: Optional[MongoClient] = None
_db: Optional[Database] = None


def is_mongo_configured() -> bool:
    """
    Run history is optional: an empty MONGO_URI disables it.
    """
    return bool((get_settings().MONGO_URI or "").strip())


def get_mongo_client() -> MongoClient:
    """
    Return a singleton MongoClient built from MONGO_URI.

    The client is created lazily and cached at module level so that subsequent
    calls reuse the same underlying connection pool.
    """
    global _client
    if _client is None:
        uri = (get_settings().MONGO_URI or "").strip()
        if not uri:
            raise RuntimeError(
                "MONGO_URI is not configured. Set it to keep a history of compounding runs."
            )
        _client = MongoClient(uri)
    return _client


def get_mongo_db() -> Database:
    """
    Return the Database named by MONGO_DB, cached at module level.
    """
    global _db
    if _db is None:
        db_name = get_settings().MONGO_DB
        if not db_name:
            raise RuntimeError("MONGO_DB is not configured.")
        _db = get_mongo_client()[db_name]
    return _db
