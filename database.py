"""
Database Helper Functions for the MongoDB document store.

- DATABASE_URL (or MONGO_URI) and DATABASE_NAME select the database.
- Every collection is named after its lowercased schema name (session, clip).
- Documents are plain dicts; `serialize` makes them JSON friendly for responses.

Run `python database.py` to check that the configured cluster is reachable.
"""
from __future__ import annotations

import os
import sys
import logging
from datetime import datetime, timezone
from typing import Union, List, Dict, Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.errors import PyMongoError

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL") or os.getenv("MONGO_URI")
DATABASE_NAME = os.getenv("DATABASE_NAME", "vantage_vision")

_client = None
db = None

if DATABASE_URL:
    # MongoClient connects lazily, so a bad URL surfaces on first query
    _client = MongoClient(DATABASE_URL)
    db = _client[DATABASE_NAME]


class DatabaseNotConfigured(PyMongoError):
    pass


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_collection(collection_name: str):
    if db is None:
        raise DatabaseNotConfigured("DATABASE_URL is not set")
    return db[collection_name]


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    """Insert a single document with timestamps.

    Returns the stored document, including its `_id`.
    """
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)

    data_dict['created_at'] = _now()
    data_dict['updated_at'] = _now()

    result = get_collection(collection_name).insert_one(data_dict)
    data_dict['_id'] = result.inserted_id
    return data_dict


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List[tuple]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Get documents from a collection matching `filter_dict`."""
    cursor = get_collection(collection_name).find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse a client supplied id, returning None when it is not an ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    doc = dict(doc)
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


def check_connection(url: str, timeout_ms: int = 5000) -> None:
    """Ping the server, raising PyMongoError when it cannot be reached."""
    client = MongoClient(url, serverSelectionTimeoutMS=timeout_ms)
    try:
        client.admin.command("ping")
    finally:
        client.close()


def _failure_hint(message: str) -> Optional[str]:
    if "bad auth" in message or "Authentication failed" in message:
        return "Check the username and password in DATABASE_URL."
    if "timed out" in message or "ETIMEDOUT" in message or "querySrv" in message:
        return "Your IP address may be blocked. Allow it in the cluster's network access list."
    return None


if __name__ == "__main__":
    if not DATABASE_URL:
        print("DATABASE_URL is not set.")
        sys.exit(1)
    print(f"Testing MongoDB connection to database '{DATABASE_NAME}'...")
    try:
        check_connection(DATABASE_URL)
    except PyMongoError as exc:
        print(f"FAILED: {exc}")
        hint = _failure_hint(str(exc))
        if hint:
            print(f"FIX: {hint}")
        sys.exit(1)
    print("SUCCESS! Connected.")
