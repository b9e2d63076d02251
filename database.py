"""
MongoDB access helpers.

`db` is None when DATABASE_URL / DATABASE_NAME are not configured; routes
check for that through the `get_db` dependency in main.py.
"""
import os
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from bson.decimal128 import Decimal128
from bson.objectid import ObjectId
from pydantic import BaseModel
from pymongo import MongoClient

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

db = None
if DATABASE_URL and DATABASE_NAME:
    client = MongoClient(DATABASE_URL, serverSelectionTimeoutMS=5000, tz_aware=True)
    db = client[DATABASE_NAME]


def to_mongo(value):
    """Convert Decimals (recursively) to Decimal128 so money survives storage exactly."""
    if isinstance(value, BaseModel):
        value = value.model_dump()
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: to_mongo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_mongo(v) for v in value]
    return value


def from_mongo(value):
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, dict):
        return {k: from_mongo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_mongo(v) for v in value]
    return value


def create_document(database, collection_name: str, data) -> str:
    doc = to_mongo(data)
    now = datetime.now(timezone.utc)
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(database, collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None):
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return [from_mongo(d) for d in cursor]


def parse_object_id(value: str) -> Optional[ObjectId]:
    if not ObjectId.is_valid(value):
        return None
    return ObjectId(value)
