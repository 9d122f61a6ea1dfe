"""
MongoDB access helpers.

The application factory owns the database handle and passes it to the
repositories; nothing here keeps a module-level connection.
"""
from typing import Any, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from config import Settings
from schemas import utcnow

SENSITIVE_FIELDS = ("password",)


def connect(settings: Settings) -> Database:
    """Build a client for the configured URI. pymongo connects lazily, so
    this never blocks on an unreachable server."""
    client: MongoClient = MongoClient(settings.mongodb_uri, tz_aware=True)
    return client.get_default_database(default=settings.database_name)


def ensure_indexes(db: Database) -> None:
    db["users"].create_index([("username", ASCENDING)], unique=True)
    db["users"].create_index([("email", ASCENDING)], unique=True)
    db["tasks"].create_index([("createdAt", DESCENDING)])
    db["tasks"].create_index([("status", ASCENDING)])
    db["projects"].create_index([("createdAt", DESCENDING)])


def create_document(db: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True)
    else:
        data_dict = dict(data)
    now = utcnow()
    data_dict["createdAt"] = now
    data_dict["updatedAt"] = now
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[dict] = None,
    projection: Optional[dict] = None,
    sort: Optional[list] = None,
    skip: int = 0,
    limit: Optional[int] = None,
) -> list[dict]:
    cursor = db[collection_name].find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(sort)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def parse_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and len(value) == 24 and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def to_str_id(doc: Any) -> Any:
    """Make a stored document JSON-safe: ObjectIds become strings at any
    depth and sensitive fields are dropped."""
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, list):
        return [to_str_id(item) for item in doc]
    if isinstance(doc, dict):
        return {
            key: to_str_id(value)
            for key, value in doc.items()
            if key not in SENSITIVE_FIELDS
        }
    return doc
