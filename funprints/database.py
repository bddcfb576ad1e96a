from __future__ import annotations
from typing import Any, Optional
from datetime import datetime, timezone
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from funprints.config import get_settings

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def get_db() -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        settings = get_settings()
        _client = AsyncIOMotorClient(settings.DATABASE_URL, tz_aware=True)
        _db = _client[settings.DATABASE_NAME]
    return _db


def close_db() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
    _client = None
    _db = None


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    await db["order"].create_index("order_code", unique=True)
    await db["order"].create_index([("created_at", DESCENDING)])
    await db["product_variant"].create_index(
        [("product_id", ASCENDING), ("color", ASCENDING), ("size", ASCENDING)], unique=True
    )


def to_object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(str(value))
    except Exception:
        return None


def serialize_doc(doc: dict[str, Any]) -> dict[str, Any]:
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    return doc


async def create_document(db: AsyncIOMotorDatabase, collection_name: str, data: dict[str, Any]) -> dict[str, Any]:
    now = utcnow()
    data_with_meta = {**data, "created_at": now, "updated_at": now}
    result = await db[collection_name].insert_one(data_with_meta)
    inserted = await db[collection_name].find_one({"_id": result.inserted_id})
    return serialize_doc(inserted) if inserted else {}


async def get_documents(
    db: AsyncIOMotorDatabase,
    collection_name: str,
    filter_dict: dict[str, Any] | None = None,
    limit: int = 100,
    sort: list[tuple[str, int]] | None = None,
) -> list[dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    docs = []
    async for d in cursor:
        docs.append(serialize_doc(d))
    return docs
