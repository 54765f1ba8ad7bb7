"""
Document store handle.

A single ``DocumentStore`` wraps the process-wide ``MongoClient``. It is
created by ``create_app`` (or injected by tests with a ``mongomock`` client),
stored on ``app.extensions["document_store"]`` and closed on shutdown.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from flask import current_app
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from petpocket.core.config import (
    get_mongodb_db_name,
    get_mongodb_timeout_ms,
    get_mongodb_uri,
)

logger = logging.getLogger(__name__)

# Collection names
PRODUCTS = "products"
SERVICES = "services"
ORDER_DETAILS = "order_details"
APPOINTMENT_DETAILS = "appointment_details"
PET_MEDICAL_HISTORY = "pet_medical_history"
USER_DETAILS = "user_details"

# Companion collection -> field holding the relational row id
COMPANION_KEYS = {
    ORDER_DETAILS: "orderId",
    APPOINTMENT_DETAILS: "appointmentId",
    PET_MEDICAL_HISTORY: "petId",
    USER_DETAILS: "userId",
}


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse a hex id; malformed ids resolve to ``None`` (treated as missing)."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def serialize_document(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Turn a raw document into JSON-ready data (``_id`` -> ``id``, datetimes -> ISO)."""
    if doc is None:
        return None

    def convert(value):
        if isinstance(value, ObjectId):
            return str(value)
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, dict):
            return {k: convert(v) for k, v in value.items()}
        if isinstance(value, list):
            return [convert(v) for v in value]
        return value

    data = {k: convert(v) for k, v in doc.items() if k != "_id"}
    if "_id" in doc:
        data = {"id": str(doc["_id"]), **data}
    return data


class DocumentStore:
    """Owns a MongoClient and the database the app works against."""

    def __init__(self, client: MongoClient, db_name: str):
        self.client = client
        self.db = client[db_name]
        self.db_name = db_name
        self._closed = False

    @classmethod
    def from_settings(cls) -> "DocumentStore":
        timeout_ms = get_mongodb_timeout_ms()
        client = MongoClient(
            get_mongodb_uri(),
            serverSelectionTimeoutMS=timeout_ms,
            tz_aware=True,
        )
        return cls(client, get_mongodb_db_name())

    def collection(self, name: str):
        return self.db[name]

    def ensure_indexes(self) -> None:
        """One companion document per relational row: unique index on the key."""
        for collection_name, key in COMPANION_KEYS.items():
            self.db[collection_name].create_index(
                [(key, ASCENDING)], unique=True, name=f"{key}_unique"
            )
        self.db[PRODUCTS].create_index([("createdAt", DESCENDING)])
        self.db[PRODUCTS].create_index([("category", ASCENDING)])
        self.db[SERVICES].create_index([("createdAt", DESCENDING)])
        logger.info(
            "Document store indexes ensured",
            extra={"context": {"db": self.db_name}},
        )

    def ping(self) -> bool:
        try:
            self.client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.error(
                "Document store connection failed",
                extra={"context": {"error": str(e)}},
            )
            return False

    def close(self) -> None:
        if self._closed:
            return
        self.client.close()
        self._closed = True
        logger.info("Document store client closed")


def get_document_store() -> DocumentStore:
    """Return the store bound to the running Flask app."""
    return current_app.extensions["document_store"]
