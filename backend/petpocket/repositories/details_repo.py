"""
Companion document repositories.

Each collection holds at most one document per relational row, keyed by the
row id (unique index created by ``DocumentStore.ensure_indexes``). Updates
always upsert so a row whose document was never written, or was lost, gets
one on first update.
"""

from typing import Any, Dict, Iterable, Optional

from pymongo import ReturnDocument

from petpocket.db.mongo import (
    APPOINTMENT_DETAILS,
    COMPANION_KEYS,
    ORDER_DETAILS,
    PET_MEDICAL_HISTORY,
    USER_DETAILS,
    DocumentStore,
    now_utc,
)


class CompanionDocumentRepository:
    collection_name: str

    def __init__(self, store: DocumentStore):
        self.collection = store.collection(self.collection_name)
        self.key = COMPANION_KEYS[self.collection_name]

    def get(self, row_id: int) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({self.key: row_id})

    def get_many(self, row_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
        """Fetch documents for a page of rows in one query, keyed by row id."""
        ids = list(row_ids)
        if not ids:
            return {}
        return {
            doc[self.key]: doc for doc in self.collection.find({self.key: {"$in": ids}})
        }

    def insert(self, row_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        now = now_utc()
        doc = {**fields, self.key: row_id, "createdAt": now, "updatedAt": now}
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    def _upsert(self, row_id: int, update: Dict[str, Any]) -> Dict[str, Any]:
        now = now_utc()
        update.setdefault("$set", {})["updatedAt"] = now
        update["$setOnInsert"] = {"createdAt": now}
        return self.collection.find_one_and_update(
            {self.key: row_id},
            update,
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    def upsert_fields(self, row_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Merge-patch ``fields`` into the document, creating it if missing."""
        return self._upsert(row_id, {"$set": dict(fields)})

    def push(self, row_id: int, array_field: str, entry: Dict[str, Any]) -> Dict[str, Any]:
        """Append ``entry`` to ``array_field``, creating the document if missing."""
        return self._upsert(row_id, {"$push": {array_field: entry}})

    def delete(self, row_id: int) -> bool:
        return self.collection.delete_one({self.key: row_id}).deleted_count == 1

    def count(self) -> int:
        return self.collection.count_documents({})


class OrderDetailsRepository(CompanionDocumentRepository):
    collection_name = ORDER_DETAILS


class AppointmentDetailsRepository(CompanionDocumentRepository):
    collection_name = APPOINTMENT_DETAILS


class PetMedicalHistoryRepository(CompanionDocumentRepository):
    collection_name = PET_MEDICAL_HISTORY


class UserDetailsRepository(CompanionDocumentRepository):
    collection_name = USER_DETAILS

    def record_activity(
        self,
        user_id: int,
        action: str,
        details: Optional[Dict[str, Any]] = None,
        fields: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Append to the activity log, optionally setting ``fields`` in the same write."""
        entry = {"action": action, "timestamp": now_utc(), "details": details or {}}
        update: Dict[str, Any] = {"$push": {"activityLog": entry}}
        if fields:
            update["$set"] = dict(fields)
        return self._upsert(user_id, update)
