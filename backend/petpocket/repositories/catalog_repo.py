"""
Catalog repositories: products and services are standalone documents.

Stock changes are single-document atomic updates; nothing here reads a stock
value and writes it back.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from pymongo import DESCENDING, ReturnDocument

from petpocket.db.mongo import PRODUCTS, SERVICES, DocumentStore, now_utc, to_object_id
from petpocket.domain.entities import PageRequest


def _regex(text: str) -> Dict[str, str]:
    return {"$regex": re.escape(text), "$options": "i"}


class CatalogRepository:
    collection_name: str
    search_fields: Tuple[str, ...] = ("name", "description")

    def __init__(self, store: DocumentStore):
        self.collection = store.collection(self.collection_name)

    def get_by_id(self, doc_id: Any) -> Optional[Dict[str, Any]]:
        oid = to_object_id(doc_id)
        if oid is None:
            return None
        return self.collection.find_one({"_id": oid})

    def _filters(self, page: PageRequest) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        active = page.filters.get("active")
        if active is not None:
            query["active"] = active
        if page.search:
            query["$or"] = [{field: _regex(page.search)} for field in self.search_fields]
        return query

    def list_page(self, page: PageRequest) -> Tuple[List[Dict[str, Any]], int]:
        """Newest first; ``total`` counts every match, not just this page."""
        query = self._filters(page)
        cursor = (
            self.collection.find(query)
            .sort("createdAt", DESCENDING)
            .skip(page.offset)
            .limit(page.limit)
        )
        return list(cursor), self.collection.count_documents(query)

    def insert(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        now = now_utc()
        doc = {**fields, "createdAt": now, "updatedAt": now}
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    def update(self, doc_id: Any, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        oid = to_object_id(doc_id)
        if oid is None:
            return None
        return self.collection.find_one_and_update(
            {"_id": oid},
            {"$set": {**fields, "updatedAt": now_utc()}},
            return_document=ReturnDocument.AFTER,
        )

    def delete(self, doc_id: Any) -> bool:
        oid = to_object_id(doc_id)
        if oid is None:
            return False
        return self.collection.delete_one({"_id": oid}).deleted_count == 1

    def count(self) -> int:
        return self.collection.count_documents({})


class ProductRepository(CatalogRepository):
    collection_name = PRODUCTS
    search_fields = ("name", "description", "category")

    def _filters(self, page: PageRequest) -> Dict[str, Any]:
        query = super()._filters(page)
        category = page.filters.get("category")
        if category:
            query["category"] = _regex(category)
        return query

    def decrement_stock(self, product_id: Any, quantity: int) -> Optional[Dict[str, Any]]:
        """Atomically take ``quantity`` units if at least that many are in stock.

        Returns the updated product, or ``None`` when the product is missing or
        the guard ``stock >= quantity`` did not hold at write time.
        """
        oid = to_object_id(product_id)
        if oid is None:
            return None
        return self.collection.find_one_and_update(
            {"_id": oid, "stock": {"$gte": quantity}},
            {"$inc": {"stock": -quantity}, "$set": {"updatedAt": now_utc()}},
            return_document=ReturnDocument.AFTER,
        )

    def increment_stock(self, product_id: Any, quantity: int) -> Optional[Dict[str, Any]]:
        oid = to_object_id(product_id)
        if oid is None:
            return None
        return self.collection.find_one_and_update(
            {"_id": oid},
            {"$inc": {"stock": quantity}, "$set": {"updatedAt": now_utc()}},
            return_document=ReturnDocument.AFTER,
        )


class ServiceRepository(CatalogRepository):
    collection_name = SERVICES
