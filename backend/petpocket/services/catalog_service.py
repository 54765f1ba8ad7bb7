import logging
from typing import Any, Dict, List, Tuple

from bson import ObjectId

from petpocket.core.exceptions import BusinessRuleError, NotFoundError
from petpocket.db.mongo import DocumentStore, serialize_document
from petpocket.domain.entities import PageRequest, Principal, StockOperation
from petpocket.repositories.catalog_repo import ProductRepository, ServiceRepository

logger = logging.getLogger(__name__)


class ProductService:
    def __init__(self, store: DocumentStore):
        self.products = ProductRepository(store)

    def list_products(self, page: PageRequest) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        docs, total = self.products.list_page(page)
        return [serialize_document(doc) for doc in docs], page.pagination(total)

    def get_product(self, product_id: str) -> Dict[str, Any]:
        product = self.products.get_by_id(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return serialize_document(product)

    def create_product(self, data: Dict[str, Any], principal: Principal) -> Dict[str, Any]:
        fields = {
            "description": "",
            "image": None,
            "active": True,
            **data,
        }
        product = self.products.insert(fields)
        logger.info(
            "Product created",
            extra={"context": {"product_id": str(product["_id"]), "actor_id": principal.id}},
        )
        return serialize_document(product)

    def update_product(self, product_id: str, data: Dict[str, Any],
                       principal: Principal) -> Dict[str, Any]:
        product = self.products.update(product_id, data)
        if product is None:
            raise NotFoundError("Product", product_id)
        logger.info(
            "Product updated",
            extra={"context": {"product_id": product_id, "actor_id": principal.id, "fields": sorted(data)}},
        )
        return serialize_document(product)

    def delete_product(self, product_id: str, principal: Principal) -> None:
        if not self.products.delete(product_id):
            raise NotFoundError("Product", product_id)
        logger.info(
            "Product deleted",
            extra={"context": {"product_id": product_id, "actor_id": principal.id}},
        )

    def adjust_stock(self, product_id: str, quantity: int, operation: str,
                     principal: Principal) -> Dict[str, Any]:
        """Add or subtract stock with a single atomic update.

        Subtraction is guarded by ``stock >= quantity`` at the store, so stock
        never goes negative.
        """
        if operation == StockOperation.ADD.value:
            product = self.products.increment_stock(product_id, quantity)
        else:
            product = self.products.decrement_stock(product_id, quantity)

        if product is None:
            current = self.products.get_by_id(product_id)
            if current is None:
                raise NotFoundError("Product", product_id)
            raise BusinessRuleError(
                f"Insufficient stock for {current.get('name')}",
                code="INSUFFICIENT_STOCK",
                details={"productId": product_id, "available": current.get("stock", 0)},
            )

        logger.info(
            "Product stock adjusted",
            extra={
                "context": {
                    "product_id": product_id,
                    "operation": operation,
                    "quantity": quantity,
                    "stock": product.get("stock"),
                    "actor_id": principal.id,
                }
            },
        )
        return serialize_document(product)


def _with_subcategory_ids(subcategories: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{**sub, "id": sub.get("id") or str(ObjectId())} for sub in subcategories]


class ServiceCatalogService:
    """Clinic services (consultations, grooming, ...) priced per subcategory."""

    def __init__(self, store: DocumentStore):
        self.services = ServiceRepository(store)

    def list_services(self, page: PageRequest) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        docs, total = self.services.list_page(page)
        return [serialize_document(doc) for doc in docs], page.pagination(total)

    def get_service(self, service_id: str) -> Dict[str, Any]:
        service = self.services.get_by_id(service_id)
        if service is None:
            raise NotFoundError("Service", service_id)
        return serialize_document(service)

    def create_service(self, data: Dict[str, Any], principal: Principal) -> Dict[str, Any]:
        fields = {"image": None, "active": True, "subcategories": [], **data}
        fields["subcategories"] = _with_subcategory_ids(fields["subcategories"])
        service = self.services.insert(fields)
        logger.info(
            "Service created",
            extra={"context": {"service_id": str(service["_id"]), "actor_id": principal.id}},
        )
        return serialize_document(service)

    def update_service(self, service_id: str, data: Dict[str, Any],
                       principal: Principal) -> Dict[str, Any]:
        fields = dict(data)
        if "subcategories" in fields:
            fields["subcategories"] = _with_subcategory_ids(fields["subcategories"])
        service = self.services.update(service_id, fields)
        if service is None:
            raise NotFoundError("Service", service_id)
        logger.info(
            "Service updated",
            extra={"context": {"service_id": service_id, "actor_id": principal.id, "fields": sorted(data)}},
        )
        return serialize_document(service)

    def delete_service(self, service_id: str, principal: Principal) -> None:
        if not self.services.delete(service_id):
            raise NotFoundError("Service", service_id)
        logger.info(
            "Service deleted",
            extra={"context": {"service_id": service_id, "actor_id": principal.id}},
        )
