import logging
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Session

from petpocket.core.cipher import FieldCipher
from petpocket.core.exceptions import NotFoundError
from petpocket.db.base import Order
from petpocket.db.mongo import DocumentStore
from petpocket.domain.entities import (
    FulfillmentStatus,
    OrderPaymentStatus,
    PageRequest,
    Principal,
)
from petpocket.repositories.catalog_repo import ProductRepository, ServiceRepository
from petpocket.repositories.details_repo import OrderDetailsRepository
from petpocket.repositories.order_repo import OrderRepository
from petpocket.repositories.owner_repo import OwnerRepository
from petpocket.services.composer import AggregateComposer
from petpocket.services.dual_write import DualWriteOrchestrator
from petpocket.services.pricing_service import PricingService

logger = logging.getLogger(__name__)

ROW_FIELDS = ("payment_status", "fulfillment_status")
DOCUMENT_FIELDS = ("notes", "discount", "tax")


class OrderService:
    """Orders: orders row (total, statuses) plus order_details (line items, notes)."""

    def __init__(self, db_session: Session, store: DocumentStore, cipher: FieldCipher):
        self.orders = OrderRepository(db_session)
        self.owners = OwnerRepository(db_session)
        self.details = OrderDetailsRepository(store)
        self.pricing = PricingService(ProductRepository(store), ServiceRepository(store))
        self.writer = DualWriteOrchestrator(db_session, self.details)
        self.composer = AggregateComposer(cipher)

    def _get_or_404(self, order_id: int) -> Order:
        order = self.orders.get_by_id(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def list_orders(self, page: PageRequest) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        rows, total = self.orders.list_page(
            page,
            status=page.filters.get("status"),
            payment_status=page.filters.get("payment_status"),
        )
        documents = self.details.get_many(row.id for row in rows)
        items = [self.composer.compose_order(row, documents.get(row.id)) for row in rows]
        return items, page.pagination(total)

    def get_order(self, order_id: int) -> Dict[str, Any]:
        order = self._get_or_404(order_id)
        return self.composer.compose_order(order, self.details.get(order_id), detailed=True)

    def create_order(self, data: Dict[str, Any], principal: Principal) -> Dict[str, Any]:
        """Validate the client, price and reserve stock, then dual-write the order.

        Stock taken for the order is given back if the order row cannot be
        committed.
        """
        client = None
        if data.get("client_id") is not None:
            client = self.owners.get_by_id(data["client_id"])
            if client is None:
                raise NotFoundError("Client", data["client_id"])

        priced = self.pricing.reserve_products(data["products"])
        order = Order(
            client=client,
            total=priced.total,
            payment_status=data.get("payment_status") or OrderPaymentStatus.PENDING.value,
            fulfillment_status=FulfillmentStatus.IN_PROGRESS.value,
        )
        order, document = self.writer.create(
            order,
            lambda row: {
                "products": priced.lines,
                "notes": data.get("notes", ""),
                "discount": 0,
                "tax": 0,
            },
            compensate=priced.reservation.release,
        )
        logger.info(
            "Order created",
            extra={
                "context": {
                    "order_id": order.id,
                    "client_id": order.client_id,
                    "total": float(order.total),
                    "lines": len(priced.lines),
                    "actor_id": principal.id,
                }
            },
        )
        return self.composer.compose_order(order, document, detailed=True)

    def update_order(self, order_id: int, data: Dict[str, Any],
                     principal: Principal) -> Dict[str, Any]:
        order = self._get_or_404(order_id)
        row_changes = {k: data[k] for k in ROW_FIELDS if k in data}
        document_changes = {k: data[k] for k in DOCUMENT_FIELDS if k in data}
        document = self.writer.update(order, row_changes, document_changes)
        logger.info(
            "Order updated",
            extra={
                "context": {
                    "order_id": order_id,
                    "actor_id": principal.id,
                    "fields": sorted(row_changes) + sorted(document_changes),
                }
            },
        )
        return self.composer.compose_order(order, document, detailed=True)
