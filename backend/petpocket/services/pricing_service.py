"""
Price and stock resolution for orders and appointments.

Totals are derived on the server from catalog prices at request time; line
snapshots keep the name and unit price so later catalog edits do not change
historical documents.

Stock is reserved line by line with a guarded atomic decrement. The caller
receives a ``StockReservation`` and must either ``release()`` it (any failure
before the owning order row commits) or let it stand once the row is committed.
If a line fails inside ``reserve_products`` the lines already taken are
released before the error propagates.
"""

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Tuple

from pymongo.errors import PyMongoError

from petpocket.core.exceptions import BusinessRuleError, NotFoundError
from petpocket.repositories.catalog_repo import ProductRepository, ServiceRepository

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass
class StockReservation:
    """Ledger of stock already taken for one order request."""

    repository: ProductRepository
    taken: List[Tuple[str, int]] = field(default_factory=list)

    def record(self, product_id: str, quantity: int) -> None:
        self.taken.append((product_id, quantity))

    def release(self) -> None:
        """Give back every recorded decrement with an atomic increment.

        Failures are logged and do not interrupt the remaining releases.
        """
        while self.taken:
            product_id, quantity = self.taken.pop()
            try:
                self.repository.increment_stock(product_id, quantity)
            except PyMongoError as e:
                logger.error(
                    "Stock release failed; product stock is now understated",
                    extra={
                        "context": {
                            "product_id": product_id,
                            "quantity": quantity,
                            "error": str(e),
                        }
                    },
                )
            else:
                logger.info(
                    "Stock reservation released",
                    extra={"context": {"product_id": product_id, "quantity": quantity}},
                )


@dataclass
class PricedProducts:
    total: Decimal
    lines: List[Dict[str, Any]]
    reservation: StockReservation


@dataclass
class PricedServices:
    total: Decimal
    lines: List[Dict[str, Any]]


class PricingService:
    def __init__(
        self, product_repository: ProductRepository, service_repository: ServiceRepository
    ):
        self.products = product_repository
        self.services = service_repository

    def reserve_products(self, items: List[Dict[str, Any]]) -> PricedProducts:
        """Price order lines and take their stock.

        Raises:
            NotFoundError: PRODUCT_NOT_FOUND for an unknown product id
            BusinessRuleError: INSUFFICIENT_STOCK naming the product
        """
        reservation = StockReservation(self.products)
        total = Decimal("0")
        lines: List[Dict[str, Any]] = []

        try:
            for item in items:
                product_id = str(item["productId"])
                quantity = int(item["quantity"])

                product = self.products.get_by_id(product_id)
                if product is None:
                    raise NotFoundError("Product", product_id)
                # Read for the name and price snapshot; the guarded decrement is the stock check.
                if self.products.decrement_stock(product_id, quantity) is None:
                    raise self._insufficient(product)
                reservation.record(product_id, quantity)

                unit_price = to_money(product.get("price"))
                total += unit_price * quantity
                lines.append(
                    {
                        "productId": product_id,
                        "name": product.get("name", ""),
                        "quantity": quantity,
                        "price": float(unit_price),
                    }
                )
        except Exception:
            reservation.release()
            raise

        return PricedProducts(total=to_money(total), lines=lines, reservation=reservation)

    @staticmethod
    def _insufficient(product: Dict[str, Any]) -> BusinessRuleError:
        name = product.get("name", str(product.get("_id")))
        return BusinessRuleError(
            f"Insufficient stock for {name}",
            code="INSUFFICIENT_STOCK",
            details={"productId": str(product.get("_id")), "available": product.get("stock", 0)},
        )

    def price_services(self, items: List[Dict[str, Any]]) -> PricedServices:
        """Price appointment lines from service subcategories.

        A named subcategory must exist on the service; without one the first
        subcategory's price is used, or 0 when the service has none.

        Raises:
            NotFoundError: SERVICE_NOT_FOUND or SUBCATEGORY_NOT_FOUND
        """
        total = Decimal("0")
        lines: List[Dict[str, Any]] = []

        for item in items:
            service_id = str(item["serviceId"])
            service = self.services.get_by_id(service_id)
            if service is None:
                raise NotFoundError("Service", service_id)

            subcategories = service.get("subcategories") or []
            subcategory_id = item.get("subcategoryId")
            if subcategory_id:
                match = next(
                    (s for s in subcategories if str(s.get("id")) == str(subcategory_id)),
                    None,
                )
                if match is None:
                    raise NotFoundError("Subcategory", subcategory_id)
                price = to_money(match.get("price"))
            else:
                price = to_money(subcategories[0].get("price")) if subcategories else to_money(0)

            total += price
            lines.append(
                {
                    "serviceId": service_id,
                    "name": service.get("name", ""),
                    "price": float(price),
                    "subcategoryId": str(subcategory_id) if subcategory_id else None,
                }
            )

        return PricedServices(total=to_money(total), lines=lines)
