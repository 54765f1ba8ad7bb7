from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func

from petpocket.db.base import Order
from petpocket.domain.entities import OrderPaymentStatus, PageRequest
from petpocket.repositories.base_repo import SqlRepository


class OrderRepository(SqlRepository[Order]):
    model = Order

    def list_page(
        self,
        page: PageRequest,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
    ) -> Tuple[List[Order], int]:
        """Most recent orders first, optionally filtered by fulfillment/payment status."""
        query = self.db.query(Order)
        if status:
            query = query.filter(Order.fulfillment_status == status)
        if payment_status:
            query = query.filter(Order.payment_status == payment_status)
        query = query.order_by(Order.order_date.desc(), Order.id.desc())
        return self._page(query, page)

    def sales_by_day(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """Paid orders between ``start`` and ``end`` grouped per calendar day."""
        day = func.date(Order.order_date)
        rows = (
            self.db.query(
                day.label("date"),
                func.sum(Order.total).label("total_sales"),
                func.count(Order.id).label("total_orders"),
            )
            .filter(Order.order_date.between(start, end))
            .filter(Order.payment_status == OrderPaymentStatus.PAID.value)
            .group_by(day)
            .order_by(day.asc())
            .all()
        )
        return [
            {
                "date": str(row.date),
                "total_sales": float(row.total_sales or 0),
                "total_orders": int(row.total_orders),
            }
            for row in rows
        ]
