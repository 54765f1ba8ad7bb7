import logging
import time
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from petpocket.core.exceptions import ValidationError
from petpocket.core.logging_config import log_performance
from petpocket.db.mongo import DocumentStore
from petpocket.repositories.appointment_repo import AppointmentRepository
from petpocket.repositories.catalog_repo import ProductRepository, ServiceRepository
from petpocket.repositories.order_repo import OrderRepository
from petpocket.repositories.owner_repo import OwnerRepository
from petpocket.repositories.pet_repo import PetRepository
from petpocket.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)


class ReportService:
    """Read-only counts and daily aggregates across both stores."""

    def __init__(self, db_session: Session, store: DocumentStore):
        self.db = db_session
        self.store = store

    def stats(self) -> Dict[str, int]:
        start = time.perf_counter()
        counts = {
            "users": UserRepository(self.db).count(),
            "owners": OwnerRepository(self.db).count(),
            "pets": PetRepository(self.db).count(),
            "orders": OrderRepository(self.db).count(),
            "appointments": AppointmentRepository(self.db).count(),
            "products": ProductRepository(self.store).count(),
            "services": ServiceRepository(self.store).count(),
        }
        log_performance("stats", (time.perf_counter() - start) * 1000)
        return counts

    @staticmethod
    def _check_range(start: datetime, end: datetime) -> None:
        if end < start:
            raise ValidationError({"end": "Must not be before start"})

    def sales_report(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """Paid orders per day: ``total_sales`` and ``total_orders``."""
        self._check_range(start, end)
        rows = OrderRepository(self.db).sales_by_day(start, end)
        logger.info(
            "Sales report generated",
            extra={"context": {"start": start.isoformat(), "end": end.isoformat(), "days": len(rows)}},
        )
        return rows

    def appointments_report(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """Appointments per day and status: ``count`` and ``total_revenue``."""
        self._check_range(start, end)
        rows = AppointmentRepository(self.db).summary_by_day(start, end)
        logger.info(
            "Appointments report generated",
            extra={"context": {"start": start.isoformat(), "end": end.isoformat(), "rows": len(rows)}},
        )
        return rows
