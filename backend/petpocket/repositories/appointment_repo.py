from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func

from petpocket.db.base import Appointment
from petpocket.domain.entities import PageRequest
from petpocket.repositories.base_repo import SqlRepository


class AppointmentRepository(SqlRepository[Appointment]):
    model = Appointment

    def list_page(
        self,
        page: PageRequest,
        status: Optional[str] = None,
        client_id: Optional[int] = None,
        on_date: Optional[date] = None,
    ) -> Tuple[List[Appointment], int]:
        """Appointments in chronological order.

        ``on_date`` restricts results to that calendar day (UTC).
        """
        query = self.db.query(Appointment)
        if status:
            query = query.filter(Appointment.status == status)
        if client_id is not None:
            query = query.filter(Appointment.client_id == client_id)
        if on_date is not None:
            start = datetime.combine(on_date, time.min, tzinfo=timezone.utc)
            end = start + timedelta(days=1)
            query = query.filter(
                Appointment.appointment_date >= start,
                Appointment.appointment_date < end,
            )
        query = query.order_by(Appointment.appointment_date.asc(), Appointment.id.asc())
        return self._page(query, page)

    def summary_by_day(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """Appointment count and revenue per calendar day and status."""
        day = func.date(Appointment.appointment_date)
        rows = (
            self.db.query(
                day.label("date"),
                Appointment.status,
                func.count(Appointment.id).label("count"),
                func.sum(Appointment.total).label("total_revenue"),
            )
            .filter(Appointment.appointment_date.between(start, end))
            .group_by(day, Appointment.status)
            .order_by(day.asc(), Appointment.status.asc())
            .all()
        )
        return [
            {
                "date": str(row.date),
                "status": row.status,
                "count": int(row.count),
                "total_revenue": float(row.total_revenue or 0),
            }
            for row in rows
        ]
