import logging
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Session

from petpocket.core.cipher import FieldCipher
from petpocket.core.exceptions import NotFoundError, ValidationError
from petpocket.core.validation import BaseValidator, ValidationResult
from petpocket.db.base import Appointment
from petpocket.db.mongo import DocumentStore
from petpocket.domain.entities import (
    AppointmentPaymentStatus,
    AppointmentStatus,
    PageRequest,
    Principal,
)
from petpocket.repositories.appointment_repo import AppointmentRepository
from petpocket.repositories.catalog_repo import ProductRepository, ServiceRepository
from petpocket.repositories.details_repo import AppointmentDetailsRepository
from petpocket.repositories.owner_repo import OwnerRepository
from petpocket.repositories.pet_repo import PetRepository
from petpocket.services.composer import AggregateComposer
from petpocket.services.dual_write import DualWriteOrchestrator
from petpocket.services.pricing_service import PricingService

logger = logging.getLogger(__name__)

ROW_FIELDS = ("appointment_date", "status", "payment_status")
DOCUMENT_FIELDS = ("notes", "diagnosis", "treatment", "followUp")


class AppointmentService:
    """Appointments: appointments row plus appointment_details (services, clinical notes)."""

    def __init__(self, db_session: Session, store: DocumentStore, cipher: FieldCipher):
        self.appointments = AppointmentRepository(db_session)
        self.owners = OwnerRepository(db_session)
        self.pets = PetRepository(db_session)
        self.details = AppointmentDetailsRepository(store)
        self.pricing = PricingService(ProductRepository(store), ServiceRepository(store))
        self.writer = DualWriteOrchestrator(db_session, self.details)
        self.composer = AggregateComposer(cipher)

    def _get_or_404(self, appointment_id: int) -> Appointment:
        appointment = self.appointments.get_by_id(appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment", appointment_id)
        return appointment

    def list_appointments(self, page: PageRequest) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        result = ValidationResult()
        client_id = BaseValidator.validate_integer(
            page.filters.get("client_id"), "client_id", result, min_value=1
        )
        on_date = BaseValidator.validate_date(page.filters.get("date"), "date", result)
        if not result.is_valid:
            raise ValidationError(result.errors)

        rows, total = self.appointments.list_page(
            page,
            status=page.filters.get("status"),
            client_id=client_id,
            on_date=on_date,
        )
        documents = self.details.get_many(row.id for row in rows)
        items = [self.composer.compose_appointment(row, documents.get(row.id)) for row in rows]
        return items, page.pagination(total)

    def get_appointment(self, appointment_id: int) -> Dict[str, Any]:
        appointment = self._get_or_404(appointment_id)
        return self.composer.compose_appointment(
            appointment, self.details.get(appointment_id), detailed=True
        )

    def create_appointment(self, data: Dict[str, Any], principal: Principal) -> Dict[str, Any]:
        client = pet = None
        if data.get("client_id") is not None:
            client = self.owners.get_by_id(data["client_id"])
            if client is None:
                raise NotFoundError("Client", data["client_id"])
        if data.get("pet_id") is not None:
            pet = self.pets.get_by_id(data["pet_id"])
            if pet is None:
                raise NotFoundError("Pet", data["pet_id"])

        priced = self.pricing.price_services(data["services"])
        appointment = Appointment(
            client=client,
            pet=pet,
            appointment_date=data["appointment_date"],
            status=AppointmentStatus.PENDING.value,
            total=priced.total,
            payment_status=data.get("payment_status") or AppointmentPaymentStatus.UNPAID.value,
        )
        appointment, document = self.writer.create(
            appointment,
            lambda row: {
                "services": priced.lines,
                "notes": data.get("notes", ""),
                "diagnosis": "",
                "treatment": "",
                "followUp": {"required": False},
            },
        )
        logger.info(
            "Appointment created",
            extra={
                "context": {
                    "appointment_id": appointment.id,
                    "client_id": appointment.client_id,
                    "pet_id": appointment.pet_id,
                    "total": float(appointment.total),
                    "actor_id": principal.id,
                }
            },
        )
        return self.composer.compose_appointment(appointment, document, detailed=True)

    def update_appointment(self, appointment_id: int, data: Dict[str, Any],
                           principal: Principal) -> Dict[str, Any]:
        appointment = self._get_or_404(appointment_id)
        row_changes = {k: data[k] for k in ROW_FIELDS if k in data}
        document_changes = {k: data[k] for k in DOCUMENT_FIELDS if k in data}
        document = self.writer.update(appointment, row_changes, document_changes)
        logger.info(
            "Appointment updated",
            extra={
                "context": {
                    "appointment_id": appointment_id,
                    "actor_id": principal.id,
                    "fields": sorted(row_changes) + sorted(document_changes),
                }
            },
        )
        return self.composer.compose_appointment(appointment, document, detailed=True)
