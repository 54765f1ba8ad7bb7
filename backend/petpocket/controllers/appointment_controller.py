from flask import Blueprint, request

from petpocket.core.api_utils import api_response, list_response, page_request_from_args
from petpocket.core.auth_decorators import get_current_principal, jwt_required
from petpocket.core.cipher import get_field_cipher
from petpocket.core.limiter_config import WRITE_LIMIT, limiter
from petpocket.core.validation import (
    AppointmentUpdateValidator,
    AppointmentValidator,
    validate_or_raise,
)
from petpocket.db.mongo import get_document_store
from petpocket.db.session import SessionLocal
from petpocket.services.appointment_service import AppointmentService

appointment_bp = Blueprint("appointments", __name__, url_prefix="/api/appointments")


def _service(db) -> AppointmentService:
    return AppointmentService(db, get_document_store(), get_field_cipher())


@appointment_bp.route("", methods=["GET"])
@jwt_required
def list_appointments():
    """List appointments, optionally filtered by ``status``, ``date`` (YYYY-MM-DD) and ``client_id``."""
    page = page_request_from_args("status", "date", "client_id")
    db = SessionLocal()
    try:
        items, pagination = _service(db).list_appointments(page)
        return list_response("Appointments retrieved", items, pagination)
    finally:
        db.close()


@appointment_bp.route("/<int:appointment_id>", methods=["GET"])
@appointment_bp.route("/<int:appointment_id>/details", methods=["GET"])
@jwt_required
def get_appointment(appointment_id):
    db = SessionLocal()
    try:
        appointment = _service(db).get_appointment(appointment_id)
        return api_response(True, "Appointment retrieved", appointment)
    finally:
        db.close()


@appointment_bp.route("", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
def create_appointment():
    data = validate_or_raise(AppointmentValidator(), request.get_json(silent=True))
    db = SessionLocal()
    try:
        appointment = _service(db).create_appointment(data, get_current_principal())
        return api_response(True, "Appointment created successfully", appointment, 201)
    finally:
        db.close()


@appointment_bp.route("/<int:appointment_id>", methods=["PUT"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
def update_appointment(appointment_id):
    data = validate_or_raise(AppointmentUpdateValidator(), request.get_json(silent=True))
    db = SessionLocal()
    try:
        appointment = _service(db).update_appointment(
            appointment_id, data, get_current_principal()
        )
        return api_response(True, "Appointment updated successfully", appointment)
    finally:
        db.close()
