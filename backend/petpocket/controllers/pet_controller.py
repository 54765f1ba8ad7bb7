"""
Pet endpoints plus the medical history kept in the ``medical_history``
collection. Only Administrators and Veterinarians may add clinical entries.
"""

from flask import Blueprint, request

from petpocket.core.api_utils import api_response, list_response, page_request_from_args
from petpocket.core.auth_decorators import get_current_principal, jwt_required, require_roles
from petpocket.core.cipher import get_field_cipher
from petpocket.core.exceptions import ValidationError
from petpocket.core.limiter_config import WRITE_LIMIT, limiter
from petpocket.core.validation import (
    AllergyValidator,
    BaseValidator,
    MedicalRecordValidator,
    PetValidator,
    VaccinationValidator,
    ValidationResult,
    validate_or_raise,
)
from petpocket.db.mongo import get_document_store
from petpocket.db.session import SessionLocal
from petpocket.domain.entities import Role
from petpocket.services.pet_service import PetService

pet_bp = Blueprint("pets", __name__, url_prefix="/api/pets")

CLINICAL_ROLES = (Role.ADMINISTRATOR, Role.VETERINARIAN)


def _service(db) -> PetService:
    return PetService(db, get_document_store(), get_field_cipher())


@pet_bp.route("", methods=["GET"])
@jwt_required
def list_pets():
    page = page_request_from_args("owner_id")
    result = ValidationResult()
    owner_id = BaseValidator.validate_integer(
        page.filters.get("owner_id"), "owner_id", result, min_value=1
    )
    if not result.is_valid:
        raise ValidationError(result.errors)

    db = SessionLocal()
    try:
        items, pagination = _service(db).list_pets(page, owner_id=owner_id)
        return list_response("Pets retrieved", items, pagination)
    finally:
        db.close()


@pet_bp.route("/<int:pet_id>", methods=["GET"])
@jwt_required
def get_pet(pet_id):
    db = SessionLocal()
    try:
        return api_response(True, "Pet retrieved", _service(db).get_pet(pet_id))
    finally:
        db.close()


@pet_bp.route("", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
def create_pet():
    data = validate_or_raise(PetValidator(), request.get_json(silent=True))
    db = SessionLocal()
    try:
        pet = _service(db).create_pet(data, get_current_principal())
        return api_response(True, "Pet created successfully", pet, 201)
    finally:
        db.close()


@pet_bp.route("/<int:pet_id>", methods=["PUT"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
def update_pet(pet_id):
    data = validate_or_raise(PetValidator(partial=True), request.get_json(silent=True))
    db = SessionLocal()
    try:
        pet = _service(db).update_pet(pet_id, data, get_current_principal())
        return api_response(True, "Pet updated successfully", pet)
    finally:
        db.close()


@pet_bp.route("/<int:pet_id>", methods=["DELETE"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
def delete_pet(pet_id):
    db = SessionLocal()
    try:
        _service(db).delete_pet(pet_id, get_current_principal())
        return api_response(True, "Pet deleted successfully")
    finally:
        db.close()


@pet_bp.route("/<int:pet_id>/medical-history", methods=["GET"])
@jwt_required
def get_medical_history(pet_id):
    db = SessionLocal()
    try:
        history = _service(db).get_medical_history(pet_id)
        return api_response(True, "Medical history retrieved", history)
    finally:
        db.close()


@pet_bp.route("/<int:pet_id>/medical-history", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
@require_roles(*CLINICAL_ROLES)
def add_medical_record(pet_id):
    data = validate_or_raise(MedicalRecordValidator(), request.get_json(silent=True))
    db = SessionLocal()
    try:
        history = _service(db).add_medical_record(pet_id, data, get_current_principal())
        return api_response(True, "Medical record added", history, 201)
    finally:
        db.close()


@pet_bp.route("/<int:pet_id>/vaccinations", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
@require_roles(*CLINICAL_ROLES)
def add_vaccination(pet_id):
    data = validate_or_raise(VaccinationValidator(), request.get_json(silent=True))
    db = SessionLocal()
    try:
        history = _service(db).add_vaccination(pet_id, data, get_current_principal())
        return api_response(True, "Vaccination added", history, 201)
    finally:
        db.close()


@pet_bp.route("/<int:pet_id>/allergies", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
@require_roles(*CLINICAL_ROLES)
def add_allergy(pet_id):
    data = validate_or_raise(AllergyValidator(), request.get_json(silent=True))
    db = SessionLocal()
    try:
        history = _service(db).add_allergy(pet_id, data, get_current_principal())
        return api_response(True, "Allergy added", history, 201)
    finally:
        db.close()
