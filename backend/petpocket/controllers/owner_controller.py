"""
Owner (client) endpoints. Contact data is encrypted at rest; search runs over
the decrypted page, so a page may come back shorter than ``limit``.
"""

from flask import Blueprint, request

from petpocket.core.api_utils import api_response, list_response, page_request_from_args
from petpocket.core.auth_decorators import get_current_principal, jwt_required
from petpocket.core.cipher import get_field_cipher
from petpocket.core.limiter_config import WRITE_LIMIT, limiter
from petpocket.core.validation import OwnerValidator, validate_or_raise
from petpocket.db.session import SessionLocal
from petpocket.services.owner_service import OwnerService

owner_bp = Blueprint("owners", __name__, url_prefix="/api/owners")


@owner_bp.route("", methods=["GET"])
@jwt_required
def list_owners():
    page = page_request_from_args()
    db = SessionLocal()
    try:
        items, pagination = OwnerService(db, get_field_cipher()).list_owners(page)
        return list_response("Owners retrieved", items, pagination)
    finally:
        db.close()


@owner_bp.route("/<int:owner_id>", methods=["GET"])
@jwt_required
def get_owner(owner_id):
    db = SessionLocal()
    try:
        owner = OwnerService(db, get_field_cipher()).get_owner(owner_id)
        return api_response(True, "Owner retrieved", owner)
    finally:
        db.close()


@owner_bp.route("", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
def create_owner():
    data = validate_or_raise(OwnerValidator(), request.get_json(silent=True))
    db = SessionLocal()
    try:
        owner = OwnerService(db, get_field_cipher()).create_owner(data, get_current_principal())
        return api_response(True, "Owner created successfully", owner, 201)
    finally:
        db.close()


@owner_bp.route("/<int:owner_id>", methods=["PUT"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
def update_owner(owner_id):
    data = validate_or_raise(OwnerValidator(partial=True), request.get_json(silent=True))
    db = SessionLocal()
    try:
        owner = OwnerService(db, get_field_cipher()).update_owner(
            owner_id, data, get_current_principal()
        )
        return api_response(True, "Owner updated successfully", owner)
    finally:
        db.close()


@owner_bp.route("/<int:owner_id>", methods=["DELETE"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
def delete_owner(owner_id):
    db = SessionLocal()
    try:
        OwnerService(db, get_field_cipher()).delete_owner(owner_id, get_current_principal())
        return api_response(True, "Owner deleted successfully")
    finally:
        db.close()


@owner_bp.route("/<int:owner_id>/pets", methods=["GET"])
@jwt_required
def list_owner_pets(owner_id):
    db = SessionLocal()
    try:
        pets = OwnerService(db, get_field_cipher()).list_owner_pets(owner_id)
        return api_response(True, "Owner pets retrieved", pets)
    finally:
        db.close()
