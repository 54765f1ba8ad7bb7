"""
Staff account administration. Every route requires an Administrator.
"""

from flask import Blueprint, request

from petpocket.core.api_utils import api_response, list_response, page_request_from_args
from petpocket.core.auth_decorators import get_current_principal, jwt_required, require_roles
from petpocket.core.cipher import get_field_cipher
from petpocket.core.limiter_config import WRITE_LIMIT, limiter
from petpocket.core.validation import UserValidator, validate_or_raise
from petpocket.db.mongo import get_document_store
from petpocket.db.session import SessionLocal
from petpocket.domain.entities import Role
from petpocket.services.user_service import UserService

user_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _service(db) -> UserService:
    return UserService(db, get_document_store(), get_field_cipher())


@user_bp.route("", methods=["GET"])
@jwt_required
@require_roles(Role.ADMINISTRATOR)
def list_users():
    page = page_request_from_args()
    db = SessionLocal()
    try:
        items, pagination = _service(db).list_users(page)
        return list_response("Users retrieved", items, pagination)
    finally:
        db.close()


@user_bp.route("/<int:user_id>", methods=["GET"])
@jwt_required
@require_roles(Role.ADMINISTRATOR)
def get_user(user_id):
    db = SessionLocal()
    try:
        return api_response(True, "User retrieved", _service(db).get_user(user_id))
    finally:
        db.close()


@user_bp.route("", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
@require_roles(Role.ADMINISTRATOR)
def create_user():
    data = validate_or_raise(UserValidator(), request.get_json(silent=True))
    db = SessionLocal()
    try:
        _, user = _service(db).create_user(data, get_current_principal())
        return api_response(True, "User created successfully", user, 201)
    finally:
        db.close()


@user_bp.route("/<int:user_id>", methods=["PUT"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
@require_roles(Role.ADMINISTRATOR)
def update_user(user_id):
    data = validate_or_raise(UserValidator(partial=True), request.get_json(silent=True))
    db = SessionLocal()
    try:
        user = _service(db).update_user(user_id, data, get_current_principal())
        return api_response(True, "User updated successfully", user)
    finally:
        db.close()


@user_bp.route("/<int:user_id>", methods=["DELETE"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
@require_roles(Role.ADMINISTRATOR)
def delete_user(user_id):
    db = SessionLocal()
    try:
        _service(db).delete_user(user_id, get_current_principal())
        return api_response(True, "User deleted successfully")
    finally:
        db.close()
