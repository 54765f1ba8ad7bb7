"""
Authentication endpoints: login and self-registration.

Both return ``{token, user: {id, name, email, role}}``.
"""

from flask import Blueprint, request

from petpocket.core.api_utils import api_response
from petpocket.core.cipher import get_field_cipher
from petpocket.core.limiter_config import AUTH_LIMIT, limiter
from petpocket.core.validation import LoginValidator, UserValidator, validate_or_raise
from petpocket.db.mongo import get_document_store
from petpocket.db.session import SessionLocal
from petpocket.services.auth_service import AuthService

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.route("/login", methods=["POST"])
@limiter.limit(AUTH_LIMIT)
def login():
    data = validate_or_raise(LoginValidator(), request.get_json(silent=True))
    db = SessionLocal()
    try:
        service = AuthService(db, get_document_store(), get_field_cipher())
        result = service.login(data["email"], data["password"], request.remote_addr)
        return api_response(True, "Login successful", result)
    finally:
        db.close()


@auth_bp.route("/register", methods=["POST"])
@limiter.limit(AUTH_LIMIT)
def register():
    data = validate_or_raise(
        UserValidator(allow_role=False), request.get_json(silent=True)
    )
    db = SessionLocal()
    try:
        service = AuthService(db, get_document_store(), get_field_cipher())
        result = service.register(data, request.remote_addr)
        return api_response(True, "User registered successfully", result, 201)
    finally:
        db.close()
