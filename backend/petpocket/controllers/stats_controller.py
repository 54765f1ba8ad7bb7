"""
Dashboard counts and daily reports for Administrators and Veterinarians,
plus an authenticated echo endpoint used by clients to check their token.
"""

from datetime import timedelta

from flask import Blueprint, request

from petpocket.core.api_utils import api_response
from petpocket.core.auth_decorators import get_current_principal, jwt_required, require_roles
from petpocket.core.exceptions import ValidationError
from petpocket.core.validation import BaseValidator, ValidationResult
from petpocket.db.mongo import get_document_store
from petpocket.db.session import SessionLocal
from petpocket.domain.entities import Role
from petpocket.services.report_service import ReportService

stats_bp = Blueprint("stats", __name__, url_prefix="/api")

REPORT_ROLES = (Role.ADMINISTRATOR, Role.VETERINARIAN)


def _report_range():
    """Read ``start``/``end`` query args. A date-only ``end`` covers that whole day."""
    result = ValidationResult()
    raw_start = request.args.get("start")
    raw_end = request.args.get("end")
    for name, raw in (("start", raw_start), ("end", raw_end)):
        if not raw:
            result.add_error(f"{name} is required", name)
    start = BaseValidator.validate_datetime(raw_start, "start", result)
    end = BaseValidator.validate_datetime(raw_end, "end", result)
    if not result.is_valid:
        raise ValidationError(result.errors)

    if len(raw_end.strip()) == 10:
        end = end + timedelta(days=1) - timedelta(microseconds=1)
    return start, end


@stats_bp.route("/stats", methods=["GET"])
@jwt_required
@require_roles(*REPORT_ROLES)
def get_stats():
    db = SessionLocal()
    try:
        stats = ReportService(db, get_document_store()).stats()
        return api_response(True, "Statistics retrieved", stats)
    finally:
        db.close()


@stats_bp.route("/reports/sales", methods=["GET"])
@jwt_required
@require_roles(*REPORT_ROLES)
def sales_report():
    start, end = _report_range()
    db = SessionLocal()
    try:
        rows = ReportService(db, get_document_store()).sales_report(start, end)
        return api_response(True, "Sales report generated", rows)
    finally:
        db.close()


@stats_bp.route("/reports/appointments", methods=["GET"])
@jwt_required
@require_roles(*REPORT_ROLES)
def appointments_report():
    start, end = _report_range()
    db = SessionLocal()
    try:
        rows = ReportService(db, get_document_store()).appointments_report(start, end)
        return api_response(True, "Appointments report generated", rows)
    finally:
        db.close()


@stats_bp.route("/test", methods=["GET"])
@jwt_required
def echo_principal():
    principal = get_current_principal()
    return api_response(
        True,
        "Authenticated",
        {"id": principal.id, "email": principal.email, "role": principal.role},
    )
