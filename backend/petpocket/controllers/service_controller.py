from flask import Blueprint, request

from petpocket.core.api_utils import (
    api_response,
    bool_arg,
    list_response,
    page_request_from_args,
)
from petpocket.core.auth_decorators import get_current_principal, jwt_required, require_roles
from petpocket.core.limiter_config import WRITE_LIMIT, limiter
from petpocket.core.validation import ServiceValidator, validate_or_raise
from petpocket.db.mongo import get_document_store
from petpocket.domain.entities import Role
from petpocket.services.catalog_service import ServiceCatalogService

service_bp = Blueprint("services", __name__, url_prefix="/api/services")


def _service() -> ServiceCatalogService:
    return ServiceCatalogService(get_document_store())


@service_bp.route("", methods=["GET"])
@jwt_required
def list_services():
    page = page_request_from_args()
    active = bool_arg(request.args.get("active"))
    if active is not None:
        page.filters["active"] = active
    items, pagination = _service().list_services(page)
    return list_response("Services retrieved", items, pagination)


@service_bp.route("/<service_id>", methods=["GET"])
@jwt_required
def get_service(service_id):
    return api_response(True, "Service retrieved", _service().get_service(service_id))


@service_bp.route("", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
@require_roles(Role.ADMINISTRATOR)
def create_service():
    data = validate_or_raise(ServiceValidator(), request.get_json(silent=True))
    service = _service().create_service(data, get_current_principal())
    return api_response(True, "Service created successfully", service, 201)


@service_bp.route("/<service_id>", methods=["PUT"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
@require_roles(Role.ADMINISTRATOR)
def update_service(service_id):
    data = validate_or_raise(ServiceValidator(partial=True), request.get_json(silent=True))
    service = _service().update_service(service_id, data, get_current_principal())
    return api_response(True, "Service updated successfully", service)


@service_bp.route("/<service_id>", methods=["DELETE"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
@require_roles(Role.ADMINISTRATOR)
def delete_service(service_id):
    _service().delete_service(service_id, get_current_principal())
    return api_response(True, "Service deleted successfully")
