"""
Product catalog (``products`` collection). Reads are open to any signed-in
user; catalog edits need an Administrator. Stock adjustments are also open to
Receptionists.
"""

from flask import Blueprint, request

from petpocket.core.api_utils import (
    api_response,
    bool_arg,
    list_response,
    page_request_from_args,
)
from petpocket.core.auth_decorators import get_current_principal, jwt_required, require_roles
from petpocket.core.limiter_config import WRITE_LIMIT, limiter
from petpocket.core.validation import ProductValidator, StockUpdateValidator, validate_or_raise
from petpocket.db.mongo import get_document_store
from petpocket.domain.entities import Role
from petpocket.services.catalog_service import ProductService

product_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _service() -> ProductService:
    return ProductService(get_document_store())


@product_bp.route("", methods=["GET"])
@jwt_required
def list_products():
    page = page_request_from_args("category")
    active = bool_arg(request.args.get("active"))
    if active is not None:
        page.filters["active"] = active
    items, pagination = _service().list_products(page)
    return list_response("Products retrieved", items, pagination)


@product_bp.route("/<product_id>", methods=["GET"])
@jwt_required
def get_product(product_id):
    return api_response(True, "Product retrieved", _service().get_product(product_id))


@product_bp.route("", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
@require_roles(Role.ADMINISTRATOR)
def create_product():
    data = validate_or_raise(ProductValidator(), request.get_json(silent=True))
    product = _service().create_product(data, get_current_principal())
    return api_response(True, "Product created successfully", product, 201)


@product_bp.route("/<product_id>", methods=["PUT"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
@require_roles(Role.ADMINISTRATOR)
def update_product(product_id):
    data = validate_or_raise(ProductValidator(partial=True), request.get_json(silent=True))
    product = _service().update_product(product_id, data, get_current_principal())
    return api_response(True, "Product updated successfully", product)


@product_bp.route("/<product_id>", methods=["DELETE"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
@require_roles(Role.ADMINISTRATOR)
def delete_product(product_id):
    _service().delete_product(product_id, get_current_principal())
    return api_response(True, "Product deleted successfully")


@product_bp.route("/<product_id>/stock", methods=["PATCH"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
@require_roles(Role.ADMINISTRATOR, Role.RECEPTIONIST)
def update_stock(product_id):
    data = validate_or_raise(StockUpdateValidator(), request.get_json(silent=True))
    product = _service().adjust_stock(
        product_id, data["quantity"], data["operation"], get_current_principal()
    )
    return api_response(True, "Stock updated successfully", product)
