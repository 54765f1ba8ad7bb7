from flask import Blueprint, request

from petpocket.core.api_utils import api_response, list_response, page_request_from_args
from petpocket.core.auth_decorators import get_current_principal, jwt_required
from petpocket.core.cipher import get_field_cipher
from petpocket.core.limiter_config import WRITE_LIMIT, limiter
from petpocket.core.validation import OrderUpdateValidator, OrderValidator, validate_or_raise
from petpocket.db.mongo import get_document_store
from petpocket.db.session import SessionLocal
from petpocket.services.order_service import OrderService

order_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _service(db) -> OrderService:
    return OrderService(db, get_document_store(), get_field_cipher())


@order_bp.route("", methods=["GET"])
@jwt_required
def list_orders():
    page = page_request_from_args("status", "payment_status")
    db = SessionLocal()
    try:
        items, pagination = _service(db).list_orders(page)
        return list_response("Orders retrieved", items, pagination)
    finally:
        db.close()


@order_bp.route("/<int:order_id>", methods=["GET"])
@order_bp.route("/<int:order_id>/details", methods=["GET"])
@jwt_required
def get_order(order_id):
    db = SessionLocal()
    try:
        return api_response(True, "Order retrieved", _service(db).get_order(order_id))
    finally:
        db.close()


@order_bp.route("", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
def create_order():
    """Create an order, pricing lines from the catalog and taking stock."""
    data = validate_or_raise(OrderValidator(), request.get_json(silent=True))
    db = SessionLocal()
    try:
        order = _service(db).create_order(data, get_current_principal())
        return api_response(True, "Order created successfully", order, 201)
    finally:
        db.close()


@order_bp.route("/<int:order_id>", methods=["PUT"])
@limiter.limit(WRITE_LIMIT)
@jwt_required
def update_order(order_id):
    data = validate_or_raise(OrderUpdateValidator(), request.get_json(silent=True))
    db = SessionLocal()
    try:
        order = _service(db).update_order(order_id, data, get_current_principal())
        return api_response(True, "Order updated successfully", order)
    finally:
        db.close()
