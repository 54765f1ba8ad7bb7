"""
Common API utilities for consistent response formatting across all controllers.
"""

from typing import Any, Optional

from flask import jsonify, request

from petpocket.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from petpocket.core.exceptions import ValidationError
from petpocket.domain.entities import PageRequest


def api_response(
    success: bool, message: str, data: Optional[Any] = None, status_code: int = 200
) -> tuple:
    """
    Standardized API response format for all endpoints.

    Returns:
        Tuple of (json_response, status_code)
    """
    response = {"success": success, "message": message}

    if data is not None:
        response["data"] = data

    return jsonify(response), status_code


def list_response(message: str, items: list, pagination: dict) -> tuple:
    return api_response(True, message, {"items": items, "pagination": pagination})


def _int_arg(name: str, default: int, errors: dict) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        errors[name] = "Must be an integer"
        return default
    if value < 1:
        errors[name] = "Must be at least 1"
        return default
    return value


def page_request_from_args(*filter_names: str) -> PageRequest:
    """Build a ``PageRequest`` from ``page``, ``limit``, ``search`` and the named filters."""
    errors: dict = {}
    page = _int_arg("page", 1, errors)
    limit = min(_int_arg("limit", DEFAULT_PAGE_SIZE, errors), MAX_PAGE_SIZE)
    if errors:
        raise ValidationError(errors)
    search = (request.args.get("search") or "").strip() or None
    filters = {
        name: request.args.get(name)
        for name in filter_names
        if request.args.get(name) not in (None, "")
    }
    return PageRequest(page=page, limit=limit, search=search, filters=filters)


def bool_arg(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ValidationError({"active": "Must be true or false"})
