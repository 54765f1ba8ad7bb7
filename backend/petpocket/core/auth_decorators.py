"""
Authentication and authorization guards for the JSON API.

Every protected route is wrapped with ``jwt_required``, which turns a bearer
token into a ``Principal`` on ``g.principal``. Role checks compose on top:

    @owner_bp.route("/<int:owner_id>", methods=["DELETE"])
    @jwt_required
    @require_roles(Role.ADMINISTRATOR, Role.VETERINARIAN)
    def delete_owner(owner_id):
        ...

Guards raise ``AppError`` subclasses; the app-level error handler renders them.
"""

from functools import wraps
from typing import Iterable, Optional

from flask import g, request

from petpocket.core.exceptions import AuthenticationError, AuthorizationError
from petpocket.core.security import decode_access_token
from petpocket.domain.entities import Principal, Role


def has_role(principal: Optional[Principal], roles: Iterable) -> bool:
    """Allow/deny check usable outside decorators (e.g. inside a service)."""
    return principal is not None and principal.has_role(roles)


def principal_from_token(token: str) -> Principal:
    payload = decode_access_token(token)
    if not payload:
        raise AuthorizationError("Invalid or expired token", code="INVALID_TOKEN")
    try:
        return Principal(
            id=int(payload["sub"]),
            email=payload.get("email", ""),
            role=payload["role"],
        )
    except (KeyError, TypeError, ValueError):
        raise AuthorizationError("Invalid token payload", code="INVALID_TOKEN")


def get_current_principal() -> Optional[Principal]:
    return g.get("principal")


def jwt_required(f):
    """Require a valid ``Authorization: Bearer <token>`` header.

    Missing header -> 401 TOKEN_REQUIRED; bad or expired token -> 403 INVALID_TOKEN.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer ") or not auth_header[7:].strip():
            raise AuthenticationError("Access token required", code="TOKEN_REQUIRED")

        principal = principal_from_token(auth_header[7:].strip())
        g.principal = principal
        g.user_id = principal.id
        return f(*args, **kwargs)

    return decorated_function


def require_roles(*roles: Role):
    """Deny with 403 INSUFFICIENT_PERMISSIONS unless the principal holds one of ``roles``.

    Must be applied below ``jwt_required``.
    """

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not has_role(get_current_principal(), roles):
                raise AuthorizationError(
                    "Insufficient permissions", code="INSUFFICIENT_PERMISSIONS"
                )
            return f(*args, **kwargs)

        return decorated_function

    return decorator
