"""
Application error types.

Every error that should reach the client carries a machine-readable ``code``
and an HTTP ``status_code``; ``create_app`` registers a handler that renders
them into the standard response envelope.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base class for errors rendered as ``{success: false, error, code}``."""

    status_code = 500
    code = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.code,
        }
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, details: Dict[str, str], message: str = "Validation failed"):
        super().__init__(message, details=details)


class NotFoundError(AppError):
    """Raised when a referenced row or document does not exist.

    ``entity`` becomes the code prefix: ``NotFoundError("Product", id)`` is
    ``PRODUCT_NOT_FOUND``.
    """

    status_code = 404

    def __init__(self, entity: str, identifier: Any = None):
        message = f"{entity} not found"
        if identifier is not None:
            message = f"{entity} {identifier} not found"
        super().__init__(message, code=f"{entity.upper()}_NOT_FOUND")
        self.entity = entity
        self.identifier = identifier


class BusinessRuleError(AppError):
    status_code = 400


class AuthenticationError(AppError):
    status_code = 401
    code = "TOKEN_REQUIRED"


class AuthorizationError(AppError):
    status_code = 403
    code = "INSUFFICIENT_PERMISSIONS"


class InternalError(AppError):
    """Server-side failure whose detail is logged but not sent to clients."""

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
